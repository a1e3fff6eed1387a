"""Offline checkpoint evaluation against a Gym TCP bridge."""

from __future__ import annotations

import argparse
import csv
import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import torch
from tqdm import tqdm

from .checkpoint import CheckpointManager
from .client import GymEnvironment
from .config import TrainingConfig
from .ddpg import DDPGAgent
from .dqn import QLearningAgent
from .exploration import GreedyPolicy, OUNoise
from .lunar_lander_dqn import discrete_env_action
from .mountain_car_ddpg import scaled_env_action
from .networks import ActorNetwork, CriticNetwork, QNetwork
from .replay import RandomReplay
from .trainer import Trainer, resolve_device
from .types import EpisodeResult

matplotlib.use("Agg")


@dataclass
class EvaluationSummary:
    episodes: int
    return_min: float
    return_mean: float
    return_std: float
    return_max: float
    steps_min: float
    steps_mean: float
    steps_max: float
    eval_time_sec: float
    episodes_per_sec: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def agent_from_spec(spec: dict[str, Any], device: torch.device) -> QLearningAgent | DDPGAgent:
    """Rebuild an agent skeleton matching a checkpoint's ``agent_spec``."""
    algo = spec.get("algo")
    state_dim = int(spec["state_dim"])
    action_dim = int(spec["action_dim"])
    hidden_dim = int(spec["hidden_dim"])
    config = TrainingConfig()
    if algo == QLearningAgent.ALGO:
        return QLearningAgent(
            config,
            QNetwork(state_dim, action_dim, hidden_dim=hidden_dim),
            GreedyPolicy(0.0, 1, 0.0),
            RandomReplay(1, 1, state_dim, discrete_actions=True),
            device=device,
        )
    if algo == DDPGAgent.ALGO:
        return DDPGAgent(
            config,
            CriticNetwork(state_dim, action_dim, hidden_dim=hidden_dim),
            ActorNetwork(state_dim, action_dim, hidden_dim=hidden_dim),
            OUNoise(action_dim),
            RandomReplay(1, 1, state_dim, action_dim=action_dim, discrete_actions=False),
            device=device,
        )
    raise ValueError(f"Unknown agent algo in checkpoint: {algo!r}")


def _aggregate(results: list[EpisodeResult], eval_time_sec: float) -> EvaluationSummary:
    returns = np.asarray([r.total_return for r in results], dtype=np.float64)
    steps = np.asarray([r.steps for r in results], dtype=np.float64)
    episodes = int(returns.size)
    if episodes == 0:
        raise ValueError("Cannot aggregate an empty evaluation")
    return EvaluationSummary(
        episodes=episodes,
        return_min=float(np.min(returns)),
        return_mean=float(np.mean(returns)),
        return_std=float(np.std(returns)),
        return_max=float(np.max(returns)),
        steps_min=float(np.min(steps)),
        steps_mean=float(np.mean(steps)),
        steps_max=float(np.max(steps)),
        eval_time_sec=float(eval_time_sec),
        episodes_per_sec=float(episodes / max(eval_time_sec, 1e-9)),
    )


def _print_header() -> None:
    print("episode | steps | total_return", flush=True)


def _print_row(r: EpisodeResult) -> None:
    print(f"{r.episode:7d} | {r.steps:5d} | {r.total_return:12.2f}", flush=True)


def _plot_returns(results: list[EpisodeResult], output_dir: Path, prefix: str) -> Path:
    episodes = np.array([r.episode for r in results], dtype=np.int64)
    returns = np.array([r.total_return for r in results], dtype=np.float64)

    fig = plt.figure(figsize=(10, 5))
    ax = fig.add_subplot(111)
    ax.plot(episodes, returns, marker="o", linewidth=1.8, label="Episode return")
    ax.axhline(float(np.mean(returns)), linestyle="--", alpha=0.7, label="Mean")
    ax.set_title("Checkpoint Evaluation: Return per Episode")
    ax.set_xlabel("Episode")
    ax.set_ylabel("Total return")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="best")
    path = output_dir / f"{prefix}_returns.png"
    fig.tight_layout()
    fig.savefig(path, dpi=160)
    plt.close(fig)
    return path


def _save_reports(
    results: list[EpisodeResult],
    summary: EvaluationSummary,
    output_dir: Path,
    prefix: str,
    args: argparse.Namespace,
    checkpoint_path: Path,
    loaded_step: int,
) -> tuple[Path, Path]:
    csv_path = output_dir / f"{prefix}_episodes.csv"
    json_path = output_dir / f"{prefix}_summary.json"

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=["episode", "steps", "total_return"])
        writer.writeheader()
        for r in results:
            writer.writerow(asdict(r))

    payload = {
        "config": {
            "checkpoint_dir": args.checkpoint_dir,
            "checkpoint_path": str(checkpoint_path),
            "loaded_step": loaded_step,
            "env_name": args.env_name,
            "episodes": int(args.episodes),
            "max_episode_steps": args.max_episode_steps,
            "action_scale": float(args.action_scale),
            "device": args.device,
            "seed": args.seed,
        },
        "summary": summary.to_dict(),
    }
    with json_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    return csv_path, json_path


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Evaluate a saved DQN/DDPG checkpoint over the Gym TCP bridge")
    p.add_argument("--host", default="localhost")
    p.add_argument("--port", type=int, default=4040)
    p.add_argument("--env-name", required=True)
    p.add_argument("--checkpoint-dir", default="checkpoints")
    p.add_argument("--checkpoint-path", default=None, help="Optional explicit .pt checkpoint path")
    p.add_argument("--device", default="cpu", choices=["cpu", "cuda", "mps"])
    p.add_argument("--episodes", type=int, default=10)
    p.add_argument("--max-episode-steps", type=int, default=None, help="Stop an episode early after N steps")
    p.add_argument("--action-scale", type=float, default=2.0, help="Continuous action multiplier (DDPG only)")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--output-dir", default="eval_reports")
    p.add_argument("--output-prefix", default="checkpoint_eval")
    p.add_argument("--progress", default="on", choices=["on", "off"])
    return p


def run_evaluation(args: argparse.Namespace) -> dict[str, Any]:
    if args.episodes < 1:
        raise ValueError("--episodes must be >= 1")
    if args.max_episode_steps is not None and args.max_episode_steps < 1:
        raise ValueError("--max-episode-steps must be >= 1")

    device = resolve_device(args.device)
    ckpt = CheckpointManager(args.checkpoint_dir)
    if args.checkpoint_path:
        checkpoint_path = Path(args.checkpoint_path)
        data = ckpt.load(checkpoint_path)
    else:
        data, checkpoint_path = ckpt.load_latest()
        if data is None:
            raise RuntimeError(f"No checkpoint found in '{args.checkpoint_dir}'")

    agent = agent_from_spec(data["agent_spec"], device)
    agent.load_state_dict(data["agent_state_dict"])
    loaded_step = int(data.get("step", agent.total_steps))
    if isinstance(agent, DDPGAgent):
        to_env_action = scaled_env_action(args.action_scale)
    else:
        to_env_action = discrete_env_action

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print(
        "evaluation_init "
        f"checkpoint={checkpoint_path} loaded_step={loaded_step} algo={agent.ALGO} "
        f"env={args.env_name} episodes={args.episodes} device={device.type}",
        flush=True,
    )

    env = GymEnvironment(args.host, args.port, args.env_name)
    results: list[EpisodeResult] = []
    try:
        if args.seed is not None:
            env.seed(args.seed)
        trainer = Trainer(env, agent, consecutive_episodes=args.episodes, log_every=0, to_env_action=to_env_action, progress=False)
        _print_header()
        t0 = time.perf_counter()
        episode_iter = range(1, int(args.episodes) + 1)
        if args.progress == "on":
            episode_iter = tqdm(episode_iter, desc="Evaluation episodes", unit="ep", mininterval=1.0, leave=False)
        for episode in episode_iter:
            r = trainer.evaluate(env, render=False, max_steps=args.max_episode_steps)
            r.episode = episode
            results.append(r)
            _print_row(r)
        elapsed = time.perf_counter() - t0
    finally:
        env.disconnect()

    summary = _aggregate(results, elapsed)
    returns_plot = _plot_returns(results, output_dir, args.output_prefix)
    csv_path, json_path = _save_reports(results, summary, output_dir, args.output_prefix, args, checkpoint_path, loaded_step)

    print(
        "evaluation_summary "
        f"return_mean={summary.return_mean:.2f} return_std={summary.return_std:.2f} "
        f"steps_mean={summary.steps_mean:.1f} returns_plot={returns_plot} csv={csv_path} json={json_path}",
        flush=True,
    )

    return {
        "results": results,
        "summary": summary,
        "returns_plot": returns_plot,
        "csv": csv_path,
        "json": json_path,
        "checkpoint_path": checkpoint_path,
        "loaded_step": loaded_step,
    }


def main() -> None:
    args = build_parser().parse_args()
    run_evaluation(args)


if __name__ == "__main__":
    main()
