"""Train and test a DDPG agent on MountainCarContinuous through the Gym TCP bridge."""

from __future__ import annotations

import argparse
from typing import Any, Callable

import numpy as np
import torch

from gym_sim.protocol import space_dim

from .checkpoint import CheckpointManager
from .client import GymEnvironment
from .config import TrainingConfig, load_config
from .ddpg import DDPGAgent
from .exploration import OUNoise
from .networks import ActorNetwork, CriticNetwork
from .replay import RandomReplay
from .trainer import Trainer, make_tb_writer, resolve_device


def build_agent(
    args: argparse.Namespace,
    state_dim: int,
    action_dim: int,
    device: torch.device,
) -> DDPGAgent:
    config = TrainingConfig.from_dict(
        {
            "exploration_steps": args.exploration_steps,
            "target_network_sync_interval": args.target_sync_interval,
            "update_interval": args.update_interval,
            "step_size": args.lr,
            "discount": args.discount,
            "rho": args.rho,
        }
    )
    policy_network = ActorNetwork(state_dim, action_dim, hidden_dim=args.hidden_dim, init_std=args.init_std)
    q_network = CriticNetwork(state_dim, action_dim, hidden_dim=args.hidden_dim, init_std=args.init_std)
    noise = OUNoise(action_dim, mu=args.noise_mu, theta=args.noise_theta, sigma=args.noise_sigma, seed=args.seed)
    replay = RandomReplay(
        args.batch_size,
        args.replay_capacity,
        state_dim,
        action_dim=action_dim,
        discrete_actions=False,
        seed=args.seed,
    )
    return DDPGAgent(config, q_network, policy_network, noise, replay, device=device)


def scaled_env_action(scale: float) -> Callable[[np.ndarray], list[float]]:
    def to_env_action(action: np.ndarray) -> list[float]:
        return (np.asarray(action, dtype=np.float64).reshape(-1) * scale).tolist()

    return to_env_action


def _remote_dims(env: GymEnvironment) -> tuple[int, int]:
    obs_info = env.observation_space()
    act_info = env.action_space()
    if act_info.get("name") != "Box":
        raise ValueError(f"DDPG needs a Box action space, got {act_info.get('name')}")
    return space_dim(obs_info), space_dim(act_info)


def run(args: argparse.Namespace) -> dict[str, Any]:
    if args.train_steps < 0:
        raise ValueError("--train-steps must be >= 0")
    if args.consecutive_episodes < 1:
        raise ValueError("--consecutive-episodes must be >= 1")

    if args.seed is not None:
        torch.manual_seed(args.seed)
    device = resolve_device(args.device)

    env = GymEnvironment(args.host, args.port, args.env_name)
    tb_writer = None
    try:
        if args.seed is not None:
            env.seed(args.seed)
        state_dim, action_dim = _remote_dims(env)
        agent = build_agent(args, state_dim, action_dim, device)

        ckpt = CheckpointManager(args.checkpoint_dir)
        resumed_step = ckpt.restore(agent)
        if args.tensorboard_logdir:
            tb_writer = make_tb_writer(args.tensorboard_logdir, args.exp_name)
        trainer = Trainer(
            env,
            agent,
            consecutive_episodes=args.consecutive_episodes,
            log_every=args.log_interval,
            to_env_action=scaled_env_action(args.action_scale),
            tb_writer=tb_writer,
            checkpoint=ckpt,
            save_every=args.save_every,
            progress=args.progress == "on",
        )
        trainer.log(
            "trainer_init ddpg "
            f"env={args.env_name} host={args.host}:{args.port} state_dim={state_dim} action_dim={action_dim} "
            f"train_steps={args.train_steps} exploration_steps={agent.config.exploration_steps} "
            f"update_interval={agent.config.update_interval} rho={args.rho} lr={args.lr} "
            f"noise=(mu={args.noise_mu} theta={args.noise_theta} sigma={args.noise_sigma}) "
            f"action_scale={args.action_scale} device={device.type} checkpoint_dir={args.checkpoint_dir}"
        )
        if resumed_step == 0:
            trainer.log("checkpoint_status no checkpoint found, initialized random agent")
        else:
            trainer.log(f"checkpoint_status resumed from step={resumed_step}")

        trainer.train(args.train_steps)

        env_test = GymEnvironment(args.host, args.port, args.env_name)
        try:
            evaluation = trainer.evaluate(env_test, render=True)
            env_test.close()
            url = env_test.url()
            print(url, flush=True)
        finally:
            env_test.disconnect()

        checkpoint_path = trainer.save_checkpoint()
        return {
            "evaluations": [evaluation],
            "episodes": trainer.episodes,
            "total_steps": agent.total_steps,
            "url": url,
            "checkpoint_path": checkpoint_path,
        }
    finally:
        if tb_writer is not None:
            tb_writer.flush()
            tb_writer.close()
        env.disconnect()


def build_parser(defaults: dict | None = None) -> argparse.ArgumentParser:
    d = defaults or {}
    env_cfg = d.get("env", {})
    train = d.get("training", {})
    agent = d.get("agent", {})
    p = argparse.ArgumentParser(description="Train a DDPG agent on MountainCarContinuous over the Gym TCP bridge")
    p.add_argument("--config", type=str, default=None, help="Path to YAML config (env + training + agent params)")
    p.add_argument("--host", default=env_cfg.get("host", "localhost"))
    p.add_argument("--port", type=int, default=env_cfg.get("port", 4040))
    p.add_argument("--env-name", default=env_cfg.get("name", "MountainCarContinuous-v0"))
    p.add_argument("--action-scale", type=float, default=env_cfg.get("action_scale", 2.0),
                   help="Multiplier applied to the tanh actor output before it is sent")

    p.add_argument("--train-steps", type=int, default=train.get("train_steps", 10000))
    p.add_argument("--exploration-steps", type=int, default=train.get("exploration_steps", 3200))
    p.add_argument("--target-sync-interval", type=int, default=train.get("target_network_sync_interval", 1))
    p.add_argument("--update-interval", type=int, default=train.get("update_interval", 1))
    p.add_argument("--rho", type=float, default=train.get("rho", 0.005))
    p.add_argument("--lr", type=float, default=train.get("step_size", 0.01))
    p.add_argument("--discount", type=float, default=train.get("discount", 0.99))
    p.add_argument("--batch-size", type=int, default=train.get("batch_size", 32))
    p.add_argument("--replay-capacity", type=int, default=train.get("replay_capacity", 10000))
    p.add_argument("--consecutive-episodes", type=int, default=train.get("consecutive_episodes", 25),
                   help="Number of recent episode returns in the moving average")
    p.add_argument("--log-interval", type=int, default=train.get("log_interval", 4))
    p.add_argument("--save-every", type=int, default=train.get("save_every", 0), help="Checkpoint every N episodes (0 = only at the end)")
    p.add_argument("--checkpoint-dir", default=train.get("checkpoint_dir", "checkpoints_ddpg"))
    p.add_argument("--tensorboard-logdir", default=train.get("tensorboard_logdir", "runs/mountain_car_ddpg"))
    p.add_argument("--exp-name", type=str, default=train.get("exp_name"), help="Optional experiment name for TensorBoard grouping")
    p.add_argument("--seed", type=int, default=train.get("seed"))
    p.add_argument("--device", type=str, default=train.get("device", "cpu"), choices=["cpu", "cuda", "mps"])
    p.add_argument("--progress", default=train.get("progress", "on"), choices=["on", "off"])

    p.add_argument("--hidden-dim", type=int, default=agent.get("hidden_dim", 128))
    p.add_argument("--init-std", type=float, default=agent.get("init_std", 0.01))
    p.add_argument("--noise-mu", type=float, default=agent.get("noise_mu", 0.0))
    p.add_argument("--noise-theta", type=float, default=agent.get("noise_theta", 1.0))
    p.add_argument("--noise-sigma", type=float, default=agent.get("noise_sigma", 0.1))
    return p


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", type=str, default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults = load_config(pre_args.config) if pre_args.config else {}
    return build_parser(defaults).parse_args(argv)


def main() -> None:
    run(parse_args())


if __name__ == "__main__":
    main()
