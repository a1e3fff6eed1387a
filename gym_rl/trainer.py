"""Episode-based training and evaluation driver for remote Gym environments."""

from __future__ import annotations

from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import numpy as np
import torch
from torch.utils.tensorboard import SummaryWriter
from tqdm import tqdm

from .checkpoint import CheckpointManager
from .types import EpisodeResult, Transition


def resolve_device(device_name: str) -> torch.device:
    name = device_name.lower()
    if name == "cpu":
        return torch.device("cpu")
    if name == "cuda":
        if not torch.cuda.is_available():
            raise ValueError("Requested --device cuda, but CUDA is not available")
        return torch.device("cuda")
    if name == "mps":
        if not (torch.backends.mps.is_available() and torch.backends.mps.is_built()):
            raise ValueError("Requested --device mps, but MPS is not available")
        return torch.device("mps")
    raise ValueError("--device must be one of: cpu, cuda, mps")


def make_tb_writer(logdir: str, exp_name: str | None = None) -> SummaryWriter:
    run_timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    if exp_name:
        tb_logdir = str(Path(logdir) / exp_name / f"run_{run_timestamp}")
    else:
        tb_logdir = str(Path(logdir) / f"run_{run_timestamp}")
    writer = SummaryWriter(log_dir=tb_logdir)
    if exp_name:
        writer.add_text("meta/exp_name", exp_name, 0)
    return writer


class ReturnWindow:
    """Sliding window over the last ``size`` episode returns."""

    def __init__(self, size: int):
        if size < 1:
            raise ValueError("window size must be >= 1")
        self.size = int(size)
        self._returns: deque[float] = deque(maxlen=self.size)

    def push(self, episode_return: float) -> None:
        self._returns.append(float(episode_return))

    def mean(self) -> float:
        if not self._returns:
            return 0.0
        return float(np.mean(self._returns))

    def values(self) -> list[float]:
        return list(self._returns)

    def __len__(self) -> int:
        return len(self._returns)


class Trainer:
    def __init__(
        self,
        env: Any,
        agent: Any,
        consecutive_episodes: int,
        log_every: int,
        to_env_action: Callable[[Any], list[float]],
        tb_writer: SummaryWriter | None = None,
        checkpoint: CheckpointManager | None = None,
        save_every: int = 0,
        progress: bool = True,
    ):
        if log_every < 0:
            raise ValueError("log_every must be >= 0")
        if save_every < 0:
            raise ValueError("save_every must be >= 0")
        self.env = env
        self.agent = agent
        self.to_env_action = to_env_action
        self.returns = ReturnWindow(consecutive_episodes)
        self.log_every = int(log_every)
        self.tb_writer = tb_writer
        self.checkpoint = checkpoint
        self.save_every = int(save_every)
        self.progress = progress

        self.episodes = 0
        self._step_bar: tqdm | None = None

    def log(self, message: str) -> None:
        ts = datetime.now().strftime("%H:%M:%S")
        text = f"[{ts}] {message}"
        if self._step_bar is not None:
            self._step_bar.write(text)
        else:
            print(text, flush=True)

    def _should_learn(self) -> bool:
        if self.agent.deterministic:
            return False
        return self.agent.total_steps >= self.agent.config.exploration_steps

    def _run_training_episode(self) -> tuple[float, int]:
        agent = self.agent
        discount = agent.config.discount
        episode_return = 0.0
        steps = 0
        state = self.env.reset()
        while True:
            action = agent.select_action(state)
            self.env.step(self.to_env_action(action))
            next_state = self.env.observation

            agent.replay.add(Transition(state, action, self.env.reward, next_state, self.env.done, discount))
            episode_return += self.env.reward
            agent.total_steps += 1
            steps += 1
            if self._step_bar is not None:
                self._step_bar.update(1)

            if self._should_learn():
                agent.learn()

            state = next_state
            if self.env.done:
                return episode_return, steps

    def _record_episode(self, episode_return: float, steps: int) -> None:
        self.returns.push(episode_return)
        self.episodes += 1
        average = self.returns.mean()

        if self.tb_writer is not None:
            self.tb_writer.add_scalar("train/episode_return", episode_return, self.episodes)
            self.tb_writer.add_scalar("train/avg_return_window", average, self.episodes)
            self.tb_writer.add_scalar("train/episode_steps", steps, self.episodes)
            self.tb_writer.add_scalar("train/total_steps", self.agent.total_steps, self.episodes)
            epsilon = getattr(getattr(self.agent, "policy", None), "epsilon", None)
            if epsilon is not None:
                self.tb_writer.add_scalar("train/epsilon", epsilon, self.episodes)

        if self.log_every > 0 and self.episodes % self.log_every == 0:
            self.log(
                "episode_stats "
                f"episode={self.episodes} window={len(self.returns)} "
                f"avg_return={average:.2f} episode_return={episode_return:.2f} "
                f"total_steps={self.agent.total_steps}"
            )

        if self._step_bar is not None:
            self._step_bar.set_postfix({"ep": self.episodes, "ret": f"{episode_return:.1f}", "avg": f"{average:.1f}"})

        if self.checkpoint is not None and self.save_every > 0 and self.episodes % self.save_every == 0:
            self.save_checkpoint()

    def save_checkpoint(self):
        if self.checkpoint is None:
            return None
        metadata = {
            "episodes": self.episodes,
            "avg_return": self.returns.mean(),
            "config": self.agent.config.to_dict(),
        }
        path = self.checkpoint.save(self.agent, metadata=metadata)
        self.log(f"checkpoint_saved step={self.agent.total_steps} episode={self.episodes} path={path}")
        return path

    def train(self, num_steps: int) -> list[float]:
        """Run whole episodes until the agent has taken ``num_steps`` steps in total."""
        if num_steps < 0:
            raise ValueError("num_steps must be >= 0")
        self.agent.deterministic = False
        self.log(f"train_start target_steps={num_steps} total_steps={self.agent.total_steps}")
        episode_returns: list[float] = []
        try:
            if self.progress:
                self._step_bar = tqdm(
                    total=max(0, num_steps - self.agent.total_steps),
                    desc="Training steps",
                    unit="step",
                    mininterval=1.0,
                    maxinterval=5.0,
                )
            while self.agent.total_steps < num_steps:
                episode_return, steps = self._run_training_episode()
                episode_returns.append(episode_return)
                self._record_episode(episode_return, steps)
        finally:
            if self.tb_writer is not None:
                self.tb_writer.flush()
            if self._step_bar is not None:
                self._step_bar.close()
                self._step_bar = None
        self.log(
            f"train_done episodes={self.episodes} total_steps={self.agent.total_steps} "
            f"avg_return={self.returns.mean():.2f}"
        )
        return episode_returns

    def evaluate(self, env: Any, render: bool = True, max_steps: int | None = None) -> EpisodeResult:
        """Run one deterministic episode on ``env``."""
        self.agent.deterministic = True
        state = env.reset()
        if render:
            env.render()

        total_reward = 0.0
        total_steps = 0
        while True:
            action = self.agent.select_action(state)
            state = env.step(self.to_env_action(action))
            total_reward += env.reward
            total_steps += 1
            if env.done or (max_steps is not None and total_steps >= max_steps):
                break

        result = EpisodeResult(episode=self.episodes, steps=total_steps, total_return=total_reward)
        self.log(f"evaluation_done total_steps={total_steps} total_reward={total_reward:.2f}")
        if self.tb_writer is not None:
            self.tb_writer.add_scalar("eval/total_reward", total_reward, self.agent.total_steps)
            self.tb_writer.add_scalar("eval/total_steps", total_steps, self.agent.total_steps)
        return result
