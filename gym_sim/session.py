"""Per-connection gymnasium environment session."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import gymnasium as gym
import numpy as np

from .protocol import ProtocolError, describe_space

MONITOR_FILE = "episodes.jsonl"


class EnvSession:
    """Wraps one gymnasium environment and the bookkeeping the bridge exposes."""

    def __init__(self, render_mode: str | None = None, max_episode_steps: int | None = None):
        self.render_mode = render_mode
        self.max_episode_steps = max_episode_steps
        self.env: gym.Env | None = None
        self.name: str | None = None
        self._pending_seed: int | None = None

        self.episode = 0
        self.episode_return = 0.0
        self.episode_steps = 0

        self.monitor_dir: Path | None = None
        self.monitor_active = False

    def _require_env(self) -> gym.Env:
        if self.env is None:
            raise ProtocolError("No environment selected; send {'env': {'name': ...}} first")
        return self.env

    def make(self, name: str) -> None:
        if not isinstance(name, str) or not name:
            raise ProtocolError("Environment name must be a non-empty string")
        kwargs: dict[str, Any] = {}
        if self.render_mode is not None:
            kwargs["render_mode"] = self.render_mode
        if self.max_episode_steps is not None:
            kwargs["max_episode_steps"] = int(self.max_episode_steps)
        try:
            env = gym.make(name, **kwargs)
        except gym.error.Error as exc:
            raise ProtocolError(f"Cannot create environment '{name}': {exc}") from exc
        self.close()
        self.env = env
        self.name = name

    def seed(self, seed: Any) -> None:
        if not isinstance(seed, int):
            raise ProtocolError("seed must be an integer")
        self._pending_seed = seed

    def reset(self) -> np.ndarray:
        env = self._require_env()
        try:
            obs, _ = env.reset(seed=self._pending_seed)
        except (gym.error.Error, AssertionError) as exc:
            raise ProtocolError(f"reset failed: {exc}") from exc
        self._pending_seed = None
        self.episode_return = 0.0
        self.episode_steps = 0
        return np.asarray(obs, dtype=np.float64)

    def _convert_action(self, action: Any) -> Any:
        env = self._require_env()
        if not isinstance(action, list) or not action:
            raise ProtocolError("step action must be a non-empty list of numbers")
        try:
            values = np.asarray(action, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise ProtocolError(f"step action must be numeric: {exc}") from exc
        if not np.all(np.isfinite(values)):
            raise ProtocolError("step action must contain finite numbers")

        space = env.action_space
        if isinstance(space, gym.spaces.Discrete):
            a = int(round(float(values[0])))
            if not space.contains(a):
                raise ProtocolError(f"action {a} out of range 0..{int(space.n) - 1}")
            return a
        if isinstance(space, gym.spaces.Box):
            if values.size != int(np.prod(space.shape)):
                raise ProtocolError(f"action must have {int(np.prod(space.shape))} values, got {values.size}")
            return values.reshape(space.shape).astype(space.dtype)
        raise ProtocolError(f"Unsupported action space: {type(space).__name__}")

    def step(self, action: Any, render: bool = False) -> dict[str, Any]:
        env = self._require_env()
        a = self._convert_action(action)
        try:
            obs, reward, terminated, truncated, _ = env.step(a)
        except (gym.error.Error, AssertionError) as exc:
            raise ProtocolError(f"step failed: {exc}") from exc
        if render:
            self.render()
        done = bool(terminated or truncated)
        self.episode_return += float(reward)
        self.episode_steps += 1
        if done:
            self._finish_episode()
        return {
            "observation": np.asarray(obs, dtype=np.float64).reshape(-1).tolist(),
            "reward": float(reward),
            "done": done,
            "info": {"terminated": bool(terminated), "truncated": bool(truncated)},
        }

    def _finish_episode(self) -> None:
        self.episode += 1
        if self.monitor_active and self.monitor_dir is not None:
            record = {
                "episode": self.episode,
                "return": self.episode_return,
                "length": self.episode_steps,
                "env": self.name,
            }
            with (self.monitor_dir / MONITOR_FILE).open("a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")

    def render(self) -> None:
        env = self._require_env()
        if self.render_mode is not None:
            env.render()

    def action_space(self) -> dict[str, Any]:
        return describe_space(self._require_env().action_space)

    def observation_space(self) -> dict[str, Any]:
        return describe_space(self._require_env().observation_space)

    def monitor_start(self, directory: Any, force: bool = False, resume: bool = False) -> None:
        if not isinstance(directory, str) or not directory:
            raise ProtocolError("monitor directory must be a non-empty string")
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        log_path = path / MONITOR_FILE
        if log_path.exists():
            if force:
                log_path.unlink()
            elif not resume:
                raise ProtocolError(f"{log_path} already exists; pass force or resume")
        self.monitor_dir = path
        self.monitor_active = True

    def monitor_close(self) -> None:
        self.monitor_active = False

    def url(self) -> str:
        if self.monitor_dir is None:
            return ""
        return self.monitor_dir.resolve().as_uri()

    def close(self) -> None:
        self.monitor_active = False
        if self.env is not None:
            self.env.close()
            self.env = None
