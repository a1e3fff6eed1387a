"""Checkpoint management for agent weights, optimizers and exploration state."""

from __future__ import annotations

import pickle
import re
from pathlib import Path
from typing import Any

import torch


class CheckpointManager:
    FILE_PATTERN = re.compile(r"agent_step(\d+)\.pt$")

    def __init__(self, checkpoint_dir: str = "checkpoints"):
        self.dir = Path(checkpoint_dir)
        self.dir.mkdir(parents=True, exist_ok=True)

    def _path_for_step(self, step: int) -> Path:
        return self.dir / f"agent_step{step:09d}.pt"

    def save(self, agent: Any, metadata: dict[str, Any] | None = None) -> Path:
        step = int(agent.total_steps)
        path = self._path_for_step(step)
        payload: dict[str, Any] = {
            "step": step,
            "agent_spec": agent.agent_spec(),
            "agent_state_dict": agent.state_dict(),
            "metadata": metadata or {},
        }
        torch.save(payload, path)
        return path

    def paths(self) -> list[tuple[int, Path]]:
        """All checkpoint files as (step, path), highest step first."""
        found: list[tuple[int, Path]] = []
        for p in self.dir.glob("agent_step*.pt"):
            m = self.FILE_PATTERN.search(p.name)
            if m:
                found.append((int(m.group(1)), p))
        return sorted(found, key=lambda item: item[0], reverse=True)

    def latest_path(self) -> Path | None:
        found = self.paths()
        return found[0][1] if found else None

    def load(self, path: str | Path) -> dict[str, Any]:
        path = Path(path)
        try:
            data = torch.load(path, map_location="cpu", weights_only=False)
        except (pickle.UnpicklingError, EOFError, RuntimeError) as exc:
            raise ValueError(f"Checkpoint {path} is unreadable: {exc}") from exc
        if not isinstance(data, dict) or "agent_state_dict" not in data or "agent_spec" not in data:
            raise ValueError(f"Checkpoint {path} is not a valid agent checkpoint")
        return data

    def load_latest(self) -> tuple[dict[str, Any] | None, Path | None]:
        """Newest loadable checkpoint; unreadable or foreign files are skipped."""
        for _, path in self.paths():
            try:
                return self.load(path), path
            except (ValueError, RuntimeError, OSError):
                continue
        return None, None

    def restore(self, agent: Any, path: str | Path | None = None) -> int:
        """Load a checkpoint into ``agent``; returns the restored step (0 if none)."""
        if path is None:
            data, path = self.load_latest()
            if data is None:
                return 0
        else:
            data = self.load(path)
        spec = data["agent_spec"]
        expected = agent.agent_spec()
        if spec != expected:
            raise ValueError(f"Checkpoint {path} was saved for {spec}, agent is {expected}")
        agent.load_state_dict(data["agent_state_dict"])
        return int(data.get("step", agent.total_steps))
