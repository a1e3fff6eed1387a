"""Agent training configuration and YAML loading."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml


def load_config(path: str | Path) -> dict:
    """Load YAML config. Returns dict with optional 'training', 'agent' and 'run' keys."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@dataclass
class TrainingConfig:
    exploration_steps: int = 1
    update_interval: int = 1
    target_network_sync_interval: int = 100
    step_size: float = 0.01
    discount: float = 0.99
    gradient_limit: float = 40.0
    double_q_learning: bool = False
    rho: float = 0.005

    def __post_init__(self) -> None:
        if self.exploration_steps < 0:
            raise ValueError("exploration_steps must be >= 0")
        if self.update_interval < 1:
            raise ValueError("update_interval must be >= 1")
        if self.target_network_sync_interval < 1:
            raise ValueError("target_network_sync_interval must be >= 1")
        if not 0.0 <= self.discount <= 1.0:
            raise ValueError("discount must be in [0, 1]")
        if not 0.0 < self.rho <= 1.0:
            raise ValueError("rho must be in (0, 1]")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TrainingConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
