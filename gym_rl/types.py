"""Shared dataclasses for the agent pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass
class Transition:
    state: np.ndarray
    action: Any  # int index (DQN) or float vector (DDPG)
    reward: float
    next_state: np.ndarray
    done: bool
    discount: float


@dataclass
class EpisodeResult:
    episode: int
    steps: int
    total_return: float
