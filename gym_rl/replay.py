"""Bounded FIFO replay buffer with uniform random sampling."""

from __future__ import annotations

from typing import Any

import numpy as np

from .types import Transition


class RandomReplay:
    """Ring buffer of transitions; oldest entries are overwritten once full.

    Sampling draws ``batch_size`` indices uniformly with replacement from the
    filled region, so it works as soon as one transition is stored.
    """

    def __init__(
        self,
        batch_size: int,
        capacity: int,
        state_dim: int,
        action_dim: int = 1,
        discrete_actions: bool = True,
        seed: int | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.batch_size = int(batch_size)
        self.capacity = int(capacity)
        self.state_dim = int(state_dim)
        self.action_dim = int(action_dim)
        self.discrete_actions = bool(discrete_actions)
        self.rng = np.random.default_rng(seed)

        self.states = np.zeros((self.capacity, self.state_dim), dtype=np.float32)
        self.next_states = np.zeros((self.capacity, self.state_dim), dtype=np.float32)
        if self.discrete_actions:
            self.actions = np.zeros((self.capacity,), dtype=np.int64)
        else:
            self.actions = np.zeros((self.capacity, self.action_dim), dtype=np.float32)
        self.rewards = np.zeros((self.capacity,), dtype=np.float32)
        self.dones = np.zeros((self.capacity,), dtype=np.float32)
        self.discounts = np.zeros((self.capacity,), dtype=np.float32)

        self.position = 0
        self.size = 0

    def store(
        self,
        state: np.ndarray,
        action: Any,
        reward: float,
        next_state: np.ndarray,
        done: bool,
        discount: float,
    ) -> None:
        i = self.position
        self.states[i] = np.asarray(state, dtype=np.float32).reshape(self.state_dim)
        self.next_states[i] = np.asarray(next_state, dtype=np.float32).reshape(self.state_dim)
        if self.discrete_actions:
            self.actions[i] = int(action)
        else:
            self.actions[i] = np.asarray(action, dtype=np.float32).reshape(self.action_dim)
        self.rewards[i] = float(reward)
        self.dones[i] = 1.0 if done else 0.0
        self.discounts[i] = float(discount)

        self.position = (self.position + 1) % self.capacity
        self.size = min(self.size + 1, self.capacity)

    def add(self, t: Transition) -> None:
        self.store(t.state, t.action, t.reward, t.next_state, t.done, t.discount)

    def sample(self, batch_size: int | None = None) -> dict[str, np.ndarray]:
        if self.size == 0:
            raise RuntimeError("Cannot sample from an empty replay buffer")
        n = self.batch_size if batch_size is None else int(batch_size)
        idx = self.rng.integers(0, self.size, size=n)
        return {
            "states": self.states[idx],
            "actions": self.actions[idx],
            "rewards": self.rewards[idx],
            "next_states": self.next_states[idx],
            "dones": self.dones[idx],
            "discounts": self.discounts[idx],
        }

    def __len__(self) -> int:
        return self.size

    def clear(self) -> None:
        self.position = 0
        self.size = 0
