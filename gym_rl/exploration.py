"""Exploration strategies: epsilon-greedy for DQN, OU noise for DDPG."""

from __future__ import annotations

import numpy as np


class GreedyPolicy:
    """Epsilon-greedy action selection with a linear anneal.

    Each ``anneal()`` lowers epsilon by ``(initial - min) * decay_rate / anneal_interval``,
    stopping at ``min_epsilon``.
    """

    def __init__(
        self,
        initial_epsilon: float,
        anneal_interval: int,
        min_epsilon: float,
        decay_rate: float = 1.0,
        seed: int | None = None,
    ):
        if not 0.0 <= min_epsilon <= initial_epsilon <= 1.0:
            raise ValueError("Require 0 <= min_epsilon <= initial_epsilon <= 1")
        if anneal_interval < 1:
            raise ValueError("anneal_interval must be >= 1")
        if decay_rate <= 0.0:
            raise ValueError("decay_rate must be > 0")
        self.initial_epsilon = float(initial_epsilon)
        self.min_epsilon = float(min_epsilon)
        self.anneal_interval = int(anneal_interval)
        self.decay_rate = float(decay_rate)
        self.delta = (self.initial_epsilon - self.min_epsilon) * self.decay_rate / self.anneal_interval
        self.epsilon = self.initial_epsilon
        self.rng = np.random.default_rng(seed)

    def sample(self, action_values: np.ndarray, deterministic: bool = False) -> int:
        values = np.asarray(action_values).reshape(-1)
        if not deterministic and self.rng.random() < self.epsilon:
            return int(self.rng.integers(0, values.size))
        return int(np.argmax(values))

    def anneal(self) -> None:
        self.epsilon = max(self.min_epsilon, self.epsilon - self.delta)


class OUNoise:
    """Ornstein-Uhlenbeck process: x += theta * (mu - x) + sigma * N(0, 1)."""

    def __init__(self, size: int, mu: float = 0.0, theta: float = 0.15, sigma: float = 0.2, seed: int | None = None):
        if size < 1:
            raise ValueError("size must be >= 1")
        self.size = int(size)
        self.mu = float(mu)
        self.theta = float(theta)
        self.sigma = float(sigma)
        self.rng = np.random.default_rng(seed)
        self.state = np.full((self.size,), self.mu, dtype=np.float64)

    def reset(self) -> None:
        self.state = np.full((self.size,), self.mu, dtype=np.float64)

    def sample(self) -> np.ndarray:
        dx = self.theta * (self.mu - self.state) + self.sigma * self.rng.standard_normal(self.size)
        self.state = self.state + dx
        return self.state.copy()
