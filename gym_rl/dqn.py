"""DQN agent: Q-learning over a replay buffer with a periodically synced target network."""

from __future__ import annotations

import copy
from typing import Any

import numpy as np
import torch
import torch.nn.functional as F

from .config import TrainingConfig
from .exploration import GreedyPolicy
from .networks import QNetwork
from .replay import RandomReplay


class QLearningAgent:
    ALGO = "dqn"

    def __init__(
        self,
        config: TrainingConfig,
        network: QNetwork,
        policy: GreedyPolicy,
        replay: RandomReplay,
        device: torch.device | None = None,
    ):
        if not replay.discrete_actions:
            raise ValueError("QLearningAgent requires a replay buffer with discrete actions")
        if replay.state_dim != network.state_dim:
            raise ValueError(f"replay state_dim={replay.state_dim} does not match network state_dim={network.state_dim}")
        self.config = config
        self.policy = policy
        self.replay = replay
        self.device = device or torch.device("cpu")

        self.learning_network = network.to(self.device)
        self.target_network = copy.deepcopy(self.learning_network)
        self.target_network.requires_grad_(False)
        self.optimizer = torch.optim.Adam(self.learning_network.parameters(), lr=config.step_size)

        self.total_steps = 0
        self.deterministic = False
        self.last_loss: float | None = None

    @property
    def state_dim(self) -> int:
        return self.learning_network.state_dim

    @property
    def action_dim(self) -> int:
        return self.learning_network.action_dim

    def action_values(self, state: np.ndarray) -> np.ndarray:
        x = torch.as_tensor(np.asarray(state, dtype=np.float32).reshape(1, -1), device=self.device)
        with torch.no_grad():
            return self.learning_network(x).squeeze(0).cpu().numpy()

    def select_action(self, state: np.ndarray) -> int:
        return self.policy.sample(self.action_values(state), deterministic=self.deterministic)

    def train_agent(self) -> float:
        batch = self.replay.sample()
        states = torch.as_tensor(batch["states"], device=self.device)
        actions = torch.as_tensor(batch["actions"], device=self.device)
        rewards = torch.as_tensor(batch["rewards"], device=self.device)
        next_states = torch.as_tensor(batch["next_states"], device=self.device)
        dones = torch.as_tensor(batch["dones"], device=self.device)
        discounts = torch.as_tensor(batch["discounts"], device=self.device)

        with torch.no_grad():
            next_target_values = self.target_network(next_states)
            if self.config.double_q_learning:
                best_actions = self.learning_network(next_states).argmax(dim=1)
            else:
                best_actions = next_target_values.argmax(dim=1)
            next_values = next_target_values.gather(1, best_actions.unsqueeze(1)).squeeze(1)
            targets = rewards + discounts * (1.0 - dones) * next_values

        q_values = self.learning_network(states).gather(1, actions.unsqueeze(1)).squeeze(1)
        loss = F.mse_loss(q_values, targets)

        self.optimizer.zero_grad()
        loss.backward()
        torch.nn.utils.clip_grad_value_(self.learning_network.parameters(), self.config.gradient_limit)
        self.optimizer.step()

        if self.total_steps % self.config.target_network_sync_interval == 0:
            self.sync_target()
        if self.total_steps > self.config.exploration_steps:
            self.policy.anneal()

        self.last_loss = float(loss.detach().item())
        return self.last_loss

    def learn(self) -> None:
        self.train_agent()

    def sync_target(self) -> None:
        self.target_network.load_state_dict(self.learning_network.state_dict())

    def agent_spec(self) -> dict[str, Any]:
        return {
            "algo": self.ALGO,
            "state_dim": self.state_dim,
            "action_dim": self.action_dim,
            "hidden_dim": self.learning_network.hidden_dim,
        }

    def state_dict(self) -> dict[str, Any]:
        return {
            "learning_network": self.learning_network.state_dict(),
            "target_network": self.target_network.state_dict(),
            "optimizer": self.optimizer.state_dict(),
            "total_steps": self.total_steps,
            "epsilon": self.policy.epsilon,
        }

    def load_state_dict(self, state: dict[str, Any]) -> None:
        self.learning_network.load_state_dict(state["learning_network"])
        self.target_network.load_state_dict(state["target_network"])
        if "optimizer" in state:
            self.optimizer.load_state_dict(state["optimizer"])
        self.total_steps = int(state.get("total_steps", 0))
        if "epsilon" in state:
            self.policy.epsilon = float(state["epsilon"])
