"""DDPG agent: deterministic actor, Q critic, soft-updated target copies."""

from __future__ import annotations

import copy
from typing import Any

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F

from .config import TrainingConfig
from .exploration import OUNoise
from .networks import ActorNetwork, CriticNetwork
from .replay import RandomReplay


def soft_update_(target: nn.Module, source: nn.Module, rho: float) -> None:
    """target = (1 - rho) * target + rho * source, in place."""
    with torch.no_grad():
        for t, s in zip(target.parameters(), source.parameters()):
            t.mul_(1.0 - rho).add_(s, alpha=rho)


class DDPGAgent:
    ALGO = "ddpg"

    def __init__(
        self,
        config: TrainingConfig,
        q_network: CriticNetwork,
        policy_network: ActorNetwork,
        noise: OUNoise,
        replay: RandomReplay,
        device: torch.device | None = None,
    ):
        if replay.discrete_actions:
            raise ValueError("DDPGAgent requires a replay buffer with continuous actions")
        if q_network.state_dim != policy_network.state_dim or q_network.action_dim != policy_network.action_dim:
            raise ValueError("Critic and actor dimensions differ")
        if noise.size != policy_network.action_dim:
            raise ValueError(f"noise size={noise.size} does not match action_dim={policy_network.action_dim}")
        self.config = config
        self.noise = noise
        self.replay = replay
        self.device = device or torch.device("cpu")

        self.q_network = q_network.to(self.device)
        self.policy_network = policy_network.to(self.device)
        self.target_q_network = copy.deepcopy(self.q_network).requires_grad_(False)
        self.target_policy_network = copy.deepcopy(self.policy_network).requires_grad_(False)
        self.q_optimizer = torch.optim.Adam(self.q_network.parameters(), lr=config.step_size)
        self.policy_optimizer = torch.optim.Adam(self.policy_network.parameters(), lr=config.step_size)

        self.total_steps = 0
        self.deterministic = False
        self.last_q_loss: float | None = None
        self.last_policy_loss: float | None = None

    @property
    def state_dim(self) -> int:
        return self.policy_network.state_dim

    @property
    def action_dim(self) -> int:
        return self.policy_network.action_dim

    def select_action(self, state: np.ndarray) -> np.ndarray:
        x = torch.as_tensor(np.asarray(state, dtype=np.float32).reshape(1, -1), device=self.device)
        with torch.no_grad():
            action = self.policy_network(x).squeeze(0).cpu().numpy().astype(np.float64)
        if not self.deterministic:
            action = action + self.noise.sample()
        return action

    def update(self) -> tuple[float, float]:
        batch = self.replay.sample()
        states = torch.as_tensor(batch["states"], device=self.device)
        actions = torch.as_tensor(batch["actions"], device=self.device)
        rewards = torch.as_tensor(batch["rewards"], device=self.device)
        next_states = torch.as_tensor(batch["next_states"], device=self.device)
        dones = torch.as_tensor(batch["dones"], device=self.device)
        discounts = torch.as_tensor(batch["discounts"], device=self.device)

        with torch.no_grad():
            next_actions = self.target_policy_network(next_states)
            next_q = self.target_q_network(next_states, next_actions)
            targets = rewards + discounts * (1.0 - dones) * next_q

        q_loss = F.mse_loss(self.q_network(states, actions), targets)
        self.q_optimizer.zero_grad()
        q_loss.backward()
        torch.nn.utils.clip_grad_value_(self.q_network.parameters(), self.config.gradient_limit)
        self.q_optimizer.step()

        policy_loss = -self.q_network(states, self.policy_network(states)).mean()
        self.policy_optimizer.zero_grad()
        policy_loss.backward()
        torch.nn.utils.clip_grad_value_(self.policy_network.parameters(), self.config.gradient_limit)
        self.policy_optimizer.step()
        # The actor step leaves gradients on the critic; they are cleared before its next update.

        if self.total_steps % self.config.target_network_sync_interval == 0:
            soft_update_(self.target_q_network, self.q_network, self.config.rho)
            soft_update_(self.target_policy_network, self.policy_network, self.config.rho)

        self.last_q_loss = float(q_loss.detach().item())
        self.last_policy_loss = float(policy_loss.detach().item())
        return self.last_q_loss, self.last_policy_loss

    def learn(self) -> None:
        for _ in range(self.config.update_interval):
            self.update()

    def agent_spec(self) -> dict[str, Any]:
        return {
            "algo": self.ALGO,
            "state_dim": self.state_dim,
            "action_dim": self.action_dim,
            "hidden_dim": self.policy_network.hidden_dim,
        }

    def state_dict(self) -> dict[str, Any]:
        return {
            "q_network": self.q_network.state_dict(),
            "policy_network": self.policy_network.state_dict(),
            "target_q_network": self.target_q_network.state_dict(),
            "target_policy_network": self.target_policy_network.state_dict(),
            "q_optimizer": self.q_optimizer.state_dict(),
            "policy_optimizer": self.policy_optimizer.state_dict(),
            "total_steps": self.total_steps,
            "noise_state": self.noise.state.tolist(),
        }

    def load_state_dict(self, state: dict[str, Any]) -> None:
        self.q_network.load_state_dict(state["q_network"])
        self.policy_network.load_state_dict(state["policy_network"])
        self.target_q_network.load_state_dict(state["target_q_network"])
        self.target_policy_network.load_state_dict(state["target_policy_network"])
        if "q_optimizer" in state:
            self.q_optimizer.load_state_dict(state["q_optimizer"])
        if "policy_optimizer" in state:
            self.policy_optimizer.load_state_dict(state["policy_optimizer"])
        self.total_steps = int(state.get("total_steps", 0))
        if "noise_state" in state:
            self.noise.state = np.asarray(state["noise_state"], dtype=np.float64)
