"""Feed-forward torch networks for the DQN and DDPG agents."""

from __future__ import annotations

import torch
import torch.nn as nn

HIDDEN_DIM = 128


def gaussian_init_(module: nn.Module, mean: float = 0.0, std: float = 1.0) -> nn.Module:
    """Draw every parameter (weights and biases) from N(mean, std)."""
    with torch.no_grad():
        for p in module.parameters():
            p.normal_(mean, std)
    return module


class QNetwork(nn.Module):
    """state(S) -> hidden -> ReLU -> Q-values(A)."""

    def __init__(self, state_dim: int, action_dim: int, hidden_dim: int = HIDDEN_DIM, init_std: float = 1.0):
        super().__init__()
        self.state_dim = int(state_dim)
        self.action_dim = int(action_dim)
        self.hidden_dim = int(hidden_dim)
        self.net = nn.Sequential(
            nn.Linear(self.state_dim, self.hidden_dim),
            nn.ReLU(),
            nn.Linear(self.hidden_dim, self.action_dim),
        )
        gaussian_init_(self, 0.0, init_std)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.net(x)


class ActorNetwork(nn.Module):
    """state(S) -> hidden -> ReLU -> hidden -> ReLU -> action(A) -> Tanh."""

    def __init__(self, state_dim: int, action_dim: int, hidden_dim: int = HIDDEN_DIM, init_std: float = 0.01):
        super().__init__()
        self.state_dim = int(state_dim)
        self.action_dim = int(action_dim)
        self.hidden_dim = int(hidden_dim)
        self.net = nn.Sequential(
            nn.Linear(self.state_dim, self.hidden_dim),
            nn.ReLU(),
            nn.Linear(self.hidden_dim, self.hidden_dim),
            nn.ReLU(),
            nn.Linear(self.hidden_dim, self.action_dim),
            nn.Tanh(),
        )
        gaussian_init_(self, 0.0, init_std)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.net(x)


class CriticNetwork(nn.Module):
    """[state(S), action(A)] -> hidden -> ReLU -> hidden -> ReLU -> Q(1)."""

    def __init__(self, state_dim: int, action_dim: int, hidden_dim: int = HIDDEN_DIM, init_std: float = 0.01):
        super().__init__()
        self.state_dim = int(state_dim)
        self.action_dim = int(action_dim)
        self.hidden_dim = int(hidden_dim)
        self.net = nn.Sequential(
            nn.Linear(self.state_dim + self.action_dim, self.hidden_dim),
            nn.ReLU(),
            nn.Linear(self.hidden_dim, self.hidden_dim),
            nn.ReLU(),
            nn.Linear(self.hidden_dim, 1),
        )
        gaussian_init_(self, 0.0, init_std)

    def forward(self, state: torch.Tensor, action: torch.Tensor) -> torch.Tensor:
        return self.net(torch.cat([state, action], dim=-1)).squeeze(-1)
