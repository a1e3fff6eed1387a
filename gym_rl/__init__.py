"""DQN/DDPG agents trained against remote Gym environments over TCP."""

from .checkpoint import CheckpointManager
from .client import GymEnvironment, GymEnvironmentError
from .ddpg import DDPGAgent
from .dqn import QLearningAgent
from .trainer import ReturnWindow, Trainer

__all__ = [
    "CheckpointManager",
    "GymEnvironment",
    "GymEnvironmentError",
    "DDPGAgent",
    "QLearningAgent",
    "ReturnWindow",
    "Trainer",
]
