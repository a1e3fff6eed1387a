"""Gym TCP bridge: serve gymnasium environments to remote agents."""

from .server import GymTCPServer
from .session import EnvSession

__all__ = ["GymTCPServer", "EnvSession"]
