"""TCP client for a remote Gym bridge server."""

from __future__ import annotations

import socket
from typing import Any

import numpy as np

from gym_sim import protocol


class GymEnvironmentError(RuntimeError):
    """Raised when the bridge answers a request with an error."""


class _Monitor:
    def __init__(self, env: "GymEnvironment"):
        self._env = env

    def start(self, directory: str, force: bool = False, resume: bool = False) -> None:
        self._env._call(protocol.monitor_start(directory, force=force, resume=resume))

    def close(self) -> None:
        self._env._call(protocol.monitor_close())


class GymEnvironment:
    """Blocking request/response client; mirrors the last step in attributes."""

    def __init__(self, host: str = "localhost", port: int | str = 4040, env_name: str = "CartPole-v1", timeout: float = 30.0):
        self.host = host
        self.port = int(port)
        self.env_name = env_name
        self.timeout = timeout

        self.observation = np.zeros((0,), dtype=np.float32)
        self.reward = 0.0
        self.done = False
        self.info: dict[str, Any] = {}
        self.monitor = _Monitor(self)

        self._buffer = protocol.MessageBuffer()
        self._pending: list[bytes] = []
        self._sock: socket.socket | None = socket.create_connection((host, self.port), timeout=timeout)
        try:
            self._call(protocol.env_name(env_name))
        except (GymEnvironmentError, OSError):
            self._close_socket()
            raise

    def _recv_message(self) -> bytes:
        while not self._pending:
            chunk = self._sock.recv(65536)
            if not chunk:
                raise ConnectionError(f"Connection to {self.host}:{self.port} closed by server")
            self._pending.extend(self._buffer.feed(chunk))
        return self._pending.pop(0)

    def _call(self, payload: dict[str, Any]) -> dict[str, Any]:
        if self._sock is None:
            raise ConnectionError("Environment connection is closed")
        self._sock.sendall(protocol.encode(payload))
        out = protocol.decode(self._recv_message())
        if "error" in out:
            raise GymEnvironmentError(str(out["error"]))
        return out

    def _set_observation(self, values: Any) -> None:
        self.observation = np.asarray(values, dtype=np.float32).reshape(-1)

    def reset(self) -> np.ndarray:
        out = self._call(protocol.env_reset())
        self._set_observation(out["observation"])
        self.reward = 0.0
        self.done = False
        self.info = {}
        return self.observation

    def step(self, action: Any, render: bool = False) -> np.ndarray:
        out = self._call(protocol.step(action, render=render))
        self._set_observation(out["observation"])
        self.reward = float(out["reward"])
        self.done = bool(out["done"])
        self.info = dict(out.get("info") or {})
        return self.observation

    def render(self) -> None:
        self._call(protocol.env_render())

    def seed(self, seed: int) -> None:
        self._call(protocol.env_seed(seed))

    def action_space(self) -> dict[str, Any]:
        return self._call(protocol.env_action_space())["info"]

    def observation_space(self) -> dict[str, Any]:
        return self._call(protocol.env_observation_space())["info"]

    def url(self) -> str:
        return str(self._call(protocol.url())["url"])

    def _close_socket(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def close(self) -> None:
        """Close the remote environment; the connection stays open for url()."""
        self._call(protocol.env_close())

    def disconnect(self) -> None:
        self._close_socket()

    @property
    def connected(self) -> bool:
        return self._sock is not None
