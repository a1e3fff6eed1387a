"""Wire codec for the Gym TCP bridge: JSON messages framed by a blank line."""

from __future__ import annotations

import json
from typing import Any

import numpy as np

TERMINATOR = b"\r\n\r\n"
MAX_MESSAGE_BYTES = 16 * 1024 * 1024


class ProtocolError(ValueError):
    """Raised when a message cannot be decoded or is not a valid request."""


def encode(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8") + TERMINATOR


def decode(data: bytes) -> dict[str, Any]:
    try:
        obj = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"Invalid JSON message: {exc}") from exc
    if not isinstance(obj, dict):
        raise ProtocolError("Message must be a JSON object")
    return obj


class MessageBuffer:
    """Accumulates raw socket bytes and yields complete framed messages."""

    def __init__(self, max_bytes: int = MAX_MESSAGE_BYTES):
        self._buf = bytearray()
        self.max_bytes = max_bytes

    def feed(self, chunk: bytes) -> list[bytes]:
        self._buf.extend(chunk)
        messages: list[bytes] = []
        while True:
            idx = self._buf.find(TERMINATOR)
            if idx < 0:
                break
            messages.append(bytes(self._buf[:idx]))
            del self._buf[: idx + len(TERMINATOR)]
        if len(self._buf) > self.max_bytes:
            self._buf.clear()
            raise ProtocolError(f"Message exceeds {self.max_bytes} bytes without terminator")
        return messages

    def __len__(self) -> int:
        return len(self._buf)


# Request builders (client side).


def env_name(name: str) -> dict[str, Any]:
    return {"env": {"name": name}}


def env_reset() -> dict[str, Any]:
    return {"env": {"action": "reset"}}


def env_render() -> dict[str, Any]:
    return {"env": {"action": "render"}}


def env_close() -> dict[str, Any]:
    return {"env": {"action": "close"}}


def env_seed(seed: int) -> dict[str, Any]:
    return {"env": {"seed": int(seed)}}


def env_action_space() -> dict[str, Any]:
    return {"env": {"action": "actionspace"}}


def env_observation_space() -> dict[str, Any]:
    return {"env": {"action": "observationspace"}}


def step(action: Any, render: bool = False) -> dict[str, Any]:
    values = np.asarray(action, dtype=np.float64).reshape(-1).tolist()
    return {"step": {"action": values, "render": 1 if render else 0}}


def monitor_start(directory: str, force: bool = False, resume: bool = False) -> dict[str, Any]:
    return {"monitor": {"action": "start", "directory": str(directory), "force": bool(force), "resume": bool(resume)}}


def monitor_close() -> dict[str, Any]:
    return {"monitor": {"action": "close"}}


def url() -> dict[str, Any]:
    return {"url": {}}


def describe_space(space: Any) -> dict[str, Any]:
    """JSON description of a gymnasium Discrete or Box space."""
    name = type(space).__name__
    if name == "Discrete":
        return {"name": "Discrete", "n": int(space.n)}
    if name == "Box":
        return {
            "name": "Box",
            "shape": [int(d) for d in space.shape],
            "low": np.asarray(space.low, dtype=np.float64).reshape(-1).tolist(),
            "high": np.asarray(space.high, dtype=np.float64).reshape(-1).tolist(),
        }
    raise ProtocolError(f"Unsupported space type: {name}")


def space_dim(info: dict[str, Any]) -> int:
    """Flat size of a described space: n for Discrete, prod(shape) for Box."""
    if info.get("name") == "Discrete":
        return int(info["n"])
    if info.get("name") == "Box":
        return int(np.prod(info["shape"])) if info["shape"] else 1
    raise ProtocolError(f"Unsupported space description: {info!r}")
