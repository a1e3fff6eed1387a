"""TCP server exposing gymnasium environments over the bridge protocol."""

from __future__ import annotations

import socket
import socketserver
import threading
from typing import Any

import gymnasium as gym

from .protocol import MessageBuffer, ProtocolError, decode, encode
from .session import EnvSession


class _ThreadingTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class GymTCPServer:
    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 4040,
        render_mode: str | None = None,
        max_episode_steps: int | None = None,
    ):
        if render_mode not in (None, "human", "rgb_array"):
            raise ValueError("render_mode must be one of: None, human, rgb_array")
        if max_episode_steps is not None and max_episode_steps < 1:
            raise ValueError("max_episode_steps must be >= 1")
        self.render_mode = render_mode
        self.max_episode_steps = max_episode_steps
        self._sessions_lock = threading.Lock()
        self.active_sessions = 0

        handler_cls = self._build_handler()
        self.tcpd = _ThreadingTCPServer((host, port), handler_cls)
        self.host, self.port = self.tcpd.server_address[:2]

    def new_session(self) -> EnvSession:
        return EnvSession(render_mode=self.render_mode, max_episode_steps=self.max_episode_steps)

    @staticmethod
    def dispatch(session: EnvSession, msg: dict[str, Any]) -> dict[str, Any]:
        if "env" in msg:
            body = msg["env"]
            if not isinstance(body, dict):
                raise ProtocolError("'env' must be an object")
            if "name" in body:
                session.make(body["name"])
                return {"env": session.name}
            if "seed" in body:
                session.seed(body["seed"])
                return {}
            action = body.get("action")
            if action == "reset":
                return {"observation": session.reset().reshape(-1).tolist()}
            if action == "render":
                session.render()
                return {}
            if action == "close":
                session.close()
                return {}
            if action == "actionspace":
                return {"info": session.action_space()}
            if action == "observationspace":
                return {"info": session.observation_space()}
            raise ProtocolError(f"Unknown env action: {action!r}")

        if "step" in msg:
            body = msg["step"]
            if not isinstance(body, dict) or "action" not in body:
                raise ProtocolError("Missing required field: step.action")
            return session.step(body["action"], render=bool(body.get("render", 0)))

        if "monitor" in msg:
            body = msg["monitor"]
            if not isinstance(body, dict):
                raise ProtocolError("'monitor' must be an object")
            action = body.get("action")
            if action == "start":
                session.monitor_start(
                    body.get("directory"),
                    force=bool(body.get("force", False)),
                    resume=bool(body.get("resume", False)),
                )
                return {}
            if action == "close":
                session.monitor_close()
                return {}
            raise ProtocolError(f"Unknown monitor action: {action!r}")

        if "url" in msg:
            return {"url": session.url()}

        raise ProtocolError(f"Unknown request keys: {sorted(msg)}")

    def _build_handler(self):
        parent = self

        class Handler(socketserver.BaseRequestHandler):
            def _send(self, payload: dict[str, Any]) -> None:
                self.request.sendall(encode(payload))

            def handle(self):
                session = parent.new_session()
                buffer = MessageBuffer()
                with parent._sessions_lock:
                    parent.active_sessions += 1
                try:
                    while True:
                        try:
                            chunk = self.request.recv(65536)
                        except (ConnectionResetError, socket.timeout):
                            return
                        if not chunk:
                            return
                        try:
                            messages = buffer.feed(chunk)
                        except ProtocolError as exc:
                            self._send({"error": str(exc)})
                            continue
                        for raw in messages:
                            try:
                                reply = parent.dispatch(session, decode(raw))
                            except ProtocolError as exc:
                                reply = {"error": str(exc)}
                            except (ValueError, TypeError, ArithmeticError, AssertionError, gym.error.Error) as exc:
                                reply = {"error": f"{type(exc).__name__}: {exc}"}
                            self._send(reply)
                finally:
                    session.close()
                    with parent._sessions_lock:
                        parent.active_sessions -= 1

        return Handler

    def serve_forever(self):
        self.tcpd.serve_forever()

    def start_background(self, daemon: bool = True) -> threading.Thread:
        thread = threading.Thread(target=self.serve_forever, daemon=daemon)
        thread.start()
        return thread

    def shutdown(self):
        self.tcpd.shutdown()
        self.tcpd.server_close()
