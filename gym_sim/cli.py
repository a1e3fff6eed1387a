"""CLI entrypoint for the Gym TCP bridge."""

from __future__ import annotations

import argparse

from .server import GymTCPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve gymnasium environments over TCP")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=4040)
    parser.add_argument("--render-mode", default=None, choices=["human", "rgb_array"])
    parser.add_argument(
        "--max-episode-steps",
        type=int,
        default=None,
        help="Override the registered episode step limit for every environment",
    )
    return parser


def main():
    args = build_parser().parse_args()
    server = GymTCPServer(
        host=args.host,
        port=args.port,
        render_mode=args.render_mode,
        max_episode_steps=args.max_episode_steps,
    )
    print(f"Gym TCP bridge listening on {server.host}:{server.port}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()


if __name__ == "__main__":
    main()
