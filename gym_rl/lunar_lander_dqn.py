"""Train and test a simple DQN agent on LunarLander through the Gym TCP bridge."""

from __future__ import annotations

import argparse
from typing import Any

import torch

from gym_sim.protocol import space_dim

from .checkpoint import CheckpointManager
from .client import GymEnvironment
from .config import TrainingConfig, load_config
from .dqn import QLearningAgent
from .exploration import GreedyPolicy
from .networks import QNetwork
from .replay import RandomReplay
from .trainer import Trainer, make_tb_writer, resolve_device


def build_agent(
    args: argparse.Namespace,
    state_dim: int,
    action_size: int,
    device: torch.device,
) -> QLearningAgent:
    config = TrainingConfig.from_dict(
        {
            "exploration_steps": args.exploration_steps,
            "target_network_sync_interval": args.target_sync_interval,
            "step_size": args.lr,
            "discount": args.discount,
            "double_q_learning": args.double_q,
        }
    )
    network = QNetwork(state_dim, action_size, hidden_dim=args.hidden_dim, init_std=args.init_std)
    policy = GreedyPolicy(
        args.initial_epsilon,
        args.anneal_interval,
        args.min_epsilon,
        args.decay_rate,
        seed=args.seed,
    )
    replay = RandomReplay(args.batch_size, args.replay_capacity, state_dim, discrete_actions=True, seed=args.seed)
    return QLearningAgent(config, network, policy, replay, device=device)


def discrete_env_action(action: int) -> list[float]:
    return [float(action)]


def _remote_dims(env: GymEnvironment) -> tuple[int, int]:
    obs_info = env.observation_space()
    act_info = env.action_space()
    if act_info.get("name") != "Discrete":
        raise ValueError(f"DQN needs a Discrete action space, got {act_info.get('name')}")
    return space_dim(obs_info), space_dim(act_info)


def run(args: argparse.Namespace) -> dict[str, Any]:
    if args.train_steps < 0 or args.extra_train_steps < 0:
        raise ValueError("--train-steps and --extra-train-steps must be >= 0")
    if args.consecutive_episodes < 1:
        raise ValueError("--consecutive-episodes must be >= 1")

    if args.seed is not None:
        torch.manual_seed(args.seed)
    device = resolve_device(args.device)

    env = GymEnvironment(args.host, args.port, args.env_name)
    tb_writer = None
    try:
        if args.seed is not None:
            env.seed(args.seed)
        state_dim, action_size = _remote_dims(env)
        agent = build_agent(args, state_dim, action_size, device)

        ckpt = CheckpointManager(args.checkpoint_dir)
        resumed_step = ckpt.restore(agent)
        if args.tensorboard_logdir:
            tb_writer = make_tb_writer(args.tensorboard_logdir, args.exp_name)
        trainer = Trainer(
            env,
            agent,
            consecutive_episodes=args.consecutive_episodes,
            log_every=args.log_interval,
            to_env_action=discrete_env_action,
            tb_writer=tb_writer,
            checkpoint=ckpt,
            save_every=args.save_every,
            progress=args.progress == "on",
        )
        trainer.log(
            "trainer_init dqn "
            f"env={args.env_name} host={args.host}:{args.port} state_dim={state_dim} action_size={action_size} "
            f"train_steps={args.train_steps} extra_train_steps={args.extra_train_steps} "
            f"exploration_steps={agent.config.exploration_steps} lr={args.lr} discount={args.discount} "
            f"batch_size={args.batch_size} replay_capacity={args.replay_capacity} device={device.type} "
            f"checkpoint_dir={args.checkpoint_dir}"
        )
        if resumed_step == 0:
            trainer.log("checkpoint_status no checkpoint found, initialized random agent")
        else:
            trainer.log(f"checkpoint_status resumed from step={resumed_step}")

        trainer.train(args.train_steps)

        evaluations = []
        env_test = GymEnvironment(args.host, args.port, args.env_name)
        try:
            env_test.monitor.start(args.monitor_dir, True, True)
            evaluations.append(trainer.evaluate(env_test, render=True))
            print(env_test.url(), flush=True)

            # A little more training, then the final test.
            trainer.train(args.extra_train_steps)
            env_test.monitor.start(args.monitor_dir, True, True)
            evaluations.append(trainer.evaluate(env_test, render=False))
            env_test.close()
            url = env_test.url()
            print(url, flush=True)
        finally:
            env_test.disconnect()

        checkpoint_path = trainer.save_checkpoint()
        return {
            "evaluations": evaluations,
            "episodes": trainer.episodes,
            "total_steps": agent.total_steps,
            "url": url,
            "checkpoint_path": checkpoint_path,
        }
    finally:
        if tb_writer is not None:
            tb_writer.flush()
            tb_writer.close()
        env.disconnect()


def build_parser(defaults: dict | None = None) -> argparse.ArgumentParser:
    d = defaults or {}
    env_cfg = d.get("env", {})
    train = d.get("training", {})
    agent = d.get("agent", {})
    p = argparse.ArgumentParser(description="Train a DQN agent on LunarLander over the Gym TCP bridge")
    p.add_argument("--config", type=str, default=None, help="Path to YAML config (env + training + agent params)")
    p.add_argument("--host", default=env_cfg.get("host", "localhost"))
    p.add_argument("--port", type=int, default=env_cfg.get("port", 4040))
    p.add_argument("--env-name", default=env_cfg.get("name", "LunarLander-v3"))
    p.add_argument("--monitor-dir", default=env_cfg.get("monitor_dir", "./dummy/"))

    p.add_argument("--train-steps", type=int, default=train.get("train_steps", 10000))
    p.add_argument("--extra-train-steps", type=int, default=train.get("extra_train_steps", 100000),
                   help="Total step target of the second training phase")
    p.add_argument("--exploration-steps", type=int, default=train.get("exploration_steps", 100))
    p.add_argument("--target-sync-interval", type=int, default=train.get("target_network_sync_interval", 100))
    p.add_argument("--lr", type=float, default=train.get("step_size", 0.01))
    p.add_argument("--discount", type=float, default=train.get("discount", 0.99))
    p.add_argument("--double-q", action=argparse.BooleanOptionalAction, default=train.get("double_q_learning", False))
    p.add_argument("--batch-size", type=int, default=train.get("batch_size", 64))
    p.add_argument("--replay-capacity", type=int, default=train.get("replay_capacity", 100000))
    p.add_argument("--consecutive-episodes", type=int, default=train.get("consecutive_episodes", 50),
                   help="Number of recent episode returns in the moving average")
    p.add_argument("--log-interval", type=int, default=train.get("log_interval", 5))
    p.add_argument("--save-every", type=int, default=train.get("save_every", 0), help="Checkpoint every N episodes (0 = only at the end)")
    p.add_argument("--checkpoint-dir", default=train.get("checkpoint_dir", "checkpoints_dqn"))
    p.add_argument("--tensorboard-logdir", default=train.get("tensorboard_logdir", "runs/lunar_lander_dqn"))
    p.add_argument("--exp-name", type=str, default=train.get("exp_name"), help="Optional experiment name for TensorBoard grouping")
    p.add_argument("--seed", type=int, default=train.get("seed"))
    p.add_argument("--device", type=str, default=train.get("device", "cpu"), choices=["cpu", "cuda", "mps"])
    p.add_argument("--progress", default=train.get("progress", "on"), choices=["on", "off"])

    p.add_argument("--hidden-dim", type=int, default=agent.get("hidden_dim", 128))
    p.add_argument("--init-std", type=float, default=agent.get("init_std", 1.0))
    p.add_argument("--initial-epsilon", type=float, default=agent.get("initial_epsilon", 1.0))
    p.add_argument("--anneal-interval", type=int, default=agent.get("anneal_interval", 2000))
    p.add_argument("--min-epsilon", type=float, default=agent.get("min_epsilon", 0.1))
    p.add_argument("--decay-rate", type=float, default=agent.get("decay_rate", 0.99))
    return p


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    # Pre-parse to get --config
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", type=str, default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults = load_config(pre_args.config) if pre_args.config else {}
    return build_parser(defaults).parse_args(argv)


def main() -> None:
    run(parse_args())


if __name__ == "__main__":
    main()
