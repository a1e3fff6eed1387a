import tempfile
import unittest
from pathlib import Path

import torch
import yaml

from gym_rl import lunar_lander_dqn, mountain_car_ddpg
from gym_rl.checkpoint import CheckpointManager
from gym_rl.config import TrainingConfig
from gym_sim.server import GymTCPServer


class TestProgramsOverBridge(unittest.TestCase):
    def setUp(self):
        self.server = GymTCPServer(host="127.0.0.1", port=0, max_episode_steps=25)
        self.thread = self.server.start_background()
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)

    def tearDown(self):
        self.server.shutdown()
        self.thread.join(timeout=1.0)
        self.tmp.cleanup()

    def _dqn_args(self, *extra):
        return lunar_lander_dqn.parse_args(
            [
                "--host", self.server.host,
                "--port", str(self.server.port),
                "--env-name", "CartPole-v1",
                "--monitor-dir", str(self.root / "monitor"),
                "--train-steps", "40",
                "--extra-train-steps", "80",
                "--exploration-steps", "10",
                "--batch-size", "8",
                "--replay-capacity", "200",
                "--hidden-dim", "16",
                "--anneal-interval", "50",
                "--checkpoint-dir", str(self.root / "ckpt_dqn"),
                "--tensorboard-logdir", str(self.root / "runs"),
                "--seed", "0",
                "--progress", "off",
                *extra,
            ]
        )

    def test_dqn_program_trains_tests_and_checkpoints(self):
        out = lunar_lander_dqn.run(self._dqn_args())
        self.assertEqual(len(out["evaluations"]), 2)
        self.assertGreaterEqual(out["total_steps"], 80)
        self.assertGreater(out["episodes"], 0)
        self.assertEqual(out["url"], (self.root / "monitor").resolve().as_uri())
        self.assertTrue(Path(out["checkpoint_path"]).exists())
        self.assertTrue((self.root / "monitor" / "episodes.jsonl").exists())
        self.assertTrue(any((self.root / "runs").iterdir()))

    def test_dqn_program_resumes_from_checkpoint(self):
        first = lunar_lander_dqn.run(self._dqn_args())
        second = lunar_lander_dqn.run(self._dqn_args("--tensorboard-logdir", ""))
        self.assertGreaterEqual(second["total_steps"], first["total_steps"])
        self.assertEqual(second["episodes"], 0)
        self.assertEqual(len(CheckpointManager(str(self.root / "ckpt_dqn")).paths()), 1)

    def test_dqn_rejects_continuous_environment(self):
        args = self._dqn_args("--env-name", "MountainCarContinuous-v0")
        with self.assertRaises(ValueError):
            lunar_lander_dqn.run(args)

    def test_ddpg_program_trains_and_checkpoints(self):
        args = mountain_car_ddpg.parse_args(
            [
                "--host", self.server.host,
                "--port", str(self.server.port),
                "--train-steps", "60",
                "--exploration-steps", "10",
                "--batch-size", "8",
                "--replay-capacity", "200",
                "--hidden-dim", "16",
                "--checkpoint-dir", str(self.root / "ckpt_ddpg"),
                "--tensorboard-logdir", "",
                "--seed", "0",
                "--progress", "off",
            ]
        )
        out = mountain_car_ddpg.run(args)
        self.assertEqual(len(out["evaluations"]), 1)
        self.assertEqual(out["evaluations"][0].steps, 25)
        self.assertGreaterEqual(out["total_steps"], 60)
        self.assertEqual(out["url"], "")
        data = CheckpointManager(str(self.root / "ckpt_ddpg")).load(out["checkpoint_path"])
        self.assertEqual(data["agent_spec"], {"algo": "ddpg", "state_dim": 2, "action_dim": 1, "hidden_dim": 16})
        self.assertEqual(data["metadata"]["config"]["exploration_steps"], 10)
        self.assertEqual(data["metadata"]["config"]["rho"], 0.005)

    def test_yaml_config_supplies_defaults(self):
        cfg = self.root / "ddpg.yaml"
        cfg.write_text(
            yaml.safe_dump(
                {
                    "env": {"port": 5050, "action_scale": 1.5},
                    "training": {"train_steps": 123, "rho": 0.1},
                    "agent": {"noise_sigma": 0.3},
                }
            ),
            encoding="utf-8",
        )
        args = mountain_car_ddpg.parse_args(["--config", str(cfg), "--train-steps", "7"])
        self.assertEqual(args.port, 5050)
        self.assertEqual(args.action_scale, 1.5)
        self.assertEqual(args.train_steps, 7)
        self.assertEqual(args.rho, 0.1)
        self.assertEqual(args.noise_sigma, 0.3)

    def test_build_agent_config_from_args(self):
        args = mountain_car_ddpg.parse_args(["--exploration-steps", "5", "--update-interval", "2", "--rho", "0.2"])
        agent = mountain_car_ddpg.build_agent(args, 2, 1, torch.device("cpu"))
        self.assertEqual(agent.config.exploration_steps, 5)
        self.assertEqual(agent.config.update_interval, 2)
        self.assertEqual(agent.config.rho, 0.2)
        self.assertEqual(agent.config.to_dict(), TrainingConfig.from_dict(agent.config.to_dict()).to_dict())

    def test_training_config_from_dict_ignores_unknown_keys(self):
        config = TrainingConfig.from_dict({"discount": 0.5, "batch_size": 64})
        self.assertEqual(config.discount, 0.5)
        self.assertEqual(config.step_size, 0.01)
        self.assertNotIn("batch_size", config.to_dict())
        self.assertEqual(TrainingConfig.from_dict(None), TrainingConfig())
        with self.assertRaises(ValueError):
            TrainingConfig.from_dict({"update_interval": 0})

    def test_parser_defaults(self):
        dqn = lunar_lander_dqn.build_parser().parse_args([])
        self.assertEqual(dqn.env_name, "LunarLander-v3")
        self.assertEqual((dqn.train_steps, dqn.extra_train_steps), (10000, 100000))
        self.assertEqual(dqn.consecutive_episodes, 50)
        self.assertEqual(dqn.monitor_dir, "./dummy/")
        ddpg = mountain_car_ddpg.build_parser().parse_args([])
        self.assertEqual(ddpg.env_name, "MountainCarContinuous-v0")
        self.assertEqual((ddpg.exploration_steps, ddpg.rho, ddpg.batch_size), (3200, 0.005, 32))
        self.assertEqual(ddpg.consecutive_episodes, 25)


if __name__ == "__main__":
    unittest.main()
