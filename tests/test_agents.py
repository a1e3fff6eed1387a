import unittest

import numpy as np
import torch

from gym_rl.config import TrainingConfig
from gym_rl.ddpg import DDPGAgent, soft_update_
from gym_rl.dqn import QLearningAgent
from gym_rl.exploration import GreedyPolicy, OUNoise
from gym_rl.networks import ActorNetwork, CriticNetwork, QNetwork
from gym_rl.replay import RandomReplay


def _dqn(config=None, epsilon=(1.0, 10, 0.1, 1.0)):
    torch.manual_seed(0)
    return QLearningAgent(
        config or TrainingConfig(),
        QNetwork(3, 2, hidden_dim=8, init_std=0.1),
        GreedyPolicy(*epsilon, seed=0),
        RandomReplay(4, 16, 3, seed=0),
    )


def _ddpg(config=None):
    torch.manual_seed(0)
    return DDPGAgent(
        config or TrainingConfig(target_network_sync_interval=1),
        CriticNetwork(2, 1, hidden_dim=8),
        ActorNetwork(2, 1, hidden_dim=8),
        OUNoise(1, seed=0),
        RandomReplay(4, 16, 2, action_dim=1, discrete_actions=False, seed=0),
    )


class TestNetworks(unittest.TestCase):
    def test_output_shapes(self):
        self.assertEqual(QNetwork(4, 3, hidden_dim=8)(torch.zeros(5, 4)).shape, (5, 3))
        actor = ActorNetwork(2, 1, hidden_dim=8)
        out = actor(torch.randn(6, 2) * 100.0)
        self.assertEqual(out.shape, (6, 1))
        self.assertTrue(torch.all(out.abs() <= 1.0))
        self.assertEqual(CriticNetwork(2, 1, hidden_dim=8)(torch.zeros(6, 2), torch.zeros(6, 1)).shape, (6,))


class TestQLearningAgent(unittest.TestCase):
    def _fill(self, agent, n=8):
        for i in range(n):
            agent.replay.store(np.full(3, i, dtype=np.float32), i % 2, 1.0, np.full(3, i + 1, dtype=np.float32), i == n - 1, 0.99)

    def test_select_action_is_greedy_when_deterministic(self):
        agent = _dqn()
        agent.deterministic = True
        state = np.array([0.1, -0.2, 0.3], dtype=np.float32)
        self.assertEqual(agent.select_action(state), int(np.argmax(agent.action_values(state))))

    def test_train_agent_changes_weights_and_returns_loss(self):
        agent = _dqn()
        self._fill(agent)
        before = [p.detach().clone() for p in agent.learning_network.parameters()]
        agent.total_steps = 1
        loss = agent.train_agent()
        self.assertTrue(np.isfinite(loss))
        self.assertEqual(agent.last_loss, loss)
        changed = any(not torch.equal(b, p) for b, p in zip(before, agent.learning_network.parameters()))
        self.assertTrue(changed)

    def test_target_sync_on_interval(self):
        agent = _dqn(TrainingConfig(target_network_sync_interval=2))
        self._fill(agent)
        agent.total_steps = 1
        agent.train_agent()
        differs = any(
            not torch.equal(a, b) for a, b in zip(agent.learning_network.parameters(), agent.target_network.parameters())
        )
        self.assertTrue(differs)
        agent.total_steps = 2
        agent.train_agent()
        for a, b in zip(agent.learning_network.parameters(), agent.target_network.parameters()):
            self.assertTrue(torch.equal(a, b))

    def test_epsilon_anneals_only_after_exploration(self):
        agent = _dqn(TrainingConfig(exploration_steps=5))
        self._fill(agent)
        agent.total_steps = 5
        agent.train_agent()
        self.assertAlmostEqual(agent.policy.epsilon, 1.0)
        agent.total_steps = 6
        agent.train_agent()
        self.assertAlmostEqual(agent.policy.epsilon, 0.91)

    def test_double_q_learning_runs(self):
        agent = _dqn(TrainingConfig(double_q_learning=True))
        self._fill(agent)
        self.assertTrue(np.isfinite(agent.train_agent()))

    def test_state_dict_round_trip_keeps_epsilon(self):
        agent = _dqn()
        agent.policy.epsilon = 0.42
        agent.total_steps = 17
        other = _dqn()
        other.load_state_dict(agent.state_dict())
        self.assertEqual(other.total_steps, 17)
        self.assertAlmostEqual(other.policy.epsilon, 0.42)
        self.assertEqual(other.agent_spec(), {"algo": "dqn", "state_dim": 3, "action_dim": 2, "hidden_dim": 8})

    def test_rejects_mismatched_replay(self):
        with self.assertRaises(ValueError):
            QLearningAgent(TrainingConfig(), QNetwork(3, 2), GreedyPolicy(1.0, 1, 0.1), RandomReplay(1, 1, 4))
        with self.assertRaises(ValueError):
            QLearningAgent(
                TrainingConfig(), QNetwork(3, 2), GreedyPolicy(1.0, 1, 0.1), RandomReplay(1, 1, 3, discrete_actions=False)
            )


class TestDDPGAgent(unittest.TestCase):
    def _fill(self, agent, n=8):
        for i in range(n):
            agent.replay.store(np.array([i * 0.1, 0.0]), np.array([0.5]), -0.1, np.array([i * 0.1 + 0.1, 0.0]), False, 0.99)

    def test_soft_update_moves_target_by_rho(self):
        target = torch.nn.Linear(1, 1)
        source = torch.nn.Linear(1, 1)
        with torch.no_grad():
            target.weight.fill_(0.0)
            target.bias.fill_(0.0)
            source.weight.fill_(1.0)
            source.bias.fill_(2.0)
        soft_update_(target, source, 0.25)
        self.assertAlmostEqual(float(target.weight), 0.25)
        self.assertAlmostEqual(float(target.bias), 0.5)

    def test_select_action_adds_noise_unless_deterministic(self):
        agent = _ddpg()
        state = np.array([0.1, 0.0])
        agent.deterministic = True
        clean = agent.select_action(state)
        self.assertEqual(clean.shape, (1,))
        self.assertTrue(np.all(np.abs(clean) <= 1.0))
        agent.deterministic = False
        noisy = agent.select_action(state)
        self.assertFalse(np.allclose(clean, noisy))

    def test_update_trains_both_networks_and_soft_updates_targets(self):
        agent = _ddpg(TrainingConfig(target_network_sync_interval=1, rho=0.5))
        self._fill(agent)
        target_before = [p.detach().clone() for p in agent.target_policy_network.parameters()]
        agent.total_steps = 1
        q_loss, policy_loss = agent.update()
        self.assertTrue(np.isfinite(q_loss))
        self.assertTrue(np.isfinite(policy_loss))
        moved = any(not torch.equal(b, p) for b, p in zip(target_before, agent.target_policy_network.parameters()))
        self.assertTrue(moved)

    def test_learn_runs_update_interval_times(self):
        agent = _ddpg(TrainingConfig(update_interval=3))
        self._fill(agent)
        calls = []
        original = agent.update
        agent.update = lambda: calls.append(1) or original()
        agent.learn()
        self.assertEqual(len(calls), 3)

    def test_state_dict_round_trip_keeps_noise(self):
        agent = _ddpg()
        agent.noise.state = np.array([0.7])
        agent.total_steps = 9
        other = _ddpg()
        other.load_state_dict(agent.state_dict())
        self.assertEqual(other.total_steps, 9)
        self.assertTrue(np.allclose(other.noise.state, [0.7]))
        self.assertEqual(other.agent_spec()["algo"], "ddpg")

    def test_rejects_wrong_noise_size(self):
        with self.assertRaises(ValueError):
            DDPGAgent(
                TrainingConfig(),
                CriticNetwork(2, 1),
                ActorNetwork(2, 1),
                OUNoise(2),
                RandomReplay(1, 1, 2, action_dim=1, discrete_actions=False),
            )


if __name__ == "__main__":
    unittest.main()
