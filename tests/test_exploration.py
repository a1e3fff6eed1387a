import unittest

import numpy as np

from gym_rl.exploration import GreedyPolicy, OUNoise


class TestGreedyPolicy(unittest.TestCase):
    def test_linear_anneal_reaches_floor(self):
        policy = GreedyPolicy(1.0, 4, 0.2)
        self.assertAlmostEqual(policy.delta, 0.2)
        policy.anneal()
        self.assertAlmostEqual(policy.epsilon, 0.8)
        for _ in range(10):
            policy.anneal()
        self.assertAlmostEqual(policy.epsilon, 0.2)

    def test_decay_rate_scales_linear_step(self):
        policy = GreedyPolicy(1.0, 2000, 0.1, decay_rate=0.99)
        self.assertAlmostEqual(policy.delta, 0.9 * 0.99 / 2000)
        for _ in range(300):
            policy.anneal()
        self.assertAlmostEqual(policy.epsilon, 1.0 - 300 * policy.delta)
        self.assertGreater(policy.epsilon, 0.8)
        for _ in range(2100):
            policy.anneal()
        self.assertAlmostEqual(policy.epsilon, 0.1)

    def test_greedy_when_epsilon_zero_or_deterministic(self):
        values = np.array([0.1, 2.0, -1.0])
        self.assertEqual(GreedyPolicy(0.0, 1, 0.0).sample(values), 1)
        self.assertEqual(GreedyPolicy(1.0, 1, 1.0, seed=3).sample(values, deterministic=True), 1)

    def test_random_actions_in_range(self):
        policy = GreedyPolicy(1.0, 1, 1.0, seed=0)
        actions = {policy.sample(np.zeros(4)) for _ in range(200)}
        self.assertTrue(actions.issubset({0, 1, 2, 3}))
        self.assertGreater(len(actions), 1)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            GreedyPolicy(0.1, 10, 0.5)
        with self.assertRaises(ValueError):
            GreedyPolicy(1.0, 0, 0.1)
        with self.assertRaises(ValueError):
            GreedyPolicy(1.0, 10, 0.1, decay_rate=0.0)


class TestOUNoise(unittest.TestCase):
    def test_zero_sigma_reverts_to_mean(self):
        noise = OUNoise(2, mu=1.0, theta=0.5, sigma=0.0)
        noise.state = np.array([3.0, -1.0])
        out = noise.sample()
        self.assertTrue(np.allclose(out, [2.0, 0.0]))
        out[0] = 100.0
        self.assertAlmostEqual(noise.state[0], 2.0)

    def test_reset_restores_mean(self):
        noise = OUNoise(1, mu=0.3, theta=1.0, sigma=0.1, seed=0)
        for _ in range(5):
            noise.sample()
        noise.reset()
        self.assertTrue(np.allclose(noise.state, [0.3]))

    def test_seeded_noise_is_reproducible(self):
        a = OUNoise(3, seed=42)
        b = OUNoise(3, seed=42)
        self.assertTrue(np.allclose(a.sample(), b.sample()))

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            OUNoise(0)


if __name__ == "__main__":
    unittest.main()
