import unittest

import gymnasium as gym
import numpy as np

from gym_sim import protocol
from gym_sim.protocol import MessageBuffer, ProtocolError


class TestProtocol(unittest.TestCase):
    def test_encode_appends_terminator_and_decodes_back(self):
        raw = protocol.encode(protocol.env_name("CartPole-v1"))
        self.assertTrue(raw.endswith(protocol.TERMINATOR))
        self.assertEqual(protocol.decode(raw[: -len(protocol.TERMINATOR)]), {"env": {"name": "CartPole-v1"}})

    def test_buffer_splits_messages_across_chunks(self):
        buf = MessageBuffer()
        data = protocol.encode({"a": 1}) + protocol.encode({"b": 2})
        first = buf.feed(data[:5])
        self.assertEqual(first, [])
        rest = buf.feed(data[5:])
        self.assertEqual([protocol.decode(m) for m in rest], [{"a": 1}, {"b": 2}])
        self.assertEqual(len(buf), 0)

    def test_buffer_keeps_partial_tail(self):
        buf = MessageBuffer()
        out = buf.feed(protocol.encode({"a": 1}) + b'{"b"')
        self.assertEqual(len(out), 1)
        self.assertEqual(len(buf), 4)

    def test_oversized_message_raises(self):
        buf = MessageBuffer(max_bytes=16)
        with self.assertRaises(ProtocolError):
            buf.feed(b"x" * 32)
        self.assertEqual(len(buf), 0)

    def test_decode_rejects_non_object_and_bad_json(self):
        with self.assertRaises(ProtocolError):
            protocol.decode(b"[1, 2]")
        with self.assertRaises(ProtocolError):
            protocol.decode(b"{not json")

    def test_step_flattens_action_to_float_list(self):
        msg = protocol.step(np.array([[0.5]], dtype=np.float32), render=True)
        self.assertEqual(msg, {"step": {"action": [0.5], "render": 1}})
        self.assertEqual(protocol.step(3)["step"]["action"], [3.0])

    def test_describe_spaces(self):
        self.assertEqual(protocol.describe_space(gym.spaces.Discrete(4)), {"name": "Discrete", "n": 4})
        box = protocol.describe_space(gym.spaces.Box(low=-1.0, high=1.0, shape=(2,), dtype=np.float32))
        self.assertEqual(box["name"], "Box")
        self.assertEqual(box["shape"], [2])
        self.assertEqual(box["low"], [-1.0, -1.0])
        self.assertEqual(protocol.space_dim(box), 2)
        self.assertEqual(protocol.space_dim({"name": "Discrete", "n": 4}), 4)

    def test_unsupported_space_raises(self):
        with self.assertRaises(ProtocolError):
            protocol.describe_space(gym.spaces.MultiBinary(3))
        with self.assertRaises(ProtocolError):
            protocol.space_dim({"name": "Tuple"})


if __name__ == "__main__":
    unittest.main()
