import unittest
import asyncio
from unittest.mock import MagicMock, ANY
import osc_server
from aggregator import WindowedAggregator


class TestOSCServer(unittest.TestCase):
    def setUp(self):
        # module-level state, reset for each test
        osc_server._status_callbacks = []
        osc_server._message_callbacks = []
        osc_server._ip_callbacks = []
        osc_server._sink = None
        osc_server.server_transport = None
        osc_server.ip_str = None

    def test_registration_callbacks(self):
        cb = MagicMock()
        osc_server.register_status_callback(cb)
        self.assertIn(cb, osc_server._status_callbacks)

        osc_server.unregister_status_callback(cb)
        self.assertNotIn(cb, osc_server._status_callbacks)

        osc_server.register_ip_callback(cb)
        self.assertIn(cb, osc_server._ip_callbacks)

        osc_server.unregister_ip_callback(cb)
        self.assertNotIn(cb, osc_server._ip_callbacks)

        osc_server.register_message_callback(cb)
        osc_server.register_message_callback(cb)
        self.assertEqual(osc_server._message_callbacks, [cb])

        osc_server.unregister_message_callback(cb)
        self.assertNotIn(cb, osc_server._message_callbacks)

    def test_int_handler_feeds_sink(self):
        sink = MagicMock()
        sink.add.return_value = True
        osc_server.set_sink(sink)

        received_msgs = []
        osc_server.register_message_callback(received_msgs.append)

        osc_server.int_handler("/frequency", 5)

        sink.add.assert_called_once_with(ANY, 5)
        self.assertEqual(len(received_msgs), 1)
        self.assertEqual(received_msgs[0]["endpoint"], "/frequency")
        self.assertEqual(received_msgs[0]["frequency"], 5)
        self.assertTrue(received_msgs[0]["accepted"])

    def test_float_handler_rounds(self):
        sink = MagicMock()
        osc_server.set_sink(sink)
        osc_server.float_handler("/frequency", 2.6)
        sink.add.assert_called_once_with(ANY, 3)

    def test_timestamped_handler_uses_sender_time(self):
        now = 1000.0
        agg = WindowedAggregator(10.0, 60.0, 6, 0, clock=lambda: now)
        osc_server.set_sink(agg)
        received_msgs = []
        osc_server.register_message_callback(received_msgs.append)

        osc_server.timestamped_handler("/frequency", 990.0, 3)
        osc_server.timestamped_handler("/frequency", now + 3600, 3)

        self.assertEqual(len(agg), 1)
        self.assertEqual(agg.points[0].time, 990.0)
        self.assertTrue(received_msgs[0]["accepted"])
        self.assertFalse(received_msgs[1]["accepted"])

    def test_malformed_message_is_dropped(self):
        sink = MagicMock()
        osc_server.set_sink(sink)
        cb = MagicMock()
        osc_server.register_message_callback(cb)

        osc_server.timestamped_handler("/frequency", "abc")
        osc_server.int_handler("/frequency")

        sink.add.assert_not_called()
        cb.assert_not_called()

    def test_non_finite_payloads_are_dropped(self):
        sink = MagicMock()
        osc_server.set_sink(sink)
        cb = MagicMock()
        osc_server.register_message_callback(cb)

        osc_server.float_handler("/frequency", float("inf"))
        osc_server.float_handler("/frequency", float("nan"))
        osc_server.int_handler("/frequency", float("inf"))
        osc_server.timestamped_handler("/frequency", 990.0, float("inf"))

        sink.add.assert_not_called()
        cb.assert_not_called()

    def test_nan_timestamp_is_rejected(self):
        now = 1000.0
        agg = WindowedAggregator(10.0, 60.0, 6, 0, clock=lambda: now)
        osc_server.set_sink(agg)
        received_msgs = []
        osc_server.register_message_callback(received_msgs.append)

        osc_server.timestamped_handler("/frequency", float("nan"), 3)

        self.assertEqual(len(agg), 0)
        self.assertFalse(received_msgs[0]["accepted"])

    def test_no_sink_is_not_accepted(self):
        received_msgs = []
        osc_server.register_message_callback(received_msgs.append)
        osc_server.int_handler("/frequency", 4)
        self.assertFalse(received_msgs[0]["accepted"])

    def test_handler_lookup(self):
        self.assertIs(
            osc_server._get_handler_for_value_type("timestamped"),
            osc_server.timestamped_handler,
        )
        self.assertIs(
            osc_server._get_handler_for_value_type("FLOAT"), osc_server.float_handler
        )
        self.assertIs(
            osc_server._get_handler_for_value_type("vector3"), osc_server.int_handler
        )

    def test_bind_address(self):
        osc_server.set_bind_address("", 9100, "/f", "float")
        self.assertEqual(osc_server.get_bind_address(), (None, 9100, "/f", "float"))
        osc_server.set_bind_address("127.0.0.1", 9000)
        self.assertEqual(
            osc_server.get_bind_address(), ("127.0.0.1", 9000, "/frequency", "int")
        )

    def test_get_ip_string(self):
        osc_server.ip_str = "127.0.0.1:9000"
        self.assertEqual(osc_server.get_ip_string(), "127.0.0.1:9000")

    def test_is_running(self):
        osc_server.server_transport = None
        self.assertFalse(osc_server.is_running())
        osc_server.server_transport = object()  # mock transport
        self.assertTrue(osc_server.is_running())

    async def async_test_server_lifecycle(self):
        addr = "127.0.0.1"

        status_changes = []
        osc_server.register_status_callback(status_changes.append)
        ips = []
        osc_server.register_ip_callback(ips.append)

        task = asyncio.create_task(
            osc_server.start_async_osc_server(addr=addr, port=0, endpoint="/frequency")
        )
        await asyncio.sleep(0.1)

        self.assertTrue(osc_server.is_running())
        self.assertIn(True, status_changes)
        self.assertEqual(osc_server.get_ip_string(), f"{addr}:0")
        self.assertIn(f"{addr}:0", ips)

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        self.assertFalse(osc_server.is_running())
        self.assertIn(False, status_changes)
        self.assertIsNone(osc_server.get_ip_string())
        self.assertIn("Server not running", ips)

    def test_server_lifecycle(self):
        asyncio.run(self.async_test_server_lifecycle())


if __name__ == "__main__":
    unittest.main()
