# tests/test_router.py
import tempfile
import unittest
from pathlib import Path

from treesync import widgets as w
from treesync.codec import ProtocolCodec
from treesync.config import Config
from treesync.events import ClickDetails, DeliveryPolicy, EventKind, EventMessage, ResizeDetails, SelectDetails
from treesync.reconciler import Reconciler
from treesync.router import Delivered, EventDispatcher, EventOutbox, NodeState, NoHandler, StaleEventIgnored


class TestEventOutbox(unittest.TestCase):
    def setUp(self):
        self.codec = ProtocolCodec(version=1)
        self.sent = []
        self.outbox = EventOutbox(self.sent.append, self.codec)

    def sent_messages(self):
        return [self.codec.decode_event(text).message for text in self.sent]

    def test_idle_node_sends_immediately(self):
        self.assertTrue(self.outbox.post(EventMessage("k:go", EventKind.CLICK)))
        self.assertEqual(self.outbox.state_of("k:go"), NodeState.PENDING)
        self.assertEqual(self.outbox.in_flight("k:go"), EventMessage("k:go", EventKind.CLICK))
        self.assertEqual(len(self.sent), 1)

    def test_clicks_queue_in_order(self):
        self.outbox.post(EventMessage("k:go", EventKind.CLICK, 1))
        self.assertFalse(self.outbox.post(EventMessage("k:go", EventKind.CLICK, 2)))
        self.assertFalse(self.outbox.post(EventMessage("k:go", EventKind.CLICK, 3)))
        self.assertEqual(self.outbox.queued("k:go"), 2)

        self.assertEqual(self.outbox.ack("k:go").payload, 2)
        self.assertEqual(self.outbox.ack("k:go").payload, 3)
        self.assertIsNone(self.outbox.ack("k:go"))
        self.assertEqual([m.payload for m in self.sent_messages()], [1, 2, 3])
        self.assertEqual(self.outbox.state_of("k:go"), NodeState.IDLE)

    def test_resizes_coalesce_to_latest(self):
        self.outbox.post(EventMessage("k:g", EventKind.RESIZE, {"sizes": [30, 70]}))
        for left in (35, 40, 45):
            self.outbox.post(EventMessage("k:g", EventKind.RESIZE, {"sizes": [left, 100 - left]}))
        self.assertEqual(self.outbox.queued("k:g"), 1)
        self.outbox.ack("k:g")
        self.assertEqual(self.sent_messages()[-1].payload, {"sizes": [45, 55]})

    def test_nodes_do_not_block_each_other(self):
        self.outbox.post(EventMessage("k:a", EventKind.CLICK))
        self.assertTrue(self.outbox.post(EventMessage("k:b", EventKind.CLICK)))
        self.assertEqual(len(self.sent), 2)

    def test_sequence_numbers_increase(self):
        self.outbox.post(EventMessage("k:a", EventKind.CLICK))
        self.outbox.post(EventMessage("k:b", EventKind.CLICK))
        self.assertEqual([self.codec.decode_event(t).seq for t in self.sent], [1, 2])

    def test_ack_for_idle_node_is_ignored(self):
        self.assertIsNone(self.outbox.ack("k:nobody"))

    def test_idle_lanes_are_dropped(self):
        for n in range(1000):
            self.outbox.post(EventMessage(f"w{n}", EventKind.CLICK))
            self.outbox.ack(f"w{n}")
        self.assertEqual(self.outbox.lane_count(), 0)
        self.outbox.post(EventMessage("k:a", EventKind.CLICK))
        self.outbox.post(EventMessage("k:a", EventKind.CLICK))
        self.outbox.ack("k:a")
        self.assertEqual(self.outbox.lane_count(), 1)
        self.assertEqual(self.outbox.state_of("k:a"), NodeState.PENDING)
        self.assertEqual(self.sent, [])

    def test_policy_comes_from_config(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text("router:\n  coalesce: [select]\n", encoding="utf-8")
            Config.reset_instance()
            config = Config(config_file=str(path))
        outbox = EventOutbox.from_config(self.sent.append, config, codec=self.codec)
        self.assertIs(outbox.policies[EventKind.SELECT], DeliveryPolicy.COALESCE)
        self.assertIs(outbox.policies[EventKind.RESIZE], DeliveryPolicy.QUEUE)
        self.assertIs(outbox.policies[EventKind.RESYNC], DeliveryPolicy.COALESCE)


class TestEventDispatcher(unittest.TestCase):
    def setUp(self):
        self.calls = []
        self.tree = w.column(
            w.button("Go", on_click=self.calls.append, key="go"),
            w.select(w.option("a"), w.option("b"), on_select=self.calls.append, key="pick"),
            w.on_resize(w.panel_group(w.panel(50, key="l"), w.panel(50, key="r"), key="g"), self.calls.append),
            w.text("plain", key="plain"),
            key="root",
        )
        result = Reconciler().reconcile(None, self.tree)
        self.dispatcher = EventDispatcher()
        self.dispatcher.bind(result.registered_callbacks, result.live_ids)

    def test_delivers_details_to_handler(self):
        outcome = self.dispatcher.dispatch(EventMessage("k:go", EventKind.CLICK))
        self.assertIsInstance(outcome, Delivered)
        self.assertEqual(self.calls, [ClickDetails("k:go")])

        self.dispatcher.dispatch(EventMessage("k:pick", EventKind.SELECT, {"value": "b"}))
        self.dispatcher.dispatch(EventMessage("k:g", EventKind.RESIZE, {"sizes": [40, 60]}))
        self.assertEqual(self.calls[1:], [SelectDetails("k:pick", "b"), ResizeDetails("k:g", (40.0, 60.0))])

    def test_removed_node_is_stale(self):
        outcome = self.dispatcher.dispatch(EventMessage("k:gone", EventKind.CLICK))
        self.assertIsInstance(outcome, StaleEventIgnored)
        self.assertEqual(self.calls, [])

    def test_live_node_without_handler(self):
        outcome = self.dispatcher.dispatch(EventMessage("k:plain", EventKind.CLICK))
        self.assertIsInstance(outcome, NoHandler)
        self.assertTrue(self.dispatcher.is_live("k:plain"))

    def test_rebinding_sees_only_the_new_tree(self):
        smaller = w.column(w.text("plain", key="plain"), key="root")
        result = Reconciler().reconcile(self.tree, smaller)
        self.dispatcher.bind(result.registered_callbacks, result.live_ids)
        outcome = self.dispatcher.dispatch(EventMessage("k:go", EventKind.CLICK))
        self.assertIsInstance(outcome, StaleEventIgnored)
        self.assertEqual(self.calls, [])

    def test_handler_errors_propagate(self):
        def boom(details):
            raise RuntimeError("handler failed")
        result = Reconciler().reconcile(None, w.button("x", on_click=boom, key="x"))
        self.dispatcher.bind(result.registered_callbacks, result.live_ids)
        with self.assertRaises(RuntimeError):
            self.dispatcher.dispatch(EventMessage("k:x", EventKind.CLICK))


if __name__ == "__main__":
    unittest.main()
