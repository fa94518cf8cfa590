# tests/test_applier.py
import json
import random
import unittest

from treesync import widgets as w
from treesync.applier import ElementSurface, PatchReceiver, RenderApplier, render
from treesync.codec import ProtocolCodec
from treesync.errors import PatchApplyError, UnknownNodeError
from treesync.events import EventKind, EventMessage
from treesync.reconciler import ROOT_PARENT_ID, InsertChild, Mount, RemoveChild, ReplaceNode, SetProp, diff
from treesync.router import EventOutbox


def apply_diff(applier, old, new):
    applier.apply(diff(old, new))
    return applier


def random_tree(rng, keys, depth=0):
    """A column of keyed children, some nested one level deeper."""
    children = []
    for key in rng.sample(keys, rng.randint(0, len(keys))):
        if depth == 0 and rng.random() < 0.3:
            children.append(w.box(*random_tree(rng, [f"{key}.{i}" for i in range(3)], 1).children, key=key))
        else:
            children.append(w.text(f"{key}:{rng.randint(0, 2)}", key=key, truncate=rng.random() < 0.5))
    return w.column(*children, key="root", gap=rng.choice([0, 4]))


class TestRenderApplier(unittest.TestCase):
    def setUp(self):
        self.surface = ElementSurface()
        self.applier = RenderApplier(self.surface)

    def test_mount_builds_elements(self):
        tree = w.column(w.text("a", key="a"), w.text("b", key="b"), key="root")
        self.applier.apply(diff(None, tree))
        self.assertEqual(self.applier.snapshot(), render(tree).snapshot())
        self.assertEqual(len(self.applier.handle), 3)
        self.assertEqual(self.surface.created, 3)

    def test_set_prop_updates_in_place(self):
        old = w.column(w.text("a", key="a"), key="root")
        self.applier.mount(old)
        element = self.applier.handle.get("k:a")
        element.state["focused"] = True
        new = w.column(w.text("changed", key="a"), key="root")
        apply_diff(self.applier, old, new)
        self.assertIs(self.applier.handle.get("k:a"), element)
        self.assertEqual(element.attrs["text"], "changed")
        self.assertTrue(element.state["focused"])
        self.assertEqual(self.surface.updated, 1)

    def test_moves_keep_elements(self):
        old = w.column(*(w.text(k, key=k) for k in "abcd"), key="root")
        new = w.column(*(w.text(k, key=k) for k in "dbca"), key="root")
        self.applier.mount(old)
        before = {k: self.applier.handle.get(f"k:{k}") for k in "abcd"}
        apply_diff(self.applier, old, new)
        self.assertEqual([c.node_id for c in self.applier.root.children], ["k:d", "k:b", "k:c", "k:a"])
        for k in "abcd":
            self.assertIs(self.applier.handle.get(f"k:{k}"), before[k])
        self.assertEqual(self.surface.destroyed, 0)

    def test_replace_discards_old_subtree(self):
        old = w.column(w.box(w.text("x", key="inner"), key="slot"), key="root")
        new = w.column(w.text("now text", key="slot"), key="root")
        self.applier.mount(old)
        old_inner = self.applier.handle.get("k:inner")
        apply_diff(self.applier, old, new)
        self.assertTrue(old_inner.destroyed)
        self.assertNotIn("k:inner", self.applier.handle)
        self.assertEqual(self.applier.snapshot(), render(new).snapshot())

    def test_reparenting_keeps_the_registration(self):
        moving = w.text("m", key="m")
        old = w.column(w.box(moving, key="left"), w.box(key="right"), key="root")
        new = w.column(w.box(key="left"), w.box(moving, key="right"), key="root")
        self.applier.mount(old)
        apply_diff(self.applier, old, new)
        self.assertEqual(self.applier.snapshot(), render(new).snapshot())
        self.assertIn("k:m", self.applier.handle)
        self.assertIs(self.applier.handle.get("k:m").parent, self.applier.handle.get("k:right"))

    def test_unmount(self):
        tree = w.column(key="root")
        self.applier.mount(tree)
        apply_diff(self.applier, tree, None)
        self.assertIsNone(self.applier.root)
        self.assertEqual(len(self.applier.handle), 0)

    def test_failure_reports_index_and_keeps_earlier_patches(self):
        tree = w.column(w.text("a", key="a"), key="root")
        self.applier.mount(tree)
        patches = [SetProp("k:a", "text", "first"), SetProp("k:ghost", "text", "x"), SetProp("k:a", "text", "never")]
        with self.assertRaises(PatchApplyError) as ctx:
            self.applier.apply(patches)
        self.assertEqual(ctx.exception.index, 1)
        self.assertIsInstance(ctx.exception.cause, UnknownNodeError)
        self.assertEqual(self.applier.handle.get("k:a").attrs["text"], "first")

    def test_remove_checks_child_identity(self):
        tree = w.column(w.text("a", key="a"), key="root")
        self.applier.mount(tree)
        with self.assertRaises(PatchApplyError):
            self.applier.apply([RemoveChild("k:root", 0, "k:other")])
        with self.assertRaises(PatchApplyError):
            self.applier.apply([InsertChild("k:root", 5, w.text("z", key="z"))])

    def test_replace_of_container_is_rejected(self):
        with self.assertRaises(PatchApplyError):
            self.applier.apply([ReplaceNode(ROOT_PARENT_ID, w.text("x"))])

    def test_truncation_is_measured_locally(self):
        surface = ElementSurface(measure=lambda element: len(element.attrs["text"]) > 5)
        applier = render(w.text("a long label", truncate=True, key="t"), surface)
        self.assertTrue(applier.root.state["truncated"])
        self.assertNotIn("truncated", applier.snapshot()["attrs"])


class TestPatchSequenceEquivalence(unittest.TestCase):
    def test_random_edits_match_fresh_render(self):
        rng = random.Random(1234)
        keys = [f"n{i}" for i in range(8)]
        for _ in range(150):
            t1 = random_tree(rng, keys)
            t2 = random_tree(rng, keys)
            applier = RenderApplier()
            applier.apply(diff(None, t1))
            applier.apply(diff(t1, t2))
            self.assertEqual(applier.snapshot(), render(t2).snapshot(), f"{t1!r} -> {t2!r}")


class TestPatchReceiver(unittest.TestCase):
    def setUp(self):
        self.codec = ProtocolCodec(version=1)
        self.sent = []
        self.outbox = EventOutbox(self.sent.append, self.codec)
        self.applier = RenderApplier()
        self.receiver = PatchReceiver(self.applier, self.outbox)
        self.tree = w.column(w.text("a", key="a"), key="root")

    def sent_events(self):
        return [self.codec.decode_event(text).message for text in self.sent]

    def test_mount_then_patches(self):
        self.assertTrue(self.receiver.receive(self.codec.encode_mount(self.tree, 1)))
        new = w.column(w.text("b", key="a"), key="root")
        self.assertTrue(self.receiver.receive(self.codec.encode_patches(diff(self.tree, new), 2)))
        self.assertEqual(self.applier.snapshot(), render(new).snapshot())
        self.assertEqual(self.sent, [])

    def test_gap_requests_resync_once(self):
        self.receiver.receive(self.codec.encode_mount(self.tree, 1))
        patch = self.codec.encode_patches([SetProp("k:a", "text", "x")], 3)
        self.assertFalse(self.receiver.receive(patch))
        self.assertFalse(self.receiver.receive(self.codec.encode_patches([], 4)))
        events = self.sent_events()
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].event_kind, EventKind.RESYNC)
        self.assertEqual(events[0].payload, {"lastSeq": 1})
        self.assertEqual(self.applier.handle.get("k:a").attrs["text"], "a")

    def test_resync_mount_recovers(self):
        self.receiver.receive(self.codec.encode_mount(self.tree, 1))
        self.receiver.receive(self.codec.encode_patches([], 5))
        self.assertTrue(self.receiver.awaiting_resync)
        fresh = w.column(w.text("fresh", key="a"), key="root")
        self.assertTrue(self.receiver.receive(self.codec.encode_mount(fresh, 6, "resync")))
        self.assertFalse(self.receiver.awaiting_resync)
        self.assertTrue(self.receiver.receive(self.codec.encode_patches([SetProp("k:a", "text", "next")], 7)))
        self.assertEqual(self.applier.handle.get("k:a").attrs["text"], "next")

    def test_unknown_version_is_not_applied(self):
        self.receiver.receive(self.codec.encode_mount(self.tree, 1))
        text = json.dumps({"version": 42, "seq": 2, "kind": "patch", "payload": []})
        self.assertFalse(self.receiver.receive(text))
        self.assertTrue(self.receiver.awaiting_resync)
        self.assertEqual(self.sent_events()[0].event_kind, EventKind.RESYNC)

    def test_failed_patch_requests_resync(self):
        self.receiver.receive(self.codec.encode_mount(self.tree, 1))
        self.assertFalse(self.receiver.receive(self.codec.encode_patches([SetProp("k:nope", "text", "x")], 2)))
        self.assertIsInstance(self.receiver.last_error, PatchApplyError)
        self.assertEqual(self.sent_events()[0].event_kind, EventKind.RESYNC)

    def test_ack_releases_outbox_lane(self):
        self.receiver.receive(self.codec.encode_mount(self.tree, 1))
        self.outbox.post(EventMessage("k:a", EventKind.CLICK))
        self.outbox.post(EventMessage("k:a", EventKind.CLICK))
        self.assertEqual(len(self.sent), 1)
        self.assertTrue(self.receiver.receive(self.codec.encode_ack("k:a", 1, 2)))
        self.assertEqual(len(self.sent), 2)
        self.assertEqual(self.receiver.expected_seq, 3)

    def test_mount_patch_is_applied(self):
        self.applier.apply([Mount(self.tree)])
        self.assertEqual(self.applier.snapshot(), render(self.tree).snapshot())


if __name__ == "__main__":
    unittest.main()
