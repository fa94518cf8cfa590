# tests/test_cli.py
import json
import tempfile
import unittest
from pathlib import Path

import typer
from typer.testing import CliRunner

from treesync import widgets as w
from treesync.codec import ProtocolCodec
from treesync.events import EventKind, EventMessage
from treesync.reconciler import SetProp
from treesync_cli.main import app, load_target

runner = CliRunner()


class TestDecode(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.codec = ProtocolCodec(version=1)

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, text):
        path = self.dir / "message.json"
        path.write_text(text, encoding="utf-8")
        return str(path)

    def test_mount(self):
        tree = w.column(w.text("hello", key="greeting"), key="root")
        result = runner.invoke(app, ["decode", self.write(self.codec.encode_mount(tree, 1))])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("mount seq=1 version=1 reason=initial", result.output)
        self.assertIn("k:greeting", result.output)

    def test_patches(self):
        text = self.codec.encode_patches([SetProp("k:greeting", "text", "bye")], 4)
        result = runner.invoke(app, ["decode", self.write(text)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("patch seq=4", result.output)
        self.assertIn("bye", result.output)

    def test_event(self):
        text = self.codec.encode_event(EventMessage("k:pick", EventKind.SELECT, {"value": "b"}), 2)
        result = runner.invoke(app, ["decode", self.write(text)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("select on k:pick", result.output)

    def test_unknown_version(self):
        text = json.dumps({"version": 9, "seq": 1, "kind": "patch", "payload": []})
        result = runner.invoke(app, ["decode", self.write(text)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("ProtocolVersionError", result.output)

    def test_garbage(self):
        result = runner.invoke(app, ["decode", self.write("{not json")])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("MalformedMessageError", result.output)

    def test_missing_file(self):
        result = runner.invoke(app, ["decode", str(self.dir / "absent.json")])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("file not found", result.output)


class TestDemo(unittest.TestCase):
    def test_demo_prints_mount_and_update(self):
        result = runner.invoke(app, ["demo"])
        self.assertEqual(result.exit_code, 0, result.output)
        initial, _, after = result.output.partition("--- after clicking 'Add task' ---")
        self.assertIn("mount seq=1", initial)
        self.assertIn("k:board", initial)
        self.assertIn("patch seq=2", after)
        self.assertIn("ack seq=3", after)
        self.assertIn("node=k:add-task", after)


class TestLoadTarget(unittest.TestCase):
    def test_loads_factory(self):
        state = load_target("treesync.demo:TaskBoardState")
        self.assertEqual(type(state).__name__, "TaskBoardState")

    def test_bad_targets(self):
        for target in ("no-colon", "treesync.nothing_here:App", "treesync.demo:Nope"):
            with self.assertRaises(typer.BadParameter, msg=target):
                load_target(target)


if __name__ == "__main__":
    unittest.main()
