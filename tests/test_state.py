# tests/test_state.py
import unittest

from treesync import widgets as w
from treesync.applier import render
from treesync.controllers import PanelSizesController, ValueController
from treesync.core import Framework
from treesync.demo import TaskBoardState
from treesync.events import ResizeDetails, SelectDetails
from treesync.state import State


class RecordingHost:
    def __init__(self):
        self.requests = []

    def request_rebuild(self, build_tree):
        self.requests.append(build_tree)


class CounterState(State):
    def __init__(self, session=None):
        self.count = 0
        self.events = []
        super().__init__(session)

    def initState(self):
        self.events.append("init")

    def dispose(self):
        self.events.append("dispose")

    def build(self):
        return w.text(str(self.count), key="count")


class TestState(unittest.TestCase):
    def test_lifecycle(self):
        host = RecordingHost()
        state = CounterState()
        state.attach(host)
        state.attach(host)
        self.assertEqual(state.events, ["init"])
        state.detach()
        self.assertEqual(state.events, ["init", "dispose"])
        self.assertIsNone(state.session)

    def test_set_state_requests_rebuild(self):
        host = RecordingHost()
        state = CounterState(host)

        def bump():
            state.count += 1
        state.setState(bump)
        self.assertEqual(state.count, 1)
        self.assertEqual(len(host.requests), 1)
        self.assertEqual(host.requests[0]()["text"], "1")

    def test_set_state_without_session_only_warns(self):
        state = CounterState()
        with self.assertLogs("treesync.state", level="WARNING"):
            state.setState(lambda: None)

    def test_build_must_be_overridden(self):
        with self.assertRaises(NotImplementedError):
            State().build()


class TestControllers(unittest.TestCase):
    def test_value_controller_notifies_on_change(self):
        calls = []
        ctrl = ValueController("a")
        ctrl.add_listener(lambda: calls.append(ctrl.value))
        ctrl.on_select(SelectDetails("k:s", "b"))
        ctrl.on_select(SelectDetails("k:s", "b"))
        ctrl.clear()
        self.assertEqual(calls, ["b", None])

    def test_listeners_can_be_removed(self):
        calls = []

        def listener():
            calls.append(1)
        ctrl = ValueController()
        ctrl.add_listener(listener)
        ctrl.add_listener(listener)
        ctrl.value = "x"
        ctrl.remove_listener(listener)
        ctrl.value = "y"
        self.assertEqual(calls, [1])

    def test_panel_sizes(self):
        ctrl = PanelSizesController([30, 70])
        self.assertEqual(ctrl.sizes, (30.0, 70.0))
        ctrl.on_resize(ResizeDetails("k:g", (25.0, 75.0)))
        self.assertEqual(ctrl.size_of(0), 25.0)
        self.assertIsNone(ctrl.size_of(5))
        self.assertEqual(ctrl.size_of(-1, 0), 0)


class TestTaskBoard(unittest.TestCase):
    def setUp(self):
        self.framework = Framework(TaskBoardState())
        self.session, self.client = self.framework.run_headless()

    def tearDown(self):
        self.framework.close()

    def task_rows(self):
        task_list = self.client.applier.handle.get("k:task-list")
        return [child.attrs["label"] for child in task_list.children if child.kind.value == "detail"]

    def test_adding_a_task(self):
        self.client.click("k:add-task")
        self.client.pump()
        self.assertEqual(self.task_rows(), ["Sketch the layout", "Wire up the handlers", "Task 3"])
        self.assertEqual(self.client.applier.handle.get("k:task-count").attrs["text"], "3 of 3 tasks")

    def test_toggle_and_filter(self):
        self.client.click("k:sketch-the-layout-toggle")
        self.client.pump()
        self.client.select("k:filter", "done")
        self.client.pump()
        self.assertEqual(self.task_rows(), ["Sketch the layout (done)"])
        self.assertEqual(self.client.applier.handle.get("k:filter").attrs["value"], "done")

    def test_remove_task_makes_later_events_stale(self):
        self.client.click("k:wire-up-the-handlers-remove")
        self.client.pump()
        self.assertEqual(self.task_rows(), ["Sketch the layout"])
        self.assertNotIn("k:wire-up-the-handlers-toggle", self.client.applier.handle)
        self.assertFalse(self.session.dispatcher.is_live("k:wire-up-the-handlers-toggle"))

    def test_resize_updates_sidebar_text(self):
        self.client.resize("k:board", [42, 58])
        self.client.pump()
        self.assertEqual(self.framework.state.sizes.sizes, (42.0, 58.0))
        self.assertEqual(self.client.applier.handle.get("k:sidebar-size").attrs["text"], "Sidebar at 42%")

    def test_presentation_matches_backend_tree(self):
        self.client.click("k:add-task")
        self.client.pump()
        self.assertEqual(self.client.applier.snapshot(), render(self.session.tree).snapshot())


if __name__ == "__main__":
    unittest.main()
