# treesync/demo.py
"""A small task board used by ``treesync run`` and ``treesync demo``."""

from .base import WidgetNode
from .controllers import PanelSizesController, ValueController
from .state import State
from .styles import Align, Density
from .widgets import (
    button, column, detail, on_resize, option, panel, panel_group, row, select,
    show_handle, text,
)

FILTERS = (("all", "All tasks"), ("open", "Open"), ("done", "Done"))


class TaskBoardState(State):
    def __init__(self, session=None):
        self.tasks = [["Sketch the layout", False], ["Wire up the handlers", False]]
        self._next_task = len(self.tasks) + 1
        self.filter = ValueController("all")
        self.sizes = PanelSizesController((30, 70))
        super().__init__(session)

    def initState(self):
        self.filter.add_listener(self.setState)
        self.sizes.add_listener(self.setState)

    def dispose(self):
        self.filter.remove_listener(self.setState)
        self.sizes.remove_listener(self.setState)

    # --- Handlers ---

    def add_task(self, details):
        def add():
            self.tasks.append([f"Task {self._next_task}", False])
            self._next_task += 1
        self.setState(add)

    def toggle_task(self, name):
        def handler(details):
            for task in self.tasks:
                if task[0] == name:
                    task[1] = not task[1]
            self.setState()
        return handler

    def remove_task(self, name):
        def handler(details):
            self.tasks = [task for task in self.tasks if task[0] != name]
            self.setState()
        return handler

    # --- Build ---

    def visible_tasks(self):
        mode = self.filter.value or "all"
        if mode == "open":
            return [task for task in self.tasks if not task[1]]
        if mode == "done":
            return [task for task in self.tasks if task[1]]
        return list(self.tasks)

    def build_task(self, name: str, done: bool) -> WidgetNode:
        slug = name.lower().replace(" ", "-")
        return detail(
            f"{name} (done)" if done else name,
            text("Completed" if done else "Still open", key=f"{slug}-status"),
            key=f"task-{slug}",
            actions=(
                button("Undo" if done else "Done", on_click=self.toggle_task(name), key=f"{slug}-toggle"),
                button("Remove", on_click=self.remove_task(name), key=f"{slug}-remove"),
            ),
        )

    def build(self) -> WidgetNode:
        tasks = self.visible_tasks()
        sidebar = panel(
            30,
            column(
                text("Filter", key="filter-title"),
                select(
                    *(option(value, label, key=f"filter-{value}") for value, label in FILTERS),
                    value=self.filter.value,
                    on_select=self.filter.on_select,
                    placeholder="Choose a filter",
                    density=Density.SMALL,
                    key="filter",
                ),
                button("Add task", on_click=self.add_task, key="add-task"),
                text(f"Sidebar at {self.sizes.size_of(0, 30):.0f}%", truncate=True, key="sidebar-size"),
                key="sidebar-column",
            ),
            key="sidebar",
        )
        content = panel(
            70,
            column(
                row(
                    text(f"{len(tasks)} of {len(self.tasks)} tasks", key="task-count"),
                    align=Align.CENTER_LEFT,
                    key="header",
                ),
                *(self.build_task(name, done) for name, done in tasks),
                key="task-list",
            ),
            key="content",
        )
        group = show_handle(panel_group(sidebar, content, key="board"), True)
        return on_resize(group, self.sizes.on_resize)
