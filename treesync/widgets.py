# treesync/widgets.py
"""
Fluent builders for the widget catalog.

Factories (``panel_group``, ``box``, ...) create nodes; configuration
functions (``direction``, ``padding``, ...) take a node and a value and return
a *new* node. None of them touch the node they were given, so it is always
safe to derive several variants from one shared base:

```python
base = panel_group(panel(30, text("A")), panel(70, text("B")))
stacked = vertical(base)     # base is still horizontal
```
"""

from typing import Any, Callable, Iterable, Optional, Union

from .base import Key, WidgetNode, create, with_children, with_handler, with_prop
from .events import EventKind
from .schema import Kind
from .styles import Align, BorderRadius, BorderStyle, Density, Orientation, Size, Thickness

KeyLike = Optional[Union[Key, Any]]


# --- Factories ---

def panel_group(*panels: WidgetNode, key: KeyLike = None, **props) -> WidgetNode:
    """A group of resizable panels separated by draggable handles."""
    for child in panels:
        if child.kind is not Kind.PANEL:
            raise TypeError(f"panel_group only accepts panels, got {child.kind.value}")
    return create(Kind.PANEL_GROUP, props, panels, key=key)


def panel(default_size: Optional[int] = None, *children: WidgetNode, key: KeyLike = None) -> WidgetNode:
    """A panel sized to ``default_size`` percent of its group, or auto when ``None``."""
    return create(Kind.PANEL, {"default_size": default_size}, children, key=key)


def box(*children: WidgetNode, key: KeyLike = None, **props) -> WidgetNode:
    return create(Kind.BOX, props, children, key=key)


def stack(*children: WidgetNode, key: KeyLike = None, **props) -> WidgetNode:
    return create(Kind.STACK, props, children, key=key)


def row(*children: WidgetNode, key: KeyLike = None, **props) -> WidgetNode:
    props.setdefault("orientation", Orientation.HORIZONTAL)
    return create(Kind.STACK, props, children, key=key)


def column(*children: WidgetNode, key: KeyLike = None, **props) -> WidgetNode:
    props.setdefault("orientation", Orientation.VERTICAL)
    return create(Kind.STACK, props, children, key=key)


def text(value: str, key: KeyLike = None, **props) -> WidgetNode:
    return create(Kind.TEXT, dict(props, text=value), key=key)


def button(label: str, on_click: Optional[Callable] = None, key: KeyLike = None, **props) -> WidgetNode:
    handlers = {EventKind.CLICK: on_click} if on_click else None
    return create(Kind.BUTTON, dict(props, label=label), key=key, handlers=handlers)


def option(value: str, label: Optional[str] = None, key: KeyLike = None, **props) -> WidgetNode:
    return create(Kind.OPTION, dict(props, value=value, label=label if label is not None else value), key=key)


def select(
    *options: WidgetNode,
    value: Optional[str] = None,
    on_select: Optional[Callable] = None,
    key: KeyLike = None,
    **props,
) -> WidgetNode:
    for child in options:
        if child.kind is not Kind.OPTION:
            raise TypeError(f"select only accepts options, got {child.kind.value}")
    handlers = {EventKind.SELECT: on_select} if on_select else None
    return create(Kind.SELECT, dict(props, value=value), options, key=key, handlers=handlers)


def detail(label: str, *children: WidgetNode, key: KeyLike = None, **props) -> WidgetNode:
    return create(Kind.DETAIL, dict(props, label=label), children, key=key)


# --- Panel group configuration ---

def direction(node: WidgetNode, value: Orientation) -> WidgetNode:
    return with_prop(node, "direction", value)


def horizontal(node: WidgetNode) -> WidgetNode:
    return with_prop(node, "direction", Orientation.HORIZONTAL)


def vertical(node: WidgetNode) -> WidgetNode:
    return with_prop(node, "direction", Orientation.VERTICAL)


def show_handle(node: WidgetNode, value: bool = True) -> WidgetNode:
    return with_prop(node, "show_handle", value)


def default_size(node: WidgetNode, value: Optional[int]) -> WidgetNode:
    return with_prop(node, "default_size", value)


def width(node: WidgetNode, value: Size) -> WidgetNode:
    return with_prop(node, "width", value)


def height(node: WidgetNode, value: Size) -> WidgetNode:
    return with_prop(node, "height", value)


# --- Box configuration ---

def border_thickness(node: WidgetNode, value: Union[int, Thickness]) -> WidgetNode:
    return with_prop(node, "border_thickness", value)


def border_radius(node: WidgetNode, value: BorderRadius) -> WidgetNode:
    return with_prop(node, "border_radius", value)


def border_style(node: WidgetNode, value: BorderStyle) -> WidgetNode:
    return with_prop(node, "border_style", value)


def padding(node: WidgetNode, value: Union[int, Thickness]) -> WidgetNode:
    return with_prop(node, "padding", value)


def margin(node: WidgetNode, value: Union[int, Thickness]) -> WidgetNode:
    return with_prop(node, "margin", value)


def content_align(node: WidgetNode, value: Optional[Align]) -> WidgetNode:
    return with_prop(node, "content_align", value)


def content(node: WidgetNode, *children: WidgetNode) -> WidgetNode:
    return with_children(node, children)


# --- Select, text and misc ---

def value(node: WidgetNode, selected: Optional[str]) -> WidgetNode:
    return with_prop(node, "value", selected)


def density(node: WidgetNode, value: Density) -> WidgetNode:
    return with_prop(node, "density", value)


def disabled(node: WidgetNode, value: bool = True) -> WidgetNode:
    return with_prop(node, "disabled", value)


def label(node: WidgetNode, value: str) -> WidgetNode:
    return with_prop(node, "label", value)


def multi_line(node: WidgetNode, value: bool = True) -> WidgetNode:
    return with_prop(node, "multi_line", value)


def actions(node: WidgetNode, nodes: Iterable[WidgetNode]) -> WidgetNode:
    return with_prop(node, "actions", tuple(nodes))


# --- Handlers ---

def on_click(node: WidgetNode, handler: Optional[Callable]) -> WidgetNode:
    return with_handler(node, EventKind.CLICK, handler)


def on_select(node: WidgetNode, handler: Optional[Callable]) -> WidgetNode:
    return with_handler(node, EventKind.SELECT, handler)


def on_resize(node: WidgetNode, handler: Optional[Callable]) -> WidgetNode:
    return with_handler(node, EventKind.RESIZE, handler)
