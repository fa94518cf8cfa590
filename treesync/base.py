# treesync/base.py
"""
The Widget Node Model.

A ``WidgetNode`` is an immutable record: a kind tag, a stable identity, a
property bag ordered by the kind's schema, an ordered tuple of children and a
backend-only table of event handlers. Every "change" returns a new node that
shares the untouched parts with the old one, so a holder of an older reference
never observes a mutation.
"""

import itertools
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from .errors import DuplicateNodeIdError, UnknownPropertyError
from .events import EventKind
from .schema import Kind, coerce_value, schema_for


# --- Key Class ---
class Key:
    """
    A stable, user-chosen identity for a widget.

    Passing the same key to a builder on every update cycle makes the node keep
    its id across rebuilds, which is what lets the differ emit ``SetProp`` and
    ``MoveChild`` instead of remove+insert pairs.

    :param value: Any hashable value (lists and dicts are converted).
    """

    def __init__(self, value: Any):
        self.value = make_hashable(value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Key) and self.value == other.value

    def __hash__(self) -> int:
        return hash((self.__class__, self.value))

    def __repr__(self) -> str:
        return f"Key({self.value!r})"

    def to_node_id(self) -> str:
        return f"k:{self.value}"


def make_hashable(value):
    """
    Converts a given value to a hashable representation.

    :param value: Any value or style object (Size, Thickness, ...)
    :return: A hashable version of the value.
    """
    if hasattr(value, "to_tuple"):
        return value.to_tuple()
    if isinstance(value, (str, int, float, bool, tuple, type(None))):
        return value
    if isinstance(value, list):
        return tuple(make_hashable(v) for v in value)
    if isinstance(value, dict):
        return tuple(sorted((k, make_hashable(v)) for k, v in value.items()))
    try:
        hash(value)
        return value
    except TypeError:
        raise TypeError(
            f"Key value {value!r} of type {type(value)} could not be made hashable."
        ) from None


class IDGenerator:
    """Hands out fresh node ids. ``itertools.count`` keeps it safe across threads."""

    def __init__(self, prefix: str = "w"):
        self._prefix = prefix
        self._counter = itertools.count(1)

    def next_id(self) -> str:
        return f"{self._prefix}{next(self._counter)}"


_id_generator = IDGenerator()

Handler = Callable[[Any], Any]


class WidgetNode:
    """
    One UI element in the backend tree.

    Do not call the constructor directly; use ``create`` (or a builder from
    ``treesync.widgets``), which validates properties against the schema.
    """

    __slots__ = ("_kind", "_id", "_props", "_children", "_handlers")

    def __init__(
        self,
        kind: Kind,
        node_id: str,
        props: Dict[str, Any],
        children: Tuple["WidgetNode", ...],
        handlers: Optional[Dict[EventKind, Handler]] = None,
    ):
        object.__setattr__(self, "_kind", kind)
        object.__setattr__(self, "_id", node_id)
        object.__setattr__(self, "_props", props)
        object.__setattr__(self, "_children", children)
        object.__setattr__(self, "_handlers", handlers or {})

    def __setattr__(self, name, value):
        raise AttributeError(f"WidgetNode is immutable; use with_prop() instead of setting '{name}'")

    def __delattr__(self, name):
        raise AttributeError("WidgetNode is immutable")

    @property
    def kind(self) -> Kind:
        return self._kind

    @property
    def id(self) -> str:
        return self._id

    @property
    def props(self) -> Mapping[str, Any]:
        return MappingProxyType(self._props)

    @property
    def children(self) -> Tuple["WidgetNode", ...]:
        return self._children

    @property
    def handlers(self) -> Mapping[EventKind, Handler]:
        return MappingProxyType(self._handlers)

    def get(self, name: str) -> Any:
        if name not in self._props:
            raise UnknownPropertyError(self._kind.value, name)
        return self._props[name]

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WidgetNode):
            return NotImplemented
        return (
            self._kind is other._kind
            and self._id == other._id
            and self._props == other._props
            and self._children == other._children
        )

    def __hash__(self) -> int:
        return hash((self._kind, self._id))

    def __repr__(self) -> str:
        changed = {
            name: value
            for name, value in self._props.items()
            if value != schema_for(self._kind).spec_for(name).default
        }
        return f"{self._kind.value}#{self._id}({changed}, children={len(self._children)})"


def _check_siblings(parent_id: str, children: Tuple[WidgetNode, ...]) -> None:
    seen = set()
    for child in children:
        if not isinstance(child, WidgetNode):
            raise TypeError(f"Children must be WidgetNode values, got {type(child).__name__}")
        if child.id in seen:
            raise DuplicateNodeIdError(parent_id, child.id)
        seen.add(child.id)


def create(
    kind: Union[Kind, str],
    initial_props: Optional[Mapping[str, Any]] = None,
    children: Iterable[WidgetNode] = (),
    key: Optional[Union[Key, Any]] = None,
    handlers: Optional[Mapping[Union[EventKind, str], Handler]] = None,
) -> WidgetNode:
    """
    Creates a node of ``kind`` with schema defaults overlaid by ``initial_props``.

    A fresh identity is assigned unless ``key`` is given, in which case the id
    is derived from the key and is the same on every call.

    :raises UnknownPropertyError: for a property the kind does not declare.
    :raises UnsupportedValueTypeError: for a value of the wrong shape.
    """
    kind = Kind(kind)
    schema = schema_for(kind)
    props = schema.defaults()
    for name, value in (initial_props or {}).items():
        props[name] = coerce_value(kind, name, value)

    if key is None:
        node_id = _id_generator.next_id()
    else:
        node_id = (key if isinstance(key, Key) else Key(key)).to_node_id()

    children = tuple(children)
    _check_siblings(node_id, children)

    bound = {}
    for event_kind, handler in (handlers or {}).items():
        event_kind = _check_event(kind, event_kind)
        bound[event_kind] = handler

    return WidgetNode(kind, node_id, props, children, bound)


def _check_event(kind: Kind, event_kind) -> EventKind:
    try:
        event_kind = EventKind(event_kind)
    except ValueError:
        raise UnknownPropertyError(kind.value, f"on_{event_kind}") from None
    if event_kind not in schema_for(kind).events:
        raise UnknownPropertyError(kind.value, f"on_{event_kind.value}")
    return event_kind


def with_prop(node: WidgetNode, name: str, value: Any) -> WidgetNode:
    """Returns a copy of ``node`` with one property replaced. Same identity."""
    value = coerce_value(node.kind, name, value)
    props = dict(node._props)
    props[name] = value
    return WidgetNode(node.kind, node.id, props, node.children, node._handlers)


def with_props(node: WidgetNode, **changes: Any) -> WidgetNode:
    props = dict(node._props)
    for name, value in changes.items():
        props[name] = coerce_value(node.kind, name, value)
    return WidgetNode(node.kind, node.id, props, node.children, node._handlers)


def with_children(node: WidgetNode, children: Iterable[WidgetNode]) -> WidgetNode:
    """Returns a copy of ``node`` with a new child sequence. Same identity."""
    children = tuple(children)
    _check_siblings(node.id, children)
    return WidgetNode(node.kind, node.id, node._props, children, node._handlers)


def with_handler(node: WidgetNode, event_kind: Union[EventKind, str], handler: Optional[Handler]) -> WidgetNode:
    """Binds (or, with ``None``, unbinds) the handler for ``event_kind``."""
    event_kind = _check_event(node.kind, event_kind)
    handlers = dict(node._handlers)
    if handler is None:
        handlers.pop(event_kind, None)
    else:
        handlers[event_kind] = handler
    return WidgetNode(node.kind, node.id, node._props, node.children, handlers)


def walk(node: Optional[WidgetNode]) -> Iterator[WidgetNode]:
    """Yields ``node`` and its descendants, depth first, in child order."""
    if node is None:
        return
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def find(root: Optional[WidgetNode], node_id: str) -> Optional[WidgetNode]:
    for node in walk(root):
        if node.id == node_id:
            return node
    return None
