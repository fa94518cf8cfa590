# treesync/codec.py
"""
The Patch Protocol Codec.

Every message is a JSON object carrying a protocol version and a sequence
number scoped to the session.

Backend -> presentation::

    {"version": 1, "seq": 7, "kind": "mount", "payload": {"reason": "initial", "tree": {...}}}
    {"version": 1, "seq": 8, "kind": "patch", "payload": [{"op": "set_prop", ...}, ...]}
    {"version": 1, "seq": 9, "kind": "ack", "payload": {"nodeId": "w12", "eventSeq": 3}}

Presentation -> backend::

    {"version": 1, "seq": 3, "nodeId": "w12", "eventKind": "click", "payload": null}

Property values that are not plain JSON scalars are tagged (``$enum``,
``$size``, ``$thickness``, ``$node``, ``$nodes``). A value the codec does not
know how to carry raises ``UnsupportedValueTypeError``; it is never turned
into a string or dropped.
"""

import itertools
import json
import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .base import WidgetNode
from .config import Config
from .errors import MalformedMessageError, ProtocolVersionError, UnsupportedValueTypeError
from .events import EventKind, EventMessage
from .reconciler import InsertChild, Mount, MoveChild, Patch, RemoveChild, ReplaceNode, SetProp
from .schema import Kind, coerce_value, schema_for
from .styles import ENUM_TYPES, Size, Thickness

PROTOCOL_VERSION = 1

MOUNT = "mount"
PATCH = "patch"
ACK = "ack"


class SequenceCounter:
    """Monotonically increasing sequence numbers for one direction of one session."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()
        self.last: int = start - 1

    def next(self) -> int:
        with self._lock:
            self.last = next(self._counter)
            return self.last


@dataclass(frozen=True)
class MountPayload:
    tree: WidgetNode
    reason: str = "initial"


@dataclass(frozen=True)
class AckPayload:
    """Tells the outbox that the event `event_seq` on `node_id` was handled."""
    node_id: str
    event_seq: int


@dataclass(frozen=True)
class Envelope:
    """A decoded backend -> presentation message."""
    version: int
    seq: int
    kind: str
    payload: Union[MountPayload, AckPayload, Tuple[Patch, ...]]


@dataclass(frozen=True)
class EventEnvelope:
    """A decoded presentation -> backend message."""
    version: int
    seq: int
    message: EventMessage


def _require(data: Dict, key: str, types, what: str):
    if key not in data:
        raise MalformedMessageError(f"{what} is missing '{key}'")
    value = data[key]
    if not isinstance(value, types) or (isinstance(value, bool) and bool not in _as_tuple(types)):
        raise MalformedMessageError(f"{what} field '{key}' has invalid value {value!r}")
    return value


def _as_tuple(types):
    return types if isinstance(types, tuple) else (types,)


def _check_event_payload(event_kind: EventKind, payload):
    # Click payloads are ignored by handlers, so any value passes.
    if event_kind is EventKind.CLICK:
        return
    what = f"{event_kind.value.capitalize()} payload"
    if payload is None and event_kind is EventKind.RESYNC:
        return
    if not isinstance(payload, dict):
        raise MalformedMessageError(f"{what} must be an object, got {payload!r}")
    if event_kind is EventKind.SELECT:
        if payload.get("value") is not None:
            _require(payload, "value", str, what)
    elif event_kind is EventKind.INPUT:
        _require(payload, "text", str, what)
    elif event_kind is EventKind.RESIZE:
        sizes = _require(payload, "sizes", list, what)
        for size in sizes:
            if isinstance(size, bool) or not isinstance(size, (int, float)) or not math.isfinite(size):
                raise MalformedMessageError(f"{what} has invalid size {size!r}")
    elif event_kind is EventKind.RESYNC:
        if payload.get("lastSeq") is not None:
            _require(payload, "lastSeq", int, what)


class ProtocolCodec:
    """
    Encodes and decodes wire messages.

    :param version: Version written into outgoing messages. Defaults to the
        ``protocol.version`` config key.
    :param supported_versions: Versions accepted on decode. Defaults to the
        ``protocol.supported_versions`` config key, or just ``version``.
    """

    def __init__(self, version: Optional[int] = None, supported_versions: Optional[Iterable[int]] = None):
        config = Config()
        self.version = version if version is not None else config.get_nested("protocol.version", PROTOCOL_VERSION)
        if supported_versions is None:
            supported_versions = config.get_nested("protocol.supported_versions", None) or [self.version]
        self.supported_versions = frozenset(supported_versions) | {self.version}

    # --- Values ---

    def encode_value(self, value: Any) -> Any:
        if isinstance(value, Enum):
            cls = type(value)
            if ENUM_TYPES.get(cls.__name__) is not cls:
                raise UnsupportedValueTypeError(f"Enum {cls.__name__} is not a wire type", value)
            return {"$enum": cls.__name__, "value": value.value}
        if value is None or isinstance(value, (bool, int, str)):
            return value
        if isinstance(value, float):
            if not math.isfinite(value):
                raise UnsupportedValueTypeError(f"Non-finite float {value!r} cannot be encoded", value)
            return value
        if isinstance(value, Size):
            return {"$size": [value.unit, value.value]}
        if isinstance(value, Thickness):
            return {"$thickness": list(value.to_tuple())}
        if isinstance(value, WidgetNode):
            return {"$node": self.encode_node(value)}
        if isinstance(value, tuple) and all(isinstance(item, WidgetNode) for item in value):
            return {"$nodes": [self.encode_node(item) for item in value]}
        raise UnsupportedValueTypeError(
            f"Cannot encode value of type {type(value).__name__}: {value!r}", value
        )

    def decode_value(self, data: Any) -> Any:
        if data is None or isinstance(data, (bool, int, float, str)):
            return data
        if isinstance(data, dict) and len(data) >= 1:
            if "$enum" in data:
                enum_cls = ENUM_TYPES.get(data["$enum"])
                if enum_cls is None:
                    raise UnsupportedValueTypeError(f"Unknown enum type {data['$enum']!r}", data)
                try:
                    return enum_cls(data.get("value"))
                except ValueError:
                    raise UnsupportedValueTypeError(
                        f"{data.get('value')!r} is not a {enum_cls.__name__}", data
                    ) from None
            if "$size" in data:
                try:
                    unit, magnitude = data["$size"]
                    return Size(unit, magnitude)
                except (TypeError, ValueError) as e:
                    raise UnsupportedValueTypeError(f"Invalid size {data['$size']!r}: {e}", data) from None
            if "$thickness" in data:
                sides = data["$thickness"]
                if not isinstance(sides, list) or len(sides) != 4 or not all(
                    isinstance(s, int) and not isinstance(s, bool) for s in sides
                ):
                    raise UnsupportedValueTypeError(f"Invalid thickness {sides!r}", data)
                return Thickness(*sides)
            if "$node" in data:
                return self.decode_node(data["$node"])
            if "$nodes" in data:
                items = data["$nodes"]
                if not isinstance(items, list):
                    raise MalformedMessageError(f"'$nodes' must be a list, got {items!r}")
                return tuple(self.decode_node(item) for item in items)
        raise UnsupportedValueTypeError(f"Unsupported value shape: {data!r}", data)

    # --- Nodes ---

    def encode_node(self, node: WidgetNode) -> Dict[str, Any]:
        return {
            "kind": node.kind.value,
            "id": node.id,
            "props": {name: self.encode_value(value) for name, value in node.props.items()},
            "children": [self.encode_node(child) for child in node.children],
        }

    def decode_node(self, data: Any) -> WidgetNode:
        if not isinstance(data, dict):
            raise MalformedMessageError(f"Node must be an object, got {data!r}")
        kind_name = _require(data, "kind", str, "Node")
        node_id = _require(data, "id", str, "Node")
        raw_props = _require(data, "props", dict, "Node")
        raw_children = _require(data, "children", list, "Node")
        try:
            kind = Kind(kind_name)
        except ValueError:
            raise MalformedMessageError(f"Unknown widget kind {kind_name!r}") from None

        schema = schema_for(kind)
        props = schema.defaults()
        for name, raw in raw_props.items():
            if name not in props:
                raise MalformedMessageError(f"Widget kind '{kind_name}' has no property '{name}'")
            props[name] = coerce_value(kind, name, self.decode_value(raw))

        children = tuple(self.decode_node(child) for child in raw_children)
        return WidgetNode(kind, node_id, props, children)

    # --- Patches ---

    def encode_patch(self, patch: Patch) -> Dict[str, Any]:
        if isinstance(patch, SetProp):
            return {"op": "set_prop", "nodeId": patch.node_id, "name": patch.name,
                    "value": self.encode_value(patch.value)}
        if isinstance(patch, InsertChild):
            return {"op": "insert", "parentId": patch.parent_id, "index": patch.index,
                    "subtree": self.encode_node(patch.subtree)}
        if isinstance(patch, RemoveChild):
            return {"op": "remove", "parentId": patch.parent_id, "index": patch.index,
                    "childId": patch.child_id}
        if isinstance(patch, MoveChild):
            return {"op": "move", "parentId": patch.parent_id, "from": patch.from_index,
                    "to": patch.to_index}
        if isinstance(patch, ReplaceNode):
            return {"op": "replace", "nodeId": patch.node_id, "subtree": self.encode_node(patch.subtree)}
        if isinstance(patch, Mount):
            return {"op": "mount", "subtree": self.encode_node(patch.subtree)}
        raise UnsupportedValueTypeError(f"Not a patch: {patch!r}", patch)

    def decode_patch(self, data: Any) -> Patch:
        if not isinstance(data, dict):
            raise MalformedMessageError(f"Patch must be an object, got {data!r}")
        op = _require(data, "op", str, "Patch")
        what = f"Patch '{op}'"
        if op == "set_prop":
            if "value" not in data:
                raise MalformedMessageError(f"{what} is missing 'value'")
            return SetProp(_require(data, "nodeId", str, what), _require(data, "name", str, what),
                           self.decode_value(data["value"]))
        if op == "insert":
            return InsertChild(_require(data, "parentId", str, what), _require(data, "index", int, what),
                               self.decode_node(data.get("subtree")))
        if op == "remove":
            return RemoveChild(_require(data, "parentId", str, what), _require(data, "index", int, what),
                               _require(data, "childId", str, what))
        if op == "move":
            return MoveChild(_require(data, "parentId", str, what), _require(data, "from", int, what),
                             _require(data, "to", int, what))
        if op == "replace":
            return ReplaceNode(_require(data, "nodeId", str, what), self.decode_node(data.get("subtree")))
        if op == "mount":
            return Mount(self.decode_node(data.get("subtree")))
        raise MalformedMessageError(f"Unknown patch op {op!r}")

    # --- Envelopes ---

    def _dumps(self, message: Dict[str, Any]) -> str:
        try:
            return json.dumps(message, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError) as e:
            raise UnsupportedValueTypeError(f"Message is not JSON encodable: {e}") from e

    def _loads(self, text: Union[str, bytes]) -> Dict[str, Any]:
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise MalformedMessageError(f"Message is not valid JSON: {e}") from None
        if not isinstance(data, dict):
            raise MalformedMessageError(f"Message must be a JSON object, got {type(data).__name__}")
        if "version" not in data:
            raise MalformedMessageError("Message is missing 'version'")
        version = data["version"]
        if isinstance(version, bool) or not isinstance(version, int) or version not in self.supported_versions:
            raise ProtocolVersionError(version, sorted(self.supported_versions))
        seq = _require(data, "seq", int, "Message")
        if seq < 0:
            raise MalformedMessageError(f"Negative sequence number {seq}")
        return data

    def encode_mount(self, tree: WidgetNode, seq: int, reason: str = "initial") -> str:
        return self._dumps({
            "version": self.version,
            "seq": seq,
            "kind": MOUNT,
            "payload": {"reason": reason, "tree": self.encode_node(tree)},
        })

    def encode_patches(self, patches: Iterable[Patch], seq: int) -> str:
        return self._dumps({
            "version": self.version,
            "seq": seq,
            "kind": PATCH,
            "payload": [self.encode_patch(p) for p in patches],
        })

    def decode_message(self, text: Union[str, bytes]) -> Envelope:
        """
        Decodes a backend -> presentation message.

        :raises ProtocolVersionError: on an unsupported version.
        :raises MalformedMessageError: on any structural problem.
        :raises UnsupportedValueTypeError: on an unknown value shape.
        """
        data = self._loads(text)
        kind = _require(data, "kind", str, "Message")
        payload = data.get("payload")
        if kind == MOUNT:
            if not isinstance(payload, dict):
                raise MalformedMessageError("Mount payload must be an object")
            reason = payload.get("reason", "initial")
            return Envelope(data["version"], data["seq"], MOUNT,
                            MountPayload(self.decode_node(payload.get("tree")), str(reason)))
        if kind == PATCH:
            if not isinstance(payload, list):
                raise MalformedMessageError("Patch payload must be a list")
            return Envelope(data["version"], data["seq"], PATCH,
                            tuple(self.decode_patch(p) for p in payload))
        if kind == ACK:
            if not isinstance(payload, dict):
                raise MalformedMessageError("Ack payload must be an object")
            return Envelope(data["version"], data["seq"], ACK,
                            AckPayload(_require(payload, "nodeId", str, "Ack"),
                                       _require(payload, "eventSeq", int, "Ack")))
        raise MalformedMessageError(f"Unknown message kind {kind!r}")

    def encode_ack(self, node_id: str, event_seq: int, seq: int) -> str:
        return self._dumps({
            "version": self.version,
            "seq": seq,
            "kind": ACK,
            "payload": {"nodeId": node_id, "eventSeq": event_seq},
        })

    def encode_event(self, message: EventMessage, seq: int) -> str:
        return self._dumps({
            "version": self.version,
            "seq": seq,
            "nodeId": message.node_id,
            "eventKind": message.event_kind.value,
            "payload": message.payload,
        })

    def decode_event(self, text: Union[str, bytes]) -> EventEnvelope:
        """Decodes a presentation -> backend message. Raises like ``decode_message``."""
        data = self._loads(text)
        raw_kind = _require(data, "eventKind", str, "Event")
        try:
            event_kind = EventKind(raw_kind)
        except ValueError:
            raise MalformedMessageError(f"Unknown event kind {raw_kind!r}") from None
        node_id = data.get("nodeId")
        if event_kind is EventKind.RESYNC:
            node_id = node_id or ""
        elif not isinstance(node_id, str) or not node_id:
            raise MalformedMessageError(f"Event has invalid 'nodeId' {node_id!r}")
        payload = data.get("payload")
        _check_event_payload(event_kind, payload)
        return EventEnvelope(data["version"], data["seq"], EventMessage(node_id, event_kind, payload))
