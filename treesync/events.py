# treesync/events.py
"""Event kinds, their delivery policies and the details objects handlers receive."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class EventKind(str, Enum):
    CLICK = "click"
    SELECT = "select"
    RESIZE = "resize"
    INPUT = "input"
    # Control message from the presentation layer, not bound to a widget.
    RESYNC = "resync"


class DeliveryPolicy(str, Enum):
    """How the outbox treats a new event while the node has one in flight."""
    QUEUE = "queue"        # every occurrence is delivered, in order
    COALESCE = "coalesce"  # only the latest pending value survives


DEFAULT_POLICIES: Dict[EventKind, DeliveryPolicy] = {
    EventKind.CLICK: DeliveryPolicy.QUEUE,
    EventKind.SELECT: DeliveryPolicy.QUEUE,
    EventKind.RESIZE: DeliveryPolicy.COALESCE,
    EventKind.INPUT: DeliveryPolicy.COALESCE,
    EventKind.RESYNC: DeliveryPolicy.COALESCE,
}


@dataclass(frozen=True)
class EventMessage:
    """One UI interaction, addressed by the stable id of the node it happened on."""
    node_id: str
    event_kind: EventKind
    payload: Optional[Any] = None


@dataclass
class ClickDetails:
    """Details for a click. Carries nothing beyond the node it happened on."""
    node_id: str


@dataclass
class SelectDetails:
    node_id: str
    value: Optional[str]


@dataclass
class ResizeDetails:
    """New size distribution of a panel group, one percentage per panel."""
    node_id: str
    sizes: Tuple[float, ...] = field(default_factory=tuple)


@dataclass
class InputDetails:
    node_id: str
    text: str = ""


def details_for(message: EventMessage):
    """Builds the details object a handler receives for ``message``."""
    kind = message.event_kind
    payload = message.payload
    if kind is EventKind.CLICK:
        return ClickDetails(message.node_id)
    if kind is EventKind.SELECT:
        value = payload.get("value") if isinstance(payload, dict) else payload
        return SelectDetails(message.node_id, value)
    if kind is EventKind.RESIZE:
        sizes = payload.get("sizes", ()) if isinstance(payload, dict) else payload or ()
        return ResizeDetails(message.node_id, tuple(float(s) for s in sizes))
    if kind is EventKind.INPUT:
        text = payload.get("text", "") if isinstance(payload, dict) else payload or ""
        return InputDetails(message.node_id, str(text))
    raise ValueError(f"No handler details for event kind {kind.value!r}")
