# treesync/router.py
"""
The Event Router.

Two halves talk through the codec:

``EventOutbox`` (presentation side) runs a small state machine per node:
``IDLE -> PENDING -> IDLE``. While a node has a message in flight, new
interactions on it wait in that node's queue. Discrete kinds (click, select)
are queued one by one and never dropped; continuous kinds (resize, input)
collapse into the latest value. Nodes do not wait for each other.

``EventDispatcher`` (backend side) resolves each message against the handler
table of the tree that is committed *now*, not the one that was on screen when
the event fired. A message for a node that no longer exists yields
``StaleEventIgnored``. That is an expected race, not an error.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, Mapping, Optional, Set, Union

from .codec import ProtocolCodec, SequenceCounter
from .events import DEFAULT_POLICIES, DeliveryPolicy, EventKind, EventMessage, details_for
from .reconciler import CallbackKey

logger = logging.getLogger(__name__)


class NodeState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


class _Lane:
    __slots__ = ("state", "in_flight", "queue")

    def __init__(self):
        self.state = NodeState.IDLE
        self.in_flight: Optional[EventMessage] = None
        self.queue: Deque[EventMessage] = deque()


class EventOutbox:
    """
    Presentation-side event queue.

    :param send: Called with each encoded wire message, in delivery order.
    :param codec: Codec used to encode messages.
    :param policies: Overrides of the per-kind delivery policy.
    """

    def __init__(
        self,
        send: Callable[[str], Any],
        codec: Optional[ProtocolCodec] = None,
        policies: Optional[Mapping[EventKind, DeliveryPolicy]] = None,
    ):
        self._send = send
        self.codec = codec or ProtocolCodec()
        self.policies: Dict[EventKind, DeliveryPolicy] = dict(DEFAULT_POLICIES)
        self.policies.update(policies or {})
        self._seq = SequenceCounter()
        self._lanes: Dict[str, _Lane] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, send: Callable[[str], Any], config=None, codec: Optional[ProtocolCodec] = None) -> "EventOutbox":
        """Builds an outbox whose coalesced kinds come from ``router.coalesce``."""
        from .config import Config
        config = config or Config()
        coalesce = set(config.get_nested("router.coalesce", []) or [])
        policies = {
            kind: DeliveryPolicy.COALESCE if kind.value in coalesce else DeliveryPolicy.QUEUE
            for kind in EventKind
            if kind is not EventKind.RESYNC
        }
        return cls(send, codec=codec, policies=policies)

    def post(self, message: EventMessage) -> bool:
        """
        Records an interaction. Returns True if it was sent right away, False
        if it is waiting behind the node's in-flight message.
        """
        with self._lock:
            lane = self._lanes.setdefault(message.node_id, _Lane())
            if lane.state is NodeState.IDLE:
                self._dispatch(lane, message)
                return True

            policy = self.policies.get(message.event_kind, DeliveryPolicy.QUEUE)
            if (
                policy is DeliveryPolicy.COALESCE
                and lane.queue
                and lane.queue[-1].event_kind is message.event_kind
            ):
                lane.queue[-1] = message
            else:
                lane.queue.append(message)
            return False

    def ack(self, node_id: str) -> Optional[EventMessage]:
        """
        Marks the node's in-flight message as handled. Sends the next queued
        message, if any, and returns it.
        """
        with self._lock:
            lane = self._lanes.get(node_id)
            if lane is None or lane.state is NodeState.IDLE:
                logger.debug("Ack for idle node %r ignored", node_id)
                return None
            lane.in_flight = None
            if lane.queue:
                message = lane.queue.popleft()
                self._dispatch(lane, message)
                return message
            lane.state = NodeState.IDLE
            del self._lanes[node_id]
            return None

    def lane_count(self) -> int:
        """Number of nodes with an in-flight message."""
        return len(self._lanes)

    def state_of(self, node_id: str) -> NodeState:
        lane = self._lanes.get(node_id)
        return lane.state if lane else NodeState.IDLE

    def queued(self, node_id: str) -> int:
        lane = self._lanes.get(node_id)
        return len(lane.queue) if lane else 0

    def in_flight(self, node_id: str) -> Optional[EventMessage]:
        lane = self._lanes.get(node_id)
        return lane.in_flight if lane else None

    def _dispatch(self, lane: _Lane, message: EventMessage):
        lane.state = NodeState.PENDING
        lane.in_flight = message
        self._send(self.codec.encode_event(message, self._seq.next()))


# --- Backend side ---

@dataclass(frozen=True)
class Delivered:
    message: EventMessage
    result: Any = None


@dataclass(frozen=True)
class StaleEventIgnored:
    """The node was removed between firing and delivery. Dropped on purpose."""
    message: EventMessage


@dataclass(frozen=True)
class NoHandler:
    """The node exists but nothing is bound to this kind of event on it."""
    message: EventMessage


DispatchOutcome = Union[Delivered, StaleEventIgnored, NoHandler]


class EventDispatcher:
    """
    Backend-side handler table. The session rebinds it on every commit so that
    lookups always see the current tree.
    """

    def __init__(self):
        self._callbacks: Dict[CallbackKey, Callable] = {}
        self._live_ids: Set[str] = set()
        self._lock = threading.Lock()

    def bind(self, callbacks: Mapping[CallbackKey, Callable], live_ids: Iterable[str]) -> None:
        with self._lock:
            self._callbacks = dict(callbacks)
            self._live_ids = set(live_ids)

    def is_live(self, node_id: str) -> bool:
        return node_id in self._live_ids

    def dispatch(self, message: EventMessage) -> DispatchOutcome:
        """
        Invokes the handler bound to ``message``'s node and kind. Exceptions
        raised by the handler propagate to the caller.
        """
        with self._lock:
            live = message.node_id in self._live_ids
            handler = self._callbacks.get((message.node_id, message.event_kind))

        if not live:
            logger.debug("Stale %s event for removed node %s ignored",
                         message.event_kind.value, message.node_id)
            return StaleEventIgnored(message)
        if handler is None:
            logger.debug("No %s handler on node %s", message.event_kind.value, message.node_id)
            return NoHandler(message)

        return Delivered(message, handler(details_for(message)))
