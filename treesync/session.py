# treesync/session.py
"""
One live connection between a backend tree and a presentation layer.

A ``Session`` owns the committed tree. ``commit(new_tree)`` diffs it against
the last committed tree, sends the patches and rebinds the event dispatcher,
all under one lock. A commit that arrives while another one is running is
parked in a single slot (the latest tree wins) and picked up by the running
cycle, so the diff is always against what was actually sent.

Incoming events are dispatched under the same lock. Each event is answered
with an ``ack`` after the patches its handler caused, which lets the
presentation release the next queued event for that node.

Protocol errors end the session. The ``SessionHost`` keeps running and mounts
the next connection with reason ``resync``.
"""

import logging
import threading
import uuid
from collections import deque
from typing import Any, Callable, Deque, List, Optional

from .applier import ElementSurface, PatchReceiver, RenderApplier, ViewSurface
from .base import WidgetNode
from .codec import ProtocolCodec, SequenceCounter
from .config import Config
from .errors import ProtocolError, SessionClosedError
from .events import EventKind, EventMessage
from .reconciler import Mount, Reconciler
from .router import DispatchOutcome, EventDispatcher, EventOutbox

logger = logging.getLogger(__name__)

Scheduler = Callable[[Callable[[], Any]], Any]


def call_now(callback: Callable[[], Any]) -> Any:
    """Headless scheduler: runs the callback immediately."""
    return callback()


class Transport:
    """Carries encoded backend messages to the presentation."""

    session: Optional["Session"] = None
    closed = False

    def bind(self, session: "Session") -> None:
        self.session = session

    def send(self, text: str) -> None:
        raise NotImplementedError

    def close(self, reason: Optional[str] = None) -> None:
        self.closed = True


class LoopbackTransport(Transport):
    """
    In-process transport. Messages wait in two queues until ``pump()``
    delivers them, so nothing is re-entered while a cycle is running.
    """

    def __init__(self):
        self._to_presentation: Deque[str] = deque()
        self._to_backend: Deque[str] = deque()
        self.on_message: Optional[Callable[[str], Any]] = None
        self.history: List[str] = []
        self.close_reason: Optional[str] = None

    def send(self, text: str) -> None:
        if self.closed:
            logger.debug("Loopback closed, dropping message")
            return
        self.history.append(text)
        self._to_presentation.append(text)

    def post(self, text: str) -> None:
        """Presentation -> backend."""
        if not self.closed:
            self._to_backend.append(text)

    def close(self, reason: Optional[str] = None) -> None:
        super().close(reason)
        self.close_reason = reason

    def pending(self) -> int:
        return len(self._to_presentation) + len(self._to_backend)

    def pump(self, limit: int = 10000) -> int:
        """Delivers queued messages in both directions until both are empty."""
        delivered = 0
        while delivered < limit and (self._to_presentation or self._to_backend):
            if self._to_presentation:
                text = self._to_presentation.popleft()
                if self.on_message is not None:
                    self.on_message(text)
            else:
                text = self._to_backend.popleft()
                if self.session is not None and not self.session.closed:
                    self.session.receive_event(text)
            delivered += 1
        return delivered


class Session:
    """
    :param transport: Where encoded messages go.
    :param codec: Wire codec; defaults to one built from config.
    :param scheduler: Runs deferred rebuilds. ``call_now`` headless,
        ``QTimer.singleShot(0, ...)`` under Qt.
    :param max_queued_commits: Commits processed back to back before the
        rest is handed to the scheduler. Defaults to
        ``session.max_queued_commits``.
    """

    def __init__(
        self,
        transport: Transport,
        codec: Optional[ProtocolCodec] = None,
        scheduler: Optional[Scheduler] = None,
        session_id: Optional[str] = None,
        max_queued_commits: Optional[int] = None,
    ):
        self.id = session_id or uuid.uuid4().hex[:8]
        self.transport = transport
        self.codec = codec or ProtocolCodec()
        self.scheduler = scheduler or call_now
        if max_queued_commits is None:
            max_queued_commits = Config().get_nested("session.max_queued_commits", 64)
        self.max_queued_commits = max(1, int(max_queued_commits))

        self.reconciler = Reconciler()
        self.dispatcher = EventDispatcher()
        self.tree: Optional[WidgetNode] = None
        self.closed = False
        self.terminated = False
        self.close_reason: Optional[str] = None

        self._seq = SequenceCounter()
        self._commit_lock = threading.Lock()
        self._pending_lock = threading.Lock()
        self._pending: Optional[WidgetNode] = None
        self._has_pending = False
        self._rebuild_requested = False
        self._rebuild: Optional[Callable[[], Optional[WidgetNode]]] = None

        transport.bind(self)

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"<Session {self.id} {state} seq={self._seq.last}>"

    @property
    def last_seq(self) -> int:
        return self._seq.last

    # --- Commits ---

    def commit(self, new_tree: Optional[WidgetNode]) -> None:
        """
        Makes ``new_tree`` the committed tree and sends the difference.

        :raises SessionClosedError: if the session is closed.
        :raises DuplicateNodeIdError: if ``new_tree`` reuses an id.
        """
        self._ensure_open()
        with self._pending_lock:
            self._pending = new_tree
            self._has_pending = True
        self._drain_if_idle()

    def mount(self, tree: Optional[WidgetNode], reason: str = "initial") -> None:
        """Sends ``tree`` as a full mount, whatever was committed before."""
        self._ensure_open()
        with self._commit_lock:
            self.tree = None
            self._commit_one(tree, reason)
            deferred = self._drain()
        self._continue(deferred)

    def request_rebuild(self, build_tree: Callable[[], Optional[WidgetNode]]) -> None:
        """
        Schedules ``commit(build_tree())``. Requests made before the scheduler
        runs collapse into one rebuild.
        """
        if self.closed:
            logger.debug("Rebuild requested on closed session %s ignored", self.id)
            return
        self._rebuild = build_tree
        if not self._rebuild_requested:
            self._rebuild_requested = True
            self.scheduler(self._process_rebuild)

    def _process_rebuild(self):
        self._rebuild_requested = False
        build_tree, self._rebuild = self._rebuild, None
        if self.closed or build_tree is None:
            return
        self.commit(build_tree())

    def _drain_if_idle(self):
        while self._commit_lock.acquire(blocking=False):
            try:
                deferred = self._drain()
            finally:
                self._commit_lock.release()
            if deferred:
                self.scheduler(self._drain_if_idle)
                return
            with self._pending_lock:
                if not self._has_pending or self.closed:
                    return

    def _continue(self, deferred: bool):
        # Called after releasing the commit lock.
        if deferred:
            self.scheduler(self._drain_if_idle)
        else:
            self._drain_if_idle()

    def _drain(self) -> bool:
        """
        Runs parked commits. Caller holds the commit lock. Returns True if
        commits are still parked because the ``max_queued_commits`` cap was hit.
        """
        rounds = 0
        while True:
            with self._pending_lock:
                if not self._has_pending or self.closed:
                    self._pending, self._has_pending = None, False
                    return False
                if rounds >= self.max_queued_commits:
                    logger.debug("Session %s: %d commits in a row, deferring the rest", self.id, rounds)
                    return True
                tree, self._pending, self._has_pending = self._pending, None, False
            self._commit_one(tree)
            rounds += 1

    def _commit_one(self, tree: Optional[WidgetNode], reason: str = "initial"):
        result = self.reconciler.reconcile(self.tree, tree)
        if self.closed:
            # Closed while diffing; the cycle is abandoned.
            return
        self.tree = tree
        self.dispatcher.bind(result.registered_callbacks, result.live_ids)

        patches = result.patches
        if len(patches) == 1 and isinstance(patches[0], Mount):
            self._send(self.codec.encode_mount(patches[0].subtree, self._seq.next(), reason))
        elif patches:
            self._send(self.codec.encode_patches(patches, self._seq.next()))
        logger.debug("Session %s committed %d nodes, %d patches", self.id, result.node_count, len(patches))

    # --- Events ---

    def receive_event(self, text: str) -> Optional[DispatchOutcome]:
        """
        Handles one presentation -> backend message. A protocol error ends the
        session and returns None; handler exceptions propagate.

        :raises SessionClosedError: if the session is closed.
        """
        self._ensure_open()
        try:
            envelope = self.codec.decode_event(text)
        except ProtocolError as e:
            self.terminate(f"{type(e).__name__}: {e}")
            return None

        message = envelope.message
        if message.event_kind is EventKind.RESYNC:
            logger.info("Session %s: resync requested after seq %s", self.id,
                        (message.payload or {}).get("lastSeq"))
            with self._commit_lock:
                if not self._resend_mount():
                    self._ack(message, envelope.seq)
                deferred = self._drain()
            self._continue(deferred)
            return None

        with self._commit_lock:
            try:
                outcome = self.dispatcher.dispatch(message)
                deferred = self._drain()
            finally:
                self._ack(message, envelope.seq)
        self._continue(deferred)
        return outcome

    def _ack(self, message: EventMessage, event_seq: int):
        if not self.closed:
            self._send(self.codec.encode_ack(message.node_id, event_seq, self._seq.next()))

    def _resend_mount(self) -> bool:
        # Without a tree there is nothing to mount; the caller acks instead.
        if self.tree is None:
            logger.debug("Session %s has no tree to resync", self.id)
            return False
        self._send(self.codec.encode_mount(self.tree, self._seq.next(), "resync"))
        return True

    def _send(self, text: str):
        if self.closed:
            return
        self.transport.send(text)

    # --- Lifecycle ---

    def _ensure_open(self):
        if self.closed:
            raise SessionClosedError(self.id, self.close_reason)

    def close(self, reason: Optional[str] = None) -> None:
        """Ends the session. Pending work is dropped and nothing more is sent."""
        if self.closed:
            return
        self.closed = True
        self.close_reason = reason
        with self._pending_lock:
            self._pending, self._has_pending = None, False
        self._rebuild = None
        self.dispatcher.bind({}, ())
        self.transport.close(reason)
        logger.info("Session %s closed%s", self.id, f": {reason}" if reason else "")

    def terminate(self, reason: str) -> None:
        """Closes the session because of a protocol error."""
        logger.warning("Terminating session %s: %s", self.id, reason)
        self.terminated = True
        self.close(reason)


class SessionHost:
    """
    Outlives sessions. Each ``connect`` builds the tree and mounts it on a
    new session; after a terminated session the mount carries reason
    ``resync``.

    ``request_rebuild`` forwards to the current session, so application state
    can hold on to the host across reconnects.
    """

    def __init__(
        self,
        build_tree: Callable[[], Optional[WidgetNode]],
        codec: Optional[ProtocolCodec] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.build_tree = build_tree
        self.codec = codec
        self.scheduler = scheduler
        self.session: Optional[Session] = None

    def connect(self, transport: Transport) -> Session:
        reason = "initial"
        previous = self.session
        if previous is not None:
            if previous.terminated:
                reason = "resync"
            previous.close("replaced by a new connection")
        session = Session(transport, codec=self.codec, scheduler=self.scheduler)
        self.session = session
        session.mount(self.build_tree(), reason)
        logger.info("Session %s connected (%s)", session.id, reason)
        return session

    def request_rebuild(self, build_tree: Optional[Callable[[], Optional[WidgetNode]]] = None) -> None:
        if self.session is None or self.session.closed:
            logger.debug("No open session, rebuild skipped")
            return
        self.session.request_rebuild(build_tree or self.build_tree)

    def close(self, reason: Optional[str] = None) -> None:
        if self.session is not None:
            self.session.close(reason)


class LoopbackClient:
    """
    Presentation side of a loopback connection: an applier fed by a
    ``PatchReceiver`` and an ``EventOutbox`` posting back into the transport.
    """

    def __init__(
        self,
        transport: LoopbackTransport,
        surface: Optional[ViewSurface] = None,
        codec: Optional[ProtocolCodec] = None,
    ):
        self.transport = transport
        self.applier = RenderApplier(surface or ElementSurface())
        self.outbox = EventOutbox.from_config(transport.post, codec=codec)
        self.receiver = PatchReceiver(self.applier, self.outbox, codec)
        transport.on_message = self.receiver.receive

    def post(self, node_id: str, event_kind: EventKind, payload: Any = None) -> bool:
        return self.outbox.post(EventMessage(node_id, event_kind, payload))

    def click(self, node_id: str) -> bool:
        return self.post(node_id, EventKind.CLICK)

    def select(self, node_id: str, value: Optional[str]) -> bool:
        return self.post(node_id, EventKind.SELECT, {"value": value})

    def resize(self, node_id: str, sizes) -> bool:
        return self.post(node_id, EventKind.RESIZE, {"sizes": list(sizes)})

    def pump(self) -> int:
        return self.transport.pump()
