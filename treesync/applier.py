# treesync/applier.py
"""
The Render Applier: the presentation side's single point of mutation.

The applier keeps a ``RenderHandle`` (node id -> live ``Element``) and applies
patch sequences to it in order. ``SetProp`` updates an element in place, so
anything transient the element carries (focus, scroll position, measured
truncation) survives. Structural patches only touch the elements they name.
``ReplaceNode`` throws the old subtree away on purpose: a kind change is a
different control.

There is no rollback. If patch ``i`` fails, patches ``0..i-1`` stay applied
and a ``PatchApplyError`` reports ``i``; the caller is expected to ask the
backend for a resync.

``ElementSurface`` is an in-memory rendering capability used headless and in
tests. The browser runtime in ``treesync/web/treesync.js`` implements the same
operations against the DOM.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from .codec import ACK, MOUNT, AckPayload, MountPayload, ProtocolCodec
from .errors import PatchApplyError, ProtocolError, UnknownNodeError, UnsupportedValueTypeError
from .events import EventKind, EventMessage
from .reconciler import (
    ROOT_PARENT_ID, InsertChild, Mount, MoveChild, Patch, RemoveChild, ReplaceNode, SetProp,
)
from .base import WidgetNode
from .schema import Kind

logger = logging.getLogger(__name__)


class Element:
    """
    A live view object.

    ``attrs`` mirrors the node's properties; ``state`` holds transient UI
    mechanics that the backend never sees.
    """

    def __init__(self, kind: Optional[Kind], node_id: str, attrs: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.node_id = node_id
        self.attrs: Dict[str, Any] = dict(attrs or {})
        self.children: List["Element"] = []
        self.parent: Optional["Element"] = None
        self.state: Dict[str, Any] = {}
        self.destroyed = False

    def index_in_parent(self) -> int:
        for i, sibling in enumerate(self.parent.children):
            if sibling is self:
                return i
        raise LookupError(f"Element {self.node_id} is not attached to its parent")

    def snapshot(self) -> Dict[str, Any]:
        """Structural view (no transient state) used for equivalence checks."""
        return {
            "kind": self.kind.value if self.kind else None,
            "id": self.node_id,
            "attrs": dict(self.attrs),
            "children": [child.snapshot() for child in self.children],
        }

    def __repr__(self):
        kind = self.kind.value if self.kind else "container"
        return f"<Element {kind}#{self.node_id} children={len(self.children)}>"


class ViewSurface:
    """
    The rendering capability the applier drives. Subclasses render for real;
    the base implementation keeps everything in the ``Element`` objects.
    """

    def create_element(self, kind: Kind, node_id: str, attrs: Dict[str, Any]) -> Element:
        return Element(kind, node_id, attrs)

    def update_element(self, element: Element, name: str, value: Any) -> None:
        element.attrs[name] = value

    def attach(self, parent: Element, index: int, element: Element) -> None:
        parent.children.insert(index, element)
        element.parent = parent

    def detach(self, parent: Element, index: int) -> Element:
        element = parent.children.pop(index)
        element.parent = None
        return element

    def destroy_element(self, element: Element) -> None:
        element.destroyed = True


class ElementSurface(ViewSurface):
    """
    In-memory surface that counts element lifecycles.

    :param measure: Optional truncation measurement for text elements,
        ``measure(element) -> bool``. The result lands in
        ``element.state["truncated"]`` and stays on this side of the wire.
    """

    def __init__(self, measure: Optional[Callable[[Element], bool]] = None):
        self.measure = measure
        self.created = 0
        self.destroyed = 0
        self.updated = 0

    def create_element(self, kind, node_id, attrs):
        self.created += 1
        element = super().create_element(kind, node_id, attrs)
        self._measure(element)
        return element

    def update_element(self, element, name, value):
        self.updated += 1
        super().update_element(element, name, value)
        self._measure(element)

    def destroy_element(self, element):
        self.destroyed += 1
        super().destroy_element(element)

    def _measure(self, element: Element):
        if self.measure and element.kind is Kind.TEXT and element.attrs.get("truncate"):
            element.state["truncated"] = bool(self.measure(element))


class RenderHandle:
    """Maps node ids to live elements. The root container is always present."""

    def __init__(self):
        self.container = Element(None, ROOT_PARENT_ID)
        self._elements: Dict[str, Element] = {ROOT_PARENT_ID: self.container}

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._elements

    def __len__(self) -> int:
        return len(self._elements) - 1

    def get(self, node_id: str) -> Optional[Element]:
        return self._elements.get(node_id)

    def lookup(self, node_id: str, patch: Any = None) -> Element:
        element = self._elements.get(node_id)
        if element is None:
            raise UnknownNodeError(node_id, patch)
        return element

    def register(self, element: Element) -> None:
        self._elements[element.node_id] = element

    def unregister(self, element: Element) -> None:
        # A node moved to another parent is inserted there before its old
        # element is removed; only drop the entry if it still points here.
        if self._elements.get(element.node_id) is element:
            del self._elements[element.node_id]


class RenderApplier:
    def __init__(self, surface: Optional[ViewSurface] = None):
        self.surface = surface or ElementSurface()
        self.handle = RenderHandle()

    @property
    def root(self) -> Optional[Element]:
        children = self.handle.container.children
        return children[0] if children else None

    def snapshot(self) -> Optional[Dict[str, Any]]:
        root = self.root
        return root.snapshot() if root else None

    def apply(self, patches: Iterable[Patch]) -> int:
        """
        Applies ``patches`` in order and returns how many were applied.

        :raises PatchApplyError: naming the index of the first patch that failed.
        """
        count = 0
        for index, patch in enumerate(patches):
            try:
                self.apply_patch(patch)
            except (LookupError, ValueError, TypeError) as e:
                logger.error("Patch #%d failed: %r (%s)", index, patch, e)
                raise PatchApplyError(index, patch, e) from e
            count += 1
        return count

    def apply_patch(self, patch: Patch) -> None:
        if isinstance(patch, SetProp):
            element = self.handle.lookup(patch.node_id, patch)
            self.surface.update_element(element, patch.name, patch.value)
        elif isinstance(patch, InsertChild):
            parent = self.handle.lookup(patch.parent_id, patch)
            if not 0 <= patch.index <= len(parent.children):
                raise IndexError(f"Insert index {patch.index} out of range for {parent!r}")
            self.surface.attach(parent, patch.index, self._build(patch.subtree))
        elif isinstance(patch, RemoveChild):
            parent = self.handle.lookup(patch.parent_id, patch)
            self._check_index(parent, patch.index, patch)
            if parent.children[patch.index].node_id != patch.child_id:
                raise UnknownNodeError(patch.child_id, patch)
            self._destroy(self.surface.detach(parent, patch.index))
        elif isinstance(patch, MoveChild):
            parent = self.handle.lookup(patch.parent_id, patch)
            self._check_index(parent, patch.from_index, patch)
            self._check_index(parent, patch.to_index, patch)
            element = self.surface.detach(parent, patch.from_index)
            self.surface.attach(parent, patch.to_index, element)
        elif isinstance(patch, ReplaceNode):
            old = self.handle.lookup(patch.node_id, patch)
            parent = old.parent
            if parent is None:
                raise UnknownNodeError(patch.node_id, patch)
            index = old.index_in_parent()
            self._destroy(self.surface.detach(parent, index))
            self.surface.attach(parent, index, self._build(patch.subtree))
        elif isinstance(patch, Mount):
            self.mount(patch.subtree)
        else:
            raise TypeError(f"Not a patch: {patch!r}")

    def mount(self, tree: Optional[WidgetNode]) -> None:
        """Drops whatever is rendered and mounts ``tree`` fresh."""
        container = self.handle.container
        while container.children:
            self._destroy(self.surface.detach(container, len(container.children) - 1))
        if tree is not None:
            self.surface.attach(container, 0, self._build(tree))

    def _check_index(self, parent: Element, index: int, patch: Patch):
        if not 0 <= index < len(parent.children):
            raise IndexError(f"Index {index} out of range for {parent!r} in {patch!r}")

    def _build(self, node: WidgetNode) -> Element:
        element = self.surface.create_element(node.kind, node.id, dict(node.props))
        self.handle.register(element)
        for i, child in enumerate(node.children):
            self.surface.attach(element, i, self._build(child))
        return element

    def _destroy(self, element: Element) -> None:
        for child in element.children:
            self._destroy(child)
        self.handle.unregister(element)
        self.surface.destroy_element(element)


def render(tree: Optional[WidgetNode], surface: Optional[ViewSurface] = None) -> RenderApplier:
    """Mounts ``tree`` on a fresh applier; the reference for equivalence checks."""
    applier = RenderApplier(surface)
    applier.mount(tree)
    return applier


class PatchReceiver:
    """
    Presentation-side endpoint for backend messages.

    Checks that sequence numbers follow each other. On a gap, an undecodable
    message or a failed application it stops applying patches and asks for a
    resync; the next ``mount`` starts over from a clean surface.

    Acks share the backend's sequence numbers, so they count towards gap
    detection, but they reach the outbox even while a resync is pending.

    :param applier: The applier to drive.
    :param outbox: The ``EventOutbox`` that carries resync requests and
        receives acks.
    """

    def __init__(self, applier: RenderApplier, outbox, codec: Optional[ProtocolCodec] = None):
        self.applier = applier
        self.outbox = outbox
        self.codec = codec or outbox.codec
        self.expected_seq: Optional[int] = None
        self.awaiting_resync = False
        self.last_error: Optional[Exception] = None

    def receive(self, text: str) -> bool:
        """Handles one wire message. Returns True if it was applied."""
        try:
            envelope = self.codec.decode_message(text)
        except (ProtocolError, UnsupportedValueTypeError) as e:
            logger.warning("Dropping undecodable message: %s", e)
            self._request_resync(e)
            return False

        if envelope.kind == MOUNT:
            payload: MountPayload = envelope.payload
            self.applier.mount(payload.tree)
            self.expected_seq = envelope.seq + 1
            self.awaiting_resync = False
            self.last_error = None
            self.outbox.ack("")
            logger.debug("Mounted tree (%s) at seq %d", payload.reason, envelope.seq)
            return True

        if envelope.kind == ACK:
            ack: AckPayload = envelope.payload
            self.outbox.ack(ack.node_id)
            if not self.awaiting_resync:
                if envelope.seq == self.expected_seq:
                    self.expected_seq += 1
                else:
                    logger.warning("Sequence gap: expected %s, got ack %d", self.expected_seq, envelope.seq)
                    self._request_resync(None)
            return True

        if self.awaiting_resync:
            return False
        if self.expected_seq is None or envelope.seq != self.expected_seq:
            logger.warning("Sequence gap: expected %s, got %d", self.expected_seq, envelope.seq)
            self._request_resync(None)
            return False

        self.expected_seq = envelope.seq + 1
        try:
            self.applier.apply(envelope.payload)
        except PatchApplyError as e:
            logger.error("Patch application failed at #%d of seq %d: %s", e.index, envelope.seq, e)
            self._request_resync(e)
            return False
        return True

    def _request_resync(self, error: Optional[Exception]):
        self.last_error = error
        if self.awaiting_resync:
            return
        self.awaiting_resync = True
        last = self.expected_seq - 1 if self.expected_seq is not None else None
        self.outbox.post(EventMessage("", EventKind.RESYNC, {"lastSeq": last}))
