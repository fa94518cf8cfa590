# =============================================================================
# TREESYNC RECONCILER - Turns two tree snapshots into an ordered patch list
# =============================================================================
"""
The Tree Differ.

The reconciler compares the previously committed tree with a newly built one
and produces the smallest ordered list of patches that turns the first into
the second. Nodes are matched by identity, never by position:

- same id, same kind   -> ``SetProp`` for every property whose value changed
- same id, other kind  -> one ``ReplaceNode`` (prop schemas are never merged)
- id only in the new   -> ``InsertChild`` with the whole subtree
- id only in the old   -> ``RemoveChild``
- id at another index  -> ``MoveChild``

Patch order matters: index-based patches assume that every earlier patch in
the list has already been applied. Removals of a child list come first (in
descending index order), then children are placed left to right.

The output is deterministic: properties are enumerated in the kind schema's
declaration order and children in sequence order. Because nodes are
immutable, a subtree that is the *same object* in both trees is skipped
without looking inside it.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Dict, List, Literal, Optional, Sequence, Set, Tuple, Union

from .base import WidgetNode
from .errors import DuplicateNodeIdError
from .events import EventKind
from .schema import schema_for

logger = logging.getLogger(__name__)

# The DOM element the root widget is mounted into.
ROOT_PARENT_ID = "root-container"

PatchAction = Literal["MOUNT", "SET_PROP", "INSERT", "REMOVE", "MOVE", "REPLACE"]


@dataclass(frozen=True)
class Mount:
    subtree: WidgetNode
    action: ClassVar[PatchAction] = "MOUNT"


@dataclass(frozen=True)
class SetProp:
    node_id: str
    name: str
    value: object
    action: ClassVar[PatchAction] = "SET_PROP"


@dataclass(frozen=True)
class InsertChild:
    parent_id: str
    index: int
    subtree: WidgetNode
    action: ClassVar[PatchAction] = "INSERT"


@dataclass(frozen=True)
class RemoveChild:
    parent_id: str
    index: int
    child_id: str
    action: ClassVar[PatchAction] = "REMOVE"


@dataclass(frozen=True)
class MoveChild:
    parent_id: str
    from_index: int
    to_index: int
    action: ClassVar[PatchAction] = "MOVE"


@dataclass(frozen=True)
class ReplaceNode:
    node_id: str
    subtree: WidgetNode
    action: ClassVar[PatchAction] = "REPLACE"


Patch = Union[Mount, SetProp, InsertChild, RemoveChild, MoveChild, ReplaceNode]

CallbackKey = Tuple[str, EventKind]


@dataclass
class ReconciliationResult:
    patches: List[Patch] = field(default_factory=list)
    # (node id, event kind) -> handler, for every handler bound in the new tree.
    registered_callbacks: Dict[CallbackKey, Callable] = field(default_factory=dict)
    # Ids an event may address: tree nodes plus nodes held in properties.
    live_ids: Set[str] = field(default_factory=set)
    node_count: int = 0


class _PendingIndex:
    """
    Fenwick tree over the previous child list, marking children that still
    wait to be placed. ``count_before(i)`` tells how many pending children sit
    in front of old position ``i``, which gives a child's current index in
    O(log n) without rescanning the working list.
    """

    def __init__(self, pending: Sequence[bool]):
        self._size = len(pending)
        self._tree = [0] * (self._size + 1)
        for i, flag in enumerate(pending):
            if flag:
                self._add(i, 1)

    def _add(self, index: int, delta: int):
        i = index + 1
        while i <= self._size:
            self._tree[i] += delta
            i += i & -i

    def remove(self, index: int):
        self._add(index, -1)

    def count_before(self, index: int) -> int:
        total = 0
        i = index
        while i > 0:
            total += self._tree[i]
            i -= i & -i
        return total


class Reconciler:
    """Computes patch lists. Stateless between calls; safe to share."""

    def reconcile(
        self,
        previous: Optional[WidgetNode],
        new_root: Optional[WidgetNode],
        parent_id: str = ROOT_PARENT_ID,
    ) -> ReconciliationResult:
        """
        Compares ``new_root`` with ``previous`` and returns the patches plus the
        handler table of the new tree.

        :raises DuplicateNodeIdError: if an id occurs twice in ``new_root``.
        """
        result = ReconciliationResult()
        self._collect_details(new_root, result)

        if previous is None and new_root is None:
            pass
        elif previous is None:
            result.patches.append(Mount(new_root))
        elif new_root is None:
            result.patches.append(RemoveChild(parent_id, 0, previous.id))
        else:
            self._diff_node_recursive(previous, new_root, result)

        logger.debug("Reconciled %d nodes into %d patches", result.node_count, len(result.patches))
        return result

    def _diff_node_recursive(self, old: WidgetNode, new: WidgetNode, result: ReconciliationResult):
        if old is new:
            return

        if old.id != new.id or old.kind is not new.kind:
            result.patches.append(ReplaceNode(old.id, new))
            return

        for name in self._diff_props(old, new):
            result.patches.append(SetProp(new.id, name, new.props[name]))

        self._diff_children_recursive(old, new, result)

    def _diff_props(self, old: WidgetNode, new: WidgetNode) -> List[str]:
        """Names of the properties whose values differ, in schema order."""
        old_props, new_props = old.props, new.props
        return [
            name
            for name in schema_for(new.kind).prop_names
            if old_props[name] != new_props[name]
        ]

    def _diff_children_recursive(self, old_parent: WidgetNode, new_parent: WidgetNode, result: ReconciliationResult):
        old_children = old_parent.children
        new_children = new_parent.children
        if old_children is new_children or (not old_children and not new_children):
            return

        parent_id = new_parent.id
        old_index = {child.id: i for i, child in enumerate(old_children)}
        new_ids = {child.id for child in new_children}

        # Removals first, highest index first, so the remaining indices hold.
        kept = [child.id in new_ids for child in old_children]
        for i in range(len(old_children) - 1, -1, -1):
            if not kept[i]:
                result.patches.append(RemoveChild(parent_id, i, old_children[i].id))

        # The working list is now: placed prefix + pending old children in old order.
        pending = _PendingIndex(kept)
        for i, child in enumerate(new_children):
            old_i = old_index.get(child.id)
            if old_i is None:
                result.patches.append(InsertChild(parent_id, i, child))
                continue

            current = i + pending.count_before(old_i)
            pending.remove(old_i)
            if current != i:
                result.patches.append(MoveChild(parent_id, current, i))

            self._diff_node_recursive(old_children[old_i], child, result)

    def _collect_details(self, root: Optional[WidgetNode], result: ReconciliationResult):
        """
        Registers handlers of the new tree and checks ids are unique tree-wide.
        Nodes held in node-valued properties (a button icon, detail actions)
        can receive events too, so they are included.
        """
        if root is None:
            return
        seen = result.live_ids
        seen.add(root.id)
        stack = [root]
        while stack:
            node = stack.pop()
            result.node_count += 1
            for event_kind, handler in node.handlers.items():
                result.registered_callbacks[(node.id, event_kind)] = handler
            for child in itertools.chain(node.children, _prop_nodes(node)):
                if child.id in seen:
                    raise DuplicateNodeIdError(node.id, child.id)
                seen.add(child.id)
                stack.append(child)


def _prop_nodes(node: WidgetNode):
    for value in node.props.values():
        if isinstance(value, WidgetNode):
            yield value
        elif isinstance(value, tuple):
            for item in value:
                if isinstance(item, WidgetNode):
                    yield item


def diff(previous: Optional[WidgetNode], new_root: Optional[WidgetNode]) -> List[Patch]:
    """Shorthand for ``Reconciler().reconcile(previous, new_root).patches``."""
    return Reconciler().reconcile(previous, new_root).patches
