# treesync/errors.py
"""
Error taxonomy for the synchronization core.

Programmer errors (schema mismatches between a builder and the differ) are
raised immediately and must never be masked. Protocol errors terminate only the
offending session. Applier errors are invariant violations; the only recovery
is a full resync.

``StaleEventIgnored`` is deliberately *not* here: an event for a node that was
removed before delivery is a normal outcome, see ``treesync.router``.
"""

from typing import Any, Optional


class TreeSyncError(Exception):
    """Base class for every error raised by treesync."""


# --- Programmer errors ---

class UnknownPropertyError(TreeSyncError, AttributeError):
    """A property name that the widget kind's schema does not declare."""

    def __init__(self, kind: str, name: str):
        # AttributeError.__init__ resets .name, so it has to run first.
        super().__init__(f"Widget kind '{kind}' has no property '{name}'")
        self.kind = kind
        self.name = name


class UnsupportedValueTypeError(TreeSyncError, TypeError):
    """A property value whose shape the schema or the wire codec cannot carry."""

    def __init__(self, message: str, value: Any = None):
        self.value = value
        super().__init__(message)


class DuplicateNodeIdError(TreeSyncError, ValueError):
    """Two siblings share one identity, so children cannot be keyed."""

    def __init__(self, parent_id: str, node_id: str):
        self.parent_id = parent_id
        self.node_id = node_id
        super().__init__(f"Duplicate child id '{node_id}' under '{parent_id}'")


# --- Protocol errors (session-fatal, process-safe) ---

class ProtocolError(TreeSyncError):
    """Base for wire-level failures. The session is terminated, not the process."""


class ProtocolVersionError(ProtocolError):
    def __init__(self, version: Any, supported):
        self.version = version
        self.supported = tuple(supported)
        super().__init__(
            f"Unsupported protocol version {version!r} (supported: {list(self.supported)})"
        )


class MalformedMessageError(ProtocolError):
    pass


# --- Presentation-side invariant violations ---

class UnknownNodeError(TreeSyncError, LookupError):
    """A patch referenced a node id the render handle does not know."""

    def __init__(self, node_id: str, patch: Any = None):
        self.node_id = node_id
        self.patch = patch
        detail = f" while applying {patch!r}" if patch is not None else ""
        super().__init__(f"Unknown node '{node_id}'{detail}")


class PatchApplyError(TreeSyncError):
    """
    Raised by the applier when patch ``index`` of a sequence fails.

    Patches before ``index`` stay applied; UI state is not transactional.
    """

    def __init__(self, index: int, patch: Any, cause: Exception):
        self.index = index
        self.patch = patch
        self.cause = cause
        super().__init__(f"Patch #{index} ({patch!r}) failed: {cause}")


# --- Session lifecycle ---

class SessionClosedError(TreeSyncError):
    def __init__(self, session_id: str, reason: Optional[str] = None):
        self.session_id = session_id
        self.reason = reason
        suffix = f": {reason}" if reason else ""
        super().__init__(f"Session '{session_id}' is closed{suffix}")
