# treesync/__init__.py

"""
treesync

Keeps an immutable widget tree built in Python in sync with a rendered
presentation layer (a PySide6 QtWebEngine page, or an in-memory surface):
diff successive snapshots, ship versioned patches, apply them in place and
route UI events back to the handlers of the current tree.
"""

# --- Core Framework Classes ---
from .core import Framework
from .config import Config
from .logging_config import setup_logging

# --- Node model and builders ---
from .base import Key, WidgetNode, create, find, walk, with_children, with_handler, with_prop, with_props
from .schema import Kind, schema_for
from .styles import Align, BorderRadius, BorderStyle, Density, Orientation, Size, Thickness
from . import widgets
from .widgets import (
    box,
    button,
    column,
    detail,
    option,
    panel,
    panel_group,
    row,
    select,
    stack,
    text,
)

# --- Sync pipeline ---
from .reconciler import (
    InsertChild, Mount, MoveChild, Patch, Reconciler, RemoveChild, ReplaceNode, SetProp, diff,
)
from .codec import ProtocolCodec
from .applier import ElementSurface, PatchReceiver, RenderApplier, ViewSurface, render
from .events import ClickDetails, EventKind, EventMessage, InputDetails, ResizeDetails, SelectDetails
from .router import Delivered, EventDispatcher, EventOutbox, NoHandler, StaleEventIgnored
from .session import LoopbackClient, LoopbackTransport, Session, SessionHost, Transport

# --- State management ---
from .state import State
from .controllers import PanelSizesController, ValueController

from .errors import (
    DuplicateNodeIdError,
    MalformedMessageError,
    PatchApplyError,
    ProtocolError,
    ProtocolVersionError,
    SessionClosedError,
    TreeSyncError,
    UnknownNodeError,
    UnknownPropertyError,
    UnsupportedValueTypeError,
)

__all__ = [
    # --- Core ---
    'Framework', 'Config', 'setup_logging',

    # --- Node model ---
    'Key', 'WidgetNode', 'create', 'find', 'walk',
    'with_children', 'with_handler', 'with_prop', 'with_props',
    'Kind', 'schema_for',
    'Align', 'BorderRadius', 'BorderStyle', 'Density', 'Orientation', 'Size', 'Thickness',

    # --- Builders ---
    'widgets',
    'box', 'button', 'column', 'detail', 'option', 'panel', 'panel_group',
    'row', 'select', 'stack', 'text',

    # --- Pipeline ---
    'Reconciler', 'diff', 'Patch',
    'Mount', 'SetProp', 'InsertChild', 'RemoveChild', 'MoveChild', 'ReplaceNode',
    'ProtocolCodec',
    'RenderApplier', 'ViewSurface', 'ElementSurface', 'PatchReceiver', 'render',
    'EventKind', 'EventMessage', 'ClickDetails', 'SelectDetails', 'ResizeDetails', 'InputDetails',
    'EventOutbox', 'EventDispatcher', 'Delivered', 'StaleEventIgnored', 'NoHandler',
    'Session', 'SessionHost', 'Transport', 'LoopbackTransport', 'LoopbackClient',

    # --- State ---
    'State', 'ValueController', 'PanelSizesController',

    # --- Errors ---
    'TreeSyncError', 'UnknownPropertyError', 'UnsupportedValueTypeError', 'DuplicateNodeIdError',
    'ProtocolError', 'ProtocolVersionError', 'MalformedMessageError',
    'UnknownNodeError', 'PatchApplyError', 'SessionClosedError',
]

__version__ = "0.1.0"
