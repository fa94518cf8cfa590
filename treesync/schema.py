# treesync/schema.py
"""
The closed catalog of widget kinds and the properties each one declares.

Instead of a class hierarchy with duck-typed ``render_props()``, every widget
is a ``WidgetNode`` tagged with a ``Kind``. The schema table below says which
properties a kind accepts, what shape their values take, and in which order
they are enumerated. That order is what keeps the differ deterministic.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type

from .errors import UnknownPropertyError, UnsupportedValueTypeError
from .events import EventKind
from .styles import Align, BorderRadius, BorderStyle, Density, Orientation, Size, Thickness


class Kind(str, Enum):
    PANEL_GROUP = "panel_group"
    PANEL = "panel"
    BOX = "box"
    STACK = "stack"
    TEXT = "text"
    BUTTON = "button"
    SELECT = "select"
    OPTION = "option"
    DETAIL = "detail"


class ValueType(str, Enum):
    STRING = "string"
    INT = "int"
    NUMBER = "number"
    BOOL = "bool"
    ENUM = "enum"
    SIZE = "size"
    THICKNESS = "thickness"
    NODE = "node"
    NODE_LIST = "node_list"


@dataclass(frozen=True)
class PropSpec:
    name: str
    value_type: ValueType
    default: Any = None
    nullable: bool = False
    enum: Optional[Type[Enum]] = None


@dataclass(frozen=True)
class KindSchema:
    kind: Kind
    props: Tuple[PropSpec, ...]
    events: FrozenSet[EventKind] = frozenset()
    _by_name: Dict[str, PropSpec] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        self._by_name.update({spec.name: spec for spec in self.props})

    @property
    def prop_names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.props)

    def spec_for(self, name: str) -> PropSpec:
        try:
            return self._by_name[name]
        except KeyError:
            raise UnknownPropertyError(self.kind.value, name) from None

    def defaults(self) -> Dict[str, Any]:
        return {spec.name: spec.default for spec in self.props}


def _enum(name, enum_cls, default, nullable=False):
    return PropSpec(name, ValueType.ENUM, default, nullable=nullable, enum=enum_cls)


SCHEMAS: Dict[Kind, KindSchema] = {
    schema.kind: schema
    for schema in (
        KindSchema(
            Kind.PANEL_GROUP,
            (
                _enum("direction", Orientation, Orientation.HORIZONTAL),
                PropSpec("show_handle", ValueType.BOOL, True),
                PropSpec("width", ValueType.SIZE, Size.full()),
                PropSpec("height", ValueType.SIZE, Size.full()),
            ),
            frozenset({EventKind.RESIZE}),
        ),
        KindSchema(
            Kind.PANEL,
            (PropSpec("default_size", ValueType.INT, None, nullable=True),),
        ),
        KindSchema(
            Kind.BOX,
            (
                PropSpec("border_thickness", ValueType.THICKNESS, Thickness.all(1)),
                _enum("border_radius", BorderRadius, BorderRadius.ROUNDED),
                _enum("border_style", BorderStyle, BorderStyle.SOLID),
                PropSpec("padding", ValueType.THICKNESS, Thickness.all(4)),
                PropSpec("margin", ValueType.THICKNESS, Thickness.all(0)),
                _enum("content_align", Align, Align.TOP_LEFT, nullable=True),
            ),
            frozenset({EventKind.CLICK}),
        ),
        KindSchema(
            Kind.STACK,
            (
                _enum("orientation", Orientation, Orientation.VERTICAL),
                PropSpec("gap", ValueType.INT, 4),
                _enum("align", Align, None, nullable=True),
                PropSpec("width", ValueType.SIZE, None, nullable=True),
                PropSpec("height", ValueType.SIZE, None, nullable=True),
            ),
        ),
        KindSchema(
            Kind.TEXT,
            (
                PropSpec("text", ValueType.STRING, ""),
                PropSpec("truncate", ValueType.BOOL, False),
            ),
        ),
        KindSchema(
            Kind.BUTTON,
            (
                PropSpec("label", ValueType.STRING, ""),
                PropSpec("disabled", ValueType.BOOL, False),
                PropSpec("icon", ValueType.NODE, None, nullable=True),
            ),
            frozenset({EventKind.CLICK}),
        ),
        KindSchema(
            Kind.SELECT,
            (
                PropSpec("value", ValueType.STRING, None, nullable=True),
                PropSpec("placeholder", ValueType.STRING, None, nullable=True),
                PropSpec("disabled", ValueType.BOOL, False),
                PropSpec("invalid", ValueType.STRING, None, nullable=True),
                _enum("density", Density, Density.MEDIUM),
                PropSpec("has_clear_button", ValueType.BOOL, False),
            ),
            frozenset({EventKind.SELECT}),
        ),
        KindSchema(
            Kind.OPTION,
            (
                PropSpec("value", ValueType.STRING, ""),
                PropSpec("label", ValueType.STRING, ""),
                PropSpec("disabled", ValueType.BOOL, False),
            ),
        ),
        KindSchema(
            Kind.DETAIL,
            (
                PropSpec("label", ValueType.STRING, ""),
                PropSpec("multi_line", ValueType.BOOL, False),
                PropSpec("actions", ValueType.NODE_LIST, ()),
            ),
        ),
    )
}


def schema_for(kind) -> KindSchema:
    try:
        return SCHEMAS[Kind(kind)]
    except ValueError:
        raise UnsupportedValueTypeError(f"Unknown widget kind {kind!r}", kind) from None


def _describe(value: Any) -> str:
    return f"{type(value).__name__} {value!r}"


def coerce_value(kind: Kind, name: str, value: Any) -> Any:
    """
    Validates ``value`` for property ``name`` of ``kind`` and returns the
    normalized value stored on the node.

    Raw strings are accepted for enum properties, an ``int`` for thickness
    properties (uniform on every side) and lists for node lists. Anything else
    that does not match raises ``UnsupportedValueTypeError``.
    """
    spec = schema_for(kind).spec_for(name)

    if value is None:
        if spec.nullable:
            return None
        raise UnsupportedValueTypeError(f"'{kind.value}.{name}' is not nullable", value)

    vt = spec.value_type
    if vt is ValueType.STRING and isinstance(value, str):
        return value
    if vt is ValueType.BOOL and isinstance(value, bool):
        return value
    if vt is ValueType.INT and isinstance(value, int) and not isinstance(value, bool):
        return value
    if vt is ValueType.NUMBER and isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    if vt is ValueType.ENUM:
        if isinstance(value, spec.enum):
            return value
        if isinstance(value, str):
            try:
                return spec.enum(value)
            except ValueError:
                pass
    if vt is ValueType.SIZE and isinstance(value, Size):
        return value
    if vt is ValueType.THICKNESS:
        if isinstance(value, Thickness):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return Thickness.all(value)
    if vt is ValueType.NODE:
        from .base import WidgetNode
        if isinstance(value, WidgetNode):
            return value
    if vt is ValueType.NODE_LIST and isinstance(value, (list, tuple)):
        from .base import WidgetNode
        if all(isinstance(item, WidgetNode) for item in value):
            return tuple(value)

    raise UnsupportedValueTypeError(
        f"'{kind.value}.{name}' expects {vt.value}, got {_describe(value)}", value
    )
