# treesync/styles.py
"""
Value types that widget properties can carry besides plain primitives.

Enums are closed sets of string values so they travel over the wire by name.
``Size`` and ``Thickness`` are frozen compounds; like the framework's other
style objects they expose ``to_tuple()`` for hashing and comparison.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class Orientation(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class Align(str, Enum):
    TOP_LEFT = "top_left"
    TOP_CENTER = "top_center"
    TOP_RIGHT = "top_right"
    CENTER_LEFT = "center_left"
    CENTER = "center"
    CENTER_RIGHT = "center_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_CENTER = "bottom_center"
    BOTTOM_RIGHT = "bottom_right"
    STRETCH = "stretch"


class BorderStyle(str, Enum):
    NONE = "none"
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


class BorderRadius(str, Enum):
    NONE = "none"
    ROUNDED = "rounded"
    FULL = "full"


class Density(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


# Every enum a property may use, by wire name.
ENUM_TYPES = {
    cls.__name__: cls
    for cls in (Orientation, Align, BorderStyle, BorderRadius, Density)
}


@dataclass(frozen=True)
class Size:
    """
    A length along one axis.

    :param unit: One of ``px``, ``units``, ``fraction``, ``full`` or ``auto``.
    :param value: Magnitude for ``px``/``units``/``fraction``; ``None`` otherwise.
    """
    unit: str
    value: Optional[float] = None

    UNITS = ("px", "units", "fraction", "full", "auto")

    def __post_init__(self):
        if self.unit not in self.UNITS:
            raise ValueError(f"Unknown size unit {self.unit!r}")
        if self.unit in ("full", "auto") and self.value is not None:
            raise ValueError(f"Size unit {self.unit!r} takes no value")
        if self.unit not in ("full", "auto") and self.value is None:
            raise ValueError(f"Size unit {self.unit!r} needs a value")

    @classmethod
    def px(cls, value: float) -> "Size":
        return cls("px", value)

    @classmethod
    def units(cls, value: float) -> "Size":
        return cls("units", value)

    @classmethod
    def fraction(cls, value: float) -> "Size":
        return cls("fraction", value)

    @classmethod
    def full(cls) -> "Size":
        return cls("full")

    @classmethod
    def auto(cls) -> "Size":
        return cls("auto")

    def to_tuple(self) -> Tuple:
        return (self.unit, self.value)

    def to_css(self) -> str:
        if self.unit == "full":
            return "100%"
        if self.unit == "auto":
            return "auto"
        if self.unit == "fraction":
            return f"{self.value * 100:g}%"
        if self.unit == "units":
            return f"{self.value * 0.25:g}rem"
        return f"{self.value:g}px"


@dataclass(frozen=True)
class Thickness:
    """Per-side spacing (border width, padding, margin) in layout units."""
    left: int = 0
    top: int = 0
    right: int = 0
    bottom: int = 0

    @classmethod
    def all(cls, value: int) -> "Thickness":
        return cls(value, value, value, value)

    @classmethod
    def symmetric(cls, horizontal: int = 0, vertical: int = 0) -> "Thickness":
        return cls(horizontal, vertical, horizontal, vertical)

    def to_tuple(self) -> Tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)
