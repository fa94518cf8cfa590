# treesync/controllers.py
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .events import ResizeDetails, SelectDetails


class _Listenable:
    def __init__(self):
        self._listeners: List[Callable[[], None]] = []

    def add_listener(self, listener: Callable[[], None]):
        """Register a closure to be called when the controller's value changes."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]):
        """Remove a previously registered closure."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_listeners(self):
        for listener in list(self._listeners):
            listener()


class ValueController(_Listenable):
    """
    Holds the selected value of a select.

    ``on_select`` is meant to be passed straight to the builder::

        select(*options, value=ctrl.value, on_select=ctrl.on_select)

    :param value: The initially selected value, or None for the placeholder.
    """

    def __init__(self, value: Optional[str] = None):
        super().__init__()
        self._value = value

    @property
    def value(self) -> Optional[str]:
        return self._value

    @value.setter
    def value(self, new_value: Optional[str]):
        if self._value != new_value:
            self._value = new_value
            self._notify_listeners()

    def on_select(self, details: SelectDetails):
        self.value = details.value

    def clear(self):
        self.value = None

    def __repr__(self):
        return f"ValueController(value={self._value!r})"


class PanelSizesController(_Listenable):
    """
    Tracks the size distribution of a panel group as the user drags its
    handles. Sizes are percentages, one per panel.
    """

    def __init__(self, sizes: Sequence[float] = ()):
        super().__init__()
        self._sizes: Tuple[float, ...] = tuple(float(s) for s in sizes)

    @property
    def sizes(self) -> Tuple[float, ...]:
        return self._sizes

    @sizes.setter
    def sizes(self, new_sizes: Sequence[float]):
        new_sizes = tuple(float(s) for s in new_sizes)
        if self._sizes != new_sizes:
            self._sizes = new_sizes
            self._notify_listeners()

    def size_of(self, index: int, default: Any = None) -> Any:
        return self._sizes[index] if 0 <= index < len(self._sizes) else default

    def on_resize(self, details: ResizeDetails):
        self.sizes = details.sizes

    def __repr__(self):
        return f"PanelSizesController(sizes={self._sizes!r})"
