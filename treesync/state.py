# treesync/state.py
import logging
from typing import Optional, Protocol

from .base import WidgetNode

logger = logging.getLogger(__name__)


class RebuildTarget(Protocol):
    """Anything that can schedule a rebuild: a ``Session`` or a ``SessionHost``."""

    def request_rebuild(self, build_tree) -> None: ...


class State:
    """
    Mutable application state that describes the UI through ``build()``.

    The session is handed in, not looked up: either pass it to the
    constructor or call ``attach`` once it exists. ``setState`` asks it for a
    rebuild; several calls before the scheduler runs produce one commit.
    """

    def __init__(self, session: Optional[RebuildTarget] = None):
        self.session: Optional[RebuildTarget] = None
        self._mounted = False
        if session is not None:
            self.attach(session)

    def attach(self, session: RebuildTarget):
        """Links this state to the session that renders it."""
        self.session = session
        if not self._mounted:
            self._mounted = True
            self.initState()

    def detach(self):
        if self._mounted:
            self._mounted = False
            self.dispose()
        self.session = None

    def initState(self):
        """
        Called once when this state is attached to a session.

        This is the right place for one-time initialization, such as
        subscribing to controllers.
        """
        pass

    def dispose(self):
        """
        Called when this state is detached. Override to unsubscribe from
        controllers.
        """
        pass

    def build(self) -> Optional[WidgetNode]:
        """Describes the UI for the current state."""
        raise NotImplementedError(f"{self.__class__.__name__} must implement build()")

    def setState(self, fn=None):
        """
        Applies ``fn`` (if given) and asks the session to rebuild.
        """
        if fn is not None:
            fn()
        if self.session is None:
            logger.warning("setState on %s ignored: no session attached", self.__class__.__name__)
            return
        logger.debug("setState triggered for %s", self.__class__.__name__)
        self.session.request_rebuild(self.build)
