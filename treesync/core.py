# treesync/core.py
import logging
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from .applier import ViewSurface
from .base import WidgetNode
from .codec import ProtocolCodec
from .config import Config
from .session import LoopbackClient, LoopbackTransport, Session, SessionHost, call_now
from .state import State

logger = logging.getLogger(__name__)

WEB_DIR = Path(__file__).resolve().parent / "web"

BuildTree = Callable[[], Optional[WidgetNode]]


def qt_scheduler(callback: Callable[[], object]) -> None:
    """Defers ``callback`` to the next turn of the Qt event loop."""
    from PySide6.QtCore import QTimer
    QTimer.singleShot(0, callback)


class Framework:
    """
    Connects an application to a presentation layer.

    The application is either a ``State`` (its ``build`` describes the UI and
    its ``setState`` schedules rebuilds) or a plain ``build_tree`` callable.

    ``run()`` opens the desktop window; ``run_headless()`` renders into an
    in-memory surface over a loopback transport.
    """

    def __init__(self, app: Union[State, BuildTree], config: Optional[Config] = None):
        self.config = config or Config()
        self.state: Optional[State] = app if isinstance(app, State) else None
        self.build_tree: BuildTree = app.build if self.state is not None else app
        self.codec = ProtocolCodec(
            self.config.get_nested("protocol.version"),
            self.config.get_nested("protocol.supported_versions"),
        )
        self.host: Optional[SessionHost] = None
        self.window = None
        self.id = "main_window_id"

    def _make_host(self, scheduler) -> SessionHost:
        self.host = SessionHost(self.build_tree, codec=self.codec, scheduler=scheduler)
        if self.state is not None:
            self.state.attach(self.host)
        return self.host

    def run(
        self,
        title: Optional[str] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        frameless: Optional[bool] = None,
        maximized: Optional[bool] = None,
    ) -> int:
        """
        Opens the window and runs the Qt event loop. The page connects a
        session once its WebChannel is up, and again after every reload.
        """
        from .window import webwidget

        cfg = self.config
        host = self._make_host(qt_scheduler)
        api = webwidget.Api(on_ready=host.connect)
        self.window = webwidget.create_window(
            title or cfg.get("app_name"),
            self.id,
            html_file=WEB_DIR / "index.html",
            js_api=api,
            width=width or cfg.get("win_width"),
            height=height or cfg.get("win_height"),
            frameless=cfg.get("frameless") if frameless is None else frameless,
            maximized=cfg.get("maximized") if maximized is None else maximized,
        )
        logger.info("Starting application event loop")
        try:
            return webwidget.start(self.window, debug=bool(cfg.get("Debug", False)))
        finally:
            self.close()

    def run_headless(self, surface: Optional[ViewSurface] = None) -> Tuple[Session, LoopbackClient]:
        """
        Mounts the application on an in-memory surface. Call
        ``client.pump()`` to move messages between the two sides.
        """
        host = self._make_host(call_now)
        transport = LoopbackTransport()
        client = LoopbackClient(transport, surface, codec=self.codec)
        session = host.connect(transport)
        client.pump()
        return session, client

    def close(self):
        if self.host is not None:
            self.host.close("framework closed")
        if self.state is not None:
            self.state.detach()
        if self.window is not None:
            self.window.close_window()
            self.window = None
