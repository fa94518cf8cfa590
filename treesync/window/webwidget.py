import logging
import sys
from typing import Callable, Optional

from PySide6.QtWidgets import QApplication, QWidget, QVBoxLayout
from PySide6.QtCore import Qt, QObject, QTimer, Signal, Slot, QUrl, QSize
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWebEngineCore import QWebEngineSettings
from PySide6.QtWebChannel import QWebChannel
from PySide6.QtGui import QShortcut, QKeySequence

from ..errors import SessionClosedError
from ..session import Transport

logger = logging.getLogger(__name__)


def get_app() -> QApplication:
    """Returns the running QApplication, creating it on first use."""
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    return app


class WindowManager:
    def __init__(self):
        self.windows = {}

    def register_window(self, window_id, window):
        self.windows[window_id] = window

    def set_window_state(self, window_id, state):
        if window_id not in self.windows:
            logger.warning("Window ID %s not found.", window_id)
            return
        window = self.windows[window_id]
        if state == "minimized":
            window.setWindowState(Qt.WindowMinimized)
        elif state == "maximized":
            window.setWindowState(Qt.WindowMaximized)
        elif state == "normal":
            window.setWindowState(Qt.WindowNoState)
        else:
            logger.warning("Invalid window state: %s", state)


class Api(QObject, Transport):
    """
    The WebChannel bridge, registered in the page as ``treesync``.

    Backend messages go out through the ``message`` signal; the page sends
    events to the ``post`` slot and calls ``ready`` once its channel is up
    (again after every reload).

    :param on_ready: Called with this bridge when the page is ready, usually
        ``SessionHost.connect``.
    """

    message = Signal(str)

    def __init__(self, on_ready: Optional[Callable[["Api"], object]] = None):
        QObject.__init__(self)
        self.on_ready = on_ready

    def send(self, text: str) -> None:
        self.message.emit(text)

    def close(self, reason: Optional[str] = None) -> None:
        """
        The bridge outlives sessions. A reload connects a new one; a session
        terminated by a protocol error is replaced on the next event loop turn,
        and the new mount carries reason ``resync``.
        """
        logger.debug("Session on bridge closed: %s", reason)
        session = self.session
        if session is not None and session.terminated and self.on_ready is not None:
            logger.info("Reconnecting after terminated session %s", session.id)
            QTimer.singleShot(0, lambda: self.on_ready(self))

    @Slot()
    def ready(self):
        logger.info("Page ready, connecting session")
        if self.on_ready is not None:
            self.on_ready(self)

    @Slot(str)
    def post(self, text: str):
        if self.session is None:
            logger.warning("Event received before a session was connected, dropped")
            return
        try:
            self.session.receive_event(text)
        except SessionClosedError as e:
            logger.info("Event for closed session dropped: %s", e)


# Create a global instance of the WindowManager
window_manager = WindowManager()


class DebugWindow(QWebEngineView):
    """A separate window for inspecting HTML elements."""

    def __init__(self):
        super().__init__()
        self.setWindowTitle("Debug Window")
        self.resize(800, 600)


class WebWindow(QWidget):
    def __init__(
        self,
        title,
        window_id="main_window",
        html_file=None,
        js_api=None,
        width=800,
        height=600,
        window_state="normal",
        frameless=False,
        maximized=False,
        fixed_size=False,
        reload_shortcut=True,
    ):
        super().__init__()
        self.setWindowTitle(title)
        self.fixed_size = fixed_size
        if not maximized and not fixed_size:
            self.setGeometry(100, 100, width, height)

        if fixed_size and not maximized:
            self.setFixedSize(QSize(width, height))

        if frameless:
            self.setWindowFlags(Qt.FramelessWindowHint | Qt.Window)
            self.setAttribute(Qt.WA_TranslucentBackground)

        self.layout = QVBoxLayout(self)
        window_manager.register_window(window_id, self)

        self.webview = QWebEngineView(self)
        self.webview.settings().setAttribute(
            QWebEngineSettings.LocalContentCanAccessFileUrls, True
        )
        if frameless:
            self.webview.setAttribute(Qt.WA_TranslucentBackground, True)
            self.webview.setStyleSheet("background: transparent;")
            self.webview.page().setBackgroundColor(Qt.transparent)
        self.layout.setContentsMargins(0, 0, 0, 0)
        self.layout.addWidget(self.webview)

        # The channel must be in place before the page loads.
        self.channel = QWebChannel()
        if js_api is not None:
            self.channel.registerObject("treesync", js_api)
        self.webview.page().setWebChannel(self.channel)

        if html_file:
            self.webview.setUrl(QUrl.fromLocalFile(str(html_file)))
            logger.debug("HTML loaded: %s", html_file)
        else:
            logger.warning("No HTML file given, window stays empty")

        window_manager.set_window_state(window_id, window_state)

        # Developer Tools
        self.debug_window = DebugWindow()
        self.webview.page().setDevToolsPage(self.debug_window.page())
        self.debug_window.hide()

        # Reloading the page reconnects through Api.ready with a fresh mount.
        if reload_shortcut:
            shortcut = QShortcut(QKeySequence("Ctrl+R"), self)
            shortcut.activated.connect(self.webview.reload)

    def toggle_debug_window(self):
        if self.debug_window.isVisible():
            self.debug_window.hide()
        else:
            self.debug_window.show()

    def show_window(self):
        self.show()

    def show_max_window(self):
        self.showMaximized()
        if self.fixed_size:
            screen = QApplication.primaryScreen()
            self.setFixedSize(screen.availableGeometry().size())

    def close_window(self):
        self.close()
        if self.debug_window:
            self.debug_window.close()


def create_window(
    title: str,
    window_id: str,
    html_file: str = None,
    js_api: Api = None,
    width: int = 800,
    height: int = 600,
    window_state: str = "normal",
    frameless: bool = False,
    maximized: bool = False,
    fixed_size: bool = False,
):
    get_app()
    window = WebWindow(
        title,
        window_id=window_id,
        html_file=html_file,
        js_api=js_api,
        width=width,
        height=height,
        window_state=window_state,
        frameless=frameless,
        maximized=maximized,
        fixed_size=fixed_size,
    )
    if maximized:
        window.show_max_window()
    else:
        window.show_window()
    return window


def start(window, debug=False) -> int:
    """Runs the Qt event loop until the window closes."""
    if debug:
        window.toggle_debug_window()
    return get_app().exec()
