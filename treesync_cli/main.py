import importlib
import json
from pathlib import Path
from typing import Optional

import typer

from treesync import Framework, setup_logging
from treesync.base import WidgetNode
from treesync.codec import ACK, MOUNT, ProtocolCodec
from treesync.errors import ProtocolError, UnsupportedValueTypeError

DEFAULT_TARGET = "treesync.demo:TaskBoardState"

# Create the main Typer application object
app = typer.Typer(
    name="treesync",
    help="Run and inspect treesync applications.",
    add_completion=False,
)


def load_target(target: str):
    """
    Resolves ``module:factory`` and calls the factory. The result is a
    ``State`` or a ``build_tree`` callable.
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise typer.BadParameter(f"expected 'module:factory', got '{target}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"cannot import '{module_name}': {e}") from e
    factory = getattr(module, attr, None)
    if factory is None:
        raise typer.BadParameter(f"'{module_name}' has no attribute '{attr}'")
    return factory()


def format_tree(node: WidgetNode, depth: int = 0) -> str:
    lines = [f"{'  ' * depth}{node!r}"]
    for child in node.children:
        lines.append(format_tree(child, depth + 1))
    return "\n".join(lines)


def describe(codec: ProtocolCodec, text: str) -> str:
    """Human-readable rendering of one wire message."""
    envelope = codec.decode_message(text)
    header = f"{envelope.kind} seq={envelope.seq} version={envelope.version}"
    if envelope.kind == MOUNT:
        return f"{header} reason={envelope.payload.reason}\n{format_tree(envelope.payload.tree, 1)}"
    if envelope.kind == ACK:
        return f"{header} node={envelope.payload.node_id} event_seq={envelope.payload.event_seq}"
    return "\n".join([header] + [f"  {patch!r}" for patch in envelope.payload])


# --- CLI Commands ---

@app.command()
def run(
    target: str = typer.Argument(
        DEFAULT_TARGET,
        help="The application to open, as 'module:factory'.",
        show_default=True,
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Overrides the log_level config key."),
):
    """
    Opens an application in a desktop window.
    """
    setup_logging(log_level)
    framework = Framework(load_target(target))
    raise typer.Exit(code=framework.run())


@app.command()
def demo(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Overrides the log_level config key."),
):
    """
    Runs the demo headless: prints the initial mount, clicks "Add task" and
    prints what the backend sent back.
    """
    setup_logging(log_level or "WARNING")
    framework = Framework(load_target(DEFAULT_TARGET))
    session, client = framework.run_headless()
    history = client.transport.history

    print("--- initial ---")
    print(describe(framework.codec, history[0]))

    seen = len(history)
    client.click("k:add-task")
    client.pump()
    print("--- after clicking 'Add task' ---")
    for text in history[seen:]:
        print(describe(framework.codec, text))

    framework.close()


@app.command()
def decode(
    file_path: Path = typer.Argument(..., help="A file holding one wire message."),
):
    """
    Decodes a wire message (backend envelope or UI event) and prints it.
    """
    if not file_path.exists():
        print(f"❌ Error: file not found at '{file_path}'")
        raise typer.Exit(code=1)

    text = file_path.read_text(encoding="utf-8")
    codec = ProtocolCodec()
    try:
        try:
            is_event = "eventKind" in json.loads(text)
        except (ValueError, TypeError):
            is_event = False
        if is_event:
            envelope = codec.decode_event(text)
            message = envelope.message
            print(f"event seq={envelope.seq} version={envelope.version}")
            print(f"  {message.event_kind.value} on {message.node_id or '<session>'}: {message.payload!r}")
        else:
            print(describe(codec, text))
    except (ProtocolError, UnsupportedValueTypeError) as e:
        print(f"❌ {type(e).__name__}: {e}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
