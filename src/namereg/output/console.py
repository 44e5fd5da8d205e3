"""Rich Console factory and theme for namereg output.

Consoles render into a StringIO buffer so :func:`format_result` can keep
returning a plain string. Rich drops color codes when the buffer is not a
terminal, which covers CliRunner and piped output.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

NAMEREG_THEME = Theme(
    {
        "reg.ok": "bold green",
        "reg.error": "bold red",
        "reg.warning": "bold yellow",
        "reg.op": "bold cyan",
        "reg.key": "dim",
        "reg.domain": "bold blue",
        "reg.identity": "magenta",
        "reg.amount": "bold",
        "reg.state.active": "green",
        "reg.state.expired": "yellow",
        "reg.state.unregistered": "dim",
    }
)

_STATE_STYLES: dict[str, str] = {
    "active": "reg.state.active",
    "expired": "reg.state.expired",
    "unregistered": "reg.state.unregistered",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=NAMEREG_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Rendered text of a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_state(state: str) -> str:
    return _STATE_STYLES.get(state, "")
