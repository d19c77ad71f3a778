import os
import platform
import sys
import time
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from treelog import LogRecord, reset


load_dotenv()
log_path_env = os.getenv("TREELOG_TEST_LOG")
log_path = (
    Path(log_path_env).expanduser().resolve()
    if log_path_env
    else Path(__file__).resolve().parents[1] / "logs" / "pytest.log"
)
log_path.parent.mkdir(parents=True, exist_ok=True)

# Clear log file at import time (before session starts)
log_path.write_text("")

# Plain text console for .log file
_file_console = Console(
    record=False,
    log_path=False,
    log_time=False,
    file=log_path.open("a"),
    width=100,
    force_terminal=False,
    no_color=True,
)

# Terminal console for colored stderr output (avoids pytest stdout capture)
_terminal_console = Console(
    record=False, log_path=False, log_time=False, stderr=True, width=100
)


class MultiConsole:
    """Wrapper that writes to file (plain) and terminal (colored) consoles."""

    def __init__(self, file_console: Console, terminal_console: Console) -> None:
        self._file = file_console
        self._terminal = terminal_console

    def _call_all(self, method_name: str, *args, **kwargs):
        getattr(self._file, method_name)(*args, **kwargs)
        getattr(self._terminal, method_name)(*args, **kwargs)

    def print(self, *args, **kwargs) -> None:
        self._call_all("print", *args, **kwargs)

    def rule(self, *args, **kwargs) -> None:
        self._call_all("rule", *args, **kwargs)


console: MultiConsole = MultiConsole(
    file_console=_file_console, terminal_console=_terminal_console
)


def _format_duration(seconds: float) -> str:
    """Format duration in human-readable form."""
    if seconds < 0.001:
        return f"{seconds * 1_000_000:.0f}µs"
    elif seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    else:
        mins, secs = divmod(seconds, 60)
        return f"{int(mins)}m {secs:.1f}s"


def pytest_sessionstart(session: pytest.Session) -> None:
    session.name = "treelog Tests"
    object.__setattr__(session, "start_time", time.perf_counter())


@pytest.fixture(autouse=True, scope="session")
def log_session_start_and_end(request: pytest.FixtureRequest) -> Generator[None]:
    config = request.config
    session = request.session

    env_table = Table(show_header=False, box=None, padding=(0, 2))
    env_table.add_column("Key", style="dim")
    env_table.add_column("Value")
    env_table.add_row(
        "Python",
        f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
    )
    env_table.add_row("Platform", platform.platform())
    env_table.add_row("Root", str(config.rootpath))
    env_table.add_row("Log File", str(log_path))
    env_table.add_row("Invocation Args", " ".join(["pytest", *sys.argv[1:]]))

    console.print()
    console.print(
        Panel(
            env_table,
            title=f"[bold magenta]{session.name}[/]",
            subtitle=f"[dim]{time.strftime('%Y-%m-%d %H:%M:%S')}[/]",
            border_style="magenta",
            padding=(1, 2),
        )
    )

    yield

    duration = _format_duration(time.perf_counter() - session.start_time)  # type: ignore[attr-defined]

    passed = session.testscollected - session.testsfailed
    status_style = "green" if session.testsfailed == 0 else "red"

    summary = Text()
    summary.append(f"✓ {passed} passed", style="green")
    if session.testsfailed:
        summary.append(f"  ✗ {session.testsfailed} failed", style="red")
    summary.append(f"  ⏱ {duration}", style="dim")

    console.print()
    console.print(
        Panel(
            summary,
            title="[bold]Session Complete[/]",
            border_style=status_style,
            padding=(0, 2),
        )
    )
    console.print()


@pytest.fixture(autouse=True, scope="module")
def log_module_start_and_end(request: pytest.FixtureRequest) -> Generator[None]:
    module_name = request.module.__name__.replace("tests.", "")

    console.print()
    console.rule(f"[bold blue]{module_name}[/]", style="blue")

    yield

    console.rule(style="blue")


@pytest.fixture(autouse=True)
def reset_logger_tree() -> Generator[None]:
    """Every test starts and ends with an unconfigured logger tree."""
    reset()
    yield
    reset()


@pytest.fixture
def make_record() -> Callable[..., LogRecord]:
    """Build records shaped like ``my-app·junk: Hello, 123 & 456!``."""

    def factory(level: str = "info", **overrides: Any) -> LogRecord:
        fields: dict[str, Any] = {
            "category": ("my-app", "junk"),
            "level": level,
            "timestamp": 1700000000.0,
            "raw_message": "Hello, {a} & {b}!",
            "message": ("Hello, ", 123, " & ", 456, "!"),
            "properties": {},
        }
        fields.update(overrides)
        return LogRecord(**fields)

    return factory


@pytest.fixture
def records() -> list[LogRecord]:
    """A list whose ``append`` doubles as a recording sink."""
    return []
