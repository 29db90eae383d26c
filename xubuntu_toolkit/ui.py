# ----------------------------------------------------------------
# Nord Color Theme & Console Setup
# ----------------------------------------------------------------
import shutil
from typing import Iterable, Sequence, Tuple

import pyfiglet
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.style import Style
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from xubuntu_toolkit import __version__


class NordColors:
    """Nord color palette for consistent styling."""

    POLAR_NIGHT_1: str = "#2E3440"
    POLAR_NIGHT_4: str = "#4C566A"
    SNOW_STORM_1: str = "#D8DEE9"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"
    RED: str = "#BF616A"
    ORANGE: str = "#D08770"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"
    PURPLE: str = "#B48EAD"


nord_theme = Theme(
    {
        "info": f"{NordColors.FROST_2}",
        "warning": f"{NordColors.YELLOW}",
        "error": f"{NordColors.RED}",
        "success": f"{NordColors.GREEN}",
        "debug": f"{NordColors.POLAR_NIGHT_4}",
        "header": f"bold {NordColors.FROST_1}",
        "title": f"bold {NordColors.FROST_3}",
        "panel.border": f"{NordColors.FROST_4}",
    }
)

console = Console(theme=nord_theme, highlight=False)


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def create_header(title: str) -> Panel:
    """
    Generate an ASCII art header with gradient styling using Pyfiglet.

    Args:
        title: The title text to display in the ASCII art

    Returns:
        A Rich Panel containing the styled ASCII art header
    """
    term_width = shutil.get_terminal_size().columns
    adjusted_width = min(term_width - 4, 80)

    fonts = ["slant", "small", "standard"]
    ascii_art = ""
    for font in fonts:
        try:
            ascii_art = pyfiglet.Figlet(font=font, width=adjusted_width).renderText(
                title
            )
        except pyfiglet.FigletError:
            continue
        if ascii_art.strip():
            break

    colors = [
        NordColors.FROST_1,
        NordColors.FROST_2,
        NordColors.FROST_3,
        NordColors.FROST_4,
    ]
    styled_text = Text()
    for i, line in enumerate(l for l in ascii_art.splitlines() if l.strip()):
        styled_text.append(line, style=Style(color=colors[i % len(colors)], bold=True))
        styled_text.append("\n")

    return Panel(
        styled_text,
        border_style=Style(color=NordColors.FROST_1),
        padding=(1, 2),
        title=f"v{__version__}",
        title_align="right",
    )


def print_header(title: str) -> None:
    console.print(create_header(title))


def print_section(title: str) -> None:
    """Display a section header with consistent styling."""
    console.print()
    console.print(f"[bold {NordColors.FROST_3}]{title}[/]")
    console.print(f"[{NordColors.FROST_3}]{'─' * len(title)}[/]")
    console.print()


def print_message(
    text: str, style: str = NordColors.FROST_2, prefix: str = "•"
) -> None:
    """Print a styled message with a prefix."""
    console.print(f"[{style}]{prefix} {text}[/{style}]")


def print_success(message: str) -> None:
    print_message(message, NordColors.GREEN, "✓")


def print_warning(message: str) -> None:
    print_message(message, NordColors.YELLOW, "⚠")


def print_error(message: str) -> None:
    print_message(message, NordColors.RED, "✗")


def print_step(message: str) -> None:
    print_message(message, NordColors.FROST_2, "→")


STATUS_STYLES = {
    "success": NordColors.GREEN,
    "failed": NordColors.RED,
    "skipped": NordColors.POLAR_NIGHT_4,
    "in_progress": NordColors.YELLOW,
    "pending": NordColors.FROST_3,
}


def print_status_report(title: str, rows: Iterable[Tuple[str, str, str]]) -> None:
    """Display a summary table of (task, status, message) rows."""
    table = Table(
        title=title,
        title_style=f"bold {NordColors.FROST_1}",
        border_style=f"{NordColors.FROST_3}",
        box=box.ROUNDED,
        show_lines=True,
    )
    table.add_column("Task", style=f"bold {NordColors.FROST_2}")
    table.add_column("Status", style="bold")
    table.add_column("Message")

    for task, status, message in rows:
        style = STATUS_STYLES.get(status.lower(), NordColors.FROST_2)
        table.add_row(task, f"[{style}]{status.upper()}[/{style}]", message)

    console.print(Panel(table, border_style=f"{NordColors.FROST_1}"))


def print_table(title: str, columns: Sequence[str], rows: Iterable[Sequence[str]]) -> None:
    table = Table(
        title=title,
        title_style=f"bold {NordColors.FROST_1}",
        header_style=f"bold {NordColors.FROST_3}",
        box=box.ROUNDED,
    )
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*row)
    console.print(table)


def confirm(prompt: str, assume_yes: bool = False, default: bool = False) -> bool:
    """Ask a yes/no question unless running non-interactively."""
    if assume_yes:
        return True
    return Confirm.ask(f"[{NordColors.YELLOW}]{prompt}[/]", default=default)
