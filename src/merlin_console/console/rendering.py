import re
from typing import List, Optional, Tuple

from prompt_toolkit.formatted_text import FormattedText
from rich.console import Console
from rich.table import Table
from rich.text import Text

from merlin_console.messages import MessageLevel, TableData, UserMessage

console = Console()

# Prefix and style per message level
LEVEL_FORMATS = {
    MessageLevel.INFO: ("[i] ", "cyan"),
    MessageLevel.NOTE: ("[-] ", "yellow"),
    MessageLevel.WARN: ("[!] ", "red"),
    MessageLevel.DEBUG: ("[DEBUG] ", "red"),
    MessageLevel.SUCCESS: ("[+] ", "green"),
    MessageLevel.PLAIN: ("", ""),
}

_SEGMENT = re.compile(r"\[([^\]]*)\]")


def format_message(msg: UserMessage, debug: bool = False) -> Optional[Text]:
    """Return the styled text for ``msg``, or None when it should not be shown."""
    try:
        level = MessageLevel(msg.level)
    except ValueError:
        return Text(
            f"[_-_] Invalid message level: {int(msg.level)}\n{msg.text}", style="red"
        )
    if level == MessageLevel.DEBUG and not debug:
        return None
    prefix, style = LEVEL_FORMATS[level]
    return Text(f"{prefix}{msg.text}", style=style)


def build_table(data: TableData) -> Table:
    # Cells carry backend data; Text keeps rich from reading them as markup
    title = Text(data.title) if data.title else None
    table = Table(title=title, show_lines=False)
    for header in data.headers:
        table.add_column(Text(header))
    for row in data.rows:
        table.add_row(*(Text(cell) for cell in row))
    return table


def render_message(msg: UserMessage, debug: bool = False) -> None:
    """Render a single message via Rich."""
    text = format_message(msg, debug)
    if text is None:
        return
    console.print()
    if text.plain:
        console.print(text)
    if msg.table is not None:
        console.print(build_table(msg.table))


def prompt_fragments(prompt: str) -> FormattedText:
    """Color a plain prompt like ``merlin[listeners][http]» ``."""
    base = prompt.split("[", 1)[0].rstrip("» ")
    fragments: List[Tuple[str, str]] = [("ansired", base)]
    for index, segment in enumerate(_SEGMENT.findall(prompt)):
        style = "ansigreen" if index == 0 else "ansiyellow"
        fragments += [("ansired", "["), (style, segment), ("ansired", "]")]
    fragments += [("ansired", "»"), ("", " ")]
    return FormattedText(fragments)
