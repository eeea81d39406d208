from typing import Iterable, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from ..models.generation import Generation
from ..processing.diff import ChangeKind, DiffSegment, DiffStats
from ..processing.paragraphs import Paragraph

DIFF_STYLES = {
    ChangeKind.UNCHANGED: "",
    ChangeKind.ADDED: "bold green",
    ChangeKind.REMOVED: "strike red",
}


def diff_text(segments: Sequence[DiffSegment]) -> Text:
    text = Text()
    for segment in segments:
        text.append(segment.content, style=DIFF_STYLES[segment.kind])
    return text


def print_diff(console: Console, segments: Sequence[DiffSegment], stats: DiffStats):
    console.print(diff_text(segments))
    console.print(
        f"\n[green]+{stats.added_chars}[/green] / [red]-{stats.removed_chars}[/red] chars "
        f"in {stats.added_segments + stats.removed_segments} changed segment(s)"
    )


def print_paragraphs(console: Console, paragraphs: Iterable[Paragraph]):
    for p in paragraphs:
        console.print(f"[bold cyan][{p.index}][/bold cyan] {escape(p.text)}\n", highlight=False)


def history_table(generations: Sequence[Generation], title: str = "Generations") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Parent", style="dim", no_wrap=True)
    table.add_column("Created", no_wrap=True)
    table.add_column("Status")
    table.add_column("Live", justify="center")
    table.add_column("Feedback / synopsis")
    table.add_column("Text")

    status_styles = {"accepted": "green", "rejected": "red", "proposed": "yellow"}
    for g in generations:
        status = g.status.value
        table.add_row(
            g.id[:8],
            g.parent_id[:8] if g.parent_id else "-",
            g.created_at.strftime("%Y-%m-%d %H:%M"),
            f"[{status_styles[status]}]{status}[/{status_styles[status]}]",
            "✓" if g.is_accepted else "",
            escape(g.iteration_feedback or g.synopsis or ""),
            escape(g.summary(40)),
        )
    return table
