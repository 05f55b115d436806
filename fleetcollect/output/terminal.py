"""Rich terminal output for collector listings and run results."""
from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fleetcollect.models import CollectorDefinition, RunSummary

console = Console(highlight=False)


def _value(value) -> str:
    if value is None or value == "":
        return "[dim]-[/dim]"
    return escape(str(value))


def render_info(definition: CollectorDefinition) -> None:
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("ID", escape(definition.id))
    table.add_row("Name", _value(definition.name))
    table.add_row("Feature", _value(definition.feature))
    table.add_row("Command", escape(definition.command))
    table.add_row("Content type", _value(definition.content_type))
    table.add_row("UID", _value(definition.uid))
    table.add_row("GID", _value(definition.gid))
    table.add_row("Service", _value(definition.service))
    table.add_row("Timer", _value(definition.timer))
    table.add_row("Definition", escape(definition.path))
    console.print(table)


def render_list(definitions: list[CollectorDefinition]) -> None:
    table = Table("ID", "NAME", box=None, pad_edge=False)
    for definition in definitions:
        table.add_row(escape(definition.id), escape(definition.name))
    console.print(table)


def render_timers(rows: list[tuple[CollectorDefinition, datetime | None]]) -> None:
    table = Table("ID", "LAST", "SERVICE", "TIMER", box=None, pad_edge=False)
    for definition, last in rows:
        last_text = last.isoformat(timespec="seconds") if last else "-"
        table.add_row(escape(definition.id), last_text, _value(definition.service), _value(definition.timer))
    console.print(table)
    console.print()
    console.print("Hint: Run 'fleetcollect info COLLECTOR' to show more details.")


def render_run(summary: RunSummary) -> None:
    name = escape(summary.collector.display_name)
    if summary.succeeded:
        console.print(f"Finished running collection for {name}.")
    else:
        console.print(f"[bold red]Collection for {name} failed.[/bold red]")

    line = f"Collection took {summary.collect_duration:f} s"
    if summary.kept and summary.kept_path:
        line += f" and has been kept in {escape(summary.kept_path)}."
    else:
        line += "."
    console.print(line, soft_wrap=True)

    if summary.uploaded:
        console.print(f"Uploading took {summary.upload_duration:f} s.")
    elif summary.upload_duration is not None:
        console.print(f"Upload failed after {summary.upload_duration:f} s.")
    else:
        console.print("Data have not been uploaded.")

    if summary.error:
        console.print(f"[red]{escape(summary.error)}[/red]", soft_wrap=True)
