"""Click CLI entry point for fleetcollect."""
from __future__ import annotations

import json
import logging
import sys
from dataclasses import replace

import click

from fleetcollect import __version__
from fleetcollect.archive import TarPackager
from fleetcollect.config import Settings, load_settings
from fleetcollect.definitions import DefinitionStore
from fleetcollect.errors import CollectorError, RunStateError
from fleetcollect.executor import Executor
from fleetcollect.ingress import IngressClient
from fleetcollect.orchestrator import Orchestrator
from fleetcollect.output import terminal
from fleetcollect.state import RunStateCache

logger = logging.getLogger(__name__)


class AppContext:
    def __init__(self, settings: Settings, output_format: str):
        self.settings = settings
        self.output_format = output_format
        self.store = DefinitionStore(settings)
        self.cache = RunStateCache(settings.cache_dir)

    @property
    def json(self) -> bool:
        return self.output_format == "json"


def _echo_json(data) -> None:
    click.echo(json.dumps(data))


def _load(app: AppContext, collector_id: str):
    try:
        return app.store.load_one(collector_id)
    except CollectorError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version=__version__, prog_name="fleetcollect")
@click.option("--format", "output_format", type=click.Choice(["human", "json"]),
              default="human", help="Output format")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="JSON configuration file")
@click.option("--definitions-dir", type=click.Path(file_okay=False),
              help="Directory with collector definitions")
@click.option("--collections-dir", type=click.Path(file_okay=False),
              help="Directory where collection directories are created")
@click.option("--cache-dir", type=click.Path(file_okay=False),
              help="Directory holding last-run records")
@click.pass_context
def cli(ctx: click.Context, output_format: str, debug: bool, config_path: str | None,
        definitions_dir: str | None, collections_dir: str | None,
        cache_dir: str | None) -> None:
    """Collect and upload data."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(name)s: %(message)s",
    )
    settings = load_settings(
        config_path,
        definitions_dir=definitions_dir,
        collections_dir=collections_dir,
        cache_dir=cache_dir,
    )
    logger.debug("Using settings %s", settings)
    ctx.obj = AppContext(settings, output_format)


@cli.command()
@click.argument("collector")
@click.option("--keep", is_flag=True, help="Do not delete the collected data")
@click.option("--no-upload", is_flag=True, help="Do not upload data (implies --keep)")
@click.option("--timeout", type=float, default=None,
              help="Kill the collector after this many seconds (0 disables)")
@click.pass_obj
def run(app: AppContext, collector: str, keep: bool, no_upload: bool,
        timeout: float | None) -> None:
    """Run a collector and upload its data."""
    definition = _load(app, collector)

    settings = app.settings
    if timeout is not None:
        settings = replace(settings, timeout=timeout if timeout > 0 else None)

    orchestrator = Orchestrator(
        Executor(settings, app.cache),
        TarPackager(settings.compression),
        IngressClient.from_settings(settings),
    )
    summary = orchestrator.run(definition, keep=keep or no_upload, upload=not no_upload)

    if app.json:
        _echo_json(summary.to_dict())
    else:
        terminal.render_run(summary)
    if not summary.succeeded:
        sys.exit(1)


@cli.command()
@click.argument("collector")
@click.pass_obj
def info(app: AppContext, collector: str) -> None:
    """Display collector information."""
    definition = _load(app, collector)
    if app.json:
        _echo_json(definition.to_dict())
    else:
        terminal.render_info(definition)


@cli.command("list")
@click.pass_obj
def list_cmd(app: AppContext) -> None:
    """List collectors."""
    try:
        definitions = app.store.load_all()
    except CollectorError as e:
        raise click.ClickException(str(e)) from e
    if app.json:
        _echo_json([d.to_dict() for d in definitions])
    else:
        terminal.render_list(definitions)


@cli.command()
@click.pass_obj
def timers(app: AppContext) -> None:
    """List collectors with their last run."""
    try:
        definitions = app.store.load_all()
    except CollectorError as e:
        raise click.ClickException(str(e)) from e

    rows = []
    for definition in definitions:
        try:
            last = app.cache.last_run_at(definition.id)
        except RunStateError:
            last = None
        rows.append((definition, last))

    if app.json:
        _echo_json([
            {
                "id": d.id,
                "last-run": int(last.timestamp()) if last else None,
                "systemd-service": d.service,
                "systemd-timer": d.timer,
            }
            for d, last in rows
        ])
    else:
        terminal.render_timers(rows)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
