"""
CLI interface for kinport.

Exports app records to a sheet sink. Without --out the run is a dry run
into an in-memory sheet and only the summary is printed.

Examples:

    kinport init

    kinport export --out ./exports

    kinport export-selected --field title --field status --out ./exports

    kinport incremental 2025-01-01T00:00:00Z --out ./exports

    kinport count
"""

import json
from pathlib import Path
from typing import Optional

import click
import yaml

from kinport import __version__
from kinport.errors import KinportError


def _build_exporter(ctx, out: Optional[Path]):
    from kinport.config import load_config
    from kinport.exporter import Exporter
    from kinport.sinks import CsvTableSink, InMemoryTableSink

    config = load_config(ctx.obj.get("config_path"))
    sink = CsvTableSink(out) if out else InMemoryTableSink()
    return Exporter(config, sink)


def _echo_result(result, as_json: bool, out: Optional[Path]) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return
    target = str(out) if out else "(dry run, nothing written)"
    click.echo(
        f"✓ Exported {result.record_count} records x {result.field_count} fields "
        f"in {result.duration_seconds:.2f}s -> {target}"
    )


def _fail(e: Exception) -> None:
    click.echo(f"✗ {e}", err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__, prog_name="kinport")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config.yaml")
@click.option("--log-level", default="INFO", show_default=True, help="DEBUG, INFO, WARNING or ERROR")
@click.option(
    "--log-format",
    type=click.Choice(["pretty", "structured"]),
    default="pretty",
    show_default=True,
)
@click.option("--log-file", type=click.Path(path_type=Path), help="Also write logs to this file")
@click.pass_context
def main(ctx, config_path: Optional[Path], log_level: str, log_format: str, log_file: Optional[Path]):
    """
    kinport - Export app records to a sheet.
    """
    from kinport.utils import setup_logging

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    setup_logging(log_file=log_file, log_level=log_level, log_format=log_format)


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize kinport configuration."""
    from kinport.config import get_kinport_home

    home = get_kinport_home()
    if not home.exists():
        home.mkdir(parents=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    env_path = home / ".env"
    default_cfg = {
        "subdomain": "example",
        "app_id": "1",
        "sheet_name": "data",
        "batch_size": 500,
        "sleep_ms": 100,
        "enable_styling": True,
        "exclude_fields": ["$revision"],
        "updated_at_field": "更新日時",
        "env_file": str(env_path),
    }
    cfg_path.write_text(yaml.safe_dump(default_cfg, sort_keys=False, allow_unicode=True))

    if not env_path.exists():
        env_path.write_text("# KINPORT_API_TOKEN=...\n")

    click.echo(f"Initialized kinport config at {cfg_path}")
    click.echo(f"Put the API token in {env_path} as KINPORT_API_TOKEN.")


@main.command("export")
@click.option("--field", "fields", multiple=True, help="Field code to export (repeatable; default: all)")
@click.option("--out", type=click.Path(file_okay=False, path_type=Path), help="Directory for the CSV sheet")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def export(ctx, fields: tuple[str, ...], out: Optional[Path], as_json: bool):
    """Export all records."""
    try:
        exporter = _build_exporter(ctx, out)
        result = exporter.export_all(list(fields) or None)
    except KinportError as e:
        _fail(e)
    _echo_result(result, as_json, out)


@main.command("export-selected")
@click.option("--field", "fields", multiple=True, help="Field code to export (repeatable, required)")
@click.option("--out", type=click.Path(file_okay=False, path_type=Path), help="Directory for the CSV sheet")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def export_selected(ctx, fields: tuple[str, ...], out: Optional[Path], as_json: bool):
    """Export all records, restricted to the given fields."""
    try:
        exporter = _build_exporter(ctx, out)
        result = exporter.export_selected(list(fields))
    except KinportError as e:
        _fail(e)
    _echo_result(result, as_json, out)


@main.command("incremental")
@click.argument("since")
@click.option("--field", "fields", multiple=True, help="Field code to export (repeatable; default: all)")
@click.option("--out", type=click.Path(file_okay=False, path_type=Path), help="Directory for the CSV sheet")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def incremental(ctx, since: str, fields: tuple[str, ...], out: Optional[Path], as_json: bool):
    """
    Export records updated after SINCE.

    SINCE is an ISO-8601 timestamp, e.g. 2025-01-01T00:00:00Z.
    """
    try:
        exporter = _build_exporter(ctx, out)
        result = exporter.export_incremental(since, list(fields) or None)
    except KinportError as e:
        _fail(e)
    _echo_result(result, as_json, out)


@main.command("count")
@click.pass_context
def count(ctx):
    """Show the app's total record count."""
    try:
        exporter = _build_exporter(ctx, None)
        total = exporter.get_total_count()
    except KinportError as e:
        _fail(e)
    click.echo(str(total))


@main.group("config")
def config_group():
    """Inspect configuration."""
    pass


@config_group.command("show")
@click.pass_context
def show_config(ctx):
    """Show the effective configuration (API token masked)."""
    try:
        exporter = _build_exporter(ctx, None)
    except KinportError as e:
        _fail(e)
    click.echo(yaml.safe_dump(exporter.show_config(), sort_keys=False, allow_unicode=True))


if __name__ == "__main__":
    main()
