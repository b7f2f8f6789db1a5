"""CLI entry point for jwid-collector."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from jwid_collector.cli import load_queries
from jwid_collector.config import Settings
from jwid_collector.errors import ExportFilenameError, JobAlreadyRunningError
from jwid_collector.export import (
    build_rows,
    decode_submission,
    parse_tsv,
    render_detailed_tsv,
    validate_rows,
    write_export,
)
from jwid_collector.job import JobCoordinator, JobStatus, JobStore, is_error_line
from jwid_collector.merge import promote_alternative
from jwid_collector.models import WorkRecord


def _echo_log(line: str) -> None:
    click.echo(line, err=is_error_line(line))


def _coordinator(ctx: click.Context) -> JobCoordinator:
    settings: Settings = ctx.obj
    return JobCoordinator(JobStore(settings.job_dir), settings)


def _require_results(ctx: click.Context) -> list[WorkRecord]:
    settings: Settings = ctx.obj
    results = JobStore(settings.job_dir).read_results()
    if results is None:
        click.echo('No results yet. Run "jwid-collector status" to follow the job.', err=True)
        sys.exit(1)
    return results


def _describe(record: WorkRecord) -> str:
    authors = ' / '.join(a for a in (record.lyricist, record.composer) if a)
    text = f'{record.work_code} — {record.title}'
    if authors:
        text += f' ({authors})'
    return text


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Look up songs in the JASRAC J-WID registry and export a usage report."""
    load_dotenv()
    try:
        ctx.obj = Settings.from_env()
    except ValueError as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)


@cli.command()
@click.argument('songs', type=click.Path(allow_dash=True, path_type=Path), default='-')
@click.option('--dummy', is_flag=True, help='Produce placeholder records without a browser.')
@click.option('--detach', is_flag=True, help='Start the job and return immediately.')
@click.pass_context
def search(ctx: click.Context, songs: Path, dummy: bool, detach: bool) -> None:
    """Search the registry for every song in SONGS (a JSON array, '-' for stdin)."""
    try:
        queries = load_queries(songs)
    except (OSError, ValueError) as e:
        click.echo(f'Error: cannot read songs: {e}', err=True)
        sys.exit(1)

    coordinator = _coordinator(ctx)
    try:
        handle = coordinator.start(queries, dummy=dummy)
    except (JobAlreadyRunningError, ValueError) as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)

    click.echo(f'Searching {len(queries)} songs (worker pid {handle.pid}).')
    if detach:
        click.echo('Follow progress with "jwid-collector status".')
        return

    try:
        status = coordinator.wait(on_log=_echo_log)
    except KeyboardInterrupt:
        click.echo('\nCancelling after the current song...', err=True)
        coordinator.cancel()
        status = coordinator.wait(on_log=_echo_log)

    results = coordinator.snapshot().results or []
    click.echo(f'\nDone: {status.value}, {len(results)} works collected.')
    if status is JobStatus.FAILED:
        click.echo('The search failed. Check the log above for details.', err=True)
        sys.exit(1)


@cli.command()
@click.option('--lines', default=10, show_default=True, help='Log lines to show.')
@click.pass_context
def status(ctx: click.Context, lines: int) -> None:
    """Show the state of the current job and its latest log lines."""
    snapshot = _coordinator(ctx).snapshot()
    click.echo(f'Status: {snapshot.status.value}')
    if snapshot.results is not None:
        click.echo(f'Results: {len(snapshot.results)} works')
    for line in snapshot.logs[-lines:] if lines > 0 else []:
        _echo_log(line)


@cli.command()
@click.option('--errors-only', is_flag=True, help='Only show error lines.')
@click.pass_context
def logs(ctx: click.Context, errors_only: bool) -> None:
    """Print the full log of the current job."""
    for line in _coordinator(ctx).snapshot().logs:
        if errors_only and not is_error_line(line):
            continue
        _echo_log(line)


@cli.command()
@click.pass_context
def cancel(ctx: click.Context) -> None:
    """Stop the running job after the song in progress."""
    if _coordinator(ctx).cancel():
        click.echo('Cancellation requested.')
    else:
        click.echo('No search is running.')


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print the raw result artifact.')
@click.pass_context
def results(ctx: click.Context, as_json: bool) -> None:
    """List the collected works and their alternatives."""
    records = _require_results(ctx)
    if as_json:
        click.echo(
            json.dumps(
                [r.to_dict(include_html=False) for r in records],
                ensure_ascii=False,
                indent=2,
            )
        )
        return

    for i, record in enumerate(records, 1):
        click.echo(f'  {i}. ✓ {_describe(record)}')
        for j, alt in enumerate(record.alternatives, 1):
            click.echo(f'       {i}.{j} alternative: {_describe(alt)}')
    click.echo(f'\n{len(records)} works.')


@cli.command()
@click.argument('row', type=click.IntRange(min=1))
@click.argument('alternative', type=click.IntRange(min=1))
@click.pass_context
def promote(ctx: click.Context, row: int, alternative: int) -> None:
    """Make ALTERNATIVE of result ROW the primary record (both 1-based)."""
    coordinator = _coordinator(ctx)
    if coordinator.is_running():
        click.echo('Error: wait for the running search to finish.', err=True)
        sys.exit(1)

    records = _require_results(ctx)
    if row > len(records):
        click.echo(f'Error: there are only {len(records)} results.', err=True)
        sys.exit(1)
    try:
        records[row - 1] = promote_alternative(records[row - 1], alternative - 1)
    except IndexError as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)

    settings: Settings = ctx.obj
    JobStore(settings.job_dir).write_results(records)
    click.echo(f'  ✓ {row}. {_describe(records[row - 1])}')


def _parse_override(raw: str) -> tuple[int, str, str]:
    """``ROW:COLUMN=VALUE`` with a 1-based row."""
    target, sep, value = raw.partition('=')
    row, colon, column = target.partition(':')
    if not sep or not colon or not row.isdigit() or int(row) < 1:
        raise click.BadParameter(f'expected ROW:COLUMN=VALUE, got {raw!r}')
    return int(row) - 1, column.strip(), value


@cli.command()
@click.option('--license-code', required=True, help='10-character license code.')
@click.option('--month', 'year_month', required=True, help='Usage month as YYYYMM.')
@click.option('--suffix', default='', help='Optional alphanumeric filename suffix.')
@click.option(
    '--out-dir',
    type=click.Path(file_okay=False, path_type=Path),
    default=Path('.'),
    show_default=True,
)
@click.option('--header', is_flag=True, help='Keep the column header row.')
@click.option(
    '--set',
    'overrides',
    multiple=True,
    help='Override a cell, e.g. --set "1:ＩＶＴ区分=V". Repeatable.',
)
@click.option('--detailed', is_flag=True, help='Also write a UTF-8 detailed TSV.')
@click.pass_context
def export(
    ctx: click.Context,
    license_code: str,
    year_month: str,
    suffix: str,
    out_dir: Path,
    header: bool,
    overrides: tuple[str, ...],
    detailed: bool,
) -> None:
    """Write the cp932 usage report for the collected works."""
    records = _require_results(ctx)

    cell_overrides: dict[int, dict[str, str]] = {}
    for raw in overrides:
        row, column, value = _parse_override(raw)
        cell_overrides.setdefault(row, {})[column] = value

    rows = build_rows(records, cell_overrides)
    for issue in validate_rows(rows):
        click.echo(f'  ! row {issue.row} {issue.column}: {issue.message}', err=True)

    try:
        path = write_export(out_dir, rows, license_code, year_month, suffix, include_header=header)
    except ExportFilenameError as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)
    click.echo(f'  ✓ {path} ({len(rows)} rows)')

    if detailed:
        detailed_path = path.with_name(f'{path.stem}-detailed.tsv')
        detailed_path.write_text(render_detailed_tsv(records), encoding='utf-8')
        click.echo(f'  ✓ {detailed_path}')


@cli.command()
@click.argument('report', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(report: Path) -> None:
    """Check an existing cp932 report file against the column rules."""
    try:
        rows = parse_tsv(decode_submission(report.read_bytes()))
    except ValueError as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)

    issues = validate_rows(rows)
    for issue in issues:
        click.echo(f'  ! row {issue.row} {issue.column}: {issue.message}')
    if issues:
        click.echo(f'\n{len(rows)} rows, {len(issues)} issues.')
        sys.exit(1)
    click.echo(f'  ✓ {len(rows)} rows, no issues.')


if __name__ == '__main__':
    cli()
