"""Worker process: run one job from its job directory.

Started by the coordinator, never by hand in normal use. Reads
``input.json`` from the job directory, streams progress to ``logs.jsonl``
and writes ``results.json`` and ``status.json`` when done. SIGTERM stops
the job after the song in progress.

Usage:
    python -m jwid_collector.cli.collect --job-dir /tmp/jwid-collector [--dummy]
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from jwid_collector.config import Settings
from jwid_collector.job import ERROR_MARKER, JobRunner, JobStatus, JobStore
from jwid_collector.registry import PlaywrightRegistry


def _install_signal_handlers(runner: JobRunner) -> None:
    """Turn SIGTERM/SIGINT into a cancel request for the rest of the process."""

    def _handle(_signum: int, _frame: object) -> None:
        runner.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, _handle)


@click.command()
@click.option(
    '--job-dir',
    type=click.Path(file_okay=False, path_type=Path),
    required=True,
    help='Directory holding the job input, log and results.',
)
@click.option('--dummy', is_flag=True, help='Produce placeholder records without a browser.')
def main(job_dir: Path, dummy: bool) -> None:
    load_dotenv()
    logging.basicConfig(
        level=logging.WARNING,
        stream=sys.stderr,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    settings = Settings.from_env()
    store = JobStore(job_dir)
    registry = None if dummy else PlaywrightRegistry(settings)
    runner = JobRunner(store, registry, settings, dummy=dummy)
    # Before any work, so an early SIGTERM still ends as a cancelled job
    _install_signal_handlers(runner)

    try:
        queries = store.read_input()
    except (OSError, ValueError) as exc:
        store.append_log(f'{ERROR_MARKER} Cannot read the job input: {exc}')
        store.write_status(JobStatus.FAILED)
        sys.exit(1)

    status = asyncio.run(runner.run(queries))
    sys.exit(1 if status is JobStatus.FAILED else 0)


if __name__ == '__main__':
    main()
