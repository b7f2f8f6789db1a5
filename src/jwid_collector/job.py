"""Job lifecycle: durable log/result sink, the runner, and the coordinator.

The runner lives in a worker process (``python -m jwid_collector.cli.collect``)
and is the only writer of the job directory while it runs. Pollers read the
same files and treat anything absent, truncated or unparsable as "not ready".
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import signal
import subprocess
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from jwid_collector.collector import dummy_record, search_work
from jwid_collector.config import Settings
from jwid_collector.errors import (
    CollectorError,
    JobAlreadyRunningError,
    RegistryUnavailableError,
)
from jwid_collector.merge import ResultSet
from jwid_collector.models import Query, WorkRecord
from jwid_collector.registry import Registry


logger = logging.getLogger(__name__)

ERROR_MARKER = '[ERROR]'
CANCEL_MARKER = '[CANCELLED]'

INPUT_FILE = 'input.json'
LOG_FILE = 'logs.jsonl'
STATUS_FILE = 'status.json'
RESULTS_FILE = 'results.json'
PID_FILE = 'worker.pid'
WORKER_ERR_FILE = 'worker.err'
HTML_DIR = 'html'


class JobStatus(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    FAILED = 'failed'

    @property
    def finished(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED)


@dataclass(frozen=True)
class JobSnapshot:
    status: JobStatus
    logs: list[str]
    results: list[WorkRecord] | None


def is_error_line(line: str) -> bool:
    return line.startswith(ERROR_MARKER)


def parse_queries(data: Any) -> list[Query]:
    """Turn job-submission JSON (a list of objects) into queries."""
    if not isinstance(data, list):
        raise ValueError('expected a JSON array of songs')
    queries: list[Query] = []
    for i, item in enumerate(data, 1):
        if not isinstance(item, dict):
            raise ValueError(f'song {i} is not a JSON object')
        queries.append(Query.from_dict(item))
    return queries


def _write_atomic(path: Path, text: str) -> None:
    tmp = path.with_name(path.name + '.tmp')
    tmp.write_text(text, encoding='utf-8')
    os.replace(tmp, path)


class JobStore:
    """Files of the one job in flight, rooted at *root*."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def path(self, name: str) -> Path:
        return self.root / name

    def reset(self) -> None:
        """Remove everything left by the previous job."""
        self.root.mkdir(parents=True, exist_ok=True)
        for name in (INPUT_FILE, LOG_FILE, STATUS_FILE, RESULTS_FILE, PID_FILE, WORKER_ERR_FILE):
            self.path(name).unlink(missing_ok=True)
        shutil.rmtree(self.path(HTML_DIR), ignore_errors=True)

    # ── Input ──

    def write_input(self, queries: list[Query]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        _write_atomic(
            self.path(INPUT_FILE),
            json.dumps([q.to_dict() for q in queries], ensure_ascii=False, indent=2),
        )

    def read_input(self) -> list[Query]:
        return parse_queries(json.loads(self.path(INPUT_FILE).read_text(encoding='utf-8')))

    # ── Log stream ──

    def append_log(self, line: str) -> None:
        with self.path(LOG_FILE).open('a', encoding='utf-8') as f:
            f.write(json.dumps(line, ensure_ascii=False) + '\n')

    def read_logs(self) -> list[str]:
        try:
            raw = self.path(LOG_FILE).read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError):
            return []
        lines: list[str] = []
        for chunk in raw.splitlines():
            try:
                line = json.loads(chunk)
            except json.JSONDecodeError:
                # Partially written last line
                continue
            if isinstance(line, str):
                lines.append(line)
        return lines

    def last_activity(self) -> float | None:
        """Modification time of the log, or None before the first line."""
        try:
            return self.path(LOG_FILE).stat().st_mtime
        except OSError:
            return None

    # ── Status ──

    def write_status(self, status: JobStatus) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        _write_atomic(
            self.path(STATUS_FILE),
            json.dumps(
                {
                    'status': status.value,
                    'updated_at': datetime.now(timezone.utc).isoformat(),
                }
            ),
        )

    def read_status(self) -> JobStatus:
        try:
            data = json.loads(self.path(STATUS_FILE).read_text(encoding='utf-8'))
            return JobStatus(data['status'])
        except (OSError, ValueError, KeyError, TypeError):
            return JobStatus.IDLE

    # ── Results ──

    def write_results(self, records: list[WorkRecord]) -> None:
        """Persist the result artifact plus one raw-HTML file per work."""
        html_dir = self.path(HTML_DIR)
        html_dir.mkdir(parents=True, exist_ok=True)
        for record in records:
            if record.raw_html and record.export_code:
                (html_dir / f'{record.export_code}.html').write_text(
                    record.raw_html, encoding='utf-8'
                )
        _write_atomic(
            self.path(RESULTS_FILE),
            json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2),
        )

    def read_results(self) -> list[WorkRecord] | None:
        """Return the results, or None while the artifact is absent or unreadable."""
        try:
            raw = self.path(RESULTS_FILE).read_text(encoding='utf-8')
            data = json.loads(raw) if raw.strip() else None
        except (OSError, ValueError):
            return None
        if not isinstance(data, list):
            return None
        try:
            return [WorkRecord.from_dict(item) for item in data]
        except (AttributeError, TypeError) as exc:
            logger.debug('Result artifact not ready: %s', exc)
            return None

    # ── Worker PID ──

    def write_pid(self, pid: int) -> None:
        _write_atomic(self.path(PID_FILE), str(pid))

    def read_pid(self) -> int | None:
        try:
            return int(self.path(PID_FILE).read_text().strip())
        except (OSError, ValueError):
            return None

    def clear_pid(self) -> None:
        self.path(PID_FILE).unlink(missing_ok=True)

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            status=self.read_status(),
            logs=self.read_logs(),
            results=self.read_results(),
        )


# ── Logging into the job log ──


class JobLogFormatter(logging.Formatter):
    """Prefix ERROR and above with the marker pollers look for."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.ERROR and not is_error_line(message):
            return f'{ERROR_MARKER} {message}'
        return message


class JobLogHandler(logging.Handler):
    def __init__(self, store: JobStore, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._store = store
        self.setFormatter(JobLogFormatter('%(message)s'))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._store.append_log(self.format(record))
        except Exception:
            self.handleError(record)


# ── Runner (worker side) ──


class JobRunner:
    """Runs every query of one job in sequence and persists the outcome.

    Idle → Running → Completed | Cancelled | Failed. Only setup errors fail
    the job; a query that errors or finds nothing is logged and skipped.
    Cancellation is checked between queries.
    """

    def __init__(
        self,
        store: JobStore,
        registry: Registry | None,
        settings: Settings,
        dummy: bool = False,
    ) -> None:
        if registry is None and not dummy:
            raise ValueError('a registry is required unless running in dummy mode')
        self._store = store
        self._registry = registry
        self._settings = settings
        self._dummy = dummy
        self._cancelled = False
        self.status = JobStatus.IDLE

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = 'search cancelled by user') -> None:
        if self._cancelled:
            return
        self._cancelled = True
        # Written directly so the marker lands whether or not run() is active
        self._store.append_log(f'{CANCEL_MARKER} {reason} (pid {os.getpid()})')

    async def run(self, queries: list[Query]) -> JobStatus:
        package_logger = logging.getLogger('jwid_collector')
        previous_level = package_logger.level
        if previous_level == logging.NOTSET or previous_level > logging.INFO:
            package_logger.setLevel(logging.INFO)
        handler = JobLogHandler(self._store)
        package_logger.addHandler(handler)
        try:
            return await self._run(queries)
        finally:
            package_logger.removeHandler(handler)
            package_logger.setLevel(previous_level)

    async def _run(self, queries: list[Query]) -> JobStatus:
        self._set_status(JobStatus.RUNNING)
        logger.info('Starting search for %d songs', len(queries))
        try:
            results = await self._collect(queries)
            self._store.write_results(results.records())
        except (RegistryUnavailableError, OSError) as exc:
            logger.error('Job failed: %s', exc)
            self._set_status(JobStatus.FAILED)
            return self.status

        logger.info('Collected %d works from %d songs', len(results), len(queries))
        self._set_status(JobStatus.CANCELLED if self._cancelled else JobStatus.COMPLETED)
        return self.status

    async def _collect(self, queries: list[Query]) -> ResultSet:
        results = ResultSet()
        if self._dummy:
            logger.info('Dummy mode: no registry searches are made')
            for i, query in enumerate(queries):
                if self._cancelled:
                    break
                results.add(dummy_record(query, i))
                # Same pacing as a real search
                await asyncio.sleep(self._settings.settle_ms / 1000)
            return results

        if self._registry is None:
            raise RuntimeError('no registry configured outside dummy mode')
        total = len(queries)
        async with self._registry as registry:
            for i, query in enumerate(queries, 1):
                if self._cancelled:
                    logger.info('Not starting song %d of %d', i, total)
                    break
                label = query.title or '(no title)'
                logger.info('[%d/%d] Searching: %s', i, total, label)
                try:
                    outcome = await search_work(
                        registry,
                        query,
                        min_score=self._settings.min_score,
                        limit=self._settings.candidates,
                    )
                except CollectorError as exc:
                    logger.error('[%d/%d] %s: %s', i, total, label, exc)
                    continue

                if outcome.record is None:
                    logger.info('[%d/%d] No registry entry found for %s', i, total, label)
                elif results.add(outcome.record):
                    logger.info(
                        '[%d/%d] Found %s (%s)',
                        i,
                        total,
                        outcome.record.work_code,
                        outcome.record.title,
                    )
                else:
                    logger.info(
                        '[%d/%d] %s already collected; merged alternatives',
                        i,
                        total,
                        outcome.record.work_code,
                    )
        return results

    def _set_status(self, status: JobStatus) -> None:
        self.status = status
        self._store.write_status(status)


# ── Coordinator (caller side) ──


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@dataclass(frozen=True)
class JobHandle:
    pid: int
    job_dir: Path


class JobCoordinator:
    """Owns the single job: starts the worker, cancels it, waits for it."""

    def __init__(self, store: JobStore, settings: Settings) -> None:
        self._store = store
        self._settings = settings
        self._process: subprocess.Popen[bytes] | None = None

    def is_running(self) -> bool:
        if self._process is not None:
            return self._process.poll() is None
        pid = self._store.read_pid()
        return pid is not None and _pid_alive(pid)

    def start(self, queries: list[Query], dummy: bool = False) -> JobHandle:
        """Start a worker for *queries*, clearing the previous job's files.

        Raises JobAlreadyRunningError while another worker is alive.
        """
        if self.is_running():
            raise JobAlreadyRunningError(
                f'a search is already running (pid {self._store.read_pid()})'
            )
        if not queries:
            raise ValueError('no songs to search')

        self._store.reset()
        self._store.write_input(queries)
        self._store.write_status(JobStatus.RUNNING)

        cmd = [
            sys.executable,
            '-m',
            'jwid_collector.cli.collect',
            '--job-dir',
            str(self._store.root),
        ]
        if dummy:
            cmd.append('--dummy')
        with self._store.path(WORKER_ERR_FILE).open('wb') as err:
            self._process = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=err)
        self._store.write_pid(self._process.pid)
        logger.info('Worker started (pid %d)', self._process.pid)
        return JobHandle(pid=self._process.pid, job_dir=self._store.root)

    def cancel(self) -> bool:
        """Ask the worker to stop after the current song. False if none is running."""
        pid = self._store.read_pid()
        if pid is None or not self.is_running():
            return False
        os.kill(pid, signal.SIGTERM)
        logger.info('Sent SIGTERM to worker %d', pid)
        return True

    def wait(
        self,
        on_log: Callable[[str], None] | None = None,
        poll_interval: float = 1.0,
    ) -> JobStatus:
        """Block until the worker exits, streaming new log lines to *on_log*.

        Past the grace period, a worker whose log has been idle for the stall
        window is killed and the job marked failed.
        """
        started = time.monotonic()
        seen = 0

        def _drain() -> None:
            nonlocal seen
            if on_log is None:
                return
            lines = self._store.read_logs()
            for line in lines[seen:]:
                on_log(line)
            seen = len(lines)

        while self.is_running():
            _drain()
            if time.monotonic() - started > self._settings.job_grace_seconds:
                last = self._store.last_activity()
                if last is None or time.time() - last > self._settings.job_stall_seconds:
                    self._kill()
                    self._store.append_log(
                        f'{ERROR_MARKER} The registry did not respond in time; '
                        'try again later'
                    )
                    self._store.write_status(JobStatus.FAILED)
                    break
            time.sleep(poll_interval)

        status = self._store.read_status()
        if status is JobStatus.RUNNING:
            detail = self._worker_error()
            self._store.append_log(
                f'{ERROR_MARKER} Worker exited without finishing'
                + (f': {detail}' if detail else '')
            )
            self._store.write_status(JobStatus.FAILED)
            status = JobStatus.FAILED
        _drain()
        self._store.clear_pid()
        return status

    def snapshot(self) -> JobSnapshot:
        return self._store.snapshot()

    def _kill(self) -> None:
        pid = self._store.read_pid()
        if self._process is not None:
            self._process.kill()
            self._process.wait()
        elif pid is not None and _pid_alive(pid):
            os.kill(pid, signal.SIGKILL if hasattr(signal, 'SIGKILL') else signal.SIGTERM)

    def _worker_error(self) -> str:
        try:
            text = self._store.path(WORKER_ERR_FILE).read_text(encoding='utf-8', errors='replace')
        except OSError:
            return ''
        lines = [line for line in text.splitlines() if line.strip()]
        return lines[-1] if lines else ''
