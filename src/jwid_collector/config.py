"""Runtime settings read from the environment (and the repo-root .env)."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path


SEARCH_URL = 'https://www2.jasrac.or.jp/eJwid/main?trxID=F00100'
USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
_DEFAULT_JOB_DIR = Path(tempfile.gettempdir()) / 'jwid-collector'


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f'{name} must be an integer, got {raw!r}') from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, '').strip().lower()
    if not raw:
        return default
    return raw not in ('0', 'false', 'no', 'off')


@dataclass(frozen=True)
class Settings:
    search_url: str = SEARCH_URL
    job_dir: Path = _DEFAULT_JOB_DIR
    debug_dir: Path = Path('debug')
    headless: bool = True
    user_agent: str = USER_AGENT
    # The registry renders client-side after navigation; these are waits, not throttling
    initial_settle_ms: int = 5000
    settle_ms: int = 2000
    clear_settle_ms: int = 1000
    timeout_ms: int = 60000
    min_score: int = 0
    candidates: int = 3
    job_grace_seconds: int = 900
    job_stall_seconds: int = 30

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``JWID_*`` variables, falling back to defaults."""
        defaults = cls()
        return cls(
            search_url=os.environ.get('JWID_SEARCH_URL') or defaults.search_url,
            job_dir=Path(os.environ.get('JWID_JOB_DIR') or defaults.job_dir),
            debug_dir=Path(os.environ.get('JWID_DEBUG_DIR') or defaults.debug_dir),
            headless=_env_bool('JWID_HEADLESS', defaults.headless),
            user_agent=os.environ.get('JWID_USER_AGENT') or defaults.user_agent,
            initial_settle_ms=_env_int('JWID_INITIAL_SETTLE_MS', defaults.initial_settle_ms),
            settle_ms=_env_int('JWID_SETTLE_MS', defaults.settle_ms),
            clear_settle_ms=_env_int('JWID_CLEAR_SETTLE_MS', defaults.clear_settle_ms),
            timeout_ms=_env_int('JWID_TIMEOUT_MS', defaults.timeout_ms),
            min_score=_env_int('JWID_MIN_SCORE', defaults.min_score),
            candidates=_env_int('JWID_CANDIDATES', defaults.candidates),
            job_grace_seconds=_env_int('JWID_JOB_GRACE_SECONDS', defaults.job_grace_seconds),
            job_stall_seconds=_env_int('JWID_JOB_STALL_SECONDS', defaults.job_stall_seconds),
        )
