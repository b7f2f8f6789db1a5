"""Command-line entry points: the user-facing ``jwid-collector`` group and the worker."""

from __future__ import annotations

import json
import sys
from pathlib import Path

from jwid_collector.job import parse_queries
from jwid_collector.models import Query


def load_queries(path: Path | None) -> list[Query]:
    """Read a JSON array of songs from *path*, or stdin when it is None or '-'."""
    if path is None or str(path) == '-':
        raw = sys.stdin.read()
    else:
        raw = path.read_text(encoding='utf-8')
    return parse_queries(json.loads(raw))
