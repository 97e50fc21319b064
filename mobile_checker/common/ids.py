"""Run identifier helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def generate_run_id(command: str = "run") -> str:
    now = datetime.now(tz=timezone.utc)
    # Sortable, so log files list in run order.
    return now.strftime(f"{command}-%Y%m%dT%H%M%S%fZ")
