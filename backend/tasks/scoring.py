"""Completion scoring utilities.

Contains utilities for:
- normalizing timestamps,
- rounding the way the web client always has (halves towards +infinity),
- calculating the completion score of a finished task against its deadline.

A completion score is derived on demand and never stored.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_CEILING, Decimal
from typing import Any, Dict, Optional

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class CompletionScore:
    percentage: int
    is_early: bool
    time_status: str
    days_early: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _ensure_datetime(value: Any) -> datetime:
    """Normalize an input to a timezone-aware `datetime.datetime`.

    Accepts:
      - datetime instance (naive values are read as UTC)
      - ISO-8601 string (a trailing 'Z' is read as UTC, no offset means UTC)
      - raises ValueError for anything else
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid timestamp string: {value!r}")
    else:
        raise ValueError(f"Invalid timestamp type: {type(value)}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3, -2.5 -> -2)."""
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_CEILING))


def calculate_completion_score(created_at: Any,
                               deadline: Any,
                               completed_at: Any) -> Optional[CompletionScore]:
    """Score how a task's completion time relates to its allotted window.

    percentage = round(((total - taken) / total) * 100) where
    total = deadline - created_at and taken = completed_at - created_at,
    so finishing at creation scores 100, at the deadline 0, and late negative.

    Returns None when the task has not been completed. A zero-length window
    (deadline == created_at) scores 0 rather than dividing by zero; inverted
    windows are scored with the same formula. days_early rounds the absolute
    gap, so a late finish 2.5 days past the deadline counts as 3 days.
    """
    if completed_at is None:
        return None

    created = _ensure_datetime(created_at)
    due = _ensure_datetime(deadline)
    completed = _ensure_datetime(completed_at)

    total_time = (due - created).total_seconds()
    time_taken = (completed - created).total_seconds()

    if total_time == 0:
        percentage = 0
    else:
        percentage = round_half_up(((total_time - time_taken) / total_time) * 100)

    is_early = completed < due
    # round(abs(gap)), not abs(round(gap)): halves always round away from zero here
    days_early = round_half_up(abs(due - completed) / ONE_DAY)

    return CompletionScore(
        percentage=percentage,
        is_early=is_early,
        time_status="early" if is_early else "late",
        days_early=days_early,
    )
