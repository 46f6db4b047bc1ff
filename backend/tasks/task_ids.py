"""Human readable task ids: ``DDMMYYYY-NNN``, one sequence per user per day.

The next number is derived from the ids already stored for that user and day
(highest suffix + 1), never from a counter. Allocation is a read followed by a
write, so two concurrent requests can compute the same id; the unique
constraint on ``(owner, task_id)`` catches that and ``create_with_task_id``
re-scans and retries a bounded number of times.
"""

import logging
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, TypeVar, Union

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException

from .models import Task

logger = logging.getLogger(__name__)

T = TypeVar("T")
IdFinder = Callable[[object, str], Iterable[str]]


class TaskIdConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Task id conflict, retry allocation"
    default_code = "task_id_conflict"


def date_prefix(now: Union[date, datetime]) -> str:
    """Return the 8-digit ``DDMMYYYY`` prefix for the calendar day of ``now``.

    Aware datetimes are converted to the configured time zone first, so the
    day boundary follows TIME_ZONE rather than UTC.
    """
    if isinstance(now, datetime) and timezone.is_aware(now):
        now = timezone.localtime(now)
    return now.strftime("%d%m%Y")


def _suffix_number(task_id: str) -> Optional[int]:
    _, sep, suffix = task_id.rpartition("-")
    if not sep:
        return None
    try:
        return int(suffix)
    except ValueError:
        return None


def next_task_id(prefix: str, existing: Iterable[str]) -> str:
    """Highest numeric suffix among ``existing`` plus one, zero padded to 3 digits.

    Only ids starting with ``<prefix>-`` count; unparseable suffixes are ignored.
    """
    max_number = 0
    for task_id in existing:
        if not task_id.startswith(prefix + "-"):
            continue
        number = _suffix_number(task_id)
        if number is not None and number > max_number:
            max_number = number
    return f"{prefix}-{max_number + 1:03d}"


def find_task_ids_with_prefix(user_id, prefix: str) -> List[str]:
    """Stored task ids of ``user_id`` that belong to the day ``prefix``."""
    return list(
        Task.objects.filter(owner_id=user_id, task_id__startswith=prefix + "-")
        .values_list("task_id", flat=True)
    )


def allocate_task_id(user_id,
                     now: Union[date, datetime],
                     find_identifiers_with_prefix: IdFinder = find_task_ids_with_prefix) -> str:
    """Compute the next unused task id for ``user_id`` on the day of ``now``."""
    prefix = date_prefix(now)
    return next_task_id(prefix, find_identifiers_with_prefix(user_id, prefix))


def create_with_task_id(user_id,
                        create: Callable[[str], T],
                        now: Optional[datetime] = None,
                        find_identifiers_with_prefix: IdFinder = find_task_ids_with_prefix,
                        max_attempts: Optional[int] = None) -> T:
    """Allocate a task id and hand it to ``create``, retrying on id collisions.

    ``create`` runs inside a savepoint. When it fails with an IntegrityError and
    the id turns out to be stored already, another request got there first: the
    day is re-scanned and the insert attempted again. Any other IntegrityError
    propagates. After ``max_attempts`` collisions TaskIdConflict is raised.
    """
    if now is None:
        now = timezone.now()
    if max_attempts is None:
        max_attempts = settings.TASKBOARD["TASK_ID_MAX_RETRIES"]
    max_attempts = max(1, max_attempts)

    for attempt in range(1, max_attempts + 1):
        task_id = allocate_task_id(user_id, now, find_identifiers_with_prefix)
        try:
            with transaction.atomic():
                return create(task_id)
        except IntegrityError:
            # only a stored twin of task_id makes this a retryable collision
            if not Task.objects.filter(owner_id=user_id, task_id=task_id).exists():
                raise
            logger.warning(
                "Task id %s already taken for user %s (attempt %d/%d)",
                task_id, user_id, attempt, max_attempts,
            )

    raise TaskIdConflict()
