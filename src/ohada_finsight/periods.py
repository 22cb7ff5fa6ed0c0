# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Exercice (fiscal year) helpers for OHADA FinSight.

This module selects the exercice a report is computed for and its
immediate predecessor:

- the current exercice is the one with status Open; when none is open,
  the most recent one by year,
- an explicit exercice id overrides that choice,
- the predecessor is the exercice whose year is one less.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime
from typing import Optional

from .models import Exercice

logger = logging.getLogger(__name__)

# Lower bound used to fetch every line posted before a period.
HISTORY_START = date(1900, 1, 1)


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def current_exercice(exercices: Iterable[Exercice]) -> Optional[Exercice]:
    """Return the open exercice, else the most recent one, else None."""
    candidates = list(exercices)
    if not candidates:
        return None

    open_ones = [ex for ex in candidates if ex.is_open]
    if open_ones:
        return max(open_ones, key=lambda ex: (ex.year, ex.date_start))
    return max(candidates, key=lambda ex: (ex.year, ex.date_start))


def predecessor_of(
    exercice: Exercice, exercices: Iterable[Exercice]
) -> Optional[Exercice]:
    """Return the exercice of year ``exercice.year - 1``, if any."""
    for ex in exercices:
        if ex.year == exercice.year - 1 and ex.id != exercice.id:
            return ex
    return None


def resolve_exercices(
    exercices: Iterable[Exercice], exercice_id: Optional[str] = None
) -> tuple[Optional[Exercice], Optional[Exercice]]:
    """
    Select the exercice to report on and its predecessor.

    Args:
        exercices: All exercices of the tenant.
        exercice_id: Explicit selection; the current exercice when None.

    Returns:
        ``(selected, predecessor)``; ``selected`` is None when the tenant
        has no exercice or ``exercice_id`` is unknown.
    """
    candidates = list(exercices)

    if exercice_id is None:
        selected = current_exercice(candidates)
    else:
        selected = next(
            (ex for ex in candidates if str(ex.id) == str(exercice_id)), None
        )
        if selected is None:
            logger.warning("Unknown exercice %r", exercice_id)

    if selected is None:
        return None, None
    return selected, predecessor_of(selected, candidates)
