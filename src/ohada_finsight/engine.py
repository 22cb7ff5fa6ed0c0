# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Core ledger aggregation engine for OHADA FinSight.

This module is the first stage of the statement pipeline. It takes raw,
posted ledger lines and nets them into one signed balance per account for
a given date range:

    balance = sum(debit) - sum(credit)

so that debtor accounts (assets, expenses) carry positive balances and
creditor accounts (equity, liabilities, revenue) carry negative balances.
Sign inversion for display is the classifier's job (mapping.py), not this
module's.

Besides the net balance, the aggregated frame keeps the gross debit and
credit movements of every account. Those are needed downstream by:
- the cash flow estimator (acquisitions, loans obtained/repaid, ...),
- the provisions annex (additions vs reversals).

Contract
--------
- An account without lines in the range does not appear in the output;
  callers treat absence as zero, not as an error.
- The computation is a single pandas groupby over the lines (linear in the
  number of lines) and never mutates its input.
"""

from collections.abc import Iterable
from datetime import date
from typing import Optional, Union

import pandas as pd

from .io import empty_ledger_frame, ledger_lines_to_frame
from .models import LedgerLine

LedgerInput = Union[pd.DataFrame, Iterable[LedgerLine]]

AGGREGATE_COLUMNS: list[str] = ["account_code", "debit", "credit", "balance"]


def _as_frame(lines: LedgerInput) -> pd.DataFrame:
    """Return ledger lines as a ledger-schema DataFrame."""
    if isinstance(lines, pd.DataFrame):
        return lines
    return ledger_lines_to_frame(lines)


def filter_lines_by_dates(
    entries: pd.DataFrame,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> pd.DataFrame:
    """
    Keep only ledger lines whose ``entry_date`` is within [start, end].

    Both bounds are inclusive and optional. The input is not modified.
    """
    if entries.empty:
        return entries.copy()

    dates = pd.to_datetime(entries["entry_date"])
    mask = pd.Series(True, index=entries.index)
    if start is not None:
        mask &= dates >= pd.Timestamp(start)
    if end is not None:
        mask &= dates <= pd.Timestamp(end)
    return entries.loc[mask].copy()


def aggregate_ledger(
    lines: LedgerInput,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> pd.DataFrame:
    """Aggregate ledger lines into one row per account.

    Args:
        lines: Ledger lines, either as a ledger-schema DataFrame (see io.py)
            or as an iterable of LedgerLine records.
        start: Optional inclusive lower bound on ``entry_date``.
        end: Optional inclusive upper bound on ``entry_date``.

    Returns:
        A DataFrame with columns ``account_code, debit, credit, balance``,
        one row per account having at least one line in range, sorted by
        account code. ``balance`` is ``debit - credit``, rounded to 2
        decimal places.
    """
    entries = _as_frame(lines)
    if entries.empty:
        entries = empty_ledger_frame()

    in_range = filter_lines_by_dates(entries, start, end)
    if in_range.empty:
        return pd.DataFrame(columns=AGGREGATE_COLUMNS)

    work = pd.DataFrame(
        {
            "account_code": in_range["account_code"].astype(str).str.strip(),
            "debit": pd.to_numeric(in_range["debit"]).fillna(0.0).astype(float),
            "credit": pd.to_numeric(in_range["credit"]).fillna(0.0).astype(float),
        }
    )

    grouped = work.groupby("account_code", as_index=False, sort=True)[
        ["debit", "credit"]
    ].sum()
    grouped["balance"] = grouped["debit"] - grouped["credit"]
    for col in ("debit", "credit", "balance"):
        grouped[col] = grouped[col].round(2)

    return grouped[AGGREGATE_COLUMNS].reset_index(drop=True)


def net_balances(
    lines: LedgerInput,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> dict[str, float]:
    """Return ``{account_code: debit - credit}`` for the given range."""
    aggregated = aggregate_ledger(lines, start, end)
    return {
        str(row.account_code): float(row.balance)
        for row in aggregated.itertuples(index=False)
    }


def sum_movements(
    movements: pd.DataFrame,
    prefixes: Iterable[str],
    column: str,
    exclude: Iterable[str] = (),
) -> float:
    """
    Sum a movement column (``debit``, ``credit`` or ``balance``) over the
    accounts whose code starts with one of ``prefixes``.

    Args:
        movements: Frame returned by :func:`aggregate_ledger`.
        prefixes: Account code prefixes to include.
        column: Column to sum.
        exclude: Account code prefixes to leave out even if included.

    Returns:
        The rounded sum, 0.0 when nothing matches.
    """
    if movements.empty:
        return 0.0

    include = tuple(str(p) for p in prefixes)
    excluded = tuple(str(p) for p in exclude)
    if not include:
        return 0.0

    codes = movements["account_code"].astype(str)
    mask = codes.str.startswith(include)
    if excluded:
        mask &= ~codes.str.startswith(excluded)

    return round(float(movements.loc[mask, column].sum()), 2)
