# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for OHADA FinSight.

This module turns ledger lines, whatever their origin, into the single
normalized DataFrame schema consumed by the aggregation engine.

Ledger schema
-------------
    - ``entry_date``   (datetime64[ns])
    - ``account_code`` (str)
    - ``debit``        (float, >= 0)
    - ``credit``       (float, >= 0)
    - ``entry_id``     (str or None)
    - ``label``        (str)

Two origins are supported:

1) CSV files (``read_ledger_lines``), with case-insensitive columns:
       date, code, debit, credit[, entry_id][, label]
   ``entry_date`` / ``account_code`` are accepted as aliases for
   ``date`` / ``code`` and ``description`` as an alias for ``label``.

2) Iterables of :class:`~ohada_finsight.models.LedgerLine`
   (``ledger_lines_to_frame``), as returned by storage collaborators.

Unlike a signed "amount" convention, debit and credit are kept apart: the
cash flow estimator and the provisions annex need the gross movements, not
only the net balance.
"""

import os
from collections.abc import Iterable
from typing import Union

import pandas as pd

from .models import LedgerLine

LEDGER_COLUMNS: list[str] = [
    "entry_date",
    "account_code",
    "debit",
    "credit",
    "entry_id",
    "label",
]

_ALIASES = {
    "date": "entry_date",
    "code": "account_code",
    "description": "label",
}


def empty_ledger_frame() -> pd.DataFrame:
    """Return an empty DataFrame following the ledger schema."""
    df = pd.DataFrame(columns=LEDGER_COLUMNS)
    df["entry_date"] = pd.to_datetime(df["entry_date"])
    df["debit"] = df["debit"].astype(float)
    df["credit"] = df["credit"].astype(float)
    return df


def ledger_lines_to_frame(lines: Iterable[LedgerLine]) -> pd.DataFrame:
    """Convert LedgerLine records into a ledger-schema DataFrame."""
    rows = [
        {
            "entry_date": line.entry_date,
            "account_code": str(line.account_code).strip(),
            "debit": float(line.debit or 0.0),
            "credit": float(line.credit or 0.0),
            "entry_id": line.entry_id,
            "label": line.label or "",
        }
        for line in lines
    ]
    if not rows:
        return empty_ledger_frame()

    df = pd.DataFrame(rows, columns=LEDGER_COLUMNS)
    df["entry_date"] = pd.to_datetime(df["entry_date"])
    return df


def read_ledger_lines(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    """
    Read ledger lines from a CSV file and normalize them.

    Parameters
    ----------
    path:
        Path to the CSV file.

    Returns
    -------
    pandas.DataFrame
        A DataFrame following the ledger schema (see module docstring).
        Missing debit/credit cells are read as 0.

    Raises
    ------
    ValueError
        If required columns are missing, if a date cannot be parsed, or if
        debit/credit contain non-numeric or negative values.
    """
    df = pd.read_csv(path, dtype={"code": str, "account_code": str})

    df.columns = [str(c).lower().strip() for c in df.columns]
    df = df.rename(
        columns={k: v for k, v in _ALIASES.items() if v not in df.columns}
    )

    required = {"entry_date", "account_code", "debit", "credit"}
    missing = required.difference(df.columns)
    if missing:
        raise ValueError(
            "Invalid ledger file structure, missing column(s): "
            + ", ".join(sorted(missing))
            + ". Expected: date, code, debit, credit[, entry_id][, label]."
        )

    d = df.copy()
    try:
        d["entry_date"] = pd.to_datetime(d["entry_date"], errors="raise")
    except Exception as exc:  # noqa: BLE001
        raise ValueError("Invalid values in 'date' column.") from exc

    for col in ("debit", "credit"):
        d[col] = pd.to_numeric(d[col].fillna(0), errors="coerce")

    if d[["debit", "credit"]].isna().any().any():
        raise ValueError("Invalid numeric values in 'debit'/'credit' columns.")
    if (d[["debit", "credit"]] < 0).any().any():
        raise ValueError("Debit and credit amounts must be non-negative.")

    if "entry_id" not in d.columns:
        d["entry_id"] = None
    if "label" not in d.columns:
        d["label"] = ""

    d["account_code"] = d["account_code"].astype(str).str.strip()
    d["label"] = d["label"].fillna("").astype(str)

    return d[LEDGER_COLUMNS].copy()
