# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Core data model for OHADA FinSight.

This module defines the immutable records consumed by the engine (ledger
lines, accounts, accounting periods, fixed assets, invoices, sales) and the
small value objects shared by several builders (statement items, sections,
thresholds).

Records coming from the storage collaborator are treated as posted,
immutable facts: every dataclass here is frozen and the engine never
mutates them.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class ExerciceStatus(str, Enum):
    """Status of an accounting period."""

    OPEN = "Open"
    CLOSED = "Closed"


@dataclass(frozen=True)
class LedgerLine:
    """A posted general-ledger line.

    Attributes:
        account_code: Chart of accounts code (e.g. '411001').
        debit: Debit amount (>= 0).
        credit: Credit amount (>= 0).
        entry_date: Accounting date of the entry.
        entry_id: Identifier of the journal entry the line belongs to.
        label: Optional free-text description.
    """

    account_code: str
    debit: float
    credit: float
    entry_date: date
    entry_id: Optional[str] = None
    label: str = ""


@dataclass(frozen=True)
class Account:
    """An account of the chart of accounts (code + label)."""

    code: str
    label: str


@dataclass(frozen=True)
class Exercice:
    """An accounting period ("exercice")."""

    id: str
    label: str
    date_start: date
    date_end: date
    status: ExerciceStatus
    year: int

    @property
    def is_open(self) -> bool:
        return self.status == ExerciceStatus.OPEN


@dataclass(frozen=True)
class FixedAssetRecord:
    """A fixed asset as recorded in the asset register.

    ``rate`` is the yearly straight-line depreciation rate, in percent.
    """

    asset_id: str
    label: str
    account_code: str
    acquisition_date: date
    gross_value: float
    rate: float


@dataclass(frozen=True)
class InvoiceRecord:
    """A customer invoice (receivable side)."""

    reference: str
    counterparty: str
    amount_total: float
    amount_paid: float
    due_date: date


@dataclass(frozen=True)
class ReceptionRecord:
    """A supplier reception / invoice (payable side)."""

    reference: str
    counterparty: str
    amount_total: float
    amount_paid: float
    due_date: date


@dataclass(frozen=True)
class SaleRecord:
    """A sale of the period, carrying the additional levy it collected."""

    reference: str
    sale_date: date
    amount: float
    additional_levy: float = 0.0


@dataclass(frozen=True)
class RatioThresholds:
    """Tenant-configurable ratio thresholds.

    Percent-based thresholds are expressed in percent (60 means 60%).
    The defaults apply whenever a tenant has no regional thresholds row.
    """

    liquidity: float = 1.5
    leverage: float = 60.0
    autonomy: float = 40.0
    operating_margin: float = 10.0
    net_margin: float = 5.0
    return_on_equity: float = 15.0

    def get(self, key: str) -> float:
        """Return the threshold registered under ``key``."""
        try:
            return float(getattr(self, key))
        except AttributeError as exc:
            raise KeyError(f"Unknown ratio threshold: {key!r}") from exc


@dataclass(frozen=True)
class StatementItem:
    """One line of a statement (balance sheet or income statement).

    Prior-period fields are only populated once a comparison has been
    attached (see comparison.py).
    """

    code: str
    label: str
    amount_current_period: float
    amount_prior_period: Optional[float] = None
    variation: Optional[float] = None
    variation_pct: Optional[float] = None
    bucket: Optional[str] = None


@dataclass(frozen=True)
class StatementSection:
    """A group of statement items with its subtotal."""

    items: list[StatementItem] = field(default_factory=list)
    total: float = 0.0
    total_prior_period: Optional[float] = None

    @staticmethod
    def from_items(items: list[StatementItem]) -> "StatementSection":
        """Build a section from items, sorted by code, with its total."""
        ordered = sorted(items, key=lambda it: it.code)
        total = round(sum(it.amount_current_period for it in ordered), 2)
        return StatementSection(items=ordered, total=total)

    def codes(self) -> list[str]:
        return [it.code for it in self.items]
