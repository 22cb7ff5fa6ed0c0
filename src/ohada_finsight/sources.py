# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Contract of the storage collaborator feeding the engine.

The engine never queries storage directly: every input goes through a
``StatementsSource``. Two implementations ship with the package:

- ``InMemoryStatementsSource`` (this module), for embedding and tests,
- ``SqliteStatementsSource`` (db.py), backed by the SQLite database.

``fetch_accounts`` and ``fetch_period_sales`` are optional: a source
without them simply provides no labels and no additional levy.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Protocol, runtime_checkable

from .models import (
    Account,
    Exercice,
    FixedAssetRecord,
    InvoiceRecord,
    LedgerLine,
    RatioThresholds,
    ReceptionRecord,
    SaleRecord,
)


@runtime_checkable
class StatementsSource(Protocol):
    def fetch_ledger_lines(
        self, tenant_id: str, date_start: date, date_end: date
    ) -> Sequence[LedgerLine]: ...

    def fetch_exercices(self, tenant_id: str) -> Sequence[Exercice]: ...

    def fetch_fixed_assets(self, tenant_id: str) -> Sequence[FixedAssetRecord]: ...

    def fetch_receivable_invoices(self, tenant_id: str) -> Sequence[InvoiceRecord]: ...

    def fetch_payable_receptions(self, tenant_id: str) -> Sequence[ReceptionRecord]: ...

    def fetch_regional_thresholds(self, tenant_id: str) -> Optional[RatioThresholds]: ...


@dataclass
class InMemoryStatementsSource:
    """
    Statements source backed by plain Python lists.

    Every collection holds the data of a single tenant; ``tenant_id`` is
    accepted for interface compatibility and ignored.
    """

    ledger_lines: list[LedgerLine] = field(default_factory=list)
    exercices: list[Exercice] = field(default_factory=list)
    fixed_assets: list[FixedAssetRecord] = field(default_factory=list)
    receivable_invoices: list[InvoiceRecord] = field(default_factory=list)
    payable_receptions: list[ReceptionRecord] = field(default_factory=list)
    regional_thresholds: Optional[RatioThresholds] = None
    accounts: list[Account] = field(default_factory=list)
    sales: list[SaleRecord] = field(default_factory=list)

    def fetch_ledger_lines(
        self, tenant_id: str, date_start: date, date_end: date
    ) -> list[LedgerLine]:
        return [
            line
            for line in self.ledger_lines
            if date_start <= line.entry_date <= date_end
        ]

    def fetch_exercices(self, tenant_id: str) -> list[Exercice]:
        return list(self.exercices)

    def fetch_fixed_assets(self, tenant_id: str) -> list[FixedAssetRecord]:
        return list(self.fixed_assets)

    def fetch_receivable_invoices(self, tenant_id: str) -> list[InvoiceRecord]:
        return list(self.receivable_invoices)

    def fetch_payable_receptions(self, tenant_id: str) -> list[ReceptionRecord]:
        return list(self.payable_receptions)

    def fetch_regional_thresholds(self, tenant_id: str) -> Optional[RatioThresholds]:
        return self.regional_thresholds

    def fetch_accounts(self, tenant_id: str) -> list[Account]:
        return list(self.accounts)

    def fetch_period_sales(
        self, tenant_id: str, date_start: date, date_end: date
    ) -> list[SaleRecord]:
        return [s for s in self.sales if date_start <= s.sale_date <= date_end]
