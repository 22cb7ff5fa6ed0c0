# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Supporting annexes ("états annexes").

The annexes are computed independently of the statements, from their own
source records:

1. Depreciation schedule
   ---------------------
   One line per fixed asset record (straight-line):

       period_charge = gross_value * rate / 100
       accumulated   = min(period_charge * years_elapsed, gross_value)
       net_value     = gross_value - accumulated

   ``years_elapsed`` is the fractional number of years (365-day years)
   between the acquisition date and the reference date, never negative.

2. Provisions
   ----------
   For every account starting with a provision prefix (19, 39, 49, 59 by
   default), on the credit-minus-debit convention:

       opening   = balance of the lines dated before the period start
       additions = credits of the period
       reversals = debits of the period
       closing   = opening + additions - reversals

3. Aging of receivables and payables
   ---------------------------------
   Open records (outstanding = total - paid > 0) are bucketed by
   ``days_overdue = max(0, today - due_date)``:

       not_due   0 days
       d0_30     1 to 30 days
       d30_60    31 to 60 days
       d60_90    61 to 90 days
       d90_plus  more than 90 days

   ``recovery_rate = (total - overdue) / total * 100``, defined as 100 when
   the total is zero.

``build_annexes`` assembles the four parts. Each part is guarded on its
own: a failing source leaves that part empty and is recorded in
``Annexes.errors``, the other parts are still returned.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional, TypeVar, Union

import pandas as pd

from .accounts import resolve_label
from .engine import aggregate_ledger, filter_lines_by_dates
from .models import FixedAssetRecord, InvoiceRecord, ReceptionRecord

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365
DEFAULT_PROVISION_PREFIXES: tuple[str, ...] = ("19", "39", "49", "59")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Depreciation schedule
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DepreciationLine:
    asset_id: str
    label: str
    account_code: str
    acquisition_date: date
    gross_value: float
    rate: float
    years_elapsed: float
    period_charge: float
    accumulated: float
    net_value: float


@dataclass(frozen=True)
class DepreciationSchedule:
    lines: list[DepreciationLine] = field(default_factory=list)
    total_gross_value: float = 0.0
    total_period_charge: float = 0.0
    total_accumulated: float = 0.0
    total_net_value: float = 0.0


def depreciate(asset: FixedAssetRecord, as_of: date) -> DepreciationLine:
    """Compute the straight-line depreciation of one asset at ``as_of``."""
    gross = float(asset.gross_value)
    rate = float(asset.rate)
    years_elapsed = max(0, (as_of - asset.acquisition_date).days) / DAYS_PER_YEAR

    period_charge = gross * (rate / 100.0)
    accumulated = min(period_charge * years_elapsed, gross)

    return DepreciationLine(
        asset_id=asset.asset_id,
        label=asset.label,
        account_code=asset.account_code,
        acquisition_date=asset.acquisition_date,
        gross_value=round(gross, 2),
        rate=rate,
        years_elapsed=round(years_elapsed, 4),
        period_charge=round(period_charge, 2),
        accumulated=round(accumulated, 2),
        net_value=round(gross - accumulated, 2),
    )


def build_depreciation_schedule(
    assets: Iterable[FixedAssetRecord], as_of: date
) -> DepreciationSchedule:
    """Build the depreciation schedule of all assets at ``as_of``."""
    lines = sorted(
        (depreciate(a, as_of) for a in assets),
        key=lambda ln: (ln.account_code, ln.asset_id),
    )
    return DepreciationSchedule(
        lines=lines,
        total_gross_value=round(sum(ln.gross_value for ln in lines), 2),
        total_period_charge=round(sum(ln.period_charge for ln in lines), 2),
        total_accumulated=round(sum(ln.accumulated for ln in lines), 2),
        total_net_value=round(sum(ln.net_value for ln in lines), 2),
    )


# ---------------------------------------------------------------------------
# Provisions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProvisionLine:
    account_code: str
    label: str
    opening_balance: float
    additions: float
    reversals: float
    closing_balance: float


@dataclass(frozen=True)
class ProvisionsTable:
    lines: list[ProvisionLine] = field(default_factory=list)
    total_opening: float = 0.0
    total_additions: float = 0.0
    total_reversals: float = 0.0
    total_closing: float = 0.0


def build_provisions(
    lines: pd.DataFrame,
    start: date,
    end: date,
    prefixes: Iterable[str] = DEFAULT_PROVISION_PREFIXES,
    labels: Optional[dict[str, str]] = None,
) -> ProvisionsTable:
    """Build the provisions table for the period [start, end].

    Args:
        lines: Ledger-schema DataFrame holding at least every line up to
            ``end``; lines dated before ``start`` feed the opening balances.
        start: First day of the period.
        end: Last day of the period.
        prefixes: Provision account prefixes.
        labels: Optional chart of accounts labels.
    """
    prefixes = tuple(str(p) for p in prefixes)
    if lines.empty or not prefixes:
        return ProvisionsTable()

    provision_lines = lines.loc[
        lines["account_code"].astype(str).str.startswith(prefixes)
    ]
    if provision_lines.empty:
        return ProvisionsTable()

    before = filter_lines_by_dates(provision_lines, end=start - timedelta(days=1))
    opening = aggregate_ledger(before)
    period = aggregate_ledger(provision_lines, start, end)

    opening_by_code = {
        str(r.account_code): -float(r.balance) for r in opening.itertuples(index=False)
    }
    period_by_code = {
        str(r.account_code): (float(r.credit), float(r.debit))
        for r in period.itertuples(index=False)
    }

    rows = []
    for code in sorted(set(opening_by_code) | set(period_by_code)):
        opening_balance = opening_by_code.get(code, 0.0)
        additions, reversals = period_by_code.get(code, (0.0, 0.0))
        rows.append(
            ProvisionLine(
                account_code=code,
                label=resolve_label(code, labels),
                opening_balance=round(opening_balance, 2),
                additions=round(additions, 2),
                reversals=round(reversals, 2),
                closing_balance=round(opening_balance + additions - reversals, 2),
            )
        )

    return ProvisionsTable(
        lines=rows,
        total_opening=round(sum(r.opening_balance for r in rows), 2),
        total_additions=round(sum(r.additions for r in rows), 2),
        total_reversals=round(sum(r.reversals for r in rows), 2),
        total_closing=round(sum(r.closing_balance for r in rows), 2),
    )


# ---------------------------------------------------------------------------
# Aging
# ---------------------------------------------------------------------------


class AgingBucket(str, Enum):
    NOT_DUE = "not_due"
    D0_30 = "d0_30"
    D30_60 = "d30_60"
    D60_90 = "d60_90"
    D90_PLUS = "d90_plus"


@dataclass(frozen=True)
class AgingItem:
    counterparty: str
    reference: str
    amount_total: float
    amount_overdue: float
    amount_not_due: float
    days_overdue: int
    bucket: AgingBucket
    due_date: Optional[date] = None


@dataclass(frozen=True)
class AgingReport:
    items: list[AgingItem] = field(default_factory=list)
    totals_by_bucket: dict[str, float] = field(
        default_factory=lambda: {b.value: 0.0 for b in AgingBucket}
    )
    amount_total: float = 0.0
    amount_overdue: float = 0.0
    amount_not_due: float = 0.0
    recovery_rate: float = 100.0


def aging_bucket(days_overdue: int) -> AgingBucket:
    """Return the aging bucket of a number of days past due."""
    if days_overdue <= 0:
        return AgingBucket.NOT_DUE
    if days_overdue <= 30:
        return AgingBucket.D0_30
    if days_overdue <= 60:
        return AgingBucket.D30_60
    if days_overdue <= 90:
        return AgingBucket.D60_90
    return AgingBucket.D90_PLUS


def recovery_rate(total: float, overdue: float) -> float:
    """Share of the total that is not overdue, in percent (100 if total is 0)."""
    if total == 0:
        return 100.0
    return round((total - overdue) / total * 100.0, 2)


AgingRecord = Union[InvoiceRecord, ReceptionRecord]


def build_aging(records: Iterable[AgingRecord], today: date) -> AgingReport:
    """Build the aging report of open receivables or payables at ``today``."""
    items: list[AgingItem] = []
    for rec in records:
        outstanding = round(float(rec.amount_total) - float(rec.amount_paid or 0.0), 2)
        if outstanding <= 0:
            continue

        days_overdue = max(0, (today - rec.due_date).days)
        overdue = outstanding if days_overdue > 0 else 0.0
        items.append(
            AgingItem(
                counterparty=rec.counterparty,
                reference=rec.reference,
                amount_total=outstanding,
                amount_overdue=overdue,
                amount_not_due=round(outstanding - overdue, 2),
                days_overdue=days_overdue,
                bucket=aging_bucket(days_overdue),
                due_date=rec.due_date,
            )
        )

    items.sort(key=lambda it: (-it.days_overdue, it.counterparty, it.reference))

    totals = {b.value: 0.0 for b in AgingBucket}
    for it in items:
        totals[it.bucket.value] = round(totals[it.bucket.value] + it.amount_total, 2)

    amount_total = round(sum(it.amount_total for it in items), 2)
    amount_overdue = round(sum(it.amount_overdue for it in items), 2)

    return AgingReport(
        items=items,
        totals_by_bucket=totals,
        amount_total=amount_total,
        amount_overdue=amount_overdue,
        amount_not_due=round(amount_total - amount_overdue, 2),
        recovery_rate=recovery_rate(amount_total, amount_overdue),
    )


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Annexes:
    depreciation_schedule: DepreciationSchedule = field(
        default_factory=DepreciationSchedule
    )
    provisions: ProvisionsTable = field(default_factory=ProvisionsTable)
    receivables_aging: AgingReport = field(default_factory=AgingReport)
    payables_aging: AgingReport = field(default_factory=AgingReport)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return bool(
            self.depreciation_schedule.lines
            or self.provisions.lines
            or self.receivables_aging.items
            or self.payables_aging.items
        )


def _guarded(name: str, build: Callable[[], T], empty: T, errors: dict[str, str]) -> T:
    try:
        return build()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Annex %r could not be built", name)
        errors[name] = f"{type(exc).__name__}: {exc}"
        return empty


def build_annexes(
    *,
    fetch_fixed_assets: Callable[[], Iterable[FixedAssetRecord]],
    fetch_provision_lines: Callable[[], pd.DataFrame],
    fetch_receivables: Callable[[], Iterable[InvoiceRecord]],
    fetch_payables: Callable[[], Iterable[ReceptionRecord]],
    period_start: date,
    period_end: date,
    today: date,
    provision_prefixes: Iterable[str] = DEFAULT_PROVISION_PREFIXES,
    labels: Optional[dict[str, str]] = None,
) -> Annexes:
    """Build every annex, isolating the failure of any single source.

    Sources are passed as zero-argument callables so that fetching happens
    inside the guard of the part it feeds. The depreciation schedule is
    computed at ``min(today, period_end)``.
    """
    errors: dict[str, str] = {}
    as_of = min(today, period_end)

    schedule = _guarded(
        "depreciation_schedule",
        lambda: build_depreciation_schedule(fetch_fixed_assets(), as_of),
        DepreciationSchedule(),
        errors,
    )
    provisions = _guarded(
        "provisions",
        lambda: build_provisions(
            fetch_provision_lines(),
            period_start,
            period_end,
            provision_prefixes,
            labels,
        ),
        ProvisionsTable(),
        errors,
    )
    receivables = _guarded(
        "receivables_aging",
        lambda: build_aging(fetch_receivables(), today),
        AgingReport(),
        errors,
    )
    payables = _guarded(
        "payables_aging",
        lambda: build_aging(fetch_payables(), today),
        AgingReport(),
        errors,
    )

    return Annexes(
        depreciation_schedule=schedule,
        provisions=provisions,
        receivables_aging=receivables,
        payables_aging=payables,
        errors=errors,
    )
