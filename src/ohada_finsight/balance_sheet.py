# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Balance sheet ("bilan") builder.

Classified asset balances are partitioned into Immobilized / Current /
Treasury groups, liability and equity balances into Equity / Debt groups.
Each group is sorted by account code and carries its subtotal.

The two sides are never forced to be equal: ``imbalance`` exposes the gap
and a warning is attached whenever it is not zero. An imbalance signals
incomplete or unbalanced source data and must be visible to callers.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .mapping import Bucket, Classification, ClassifiedBalance
from .models import StatementItem, StatementSection

logger = logging.getLogger(__name__)

IMMOBILIZED_BUCKETS = (Bucket.FIXED_ASSET,)
CURRENT_BUCKETS = (Bucket.INVENTORY, Bucket.RECEIVABLE)
TREASURY_BUCKETS = (Bucket.CASH,)
EQUITY_BUCKETS = (Bucket.EQUITY,)
DEBT_BUCKETS = (Bucket.FINANCIAL_DEBT, Bucket.PAYABLE, Bucket.OVERDRAFT)

BALANCE_TOLERANCE = 0.005


@dataclass(frozen=True)
class AssetSide:
    immobilized: StatementSection = field(default_factory=StatementSection)
    current: StatementSection = field(default_factory=StatementSection)
    treasury: StatementSection = field(default_factory=StatementSection)
    total: float = 0.0
    total_prior_period: Optional[float] = None


@dataclass(frozen=True)
class LiabilitiesEquitySide:
    equity: StatementSection = field(default_factory=StatementSection)
    debt: StatementSection = field(default_factory=StatementSection)
    total: float = 0.0
    total_prior_period: Optional[float] = None


@dataclass(frozen=True)
class BalanceSheet:
    """Balance sheet for one accounting period.

    Attributes:
        assets: Immobilized, current and treasury groups with their total.
        liabilities_equity: Equity and debt groups with their total.
        imbalance: ``assets.total - liabilities_equity.total``.
        has_data: False when nothing could be classified (empty ledger or
            no exercice), as opposed to a computed zero.
        warnings: Non-fatal issues (imbalance, unclassified accounts, ...).
    """

    assets: AssetSide = field(default_factory=AssetSide)
    liabilities_equity: LiabilitiesEquitySide = field(
        default_factory=LiabilitiesEquitySide
    )
    imbalance: float = 0.0
    has_data: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def is_balanced(self) -> bool:
        return abs(self.imbalance) < BALANCE_TOLERANCE

    @property
    def current_assets(self) -> float:
        return self.assets.current.total

    @property
    def current_liabilities(self) -> float:
        """Short-term operating debts (payables from class 4)."""
        return _sum_bucket(self.liabilities_equity.debt, Bucket.PAYABLE)

    @property
    def overdraft_total(self) -> float:
        return _sum_bucket(self.liabilities_equity.debt, Bucket.OVERDRAFT)

    @property
    def total_debt(self) -> float:
        return self.liabilities_equity.debt.total

    @property
    def equity_total(self) -> float:
        return self.liabilities_equity.equity.total

    @property
    def treasury_total(self) -> float:
        return self.assets.treasury.total

    @property
    def working_capital(self) -> float:
        return round(self.current_assets - self.current_liabilities, 2)


def _sum_bucket(section: StatementSection, bucket: Bucket) -> float:
    return round(
        sum(it.amount_current_period for it in section.items if it.bucket == bucket.value),
        2,
    )


def _to_item(balance: ClassifiedBalance) -> StatementItem:
    return StatementItem(
        code=balance.account_code,
        label=balance.label,
        amount_current_period=balance.amount,
        bucket=balance.bucket.value,
    )


def _section(classification: Classification, buckets: tuple[Bucket, ...]) -> StatementSection:
    return StatementSection.from_items(
        [_to_item(b) for b in classification.by_bucket(*buckets)]
    )


def build_balance_sheet(classification: Classification) -> BalanceSheet:
    """Build the balance sheet from classified balances.

    Income statement buckets are ignored. Totals are plain sums of the
    group members; no balancing entry is ever added.
    """
    immobilized = _section(classification, IMMOBILIZED_BUCKETS)
    current = _section(classification, CURRENT_BUCKETS)
    treasury = _section(classification, TREASURY_BUCKETS)
    equity = _section(classification, EQUITY_BUCKETS)
    debt = _section(classification, DEBT_BUCKETS)

    assets = AssetSide(
        immobilized=immobilized,
        current=current,
        treasury=treasury,
        total=round(immobilized.total + current.total + treasury.total, 2),
    )
    liabilities_equity = LiabilitiesEquitySide(
        equity=equity,
        debt=debt,
        total=round(equity.total + debt.total, 2),
    )

    has_data = any(
        section.items for section in (immobilized, current, treasury, equity, debt)
    )
    imbalance = round(assets.total - liabilities_equity.total, 2)

    warnings = list(classification.warnings)
    if has_data and abs(imbalance) >= BALANCE_TOLERANCE:
        msg = (
            f"Balance sheet is not balanced: assets {assets.total:.2f} vs "
            f"liabilities and equity {liabilities_equity.total:.2f} "
            f"(gap {imbalance:.2f})"
        )
        warnings.append(msg)
        logger.warning(msg)

    return BalanceSheet(
        assets=assets,
        liabilities_equity=liabilities_equity,
        imbalance=imbalance,
        has_data=has_data,
        warnings=warnings,
    )
