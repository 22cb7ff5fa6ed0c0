# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Cash flow statement ("tableau des flux de trésorerie"), indirect method.

There is no cash ledger behind this statement: every flow is *derived* from
the income statement, the balance sheet and the gross account movements of
the period.

Operating flow
    net_result + depreciation add-backs - delta working capital

    Add-backs are the debit-minus-credit movements of the depreciation
    charge accounts (68 by default).

    Working capital is current assets minus current liabilities (payables).
    With a prior-period balance sheet, the delta is exact:
        WC(N) - WC(N-1)
    Without one, the delta is APPROXIMATED as
        WC(N) * working_capital_fallback_ratio
    (1.0 by default, i.e. the opening working capital is assumed to be
    zero). The statement is then flagged ``working_capital_estimated`` and
    carries a warning: it must not be trusted as exact.

Investing flow
    - acquisitions (debits on class 2, contra-accounts excluded)
    + disposal proceeds (credits on 82 by default)

Financing flow
    loans obtained (credits on 16) - repayments (debits on 16)
    - dividends paid (debits on 465)

Treasury
    closing_cash is the balance sheet treasury group total; opening_cash is
    back-solved as closing_cash - net_change.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

from .balance_sheet import BalanceSheet
from .engine import sum_movements
from .income_statement import IncomeStatement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CashFlowSettings:
    """Account prefixes and heuristics used by the cash flow estimator."""

    depreciation_charge_prefixes: tuple[str, ...] = ("68",)
    fixed_asset_prefixes: tuple[str, ...] = ("2",)
    contra_asset_prefixes: tuple[str, ...] = ("28", "29")
    disposal_proceeds_prefixes: tuple[str, ...] = ("82",)
    financial_debt_prefixes: tuple[str, ...] = ("16",)
    dividend_payable_prefixes: tuple[str, ...] = ("465",)
    working_capital_fallback_ratio: float = 1.0


@dataclass(frozen=True)
class CashFlowItem:
    label: str
    amount: float


@dataclass(frozen=True)
class CashFlowSection:
    items: list[CashFlowItem] = field(default_factory=list)
    total: float = 0.0

    @staticmethod
    def from_items(items: list[CashFlowItem]) -> "CashFlowSection":
        return CashFlowSection(
            items=items, total=round(sum(it.amount for it in items), 2)
        )


@dataclass(frozen=True)
class CashFlowStatement:
    operating: CashFlowSection = field(default_factory=CashFlowSection)
    investing: CashFlowSection = field(default_factory=CashFlowSection)
    financing: CashFlowSection = field(default_factory=CashFlowSection)
    net_change: float = 0.0
    opening_cash: float = 0.0
    closing_cash: float = 0.0
    working_capital_estimated: bool = False
    has_data: bool = False
    warnings: list[str] = field(default_factory=list)


def working_capital_change(
    balance_sheet: BalanceSheet,
    prior_balance_sheet: Optional[BalanceSheet],
    fallback_ratio: float,
) -> tuple[float, bool]:
    """Return ``(delta working capital, estimated)``."""
    current_wc = balance_sheet.working_capital
    if prior_balance_sheet is not None and prior_balance_sheet.has_data:
        return round(current_wc - prior_balance_sheet.working_capital, 2), False
    return round(current_wc * fallback_ratio, 2), True


def estimate_cash_flow(
    income_statement: IncomeStatement,
    balance_sheet: BalanceSheet,
    movements: pd.DataFrame,
    prior_balance_sheet: Optional[BalanceSheet] = None,
    settings: Optional[CashFlowSettings] = None,
) -> CashFlowStatement:
    """Derive the cash flow statement of the period.

    Args:
        income_statement: Income statement of the period.
        balance_sheet: Balance sheet of the period.
        movements: Per-account debit/credit movements of the period, as
            returned by :func:`ohada_finsight.engine.aggregate_ledger`.
        prior_balance_sheet: Balance sheet of the predecessor exercice, if
            any; makes the working capital delta exact.
        settings: Account prefixes and heuristics.

    Returns:
        A CashFlowStatement. With no input data, every figure is zero and
        ``has_data`` is False.
    """
    settings = settings or CashFlowSettings()
    warnings: list[str] = []

    # Operating
    addbacks = sum_movements(
        movements, settings.depreciation_charge_prefixes, "balance"
    )
    delta_wc, estimated = working_capital_change(
        balance_sheet, prior_balance_sheet, settings.working_capital_fallback_ratio
    )
    if estimated and balance_sheet.has_data:
        msg = (
            "Working capital change approximated without a prior-period "
            f"balance sheet (ratio {settings.working_capital_fallback_ratio})"
        )
        warnings.append(msg)
        logger.info(msg)

    operating = CashFlowSection.from_items(
        [
            CashFlowItem("Net result", income_statement.net_result),
            CashFlowItem("Depreciation and amortization", addbacks),
            CashFlowItem("Change in working capital", round(-delta_wc, 2)),
        ]
    )

    # Investing
    acquisitions = sum_movements(
        movements,
        settings.fixed_asset_prefixes,
        "debit",
        exclude=settings.contra_asset_prefixes,
    )
    disposals = sum_movements(movements, settings.disposal_proceeds_prefixes, "credit")
    investing = CashFlowSection.from_items(
        [
            CashFlowItem("Acquisitions of fixed assets", round(-acquisitions, 2)),
            CashFlowItem("Disposals of fixed assets", disposals),
        ]
    )

    # Financing
    loans_obtained = sum_movements(
        movements, settings.financial_debt_prefixes, "credit"
    )
    repayments = sum_movements(movements, settings.financial_debt_prefixes, "debit")
    dividends = sum_movements(movements, settings.dividend_payable_prefixes, "debit")
    financing = CashFlowSection.from_items(
        [
            CashFlowItem("Loans obtained", loans_obtained),
            CashFlowItem("Loan repayments", round(-repayments, 2)),
            CashFlowItem("Dividends paid", round(-dividends, 2)),
        ]
    )

    net_change = round(operating.total + investing.total + financing.total, 2)
    closing_cash = balance_sheet.treasury_total

    return CashFlowStatement(
        operating=operating,
        investing=investing,
        financing=financing,
        net_change=net_change,
        opening_cash=round(closing_cash - net_change, 2),
        closing_cash=closing_cash,
        working_capital_estimated=estimated,
        has_data=income_statement.has_data or balance_sheet.has_data,
        warnings=warnings,
    )
