# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period-over-period comparison (N vs N-1).

Statements are always computed for one exercice at a time. This module
attaches the figures of the immediate predecessor to an already built
statement:

- items are matched by account code,
- ``variation = current - prior``,
- ``variation_pct = variation / |prior| * 100`` (None when prior is zero),
- accounts that only exist in the prior period are kept, with a current
  amount of zero, so that disappearing lines remain visible,
- on the balance sheet, an account appears once even when it changed
  side between the two periods (see compare_balance_sheets).
"""

from collections.abc import Mapping
from dataclasses import replace
from typing import Optional

from .balance_sheet import BalanceSheet
from .income_statement import IncomeStatement, ResultLayers
from .models import StatementItem, StatementSection


def variation_pct(current: float, prior: Optional[float]) -> Optional[float]:
    """Relative variation in percent, None when it cannot be computed."""
    if prior is None or prior == 0:
        return None
    return round((current - prior) / abs(prior) * 100.0, 2)


def compare_items(current: StatementItem, prior_amount: Optional[float]) -> StatementItem:
    """Return ``current`` with its prior-period fields populated."""
    if prior_amount is None:
        return current
    return replace(
        current,
        amount_prior_period=prior_amount,
        variation=round(current.amount_current_period - prior_amount, 2),
        variation_pct=variation_pct(current.amount_current_period, prior_amount),
    )


def _merge_section(
    current: StatementSection,
    prior_amounts: Mapping[str, float],
    prior_only: list[StatementItem],
) -> StatementSection:
    """Attach prior amounts to ``current`` and append the prior-only items."""
    items = [compare_items(it, prior_amounts.get(it.code, 0.0)) for it in current.items]
    for old in prior_only:
        items.append(
            compare_items(
                replace(
                    old,
                    amount_current_period=0.0,
                    amount_prior_period=None,
                    variation=None,
                    variation_pct=None,
                ),
                old.amount_current_period,
            )
        )

    return StatementSection(
        items=sorted(items, key=lambda it: it.code),
        total=current.total,
        total_prior_period=round(
            sum(it.amount_prior_period or 0.0 for it in items), 2
        ),
    )


def compare_sections(
    current: StatementSection, prior: StatementSection
) -> StatementSection:
    """Merge a prior-period section into the current one."""
    current_codes = set(current.codes())
    return _merge_section(
        current,
        {it.code: it.amount_current_period for it in prior.items},
        [it for it in prior.items if it.code not in current_codes],
    )


ASSET_GROUPS: tuple[str, ...] = ("immobilized", "current", "treasury")
LIABILITY_EQUITY_GROUPS: tuple[str, ...] = ("equity", "debt")


def _groups(balance_sheet: BalanceSheet) -> list[tuple[int, str, StatementSection]]:
    """``(nature sign, group name, section)`` of every balance sheet group.

    Asset amounts are debit-side (+1), liability and equity amounts are
    credit-side (-1).
    """
    return [
        (1, name, getattr(balance_sheet.assets, name)) for name in ASSET_GROUPS
    ] + [
        (-1, name, getattr(balance_sheet.liabilities_equity, name))
        for name in LIABILITY_EQUITY_GROUPS
    ]


def compare_balance_sheets(current: BalanceSheet, prior: BalanceSheet) -> BalanceSheet:
    """Attach the prior-period balance sheet to the current one.

    Accounts are matched across the whole statement, not group by group:
    an account that changed side between the two periods (a customer in
    credit last year, in debit now) keeps a single line, in its current
    group, with the prior amount signed by the current group's nature
    (a prior payable of 200 shows as -200 on the receivable line). Prior
    accounts absent from the current statement are appended to the group
    they belonged to.
    """
    current_codes = {
        code for _, _, section in _groups(current) for code in section.codes()
    }
    # Prior balances as debit - credit
    prior_net: dict[str, float] = {}
    for sign, _, section in _groups(prior):
        for it in section.items:
            prior_net[it.code] = (
                prior_net.get(it.code, 0.0) + sign * it.amount_current_period
            )

    prior_sections = {name: section for _, name, section in _groups(prior)}
    merged: dict[str, StatementSection] = {}
    for sign, name, section in _groups(current):
        prior_amounts = {
            code: round(sign * prior_net[code] + 0.0, 2)
            for code in section.codes()
            if code in prior_net
        }
        prior_only = [
            it for it in prior_sections[name].items if it.code not in current_codes
        ]
        merged[name] = _merge_section(section, prior_amounts, prior_only)

    assets = replace(
        current.assets,
        **{name: merged[name] for name in ASSET_GROUPS},
        total_prior_period=round(
            sum(merged[name].total_prior_period for name in ASSET_GROUPS), 2
        ),
    )
    liabilities_equity = replace(
        current.liabilities_equity,
        **{name: merged[name] for name in LIABILITY_EQUITY_GROUPS},
        total_prior_period=round(
            sum(merged[name].total_prior_period for name in LIABILITY_EQUITY_GROUPS),
            2,
        ),
    )
    return replace(current, assets=assets, liabilities_equity=liabilities_equity)


def _compare_layers(current: ResultLayers, prior: ResultLayers) -> ResultLayers:
    return replace(
        current,
        operating=compare_sections(current.operating, prior.operating),
        financial=compare_sections(current.financial, prior.financial),
        extraordinary=compare_sections(current.extraordinary, prior.extraordinary),
    )


def compare_income_statements(
    current: IncomeStatement, prior: IncomeStatement
) -> IncomeStatement:
    """Attach the prior-period income statement to the current one."""
    return replace(
        current,
        revenue=_compare_layers(current.revenue, prior.revenue),
        expenses=_compare_layers(current.expenses, prior.expenses),
    )
