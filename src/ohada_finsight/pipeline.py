# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report pipeline for OHADA FinSight.

This module orchestrates the full computation of the financial statements
of one tenant for one exercice. It is the only entry point an application
layer needs:

    report = compute_financial_report(source, tenant_id)

Overview
--------
1. Exercice resolution
   The selected exercice (explicit id, else the open one, else the most
   recent) and its predecessor are resolved from the source
   (see periods.resolve_exercices).

2. Current period statements
   The ledger lines of the exercice are fetched, aggregated per account
   (engine.py) and classified (mapping.py). The classified balances feed
   the balance sheet and the income statement, which in turn feed the
   cash flow estimator and the ratio analyzer:

       aggregate -> classify -> {balance sheet, income statement}
                 -> cash flow -> ratios

3. Prior period comparison
   When a predecessor exists, its balance sheet and income statement are
   computed the same way. They make the working capital delta of the
   cash flow exact, and are attached to the current statements as
   amount_prior_period / variation / variation_pct (comparison.py).

4. Annexes
   Depreciation schedule, provisions and aging are built independently
   from their own sources (annexes.py).

Error isolation
---------------
Every component runs inside a guard. A failing component is logged,
recorded in ``FinancialReport.errors`` under its name, and replaced by its
empty result; the other components are still computed. No exception
escapes ``compute_financial_report``.

Caching
-------
When a StatementCache is given, reports are cached by
``(tenant_id, exercice.id)``. Register ``cache.invalidate`` as a change
listener of the source so that writes drop stale reports. A report with
failed components is never cached: the next call retries the source.
The aging annex depends on ``today``: a cached report keeps the aging of
the day it was computed on.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional, TypeVar

import pandas as pd

from .accounts import accounts_from_frame, build_label_index, load_list_of_accounts
from .annexes import Annexes, build_annexes
from .balance_sheet import BalanceSheet, build_balance_sheet
from .cache import StatementCache
from .cash_flow import CashFlowStatement, estimate_cash_flow
from .comparison import compare_balance_sheets, compare_income_statements
from .config import EngineConfig
from .engine import AGGREGATE_COLUMNS, aggregate_ledger
from .income_statement import (
    IncomeStatement,
    build_income_statement,
    collect_additional_levy,
)
from .io import empty_ledger_frame, ledger_lines_to_frame
from .mapping import Classification, ClassificationTable, classify_balances
from .models import Exercice, RatioThresholds
from .periods import HISTORY_START, _today, resolve_exercices
from .ratios import RatioReport, analyze_ratios
from .sources import StatementsSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FinancialReport:
    """
    Every statement of one tenant for one exercice.

    Attributes:
        tenant_id: Tenant the report belongs to.
        exercice: Selected exercice, None when none could be resolved.
        prior_exercice: Predecessor used for the N-1 comparison, if any.
        balance_sheet: Balance sheet, with prior-period figures attached.
        income_statement: Income statement, with prior-period figures.
        cash_flow: Cash flow statement (indirect method).
        annexes: Depreciation schedule, provisions, aging.
        ratios: Threshold-evaluated financial ratios.
        unclassified_accounts: Account codes matching no classification rule.
        warnings: Non-fatal issues, in order of appearance.
        errors: Component name -> error message for failed components.
    """

    tenant_id: str
    exercice: Optional[Exercice] = None
    prior_exercice: Optional[Exercice] = None
    balance_sheet: BalanceSheet = field(default_factory=BalanceSheet)
    income_statement: IncomeStatement = field(default_factory=IncomeStatement)
    cash_flow: CashFlowStatement = field(default_factory=CashFlowStatement)
    annexes: Annexes = field(default_factory=Annexes)
    ratios: RatioReport = field(default_factory=RatioReport)
    unclassified_accounts: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return self.exercice is not None and (
            self.balance_sheet.has_data or self.income_statement.has_data
        )


@dataclass(frozen=True)
class _PeriodStatements:
    movements: pd.DataFrame
    classification: Classification
    balance_sheet: BalanceSheet
    income_statement: IncomeStatement


def _run(name: str, build: Callable[[], T], empty: T, errors: dict[str, str]) -> T:
    """Run one component, recording its failure instead of raising."""
    try:
        return build()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Component %r failed", name)
        errors[name] = f"{type(exc).__name__}: {exc}"
        return empty


def _optional_fetch(source: StatementsSource, method: str, *args: Any) -> list:
    fetch = getattr(source, method, None)
    if fetch is None:
        return []
    return list(fetch(*args))


def _load_labels(
    source: StatementsSource, tenant_id: str, config: EngineConfig
) -> dict[str, str]:
    accounts = _optional_fetch(source, "fetch_accounts", tenant_id)
    if not accounts and config.classification.chart_of_accounts is not None:
        accounts = accounts_from_frame(
            load_list_of_accounts(str(config.classification.chart_of_accounts))
        )
    return build_label_index(accounts)


def _load_table(config: EngineConfig) -> ClassificationTable:
    if config.classification.table is None:
        return ClassificationTable.default()
    return ClassificationTable.from_csv(str(config.classification.table))


def _load_thresholds(
    source: StatementsSource, tenant_id: str, config: EngineConfig
) -> RatioThresholds:
    thresholds = source.fetch_regional_thresholds(tenant_id)
    if thresholds is None:
        logger.debug("No regional thresholds for %s, using defaults", tenant_id)
        return config.ratios.default_thresholds
    return thresholds


def _fetch_frame(
    source: StatementsSource, tenant_id: str, start: date, end: date
) -> pd.DataFrame:
    return ledger_lines_to_frame(source.fetch_ledger_lines(tenant_id, start, end))


def _period_statements(
    lines: pd.DataFrame,
    exercice: Exercice,
    labels: dict[str, str],
    table: ClassificationTable,
    additional_levy: float,
    errors: dict[str, str],
) -> _PeriodStatements:
    movements = _run(
        "aggregation",
        lambda: aggregate_ledger(lines, exercice.date_start, exercice.date_end),
        pd.DataFrame(columns=AGGREGATE_COLUMNS),
        errors,
    )
    classification = _run(
        "classification",
        lambda: classify_balances(movements, labels, table),
        Classification(),
        errors,
    )
    balance_sheet = _run(
        "balance_sheet",
        lambda: build_balance_sheet(classification),
        BalanceSheet(),
        errors,
    )
    income_statement = _run(
        "income_statement",
        lambda: build_income_statement(classification, additional_levy),
        IncomeStatement(),
        errors,
    )
    return _PeriodStatements(movements, classification, balance_sheet, income_statement)


def _unique(messages: list[str]) -> list[str]:
    return list(dict.fromkeys(messages))


def _compute(
    source: StatementsSource,
    tenant_id: str,
    exercice: Exercice,
    prior_exercice: Optional[Exercice],
    config: EngineConfig,
    today: date,
    errors: dict[str, str],
) -> FinancialReport:
    start, end = exercice.date_start, exercice.date_end
    logger.debug(
        "Computing report for %s / %s (%s - %s)", tenant_id, exercice.id, start, end
    )

    labels = _run(
        "accounts", lambda: _load_labels(source, tenant_id, config), {}, errors
    )
    table = _run(
        "classification_table",
        lambda: _load_table(config),
        ClassificationTable.default(),
        errors,
    )

    # 1) Current period
    lines = _run(
        "ledger",
        lambda: _fetch_frame(source, tenant_id, start, end),
        empty_ledger_frame(),
        errors,
    )
    levy = _run(
        "sales",
        lambda: collect_additional_levy(
            _optional_fetch(source, "fetch_period_sales", tenant_id, start, end)
        ),
        0.0,
        errors,
    )
    current = _period_statements(lines, exercice, labels, table, levy, errors)

    # 2) Prior period
    prior: Optional[_PeriodStatements] = None
    if prior_exercice is not None:
        prior_errors: dict[str, str] = {}
        prior_lines = _run(
            "ledger",
            lambda: _fetch_frame(
                source, tenant_id, prior_exercice.date_start, prior_exercice.date_end
            ),
            empty_ledger_frame(),
            prior_errors,
        )
        prior = _period_statements(
            prior_lines, prior_exercice, labels, table, 0.0, prior_errors
        )
        for name, message in prior_errors.items():
            errors[f"prior_{name}"] = message

    prior_bs = prior.balance_sheet if prior is not None else None

    # 3) Cash flow & ratios (current figures only)
    cash_flow = _run(
        "cash_flow",
        lambda: estimate_cash_flow(
            current.income_statement,
            current.balance_sheet,
            current.movements,
            prior_balance_sheet=prior_bs,
            settings=config.cash_flow,
        ),
        CashFlowStatement(),
        errors,
    )
    thresholds = _run(
        "thresholds",
        lambda: _load_thresholds(source, tenant_id, config),
        config.ratios.default_thresholds,
        errors,
    )
    ratios = _run(
        "ratios",
        lambda: analyze_ratios(
            current.balance_sheet,
            current.income_statement,
            thresholds,
            config.ratios.rules_file,
        ),
        RatioReport(),
        errors,
    )

    # 4) N-1 comparison
    balance_sheet = current.balance_sheet
    income_statement = current.income_statement
    if prior is not None:
        balance_sheet = _run(
            "comparison",
            lambda: compare_balance_sheets(current.balance_sheet, prior.balance_sheet),
            current.balance_sheet,
            errors,
        )
        income_statement = _run(
            "comparison",
            lambda: compare_income_statements(
                current.income_statement, prior.income_statement
            ),
            current.income_statement,
            errors,
        )

    # 5) Annexes
    annexes = _run(
        "annexes",
        lambda: build_annexes(
            fetch_fixed_assets=lambda: source.fetch_fixed_assets(tenant_id),
            fetch_provision_lines=lambda: _fetch_frame(
                source, tenant_id, HISTORY_START, end
            ),
            fetch_receivables=lambda: source.fetch_receivable_invoices(tenant_id),
            fetch_payables=lambda: source.fetch_payable_receptions(tenant_id),
            period_start=start,
            period_end=end,
            today=today,
            provision_prefixes=config.annexes.provision_prefixes,
            labels=labels,
        ),
        Annexes(),
        errors,
    )
    for name, message in annexes.errors.items():
        errors[f"annexes.{name}"] = message

    warnings = _unique(list(balance_sheet.warnings) + list(cash_flow.warnings))

    return FinancialReport(
        tenant_id=str(tenant_id),
        exercice=exercice,
        prior_exercice=prior_exercice,
        balance_sheet=balance_sheet,
        income_statement=income_statement,
        cash_flow=cash_flow,
        annexes=annexes,
        ratios=ratios,
        unclassified_accounts=list(current.classification.unclassified),
        warnings=warnings,
        errors=dict(errors),
    )


def compute_financial_report(
    source: StatementsSource,
    tenant_id: str,
    exercice_id: Optional[str] = None,
    *,
    config: Optional[EngineConfig] = None,
    cache: Optional[StatementCache] = None,
    today: Optional[date] = None,
) -> FinancialReport:
    """
    Compute every statement of a tenant for one exercice.

    Args:
        source: Statements source (see sources.StatementsSource).
        tenant_id: Tenant to report on.
        exercice_id: Exercice to report on; the current one when None.
        config: Engine configuration; built-in defaults when None.
        cache: Optional report cache keyed by (tenant_id, exercice id).
        today: Reference date of the aging annex; today when None.

    Returns:
        A FinancialReport. When no exercice can be resolved, every
        statement is empty, ``has_data`` is False and a warning explains
        why.
    """
    config = config or EngineConfig()
    today = today or _today()
    errors: dict[str, str] = {}

    exercices = _run(
        "exercices", lambda: list(source.fetch_exercices(tenant_id)), [], errors
    )
    exercice, prior_exercice = resolve_exercices(exercices, exercice_id)

    if exercice is None:
        if exercice_id is None:
            msg = f"No exercice found for tenant {tenant_id}"
        else:
            msg = f"Exercice {exercice_id} not found for tenant {tenant_id}"
        logger.warning(msg)
        return FinancialReport(tenant_id=str(tenant_id), warnings=[msg], errors=errors)

    def compute() -> FinancialReport:
        return _compute(
            source, tenant_id, exercice, prior_exercice, config, today, dict(errors)
        )

    try:
        if cache is None:
            return compute()
        return cache.get_or_compute(
            str(tenant_id),
            str(exercice.id),
            compute,
            should_cache=lambda report: not report.errors,
        )
    except Exception as exc:  # noqa: BLE001
        logger.exception("Report computation failed for %s / %s", tenant_id, exercice.id)
        errors["report"] = f"{type(exc).__name__}: {exc}"
        return FinancialReport(
            tenant_id=str(tenant_id),
            exercice=exercice,
            prior_exercice=prior_exercice,
            errors=errors,
        )
