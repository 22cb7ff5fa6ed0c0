# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for OHADA FinSight.

This module flattens the statement objects into long-format pandas
DataFrames, ready for display or for export collaborators (spreadsheet,
PDF, ...). It never computes figures: every amount comes from the
statement objects as they are.

Statement views share the columns:

    display_order, section, group, code, label, amount,
    amount_prior_period, variation, variation_pct

Group subtotal rows have an empty ``code`` and a "Total ..." label.
Rows are renumbered 10, 20, 30, ... in display order.
"""

from dataclasses import asdict

import pandas as pd

from .annexes import AgingReport, DepreciationSchedule, ProvisionsTable
from .balance_sheet import BalanceSheet
from .cash_flow import CashFlowStatement
from .income_statement import IncomeStatement, ResultLayers
from .models import StatementSection
from .ratios import RatioReport

STATEMENT_COLUMNS: list[str] = [
    "display_order",
    "section",
    "group",
    "code",
    "label",
    "amount",
    "amount_prior_period",
    "variation",
    "variation_pct",
]


def _renumber_display_order(
    df: pd.DataFrame, start: int = 10, step: int = 10
) -> pd.DataFrame:
    """Reassign display_order to be strictly sequential: start, start+step, ...
    Preserves the current order of the lines (as it appears in df).
    """
    df = df.copy()
    df = df.reset_index(drop=True)
    df["display_order"] = [start + i * step for i in range(len(df))]
    return df


def _finalize_view(rows: list[dict[str, object]]) -> pd.DataFrame:
    """Build the frame, renumber display_order and apply the column order."""
    if not rows:
        return pd.DataFrame(columns=STATEMENT_COLUMNS)
    df = _renumber_display_order(pd.DataFrame(rows))
    return df[[c for c in STATEMENT_COLUMNS if c in df.columns]]


def _total_row(
    section: str,
    group: str,
    label: str,
    amount: float,
    prior,
) -> dict[str, object]:
    variation = None if prior is None else round(amount - prior, 2)
    return {
        "section": section,
        "group": group,
        "code": "",
        "label": label,
        "amount": amount,
        "amount_prior_period": prior,
        "variation": variation,
        "variation_pct": None,
    }


def _section_rows(
    section: str, group: str, title: str, stmt_section: StatementSection
) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = [
        {
            "section": section,
            "group": group,
            "code": item.code,
            "label": item.label,
            "amount": item.amount_current_period,
            "amount_prior_period": item.amount_prior_period,
            "variation": item.variation,
            "variation_pct": item.variation_pct,
        }
        for item in stmt_section.items
    ]
    rows.append(
        _total_row(
            section,
            group,
            f"Total {title}",
            stmt_section.total,
            stmt_section.total_prior_period,
        )
    )
    return rows


def balance_sheet_to_dataframe(balance_sheet: BalanceSheet) -> pd.DataFrame:
    """Flatten a balance sheet (assets first, then liabilities and equity)."""
    assets = balance_sheet.assets
    le = balance_sheet.liabilities_equity

    rows: list[dict[str, object]] = []
    rows += _section_rows("assets", "immobilized", "immobilized assets", assets.immobilized)
    rows += _section_rows("assets", "current", "current assets", assets.current)
    rows += _section_rows("assets", "treasury", "treasury", assets.treasury)
    rows.append(
        _total_row("assets", "", "Total assets", assets.total, assets.total_prior_period)
    )
    rows += _section_rows("liabilities_equity", "equity", "equity", le.equity)
    rows += _section_rows("liabilities_equity", "debt", "debt", le.debt)
    rows.append(
        _total_row(
            "liabilities_equity",
            "",
            "Total liabilities and equity",
            le.total,
            le.total_prior_period,
        )
    )
    return _finalize_view(rows)


def _layer_rows(section: str, layers: ResultLayers) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    rows += _section_rows(section, "operating", f"operating {section}", layers.operating)
    rows += _section_rows(section, "financial", f"financial {section}", layers.financial)
    rows += _section_rows(
        section, "extraordinary", f"extraordinary {section}", layers.extraordinary
    )
    return rows


def income_statement_to_dataframe(income_statement: IncomeStatement) -> pd.DataFrame:
    """Flatten an income statement: revenue, expenses, then the result layers."""
    rows = _layer_rows("revenue", income_statement.revenue)
    rows += _layer_rows("expenses", income_statement.expenses)

    results = [
        ("operating", "Operating result", income_statement.result_operating),
        ("financial", "Financial result", income_statement.result_financial),
        ("extraordinary", "Extraordinary result", income_statement.result_extraordinary),
        ("net", "Net result", income_statement.net_result),
    ]
    for group, label, amount in results:
        rows.append(_total_row("results", group, label, amount, None))

    rows.append(
        _total_row(
            "memo",
            "additional_levy",
            "Additional levy collected",
            income_statement.additional_levy,
            None,
        )
    )
    return _finalize_view(rows)


def cash_flow_to_dataframe(cash_flow: CashFlowStatement) -> pd.DataFrame:
    """Flatten a cash flow statement into (section, label, amount) rows."""
    rows: list[dict[str, object]] = []
    for section, flows in (
        ("operating", cash_flow.operating),
        ("investing", cash_flow.investing),
        ("financing", cash_flow.financing),
    ):
        for item in flows.items:
            rows.append({"section": section, "label": item.label, "amount": item.amount})
        rows.append(
            {"section": section, "label": f"Total {section}", "amount": flows.total}
        )

    rows += [
        {"section": "treasury", "label": "Net change", "amount": cash_flow.net_change},
        {"section": "treasury", "label": "Opening cash", "amount": cash_flow.opening_cash},
        {"section": "treasury", "label": "Closing cash", "amount": cash_flow.closing_cash},
    ]
    df = _renumber_display_order(pd.DataFrame(rows))
    return df[["display_order", "section", "label", "amount"]]


def ratios_to_dataframe(report: RatioReport, decimals: int = 2) -> pd.DataFrame:
    """
    Convert a RatioReport into a pandas DataFrame.

    The resulting DataFrame has the following columns:
        - name:      Internal ratio identifier (e.g. "liquidity").
        - label:     Human-readable label to display.
        - value:     Numeric value rounded to ``decimals``, or NaN if the
                     ratio could not be computed.
        - threshold: Threshold the value was compared against.
        - direction: ">=" or "<=".
        - status:    "good", "normal" or "attention".
        - unit:      Unit hint ("ratio", "percent").

    Rows keep the order of the ratio rules file.
    """
    columns = ["name", "label", "value", "threshold", "direction", "status", "unit"]
    if not len(report):
        return pd.DataFrame(columns=columns)

    rows: list[dict[str, object]] = []
    for r in report.values():
        rows.append(
            {
                "name": r.name,
                "label": r.label,
                "value": float("nan") if r.value is None else round(r.value, decimals),
                "threshold": r.threshold,
                "direction": r.direction,
                "status": r.status,
                "unit": r.unit,
            }
        )
    return pd.DataFrame(rows, columns=columns)


def depreciation_to_dataframe(schedule: DepreciationSchedule) -> pd.DataFrame:
    """One row per asset of the depreciation schedule."""
    columns = [
        "asset_id",
        "label",
        "account_code",
        "acquisition_date",
        "gross_value",
        "rate",
        "years_elapsed",
        "period_charge",
        "accumulated",
        "net_value",
    ]
    return pd.DataFrame([asdict(line) for line in schedule.lines], columns=columns)


def provisions_to_dataframe(provisions: ProvisionsTable) -> pd.DataFrame:
    """One row per provision account."""
    columns = [
        "account_code",
        "label",
        "opening_balance",
        "additions",
        "reversals",
        "closing_balance",
    ]
    return pd.DataFrame([asdict(line) for line in provisions.lines], columns=columns)


def aging_to_dataframe(report: AgingReport) -> pd.DataFrame:
    """One row per open receivable or payable, most overdue first."""
    columns = [
        "counterparty",
        "reference",
        "due_date",
        "days_overdue",
        "bucket",
        "amount_total",
        "amount_overdue",
        "amount_not_due",
    ]
    rows = []
    for item in report.items:
        row = asdict(item)
        row["bucket"] = item.bucket.value
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)
