# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Income statement ("compte de résultat") builder.

Revenue and expense balances (classes 6, 7 and 8) are grouped into three
result layers:

    result_operating     = revenue.operating     - expenses.operating
    result_financial     = revenue.financial     - expenses.financial
    result_extraordinary = revenue.extraordinary - expenses.extraordinary
    net_result           = sum of the three layers

The additional levy ("centime additionnel") collected on the period sales
is a tax pass-through: it is reported alongside the statement and never
folded into the net result.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from .mapping import Bucket, Classification
from .models import SaleRecord, StatementItem, StatementSection

SALES_REVENUE_PREFIXES: tuple[str, ...] = ("70",)


@dataclass(frozen=True)
class ResultLayers:
    """Revenue or expense items split by result layer."""

    operating: StatementSection = field(default_factory=StatementSection)
    financial: StatementSection = field(default_factory=StatementSection)
    extraordinary: StatementSection = field(default_factory=StatementSection)
    total: float = 0.0

    @staticmethod
    def from_sections(
        operating: StatementSection,
        financial: StatementSection,
        extraordinary: StatementSection,
    ) -> "ResultLayers":
        return ResultLayers(
            operating=operating,
            financial=financial,
            extraordinary=extraordinary,
            total=round(operating.total + financial.total + extraordinary.total, 2),
        )


@dataclass(frozen=True)
class IncomeStatement:
    revenue: ResultLayers = field(default_factory=ResultLayers)
    expenses: ResultLayers = field(default_factory=ResultLayers)
    result_operating: float = 0.0
    result_financial: float = 0.0
    result_extraordinary: float = 0.0
    net_result: float = 0.0
    additional_levy: float = 0.0
    sales_revenue: float = 0.0
    has_data: bool = False


def _section(classification: Classification, bucket: Bucket) -> StatementSection:
    return StatementSection.from_items(
        [
            StatementItem(
                code=b.account_code,
                label=b.label,
                amount_current_period=b.amount,
                bucket=b.bucket.value,
            )
            for b in classification.by_bucket(bucket)
        ]
    )


def collect_additional_levy(sales: Iterable[SaleRecord]) -> float:
    """Sum the additional levy collected on the given sales."""
    return round(sum(float(s.additional_levy or 0.0) for s in sales), 2)


def build_income_statement(
    classification: Classification,
    additional_levy: float = 0.0,
    sales_revenue_prefixes: tuple[str, ...] = SALES_REVENUE_PREFIXES,
) -> IncomeStatement:
    """Build the income statement from classified balances.

    Args:
        classification: Output of :func:`ohada_finsight.mapping.classify_balances`.
        additional_levy: Levy collected on the period sales, reported as is.
        sales_revenue_prefixes: Operating revenue prefixes making up the
            revenue from sales (turnover) used by margin ratios.

    Returns:
        An IncomeStatement. Balance sheet buckets are ignored.
    """
    revenue = ResultLayers.from_sections(
        _section(classification, Bucket.OPERATING_REVENUE),
        _section(classification, Bucket.FINANCIAL_REVENUE),
        _section(classification, Bucket.EXTRAORDINARY_REVENUE),
    )
    expenses = ResultLayers.from_sections(
        _section(classification, Bucket.OPERATING_EXPENSE),
        _section(classification, Bucket.FINANCIAL_EXPENSE),
        _section(classification, Bucket.EXTRAORDINARY_EXPENSE),
    )

    result_operating = round(revenue.operating.total - expenses.operating.total, 2)
    result_financial = round(revenue.financial.total - expenses.financial.total, 2)
    result_extraordinary = round(
        revenue.extraordinary.total - expenses.extraordinary.total, 2
    )

    sales_revenue = round(
        sum(
            it.amount_current_period
            for it in revenue.operating.items
            if it.code.startswith(tuple(sales_revenue_prefixes))
        ),
        2,
    )

    has_data = any(
        section.items
        for layers in (revenue, expenses)
        for section in (layers.operating, layers.financial, layers.extraordinary)
    )

    return IncomeStatement(
        revenue=revenue,
        expenses=expenses,
        result_operating=result_operating,
        result_financial=result_financial,
        result_extraordinary=result_extraordinary,
        net_result=round(result_operating + result_financial + result_extraordinary, 2),
        additional_levy=round(float(additional_levy or 0.0), 2),
        sales_revenue=sales_revenue,
        has_data=has_data,
    )
