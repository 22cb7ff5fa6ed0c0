from datetime import date

import pytest

from ohada_finsight.income_statement import (
    build_income_statement,
    collect_additional_levy,
)
from ohada_finsight.mapping import classify_balances
from ohada_finsight.models import SaleRecord


def _balances() -> dict[str, float]:
    return {
        "701": -1000.0,
        "706": -200.0,
        "601": 500.0,
        "661": 30.0,
        "771": -10.0,
        "681": 100.0,
        "821": -50.0,
        "811": 20.0,
    }


def test_income_statement_result_layers() -> None:
    stmt = build_income_statement(classify_balances(_balances()))

    assert stmt.revenue.operating.total == 1200.0
    assert stmt.expenses.operating.total == 500.0
    assert stmt.result_operating == 700.0

    assert stmt.revenue.financial.total == 10.0
    assert stmt.expenses.financial.total == 30.0
    assert stmt.result_financial == -20.0

    # 68 and 81 are extraordinary expenses, 82 extraordinary revenue
    assert stmt.expenses.extraordinary.codes() == ["681", "811"]
    assert stmt.result_extraordinary == -70.0

    assert stmt.net_result == 610.0
    assert stmt.revenue.total == 1260.0
    assert stmt.expenses.total == 650.0
    assert stmt.has_data is True


def test_sales_revenue_is_class_70_only() -> None:
    stmt = build_income_statement(classify_balances({"701": -1000.0, "758": -40.0}))

    assert stmt.revenue.operating.total == 1040.0
    assert stmt.sales_revenue == 1000.0


def test_additional_levy_is_not_folded_into_net_result() -> None:
    stmt = build_income_statement(
        classify_balances({"701": -1000.0}), additional_levy=25.0
    )

    assert stmt.additional_levy == 25.0
    assert stmt.net_result == 1000.0


def test_collect_additional_levy() -> None:
    sales = [
        SaleRecord("V1", date(2025, 1, 1), 1000.0, 10.0),
        SaleRecord("V2", date(2025, 1, 2), 500.0, 5.5),
        SaleRecord("V3", date(2025, 1, 3), 200.0),
    ]

    assert collect_additional_levy(sales) == pytest.approx(15.5)
    assert collect_additional_levy([]) == 0.0


def test_balance_sheet_accounts_are_ignored() -> None:
    stmt = build_income_statement(classify_balances({"411": 100.0, "101": -100.0}))

    assert stmt.has_data is False
    assert stmt.net_result == 0.0
