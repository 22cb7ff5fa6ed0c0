import os
from pathlib import Path

import pytest

from ohada_finsight.balance_sheet import BalanceSheet, build_balance_sheet
from ohada_finsight.income_statement import IncomeStatement, build_income_statement
from ohada_finsight.mapping import classify_balances
from ohada_finsight.models import RatioThresholds
from ohada_finsight.ratios import (
    _parse_ratio_rules,
    _safe_eval_expr,
    analyze_ratios,
    build_ratio_measures,
    load_ratio_rules,
)


def _statements():
    classification = classify_balances(
        {
            "101": -1000.0,
            "162": -500.0,
            "401": -200.0,
            "561": -100.0,
            "2441": 900.0,
            "2844": -100.0,
            "311": 300.0,
            "411": 400.0,
            "521": 300.0,
            "701": -1000.0,
            "601": 900.0,
        }
    )
    return build_balance_sheet(classification), build_income_statement(classification)


def test_builtin_rules_are_loaded_in_file_order() -> None:
    rules = load_ratio_rules()

    assert [r.key for r in rules] == [
        "liquidity",
        "leverage",
        "autonomy",
        "operating_margin",
        "net_margin",
        "return_on_equity",
    ]
    leverage = rules[1]
    assert leverage.direction == "<="
    assert leverage.status_met == "normal"
    assert leverage.unit == "percent"


def test_build_ratio_measures() -> None:
    bs, is_ = _statements()

    measures = build_ratio_measures(bs, is_)

    assert measures["current_assets"] == 700.0
    assert measures["current_liabilities"] == 200.0
    assert measures["total_debt"] == 800.0
    assert measures["total_liabilities_equity"] == 1800.0
    assert measures["equity"] == 1000.0
    assert measures["result_operating"] == 100.0
    assert measures["sales_revenue"] == 1000.0


def test_analyze_ratios_values_and_statuses() -> None:
    bs, is_ = _statements()

    report = analyze_ratios(bs, is_)

    assert report.has_data is True
    assert report["liquidity"].value == 3.5
    assert report["liquidity"].status == "good"
    assert report["leverage"].value == 44.44
    assert report["leverage"].status == "normal"
    assert report["autonomy"].value == 55.56
    assert report["autonomy"].status == "good"
    assert report["operating_margin"].value == 10.0
    assert report["operating_margin"].status == "good"
    assert report["net_margin"].value == 10.0
    assert report["return_on_equity"].value == 10.0
    assert report["return_on_equity"].status == "normal"

    assert [r.name for r in report.strengths()] == [
        "liquidity",
        "autonomy",
        "operating_margin",
        "net_margin",
    ]
    assert report.attention_points() == []


def test_thresholds_change_statuses() -> None:
    bs, is_ = _statements()

    report = analyze_ratios(bs, is_, RatioThresholds(liquidity=4.0, leverage=40.0))

    assert report["liquidity"].threshold == 4.0
    assert report["liquidity"].status == "attention"
    assert report["leverage"].status == "attention"
    assert [r.name for r in report.attention_points()] == ["liquidity", "leverage"]


def test_ratios_of_empty_statements_are_zero_not_errors() -> None:
    report = analyze_ratios(BalanceSheet(), IncomeStatement())

    assert report.has_data is False
    assert len(report) == 6
    for ratio in report.values():
        assert ratio.value == 0.0
    assert report["liquidity"].status == "attention"
    assert report["leverage"].status == "normal"


def test_unevaluable_formula_yields_no_value(tmp_path: Path) -> None:
    rules = tmp_path / "ratios.toml"
    rules.write_text(
        "[ratios.custom]\n"
        'label = "Custom"\n'
        'formula = "unknown_measure / 2"\n'
        'threshold = "liquidity"\n',
        encoding="utf-8",
    )
    bs, is_ = _statements()

    report = analyze_ratios(bs, is_, rules_file=rules)

    assert list(report) == ["custom"]
    assert report["custom"].value is None
    assert report["custom"].status is None


def test_invalid_direction_is_rejected(tmp_path: Path) -> None:
    rules = tmp_path / "ratios.toml"
    rules.write_text(
        '[ratios.custom]\nformula = "1"\ndirection = ">"\n', encoding="utf-8"
    )

    with pytest.raises(ValueError, match="direction"):
        load_ratio_rules(rules)


def test_missing_rules_file() -> None:
    with pytest.raises(FileNotFoundError):
        load_ratio_rules("does/not/exist.toml")


def test_safe_eval_expr() -> None:
    variables = {"a": 10.0, "b": 4.0}

    assert _safe_eval_expr("a / b * 100", variables) == 250.0
    assert _safe_eval_expr("-(a - b) ** 2", variables) == -36.0
    assert _safe_eval_expr("a % b", variables) == 2.0
    assert _safe_eval_expr("a / 0", variables) == 0.0
    assert _safe_eval_expr("a % 0", variables) == 0.0


@pytest.mark.parametrize("expr", ["__import__('os')", "a.real", "True + 1", "a +"])
def test_safe_eval_expr_rejects_unsupported_syntax(expr: str) -> None:
    with pytest.raises(ValueError):
        _safe_eval_expr(expr, {"a": 1.0})


def test_rules_file_is_parsed_once_until_modified(tmp_path: Path) -> None:
    rules = tmp_path / "ratios.toml"
    rules.write_text('[ratios.first]\nformula = "1"\n', encoding="utf-8")
    _parse_ratio_rules.cache_clear()

    assert [r.key for r in load_ratio_rules(rules)] == ["first"]
    assert [r.key for r in load_ratio_rules(rules)] == ["first"]
    assert _parse_ratio_rules.cache_info().misses == 1
    assert _parse_ratio_rules.cache_info().hits == 1

    stat = rules.stat()
    rules.write_text('[ratios.second]\nformula = "2"\n', encoding="utf-8")
    os.utime(rules, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

    assert [r.key for r in load_ratio_rules(rules)] == ["second"]
