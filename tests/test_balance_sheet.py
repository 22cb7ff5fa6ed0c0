from ohada_finsight.balance_sheet import build_balance_sheet
from ohada_finsight.mapping import classify_balances


def _balanced_ledger() -> dict[str, float]:
    # Equity 1000 + loan 500 + supplier 200 + overdraft 100 = 1800
    # Equipment 900 - depreciation 100 + stock 300 + client 400 + bank 300 = 1800
    return {
        "101": -1000.0,
        "162": -500.0,
        "401": -200.0,
        "561": -100.0,
        "2441": 900.0,
        "2844": -100.0,
        "311": 300.0,
        "411": 400.0,
        "521": 300.0,
    }


def test_balance_sheet_groups_and_totals() -> None:
    bs = build_balance_sheet(classify_balances(_balanced_ledger()))

    assert bs.assets.immobilized.codes() == ["2441"]
    assert bs.assets.immobilized.total == 800.0
    assert bs.assets.current.codes() == ["311", "411"]
    assert bs.assets.current.total == 700.0
    assert bs.assets.treasury.codes() == ["521"]
    assert bs.assets.total == 1800.0

    assert bs.liabilities_equity.equity.total == 1000.0
    assert bs.liabilities_equity.debt.codes() == ["162", "401", "561"]
    assert bs.liabilities_equity.debt.total == 800.0
    assert bs.liabilities_equity.total == 1800.0

    assert bs.has_data is True
    assert bs.is_balanced
    assert bs.warnings == []


def test_balance_sheet_helper_measures() -> None:
    bs = build_balance_sheet(classify_balances(_balanced_ledger()))

    assert bs.current_assets == 700.0
    assert bs.current_liabilities == 200.0
    assert bs.overdraft_total == 100.0
    assert bs.total_debt == 800.0
    assert bs.equity_total == 1000.0
    assert bs.treasury_total == 300.0
    assert bs.working_capital == 500.0


def test_balance_sheet_imbalance_is_reported_not_corrected() -> None:
    bs = build_balance_sheet(classify_balances({"411001": 1000.0, "101": -600.0}))

    assert bs.assets.total == 1000.0
    assert bs.liabilities_equity.total == 600.0
    assert bs.imbalance == 400.0
    assert not bs.is_balanced
    assert any("not balanced" in w for w in bs.warnings)


def test_balance_sheet_ignores_income_statement_accounts() -> None:
    bs = build_balance_sheet(classify_balances({"601": 100.0, "701": -100.0}))

    assert bs.has_data is False
    assert bs.assets.total == 0.0
    assert bs.warnings == []


def test_empty_balance_sheet() -> None:
    bs = build_balance_sheet(classify_balances({}))

    assert bs.has_data is False
    assert bs.assets.immobilized.items == []
    assert bs.liabilities_equity.total == 0.0


def test_balance_sheet_carries_classification_warnings() -> None:
    bs = build_balance_sheet(classify_balances({"901": 10.0}))

    assert any("901" in w for w in bs.warnings)
