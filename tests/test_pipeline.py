from datetime import date
from pathlib import Path

from ohada_finsight.cache import StatementCache
from ohada_finsight.config import ClassificationConfig, EngineConfig
from ohada_finsight.models import (
    Account,
    Exercice,
    ExerciceStatus,
    FixedAssetRecord,
    InvoiceRecord,
    LedgerLine,
    RatioThresholds,
    SaleRecord,
)
from ohada_finsight.pipeline import compute_financial_report
from ohada_finsight.sources import InMemoryStatementsSource

TODAY = date(2025, 6, 30)


def _exercice(year: int, status: ExerciceStatus) -> Exercice:
    return Exercice(
        id=str(year),
        label=f"Exercice {year}",
        date_start=date(year, 1, 1),
        date_end=date(year, 12, 31),
        status=status,
        year=year,
    )


def _sale(amount: float, day: date, entry_id: str) -> list[LedgerLine]:
    return [
        LedgerLine("411001", amount, 0.0, day, entry_id),
        LedgerLine("701001", 0.0, amount, day, entry_id),
    ]


def _source(**kwargs) -> InMemoryStatementsSource:
    return InMemoryStatementsSource(
        ledger_lines=_sale(1000.0, date(2025, 3, 1), "E1"),
        exercices=[_exercice(2025, ExerciceStatus.OPEN)],
        **kwargs,
    )


def test_single_sale_end_to_end() -> None:
    report = compute_financial_report(_source(), "t1", today=TODAY)

    assert report.errors == {}
    assert report.has_data is True
    assert report.exercice.id == "2025"
    assert report.prior_exercice is None

    receivables = report.balance_sheet.assets.current.items
    assert [it.code for it in receivables] == ["411001"]
    assert receivables[0].amount_current_period == 1000.0
    assert receivables[0].label == "Clients et comptes rattachés"

    sales = report.income_statement.revenue.operating.items
    assert sales[0].label == "Ventes"
    assert report.income_statement.net_result == 1000.0
    assert report.income_statement.sales_revenue == 1000.0

    # The net result is not carried into equity: the gap is reported.
    assert report.balance_sheet.imbalance == 1000.0
    assert any("not balanced" in w for w in report.warnings)
    assert report.cash_flow.working_capital_estimated is True

    assert report.ratios["liquidity"].value == 0.0
    assert report.ratios["net_margin"].value == 100.0
    assert report.ratios["net_margin"].status == "good"


def test_prior_exercice_is_compared() -> None:
    source = _source()
    source.exercices.append(_exercice(2024, ExerciceStatus.CLOSED))
    source.ledger_lines.extend(_sale(400.0, date(2024, 5, 1), "E0"))

    report = compute_financial_report(source, "t1", today=TODAY)

    assert report.prior_exercice.id == "2024"
    sale = report.income_statement.revenue.operating.items[0]
    assert sale.amount_current_period == 1000.0
    assert sale.amount_prior_period == 400.0
    assert sale.variation == 600.0
    assert sale.variation_pct == 150.0
    assert report.balance_sheet.assets.total_prior_period == 400.0
    assert report.cash_flow.working_capital_estimated is False


def test_explicit_exercice_selection() -> None:
    source = _source()
    source.exercices.append(_exercice(2024, ExerciceStatus.CLOSED))
    source.ledger_lines.extend(_sale(400.0, date(2024, 5, 1), "E0"))

    report = compute_financial_report(source, "t1", "2024", today=TODAY)

    assert report.exercice.id == "2024"
    assert report.income_statement.net_result == 400.0
    assert report.prior_exercice is None


def test_tenant_data_feeds_labels_levy_and_thresholds() -> None:
    source = _source(
        accounts=[Account("411001", "Client Alpha")],
        sales=[SaleRecord("V1", date(2025, 3, 1), 1000.0, 25.0)],
        regional_thresholds=RatioThresholds(net_margin=150.0),
    )

    report = compute_financial_report(source, "t1", today=TODAY)

    assert report.balance_sheet.assets.current.items[0].label == "Client Alpha"
    assert report.income_statement.additional_levy == 25.0
    assert report.income_statement.net_result == 1000.0
    assert report.ratios["net_margin"].threshold == 150.0
    assert report.ratios["net_margin"].status == "normal"


def test_annexes_are_part_of_the_report() -> None:
    source = _source(
        fixed_assets=[
            FixedAssetRecord("A1", "Ordinateur", "2441", date(2024, 6, 30), 1000.0, 25.0)
        ],
        receivable_invoices=[
            InvoiceRecord("F1", "Client A", 1000.0, 0.0, date(2025, 5, 30))
        ],
    )

    report = compute_financial_report(source, "t1", today=TODAY)

    assert report.annexes.depreciation_schedule.lines[0].period_charge == 250.0
    aging = report.annexes.receivables_aging
    assert aging.items[0].days_overdue == 31
    assert aging.totals_by_bucket["d30_60"] == 1000.0
    assert aging.recovery_rate == 0.0


def test_no_exercice() -> None:
    report = compute_financial_report(InMemoryStatementsSource(), "t1", today=TODAY)

    assert report.exercice is None
    assert report.has_data is False
    assert report.warnings == ["No exercice found for tenant t1"]
    assert report.errors == {}


def test_unknown_exercice() -> None:
    report = compute_financial_report(_source(), "t1", "1999", today=TODAY)

    assert report.exercice is None
    assert report.warnings == ["Exercice 1999 not found for tenant t1"]


def test_unclassified_accounts_are_reported() -> None:
    source = _source()
    source.ledger_lines.extend(
        [
            LedgerLine("901", 10.0, 0.0, date(2025, 4, 1), "E2"),
            LedgerLine("521", 0.0, 10.0, date(2025, 4, 1), "E2"),
        ]
    )

    report = compute_financial_report(source, "t1", today=TODAY)

    assert report.unclassified_accounts == ["901"]
    assert any("901" in w for w in report.warnings)


class _BrokenAssetsSource(InMemoryStatementsSource):
    def fetch_fixed_assets(self, tenant_id):
        raise RuntimeError("asset register offline")


class _BrokenLedgerSource(InMemoryStatementsSource):
    def fetch_ledger_lines(self, tenant_id, date_start, date_end):
        raise ConnectionError("ledger unavailable")


class _BrokenExercicesSource(InMemoryStatementsSource):
    def fetch_exercices(self, tenant_id):
        raise ConnectionError("exercices unavailable")


def test_failing_annex_source_is_isolated() -> None:
    source = _BrokenAssetsSource(
        ledger_lines=_sale(1000.0, date(2025, 3, 1), "E1"),
        exercices=[_exercice(2025, ExerciceStatus.OPEN)],
    )

    report = compute_financial_report(source, "t1", today=TODAY)

    assert report.errors == {
        "annexes.depreciation_schedule": "RuntimeError: asset register offline"
    }
    assert report.balance_sheet.has_data is True
    assert report.income_statement.net_result == 1000.0
    assert report.annexes.depreciation_schedule.lines == []


def test_failing_ledger_never_raises() -> None:
    source = _BrokenLedgerSource(exercices=[_exercice(2025, ExerciceStatus.OPEN)])

    report = compute_financial_report(source, "t1", today=TODAY)

    assert "ledger" in report.errors
    assert "annexes.provisions" in report.errors
    assert report.balance_sheet.has_data is False
    assert report.has_data is False
    assert report.cash_flow.net_change == 0.0


def test_failing_exercices_source_never_raises() -> None:
    report = compute_financial_report(_BrokenExercicesSource(), "t1", today=TODAY)

    assert report.exercice is None
    assert "exercices" in report.errors


def test_missing_classification_table_falls_back_to_default(tmp_path: Path) -> None:
    config = EngineConfig(
        classification=ClassificationConfig(table=tmp_path / "missing.csv")
    )

    report = compute_financial_report(_source(), "t1", config=config, today=TODAY)

    assert "classification_table" in report.errors
    assert report.income_statement.net_result == 1000.0


def test_recomputation_is_idempotent() -> None:
    source = _source()

    first = compute_financial_report(source, "t1", today=TODAY)
    second = compute_financial_report(source, "t1", today=TODAY)

    assert first == second


def test_cache_serves_report_until_invalidated() -> None:
    source = _source()
    cache = StatementCache()

    first = compute_financial_report(source, "t1", cache=cache, today=TODAY)
    source.ledger_lines.extend(_sale(500.0, date(2025, 4, 1), "E2"))
    cached = compute_financial_report(source, "t1", cache=cache, today=TODAY)

    assert cached is first

    cache.invalidate("t1")
    fresh = compute_financial_report(source, "t1", cache=cache, today=TODAY)

    assert fresh.income_statement.net_result == 1500.0


def test_customer_switching_side_is_listed_once() -> None:
    source = InMemoryStatementsSource(
        ledger_lines=[
            LedgerLine("411001", 0.0, 200.0, date(2024, 6, 1), "E0"),
            LedgerLine("521", 200.0, 0.0, date(2024, 6, 1), "E0"),
            *_sale(500.0, date(2025, 3, 1), "E1"),
        ],
        exercices=[
            _exercice(2024, ExerciceStatus.CLOSED),
            _exercice(2025, ExerciceStatus.OPEN),
        ],
    )

    report = compute_financial_report(source, "t1", today=TODAY)

    current_codes = report.balance_sheet.assets.current.codes()
    debt_codes = report.balance_sheet.liabilities_equity.debt.codes()
    assert current_codes == ["411001"]
    assert "411001" not in debt_codes
    assert report.balance_sheet.assets.current.items[0].amount_prior_period == -200.0


class _FlakyAssetsSource(InMemoryStatementsSource):
    calls = 0

    def fetch_fixed_assets(self, tenant_id):
        self.calls += 1
        if self.calls == 1:
            raise ConnectionError("asset register down")
        return super().fetch_fixed_assets(tenant_id)


def test_report_with_errors_is_not_cached() -> None:
    source = _FlakyAssetsSource(
        ledger_lines=_sale(1000.0, date(2025, 3, 1), "E1"),
        exercices=[_exercice(2025, ExerciceStatus.OPEN)],
        fixed_assets=[
            FixedAssetRecord("A1", "Ordinateur", "2441", date(2024, 6, 30), 1000.0, 25.0)
        ],
    )
    cache = StatementCache()

    failed = compute_financial_report(source, "t1", cache=cache, today=TODAY)
    assert "annexes.depreciation_schedule" in failed.errors
    assert len(cache) == 0

    recovered = compute_financial_report(source, "t1", cache=cache, today=TODAY)
    assert recovered.errors == {}
    assert len(recovered.annexes.depreciation_schedule.lines) == 1
    assert compute_financial_report(source, "t1", cache=cache, today=TODAY) is recovered
