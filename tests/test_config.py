from pathlib import Path

import pytest

from ohada_finsight.config import load_engine_config
from ohada_finsight.models import RatioThresholds
from ohada_finsight.ratios import DEFAULT_RULES_FILE


def test_defaults_without_config_file() -> None:
    cfg = load_engine_config()

    assert cfg.classification.table is None
    assert cfg.cash_flow.working_capital_fallback_ratio == 1.0
    assert cfg.annexes.provision_prefixes == ("19", "39", "49", "59")
    assert cfg.ratios.rules_file == DEFAULT_RULES_FILE
    assert cfg.ratios.default_thresholds == RatioThresholds()
    assert cfg.database.engine == "sqlite"


def test_load_engine_config_resolves_relative_paths(tmp_path: Path) -> None:
    config_file = tmp_path / "finsight.toml"
    config_file.write_text(
        """
[classification]
table = "tables/ohada.csv"
chart_of_accounts = "charts/accounts.csv"

[cash_flow]
depreciation_charge_prefixes = ["68", "69"]
working_capital_fallback_ratio = 0.5

[annexes]
provision_prefixes = ["49"]

[ratios]
rules_file = "rules/ratios.toml"

[ratios.default_thresholds]
liquidity = 2
leverage = 50.0

[database]
path = "db/test.sqlite"
""",
        encoding="utf-8",
    )

    cfg = load_engine_config(str(config_file))

    assert cfg.classification.table == (tmp_path / "tables/ohada.csv").resolve()
    assert cfg.classification.chart_of_accounts == (
        tmp_path / "charts/accounts.csv"
    ).resolve()
    assert cfg.cash_flow.depreciation_charge_prefixes == ("68", "69")
    assert cfg.cash_flow.fixed_asset_prefixes == ("2",)
    assert cfg.cash_flow.working_capital_fallback_ratio == 0.5
    assert cfg.annexes.provision_prefixes == ("49",)
    assert cfg.ratios.rules_file == (tmp_path / "rules/ratios.toml").resolve()
    assert cfg.ratios.default_thresholds.liquidity == 2.0
    assert cfg.ratios.default_thresholds.leverage == 50.0
    assert cfg.ratios.default_thresholds.autonomy == 40.0
    assert cfg.database.path == (tmp_path / "db/test.sqlite").resolve()


def test_empty_config_file_uses_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "finsight.toml"
    config_file.write_text("", encoding="utf-8")

    cfg = load_engine_config(str(config_file))

    assert cfg.ratios.rules_file == DEFAULT_RULES_FILE
    assert cfg.database.path == (tmp_path / "data/db/ohada_finsight.sqlite").resolve()


@pytest.mark.parametrize(
    "content",
    [
        "[cash_flow]\nworking_capital_fallback_ratio = -1\n",
        "[cash_flow]\nworking_capital_fallback_ratio = true\n",
        '[cash_flow]\nfixed_asset_prefixes = "2"\n',
        '[annexes]\nprovision_prefixes = ["49", ""]\n',
        '[ratios.default_thresholds]\nliquidity = "high"\n',
    ],
)
def test_invalid_values_are_rejected(tmp_path: Path, content: str) -> None:
    config_file = tmp_path / "finsight.toml"
    config_file.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        load_engine_config(str(config_file))


def test_missing_or_malformed_config_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_engine_config(str(tmp_path / "missing.toml"))

    bad = tmp_path / "bad.toml"
    bad.write_text("[cash_flow\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_engine_config(str(bad))
