# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for OHADA FinSight.

This module is responsible for:
- loading the engine configuration from a TOML file,
- falling back to the built-in OHADA defaults for every missing setting,
- exposing typed dataclasses used by the rest of the engine.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tomllib  # Python 3.11+

from .annexes import DEFAULT_PROVISION_PREFIXES
from .cash_flow import CashFlowSettings
from .db import DatabaseConfig
from .models import RatioThresholds
from .ratios import DEFAULT_RULES_FILE

DEFAULT_DATABASE_PATH = "data/db/ohada_finsight.sqlite"


@dataclass(frozen=True)
class ClassificationConfig:
    """
    Account classification inputs.

    Attributes:
        table: Optional CSV prefix table replacing the built-in OHADA table.
        chart_of_accounts: Optional chart of accounts CSV used for labels
            when the statements source does not provide accounts.
    """

    table: Optional[Path] = None
    chart_of_accounts: Optional[Path] = None


@dataclass(frozen=True)
class AnnexesConfig:
    provision_prefixes: tuple[str, ...] = DEFAULT_PROVISION_PREFIXES


@dataclass(frozen=True)
class RatiosConfig:
    """
    Ratio analysis options.

    Attributes:
        rules_file: TOML file defining the [ratios.*] rules.
        default_thresholds: Thresholds used when the tenant has none.
    """

    rules_file: Path = DEFAULT_RULES_FILE
    default_thresholds: RatioThresholds = field(default_factory=RatioThresholds)


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine-wide configuration for OHADA FinSight.

    This aggregates:
    - the classification inputs (prefix table, chart of accounts),
    - the cash flow estimator settings,
    - the annexes settings,
    - the ratio rules and default thresholds,
    - the database configuration of the bundled SQLite source.
    """

    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    cash_flow: CashFlowSettings = field(default_factory=CashFlowSettings)
    annexes: AnnexesConfig = field(default_factory=AnnexesConfig)
    ratios: RatiosConfig = field(default_factory=RatiosConfig)
    database: DatabaseConfig = field(
        default_factory=lambda: DatabaseConfig(
            engine="sqlite", path=Path(DEFAULT_DATABASE_PATH).resolve()
        )
    )


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, Mapping):
        section = {}
    return section


def _parse_prefixes(
    section: Mapping[str, Any], key: str, default: tuple[str, ...]
) -> tuple[str, ...]:
    """
    Read a list of account prefixes.

    Raises:
        ValueError: if the value is not a list of codes.
    """
    raw = section.get(key)
    if raw is None:
        return default
    if not isinstance(raw, list) or not all(isinstance(p, (str, int)) for p in raw):
        raise ValueError(f"Invalid value for '{key}': expected a list of prefixes.")
    prefixes = tuple(str(p).strip() for p in raw)
    if any(not p for p in prefixes):
        raise ValueError(f"Invalid value for '{key}': empty prefix.")
    return prefixes


def _parse_float(section: Mapping[str, Any], key: str, default: float) -> float:
    raw = section.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool):
        raise ValueError(f"Invalid value for '{key}': expected a number.")
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for '{key}': expected a number.") from exc


def _parse_cash_flow(section: Mapping[str, Any]) -> CashFlowSettings:
    defaults = CashFlowSettings()
    ratio = _parse_float(
        section,
        "working_capital_fallback_ratio",
        defaults.working_capital_fallback_ratio,
    )
    if ratio < 0:
        raise ValueError(
            "Invalid value for 'cash_flow.working_capital_fallback_ratio': "
            "expected a non-negative number."
        )

    return CashFlowSettings(
        depreciation_charge_prefixes=_parse_prefixes(
            section,
            "depreciation_charge_prefixes",
            defaults.depreciation_charge_prefixes,
        ),
        fixed_asset_prefixes=_parse_prefixes(
            section, "fixed_asset_prefixes", defaults.fixed_asset_prefixes
        ),
        contra_asset_prefixes=_parse_prefixes(
            section, "contra_asset_prefixes", defaults.contra_asset_prefixes
        ),
        disposal_proceeds_prefixes=_parse_prefixes(
            section, "disposal_proceeds_prefixes", defaults.disposal_proceeds_prefixes
        ),
        financial_debt_prefixes=_parse_prefixes(
            section, "financial_debt_prefixes", defaults.financial_debt_prefixes
        ),
        dividend_payable_prefixes=_parse_prefixes(
            section, "dividend_payable_prefixes", defaults.dividend_payable_prefixes
        ),
        working_capital_fallback_ratio=ratio,
    )


def _parse_thresholds(section: Mapping[str, Any]) -> RatioThresholds:
    defaults = RatioThresholds()
    return RatioThresholds(
        liquidity=_parse_float(section, "liquidity", defaults.liquidity),
        leverage=_parse_float(section, "leverage", defaults.leverage),
        autonomy=_parse_float(section, "autonomy", defaults.autonomy),
        operating_margin=_parse_float(
            section, "operating_margin", defaults.operating_margin
        ),
        net_margin=_parse_float(section, "net_margin", defaults.net_margin),
        return_on_equity=_parse_float(
            section, "return_on_equity", defaults.return_on_equity
        ),
    )


def load_engine_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load the OHADA FinSight engine configuration from a TOML file.

    Expected top-level sections in the TOML file (all optional)
    ------------------------------------------------------------
    [classification]
        `table`: CSV prefix table overriding the built-in OHADA table.
        `chart_of_accounts`: chart of accounts CSV used for labels.

    [cash_flow]
        Account prefixes used by the cash flow estimator and the
        `working_capital_fallback_ratio` heuristic.

    [annexes]
        `provision_prefixes`: provision account prefixes.

    [ratios]
        `rules_file`: TOML ratio rules (built-in OHADA rules by default).
        [ratios.default_thresholds]: thresholds used when the tenant has
        none configured.

    [database]
        Database engine and SQLite file path.

    Notes
    -----
    - All file paths in the TOML are resolved relative to the directory of
      the TOML file itself.

    Parameters
    ----------
    config_path :
        Path to the TOML configuration file, or None for the built-in
        defaults.

    Returns
    -------
    EngineConfig
        Parsed and validated engine configuration.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    ValueError
        If the file cannot be parsed or holds invalid values.
    """
    if config_path is None:
        return EngineConfig()

    config_file = Path(config_path).resolve()
    raw = _load_toml(config_file)
    base_dir = config_file.parent

    def _resolve_optional(rel: Optional[str]) -> Optional[Path]:
        if not rel:
            return None
        return (base_dir / str(rel)).resolve()

    # 1) Classification
    classification_section = _section(raw, "classification")
    classification = ClassificationConfig(
        table=_resolve_optional(classification_section.get("table")),
        chart_of_accounts=_resolve_optional(
            classification_section.get("chart_of_accounts")
        ),
    )

    # 2) Cash flow
    cash_flow = _parse_cash_flow(_section(raw, "cash_flow"))

    # 3) Annexes
    annexes_section = _section(raw, "annexes")
    annexes = AnnexesConfig(
        provision_prefixes=_parse_prefixes(
            annexes_section, "provision_prefixes", DEFAULT_PROVISION_PREFIXES
        )
    )

    # 4) Ratios
    ratios_section = _section(raw, "ratios")
    rules_file = _resolve_optional(ratios_section.get("rules_file"))
    ratios = RatiosConfig(
        rules_file=rules_file or DEFAULT_RULES_FILE,
        default_thresholds=_parse_thresholds(
            _section(ratios_section, "default_thresholds")
        ),
    )

    # 5) Database
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or DEFAULT_DATABASE_PATH
    database = DatabaseConfig(
        engine=db_engine, path=(base_dir / str(db_path_raw)).resolve()
    )

    return EngineConfig(
        classification=classification,
        cash_flow=cash_flow,
        annexes=annexes,
        ratios=ratios,
        database=database,
    )
