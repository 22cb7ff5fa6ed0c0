# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Financial ratios computed from the balance sheet and the income statement.

1. Measures
   --------
   The statements are first reduced to a flat dictionary of measures by:
       build_ratio_measures(balance_sheet, income_statement)

   Available measures:
       current_assets, current_liabilities, total_debt,
       total_liabilities_equity, equity, result_operating, net_result,
       sales_revenue

2. Ratio rules
   -----------
   Ratios are defined in a TOML rules file under `[ratios.<key>]`
   sections (see data/ratios_ohada.toml for the built-in rules). Each
   ratio specifies:
       - a human-readable label,
       - a formula string over the measures,
       - a unit (ratio, percent),
       - the key of its threshold in RatioThresholds,
       - a direction: ">=" (higher is better) or "<=" (lower is better),
       - the status reported when the threshold is met / missed.

   Formulas are evaluated by a restricted AST walker: numeric literals,
   measure names, + - * / % ** and unary minus. A division by zero
   evaluates to 0 so that a ratio is never infinite or NaN.

3. Statuses
   --------
   The function:
       analyze_ratios(balance_sheet, income_statement, thresholds, rules_file)
   returns a RatioReport mapping each ratio key to a Ratio with its value,
   threshold and status ("good", "normal" or "attention"). The report also
   lists the strengths (status "good") and the attention points (status
   "attention").
"""

import ast
import logging
import operator
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union

import tomllib  # Python 3.11+

from .balance_sheet import BalanceSheet
from .income_statement import IncomeStatement
from .models import RatioThresholds

logger = logging.getLogger(__name__)

DEFAULT_RULES_FILE = Path(__file__).resolve().parent / "data" / "ratios_ohada.toml"

STATUS_GOOD = "good"
STATUS_NORMAL = "normal"
STATUS_ATTENTION = "attention"
VALID_STATUSES = (STATUS_GOOD, STATUS_NORMAL, STATUS_ATTENTION)
VALID_DIRECTIONS = (">=", "<=")


@dataclass(frozen=True)
class Ratio:
    """
    Computed ratio with its threshold evaluation.

    Attributes:
        name: Internal identifier (e.g. 'liquidity').
        label: Human-readable label for display.
        value: Numeric value, or None if the formula could not be evaluated.
        threshold: Threshold the value is compared against.
        status: 'good', 'normal' or 'attention' (None when value is None).
        direction: '>=' or '<='.
        unit: Unit hint ('ratio', 'percent').
    """

    name: str
    label: str
    value: Optional[float]
    threshold: float
    status: Optional[str]
    direction: str
    unit: str


@dataclass(frozen=True)
class RatioRule:
    key: str
    label: str
    formula: str
    unit: str
    threshold: str
    direction: str
    status_met: str
    status_missed: str


@dataclass(frozen=True)
class RatioReport(Mapping):
    """Read-only mapping of ratio name to Ratio, in rules file order."""

    ratios: dict[str, Ratio] = field(default_factory=dict)
    has_data: bool = False

    def __getitem__(self, key: str) -> Ratio:
        return self.ratios[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.ratios)

    def __len__(self) -> int:
        return len(self.ratios)

    def strengths(self) -> list[Ratio]:
        return [r for r in self.ratios.values() if r.status == STATUS_GOOD]

    def attention_points(self) -> list[Ratio]:
        return [r for r in self.ratios.values() if r.status == STATUS_ATTENTION]


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Ratio rules file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML ratio rules file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _safe_div(left: float, right: float) -> float:
    return 0.0 if right == 0 else left / right


def _safe_mod(left: float, right: float) -> float:
    return 0.0 if right == 0 else left % right


_ALLOWED_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: _safe_div,
    ast.USub: operator.neg,
    ast.Pow: operator.pow,
    ast.Mod: _safe_mod,
}


def _safe_eval_expr(expr: str, variables: Mapping[str, float]) -> float:
    """
    Safely evaluate a simple arithmetic expression using the given variables.

    Supported:
        - numeric literals
        - variable names (keys from `variables`)
        - binary operations: +, -, *, /, %, **
        - unary minus
        - parentheses

    Division (and modulo) by zero evaluate to 0.

    Args:
        expr: Expression string (e.g. "current_assets / current_liabilities").
        variables: Mapping of variable names to float values.

    Returns:
        The evaluated float value.

    Raises:
        ValueError: if the expression contains unsupported constructs.
    """
    try:
        tree = ast.parse(expr, mode="eval")
    except SyntaxError as exc:
        raise ValueError(f"Invalid expression syntax: {expr!r}") from exc

    def _eval(node: ast.AST) -> float:
        if isinstance(node, ast.Expression):
            return _eval(node.body)

        if isinstance(node, ast.Constant):
            if isinstance(node.value, (int, float)) and not isinstance(
                node.value, bool
            ):
                return float(node.value)
            raise ValueError(f"Unsupported constant in expression: {node.value!r}")

        if isinstance(node, ast.Name):
            name = node.id
            if name not in variables:
                raise ValueError(f"Unknown variable in expression: {name!r}")
            return float(variables[name])

        if isinstance(node, ast.BinOp):
            left = _eval(node.left)
            right = _eval(node.right)
            op_type = type(node.op)
            if op_type not in _ALLOWED_OPERATORS:
                raise ValueError(f"Unsupported operator in expression: {op_type}")
            op_func = _ALLOWED_OPERATORS[op_type]
            return float(op_func(left, right))

        if isinstance(node, ast.UnaryOp):
            if type(node.op) not in _ALLOWED_OPERATORS:
                raise ValueError(f"Unsupported unary operator: {node.op!r}")
            operand = _eval(node.operand)
            op_func = _ALLOWED_OPERATORS[type(node.op)]
            return float(op_func(operand))

        raise ValueError(f"Unsupported expression node: {type(node).__name__}")

    return _eval(tree)


def load_ratio_rules(rules_file: Optional[Union[str, Path]] = None) -> list[RatioRule]:
    """
    Load ratio rules from a TOML file (built-in OHADA rules by default).

    Parsed rules are kept in memory per file and modification time, so
    repeated reports do not re-read an unchanged file.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the file is malformed, or a rule has an invalid
            direction or status.
    """
    path = Path(rules_file) if rules_file is not None else DEFAULT_RULES_FILE
    path = path.resolve()
    if not path.is_file():
        raise FileNotFoundError(f"Ratio rules file not found: {path}")
    return list(_parse_ratio_rules(path, path.stat().st_mtime_ns))


@lru_cache(maxsize=16)
def _parse_ratio_rules(path: Path, mtime_ns: int) -> tuple[RatioRule, ...]:
    data = _load_toml(path)

    ratios_section = data.get("ratios") or {}
    if not isinstance(ratios_section, Mapping):
        ratios_section = {}

    rules: list[RatioRule] = []
    for key, cfg in ratios_section.items():
        if not isinstance(cfg, Mapping):
            continue

        key_str = str(key)
        direction = str(cfg.get("direction", ">="))
        if direction not in VALID_DIRECTIONS:
            raise ValueError(
                f"Invalid direction {direction!r} for ratio {key_str!r} in {path}"
            )

        status_met = str(cfg.get("status_met", STATUS_GOOD))
        status_missed = str(cfg.get("status_missed", STATUS_ATTENTION))
        for status in (status_met, status_missed):
            if status not in VALID_STATUSES:
                raise ValueError(
                    f"Invalid status {status!r} for ratio {key_str!r} in {path}"
                )

        rules.append(
            RatioRule(
                key=key_str,
                label=str(cfg.get("label", key_str)),
                formula=str(cfg.get("formula") or ""),
                unit=str(cfg.get("unit", "ratio")),
                threshold=str(cfg.get("threshold", key_str)),
                direction=direction,
                status_met=status_met,
                status_missed=status_missed,
            )
        )

    return tuple(rules)


def build_ratio_measures(
    balance_sheet: BalanceSheet, income_statement: IncomeStatement
) -> dict[str, float]:
    """Reduce the statements to the measures referenced by ratio formulas."""
    return {
        "current_assets": balance_sheet.current_assets,
        "current_liabilities": balance_sheet.current_liabilities,
        "total_debt": balance_sheet.total_debt,
        "total_liabilities_equity": balance_sheet.liabilities_equity.total,
        "equity": balance_sheet.equity_total,
        "result_operating": income_statement.result_operating,
        "net_result": income_statement.net_result,
        "sales_revenue": income_statement.sales_revenue,
    }


def evaluate_status(value: float, threshold: float, rule: RatioRule) -> str:
    """Return the status of ``value`` against ``threshold`` for ``rule``."""
    if rule.direction == ">=":
        met = value >= threshold
    else:
        met = value <= threshold
    return rule.status_met if met else rule.status_missed


def _threshold_for(rule: RatioRule, thresholds: RatioThresholds) -> float:
    try:
        return float(thresholds.get(rule.threshold))
    except KeyError:
        logger.warning(
            "Unknown threshold %r for ratio %r, using 0", rule.threshold, rule.key
        )
        return 0.0


def analyze_ratios(
    balance_sheet: BalanceSheet,
    income_statement: IncomeStatement,
    thresholds: Optional[RatioThresholds] = None,
    rules_file: Optional[Union[str, Path]] = None,
) -> RatioReport:
    """
    Compute every ratio and compare it with its threshold.

    Args:
        balance_sheet: Balance sheet of the period.
        income_statement: Income statement of the period.
        thresholds: Tenant thresholds; documented defaults when None.
        rules_file: TOML rules file; the built-in OHADA rules when None.

    Returns:
        A RatioReport. Ratios whose formula cannot be evaluated (unknown
        measure, unsupported syntax) have value=None and status=None.
    """
    thresholds = thresholds or RatioThresholds()
    measures = build_ratio_measures(balance_sheet, income_statement)

    ratios: dict[str, Ratio] = {}
    for rule in load_ratio_rules(rules_file):
        threshold = _threshold_for(rule, thresholds)

        value: Optional[float]
        status: Optional[str]
        try:
            value = round(_safe_eval_expr(rule.formula, measures), 2)
            status = evaluate_status(value, threshold, rule)
        except Exception:  # noqa: BLE001
            logger.warning(
                "Ratio %r could not be evaluated (formula %r)", rule.key, rule.formula
            )
            value = None
            status = None

        ratios[rule.key] = Ratio(
            name=rule.key,
            label=rule.label,
            value=value,
            threshold=threshold,
            status=status,
            direction=rule.direction,
            unit=rule.unit,
        )

    return RatioReport(
        ratios=ratios,
        has_data=balance_sheet.has_data or income_statement.has_data,
    )
