# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Account classification for OHADA FinSight.

This module decides, for every aggregated account balance, which statement
bucket it belongs to. Classification is driven by the leading digits of the
account code only, through a **prefix lookup table** resolved by
longest-prefix match: a rule for '28' always wins over a rule for '2',
whatever the order in which rules were declared.

Each rule (PrefixRule) states:
- the bucket used for a debit-side (positive) balance,
- optionally another bucket used for a credit-side (negative) balance
  (class 4 third-party accounts, class 5 treasury),
- whether the displayed amount is the absolute value (suppliers, 40),
- whether the account is a contra-account (28/29) that reduces its paired
  fixed asset instead of standing alone.

The default table follows the OHADA (SYSCOHADA) chart of accounts. A table
can also be loaded from CSV, the same way statement mappings are.

Sign rules
----------
Balances come in as ``debit - credit``. Debit-nature buckets (assets,
expenses) display the balance as is; credit-nature buckets (equity, debts,
revenue) display ``credit - debit``.

Accounts matching no rule are excluded from every total and reported in
``Classification.unclassified`` / ``Classification.warnings``.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

import pandas as pd

from .accounts import resolve_label

logger = logging.getLogger(__name__)


class Bucket(str, Enum):
    """Statement bucket of a classified balance."""

    FIXED_ASSET = "fixed_asset"
    INVENTORY = "inventory"
    RECEIVABLE = "receivable"
    CASH = "cash"
    EQUITY = "equity"
    FINANCIAL_DEBT = "financial_debt"
    PAYABLE = "payable"
    OVERDRAFT = "overdraft"
    OPERATING_EXPENSE = "operating_expense"
    FINANCIAL_EXPENSE = "financial_expense"
    EXTRAORDINARY_EXPENSE = "extraordinary_expense"
    OPERATING_REVENUE = "operating_revenue"
    FINANCIAL_REVENUE = "financial_revenue"
    EXTRAORDINARY_REVENUE = "extraordinary_revenue"


CREDIT_NATURE_BUCKETS: frozenset[Bucket] = frozenset(
    {
        Bucket.EQUITY,
        Bucket.FINANCIAL_DEBT,
        Bucket.PAYABLE,
        Bucket.OVERDRAFT,
        Bucket.OPERATING_REVENUE,
        Bucket.FINANCIAL_REVENUE,
        Bucket.EXTRAORDINARY_REVENUE,
    }
)

OVERDRAFT_SUFFIX = " (Overdraft)"


@dataclass(frozen=True)
class PrefixRule:
    """Definition of a single classification rule.

    Attributes:
        prefix: Leading digits of the account codes the rule applies to.
        bucket: Bucket for a debit-side (or zero) balance.
        credit_bucket: Optional bucket for a credit-side balance. When
            unset, the sign of the balance does not change the bucket.
        absolute: Display the absolute value of the balance.
        contra: Contra-account reducing its paired fixed asset.
    """

    prefix: str
    bucket: Bucket
    credit_bucket: Optional[Bucket] = None
    absolute: bool = False
    contra: bool = False


@dataclass(frozen=True)
class ClassifiedBalance:
    """An account balance placed in exactly one statement bucket.

    ``net_amount`` is the raw ``debit - credit`` balance; ``amount`` is the
    displayed amount after sign rules and contra netting.
    """

    account_code: str
    label: str
    net_amount: float
    bucket: Bucket
    amount: float
    contra_accounts: tuple[str, ...] = ()


@dataclass(frozen=True)
class Classification:
    """Result of classifying a set of account balances."""

    balances: list[ClassifiedBalance] = field(default_factory=list)
    unclassified: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.balances)

    def by_bucket(self, *buckets: Bucket) -> list[ClassifiedBalance]:
        """Return the balances of the given buckets, sorted by account code."""
        wanted = set(buckets)
        return sorted(
            (b for b in self.balances if b.bucket in wanted),
            key=lambda b: b.account_code,
        )

    def bucket_of(self, account_code: str) -> Optional[Bucket]:
        for b in self.balances:
            if b.account_code == account_code:
                return b.bucket
        return None


def _range_rules(
    first: int, last: int, bucket: Bucket, **kwargs
) -> list[PrefixRule]:
    return [PrefixRule(str(p), bucket, **kwargs) for p in range(first, last + 1)]


def _default_rules() -> list[PrefixRule]:
    rules: list[PrefixRule] = []
    # Class 1: equity (10-15) and financial debts (16-19)
    rules += _range_rules(10, 15, Bucket.EQUITY)
    rules += _range_rules(16, 19, Bucket.FINANCIAL_DEBT)
    # Class 2: fixed assets, 28/29 are contra-accounts
    rules.append(PrefixRule("2", Bucket.FIXED_ASSET))
    rules.append(PrefixRule("28", Bucket.FIXED_ASSET, contra=True))
    rules.append(PrefixRule("29", Bucket.FIXED_ASSET, contra=True))
    # Class 3: inventory
    rules.append(PrefixRule("3", Bucket.INVENTORY))
    # Class 4: suppliers always payable, other third parties by sign
    rules.append(PrefixRule("40", Bucket.PAYABLE, absolute=True))
    rules += _range_rules(
        41, 49, Bucket.RECEIVABLE, credit_bucket=Bucket.PAYABLE
    )
    # Class 5: treasury, overdraft when credit-side
    rules.append(PrefixRule("5", Bucket.CASH, credit_bucket=Bucket.OVERDRAFT))
    # Class 6: expenses
    rules += _range_rules(60, 65, Bucket.OPERATING_EXPENSE)
    rules += _range_rules(66, 67, Bucket.FINANCIAL_EXPENSE)
    rules += _range_rules(68, 69, Bucket.EXTRAORDINARY_EXPENSE)
    # Class 7: revenue
    rules += _range_rules(70, 75, Bucket.OPERATING_REVENUE)
    rules += _range_rules(76, 77, Bucket.FINANCIAL_REVENUE)
    rules += _range_rules(78, 79, Bucket.EXTRAORDINARY_REVENUE)
    # Class 8: HAO
    for p in ("82", "84", "86", "88"):
        rules.append(PrefixRule(p, Bucket.EXTRAORDINARY_REVENUE))
    for p in ("81", "83", "85", "87", "89"):
        rules.append(PrefixRule(p, Bucket.EXTRAORDINARY_EXPENSE))
    return rules


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "y", "x"}


def _to_bucket(value) -> Optional[Bucket]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return Bucket(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown bucket in classification table: {value!r}") from exc


class ClassificationTable:
    """Sorted prefix lookup table (longest-prefix match).

    The table is responsible for:
      - storing PrefixRule entries (one per prefix),
      - finding the rule an account code falls under,
      - turning an account balance into a (bucket, displayed amount) pair.
    """

    def __init__(self, rules: Iterable[PrefixRule]):
        by_prefix: dict[str, PrefixRule] = {}
        for rule in rules:
            prefix = str(rule.prefix).strip()
            if not prefix:
                raise ValueError("Classification rules require a non-empty prefix.")
            if prefix in by_prefix:
                raise ValueError(f"Duplicate prefix in classification table: {prefix}")
            by_prefix[prefix] = rule
        self._by_prefix = by_prefix
        # Longest prefixes first, then lexicographic for a stable order.
        self.rules: list[PrefixRule] = sorted(
            by_prefix.values(), key=lambda r: (-len(r.prefix), r.prefix)
        )
        self._max_len = max((len(p) for p in by_prefix), default=0)

    @classmethod
    def default(cls) -> "ClassificationTable":
        """Return the OHADA classification table."""
        return cls(_default_rules())

    @staticmethod
    def from_csv(path: str) -> "ClassificationTable":
        """Load a table from a CSV file.

        Expected columns: ``prefix, bucket`` and, optionally,
        ``credit_bucket, absolute, contra``. Bucket names are the values of
        :class:`Bucket` (e.g. 'receivable', 'payable').
        """
        df = pd.read_csv(path, dtype=str)
        df.columns = [c.strip().lower() for c in df.columns]
        df = df.fillna("")
        if not {"prefix", "bucket"}.issubset(df.columns):
            raise ValueError(
                "Classification table must contain 'prefix' and 'bucket' columns."
            )

        rules = []
        for _, r in df.iterrows():
            bucket = _to_bucket(r["bucket"])
            if bucket is None:
                raise ValueError(f"Missing bucket for prefix {r['prefix']!r}")
            rules.append(
                PrefixRule(
                    prefix=str(r["prefix"]).strip(),
                    bucket=bucket,
                    credit_bucket=_to_bucket(r.get("credit_bucket", "")),
                    absolute=_to_bool(r.get("absolute", "")),
                    contra=_to_bool(r.get("contra", "")),
                )
            )
        return ClassificationTable(rules)

    def match(self, code: str) -> Optional[PrefixRule]:
        """Return the rule with the longest prefix matching ``code``."""
        s = str(code).strip()
        for i in range(min(len(s), self._max_len), 0, -1):
            rule = self._by_prefix.get(s[:i])
            if rule is not None:
                return rule
        return None

    def classify(self, code: str, net_amount: float) -> Optional[tuple[Bucket, float]]:
        """Return ``(bucket, displayed amount)`` for a non-contra balance.

        Returns None for unknown codes and for contra-accounts (those are
        netted against their paired asset by :func:`classify_balances`).
        """
        rule = self.match(code)
        if rule is None or rule.contra:
            return None
        return apply_rule(rule, net_amount)


def apply_rule(rule: PrefixRule, net_amount: float) -> tuple[Bucket, float]:
    """Return ``(bucket, displayed amount)`` of a balance under ``rule``."""
    bucket = rule.bucket
    if rule.credit_bucket is not None and net_amount < 0:
        bucket = rule.credit_bucket

    if rule.absolute:
        amount = abs(net_amount)
    elif bucket in CREDIT_NATURE_BUCKETS:
        amount = -net_amount
    else:
        amount = net_amount
    return bucket, round(amount + 0.0, 2)


def contra_base_key(contra_code: str) -> str:
    """Return the base asset key of a contra-account ('2811' -> '211')."""
    s = str(contra_code).strip()
    return "2" + s[2:]


def _find_contra_target(contra_code: str, asset_codes: list[str]) -> Optional[str]:
    """Find the fixed asset reduced by a contra-account.

    Progressively shorter prefixes of the base key are tried, down to two
    digits; on ties the lowest account code wins.
    """
    key = contra_base_key(contra_code)
    for i in range(len(key), 1, -1):
        prefix = key[:i]
        matches = [c for c in asset_codes if c.startswith(prefix)]
        if matches:
            return min(matches)
    return None


BalancesInput = Union[Mapping[str, float], pd.DataFrame]


def _balances_items(balances: BalancesInput) -> list[tuple[str, float]]:
    if isinstance(balances, pd.DataFrame):
        if balances.empty:
            return []
        pairs = zip(balances["account_code"], balances["balance"])
    else:
        pairs = balances.items()
    return sorted((str(c).strip(), float(v)) for c, v in pairs)


def classify_balances(
    balances: BalancesInput,
    labels: Optional[Mapping[str, str]] = None,
    table: Optional[ClassificationTable] = None,
) -> Classification:
    """Classify aggregated account balances.

    Args:
        balances: Either ``{account_code: debit - credit}`` or the frame
            returned by :func:`ohada_finsight.engine.aggregate_ledger`.
        labels: Optional ``{code: label}`` chart of accounts.
        table: Classification table; the OHADA default when omitted.

    Returns:
        A Classification holding one ClassifiedBalance per classified
        account (contra-accounts are folded into their paired asset), the
        list of unclassified codes and human-readable warnings.
    """
    table = table or ClassificationTable.default()

    classified: dict[str, ClassifiedBalance] = {}
    contras: list[tuple[str, float]] = []
    unclassified: list[str] = []
    warnings: list[str] = []

    for code, net in _balances_items(balances):
        rule = table.match(code)
        if rule is None:
            unclassified.append(code)
            msg = f"Unclassified account {code} (balance {net:.2f}) excluded from totals"
            warnings.append(msg)
            logger.warning(msg)
            continue

        if rule.contra:
            contras.append((code, net))
            continue

        bucket, amount = apply_rule(rule, net)
        label = resolve_label(code, labels)
        if bucket == Bucket.OVERDRAFT:
            label += OVERDRAFT_SUFFIX

        classified[code] = ClassifiedBalance(
            account_code=code,
            label=label,
            net_amount=round(net, 2),
            bucket=bucket,
            amount=amount,
        )

    # Contra netting: the absolute balance reduces the paired fixed asset.
    asset_codes = sorted(
        c for c, b in classified.items() if b.bucket == Bucket.FIXED_ASSET
    )
    for code, net in contras:
        target = _find_contra_target(code, asset_codes)
        if target is None:
            msg = (
                f"Contra-account {code} (balance {net:.2f}) has no matching "
                "fixed asset and was excluded from totals"
            )
            warnings.append(msg)
            logger.warning(msg)
            continue

        base = classified[target]
        classified[target] = replace(
            base,
            amount=round(base.amount - abs(net), 2),
            contra_accounts=base.contra_accounts + (code,),
        )
        logger.debug("Contra-account %s netted against %s", code, target)

    return Classification(
        balances=sorted(classified.values(), key=lambda b: b.account_code),
        unclassified=unclassified,
        warnings=warnings,
    )
