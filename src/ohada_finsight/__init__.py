# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
OHADA FinSight
--------------

A Python financial statements engine for general ledgers kept under the
OHADA chart of accounts (SYSCOHADA). Given dated, account-coded ledger
lines for an accounting period ("exercice"), it derives:

- the balance sheet (bilan), with contra-account netting and
  sign-dependent placement of class 4 and class 5 accounts,
- the income statement (compte de résultat) with its operating,
  financial and extraordinary (HAO) result layers,
- the cash flow statement (tableau des flux de trésorerie), indirect
  method,
- the supporting annexes: depreciation schedule, provisions,
  receivables and payables aging,
- six financial ratios evaluated against configurable thresholds,
- an N vs N-1 comparison of the statements.

OHADA FinSight separates computation (engine), configuration (TOML) and
storage (statements sources, with a bundled SQLite implementation). It
ships no user interface: it is invoked by an application layer.

Version: 0.1.0

Usage:
    from ohada_finsight.pipeline import compute_financial_report
    report = compute_financial_report(source, tenant_id)
"""

__all__ = [
    "accounts",
    "annexes",
    "balance_sheet",
    "cache",
    "cash_flow",
    "comparison",
    "config",
    "db",
    "engine",
    "income_statement",
    "io",
    "mapping",
    "models",
    "periods",
    "pipeline",
    "ratios",
    "sources",
    "views",
]

__version__ = "0.1.0"
