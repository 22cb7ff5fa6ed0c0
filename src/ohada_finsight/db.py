# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
SQLite statements source for OHADA FinSight.

This module is the reference implementation of the storage collaborator
contract (see sources.py). It is responsible for:

- Initializing the database schema (idempotent).
- Storing, per tenant, the ledger lines, exercices, chart of accounts,
  fixed assets, receivable invoices, payable receptions, sales and
  regional ratio thresholds.
- Serving them back to the engine through ``SqliteStatementsSource``.
- Notifying change listeners (typically ``StatementCache.invalidate``)
  after every write, so that cached reports never outlive their data.

------------------------------------------------------------------------------
Schema Overview
------------------------------------------------------------------------------

Every table carries a ``tenant_id`` column; a tenant never sees the rows of
another tenant.

1) exercices
   - tenant_id, id (TEXT, PRIMARY KEY together)
   - label, date_start, date_end (ISO dates), status ("Open" | "Closed"),
     year

2) accounts
   - tenant_id, code (PRIMARY KEY together), label

3) ledger_lines
   - id             INTEGER PRIMARY KEY AUTOINCREMENT
   - tenant_id      TEXT    NOT NULL
   - entry_date     TEXT    NOT NULL  -- ISO date "YYYY-MM-DD"
   - account_code   TEXT    NOT NULL
   - debit_cents    INTEGER NOT NULL
   - credit_cents   INTEGER NOT NULL
   - entry_id       TEXT
   - label          TEXT
   - imported_at    TEXT    NOT NULL  -- UTC timestamp

4) fixed_assets, receivable_invoices, payable_receptions, sales
   One row per source record of the annexes / additional levy.

5) regional_thresholds
   One row per tenant with the six ratio thresholds.

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- Amounts are stored as integer cents (``round(amount * 100)``) and read
  back as ``cents / 100``.
- Dates are stored as ISO-8601 text, timestamps in UTC.
- Foreign key enforcement is explicitly enabled.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path

import pandas as pd

from .models import (
    Account,
    Exercice,
    ExerciceStatus,
    FixedAssetRecord,
    InvoiceRecord,
    LedgerLine,
    RatioThresholds,
    ReceptionRecord,
    SaleRecord,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], object]


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for OHADA FinSight.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    conn = sqlite3.connect(cfg.path)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Create tables and indexes if they do not exist yet.

    This function is idempotent and can be called multiple times safely.
    """
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS exercices (
            tenant_id   TEXT    NOT NULL,
            id          TEXT    NOT NULL,
            label       TEXT    NOT NULL,
            date_start  TEXT    NOT NULL,  -- ISO date 'YYYY-MM-DD'
            date_end    TEXT    NOT NULL,
            status      TEXT    NOT NULL,  -- 'Open' | 'Closed'
            year        INTEGER NOT NULL,
            PRIMARY KEY (tenant_id, id)
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS accounts (
            tenant_id   TEXT NOT NULL,
            code        TEXT NOT NULL,
            label       TEXT NOT NULL,
            PRIMARY KEY (tenant_id, code)
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS ledger_lines (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id       TEXT    NOT NULL,
            entry_date      TEXT    NOT NULL,  -- ISO date 'YYYY-MM-DD'
            account_code    TEXT    NOT NULL,
            debit_cents     INTEGER NOT NULL DEFAULT 0,
            credit_cents    INTEGER NOT NULL DEFAULT 0,
            entry_id        TEXT,
            label           TEXT,
            imported_at     TEXT    NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS fixed_assets (
            tenant_id           TEXT    NOT NULL,
            asset_id            TEXT    NOT NULL,
            label               TEXT    NOT NULL,
            account_code        TEXT    NOT NULL,
            acquisition_date    TEXT    NOT NULL,
            gross_value_cents   INTEGER NOT NULL,
            rate                REAL    NOT NULL,  -- percent per year
            PRIMARY KEY (tenant_id, asset_id)
        );
        """
    )

    for table in ("receivable_invoices", "payable_receptions"):
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                tenant_id           TEXT    NOT NULL,
                reference           TEXT    NOT NULL,
                counterparty        TEXT    NOT NULL,
                amount_total_cents  INTEGER NOT NULL,
                amount_paid_cents   INTEGER NOT NULL DEFAULT 0,
                due_date            TEXT    NOT NULL,
                PRIMARY KEY (tenant_id, reference)
            );
            """
        )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS sales (
            tenant_id               TEXT    NOT NULL,
            reference               TEXT    NOT NULL,
            sale_date               TEXT    NOT NULL,
            amount_cents            INTEGER NOT NULL,
            additional_levy_cents   INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (tenant_id, reference)
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS regional_thresholds (
            tenant_id           TEXT PRIMARY KEY,
            liquidity           REAL NOT NULL,
            leverage            REAL NOT NULL,
            autonomy            REAL NOT NULL,
            operating_margin    REAL NOT NULL,
            net_margin          REAL NOT NULL,
            return_on_equity    REAL NOT NULL
        );
        """
    )

    # Indexes
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_ledger_lines_tenant_date
            ON ledger_lines(tenant_id, entry_date);
        """
    )
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_sales_tenant_date
            ON sales(tenant_id, sale_date);
        """
    )

    conn.commit()


def _ensure_dataframe_columns(df: pd.DataFrame) -> None:
    """Validate that the DataFrame contains the expected columns."""
    required = {"entry_date", "account_code", "debit", "credit"}
    missing = required.difference(df.columns)
    if missing:
        cols = ", ".join(sorted(missing))
        msg = f"DataFrame is missing required column(s): {cols}"
        raise ValueError(msg)


def _to_iso_date(value) -> str:
    """Convert a date-like value to ISO 'YYYY-MM-DD' string."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, datetime):
        return value.date().isoformat()
    # Let pandas / python try to parse
    return date.fromisoformat(str(value)).isoformat()


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _to_cents(amount) -> int:
    if amount is None or pd.isna(amount):
        return 0
    return int(round(float(amount) * 100))


def _from_cents(cents) -> float:
    return (cents or 0) / 100.0


def _optional_text(value) -> str | None:
    if value is None or pd.isna(value):
        return None
    return str(value)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if missing.
    - Creates tables and indexes if they are missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


class SqliteStatementsSource:
    """
    Statements source backed by a SQLite database.

    Read methods follow the ``StatementsSource`` contract; write methods
    commit immediately and then notify every registered change listener
    with the tenant id.
    """

    def __init__(self, cfg: DatabaseConfig) -> None:
        self.cfg = cfg
        self._listeners: list[ChangeListener] = []
        init_database(cfg)

    # -- change notification -------------------------------------------------

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Register a callable invoked with the tenant id after each write."""
        self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.remove(listener)

    def _notify(self, tenant_id: str) -> None:
        logger.debug("Data changed for tenant %s", tenant_id)
        for listener in list(self._listeners):
            listener(str(tenant_id))

    def _execute(self, tenant_id: str, sql: str, params: tuple) -> None:
        conn = _connect(self.cfg)
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()
        self._notify(tenant_id)

    def _fetch(self, sql: str, params: tuple) -> list[tuple]:
        conn = _connect(self.cfg)
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            return cur.fetchall()
        finally:
            conn.close()

    # -- writes ----------------------------------------------------------------

    def import_ledger_lines(
        self,
        tenant_id: str,
        df: pd.DataFrame,
        *,
        imported_at: datetime | None = None,
    ) -> int:
        """
        Insert a batch of ledger lines for a tenant.

        Parameters
        ----------
        tenant_id:
            Tenant owning the lines.
        df:
            Ledger-schema DataFrame (see io.py) with at least
            entry_date, account_code, debit, credit.
        imported_at:
            Timestamp stored with the lines; current UTC time if None.

        Returns
        -------
        int
            Number of lines inserted.

        Raises
        ------
        ValueError
            If df does not contain required columns or holds negative
            amounts.
        """
        _ensure_dataframe_columns(df)

        if imported_at is None:
            imported_at_iso = _now_utc_iso()
        else:
            imported_at_iso = imported_at.isoformat(timespec="seconds")

        rows = []
        for _, row in df.iterrows():
            debit_cents = _to_cents(row["debit"])
            credit_cents = _to_cents(row["credit"])
            if debit_cents < 0 or credit_cents < 0:
                raise ValueError("Debit and credit amounts must be non-negative.")

            rows.append(
                (
                    str(tenant_id),
                    _to_iso_date(row["entry_date"]),
                    str(row["account_code"]).strip(),
                    debit_cents,
                    credit_cents,
                    _optional_text(row.get("entry_id")),
                    _optional_text(row.get("label")),
                    imported_at_iso,
                )
            )

        if not rows:
            return 0

        conn = _connect(self.cfg)
        try:
            conn.executemany(
                """
                INSERT INTO ledger_lines (
                    tenant_id,
                    entry_date,
                    account_code,
                    debit_cents,
                    credit_cents,
                    entry_id,
                    label,
                    imported_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                rows,
            )
            conn.commit()
        finally:
            conn.close()

        logger.info("Imported %d ledger line(s) for tenant %s", len(rows), tenant_id)
        self._notify(tenant_id)
        return len(rows)

    def add_exercice(self, tenant_id: str, exercice: Exercice) -> None:
        self._execute(
            tenant_id,
            """
            INSERT OR REPLACE INTO exercices (
                tenant_id, id, label, date_start, date_end, status, year
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                str(tenant_id),
                str(exercice.id),
                exercice.label,
                _to_iso_date(exercice.date_start),
                _to_iso_date(exercice.date_end),
                ExerciceStatus(exercice.status).value,
                int(exercice.year),
            ),
        )

    def add_account(self, tenant_id: str, account: Account) -> None:
        self._execute(
            tenant_id,
            """
            INSERT OR REPLACE INTO accounts (tenant_id, code, label)
            VALUES (?, ?, ?);
            """,
            (str(tenant_id), str(account.code).strip(), account.label),
        )

    def add_fixed_asset(self, tenant_id: str, asset: FixedAssetRecord) -> None:
        self._execute(
            tenant_id,
            """
            INSERT OR REPLACE INTO fixed_assets (
                tenant_id, asset_id, label, account_code,
                acquisition_date, gross_value_cents, rate
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                str(tenant_id),
                str(asset.asset_id),
                asset.label,
                str(asset.account_code),
                _to_iso_date(asset.acquisition_date),
                _to_cents(asset.gross_value),
                float(asset.rate),
            ),
        )

    def _add_open_item(
        self, table: str, tenant_id: str, record: InvoiceRecord | ReceptionRecord
    ) -> None:
        self._execute(
            tenant_id,
            f"""
            INSERT OR REPLACE INTO {table} (
                tenant_id, reference, counterparty,
                amount_total_cents, amount_paid_cents, due_date
            )
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            (
                str(tenant_id),
                str(record.reference),
                record.counterparty,
                _to_cents(record.amount_total),
                _to_cents(record.amount_paid),
                _to_iso_date(record.due_date),
            ),
        )

    def add_invoice(self, tenant_id: str, invoice: InvoiceRecord) -> None:
        self._add_open_item("receivable_invoices", tenant_id, invoice)

    def add_reception(self, tenant_id: str, reception: ReceptionRecord) -> None:
        self._add_open_item("payable_receptions", tenant_id, reception)

    def add_sale(self, tenant_id: str, sale: SaleRecord) -> None:
        self._execute(
            tenant_id,
            """
            INSERT OR REPLACE INTO sales (
                tenant_id, reference, sale_date, amount_cents, additional_levy_cents
            )
            VALUES (?, ?, ?, ?, ?);
            """,
            (
                str(tenant_id),
                str(sale.reference),
                _to_iso_date(sale.sale_date),
                _to_cents(sale.amount),
                _to_cents(sale.additional_levy),
            ),
        )

    def set_regional_thresholds(
        self, tenant_id: str, thresholds: RatioThresholds
    ) -> None:
        self._execute(
            tenant_id,
            """
            INSERT OR REPLACE INTO regional_thresholds (
                tenant_id, liquidity, leverage, autonomy,
                operating_margin, net_margin, return_on_equity
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                str(tenant_id),
                float(thresholds.liquidity),
                float(thresholds.leverage),
                float(thresholds.autonomy),
                float(thresholds.operating_margin),
                float(thresholds.net_margin),
                float(thresholds.return_on_equity),
            ),
        )

    # -- reads -----------------------------------------------------------------

    def fetch_ledger_lines(
        self, tenant_id: str, date_start: date, date_end: date
    ) -> list[LedgerLine]:
        """Return the tenant's ledger lines dated within [date_start, date_end]."""
        rows = self._fetch(
            """
            SELECT entry_date, account_code, debit_cents, credit_cents,
                   entry_id, label
              FROM ledger_lines
             WHERE tenant_id = ?
               AND entry_date BETWEEN ? AND ?
             ORDER BY entry_date, id;
            """,
            (str(tenant_id), _to_iso_date(date_start), _to_iso_date(date_end)),
        )
        return [
            LedgerLine(
                account_code=code,
                debit=_from_cents(debit_cents),
                credit=_from_cents(credit_cents),
                entry_date=date.fromisoformat(entry_date),
                entry_id=entry_id,
                label=label or "",
            )
            for entry_date, code, debit_cents, credit_cents, entry_id, label in rows
        ]

    def fetch_exercices(self, tenant_id: str) -> list[Exercice]:
        rows = self._fetch(
            """
            SELECT id, label, date_start, date_end, status, year
              FROM exercices
             WHERE tenant_id = ?
             ORDER BY year, id;
            """,
            (str(tenant_id),),
        )
        return [
            Exercice(
                id=ex_id,
                label=label,
                date_start=date.fromisoformat(date_start),
                date_end=date.fromisoformat(date_end),
                status=ExerciceStatus(status),
                year=int(year),
            )
            for ex_id, label, date_start, date_end, status, year in rows
        ]

    def fetch_accounts(self, tenant_id: str) -> list[Account]:
        rows = self._fetch(
            "SELECT code, label FROM accounts WHERE tenant_id = ? ORDER BY code;",
            (str(tenant_id),),
        )
        return [Account(code=code, label=label) for code, label in rows]

    def fetch_fixed_assets(self, tenant_id: str) -> list[FixedAssetRecord]:
        rows = self._fetch(
            """
            SELECT asset_id, label, account_code, acquisition_date,
                   gross_value_cents, rate
              FROM fixed_assets
             WHERE tenant_id = ?
             ORDER BY account_code, asset_id;
            """,
            (str(tenant_id),),
        )
        return [
            FixedAssetRecord(
                asset_id=asset_id,
                label=label,
                account_code=code,
                acquisition_date=date.fromisoformat(acquired),
                gross_value=_from_cents(gross_cents),
                rate=float(rate),
            )
            for asset_id, label, code, acquired, gross_cents, rate in rows
        ]

    def _fetch_open_items(self, table: str, tenant_id: str) -> list[tuple]:
        return self._fetch(
            f"""
            SELECT reference, counterparty, amount_total_cents,
                   amount_paid_cents, due_date
              FROM {table}
             WHERE tenant_id = ?
             ORDER BY due_date, reference;
            """,
            (str(tenant_id),),
        )

    def fetch_receivable_invoices(self, tenant_id: str) -> list[InvoiceRecord]:
        return [
            InvoiceRecord(
                reference=ref,
                counterparty=counterparty,
                amount_total=_from_cents(total),
                amount_paid=_from_cents(paid),
                due_date=date.fromisoformat(due),
            )
            for ref, counterparty, total, paid, due in self._fetch_open_items(
                "receivable_invoices", tenant_id
            )
        ]

    def fetch_payable_receptions(self, tenant_id: str) -> list[ReceptionRecord]:
        return [
            ReceptionRecord(
                reference=ref,
                counterparty=counterparty,
                amount_total=_from_cents(total),
                amount_paid=_from_cents(paid),
                due_date=date.fromisoformat(due),
            )
            for ref, counterparty, total, paid, due in self._fetch_open_items(
                "payable_receptions", tenant_id
            )
        ]

    def fetch_period_sales(
        self, tenant_id: str, date_start: date, date_end: date
    ) -> list[SaleRecord]:
        rows = self._fetch(
            """
            SELECT reference, sale_date, amount_cents, additional_levy_cents
              FROM sales
             WHERE tenant_id = ?
               AND sale_date BETWEEN ? AND ?
             ORDER BY sale_date, reference;
            """,
            (str(tenant_id), _to_iso_date(date_start), _to_iso_date(date_end)),
        )
        return [
            SaleRecord(
                reference=ref,
                sale_date=date.fromisoformat(sale_date),
                amount=_from_cents(amount_cents),
                additional_levy=_from_cents(levy_cents),
            )
            for ref, sale_date, amount_cents, levy_cents in rows
        ]

    def fetch_regional_thresholds(self, tenant_id: str) -> RatioThresholds | None:
        rows = self._fetch(
            """
            SELECT liquidity, leverage, autonomy,
                   operating_margin, net_margin, return_on_equity
              FROM regional_thresholds
             WHERE tenant_id = ?;
            """,
            (str(tenant_id),),
        )
        if not rows:
            return None
        liquidity, leverage, autonomy, op_margin, net_margin, roe = rows[0]
        return RatioThresholds(
            liquidity=float(liquidity),
            leverage=float(leverage),
            autonomy=float(autonomy),
            operating_margin=float(op_margin),
            net_margin=float(net_margin),
            return_on_equity=float(roe),
        )
