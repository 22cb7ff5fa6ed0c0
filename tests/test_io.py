from datetime import date

import pandas as pd
import pytest

from ohada_finsight.io import (
    LEDGER_COLUMNS,
    empty_ledger_frame,
    ledger_lines_to_frame,
    read_ledger_lines,
)
from ohada_finsight.models import LedgerLine


def test_read_ledger_lines_normalizes_aliases(tmp_path) -> None:
    csv = tmp_path / "ledger.csv"
    csv.write_text(
        "Date,Code,Debit,Credit,Description\n"
        "2025-01-10,411001,1000,,Invoice F001\n"
        "2025-01-10,701001,,1000,Invoice F001\n",
        encoding="utf-8",
    )

    df = read_ledger_lines(csv)

    assert list(df.columns) == LEDGER_COLUMNS
    assert df["account_code"].tolist() == ["411001", "701001"]
    assert df["debit"].tolist() == [1000.0, 0.0]
    assert df["credit"].tolist() == [0.0, 1000.0]
    assert df["label"].tolist() == ["Invoice F001", "Invoice F001"]
    assert df["entry_date"].iloc[0] == pd.Timestamp("2025-01-10")


def test_read_ledger_lines_keeps_leading_zeros_as_text(tmp_path) -> None:
    csv = tmp_path / "ledger.csv"
    csv.write_text(
        "entry_date,account_code,debit,credit\n2025-01-10,0411,5,0\n",
        encoding="utf-8",
    )

    df = read_ledger_lines(csv)

    assert df["account_code"].iloc[0] == "0411"


def test_read_ledger_lines_missing_columns_raises(tmp_path) -> None:
    csv = tmp_path / "ledger.csv"
    csv.write_text("date,code,amount\n2025-01-10,411001,10\n", encoding="utf-8")

    with pytest.raises(ValueError, match="missing column"):
        read_ledger_lines(csv)


def test_read_ledger_lines_rejects_negative_amounts(tmp_path) -> None:
    csv = tmp_path / "ledger.csv"
    csv.write_text(
        "date,code,debit,credit\n2025-01-10,411001,-10,0\n", encoding="utf-8"
    )

    with pytest.raises(ValueError, match="non-negative"):
        read_ledger_lines(csv)


def test_read_ledger_lines_rejects_non_numeric_amounts(tmp_path) -> None:
    csv = tmp_path / "ledger.csv"
    csv.write_text(
        "date,code,debit,credit\n2025-01-10,411001,abc,0\n", encoding="utf-8"
    )

    with pytest.raises(ValueError, match="numeric"):
        read_ledger_lines(csv)


def test_ledger_lines_to_frame_converts_records() -> None:
    lines = [
        LedgerLine("411001", 1000.0, 0.0, date(2025, 1, 10), "E1", "Sale"),
        LedgerLine(" 701001 ", 0.0, 1000.0, date(2025, 1, 10), "E1"),
    ]

    df = ledger_lines_to_frame(lines)

    assert list(df.columns) == LEDGER_COLUMNS
    assert df["account_code"].tolist() == ["411001", "701001"]
    assert df["entry_id"].tolist() == ["E1", "E1"]
    assert df["label"].tolist() == ["Sale", ""]


def test_ledger_lines_to_frame_empty_input() -> None:
    df = ledger_lines_to_frame([])

    assert df.empty
    assert list(df.columns) == LEDGER_COLUMNS
    assert list(empty_ledger_frame().columns) == LEDGER_COLUMNS
