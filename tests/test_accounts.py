import pandas as pd
import pytest

from ohada_finsight.accounts import (
    accounts_from_frame,
    build_label_index,
    load_list_of_accounts,
    resolve_label,
    resolve_to_known_account,
)


def test_load_list_of_accounts_accepts_french_columns(tmp_path) -> None:
    csv = tmp_path / "plan.csv"
    csv.write_text(
        "numero_compte,libelle_compte\n411,Clients\n4111,Clients locaux\n",
        encoding="utf-8",
    )

    df = load_list_of_accounts(str(csv))

    assert list(df.columns) == ["code", "label"]
    assert df["code"].tolist() == ["411", "4111"]


def test_load_list_of_accounts_missing_columns_raises(tmp_path) -> None:
    csv = tmp_path / "plan.csv"
    csv.write_text("foo,bar\n1,2\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_list_of_accounts(str(csv))


def test_resolve_to_known_account_closest_ancestor() -> None:
    known = {"41", "411", "4111", "60"}

    assert resolve_to_known_account("411101", known) == "4111"
    assert resolve_to_known_account("4115", known) == "411"
    assert resolve_to_known_account("601010", known) == "60"
    assert resolve_to_known_account("999999", known) is None


def test_resolve_label_prefers_tenant_chart_then_defaults() -> None:
    df = pd.DataFrame({"code": ["411"], "label": ["Clients"]})
    labels = build_label_index(accounts_from_frame(df))

    assert resolve_label("411001", labels) == "Clients"
    assert resolve_label("521000", labels) == "Banques"
    assert resolve_label("999", labels) == "999"
