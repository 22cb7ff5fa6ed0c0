import pandas as pd
import pytest

from ohada_finsight.mapping import (
    OVERDRAFT_SUFFIX,
    Bucket,
    ClassificationTable,
    PrefixRule,
    apply_rule,
    classify_balances,
    contra_base_key,
)


def _by_code(classification):
    return {b.account_code: b for b in classification.balances}


@pytest.mark.parametrize(
    "code, net, bucket, amount",
    [
        ("101000", -5000.0, Bucket.EQUITY, 5000.0),
        ("162000", -2000.0, Bucket.FINANCIAL_DEBT, 2000.0),
        ("241000", 800.0, Bucket.FIXED_ASSET, 800.0),
        ("311000", 150.0, Bucket.INVENTORY, 150.0),
        ("401000", -300.0, Bucket.PAYABLE, 300.0),
        ("401000", 50.0, Bucket.PAYABLE, 50.0),
        ("521000", 700.0, Bucket.CASH, 700.0),
        ("521000", -120.0, Bucket.OVERDRAFT, 120.0),
        ("601000", 400.0, Bucket.OPERATING_EXPENSE, 400.0),
        ("671000", 20.0, Bucket.FINANCIAL_EXPENSE, 20.0),
        ("681000", 90.0, Bucket.EXTRAORDINARY_EXPENSE, 90.0),
        ("701000", -1000.0, Bucket.OPERATING_REVENUE, 1000.0),
        ("771000", -10.0, Bucket.FINANCIAL_REVENUE, 10.0),
        ("791000", -5.0, Bucket.EXTRAORDINARY_REVENUE, 5.0),
        ("821000", -60.0, Bucket.EXTRAORDINARY_REVENUE, 60.0),
        ("811000", 40.0, Bucket.EXTRAORDINARY_EXPENSE, 40.0),
    ],
)
def test_default_table_classification(code, net, bucket, amount) -> None:
    table = ClassificationTable.default()

    assert table.classify(code, net) == (bucket, amount)


def test_class_4_sign_handling() -> None:
    debit_side = classify_balances({"411001": 500.0})
    credit_side = classify_balances({"411001": -200.0})

    receivable = debit_side.balances[0]
    assert receivable.bucket == Bucket.RECEIVABLE
    assert receivable.amount == 500.0

    payable = credit_side.balances[0]
    assert payable.bucket == Bucket.PAYABLE
    assert payable.amount == 200.0


def test_contra_account_nets_against_paired_asset() -> None:
    classification = classify_balances({"21": 1000.0, "281": -300.0})

    assert len(classification.balances) == 1
    asset = classification.balances[0]
    assert asset.account_code == "21"
    assert asset.bucket == Bucket.FIXED_ASSET
    assert asset.amount == 700.0
    assert asset.net_amount == 1000.0
    assert asset.contra_accounts == ("281",)
    assert classification.warnings == []


def test_contra_account_uses_closest_asset() -> None:
    classification = classify_balances(
        {"2411": 1000.0, "2441": 500.0, "28411": -100.0, "2844": -50.0}
    )

    by_code = _by_code(classification)
    assert by_code["2411"].amount == 900.0
    assert by_code["2441"].amount == 450.0


def test_orphan_contra_account_is_reported_and_excluded() -> None:
    classification = classify_balances({"2811": -300.0, "521": 100.0})

    assert [b.account_code for b in classification.balances] == ["521"]
    assert any("2811" in w for w in classification.warnings)


def test_contra_base_key() -> None:
    assert contra_base_key("2811") == "211"
    assert contra_base_key("2845") == "245"
    assert contra_base_key("291") == "21"


def test_unclassified_accounts_are_surfaced(caplog) -> None:
    with caplog.at_level("WARNING", logger="ohada_finsight.mapping"):
        classification = classify_balances({"901000": 10.0, "521": 100.0})

    assert classification.unclassified == ["901000"]
    assert any("901000" in w for w in classification.warnings)
    assert [b.account_code for b in classification.balances] == ["521"]
    assert "901000" in caplog.text


def test_every_classified_account_appears_in_exactly_one_bucket() -> None:
    balances = {
        "101": -1000.0,
        "2411": 800.0,
        "2841": -100.0,
        "311": 50.0,
        "401": -300.0,
        "411": 200.0,
        "521": 300.0,
        "601": 100.0,
        "701": -50.0,
        "821": -10.0,
    }

    classification = classify_balances(balances)

    codes = [b.account_code for b in classification.balances]
    assert len(codes) == len(set(codes))
    assert set(codes) == set(balances) - {"2841"}
    for code in codes:
        assert classification.bucket_of(code) is not None


def test_overdraft_label_is_suffixed() -> None:
    classification = classify_balances({"521000": -120.0}, labels={"521": "BICEC"})

    overdraft = classification.balances[0]
    assert overdraft.bucket == Bucket.OVERDRAFT
    assert overdraft.label == "BICEC" + OVERDRAFT_SUFFIX


def test_classify_balances_accepts_aggregate_frame() -> None:
    frame = pd.DataFrame(
        {
            "account_code": ["411001", "701001"],
            "debit": [1000.0, 0.0],
            "credit": [0.0, 1000.0],
            "balance": [1000.0, -1000.0],
        }
    )

    classification = classify_balances(frame)

    assert [b.bucket for b in classification.balances] == [
        Bucket.RECEIVABLE,
        Bucket.OPERATING_REVENUE,
    ]


def test_longest_prefix_wins() -> None:
    table = ClassificationTable(
        [
            PrefixRule("4", Bucket.RECEIVABLE),
            PrefixRule("4011", Bucket.OPERATING_EXPENSE),
        ]
    )

    assert table.match("40111").prefix == "4011"
    assert table.match("411").prefix == "4"
    assert table.match("5") is None


def test_duplicate_prefix_raises() -> None:
    with pytest.raises(ValueError, match="Duplicate"):
        ClassificationTable(
            [PrefixRule("41", Bucket.RECEIVABLE), PrefixRule("41", Bucket.PAYABLE)]
        )


def test_classification_table_from_csv(tmp_path) -> None:
    csv = tmp_path / "table.csv"
    csv.write_text(
        "prefix,bucket,credit_bucket,absolute,contra\n"
        "2,fixed_asset,,,\n"
        "28,fixed_asset,,,yes\n"
        "41,receivable,payable,,\n"
        "70,operating_revenue,,,\n",
        encoding="utf-8",
    )

    table = ClassificationTable.from_csv(str(csv))
    classification = classify_balances(
        {"21": 1000.0, "281": -300.0, "411": -20.0, "701": -10.0, "601": 5.0},
        table=table,
    )

    by_code = _by_code(classification)
    assert by_code["21"].amount == 700.0
    assert by_code["411"].bucket == Bucket.PAYABLE
    assert by_code["701"].amount == 10.0
    assert classification.unclassified == ["601"]


def test_classification_table_from_csv_unknown_bucket(tmp_path) -> None:
    csv = tmp_path / "table.csv"
    csv.write_text("prefix,bucket\n2,assets\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Unknown bucket"):
        ClassificationTable.from_csv(str(csv))


def test_apply_rule_never_drops_a_balance() -> None:
    cash = PrefixRule("5", Bucket.CASH, credit_bucket=Bucket.OVERDRAFT)
    supplier = PrefixRule("40", Bucket.PAYABLE, absolute=True)

    assert apply_rule(cash, 120.0) == (Bucket.CASH, 120.0)
    assert apply_rule(cash, -30.0) == (Bucket.OVERDRAFT, 30.0)
    assert apply_rule(supplier, 15.0) == (Bucket.PAYABLE, 15.0)
    assert apply_rule(PrefixRule("10", Bucket.EQUITY), -500.0) == (Bucket.EQUITY, 500.0)
