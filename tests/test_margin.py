from decimal import Decimal

import pytest

from stockledger.services import margin


def test_calculate_margin():
    result = margin.calculate_margin(1000, 650)

    assert result["gross_margin"] == Decimal("350")
    assert result["margin_pct"] == Decimal("35.00")


def test_margin_is_zero_without_sales():
    assert margin.calculate_margin(0, 100)["margin_pct"] == Decimal("0.00")
    assert margin.calculate_margin(-5, 100)["margin_pct"] == Decimal("0.00")


def test_non_numeric_inputs_count_as_zero():
    result = margin.calculate_margin("lots", None)

    assert result["sales"] == Decimal("0")
    assert result["cost"] == Decimal("0")
    assert result["margin_pct"] == Decimal("0.00")


def test_string_inputs_are_parsed():
    assert margin.calculate_margin("200", "50")["margin_pct"] == Decimal("75.00")


@pytest.mark.parametrize(
    "pct, band",
    [
        ("-10", margin.CRITICAL),
        ("29.99", margin.CRITICAL),
        ("30", margin.LOW),
        ("39.99", margin.LOW),
        ("40", margin.HEALTHY),
        ("50", margin.HEALTHY),
        ("50.01", margin.VERY_GOOD),
        ("70", margin.VERY_GOOD),
        ("70.01", margin.REVIEW_COSTING),
    ],
)
def test_classification_bands(pct, band):
    assert margin.classify(Decimal(pct)) is band


def test_low_margin_carries_improvement_alerts():
    evaluation = margin.evaluate_margin("35")

    assert [alert.code for alert in evaluation.alerts] == ["REC001", "MER001", "PVB001", "INS001"]
    assert evaluation.band.alert_level == "MEDIA"


def test_healthy_margin_has_no_alerts():
    assert margin.evaluate_margin("45").alerts == []


def test_custom_threshold():
    assert len(margin.evaluate_margin("45", threshold=50).alerts) == 4


def test_high_margin_asks_for_costing_review():
    evaluation = margin.evaluate_margin("80")

    assert [alert.code for alert in evaluation.alerts] == ["COST001"]
    assert evaluation.band.label == "REVISAR COSTEO"


def test_calculate_and_evaluate_merges_both():
    result = margin.calculate_and_evaluate("1000", "750")

    assert result["margin_pct"] == Decimal("25.00")
    assert result["classification"] == "CRÍTICO"
    assert result["alert_level"] == "ALTA"
    assert result["alerts"][0]["code"] == "REC001"
