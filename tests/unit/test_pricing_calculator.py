from decimal import Decimal
from types import SimpleNamespace

import pytest

from agencyhub.domain.pricing.calculator import (
    LineItemRequest,
    from_minor_units,
    merge_line_items,
    price_line_items,
    quantize_money,
    to_minor_units,
)
from agencyhub.errors import ValidationError


def template(name="Audit", price="100.00", currency="usd", purchasable=True, contract=False, max_quantity=10):
    return SimpleNamespace(
        name=name,
        price=Decimal(price) if price is not None else None,
        currency=currency,
        is_purchasable=purchasable,
        requires_contract=contract,
        max_quantity=max_quantity,
    )


def test_prices_single_line():
    priced = price_line_items([LineItemRequest(1, 1)], {1: template()})

    assert priced.subtotal == Decimal("100.00")
    assert priced.tax == Decimal("0.00")
    assert priced.total == Decimal("100.00")
    assert priced.currency == "usd"
    assert not priced.requires_contract


def test_total_equals_sum_of_lines_plus_tax():
    templates = {1: template(price="19.99"), 2: template(name="Retainer", price="250.50", contract=True)}

    priced = price_line_items(
        [LineItemRequest(1, 3), LineItemRequest(2, 2)],
        templates,
        tax_policy=lambda lines, subtotal: subtotal * Decimal("0.1"),
    )

    assert [line.total for line in priced.lines] == [Decimal("59.97"), Decimal("501.00")]
    assert priced.subtotal == Decimal("560.97")
    assert priced.tax == Decimal("56.10")
    assert priced.total == priced.subtotal + priced.tax
    assert priced.requires_contract


def test_duplicate_templates_are_merged():
    merged = merge_line_items([LineItemRequest(1, 2), LineItemRequest(2, 1), LineItemRequest(1, 3)])
    assert merged == [LineItemRequest(1, 5), LineItemRequest(2, 1)]


def test_merged_quantity_is_checked_against_max():
    with pytest.raises(ValidationError) as exc:
        price_line_items([LineItemRequest(1, 6), LineItemRequest(1, 6)], {1: template(max_quantity=10)})
    assert exc.value.details[0]["field"] == "items[0].quantity"


def test_empty_items_rejected():
    with pytest.raises(ValidationError):
        price_line_items([], {})


def test_collects_one_error_per_problem():
    templates = {
        2: template(name="Draft", purchasable=False),
        3: template(name="Unpriced", price=None),
    }
    with pytest.raises(ValidationError) as exc:
        price_line_items([LineItemRequest(1, 1), LineItemRequest(2, 1), LineItemRequest(3, 1)], templates)

    messages = [d["message"] for d in exc.value.details]
    assert messages == [
        "Service template not found",
        "'Draft' is not available for purchase",
        "'Unpriced' has no price set",
    ]


def test_mixed_currencies_rejected():
    templates = {1: template(currency="usd"), 2: template(currency="eur")}
    with pytest.raises(ValidationError) as exc:
        price_line_items([LineItemRequest(1, 1), LineItemRequest(2, 1)], templates)
    assert exc.value.details[0]["field"] == "items"


@pytest.mark.parametrize(
    "value, expected",
    [("10.005", Decimal("10.01")), (19.99, Decimal("19.99")), (3, Decimal("3.00"))],
)
def test_quantize_money(value, expected):
    assert quantize_money(value) == expected


def test_minor_unit_conversion():
    assert to_minor_units(Decimal("199.99")) == 19999
    assert to_minor_units("0.10") == 10
    assert from_minor_units(5050) == Decimal("50.50")
