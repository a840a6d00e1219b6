"""
Pricing calculator - pure order pricing from line items and the template price table

All arithmetic is done with Decimal. Integer minor units (cents) only appear
at the payment gateway edge through to_minor_units/from_minor_units.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Iterable, Mapping, Optional

from ...errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(value) -> Decimal:
    """Normalise any Decimal/int/str amount to two places, rounding half up"""
    if isinstance(value, float):
        # Floats never enter the money path; str() keeps the literal the caller meant
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount) -> int:
    return int((quantize_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(int(amount)) / 100).quantize(CENT)


@dataclass(frozen=True)
class LineItemRequest:
    service_template_id: int
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    service_template_id: int
    service_name: str
    quantity: int
    unit_price: Decimal
    total: Decimal
    requires_contract: bool = False


@dataclass(frozen=True)
class PricedOrder:
    lines: list[PricedLine] = field(default_factory=list)
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO
    currency: str = "usd"

    @property
    def requires_contract(self) -> bool:
        return any(line.requires_contract for line in self.lines)


# A tax policy receives the priced lines and the subtotal and returns the tax amount
TaxPolicy = Callable[[list[PricedLine], Decimal], Decimal]


def zero_tax(_lines: list[PricedLine], _subtotal: Decimal) -> Decimal:
    """Tax is not computed by location yet; every order carries zero tax"""
    return ZERO


def merge_line_items(items: Iterable[LineItemRequest]) -> list[LineItemRequest]:
    """Collapse repeated templates into one line so max_quantity applies per template"""
    quantities: dict[int, int] = {}
    for item in items:
        quantities[item.service_template_id] = quantities.get(item.service_template_id, 0) + item.quantity
    return [LineItemRequest(template_id, qty) for template_id, qty in quantities.items()]


def price_line_items(
    items: Iterable[LineItemRequest],
    templates: Mapping[int, Any],
    tax_policy: Optional[TaxPolicy] = None,
    default_currency: str = "usd",
) -> PricedOrder:
    """
    Price a set of line items against the current service templates.

    Every item is checked before anything is priced, and all problems are
    reported together as field-level details, so an order is either priced in
    full or rejected in full.

    Args:
        items: requested (service_template_id, quantity) pairs
        templates: service templates keyed by id (objects exposing name, price,
            currency, is_purchasable, requires_contract, max_quantity)
        tax_policy: callable computing tax; defaults to zero_tax
        default_currency: currency used when no template specifies one

    Raises:
        ValidationError: with one detail entry per offending line
    """
    merged = merge_line_items(items)
    if not merged:
        raise ValidationError(
            "Order must contain at least one item",
            details=[{"field": "items", "message": "At least one item is required"}],
        )

    errors = []
    for index, item in enumerate(merged):
        location = f"items[{index}]"
        template = templates.get(item.service_template_id)
        if template is None:
            errors.append(
                {
                    "field": f"{location}.serviceTemplateId",
                    "serviceTemplateId": item.service_template_id,
                    "message": "Service template not found",
                }
            )
            continue
        if not template.is_purchasable:
            errors.append(
                {
                    "field": f"{location}.serviceTemplateId",
                    "serviceTemplateId": item.service_template_id,
                    "message": f"'{template.name}' is not available for purchase",
                }
            )
        if template.price is None:
            errors.append(
                {
                    "field": f"{location}.serviceTemplateId",
                    "serviceTemplateId": item.service_template_id,
                    "message": f"'{template.name}' has no price set",
                }
            )
        max_quantity = template.max_quantity or 1
        if item.quantity < 1 or item.quantity > max_quantity:
            errors.append(
                {
                    "field": f"{location}.quantity",
                    "serviceTemplateId": item.service_template_id,
                    "message": f"Quantity must be between 1 and {max_quantity}",
                }
            )

    if not errors:
        currencies = {(templates[item.service_template_id].currency or default_currency).lower() for item in merged}
        if len(currencies) > 1:
            errors.append(
                {"field": "items", "message": f"Items must share one currency, got {sorted(currencies)}"}
            )

    if errors:
        raise ValidationError("Invalid order items", details=errors)

    lines = []
    for item in merged:
        template = templates[item.service_template_id]
        unit_price = quantize_money(template.price)
        lines.append(
            PricedLine(
                service_template_id=item.service_template_id,
                service_name=template.name,
                quantity=item.quantity,
                unit_price=unit_price,
                total=quantize_money(unit_price * item.quantity),
                requires_contract=bool(template.requires_contract),
            )
        )

    subtotal = quantize_money(sum((line.total for line in lines), ZERO))
    tax = quantize_money((tax_policy or zero_tax)(lines, subtotal))
    currency = (templates[merged[0].service_template_id].currency or default_currency).lower()

    return PricedOrder(lines=lines, subtotal=subtotal, tax=tax, total=subtotal + tax, currency=currency)
