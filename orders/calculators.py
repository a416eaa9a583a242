"""
Order pricing calculator.

Pure computation over catalog snapshots: no queries, no writes. The order
service resolves menu items and the table's buffet state, hands them over as
plain values, and persists whatever comes back.

Pricing modes:
- BUFFET_FIRST: the order opens a buffet on the table. Subtotal is the
  per-person rate times party size plus every always-priced line.
- BUFFET_ADDITIONAL: a buffet is already running on the table. Only
  always-priced lines are charged, whatever the new order's own flag says.
- A_LA_CARTE: every line at its current menu price.

Usage:
    from orders.calculators import OrderPricingCalculator, PricingRequest
    result = OrderPricingCalculator(request).calculate()
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from core_backend.exceptions import ValidationError
from payments.money import ZERO, quantize, sum_amounts

# Tax is not applied under the current policy.
TAX_RATE = Decimal("0")


class PricingMode(str, Enum):
    A_LA_CARTE = "a_la_carte"
    BUFFET_FIRST = "buffet_first"
    BUFFET_ADDITIONAL = "buffet_additional"


@dataclass(frozen=True)
class MenuItemSnapshot:
    id: int
    name: str
    category_id: int
    price: Decimal
    always_priced: bool = False
    available: bool = True

    @classmethod
    def from_model(cls, item) -> "MenuItemSnapshot":
        return cls(
            id=item.id,
            name=item.name,
            category_id=item.category_id,
            price=item.price,
            always_priced=item.always_priced,
            available=item.available,
        )


@dataclass(frozen=True)
class BuffetCategorySnapshot:
    id: int
    name: str
    is_buffet: bool
    buffet_price: Optional[Decimal]

    @classmethod
    def from_model(cls, category) -> "BuffetCategorySnapshot":
        return cls(
            id=category.id,
            name=category.name,
            is_buffet=category.is_buffet,
            buffet_price=category.buffet_price,
        )


@dataclass(frozen=True)
class LineInput:
    menu_item_id: int
    quantity: int = 1
    notes: str = ""


@dataclass
class PricingRequest:
    lines: Sequence[LineInput]
    catalog: Mapping[int, MenuItemSnapshot]
    is_buffet: bool = False
    buffet_category: Optional[BuffetCategorySnapshot] = None
    party_size: int = 1
    active_buffet: bool = False
    discount: Decimal = ZERO
    service_charge: Decimal = ZERO
    tip: Decimal = ZERO
    currency: str = "USD"


@dataclass(frozen=True)
class PricedLine:
    menu_item_id: int
    quantity: int
    unit_price: Decimal
    notes: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class PricingResult:
    mode: PricingMode
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    service_charge: Decimal
    tip: Decimal
    total: Decimal
    lines: List[PricedLine] = field(default_factory=list)


def calculate_order_total(
    currency: str,
    subtotal: Decimal,
    tax: Decimal,
    discount: Decimal,
    service_charge: Decimal,
    tip: Decimal,
) -> Decimal:
    """total = subtotal + tax - discount + service_charge + tip, in minor units."""
    return sum_amounts(currency, [subtotal, tax, -discount, service_charge, tip])


class OrderPricingCalculator:
    """
    Prices one order submission.

    Raises ValidationError on the first unknown or unavailable menu item, so a
    submission is either priced in full or not at all.
    """

    def __init__(self, request: PricingRequest):
        self.request = request

    @property
    def mode(self) -> PricingMode:
        if self.request.active_buffet:
            return PricingMode.BUFFET_ADDITIONAL
        if self.request.is_buffet:
            return PricingMode.BUFFET_FIRST
        return PricingMode.A_LA_CARTE

    def calculate(self) -> PricingResult:
        request = self.request
        currency = request.currency
        mode = self.mode

        self._validate_adjustments()
        if mode == PricingMode.BUFFET_FIRST:
            self._validate_buffet()

        lines = [self._price_line(line, mode) for line in request.lines]

        amounts = [line.line_total for line in lines]
        if mode == PricingMode.BUFFET_FIRST:
            amounts.append(request.buffet_category.buffet_price * request.party_size)
        subtotal = sum_amounts(currency, amounts)

        tax = quantize(currency, subtotal * TAX_RATE)
        discount = quantize(currency, request.discount)
        service_charge = quantize(currency, request.service_charge)
        tip = quantize(currency, request.tip)
        total = calculate_order_total(currency, subtotal, tax, discount, service_charge, tip)

        return PricingResult(
            mode=mode,
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            service_charge=service_charge,
            tip=tip,
            total=total,
            lines=lines,
        )

    def _price_line(self, line: LineInput, mode: PricingMode) -> PricedLine:
        item = self.request.catalog.get(line.menu_item_id)
        if item is None:
            raise ValidationError(f"Menu item {line.menu_item_id} does not exist")
        if not item.available:
            raise ValidationError(f"Menu item '{item.name}' is not available")
        if line.quantity < 1:
            raise ValidationError(f"Quantity for '{item.name}' must be at least 1")

        if mode == PricingMode.A_LA_CARTE or item.always_priced:
            unit_price = quantize(self.request.currency, item.price)
        else:
            # Included in the buffet rate
            unit_price = quantize(self.request.currency, ZERO)

        return PricedLine(
            menu_item_id=item.id,
            quantity=line.quantity,
            unit_price=unit_price,
            notes=line.notes,
        )

    def _validate_buffet(self) -> None:
        category = self.request.buffet_category
        if category is None:
            raise ValidationError("Buffet orders require a buffet category")
        if not category.is_buffet:
            raise ValidationError(f"Category '{category.name}' is not a buffet category")
        if category.buffet_price is None:
            raise ValidationError(f"Buffet category '{category.name}' has no per-person price")
        if self.request.party_size < 1:
            raise ValidationError("Party size must be at least 1")

    def _validate_adjustments(self) -> None:
        adjustments: Dict[str, Decimal] = {
            "discount": self.request.discount,
            "service charge": self.request.service_charge,
            "tip": self.request.tip,
        }
        for label, value in adjustments.items():
            if Decimal(value) < 0:
                raise ValidationError(f"The {label} cannot be negative")
