from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CURRENCY = "EUR"


@dataclass(frozen=True, slots=True)
class PackBundle:
    quantity: int
    price: Decimal
    popular: bool = False

    @property
    def price_per_pack(self) -> Decimal:
        return (self.price / self.quantity).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)


BUNDLES: tuple[PackBundle, ...] = (
    PackBundle(quantity=10, price=Decimal("2.99")),
    PackBundle(quantity=30, price=Decimal("6.99"), popular=True),
    PackBundle(quantity=75, price=Decimal("14.99")),
)


def get_bundles() -> tuple[PackBundle, ...]:
    return BUNDLES


def get_bundle(quantity: int) -> PackBundle | None:
    for bundle in BUNDLES:
        if bundle.quantity == quantity:
            return bundle
    return None
