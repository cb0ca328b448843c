# Overview: Cart lines and cart construction from client item lists.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Product, ProductVariant
from ..validation import ValidationError, BusinessRuleError, coerce_int
from .pricing_service import resolve_price


@dataclass(frozen=True)
class CartLine:
    """
    One cart row: a variant of a product, a quantity, and the unit price
    resolved for the order channel when the line was built.
    """
    product: Product
    variant: ProductVariant
    quantity: int
    price: int

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def variant_id(self) -> int:
        return self.variant.id

    @property
    def category_id(self) -> int | None:
        return self.product.category_id

    @property
    def line_total(self) -> int:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product.name,
            "variant_id": self.variant_id,
            "variant_name": self.variant.name,
            "category_id": self.category_id,
            "quantity": self.quantity,
            "unit_price": self.price,
            "line_total": self.line_total,
        }


def cart_subtotal(cart: list[CartLine]) -> int:
    return sum(line.line_total for line in cart)


def merge_items(items) -> list[tuple[int, int]]:
    """Collapse repeated variants into one (variant_id, quantity) pair, first-seen order."""
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    merged: dict[int, int] = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("each item must be an object")
        if "variant_id" not in item:
            raise ValidationError("variant_id required for each item")
        variant_id = coerce_int("variant_id", item["variant_id"])
        quantity = coerce_int("quantity", item.get("quantity", 1))
        if quantity < 1:
            raise ValidationError("quantity must be at least 1")
        merged[variant_id] = merged.get(variant_id, 0) + quantity
    return list(merged.items())


def build_cart(items, *, outlet_id: int, channel: str, markup_percent=0) -> list[CartLine]:
    """
    Build priced cart lines from [{"variant_id": .., "quantity": .., "product_id": ..?}].

    Rejects unknown variants, a product_id that does not own the variant,
    inactive products, and products pinned to another outlet.
    """
    step = current_app.config.get("PRICE_ROUNDING_STEP", 500)
    expected_products = {}
    for item in items if isinstance(items, list) else []:
        if isinstance(item, dict) and item.get("product_id") is not None and "variant_id" in item:
            expected_products[coerce_int("variant_id", item["variant_id"])] = coerce_int(
                "product_id", item["product_id"]
            )

    cart: list[CartLine] = []
    for variant_id, quantity in merge_items(items):
        variant = db.session.get(ProductVariant, variant_id)
        if variant is None:
            raise ValidationError(f"Variant {variant_id} not found")

        product = variant.product
        expected = expected_products.get(variant_id)
        if expected is not None and expected != product.id:
            raise ValidationError(f"Variant {variant_id} does not belong to product {expected}")
        if not product.is_active:
            raise BusinessRuleError(
                f"{product.name} is no longer sold",
                details={"product_id": product.id},
            )
        if not product.is_sold_at(outlet_id):
            raise BusinessRuleError(
                f"{product.name} is not sold at this outlet",
                details={"product_id": product.id, "outlet_id": outlet_id},
            )

        cart.append(CartLine(
            product=product,
            variant=variant,
            quantity=quantity,
            price=resolve_price(variant, channel, markup_percent, step),
        ))
    return cart
