# backend/outletpos/services/catalog_service.py
"""
Outlets, categories, and products.

Products carry their variants: a product is created with at least one
variant and prices/stock are edited per variant. Products are soft-deleted
(is_active=False) so recorded transactions keep a valid product reference.

The POS listing prices each variant for the requested order channel, using
the same resolve_price the checkout uses.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Category, Outlet, Product, ProductVariant, TransactionLine
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    enforce_rules_variant,
    validate_payload,
)
from .pricing_service import get_channel_markup, resolve_price, validate_channel

OUTLET_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category_id", "outlet_id", "image_url", "is_active"},
    required_on_create={"name"},
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={"id", "name", "price", "cogs", "track_stock", "stock"},
    required_on_create={"name", "price"},
)


# =============================================================================
# OUTLETS & CATEGORIES
# =============================================================================

def list_outlets() -> list[Outlet]:
    return db.session.query(Outlet).order_by(Outlet.name.asc()).all()


def create_outlet(data: dict) -> Outlet:
    patch = validate_payload(model=Outlet, payload=data, policy=OUTLET_POLICY, partial=False)
    if db.session.query(Outlet).filter_by(name=patch["name"]).first():
        raise ConflictError(f"Outlet {patch['name']} already exists")
    outlet = Outlet(**patch)
    db.session.add(outlet)
    db.session.commit()
    return outlet


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(name: str) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if db.session.query(Category).filter_by(name=name).first():
        raise ConflictError(f"Category {name} already exists")
    category = Category(name=name)
    db.session.add(category)
    db.session.commit()
    return category


# =============================================================================
# PRODUCTS
# =============================================================================

def _check_references(patch: dict) -> None:
    if patch.get("category_id") is not None and db.session.get(Category, patch["category_id"]) is None:
        raise ValidationError("Category not found")
    if patch.get("outlet_id") is not None and db.session.get(Outlet, patch["outlet_id"]) is None:
        raise ValidationError("Outlet not found")


def _variant_patches(raw, *, partial: bool) -> list[dict]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("A product needs at least one variant")
    patches = []
    for item in raw:
        # A variant with an id is an edit; without one it is new.
        is_edit = partial and isinstance(item, dict) and item.get("id") is not None
        patch = validate_payload(model=ProductVariant, payload=item, policy=VARIANT_POLICY, partial=is_edit)
        enforce_rules_variant(patch)
        patches.append(patch)
    return patches


def create_product(data: dict) -> Product:
    """
    Create a product with its variants.

    {"name": .., "category_id": .., "outlet_id": .., "variants": [{"name", "price", ...}]}
    """
    data = dict(data or {})
    variants = _variant_patches(data.pop("variants", None), partial=False)
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
    _check_references(patch)

    product = Product(**patch)
    for v in variants:
        v.pop("id", None)
        product.variants.append(ProductVariant(**v))
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, data: dict) -> Product | None:
    """
    Patch a product. When "variants" is given it is the full new variant
    list: listed ids are updated, entries without id are added, and
    variants left out are removed.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        return None

    data = dict(data or {})
    variants_given = "variants" in data
    variants = _variant_patches(data.pop("variants"), partial=True) if variants_given else None
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=True)
    _check_references(patch)

    for k, v in patch.items():
        setattr(product, k, v)

    if variants is not None:
        existing = {v.id: v for v in product.variants}
        keep = []
        for v in variants:
            vid = v.pop("id", None)
            if vid is not None:
                variant = existing.get(vid)
                if variant is None:
                    raise ValidationError(f"Variant {vid} does not belong to this product")
                for k, val in v.items():
                    setattr(variant, k, val)
            else:
                if "name" not in v or "price" not in v:
                    raise ValidationError("New variants need name and price")
                variant = ProductVariant(**v)
            keep.append(variant)

        kept_ids = {v.id for v in keep if v.id is not None}
        removed = [vid for vid in existing if vid not in kept_ids]
        if removed:
            sold = db.session.query(TransactionLine.variant_id).filter(
                TransactionLine.variant_id.in_(removed)
            ).first()
            if sold:
                raise ConflictError(f"Variant {sold[0]} has sales and cannot be removed")
        product.variants = keep

    db.session.commit()
    return product


def deactivate_product(product_id: int) -> Product | None:
    product = db.session.get(Product, product_id)
    if product is None:
        return None
    product.is_active = False
    db.session.commit()
    return product


def adjust_stock(variant_id: int, stock) -> ProductVariant | None:
    """Set a variant's counted stock (stocktake). Turns stock tracking on."""
    variant = db.session.get(ProductVariant, variant_id)
    if variant is None:
        return None
    stock = coerce_int("stock", stock)
    enforce_rules_variant({"stock": stock})
    variant.track_stock = True
    variant.stock = stock
    db.session.commit()
    current_app.logger.info("Stock for variant %s set to %s", variant_id, stock)
    return variant


def list_products(*, outlet_id: int | None = None, include_inactive: bool = False) -> list[Product]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if outlet_id is not None:
        q = q.filter(db.or_(Product.outlet_id.is_(None), Product.outlet_id == outlet_id))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def pos_catalog(outlet_id: int, channel: str | None = None) -> dict:
    """Active products sold at the outlet, each variant priced for the channel."""
    channel = validate_channel(channel)
    markup = get_channel_markup(channel)
    step = current_app.config.get("PRICE_ROUNDING_STEP", 500)

    items = []
    for product in list_products(outlet_id=outlet_id):
        data = product.to_dict()
        for vdata, variant in zip(data["variants"], product.variants):
            vdata["channel_price"] = resolve_price(variant, channel, markup, step)
        items.append(data)
    return {"order_channel": channel, "items": items, "count": len(items)}
