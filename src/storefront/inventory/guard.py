"""Inventory Guard: the single path through which stock is checked or moved.

``check`` is a read-only preview used by the cart. ``reserve`` and
``release`` write through the repository of the active unit of work, so a
reservation only becomes durable when the surrounding command commits.
Callers that reserve must hold ``locks.product_key`` for the product.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.exceptions import InsufficientStockError, ProductNotFoundError
from storefront.inventory.product import Product

logger = structlog.get_logger(__name__)


def load_product(product_id) -> Product:
    try:
        return current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError as exc:
        raise ProductNotFoundError(product_id) from exc


def check(product_id, quantity) -> Product:
    """Ensure ``quantity`` units of the product could be supplied right now."""
    product = load_product(product_id)
    if not product.can_supply(quantity):
        raise InsufficientStockError(product_id, quantity, product.available_quantity)
    return product


def reserve(product_id, quantity) -> Product:
    product = load_product(product_id)
    product.reserve(quantity)
    current_domain.repository_for(Product).add(product)
    logger.info(
        "Stock reserved",
        product_id=str(product_id),
        quantity=quantity,
        remaining=product.available_quantity,
    )
    return product


def release(product_id, quantity) -> Product:
    product = load_product(product_id)
    product.release(quantity)
    current_domain.repository_for(Product).add(product)
    logger.info(
        "Stock released",
        product_id=str(product_id),
        quantity=quantity,
        remaining=product.available_quantity,
    )
    return product
