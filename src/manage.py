"""Storefront management CLI.

Creates or drops the database schema for SQL providers and seeds a
catalog for local runs.

Usage:
    PROTEAN_ENV=sqlite python src/manage.py setup-db
    PROTEAN_ENV=sqlite python src/manage.py seed --file catalog.json
    PROTEAN_ENV=sqlite python src/manage.py drop-db
"""

import argparse
import json
import sys


def _domain():
    from storefront.domain import storefront

    storefront.init()
    return storefront


def setup_database():
    from storefront.utils.db import setup_db

    providers = setup_db(_domain())
    print(f"Schema ready for providers: {', '.join(providers) or 'none (in-memory)'}")


def drop_database():
    from storefront.utils.db import drop_db

    providers = drop_db(_domain())
    print(f"Schema dropped for providers: {', '.join(providers) or 'none (in-memory)'}")


def seed_catalog(path):
    """Load products and promo codes from a JSON file.

    Format: {"products": [{id, slug, name, price, available_quantity}],
             "promo_codes": [{code, discount_type, value, min_order, max_uses}]}
    """
    from storefront.inventory.product import Product
    from storefront.promotion.promo_code import PromoCode

    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)

    domain = _domain()
    with domain.domain_context():
        products = domain.repository_for(Product)
        for record in data.get("products", []):
            products.add(Product(**record))
        promos = domain.repository_for(PromoCode)
        for record in data.get("promo_codes", []):
            promos.add(PromoCode.create(**record))

    print(f"Seeded {len(data.get('products', []))} products and {len(data.get('promo_codes', []))} promo codes")


def main():
    from storefront.utils.logging import configure_logging

    parser = argparse.ArgumentParser(description="Storefront management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    seed_parser = subparsers.add_parser("seed", help="Load products and promo codes from JSON")
    seed_parser.add_argument("--file", required=True, help="Path to the catalog JSON file")

    args = parser.parse_args()
    configure_logging()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed":
        seed_catalog(args.file)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
