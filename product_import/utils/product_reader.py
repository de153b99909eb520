"""
Product file reader.

Reads products from a JSON file (a list of product objects) or a JSON Lines
file (one product object per line, extension .jsonl).

Product object:
    {
        "sku": "ts-001",
        "name": "Blue T-Shirt",
        "url_key": "blue-t-shirt",
        "store_views": {
            "1": {"name": "Blaues T-Shirt", "url_key": true}
        },
        "tier_prices": [
            {"qty": 10, "value": "8.50"},
            {"qty": 10, "value": "8.00", "customer_group_id": 2, "website_id": 1}
        ]
    }

Url key values:
    "some-key"  use this url key
    true        generate a url key
    null        remove the url key
    (missing)   global view: generate; other store views: leave untouched

A missing "tier_prices" leaves the stored tier prices untouched; an empty
list removes them.
"""

import json
import re
from decimal import InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from ..models.product import (
    ExplicitUrlKey,
    GENERATE_URL_KEY,
    Product,
    ProductStoreView,
    REMOVED_URL_KEY,
    TierPrice,
)
from ..services.exceptions import ProductFileError
from .constants import DEFAULT_WEBSITE_ID

_MISSING = object()

_JSON_SEPARATOR = re.compile(r"[ \t\n\r]*,?[ \t\n\r]*")


def read_products(file_path: Union[str, Path]) -> List[Product]:
    """
    Read all products from a JSON or JSON Lines file.

    Problems with a single product's values are added to that product as
    errors; problems with the file itself raise.

    Raises:
        ProductFileError: If the file cannot be read or is not a list of objects
    """
    path = Path(file_path)

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProductFileError(str(file_path), str(e)) from e

    if path.suffix.lower() == ".jsonl":
        items = []
        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                items.append((line_number, json.loads(line)))
            except json.JSONDecodeError as e:
                raise ProductFileError(str(file_path), f"line {line_number}: {e.msg}") from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ProductFileError(str(file_path), f"line {e.lineno}: {e.msg}") from e
        if not isinstance(data, list):
            raise ProductFileError(str(file_path), "expected a list of products")
        items = _list_items_with_lines(text)

    products = []
    for line_number, item in items:
        if not isinstance(item, dict):
            raise ProductFileError(str(file_path), f"line {line_number}: product is not an object")
        products.append(product_from_dict(item, line_number))
    return products


def product_from_dict(data: Dict[str, Any], line_number: int = 0) -> Product:
    """Build a Product from one product object."""
    sku = data.get("sku")
    product = Product(str(sku) if sku is not None else None, line_number=line_number)

    global_view = product.global_store_view()
    _set_name(product, global_view, data.get("name"))
    _set_url_key(product, global_view, data.get("url_key", True))

    for store_view_id, view_data in (data.get("store_views") or {}).items():
        try:
            store_view = product.get_store_view(int(store_view_id))
        except (TypeError, ValueError):
            product.add_error(f"Invalid store view id: {store_view_id}")
            continue
        if not isinstance(view_data, dict):
            product.add_error(f"Invalid store view data for store view {store_view_id}")
            continue
        if "name" in view_data:
            _set_name(product, store_view, view_data["name"])
        url_key = view_data.get("url_key", _MISSING)
        if url_key is not _MISSING:
            _set_url_key(product, store_view, url_key)

    if "tier_prices" in data and data["tier_prices"] is not None:
        product.tier_prices = _read_tier_prices(product, data["tier_prices"])

    return product


def _list_items_with_lines(text: str) -> List[Tuple[int, Any]]:
    """
    (line, item) for each item of the JSON list in text, where line is the
    line the item starts on. The text must already be known to hold a list.
    """
    decoder = json.JSONDecoder()
    items = []
    position = text.index("[") + 1
    line = text.count("\n", 0, position) + 1

    while True:
        start = _JSON_SEPARATOR.match(text, position).end()
        line += text.count("\n", position, start)
        if text[start] == "]":
            return items
        item, position = decoder.raw_decode(text, start)
        items.append((line, item))
        line += text.count("\n", start, position)


def _set_name(product: Product, store_view: ProductStoreView, value: Any) -> None:
    if value is None or isinstance(value, str):
        store_view.name = value
    else:
        product.add_error(f"Invalid name: {value!r}")


def _set_url_key(product: Product, store_view: ProductStoreView, value: Any) -> None:
    if value is True:
        store_view.url_key = GENERATE_URL_KEY
    elif value is None:
        store_view.url_key = REMOVED_URL_KEY
    elif isinstance(value, str) and value != "":
        store_view.url_key = ExplicitUrlKey(value)
    else:
        product.add_error(f"Invalid url key: {value!r}")


def _read_tier_prices(product: Product, items: Any) -> List[TierPrice]:
    if not isinstance(items, list):
        product.add_error("Invalid tier prices: expected a list")
        return []

    tier_prices = []
    for item in items:
        try:
            customer_group_id = item.get("customer_group_id")
            if customer_group_id is not None:
                customer_group_id = int(customer_group_id)
            tier_prices.append(
                TierPrice(
                    quantity=item["qty"],
                    value=item["value"],
                    customer_group_id=customer_group_id,
                    website_id=int(item.get("website_id", DEFAULT_WEBSITE_ID)),
                )
            )
        except (AttributeError, KeyError, TypeError, ValueError, InvalidOperation) as e:
            product.add_error(f"Invalid tier price {item!r}: {e}")
    return tier_prices
