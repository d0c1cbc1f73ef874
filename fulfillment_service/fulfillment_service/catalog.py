"""Product catalog loaded at bootstrap."""

import json
import threading
from pathlib import Path
from typing import Iterator

from .errors import DuplicateProductError, ProductNotFoundError
from .models import Product


class ProductCatalog:
    """Immutable products by id."""

    def __init__(self) -> None:
        self._products: dict[int, Product] = {}
        self._lock = threading.Lock()

    def register(self, product: Product) -> None:
        with self._lock:
            if product.product_id in self._products:
                raise DuplicateProductError(product.product_id)
            self._products[product.product_id] = product

    def get(self, product_id: int) -> Product:
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def __contains__(self, product_id: int) -> bool:
        return product_id in self._products

    def __iter__(self) -> Iterator[Product]:
        return iter(sorted(self._products.values(), key=lambda product: product.product_id))

    def __len__(self) -> int:
        return len(self._products)


def load_catalog_file(path: str) -> list[Product]:
    """Read a JSON list of ``{product_id, product_name, mass_g}`` objects."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return [Product(**item) for item in raw]
