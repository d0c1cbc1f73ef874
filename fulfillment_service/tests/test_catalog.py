"""Tests for the product catalog and service configuration."""

import json

import pytest
from pydantic import ValidationError

from fulfillment_service.catalog import ProductCatalog, load_catalog_file
from fulfillment_service.config import ServiceConfig
from fulfillment_service.errors import DuplicateProductError, ProductNotFoundError
from fulfillment_service.models import Product


def test_catalog_lookup(products):
    catalog = ProductCatalog()
    for product in products:
        catalog.register(product)

    assert len(catalog) == 4
    assert catalog.get(3).mass_g == 300
    assert [product.product_id for product in catalog] == [1, 2, 3, 9]
    with pytest.raises(ProductNotFoundError):
        catalog.get(42)
    with pytest.raises(DuplicateProductError):
        catalog.register(products[0])


def test_load_catalog_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([{"product_id": 0, "product_name": "RBC A+ Adult", "mass_g": 700}]))

    assert load_catalog_file(str(path)) == [Product(product_id=0, product_name="RBC A+ Adult", mass_g=700)]


def test_load_catalog_file_rejects_bad_products(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([{"product_id": 0, "product_name": "Weightless", "mass_g": 0}]))

    with pytest.raises(ValidationError):
        load_catalog_file(str(path))


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("KAFKA_BOOTSTRAP_SERVERS", "broker:29092")
    monkeypatch.setenv("MOCK_MODE", "true")
    monkeypatch.setenv("LEDGER_LOCK_TIMEOUT", "2.5")
    monkeypatch.delenv("CATALOG_FILE", raising=False)

    service_config = ServiceConfig.from_env()

    assert service_config.kafka_bootstrap_servers == "broker:29092"
    assert service_config.mock_mode is True
    assert service_config.ledger_lock_timeout == 2.5
    assert service_config.catalog_file is None


def test_config_rejects_non_positive_lock_timeout(monkeypatch):
    monkeypatch.setenv("LEDGER_LOCK_TIMEOUT", "0")

    with pytest.raises(ValidationError):
        ServiceConfig.from_env()
