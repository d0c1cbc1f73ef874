"""Test fixtures for the fulfillment service tests."""

import pytest
from fastapi.testclient import TestClient

from fulfillment_service.coordinator import OrderFulfillmentCoordinator
from fulfillment_service.ledger import InventoryLedger
from fulfillment_service.models import Product
from fulfillment_service.server import app, state

LIGHT = 3
MEDIUM_A = 1
MEDIUM_B = 2
HEAVY = 9


@pytest.fixture
def products():
    """Catalog used by most tests.

    Returns:
        list[Product]: Two 700g products, one 300g product and one product
        heavier than a whole shipment.
    """
    return [
        Product(product_id=MEDIUM_A, product_name="RBC A+ Adult", mass_g=700),
        Product(product_id=MEDIUM_B, product_name="RBC B+ Adult", mass_g=700),
        Product(product_id=LIGHT, product_name="PLT AB+", mass_g=300),
        Product(product_id=HEAVY, product_name="Cooler Unit", mass_g=2000),
    ]


@pytest.fixture
def coordinator(products):
    """A coordinator whose catalog is loaded and whose stock is empty."""
    coordinator = OrderFulfillmentCoordinator()
    coordinator.init_catalog(products)
    return coordinator


@pytest.fixture
def ledger():
    """A ledger with products 1, 2 and 3 holding 10, 20 and 30 units."""
    ledger = InventoryLedger()
    for product_id, quantity in ((1, 10), (2, 20), (3, 30)):
        ledger.initialize(product_id)
        with ledger.lock_and_read({product_id}):
            ledger.increase(product_id, quantity)
    return ledger


@pytest.fixture
def test_client():
    """Test client over a fresh service state, without Kafka."""
    state.reset()
    state.producer = None
    yield TestClient(app)
    state.producer = None
    state.reset()
