import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Select the config overlay before the storefront domain is imported.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        for _, broker in current_domain.brokers.items():
            broker._data_reset()


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def queue():
    from storefront.messaging.fake_queue import FakeQueueAdapter

    return FakeQueueAdapter()


@pytest.fixture()
def settings():
    from storefront.settings import Settings

    return Settings()


@pytest.fixture()
def services(settings, queue):
    from storefront.bootstrap import build_services

    return build_services(settings=settings, queue=queue)


@pytest.fixture()
def make_product():
    """Factory: register a product directly in the repository."""
    from protean import current_domain
    from storefront.catalogue.product.product import Product

    def _make(name="Espresso Beans", price=12.5, stock=10):
        product = Product.create(name=name, price=price, stock_available=stock)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def product(make_product):
    return make_product()


def stock_of(product_id):
    from storefront.catalogue.product.product import Product
    from storefront.persistence import load

    return load(Product, product_id).stock_available


@pytest.fixture()
def stock():
    return stock_of
