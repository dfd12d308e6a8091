import pytest

from discount_sync.conf import SyncLimits
from discount_sync.services.cache import DatabaseTargetCache

from .factories import ShopFactory


@pytest.fixture
def shop(db):
    return ShopFactory(domain="test-shop.myshopify.com")


@pytest.fixture
def limits():
    return SyncLimits(max_retries=2, base_delay=0, max_delay=0)


@pytest.fixture
def target_cache(shop):
    return DatabaseTargetCache(shop)
