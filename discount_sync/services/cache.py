"""Product / collection lookup caches used by the target resolver.

The resolver only needs ``get``/``put`` access to two kinds of entries, so it
talks to a :class:`TargetCache` instead of the ORM.  Two backends exist:

* :class:`DatabaseTargetCache`: the ``Product`` / ``Collection`` tables
  (default; rows double as the local catalog mirror).
* :class:`DjangoCacheTargetCache`: Django's cache framework with a TTL, for
  deployments that do not want the mirror tables populated.
"""

import dataclasses
import logging

from django.core.cache import cache as django_cache

from ..models import Collection, Product
from ..utils import safe_json_list

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class CachedProduct:
    gid: str
    variant_ids: list
    title: str = ""
    handle: str = ""
    single_price: bool = False


@dataclasses.dataclass
class CachedCollection:
    gid: str
    product_ids: list
    title: str = ""


class TargetCache:
    """Interface for product/collection lookups keyed by GID."""

    def get_product(self, gid):
        raise NotImplementedError

    def put_product(self, product, ttl=None):
        raise NotImplementedError

    def delete_product(self, gid):
        raise NotImplementedError

    def get_collection(self, gid):
        raise NotImplementedError

    def put_collection(self, collection, ttl=None):
        raise NotImplementedError

    def delete_collection(self, gid):
        raise NotImplementedError


class DatabaseTargetCache(TargetCache):
    """Backed by the ``Product`` and ``Collection`` tables of one shop.

    Lookup failures are logged and reported as a miss so the resolver falls
    back to the API.  ``ttl`` is ignored; rows live until refreshed or deleted.
    """

    def __init__(self, shop):
        self.shop = shop

    def get_product(self, gid):
        try:
            row = Product.objects.filter(gid=gid, shop=self.shop).first()
        except Exception:
            logger.exception("Error reading cached product %s", gid)
            return None
        if row is None:
            return None
        return CachedProduct(
            gid=row.gid,
            variant_ids=safe_json_list(row.variant_ids),
            title=row.title,
            handle=row.handle,
            single_price=row.single_price,
        )

    def put_product(self, product, ttl=None):
        Product.objects.update_or_create(
            gid=product.gid,
            defaults={
                "shop": self.shop,
                "title": product.title or "",
                "handle": product.handle or "",
                "variant_ids": list(product.variant_ids),
                "single_price": product.single_price,
            },
        )

    def delete_product(self, gid):
        deleted, _ = Product.objects.filter(gid=gid, shop=self.shop).delete()
        return deleted

    def get_collection(self, gid):
        try:
            row = Collection.objects.filter(gid=gid, shop=self.shop).first()
        except Exception:
            logger.exception("Error reading cached collection %s", gid)
            return None
        if row is None:
            return None
        return CachedCollection(
            gid=row.gid,
            product_ids=safe_json_list(row.product_ids),
            title=row.title,
        )

    def put_collection(self, collection, ttl=None):
        Collection.objects.update_or_create(
            gid=collection.gid,
            defaults={
                "shop": self.shop,
                "title": collection.title or "",
                "product_ids": list(collection.product_ids),
            },
        )

    def delete_collection(self, gid):
        deleted, _ = Collection.objects.filter(gid=gid, shop=self.shop).delete()
        return deleted


class DjangoCacheTargetCache(TargetCache):
    """Backed by ``django.core.cache``; entries expire after *default_ttl*."""

    KEY_PREFIX = "discount_sync"
    DEFAULT_TTL = 86400  # 24 hours

    def __init__(self, shop_domain, backend=None, default_ttl=DEFAULT_TTL):
        self.shop_domain = shop_domain
        self.backend = backend or django_cache
        self.default_ttl = default_ttl

    def _key(self, kind, gid):
        return f"{self.KEY_PREFIX}:{kind}:{self.shop_domain}:{gid}"

    def get_product(self, gid):
        return self.backend.get(self._key("product", gid))

    def put_product(self, product, ttl=None):
        self.backend.set(
            self._key("product", product.gid), product, ttl or self.default_ttl
        )

    def delete_product(self, gid):
        return 1 if self.backend.delete(self._key("product", gid)) else 0

    def get_collection(self, gid):
        return self.backend.get(self._key("collection", gid))

    def put_collection(self, collection, ttl=None):
        self.backend.set(
            self._key("collection", collection.gid),
            collection,
            ttl or self.default_ttl,
        )

    def delete_collection(self, gid):
        return 1 if self.backend.delete(self._key("collection", gid)) else 0
