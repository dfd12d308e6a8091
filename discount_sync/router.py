import logging

logger = logging.getLogger(__name__)

# Topic sets for each webhook view category.
# Used by views to validate that the received topic matches the endpoint.
DISCOUNT_TOPICS = frozenset(
    {
        "discounts/create",
        "discounts/update",
        "discounts/delete",
    }
)

CATALOG_TOPICS = frozenset(
    {
        "products/update",
        "products/delete",
        "collections/update",
        "collections/delete",
    }
)

BILLING_TOPICS = frozenset(
    {
        "app_subscriptions/update",
    }
)

# Registry mapping Shopify topic strings to handler callables.
# Handlers are registered by the handler modules (discounts.py, catalog.py,
# billing.py) at import time, triggered from DiscountSyncConfig.ready().
_topic_handlers = {}


def register_handler(topic, handler):
    """Register a handler callable for a Shopify webhook topic."""
    _topic_handlers[topic] = handler
    logger.debug("Registered handler for topic: %s", topic)


def get_handler(topic):
    """Return the handler callable for the given topic, or None."""
    return _topic_handlers.get(topic)
