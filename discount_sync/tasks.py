import logging
import time

import dramatiq
from datadog import statsd
from requests.exceptions import ConnectionError, Timeout

from .models import Shop, WebhookEvent
from .router import get_handler
from .services.graphql_client import GraphQLThrottledError, ShopifyAPIError
from .services.results import SyncFailed

logger = logging.getLogger(__name__)

DISCOUNT_WEBHOOK_QUEUE = "discount_webhooks"
DISCOUNT_SYNC_QUEUE = "discount_sync"


def should_retry(retries_so_far, exception):
    """Return True for transient errors, False for permanent ones.

    Transient (retry): ConnectionError, Timeout, throttling, HTTP 5xx,
    HTTP 429 and sync failures classified as transient.
    Permanent (fail): ValueError, KeyError, HTTP 4xx (except 429), etc.
    """
    if isinstance(exception, GraphQLThrottledError):
        return True
    if isinstance(exception, SyncFailed):
        return exception.is_transient
    if isinstance(exception, ShopifyAPIError):
        status_code = exception.status_code
        return status_code is None or status_code == 429 or 500 <= status_code < 600
    # requests' HTTPError is an OSError too, so its status decides first.
    if getattr(exception, "response", None) is not None:
        status_code = exception.response.status_code
        return status_code == 429 or 500 <= status_code < 600
    return isinstance(exception, (ConnectionError, Timeout, OSError))


def _process_event(webhook_event_id, payload):
    """Run the registered handler for a recorded webhook event.

    Transitions the event to processing, records the outcome with elapsed
    time and emits statsd counters; handler exceptions are re-raised so
    dramatiq can decide on a retry.
    """
    try:
        event = WebhookEvent.objects.select_related("shop").get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error("WebhookEvent %s not found", webhook_event_id)
        return

    event.status = WebhookEvent.Status.PROCESSING
    event.save(update_fields=["status", "updated_at"])

    tags = [f"topic:{event.topic}", f"shop_domain:{event.shop_domain}"]
    statsd.increment("discount_sync.webhook.received", tags=tags)

    start = time.monotonic()
    try:
        handler = get_handler(event.topic)
        if handler is None:
            logger.warning("No handler registered for topic: %s", event.topic)
            event.status = WebhookEvent.Status.FAILED
            event.error_message = f"No handler for topic: {event.topic}"
        elif event.shop is None:
            logger.warning("WebhookEvent %s has no shop", webhook_event_id)
            event.status = WebhookEvent.Status.FAILED
            event.error_message = f"Unknown shop: {event.shop_domain}"
        else:
            handler(event, payload)
            event.status = WebhookEvent.Status.SUCCESS
    except Exception as exc:
        event.status = WebhookEvent.Status.FAILED
        event.error_message = str(exc)[:2000]
        logger.exception(
            "Failed to process webhook event %s (topic=%s)",
            webhook_event_id,
            event.topic,
        )
        raise
    finally:
        event.processing_time_ms = int((time.monotonic() - start) * 1000)
        event.save(
            update_fields=[
                "status",
                "error_message",
                "processing_time_ms",
                "updated_at",
            ]
        )
        result_tags = tags + [f"status:{event.status}"]
        if event.status == WebhookEvent.Status.SUCCESS:
            statsd.increment("discount_sync.webhook.processed", tags=result_tags)
        elif event.status == WebhookEvent.Status.FAILED:
            statsd.increment("discount_sync.webhook.failed", tags=result_tags)
        statsd.histogram(
            "discount_sync.webhook.processing_time_ms",
            event.processing_time_ms,
            tags=result_tags,
        )


@dramatiq.actor(
    queue_name=DISCOUNT_WEBHOOK_QUEUE,
    max_retries=5,
    min_backoff=30_000,
    max_backoff=600_000,
    retry_when=should_retry,
)
def process_discount_event(webhook_event_id, payload):
    """Process a discounts/* webhook event asynchronously."""
    _process_event(webhook_event_id, payload)


@dramatiq.actor(
    queue_name=DISCOUNT_WEBHOOK_QUEUE,
    max_retries=5,
    min_backoff=30_000,
    max_backoff=600_000,
    retry_when=should_retry,
)
def process_catalog_event(webhook_event_id, payload):
    """Process a products/* or collections/* webhook event asynchronously."""
    _process_event(webhook_event_id, payload)


@dramatiq.actor(
    queue_name=DISCOUNT_WEBHOOK_QUEUE,
    max_retries=5,
    min_backoff=30_000,
    max_backoff=600_000,
    retry_when=should_retry,
)
def process_billing_event(webhook_event_id, payload):
    """Process an app_subscriptions/update webhook event asynchronously."""
    _process_event(webhook_event_id, payload)


@dramatiq.actor(
    queue_name=DISCOUNT_SYNC_QUEUE,
    max_retries=3,
    min_backoff=60_000,
    max_backoff=900_000,
    time_limit=3_600_000,
    retry_when=should_retry,
)
def reprocess_shop(shop_domain, initial=False):
    """Full re-sync of one shop; ``initial`` recomputes every status."""
    from .services.reprocess import Reprocessor

    try:
        shop = Shop.objects.get(domain=shop_domain, is_active=True)
    except Shop.DoesNotExist:
        logger.error("Active shop %s not found for reprocess", shop_domain)
        return

    tags = [f"shop_domain:{shop_domain}", f"initial:{str(initial).lower()}"]
    start = time.monotonic()
    reprocessor = Reprocessor(shop)
    counts = reprocessor.initial_import() if initial else reprocessor.reprocess_all()

    statsd.histogram(
        "discount_sync.reprocess.duration_ms",
        int((time.monotonic() - start) * 1000),
        tags=tags,
    )
    for key, value in counts.items():
        statsd.gauge(f"discount_sync.reprocess.{key}", value, tags=tags)
    return counts
