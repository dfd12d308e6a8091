"""Rate-limit-aware client for the Shopify Admin GraphQL API.

Every response carries ``extensions.cost.throttleStatus``.  The client reads it
on each call and, when the remaining bucket drops under the configured
threshold, sleeps long enough for the bucket to refill before handing the
result back.  Throttled requests, HTTP 429/5xx and transient GraphQL errors
are retried with exponential backoff plus jitter; anything else is returned
(GraphQL errors) or raised immediately (HTTP 4xx).

All waiting is blocking.  Callers are expected to run this inside a worker
(dramatiq actor or management command), never inside a request thread.
"""

import dataclasses
import logging
import math
import random
import time

import requests
from requests.exceptions import ConnectionError, Timeout

from ..conf import get_limits

logger = logging.getLogger(__name__)

THROTTLED_CODE = "THROTTLED"
TRANSIENT_CODES = frozenset({"INTERNAL_SERVER_ERROR", "SERVICE_UNAVAILABLE"})
TRANSIENT_MESSAGES = ("temporarily unavailable",)


class ShopifyAPIError(Exception):
    """Base error for Shopify Admin API calls."""

    def __init__(self, message, status_code=None, errors=None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class GraphQLThrottledError(ShopifyAPIError):
    """Raised when the request is still throttled after all retries."""


class GraphQLRequestError(ShopifyAPIError):
    """Raised on non-retryable HTTP failures or when retries are exhausted."""


@dataclasses.dataclass
class QueryResult:
    data: dict
    errors: list = None
    throttle_status: dict = None


# ---------------------------------------------------------------------------
# Response inspection helpers
# ---------------------------------------------------------------------------

def extract_throttle_status(body):
    """Return ``extensions.cost.throttleStatus`` or ``None``."""
    if not isinstance(body, dict):
        return None
    return ((body.get("extensions") or {}).get("cost") or {}).get("throttleStatus")


def is_throttled(body):
    for error in (body or {}).get("errors") or []:
        code = (error.get("extensions") or {}).get("code")
        if code == THROTTLED_CODE or "Throttled" in (error.get("message") or ""):
            return True
    return False


def is_transient(errors):
    for error in errors or []:
        code = (error.get("extensions") or {}).get("code")
        message = (error.get("message") or "").lower()
        if code in TRANSIENT_CODES:
            return True
        if any(marker in message for marker in TRANSIENT_MESSAGES):
            return True
    return False


def _error_messages(errors):
    return [e.get("message", str(e)) for e in errors or []]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ShopifyGraphQLClient:
    """Blocking GraphQL client for one shop.

    Usage::

        client = ShopifyGraphQLClient.for_shop(shop)
        result = client.query(GET_DISCOUNT_NODE_QUERY, {"id": gid})
        node = result.data.get("discountNode")
    """

    def __init__(
        self,
        shop_domain,
        access_token,
        api_version=None,
        limits=None,
        session=None,
        sleep=time.sleep,
    ):
        self.limits = limits or get_limits()
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.api_version = api_version or self.limits.api_version
        self.url = (
            f"https://{shop_domain}/admin/api/{self.api_version}/graphql.json"
        )
        self.session = session or requests.Session()
        self._sleep = sleep

    @classmethod
    def for_shop(cls, shop, **kwargs):
        """Build a client from a :class:`~discount_sync.models.Shop` row."""
        return cls(
            shop.domain,
            shop.api_access_token,
            api_version=shop.api_version,
            **kwargs,
        )

    def backoff(self, attempt):
        """Exponential backoff capped at ``max_delay`` with up to 10% jitter."""
        delay = min(self.limits.base_delay * (2 ** attempt), self.limits.max_delay)
        return delay + random.uniform(0, delay * 0.1)

    def _brake(self, throttle_status, attempt):
        """Sleep preemptively when the throttle bucket is nearly empty."""
        if not throttle_status:
            return
        available = throttle_status.get("currentlyAvailable")
        if available is None or available >= self.limits.throttle_threshold:
            return
        restore_rate = (
            throttle_status.get("restoreRate") or self.limits.default_restore_rate
        )
        deficit = self.limits.throttle_threshold - available
        wait = math.ceil(deficit / restore_rate * 1000) / 1000
        wait = min(wait, self.limits.max_delay)
        logger.warning(
            "GraphQL rate limit approaching for %s (available=%s, restore_rate=%s, "
            "attempt=%d), backing off %.3fs",
            self.shop_domain,
            available,
            restore_rate,
            attempt,
            wait,
        )
        self._sleep(wait)

    def _post(self, document, variables):
        headers = {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }
        payload = {"query": document, "variables": variables or {}}
        return self.session.post(
            self.url,
            json=payload,
            headers=headers,
            timeout=self.limits.request_timeout,
        )

    def query(self, document, variables=None):
        """Execute *document* and return a :class:`QueryResult`.

        Raises:
            GraphQLThrottledError: still throttled after ``max_retries``.
            GraphQLRequestError: non-retryable HTTP error, unparsable body,
                or transient failures after ``max_retries``.
        """
        max_retries = self.limits.max_retries
        last_error = None

        for attempt in range(max_retries + 1):
            can_retry = attempt < max_retries

            try:
                response = self._post(document, variables)
            except (ConnectionError, Timeout) as exc:
                last_error = exc
                if can_retry:
                    delay = self.backoff(attempt)
                    logger.warning(
                        "GraphQL request to %s failed (%s), retrying in %.3fs "
                        "(attempt %d/%d)",
                        self.shop_domain, exc, delay, attempt + 1, max_retries,
                    )
                    self._sleep(delay)
                    continue
                raise GraphQLRequestError(
                    f"GraphQL request failed after {max_retries} retries: {exc}"
                ) from exc

            status_code = response.status_code
            if status_code == 429 or 500 <= status_code < 600:
                last_error = ShopifyAPIError(
                    f"HTTP {status_code}", status_code=status_code
                )
                if can_retry:
                    delay = self.backoff(attempt)
                    logger.warning(
                        "GraphQL HTTP %d from %s, retrying in %.3fs (attempt %d/%d)",
                        status_code, self.shop_domain, delay, attempt + 1, max_retries,
                    )
                    self._sleep(delay)
                    continue
                error_cls = GraphQLThrottledError if status_code == 429 else GraphQLRequestError
                raise error_cls(
                    f"GraphQL HTTP {status_code} after {max_retries} retries",
                    status_code=status_code,
                )

            if not response.ok:
                raise GraphQLRequestError(
                    f"GraphQL HTTP {status_code}: {response.text[:500]}",
                    status_code=status_code,
                )

            try:
                body = response.json()
            except ValueError as exc:
                raise GraphQLRequestError(
                    f"Unparsable GraphQL response from {self.shop_domain}",
                    status_code=status_code,
                ) from exc

            throttle_status = extract_throttle_status(body)
            self._brake(throttle_status, attempt)

            errors = body.get("errors") or None

            if is_throttled(body):
                if can_retry:
                    delay = self.backoff(attempt)
                    logger.warning(
                        "GraphQL request throttled for %s, retrying in %.3fs "
                        "(attempt %d/%d)",
                        self.shop_domain, delay, attempt + 1, max_retries,
                    )
                    self._sleep(delay)
                    continue
                logger.error(
                    "GraphQL request throttled after max retries for %s: %s",
                    self.shop_domain,
                    _error_messages(errors),
                )
                raise GraphQLThrottledError(
                    "GraphQL request throttled after max retries", errors=errors
                )

            if errors and is_transient(errors):
                last_error = ShopifyAPIError(
                    "; ".join(_error_messages(errors)), errors=errors
                )
                if can_retry:
                    delay = self.backoff(attempt)
                    logger.warning(
                        "GraphQL transient error for %s, retrying in %.3fs: %s",
                        self.shop_domain, delay, _error_messages(errors),
                    )
                    self._sleep(delay)
                    continue
                raise GraphQLRequestError(
                    f"GraphQL transient errors after {max_retries} retries",
                    errors=errors,
                )

            if errors:
                logger.error(
                    "GraphQL query returned errors for %s: %s",
                    self.shop_domain,
                    _error_messages(errors),
                )

            return QueryResult(
                data=body.get("data") or {},
                errors=errors,
                throttle_status=throttle_status,
            )

        raise GraphQLRequestError(
            f"GraphQL request failed after {max_retries} retries: {last_error}"
        )
