"""Tests for the dramatiq actors and their retry policy."""

import uuid
from unittest.mock import MagicMock

import pytest
from requests.exceptions import ConnectionError, HTTPError, Timeout

from discount_sync.models import WebhookEvent
from discount_sync.services.graphql_client import GraphQLThrottledError, ShopifyAPIError
from discount_sync.services.results import ErrorKind, SyncFailed
from discount_sync.tasks import _process_event, reprocess_shop, should_retry

from .factories import AUTO_GID, ShopFactory

pytestmark = pytest.mark.django_db


def _make_event(shop, topic="discounts/update"):
    return WebhookEvent.objects.create(
        webhook_id=str(uuid.uuid4()),
        topic=topic,
        shop_domain=shop.domain if shop else "gone.myshopify.com",
        shop=shop,
        payload_hash="0" * 64,
    )


def _http_error(status_code):
    response = MagicMock()
    response.status_code = status_code
    return HTTPError(response=response)


class TestShouldRetry:
    @pytest.mark.parametrize(
        "exception",
        [
            ConnectionError(),
            Timeout(),
            GraphQLThrottledError("Throttled"),
            SyncFailed(ErrorKind.TRANSIENT, "HTTP 503"),
            ShopifyAPIError("HTTP 503", status_code=503),
            ShopifyAPIError("HTTP 429", status_code=429),
            ShopifyAPIError("network"),
            _http_error(502),
        ],
    )
    def test_transient(self, exception):
        assert should_retry(0, exception) is True

    @pytest.mark.parametrize(
        "exception",
        [
            ValueError("bad payload"),
            KeyError("id"),
            SyncFailed(ErrorKind.PERMANENT, "constraint"),
            SyncFailed(ErrorKind.NOT_FOUND),
            ShopifyAPIError("HTTP 404", status_code=404),
            _http_error(403),
        ],
    )
    def test_permanent(self, exception):
        assert should_retry(0, exception) is False


class TestProcessEvent:
    @pytest.fixture(autouse=True)
    def _statsd(self, mocker):
        self.statsd = mocker.patch("discount_sync.tasks.statsd")

    def test_success(self, shop, mocker):
        handler = MagicMock()
        mocker.patch("discount_sync.tasks.get_handler", return_value=handler)
        event = _make_event(shop)
        payload = {"admin_graphql_api_id": AUTO_GID}

        _process_event(event.id, payload)

        event.refresh_from_db()
        assert event.status == WebhookEvent.Status.SUCCESS
        assert event.processing_time_ms is not None
        handler.assert_called_once()
        assert handler.call_args[0][0].id == event.id
        assert handler.call_args[0][1] == payload
        metrics = [c.args[0] for c in self.statsd.increment.call_args_list]
        assert metrics == ["discount_sync.webhook.received", "discount_sync.webhook.processed"]

    def test_handler_failure_is_recorded_and_reraised(self, shop, mocker):
        handler = MagicMock(side_effect=SyncFailed(ErrorKind.TRANSIENT, "HTTP 503"))
        mocker.patch("discount_sync.tasks.get_handler", return_value=handler)
        event = _make_event(shop)

        with pytest.raises(SyncFailed):
            _process_event(event.id, {})

        event.refresh_from_db()
        assert event.status == WebhookEvent.Status.FAILED
        assert event.error_message == "HTTP 503"
        metrics = [c.args[0] for c in self.statsd.increment.call_args_list]
        assert "discount_sync.webhook.failed" in metrics

    def test_unknown_topic_fails_without_raising(self, shop):
        event = _make_event(shop, topic="orders/create")

        _process_event(event.id, {})

        event.refresh_from_db()
        assert event.status == WebhookEvent.Status.FAILED
        assert "No handler" in event.error_message

    def test_event_without_shop(self, mocker):
        handler = MagicMock()
        mocker.patch("discount_sync.tasks.get_handler", return_value=handler)
        event = _make_event(None)

        _process_event(event.id, {})

        event.refresh_from_db()
        assert event.status == WebhookEvent.Status.FAILED
        handler.assert_not_called()

    def test_missing_event_is_ignored(self):
        assert _process_event(999_999, {}) is None
        self.statsd.increment.assert_not_called()


class TestReprocessShop:
    @pytest.fixture(autouse=True)
    def _mocks(self, mocker):
        self.statsd = mocker.patch("discount_sync.tasks.statsd")
        self.reprocessor_cls = mocker.patch("discount_sync.services.reprocess.Reprocessor")
        self.reprocessor = self.reprocessor_cls.return_value
        self.counts = {"total": 2, "processed": 2, "updated": 1, "added": 1, "deleted": 0, "backfilled": 0}

    def test_routine_reprocess(self, shop):
        self.reprocessor.reprocess_all.return_value = self.counts

        assert reprocess_shop(shop.domain) == self.counts

        self.reprocessor_cls.assert_called_once_with(shop)
        self.reprocessor.initial_import.assert_not_called()
        self.statsd.gauge.assert_any_call(
            "discount_sync.reprocess.processed",
            2,
            tags=["shop_domain:test-shop.myshopify.com", "initial:false"],
        )

    def test_initial_import(self, shop):
        self.reprocessor.initial_import.return_value = self.counts

        reprocess_shop(shop.domain, initial=True)

        self.reprocessor.initial_import.assert_called_once_with()
        self.reprocessor.reprocess_all.assert_not_called()

    def test_inactive_shop_is_skipped(self):
        ShopFactory(domain="closed.myshopify.com", is_active=False)

        assert reprocess_shop("closed.myshopify.com") is None
        self.reprocessor_cls.assert_not_called()
