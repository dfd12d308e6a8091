"""Tests for the webhook views (security, idempotency, routing) and best-discount API."""

import hashlib
import json
import uuid

import pytest
from rest_framework.test import APIClient

from discount_sync.middleware import compute_shopify_hmac
from discount_sync.models import WebhookEvent
from discount_sync.views import (
    BillingWebhookView,
    CatalogWebhookView,
    DiscountWebhookView,
)

from .factories import AUTO_GID, ShopFactory

pytestmark = pytest.mark.django_db

WEBHOOK_SECRET = "test-webhook-secret"
SHOP_DOMAIN = "test-shop.myshopify.com"
DISCOUNTS_URL = "/shopify/webhooks/discounts/"
CATALOG_URL = "/shopify/webhooks/catalog/"
BILLING_URL = "/shopify/webhooks/billing/"
BEST_DISCOUNTS_URL = "/shopify/best-discounts/"


def _hmac_header(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return compute_shopify_hmac(body, secret)


def _post_raw(client, url, body, topic="discounts/create", shop_domain=SHOP_DOMAIN,
              webhook_id=None, secret=WEBHOOK_SECRET):
    if webhook_id is None:
        webhook_id = f"wh_{uuid.uuid4().hex[:12]}"
    return client.post(
        url,
        data=body,
        content_type="application/json",
        HTTP_X_SHOPIFY_SHOP_DOMAIN=shop_domain,
        HTTP_X_SHOPIFY_HMAC_SHA256=_hmac_header(body, secret),
        HTTP_X_SHOPIFY_TOPIC=topic,
        HTTP_X_SHOPIFY_WEBHOOK_ID=webhook_id,
    )


def _post_webhook(client, url, payload, **kwargs):
    """POST a webhook with correct Shopify headers."""
    return _post_raw(client, url, json.dumps(payload).encode("utf-8"), **kwargs)


def _discount_payload():
    return {"admin_graphql_api_id": AUTO_GID, "title": "20% off", "status": "ACTIVE"}


class TestWebhookSecurity:
    def setup_method(self):
        self.client = APIClient()

    def test_missing_shop_domain_returns_400(self, shop):
        body = b'{"id": 1}'
        response = self.client.post(
            DISCOUNTS_URL,
            data=body,
            content_type="application/json",
            HTTP_X_SHOPIFY_HMAC_SHA256=_hmac_header(body),
            HTTP_X_SHOPIFY_TOPIC="discounts/create",
            HTTP_X_SHOPIFY_WEBHOOK_ID="wh_test",
        )
        assert response.status_code == 400
        assert "Missing" in response.json()["error"]

    def test_unknown_shop_domain_returns_404(self, shop):
        response = _post_webhook(
            self.client, DISCOUNTS_URL, _discount_payload(), shop_domain="unknown.myshopify.com"
        )
        assert response.status_code == 404

    def test_inactive_shop_returns_404(self):
        ShopFactory(domain=SHOP_DOMAIN, is_active=False)

        response = _post_webhook(self.client, DISCOUNTS_URL, _discount_payload())

        assert response.status_code == 404

    def test_invalid_hmac_returns_401(self, shop):
        response = _post_webhook(
            self.client, DISCOUNTS_URL, _discount_payload(), secret="wrong-secret"
        )
        assert response.status_code == 401
        assert not WebhookEvent.objects.exists()

    def test_shop_without_secret_returns_401(self):
        ShopFactory(domain=SHOP_DOMAIN, webhook_secret="")

        response = _post_webhook(self.client, DISCOUNTS_URL, _discount_payload())

        assert response.status_code == 401

    def test_missing_webhook_id_returns_400(self, shop):
        body = json.dumps(_discount_payload()).encode("utf-8")
        response = self.client.post(
            DISCOUNTS_URL,
            data=body,
            content_type="application/json",
            HTTP_X_SHOPIFY_SHOP_DOMAIN=SHOP_DOMAIN,
            HTTP_X_SHOPIFY_HMAC_SHA256=_hmac_header(body),
            HTTP_X_SHOPIFY_TOPIC="discounts/create",
        )
        assert response.status_code == 400

    def test_topic_not_handled_by_endpoint_returns_400(self, shop):
        response = _post_webhook(
            self.client, DISCOUNTS_URL, {"id": 1}, topic="products/update"
        )
        assert response.status_code == 400
        assert "not handled" in response.json()["error"]

    def test_invalid_json_returns_400(self, shop):
        response = _post_raw(self.client, DISCOUNTS_URL, b"{not json")
        assert response.status_code == 400


class TestWebhookRecording:
    def setup_method(self):
        self.client = APIClient()

    def test_event_is_recorded_and_enqueued(self, shop, mocker):
        mock_actor = mocker.patch.object(DiscountWebhookView, "task_actor")
        payload = _discount_payload()
        body = json.dumps(payload).encode("utf-8")

        response = _post_raw(self.client, DISCOUNTS_URL, body, webhook_id="wh_record")

        assert response.status_code == 200
        event = WebhookEvent.objects.get(webhook_id="wh_record")
        assert event.shop == shop
        assert event.topic == "discounts/create"
        assert event.status == WebhookEvent.Status.RECEIVED
        assert event.payload_hash == hashlib.sha256(body).hexdigest()
        mock_actor.send.assert_called_once_with(event.id, payload)

    def test_duplicate_webhook_id_is_acknowledged_once(self, shop, mocker):
        mock_actor = mocker.patch.object(DiscountWebhookView, "task_actor")

        first = _post_webhook(self.client, DISCOUNTS_URL, _discount_payload(), webhook_id="wh_dup")
        second = _post_webhook(self.client, DISCOUNTS_URL, _discount_payload(), webhook_id="wh_dup")

        assert first.status_code == 200
        assert second.status_code == 200
        assert WebhookEvent.objects.filter(webhook_id="wh_dup").count() == 1
        assert mock_actor.send.call_count == 1

    @pytest.mark.parametrize("topic", ["products/update", "products/delete", "collections/update", "collections/delete"])
    def test_catalog_topics(self, shop, mocker, topic):
        mock_actor = mocker.patch.object(CatalogWebhookView, "task_actor")

        response = _post_webhook(self.client, CATALOG_URL, {"id": 1001}, topic=topic)

        assert response.status_code == 200
        mock_actor.send.assert_called_once()

    def test_billing_topic(self, shop, mocker):
        mock_actor = mocker.patch.object(BillingWebhookView, "task_actor")
        payload = {"app_subscription": {"name": "Basic", "status": "ACTIVE"}}

        response = _post_webhook(self.client, BILLING_URL, payload, topic="app_subscriptions/update")

        assert response.status_code == 200
        event = WebhookEvent.objects.get(topic="app_subscriptions/update")
        mock_actor.send.assert_called_once_with(event.id, payload)

    def test_discount_topic_rejected_by_billing_endpoint(self, shop, mocker):
        mock_actor = mocker.patch.object(BillingWebhookView, "task_actor")

        response = _post_webhook(self.client, BILLING_URL, _discount_payload(), topic="discounts/update")

        assert response.status_code == 400
        mock_actor.send.assert_not_called()


def _entry(discounts, price=10000, variant_id=None, **extra):
    return {
        "productId": "gid://shopify/Product/1001",
        "variantId": variant_id,
        "regularPriceCents": price,
        "discounts": discounts,
        **extra,
    }


class TestBestDiscounts:
    def setup_method(self):
        self.client = APIClient()

    def _post(self, entries, shop=SHOP_DOMAIN):
        return self.client.post(
            BEST_DISCOUNTS_URL, {"shop": shop, "requests": entries}, format="json"
        )

    def test_percentage_discount(self):
        response = self._post([_entry([{"type": "percentage", "value": 20, "isAutomatic": True}])])

        assert response.status_code == 200
        body = response.json()
        assert body["shop"] == SHOP_DOMAIN
        assert body["errors"] == []
        best = body["results"][0]["bestDiscounts"]
        assert best["automaticEntry"] == {"finalPriceCents": 8000, "regularPriceCents": 10000}
        assert best["couponDiscount"] is None
        assert best["basePriceCents"] == 10000

    def test_coupon_suppressed_by_better_automatic(self):
        discounts = [
            {"type": "percentage", "value": 30, "isAutomatic": True},
            {"type": "PERCENTAGE", "value": "20", "isAutomatic": False},
        ]

        best = self._post([_entry(discounts)]).json()["results"][0]["bestDiscounts"]

        assert best["automaticEntry"]["finalPriceCents"] == 7000
        assert best["couponDiscount"] is None

    def test_variant_scope(self):
        scoped = {
            "type": "percentage",
            "value": 20,
            "isAutomatic": True,
            "variantScope": {"type": "PARTIAL", "ids": ["444"]},
        }

        results = self._post([_entry([scoped], variant_id=444), _entry([scoped], variant_id="555")]).json()["results"]

        assert results[0]["bestDiscounts"]["automaticEntry"]["finalPriceCents"] == 8000
        assert results[0]["bestDiscounts"]["entryVariantId"] == 444
        assert results[1]["bestDiscounts"]["automaticDiscount"] is None

    def test_partial_errors_do_not_fail_batch(self):
        response = self._post(
            [
                _entry([{"type": "fixed", "value": 2500, "isAutomatic": True}]),
                _entry([], price="abc"),
                {"discounts": []},
            ]
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["results"]) == 1
        assert len(body["errors"]) == 2

    def test_all_invalid_returns_400(self):
        response = self._post([_entry("not-a-list")])

        assert response.status_code == 400
        assert response.json()["errors"][0]["error"] == "discounts must be an array"

    def test_empty_requests_returns_400(self):
        assert self._post([]).status_code == 400

    def test_purchase_filter_removing_everything_is_not_an_error(self):
        entry = _entry(
            [{"type": "percentage", "value": 20, "isAutomatic": True}],
            purchaseContext="subscription",
        )

        response = self._post([entry])

        assert response.status_code == 200
        best = response.json()["results"][0]["bestDiscounts"]
        assert best["automaticDiscount"] is None
        assert best["basePriceCents"] is None

    def test_unusable_discounts_are_reported(self):
        response = self._post([_entry([{"type": "bogo", "value": 1}])])

        assert response.status_code == 400
        assert response.json()["errors"][0]["error"] == "No valid discounts after normalization"
