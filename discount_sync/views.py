import hashlib
import json
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .middleware import verify_shopify_hmac
from .models import Shop, WebhookEvent
from .router import BILLING_TOPICS, CATALOG_TOPICS, DISCOUNT_TOPICS
from .services.pricing import (
    filter_for_purchase,
    is_finite_number,
    normalize_discounts,
    resolve_best_discounts,
)
from .tasks import process_billing_event, process_catalog_event, process_discount_event

logger = logging.getLogger(__name__)


class BaseShopifyWebhookView(APIView):
    """Base view for all Shopify webhook endpoints.

    Handles HMAC verification, idempotency, and event recording.
    Concrete subclasses define ``allowed_topics`` to validate that
    the incoming topic matches the endpoint category, and
    ``task_actor`` to specify the Dramatiq actor for async processing.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    allowed_topics = frozenset()
    task_actor = None

    def post(self, request):
        shop_domain = request.META.get("HTTP_X_SHOPIFY_SHOP_DOMAIN")
        if not shop_domain:
            return Response(
                {"error": "Missing X-Shopify-Shop-Domain header"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            shop = Shop.objects.get(domain=shop_domain, is_active=True)
        except Shop.DoesNotExist:
            logger.warning("No active shop for domain: %s", shop_domain)
            return Response(
                {"error": "Unknown shop domain"},
                status=status.HTTP_404_NOT_FOUND,
            )

        raw_body = request.body
        hmac_header = request.META.get("HTTP_X_SHOPIFY_HMAC_SHA256", "")
        if not verify_shopify_hmac(raw_body, hmac_header, shop.webhook_secret):
            logger.warning("HMAC verification failed for %s", shop_domain)
            return Response(
                {"error": "HMAC verification failed"},
                status=status.HTTP_401_UNAUTHORIZED,
            )

        topic = request.META.get("HTTP_X_SHOPIFY_TOPIC", "")
        webhook_id = request.META.get("HTTP_X_SHOPIFY_WEBHOOK_ID", "")
        if not webhook_id:
            return Response(
                {"error": "Missing X-Shopify-Webhook-Id header"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        if self.allowed_topics and topic not in self.allowed_topics:
            logger.warning(
                "Topic %s not allowed for %s", topic, self.__class__.__name__
            )
            return Response(
                {"error": f"Topic '{topic}' not handled by this endpoint"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            payload = json.loads(raw_body)
        except ValueError:
            return Response(
                {"error": "Invalid JSON body"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        # Shopify delivers at least once; repeated webhook IDs are acknowledged only.
        if WebhookEvent.objects.filter(webhook_id=webhook_id).exists():
            return Response(status=status.HTTP_200_OK)

        event = WebhookEvent.objects.create(
            webhook_id=webhook_id,
            topic=topic,
            shop_domain=shop_domain,
            shop=shop,
            status=WebhookEvent.Status.RECEIVED,
            payload_hash=hashlib.sha256(raw_body).hexdigest(),
        )

        if self.task_actor is not None:
            self.task_actor.send(event.id, payload)

        logger.info(
            "Recorded webhook event: topic=%s, webhook_id=%s, shop=%s",
            topic,
            webhook_id,
            shop_domain,
        )
        return Response(status=status.HTTP_200_OK)


class DiscountWebhookView(BaseShopifyWebhookView):
    """Handles discounts/create, discounts/update and discounts/delete."""

    allowed_topics = DISCOUNT_TOPICS
    task_actor = process_discount_event


class CatalogWebhookView(BaseShopifyWebhookView):
    """Handles products/update, products/delete, collections/update
    and collections/delete topics."""

    allowed_topics = CATALOG_TOPICS
    task_actor = process_catalog_event


class BillingWebhookView(BaseShopifyWebhookView):
    """Handles app_subscriptions/update."""

    allowed_topics = BILLING_TOPICS
    task_actor = process_billing_event


class BestDiscountsView(APIView):
    """Pick the automatic and coupon discount to display for each product.

    Request body::

        {
            "shop": "example.myshopify.com",
            "requests": [
                {
                    "productId": "gid://shopify/Product/1",
                    "variantId": "444",
                    "regularPriceCents": 10000,
                    "purchaseContext": "one_time",
                    "discounts": [{"type": "percentage", "value": 20, "isAutomatic": true}]
                }
            ]
        }

    Invalid entries are reported under ``errors`` without failing the batch;
    the response is 400 only when no entry could be resolved.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        body = request.data
        if not isinstance(body, dict):
            return Response(
                {"error": "Invalid request body"}, status=status.HTTP_400_BAD_REQUEST
            )

        entries = body.get("requests")
        if not isinstance(entries, list) or not entries:
            return Response(
                {"error": "requests must be a non-empty array"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        results = []
        errors = []
        for entry in entries:
            if not isinstance(entry, dict):
                errors.append({"error": "Invalid request entry"})
                continue
            result, error = self._resolve_entry(entry)
            if error:
                errors.append(error)
            else:
                results.append(result)

        logger.debug(
            "Best discount batch processed (shop=%s, requests=%d, results=%d, errors=%d)",
            body.get("shop"),
            len(entries),
            len(results),
            len(errors),
        )
        return Response(
            {"shop": body.get("shop"), "results": results, "errors": errors},
            status=status.HTTP_200_OK if results else status.HTTP_400_BAD_REQUEST,
        )

    def _resolve_entry(self, entry):
        product_id = entry.get("productId")
        variant_id = entry.get("variantId")
        price = entry.get("regularPriceCents")
        discounts = entry.get("discounts")

        if not product_id:
            return None, {"error": "productId is required"}
        if not is_finite_number(price):
            return None, {
                "error": "regularPriceCents must be a finite number",
                "productId": product_id,
            }
        if not isinstance(discounts, list):
            return None, {"error": "discounts must be an array", "productId": product_id}

        applicable = filter_for_purchase(
            discounts,
            purchase_context=entry.get("purchaseContext"),
            is_subscription=entry.get("isSubscription"),
        )
        if not applicable:
            best = resolve_best_discounts([], price, variant_id)
            best["basePriceCents"] = None
        else:
            normalized = normalize_discounts(applicable)
            if not normalized:
                return None, {
                    "error": "No valid discounts after normalization",
                    "productId": product_id,
                }
            best = resolve_best_discounts(normalized, price, variant_id)

        best["entryVariantId"] = variant_id
        return {"productId": product_id, "variantId": variant_id, "bestDiscounts": best}, None
