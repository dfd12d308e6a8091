from django.urls import path

from .views import (
    BestDiscountsView,
    BillingWebhookView,
    CatalogWebhookView,
    DiscountWebhookView,
)

urlpatterns = [
    path(
        "webhooks/discounts/",
        DiscountWebhookView.as_view(),
        name="shopify_discount_webhook",
    ),
    path(
        "webhooks/catalog/",
        CatalogWebhookView.as_view(),
        name="shopify_catalog_webhook",
    ),
    path(
        "webhooks/billing/",
        BillingWebhookView.as_view(),
        name="shopify_billing_webhook",
    ),
    path(
        "best-discounts/",
        BestDiscountsView.as_view(),
        name="best_discounts",
    ),
]
