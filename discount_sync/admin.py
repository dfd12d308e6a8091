from django.contrib import admin, messages

from .models import Discount, LiveDiscount, Shop, WebhookEvent
from .services.classifier import set_live_status


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    list_display = (
        "domain",
        "tier",
        "live_discount_limit",
        "pending_tier",
        "is_active",
        "api_version",
        "updated_at",
    )
    list_filter = (
        "is_active",
        "tier",
    )
    search_fields = ("domain",)
    readonly_fields = ("created_at", "updated_at")


@admin.register(Discount)
class DiscountAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "gid",
        "shop",
        "status",
        "discount_type",
        "value_type",
        "starts_at",
        "ends_at",
    )
    list_filter = (
        "status",
        "discount_type",
        "target_type",
        "value_type",
    )
    search_fields = (
        "gid",
        "title",
        "shop__domain",
    )
    raw_id_fields = ("shop",)
    readonly_fields = ("created_at", "updated_at")


@admin.register(LiveDiscount)
class LiveDiscountAdmin(admin.ModelAdmin):
    list_display = (
        "gid",
        "shop",
        "status",
        "discount_type",
        "exclusion_reason",
        "starts_at",
        "ends_at",
    )
    list_filter = (
        "status",
        "exclusion_reason",
    )
    search_fields = (
        "gid",
        "shop__domain",
    )
    raw_id_fields = ("shop",)
    readonly_fields = ("exclusion_reason", "exclusion_details", "created_at", "updated_at")
    actions = ("make_live", "make_hidden")

    def _set_status(self, request, queryset, status):
        changed = 0
        for row in queryset.select_related("shop"):
            result = set_live_status(row.gid, row.shop.domain, status)
            if result:
                changed += 1
            else:
                self.message_user(
                    request, f"{row.gid}: {result.message}", level=messages.WARNING
                )
        self.message_user(request, f"{changed} discount(s) set to {status}.")

    @admin.action(description="Show selected discounts on the storefront")
    def make_live(self, request, queryset):
        self._set_status(request, queryset, LiveDiscount.Status.LIVE)

    @admin.action(description="Hide selected discounts from the storefront")
    def make_hidden(self, request, queryset):
        self._set_status(request, queryset, LiveDiscount.Status.HIDDEN)


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = (
        "webhook_id",
        "topic",
        "shop_domain",
        "status",
        "processing_time_ms",
        "created_at",
    )
    list_filter = (
        "status",
        "topic",
    )
    search_fields = (
        "webhook_id",
        "shop_domain",
    )
    raw_id_fields = ("shop",)
    readonly_fields = ("payload_hash", "processing_time_ms")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
