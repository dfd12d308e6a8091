from django.db import models

from .conf import DEFAULT_API_VERSION


class Shop(models.Model):
    """Per-tenant Shopify connection plus the plan tier record. One row per shop."""

    class Tier(models.TextChoices):
        FREE = "FREE"
        BASIC = "BASIC"
        ADVANCED = "ADVANCED"

    domain = models.CharField(max_length=255, unique=True)
    api_access_token = models.TextField(blank=True, default="")
    webhook_secret = models.CharField(max_length=255, blank=True, default="")
    api_version = models.CharField(max_length=10, default=DEFAULT_API_VERSION)
    tier = models.CharField(max_length=20, choices=Tier.choices, default=Tier.FREE)
    live_discount_limit = models.IntegerField(null=True, blank=True, default=1)
    pending_tier = models.CharField(
        max_length=20, choices=Tier.choices, null=True, blank=True
    )
    pending_tier_effective_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "discount_sync_shop"

    def __str__(self):
        return f"{self.domain} ({self.tier})"


class Discount(models.Model):
    """Full discount record synced from Shopify. Read-through cache of upstream."""

    class DiscountType(models.TextChoices):
        AUTO = "AUTO"
        CODE = "CODE"

    class TargetType(models.TextChoices):
        COLLECTION = "COLLECTION"
        PRODUCT = "PRODUCT"
        UNKNOWN = "UNKNOWN"

    class ValueType(models.TextChoices):
        PERCENTAGE = "PERCENTAGE"
        AMOUNT = "AMOUNT"

    gid = models.CharField(max_length=255, unique=True)
    shop = models.ForeignKey(Shop, on_delete=models.CASCADE, related_name="discounts")
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=32)
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField(null=True, blank=True)
    summary = models.TextField(null=True, blank=True)
    discount_class = models.CharField(max_length=32, default="UNKNOWN")
    discount_type = models.CharField(
        max_length=8, choices=DiscountType.choices, default=DiscountType.AUTO
    )
    target_type = models.CharField(
        max_length=16, choices=TargetType.choices, default=TargetType.UNKNOWN
    )
    value_type = models.CharField(
        max_length=16, choices=ValueType.choices, default=ValueType.PERCENTAGE
    )
    percentage = models.FloatField(null=True, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    currency_code = models.CharField(max_length=3, null=True, blank=True)
    applies_on_one_time_purchase = models.BooleanField(default=False)
    applies_on_subscription = models.BooleanField(default=False)
    customer_selection_all = models.BooleanField(default=True)
    minimum_requirement = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "discount_sync_discount"
        indexes = [
            models.Index(fields=["shop", "ends_at"], name="discount_shop_ends_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.gid})"


class LiveDiscount(models.Model):
    """Storefront-facing, pre-classified projection of a :class:`Discount`.

    ``exclusion_reason`` is set if and only if ``status`` is in
    :data:`EXCLUDED_STATUSES`.
    """

    class Status(models.TextChoices):
        LIVE = "LIVE"
        HIDDEN = "HIDDEN"
        SCHEDULED = "SCHEDULED"
        NOT_SUPPORTED = "NOT_SUPPORTED"
        UPGRADE_REQUIRED = "UPGRADE_REQUIRED"

    class ExclusionReason(models.TextChoices):
        NOT_PRODUCT_DISCOUNT = "NOT_PRODUCT_DISCOUNT"
        BXGY_DISCOUNT = "BXGY_DISCOUNT"
        CUSTOMER_SEGMENT = "CUSTOMER_SEGMENT"
        MIN_REQUIREMENT = "MIN_REQUIREMENT"
        SUBSCRIPTION_TIER = "SUBSCRIPTION_TIER"
        VARIANT_TIER = "VARIANT_TIER"
        FIXED_AMOUNT_TIER = "FIXED_AMOUNT_TIER"
        TIER_CHECK_FAILED = "TIER_CHECK_FAILED"

    gid = models.CharField(max_length=255, unique=True)
    shop = models.ForeignKey(
        Shop, on_delete=models.CASCADE, related_name="live_discounts"
    )
    summary = models.TextField(blank=True, default="")
    discount_type = models.CharField(max_length=8, default="AUTO")
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.HIDDEN
    )
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField(null=True, blank=True)
    exclusion_reason = models.CharField(
        max_length=32, choices=ExclusionReason.choices, null=True, blank=True
    )
    exclusion_details = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "discount_sync_live_discount"
        indexes = [
            models.Index(fields=["shop", "status"], name="live_discount_shop_status_idx"),
            models.Index(fields=["shop", "ends_at"], name="live_discount_shop_ends_idx"),
        ]

    def __str__(self):
        return f"{self.gid} [{self.status}]"


# Statuses a merchant can toggle between; kept verbatim on routine re-sync.
PRESERVABLE_STATUSES = frozenset(
    {LiveDiscount.Status.LIVE, LiveDiscount.Status.HIDDEN, LiveDiscount.Status.SCHEDULED}
)
EXCLUDED_STATUSES = frozenset(
    {LiveDiscount.Status.NOT_SUPPORTED, LiveDiscount.Status.UPGRADE_REQUIRED}
)


class DiscountTarget(models.Model):
    """Abstract targeting reference (collection, product or variant GID)."""

    class TargetType(models.TextChoices):
        COLLECTION = "COLLECTION"
        PRODUCT = "PRODUCT"
        VARIANT = "VARIANT"

    discount = models.ForeignKey(
        Discount, on_delete=models.CASCADE, related_name="targets"
    )
    target_type = models.CharField(max_length=16, choices=TargetType.choices)
    target_gid = models.CharField(max_length=255, db_index=True)

    class Meta:
        db_table = "discount_sync_discount_target"
        constraints = [
            models.UniqueConstraint(
                fields=["discount", "target_type", "target_gid"],
                name="unique_discount_target",
            ),
        ]


class DiscountProduct(models.Model):
    discount = models.ForeignKey(
        Discount, on_delete=models.CASCADE, related_name="products"
    )
    product_gid = models.CharField(max_length=255, db_index=True)

    class Meta:
        db_table = "discount_sync_discount_product"
        constraints = [
            models.UniqueConstraint(
                fields=["discount", "product_gid"], name="unique_discount_product"
            ),
        ]


class DiscountVariant(models.Model):
    discount = models.ForeignKey(
        Discount, on_delete=models.CASCADE, related_name="variants"
    )
    variant_gid = models.CharField(max_length=255, db_index=True)

    class Meta:
        db_table = "discount_sync_discount_variant"
        constraints = [
            models.UniqueConstraint(
                fields=["discount", "variant_gid"], name="unique_discount_variant"
            ),
        ]


class DiscountCode(models.Model):
    discount = models.ForeignKey(
        Discount, on_delete=models.CASCADE, related_name="codes"
    )
    code = models.CharField(max_length=255)

    class Meta:
        db_table = "discount_sync_discount_code"
        constraints = [
            models.UniqueConstraint(
                fields=["discount", "code"], name="unique_discount_code"
            ),
        ]


class Product(models.Model):
    """Local mirror of a Shopify product's handle and variant GIDs."""

    gid = models.CharField(max_length=255, unique=True)
    shop = models.ForeignKey(Shop, on_delete=models.CASCADE, related_name="products")
    title = models.CharField(max_length=255, blank=True, default="")
    handle = models.CharField(max_length=255, blank=True, default="")
    variant_ids = models.JSONField(default=list, blank=True)
    single_price = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "discount_sync_product"

    def __str__(self):
        return f"{self.title or self.handle} ({self.gid})"


class Collection(models.Model):
    """Local mirror of a Shopify collection's title and member product GIDs."""

    gid = models.CharField(max_length=255, unique=True)
    shop = models.ForeignKey(
        Shop, on_delete=models.CASCADE, related_name="collections"
    )
    title = models.CharField(max_length=255, blank=True, default="")
    product_ids = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "discount_sync_collection"

    def __str__(self):
        return f"{self.title} ({self.gid})"


class WebhookEvent(models.Model):
    """Audit log for idempotency and debugging. Every webhook received is recorded."""

    class Status(models.TextChoices):
        RECEIVED = "received"
        PROCESSING = "processing"
        SUCCESS = "success"
        FAILED = "failed"
        DUPLICATE = "duplicate"

    webhook_id = models.CharField(max_length=255, db_index=True)
    topic = models.CharField(max_length=100)
    shop_domain = models.CharField(max_length=255, db_index=True)
    shop = models.ForeignKey(Shop, on_delete=models.SET_NULL, null=True)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.RECEIVED
    )
    payload_hash = models.CharField(max_length=64)
    error_message = models.TextField(blank=True, default="")
    processing_time_ms = models.IntegerField(null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "discount_sync_webhook_event"
        indexes = [
            models.Index(
                fields=["shop_domain", "topic", "created_at"],
                name="webhook_shop_topic_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["webhook_id"], name="unique_webhook_id"
            ),
        ]

    def __str__(self):
        return f"{self.topic} [{self.status}] ({self.webhook_id})"
