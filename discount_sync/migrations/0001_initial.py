# Generated manually for discount_sync app

import django.db.models.deletion
from django.db import migrations, models

TIER_CHOICES = [
    ("FREE", "Free"),
    ("BASIC", "Basic"),
    ("ADVANCED", "Advanced"),
]


def _id():
    return (
        "id",
        models.AutoField(
            auto_created=True,
            primary_key=True,
            serialize=False,
            verbose_name="ID",
        ),
    )


def _discount_fk(related_name):
    return (
        "discount",
        models.ForeignKey(
            on_delete=django.db.models.deletion.CASCADE,
            related_name=related_name,
            to="discount_sync.discount",
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Shop",
            fields=[
                _id(),
                ("domain", models.CharField(max_length=255, unique=True)),
                ("api_access_token", models.TextField(blank=True, default="")),
                (
                    "webhook_secret",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "api_version",
                    models.CharField(default="2025-01", max_length=10),
                ),
                (
                    "tier",
                    models.CharField(
                        choices=TIER_CHOICES, default="FREE", max_length=20
                    ),
                ),
                (
                    "live_discount_limit",
                    models.IntegerField(blank=True, default=1, null=True),
                ),
                (
                    "pending_tier",
                    models.CharField(
                        blank=True, choices=TIER_CHOICES, max_length=20, null=True
                    ),
                ),
                (
                    "pending_tier_effective_at",
                    models.DateTimeField(blank=True, null=True),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "discount_sync_shop",
            },
        ),
        migrations.CreateModel(
            name="Discount",
            fields=[
                _id(),
                ("gid", models.CharField(max_length=255, unique=True)),
                ("title", models.CharField(max_length=255)),
                ("status", models.CharField(max_length=32)),
                ("starts_at", models.DateTimeField()),
                ("ends_at", models.DateTimeField(blank=True, null=True)),
                ("summary", models.TextField(blank=True, null=True)),
                (
                    "discount_class",
                    models.CharField(default="UNKNOWN", max_length=32),
                ),
                (
                    "discount_type",
                    models.CharField(
                        choices=[("AUTO", "Auto"), ("CODE", "Code")],
                        default="AUTO",
                        max_length=8,
                    ),
                ),
                (
                    "target_type",
                    models.CharField(
                        choices=[
                            ("COLLECTION", "Collection"),
                            ("PRODUCT", "Product"),
                            ("UNKNOWN", "Unknown"),
                        ],
                        default="UNKNOWN",
                        max_length=16,
                    ),
                ),
                (
                    "value_type",
                    models.CharField(
                        choices=[("PERCENTAGE", "Percentage"), ("AMOUNT", "Amount")],
                        default="PERCENTAGE",
                        max_length=16,
                    ),
                ),
                ("percentage", models.FloatField(blank=True, null=True)),
                (
                    "amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                (
                    "currency_code",
                    models.CharField(blank=True, max_length=3, null=True),
                ),
                (
                    "applies_on_one_time_purchase",
                    models.BooleanField(default=False),
                ),
                ("applies_on_subscription", models.BooleanField(default=False)),
                ("customer_selection_all", models.BooleanField(default=True)),
                ("minimum_requirement", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="discounts",
                        to="discount_sync.shop",
                    ),
                ),
            ],
            options={
                "db_table": "discount_sync_discount",
                "indexes": [
                    models.Index(
                        fields=["shop", "ends_at"],
                        name="discount_shop_ends_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LiveDiscount",
            fields=[
                _id(),
                ("gid", models.CharField(max_length=255, unique=True)),
                ("summary", models.TextField(blank=True, default="")),
                ("discount_type", models.CharField(default="AUTO", max_length=8)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("LIVE", "Live"),
                            ("HIDDEN", "Hidden"),
                            ("SCHEDULED", "Scheduled"),
                            ("NOT_SUPPORTED", "Not Supported"),
                            ("UPGRADE_REQUIRED", "Upgrade Required"),
                        ],
                        default="HIDDEN",
                        max_length=20,
                    ),
                ),
                ("starts_at", models.DateTimeField()),
                ("ends_at", models.DateTimeField(blank=True, null=True)),
                (
                    "exclusion_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("NOT_PRODUCT_DISCOUNT", "Not Product Discount"),
                            ("BXGY_DISCOUNT", "Bxgy Discount"),
                            ("CUSTOMER_SEGMENT", "Customer Segment"),
                            ("MIN_REQUIREMENT", "Min Requirement"),
                            ("SUBSCRIPTION_TIER", "Subscription Tier"),
                            ("VARIANT_TIER", "Variant Tier"),
                            ("FIXED_AMOUNT_TIER", "Fixed Amount Tier"),
                            ("TIER_CHECK_FAILED", "Tier Check Failed"),
                        ],
                        max_length=32,
                        null=True,
                    ),
                ),
                ("exclusion_details", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="live_discounts",
                        to="discount_sync.shop",
                    ),
                ),
            ],
            options={
                "db_table": "discount_sync_live_discount",
                "indexes": [
                    models.Index(
                        fields=["shop", "status"],
                        name="live_discount_shop_status_idx",
                    ),
                    models.Index(
                        fields=["shop", "ends_at"],
                        name="live_discount_shop_ends_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DiscountTarget",
            fields=[
                _id(),
                (
                    "target_type",
                    models.CharField(
                        choices=[
                            ("COLLECTION", "Collection"),
                            ("PRODUCT", "Product"),
                            ("VARIANT", "Variant"),
                        ],
                        max_length=16,
                    ),
                ),
                ("target_gid", models.CharField(db_index=True, max_length=255)),
                _discount_fk("targets"),
            ],
            options={
                "db_table": "discount_sync_discount_target",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("discount", "target_type", "target_gid"),
                        name="unique_discount_target",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DiscountProduct",
            fields=[
                _id(),
                ("product_gid", models.CharField(db_index=True, max_length=255)),
                _discount_fk("products"),
            ],
            options={
                "db_table": "discount_sync_discount_product",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("discount", "product_gid"),
                        name="unique_discount_product",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DiscountVariant",
            fields=[
                _id(),
                ("variant_gid", models.CharField(db_index=True, max_length=255)),
                _discount_fk("variants"),
            ],
            options={
                "db_table": "discount_sync_discount_variant",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("discount", "variant_gid"),
                        name="unique_discount_variant",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DiscountCode",
            fields=[
                _id(),
                ("code", models.CharField(max_length=255)),
                _discount_fk("codes"),
            ],
            options={
                "db_table": "discount_sync_discount_code",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("discount", "code"),
                        name="unique_discount_code",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                _id(),
                ("gid", models.CharField(max_length=255, unique=True)),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("handle", models.CharField(blank=True, default="", max_length=255)),
                ("variant_ids", models.JSONField(blank=True, default=list)),
                ("single_price", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="products",
                        to="discount_sync.shop",
                    ),
                ),
            ],
            options={
                "db_table": "discount_sync_product",
            },
        ),
        migrations.CreateModel(
            name="Collection",
            fields=[
                _id(),
                ("gid", models.CharField(max_length=255, unique=True)),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("product_ids", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="collections",
                        to="discount_sync.shop",
                    ),
                ),
            ],
            options={
                "db_table": "discount_sync_collection",
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                _id(),
                ("webhook_id", models.CharField(db_index=True, max_length=255)),
                ("topic", models.CharField(max_length=100)),
                ("shop_domain", models.CharField(db_index=True, max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("processing", "Processing"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                            ("duplicate", "Duplicate"),
                        ],
                        default="received",
                        max_length=20,
                    ),
                ),
                ("payload_hash", models.CharField(max_length=64)),
                ("error_message", models.TextField(blank=True, default="")),
                ("processing_time_ms", models.IntegerField(null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "shop",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="discount_sync.shop",
                    ),
                ),
            ],
            options={
                "db_table": "discount_sync_webhook_event",
                "indexes": [
                    models.Index(
                        fields=["shop_domain", "topic", "created_at"],
                        name="webhook_shop_topic_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("webhook_id",),
                        name="unique_webhook_id",
                    ),
                ],
            },
        ),
    ]
