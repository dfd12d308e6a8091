from django.apps import AppConfig


class DiscountSyncConfig(AppConfig):
    name = "discount_sync"
    verbose_name = "Discount Sync"
    default_auto_field = "django.db.models.AutoField"

    def ready(self):
        # Import handler modules to trigger topic registration in router.
        import discount_sync.handlers.billing  # noqa: F401
        import discount_sync.handlers.catalog  # noqa: F401
        import discount_sync.handlers.discounts  # noqa: F401
