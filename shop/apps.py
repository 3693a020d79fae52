from django.apps import AppConfig
import logging

logger = logging.getLogger(__name__)


class ShopConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "shop"
    verbose_name = "Trường Tín store"

    gateway = None

    def ready(self):
        """
        Build the payment gateway once per process. A broken gateway
        configuration is logged but does not stop the API from serving
        catalog and COD traffic.
        """
        from .payments import build_gateway

        try:
            self.gateway = build_gateway()
            logger.info("Payment gateway ready: %s", type(self.gateway).__name__)
        except (ImportError, AttributeError) as e:
            logger.error("Payment gateway could not be configured: %s", e)
