"""
Signal handlers for the settings app.
Keeps the AppSettings cache and the printer registry in step with the database.
"""

from django.db import transaction
from django.db.models.signals import m2m_changed, post_delete, post_save
from django.dispatch import receiver

from .models import GlobalSettings, Printer, PrinterCategoryMapping
import logging

logger = logging.getLogger(__name__)


@receiver(post_save, sender=GlobalSettings)
def reload_app_settings(sender, instance, **kwargs):
    """
    Reload the AppSettings cache when GlobalSettings are updated so receipts
    pick up a new business name without a restart.
    """
    from .config import app_settings

    app_settings.reload()
    logger.info(f"Configuration cache updated: {app_settings}")


@receiver(post_save, sender=Printer)
@receiver(post_delete, sender=Printer)
@receiver(post_save, sender=PrinterCategoryMapping)
@receiver(post_delete, sender=PrinterCategoryMapping)
@receiver(m2m_changed, sender=Printer.categories.through)
def refresh_printer_registry(sender, instance, **kwargs):
    """
    Reload printer connections once the configuration change is committed.
    """
    if kwargs.get("action", "").startswith("pre_"):
        return

    from printing.services import get_print_service

    def _refresh():
        try:
            get_print_service().registry.refresh()
        except Exception as e:
            logger.error(f"Failed to refresh printer registry after {sender.__name__} change: {e}")

    transaction.on_commit(_refresh)
