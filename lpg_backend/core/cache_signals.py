"""
Cache invalidation signals
Automatically invalidate tenant caches when data changes
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import (
    invalidate_tenant_cache,
    PRODUCTS_LIST_PREFIX, DASHBOARD_PREFIX, DAILY_SALES_PREFIX,
)

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

# model name -> cache prefixes to drop for the instance's tenant
INVALIDATION_MAP = {
    'Product': [PRODUCTS_LIST_PREFIX, DASHBOARD_PREFIX],
    'Company': [PRODUCTS_LIST_PREFIX],
    'CylinderSize': [PRODUCTS_LIST_PREFIX],
    'Driver': [DASHBOARD_PREFIX],
    'Sale': [DASHBOARD_PREFIX, DAILY_SALES_PREFIX],
    'Shipment': [DASHBOARD_PREFIX],
    'ReceivableRecord': [DASHBOARD_PREFIX, DAILY_SALES_PREFIX],
    'Expense': [DASHBOARD_PREFIX],
    'InventoryRecord': [DASHBOARD_PREFIX],
}


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations (onboarding, recalculation commands).
    Remember to manually invalidate cache after the block!
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def invalidate_tenant_caches(tenant_id, prefixes):
    for prefix in prefixes:
        invalidate_tenant_cache(prefix, tenant_id)
    logger.debug(f"Invalidated caches {prefixes} for tenant {tenant_id}")


@receiver([post_save, post_delete])
def invalidate_tenant_data_cache(sender, instance, **kwargs):
    """Drop cached lists/dashboards of the tenant that owns the changed row"""
    if is_suspended():
        return

    prefixes = INVALIDATION_MAP.get(sender.__name__)
    if not prefixes:
        return

    tenant_id = getattr(instance, 'tenant_id', None)
    if tenant_id is None:
        return

    # Invalidate AFTER the DB commit so the cache is not refilled with stale rows
    transaction.on_commit(lambda: invalidate_tenant_caches(tenant_id, prefixes))
