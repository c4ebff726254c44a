"""
Sale writes and the receivable / inventory side effects that go with them.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum, Count, Q

from lpg_backend.core.cache_utils import invalidate_tenant_cache, DASHBOARD_PREFIX, DAILY_SALES_PREFIX
from lpg_backend.inventory.services import record_sale_movement, sync_sale_movement, delete_sale_movements
from lpg_backend.receivables.services import recalculate_driver_cascade
from .models import Sale

logger = logging.getLogger(__name__)

MAX_QUANTITY = 1000


def business_validation_errors(sale):
    """Cross-field rules on a sale whose totals are already recomputed"""
    errors = []
    if Decimal(sale.cash_deposited or 0) > sale.net_value:
        errors.append('Cash deposited cannot exceed net value')
    if Decimal(sale.discount or 0) > sale.total_value:
        errors.append('Discount cannot exceed total value')
    if sale.sale_type == Sale.SALE_TYPE_REFILL and sale.cylinders_deposited <= 0:
        errors.append('Refill sales require cylinders to be deposited')
    if sale.sale_type == Sale.SALE_TYPE_PACKAGE and sale.cylinders_deposited != 0:
        errors.append('Package sales cannot have cylinders deposited')
    if sale.payment_type == Sale.PAYMENT_CASH and sale.is_on_credit:
        errors.append('Cash sales cannot be on credit')
    return errors


def refresh_receivables(sale_or_driver, date, tenant=None):
    """
    Recalculate the driver's receivables from `date` forward.
    Returns (old_cash, old_cylinders, new_cash, new_cylinders) for that date.
    """
    driver = getattr(sale_or_driver, 'driver', sale_or_driver)
    tenant = tenant or driver.tenant
    results = recalculate_driver_cascade(tenant, driver, date)
    record, old_cash, old_cylinders = results[0]
    if record is None:
        return old_cash, old_cylinders, old_cash, old_cylinders
    return old_cash, old_cylinders, record.total_cash_receivables, record.total_cylinder_receivables


def reports_changed(tenant_id):
    """Drop the dashboard and every cached daily sales range of the tenant"""
    invalidate_tenant_cache(DASHBOARD_PREFIX, tenant_id)
    invalidate_tenant_cache(DAILY_SALES_PREFIX, tenant_id)


def notify_driver_on_commit(driver, change, reason):
    """Queue the driver's receivable-change message for after the commit"""
    old_cash, old_cylinders, new_cash, new_cylinders = change

    def send():
        from lpg_backend.messaging.service import MessageService
        try:
            MessageService(driver.tenant).notify_driver_receivable_change(
                driver, old_cash, new_cash, old_cylinders, new_cylinders, reason)
        except Exception as e:
            logger.error(f"Receivable notification failed for driver {driver.id}: {str(e)}", exc_info=True)

    transaction.on_commit(send)


def create_sale(sale):
    """Persist a validated sale with its movement and receivables in one transaction"""
    with transaction.atomic():
        sale.save()
        record_sale_movement(sale)
        change = refresh_receivables(sale, sale.sale_date)
        notify_driver_on_commit(sale.driver, change, 'Sale recorded')
    reports_changed(sale.tenant_id)
    logger.info(f"Sale {sale.id} created for driver {sale.driver_id}: {sale.quantity} x {sale.product_id}")
    return sale


def update_sale(sale, previous_driver=None):
    with transaction.atomic():
        sale.save()
        sync_sale_movement(sale)
        change = refresh_receivables(sale, sale.sale_date)
        if previous_driver is not None and previous_driver.id != sale.driver_id:
            refresh_receivables(previous_driver, sale.sale_date, tenant=sale.tenant)
        notify_driver_on_commit(sale.driver, change, 'Sale updated')
    reports_changed(sale.tenant_id)
    return sale


def delete_sale(sale):
    tenant, driver, sale_date = sale.tenant, sale.driver, sale.sale_date
    with transaction.atomic():
        delete_sale_movements(sale)
        sale.delete()
        refresh_receivables(driver, sale_date, tenant=tenant)
    reports_changed(tenant.id)


def bulk_delete_sales(tenant, sales):
    """Delete the given sales and their movements; returns the affected driver ids"""
    sales = list(sales)
    drivers = {}
    with transaction.atomic():
        for sale in sales:
            delete_sale_movements(sale)
            drivers[sale.driver_id] = (sale.driver, sale.sale_date)
        Sale.objects.filter(tenant=tenant, id__in=[s.id for s in sales]).delete()
        for driver, sale_date in drivers.values():
            refresh_receivables(driver, sale_date, tenant=tenant)
    reports_changed(tenant.id)
    logger.info(f"Bulk deleted {len(sales)} sales for tenant {tenant.id}")
    return sorted(drivers)


def sales_summary(queryset):
    totals = queryset.aggregate(
        count=Count('id'),
        total_quantity=Sum('quantity'),
        total_net_value=Sum('net_value'),
        total_cash_deposited=Sum('cash_deposited'),
        total_cylinders_deposited=Sum('cylinders_deposited'),
    )
    return {
        'count': totals['count'] or 0,
        'total_quantity': totals['total_quantity'] or 0,
        'total_net_value': totals['total_net_value'] or Decimal('0.00'),
        'total_cash_deposited': totals['total_cash_deposited'] or Decimal('0.00'),
        'total_cylinders_deposited': totals['total_cylinders_deposited'] or 0,
    }


def daily_summary(tenant, date):
    """Per-driver totals for one day plus grand totals"""
    rows = (
        Sale.objects.filter(tenant=tenant, sale_date=date)
        .values('driver_id', 'driver__name')
        .annotate(
            sales_count=Count('id'),
            package_quantity=Sum('quantity', filter=Q(sale_type=Sale.SALE_TYPE_PACKAGE)),
            refill_quantity=Sum('quantity', filter=Q(sale_type=Sale.SALE_TYPE_REFILL)),
            net_value=Sum('net_value'),
            cash_deposited=Sum('cash_deposited'),
            cylinders_deposited=Sum('cylinders_deposited'),
        )
        .order_by('driver__name')
    )

    drivers = []
    for row in rows:
        package_qty = row['package_quantity'] or 0
        refill_qty = row['refill_quantity'] or 0
        drivers.append({
            'driver_id': row['driver_id'],
            'driver_name': row['driver__name'],
            'sales_count': row['sales_count'],
            'package_quantity': package_qty,
            'refill_quantity': refill_qty,
            'total_quantity': package_qty + refill_qty,
            'net_value': row['net_value'] or Decimal('0.00'),
            'cash_deposited': row['cash_deposited'] or Decimal('0.00'),
            'cylinders_deposited': row['cylinders_deposited'] or 0,
        })

    totals = {
        'sales_count': sum(d['sales_count'] for d in drivers),
        'package_quantity': sum(d['package_quantity'] for d in drivers),
        'refill_quantity': sum(d['refill_quantity'] for d in drivers),
        'total_quantity': sum(d['total_quantity'] for d in drivers),
        'net_value': sum((d['net_value'] for d in drivers), Decimal('0.00')),
        'cash_deposited': sum((d['cash_deposited'] for d in drivers), Decimal('0.00')),
        'cylinders_deposited': sum(d['cylinders_deposited'] for d in drivers),
    }
    return {'date': date.isoformat(), 'drivers': drivers, 'totals': totals}
