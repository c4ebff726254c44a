"""
Inventory calculators: current stock levels, daily full/empty balances and
empty cylinders per size.

Full cylinders: previous + package purchases + refill purchases - sales
Empty cylinders: previous + refill sales + empty buy/sell - refill purchases
"""
import logging
from collections import defaultdict
from datetime import timedelta

from django.db import transaction
from django.db.models import Q, Sum

from lpg_backend.catalog.models import Product, CylinderSize
from lpg_backend.sales.models import Sale
from .models import (
    Shipment, InventoryMovement, InventoryRecord, EmptyCylinderRecord, DriverCylinderSizeBaseline,
)

logger = logging.getLogger(__name__)

REFILL_PURCHASE_Q = Q(shipment_type=Shipment.INCOMING_FULL, notes__startswith=Shipment.REFILL_MARKER)
PACKAGE_PURCHASE_Q = Q(shipment_type=Shipment.INCOMING_FULL) & ~Q(notes__startswith=Shipment.REFILL_MARKER)


def size_q(size, prefix='product__'):
    """Match rows whose product has this size label (linked size first, free-text fallback)"""
    return (
        Q(**{f'{prefix}cylinder_size__size': size})
        | Q(**{f'{prefix}cylinder_size__isnull': True, f'{prefix}size': size})
    )


def _sum_by_product(queryset, field='quantity'):
    rows = queryset.values('product_id').annotate(total=Sum(field))
    return {row['product_id']: row['total'] or 0 for row in rows}


def _sum(queryset, field='quantity'):
    return queryset.aggregate(total=Sum(field))['total'] or 0


def current_inventory_levels(tenant, products=None):
    """
    Stock per active product from onboarding baselines plus every transaction.
    Returns a list of dicts ordered like the product queryset.
    """
    if products is None:
        products = Product.objects.filter(tenant=tenant, is_active=True)
    products = products.select_related('company', 'cylinder_size')

    baselines = InventoryRecord.objects.filter(tenant=tenant, is_onboarding_baseline=True)
    baseline_full = _sum_by_product(baselines, 'full_cylinders')
    baseline_empty = _sum_by_product(baselines, 'empty_cylinders')

    completed = Shipment.objects.filter(tenant=tenant, status=Shipment.STATUS_COMPLETED)
    package_purchases = _sum_by_product(completed.filter(PACKAGE_PURCHASE_Q))
    refill_purchases = _sum_by_product(completed.filter(REFILL_PURCHASE_Q))
    outgoing_full = _sum_by_product(completed.filter(shipment_type=Shipment.OUTGOING_FULL))
    empty_in = _sum_by_product(completed.filter(shipment_type=Shipment.INCOMING_EMPTY))
    empty_out = _sum_by_product(completed.filter(shipment_type=Shipment.OUTGOING_EMPTY))

    sales = Sale.objects.filter(tenant=tenant)
    total_sales = _sum_by_product(sales)
    refill_sales = _sum_by_product(sales.filter(sale_type=Sale.SALE_TYPE_REFILL))

    levels = []
    for product in products:
        pid = product.id
        full = (
            baseline_full.get(pid, 0)
            + package_purchases.get(pid, 0)
            + refill_purchases.get(pid, 0)
            - outgoing_full.get(pid, 0)
            - total_sales.get(pid, 0)
        )
        empty = (
            baseline_empty.get(pid, 0)
            + refill_sales.get(pid, 0)
            + empty_in.get(pid, 0) - empty_out.get(pid, 0)
            - refill_purchases.get(pid, 0)
        )
        full = max(0, full)
        empty = max(0, empty)
        levels.append({
            'product_id': pid,
            'product_name': product.name,
            'company_name': product.company.name,
            'size': product.size_label,
            'full_cylinders': full,
            'empty_cylinders': empty,
            'total_cylinders': full + empty,
            'low_stock_threshold': product.low_stock_threshold,
            'is_low_stock': full <= product.low_stock_threshold,
        })
    return levels


def available_full_cylinders(tenant, product):
    levels = current_inventory_levels(tenant, Product.objects.filter(pk=product.pk))
    return levels[0]['full_cylinders'] if levels else 0


def low_stock_alerts(tenant):
    alerts = []
    for level in current_inventory_levels(tenant):
        if not level['is_low_stock']:
            continue
        alerts.append({
            **level,
            'severity': 'CRITICAL' if level['full_cylinders'] == 0 else 'LOW',
        })
    alerts.sort(key=lambda a: (a['full_cylinders'], a['product_name']))
    return alerts


def cylinders_summary(tenant):
    """Full and empty totals grouped by cylinder size"""
    by_size = defaultdict(lambda: {'full_cylinders': 0, 'empty_cylinders': 0, 'total_cylinders': 0, 'products': 0})
    for level in current_inventory_levels(tenant):
        bucket = by_size[level['size']]
        bucket['full_cylinders'] += level['full_cylinders']
        bucket['empty_cylinders'] += level['empty_cylinders']
        bucket['total_cylinders'] += level['total_cylinders']
        bucket['products'] += 1

    rows = [{'size': size, **values} for size, values in sorted(by_size.items())]
    totals = {
        'full_cylinders': sum(r['full_cylinders'] for r in rows),
        'empty_cylinders': sum(r['empty_cylinders'] for r in rows),
        'total_cylinders': sum(r['total_cylinders'] for r in rows),
    }
    return {'sizes': rows, 'totals': totals}


def daily_inventory(tenant, date, persist=False):
    """
    Full/empty balance per active product for one day, chained from the
    latest earlier record. With persist, InventoryRecords are upserted;
    onboarding baseline rows are never overwritten.
    """
    products = Product.objects.filter(tenant=tenant, is_active=True).select_related('company', 'cylinder_size')

    day_sales = Sale.objects.filter(tenant=tenant, sale_date=date)
    package_sales = _sum_by_product(day_sales.filter(sale_type=Sale.SALE_TYPE_PACKAGE))
    refill_sales = _sum_by_product(day_sales.filter(sale_type=Sale.SALE_TYPE_REFILL))

    day_shipments = Shipment.objects.filter(tenant=tenant, shipment_date=date)
    package_purchase = _sum_by_product(
        day_shipments.filter(PACKAGE_PURCHASE_Q, status=Shipment.STATUS_COMPLETED))
    refill_purchase = _sum_by_product(
        day_shipments.filter(REFILL_PURCHASE_Q).exclude(status=Shipment.STATUS_CANCELLED))
    completed_today = day_shipments.filter(status=Shipment.STATUS_COMPLETED)
    empty_in = _sum_by_product(completed_today.filter(shipment_type=Shipment.INCOMING_EMPTY))
    empty_out = _sum_by_product(completed_today.filter(shipment_type=Shipment.OUTGOING_EMPTY))

    rows = []
    with transaction.atomic():
        for product in products:
            pid = product.id
            size = product.size_label
            previous = InventoryRecord.objects.filter(
                tenant=tenant, product=product, cylinder_size=size, date__lt=date,
            ).order_by('-date').first()
            prev_full = previous.full_cylinders if previous else 0
            prev_empty = previous.empty_cylinders if previous else 0

            pkg = package_sales.get(pid, 0)
            ref = refill_sales.get(pid, 0)
            total_sales = pkg + ref
            pp = package_purchase.get(pid, 0)
            rp = refill_purchase.get(pid, 0)
            buy_sell = empty_in.get(pid, 0) - empty_out.get(pid, 0)

            full = max(0, prev_full + pp + rp - total_sales)
            empty = max(0, prev_empty + ref + buy_sell - rp)

            row = {
                'product_id': pid,
                'product_name': product.name,
                'company_name': product.company.name,
                'size': size,
                'previous_full': prev_full,
                'previous_empty': prev_empty,
                'package_sales': pkg,
                'refill_sales': ref,
                'total_sales': total_sales,
                'package_purchase': pp,
                'refill_purchase': rp,
                'empty_cylinders_buy_sell': buy_sell,
                'full_cylinders': full,
                'empty_cylinders': empty,
                'total_cylinders': full + empty,
                'persisted': False,
            }

            if persist:
                existing = InventoryRecord.objects.filter(
                    tenant=tenant, date=date, product=product, cylinder_size=size,
                ).first()
                if existing is not None and existing.is_onboarding_baseline:
                    logger.debug(f"Skipping onboarding baseline record {existing.id} for product {pid}")
                else:
                    InventoryRecord.objects.update_or_create(
                        tenant=tenant, date=date, product=product, cylinder_size=size,
                        defaults={
                            'package_sales': pkg,
                            'refill_sales': ref,
                            'total_sales': total_sales,
                            'package_purchase': pp,
                            'refill_purchase': rp,
                            'empty_cylinders_buy_sell': buy_sell,
                            'full_cylinders': full,
                            'empty_cylinders': empty,
                            'total_cylinders': full + empty,
                        },
                    )
                    row['persisted'] = True
            rows.append(row)

    totals = {
        key: sum(r[key] for r in rows)
        for key in ('package_sales', 'refill_sales', 'total_sales', 'package_purchase',
                    'refill_purchase', 'empty_cylinders_buy_sell', 'full_cylinders',
                    'empty_cylinders', 'total_cylinders')
    }
    return {'date': date.isoformat(), 'products': rows, 'totals': totals}


def tenant_sizes(tenant):
    """Every size label in use: configured sizes plus free-text product sizes"""
    sizes = set(CylinderSize.objects.filter(tenant=tenant, is_active=True).values_list('size', flat=True))
    for product in Product.objects.filter(tenant=tenant).select_related('cylinder_size'):
        sizes.add(product.size_label)
    return sorted(s for s in sizes if s)


def empty_cylinders_by_size(tenant, date, persist=False):
    """
    today = yesterday + refill sales + empty buy/sell, per size.
    Yesterday comes from the stored record, else from the drivers' onboarding baselines.
    """
    yesterday = date - timedelta(days=1)
    stored = {
        r.cylinder_size: r.quantity
        for r in EmptyCylinderRecord.objects.filter(tenant=tenant, date=yesterday)
    }
    baselines = {
        row['cylinder_size']: row['total'] or 0
        for row in DriverCylinderSizeBaseline.objects.filter(tenant=tenant)
        .values('cylinder_size').annotate(total=Sum('baseline_quantity'))
    }

    day_refills = Sale.objects.filter(tenant=tenant, sale_date=date, sale_type=Sale.SALE_TYPE_REFILL)
    completed = Shipment.objects.filter(tenant=tenant, shipment_date=date, status=Shipment.STATUS_COMPLETED)

    rows = []
    for size in tenant_sizes(tenant):
        previous = stored[size] if size in stored else baselines.get(size, 0)
        refills = _sum(day_refills.filter(size_q(size)))
        buy_sell = (
            _sum(completed.filter(size_q(size), shipment_type=Shipment.INCOMING_EMPTY))
            - _sum(completed.filter(size_q(size), shipment_type=Shipment.OUTGOING_EMPTY))
        )
        quantity = max(0, previous + refills + buy_sell)
        rows.append({
            'size': size,
            'yesterday_empty': previous,
            'refill_sales': refills,
            'empty_cylinders_buy_sell': buy_sell,
            'empty_cylinders': quantity,
            'with_drivers': baselines.get(size, 0),
            'formula': f"{previous} + {refills} + {buy_sell} = {quantity}",
        })

    if persist:
        with transaction.atomic():
            for row in rows:
                EmptyCylinderRecord.objects.update_or_create(
                    tenant=tenant, date=date, cylinder_size=row['size'],
                    defaults={
                        'quantity': row['empty_cylinders'],
                        'quantity_with_drivers': row['with_drivers'],
                        'notes': row['formula'],
                    },
                )

    summary = {
        'yesterday_empty': sum(r['yesterday_empty'] for r in rows),
        'refill_sales': sum(r['refill_sales'] for r in rows),
        'empty_cylinders_buy_sell': sum(r['empty_cylinders_buy_sell'] for r in rows),
        'empty_cylinders': sum(r['empty_cylinders'] for r in rows),
    }
    return {'date': date.isoformat(), 'sizes': rows, 'summary': summary}


# Movements

SALE_MOVEMENT_TYPES = {
    Sale.SALE_TYPE_PACKAGE: 'SALE_PACKAGE',
    Sale.SALE_TYPE_REFILL: 'SALE_REFILL',
}


def record_sale_movement(sale):
    """Full cylinders leaving the depot with a sale (skipped for deposit-only rows)"""
    if not sale.quantity:
        return None
    return InventoryMovement.objects.create(
        tenant=sale.tenant,
        product=sale.product,
        driver=sale.driver,
        movement_type=SALE_MOVEMENT_TYPES[sale.sale_type],
        quantity=-sale.quantity,
        description=f"{sale.get_sale_type_display()} sale to {sale.driver.name}",
        reference=str(sale.id),
    )


def sync_sale_movement(sale):
    """Replace the sale's movement after an edit"""
    delete_sale_movements(sale)
    return record_sale_movement(sale)


def delete_sale_movements(sale):
    InventoryMovement.objects.filter(
        tenant=sale.tenant,
        reference=str(sale.id),
        movement_type__in=SALE_MOVEMENT_TYPES.values(),
    ).delete()


SHIPMENT_MOVEMENTS = {
    Shipment.INCOMING_FULL: ('SHIPMENT_IN', 1),
    Shipment.OUTGOING_FULL: ('SHIPMENT_OUT', -1),
    Shipment.INCOMING_EMPTY: ('EMPTY_IN', 1),
    Shipment.OUTGOING_EMPTY: ('EMPTY_OUT', -1),
}


def record_shipment_movement(shipment):
    """Record the stock movement of a COMPLETED shipment, at most once"""
    if shipment.status != Shipment.STATUS_COMPLETED or shipment.movement_recorded:
        return None

    movement_type, sign = SHIPMENT_MOVEMENTS[shipment.shipment_type]
    if shipment.is_refill_purchase:
        movement_type = 'PURCHASE'

    movement = InventoryMovement.objects.create(
        tenant=shipment.tenant,
        product=shipment.product,
        movement_type=movement_type,
        quantity=sign * shipment.quantity,
        description=f"{shipment.get_shipment_type_display()} shipment {shipment.invoice_number}".strip(),
        reference=f"shipment:{shipment.id}",
    )
    shipment.movement_recorded = True
    shipment.save(update_fields=['movement_recorded', 'updated_at'])
    return movement
