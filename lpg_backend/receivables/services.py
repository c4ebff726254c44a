"""
Receivables calculators.

Per driver and day:
    cash change     = sales total - cash deposited - discount
    cylinder change = refill quantity - cylinders deposited
    total           = change + onboarding balance + previous day's total
"""
import logging
from collections import defaultdict
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum, Count, Q
from django.utils import timezone

from lpg_backend.catalog.models import Product
from lpg_backend.inventory.services import size_q
from lpg_backend.parties.models import Driver
from lpg_backend.sales.models import Sale
from .models import ReceivableRecord, CustomerReceivable

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
CASH_TOLERANCE = Decimal('0.01')
UNKNOWN_SIZE = 'Unknown'

PAYMENT_METHODS = ['cash', 'bank_transfer', 'cheque', 'digital_payment']


class ReceivableOperationError(Exception):
    """A receivable payment / return that cannot be applied"""


def apply_collection(current, payment):
    """Outstanding balance after a collection, never below zero"""
    return max(type(current)(0), current - payment)


def percentage(part, whole):
    """part / whole as a percentage; a zero denominator counts as fully collected"""
    whole = Decimal(str(whole or 0))
    if whole == 0:
        return 100.0
    return float(round(Decimal(str(part or 0)) / whole * 100, 2))


def daily_changes(tenant, driver, date):
    """(cash_change, cylinder_change) from the driver's sales on one day"""
    sales = Sale.objects.filter(tenant=tenant, driver=driver, sale_date=date)
    totals = sales.aggregate(
        total_value=Sum('total_value'),
        cash_deposited=Sum('cash_deposited'),
        discount=Sum('discount'),
        cylinders_deposited=Sum('cylinders_deposited'),
        refill_quantity=Sum('quantity', filter=Q(sale_type=Sale.SALE_TYPE_REFILL)),
    )
    cash_change = (
        (totals['total_value'] or ZERO)
        - (totals['cash_deposited'] or ZERO)
        - (totals['discount'] or ZERO)
    )
    cylinder_change = (totals['refill_quantity'] or 0) - (totals['cylinders_deposited'] or 0)
    return cash_change, cylinder_change


def latest_record(tenant, driver, on_or_before=None, before=None):
    records = ReceivableRecord.objects.filter(tenant=tenant, driver=driver)
    if on_or_before is not None:
        records = records.filter(date__lte=on_or_before)
    if before is not None:
        records = records.filter(date__lt=before)
    return records.order_by('-date').first()


def current_totals(tenant, driver):
    """(cash, cylinders) from the driver's newest record"""
    record = latest_record(tenant, driver)
    if record is None:
        return ZERO, 0
    return record.total_cash_receivables, record.total_cylinder_receivables


def recalculate_driver(tenant, driver, date):
    """
    Upsert the driver's record for a date, keeping its onboarding balances.

    Returns (record, old_cash, old_cylinders). record is None when the day has
    neither sales nor an existing record.
    """
    existing = ReceivableRecord.objects.filter(tenant=tenant, driver=driver, date=date).first()
    previous = latest_record(tenant, driver, before=date)
    prev_cash = previous.total_cash_receivables if previous else ZERO
    prev_cylinders = previous.total_cylinder_receivables if previous else 0

    if existing is not None:
        old_cash, old_cylinders = existing.total_cash_receivables, existing.total_cylinder_receivables
    else:
        old_cash, old_cylinders = prev_cash, prev_cylinders

    has_sales = Sale.objects.filter(tenant=tenant, driver=driver, sale_date=date).exists()
    if existing is None and not has_sales:
        return None, old_cash, old_cylinders

    cash_change, cylinder_change = daily_changes(tenant, driver, date)
    onboarding_cash = existing.onboarding_cash_receivables if existing else ZERO
    onboarding_cylinders = existing.onboarding_cylinder_receivables if existing else 0

    record, _ = ReceivableRecord.objects.update_or_create(
        tenant=tenant, driver=driver, date=date,
        defaults={
            'cash_receivables_change': cash_change,
            'cylinder_receivables_change': cylinder_change,
            'total_cash_receivables': cash_change + onboarding_cash + prev_cash,
            'total_cylinder_receivables': cylinder_change + onboarding_cylinders + prev_cylinders,
            'onboarding_cash_receivables': onboarding_cash,
            'onboarding_cylinder_receivables': onboarding_cylinders,
        },
    )
    logger.debug(f"Recalculated receivables for driver {driver.id} on {date}: "
                 f"{record.total_cash_receivables} / {record.total_cylinder_receivables}")
    return record, old_cash, old_cylinders


def later_dates(tenant, driver, date):
    """Dates after `date` that have sales or a stored record for the driver"""
    sale_dates = Sale.objects.filter(tenant=tenant, driver=driver, sale_date__gt=date).values_list('sale_date', flat=True)
    record_dates = ReceivableRecord.objects.filter(tenant=tenant, driver=driver, date__gt=date).values_list('date', flat=True)
    return sorted(set(sale_dates) | set(record_dates))


def recalculate_driver_cascade(tenant, driver, date):
    """Recalculate a date and then every later date so running totals stay chained"""
    results = [recalculate_driver(tenant, driver, date)]
    for later in later_dates(tenant, driver, date):
        results.append(recalculate_driver(tenant, driver, later))
    return results


def recalculate(tenant, date, driver=None, cascade=False):
    """Recalculate one driver or every active driver. Returns the touched records."""
    if driver is not None:
        drivers = [driver]
    else:
        drivers = Driver.objects.filter(tenant=tenant, status=Driver.STATUS_ACTIVE)

    records = []
    with transaction.atomic():
        for d in drivers:
            if cascade:
                results = recalculate_driver_cascade(tenant, d, date)
            else:
                results = [recalculate_driver(tenant, d, date)]
            records.extend(r[0] for r in results if r[0] is not None)
    return records


def receivables_summary(tenant, date):
    """Latest record (dated on or before `date`) of every active driver"""
    drivers = Driver.objects.filter(tenant=tenant, status=Driver.STATUS_ACTIVE).order_by('name')
    rows = []
    total_cash = ZERO
    total_cylinders = 0
    drivers_with_dues = 0

    for driver in drivers:
        record = latest_record(tenant, driver, on_or_before=date)
        cash = record.total_cash_receivables if record else ZERO
        cylinders = record.total_cylinder_receivables if record else 0
        total_cash += cash
        total_cylinders += cylinders
        if cash > 0 or cylinders > 0:
            drivers_with_dues += 1
        rows.append({
            'driver_id': driver.id,
            'driver_name': driver.name,
            'driver_type': driver.driver_type,
            'date': record.date.isoformat() if record else None,
            'cash_receivables_change': float(record.cash_receivables_change) if record else 0.0,
            'cylinder_receivables_change': record.cylinder_receivables_change if record else 0,
            'total_cash_receivables': float(cash),
            'total_cylinder_receivables': cylinders,
        })

    return {
        'date': date.isoformat(),
        'drivers': rows,
        'totals': {
            'total_cash_receivables': float(total_cash),
            'total_cylinder_receivables': total_cylinders,
            'drivers_with_dues': drivers_with_dues,
        },
    }


def driver_performance(tenant, date_from, date_to):
    """Sales, collections and collection efficiency per driver, best first"""
    sales = Sale.objects.filter(tenant=tenant, sale_date__gte=date_from, sale_date__lte=date_to)
    stats = {
        row['driver_id']: row
        for row in sales.values('driver_id').annotate(
            sales_count=Count('id', filter=Q(quantity__gt=0)),
            quantity=Sum('quantity'),
            net_value=Sum('net_value'),
            cash_collected=Sum('cash_deposited'),
            cylinders_returned=Sum('cylinders_deposited'),
            refill_quantity=Sum('quantity', filter=Q(sale_type=Sale.SALE_TYPE_REFILL)),
        )
    }

    drivers = Driver.objects.filter(tenant=tenant).filter(
        Q(status=Driver.STATUS_ACTIVE) | Q(id__in=stats.keys())
    )

    rows = []
    for driver in drivers:
        row = stats.get(driver.id, {})
        net_value = row.get('net_value') or ZERO
        cash = row.get('cash_collected') or ZERO
        refill_qty = row.get('refill_quantity') or 0
        returned = row.get('cylinders_returned') or 0
        cash_pct = percentage(cash, net_value)
        cylinder_pct = percentage(returned, refill_qty)
        current_cash, current_cylinders = current_totals(tenant, driver)
        rows.append({
            'driver_id': driver.id,
            'driver_name': driver.name,
            'driver_type': driver.driver_type,
            'sales_count': row.get('sales_count') or 0,
            'total_quantity': row.get('quantity') or 0,
            'total_value': float(net_value),
            'cash_collected': float(cash),
            'refill_quantity': refill_qty,
            'cylinders_returned': returned,
            'cash_collection_percentage': cash_pct,
            'cylinder_return_percentage': cylinder_pct,
            'collection_efficiency': round((cash_pct + cylinder_pct) / 2, 2),
            'current_cash_receivables': float(current_cash),
            'current_cylinder_receivables': current_cylinders,
        })

    rows.sort(key=lambda r: r['collection_efficiency'], reverse=True)
    return rows


def validate_customer_receivables(tenant):
    """Compare each retail driver's customer receivables with the driver's totals"""
    drivers = Driver.objects.filter(
        tenant=tenant, status=Driver.STATUS_ACTIVE, driver_type=Driver.TYPE_RETAIL,
    ).order_by('name')
    open_statuses = [CustomerReceivable.STATUS_CURRENT, CustomerReceivable.STATUS_OVERDUE]

    results = []
    errors = []
    for driver in drivers:
        open_receivables = CustomerReceivable.objects.filter(
            tenant=tenant, driver=driver, status__in=open_statuses,
        )
        customer_cash = open_receivables.filter(receivable_type=CustomerReceivable.TYPE_CASH).aggregate(
            total=Sum('amount'))['total'] or ZERO
        customer_cylinders = open_receivables.filter(receivable_type=CustomerReceivable.TYPE_CYLINDER).aggregate(
            total=Sum('quantity'))['total'] or 0
        driver_cash, driver_cylinders = current_totals(tenant, driver)

        cash_ok = abs(customer_cash - driver_cash) <= CASH_TOLERANCE
        cylinders_ok = customer_cylinders == driver_cylinders

        row = {
            'driver_id': driver.id,
            'driver_name': driver.name,
            'customer_cash_total': float(customer_cash),
            'driver_cash_total': float(driver_cash),
            'customer_cylinder_total': customer_cylinders,
            'driver_cylinder_total': driver_cylinders,
            'cash_matches': cash_ok,
            'cylinders_match': cylinders_ok,
            'is_valid': cash_ok and cylinders_ok,
        }
        results.append(row)

        if not cash_ok:
            errors.append(
                f"{driver.name}: customer cash receivables ({customer_cash}) "
                f"do not match driver total ({driver_cash})"
            )
        if not cylinders_ok:
            errors.append(
                f"{driver.name}: customer cylinder receivables ({customer_cylinders}) "
                f"do not match driver total ({driver_cylinders})"
            )

    return {
        'is_valid': not errors,
        'validation_errors': errors,
        'drivers': results,
    }


def receivables_by_driver_size(tenant):
    """
    Split each retail driver's cylinder receivables across sizes in proportion
    to the cylinders the driver has returned per size on refill sales.
    """
    drivers = Driver.objects.filter(
        tenant=tenant, status=Driver.STATUS_ACTIVE, driver_type=Driver.TYPE_RETAIL,
    ).order_by('name')

    rows = []
    size_totals = defaultdict(int)
    for driver in drivers:
        _, total = current_totals(tenant, driver)
        if total <= 0:
            continue

        deposits = defaultdict(int)
        refills = Sale.objects.filter(
            tenant=tenant, driver=driver, sale_type=Sale.SALE_TYPE_REFILL,
        ).select_related('product', 'product__cylinder_size')
        for sale in refills:
            deposits[sale.product.size_label] += sale.cylinders_deposited

        deposited_total = sum(deposits.values())
        if deposited_total <= 0:
            distribution = {UNKNOWN_SIZE: total}
        else:
            distribution = {
                size: round(total * quantity / deposited_total)
                for size, quantity in sorted(deposits.items())
                if quantity > 0
            }

        for size, quantity in distribution.items():
            size_totals[size] += quantity
        rows.append({
            'driver_id': driver.id,
            'driver_name': driver.name,
            'total_cylinder_receivables': total,
            'sizes': [{'size': s, 'quantity': q} for s, q in distribution.items()],
        })

    return {
        'drivers': rows,
        'size_totals': [{'size': s, 'quantity': q} for s, q in sorted(size_totals.items())],
        'total_cylinder_receivables': sum(r['total_cylinder_receivables'] for r in rows),
    }


# Customer collections

def _append_note(existing, note):
    return f"{existing}\n{note}" if existing else note


def _todays_sale(tenant, driver, date):
    return Sale.objects.filter(tenant=tenant, driver=driver, sale_date=date).order_by('created_at', 'id').first()


def record_cash_payment(receivable, amount, payment_method, user, notes=''):
    """
    Collect cash against a CASH customer receivable.

    The cash lands on the driver's first sale of the day (or a deposit-only
    sale) so the driver's running receivables drop with it.
    Returns (receivable, sale, record, old_totals).
    """
    if receivable.receivable_type != CustomerReceivable.TYPE_CASH:
        raise ReceivableOperationError('Payments can only be applied to cash receivables')
    if amount > receivable.amount:
        raise ReceivableOperationError(
            f"Payment amount ({amount}) exceeds outstanding receivable ({receivable.amount})")

    tenant = receivable.tenant
    driver = receivable.driver
    today = timezone.localdate()

    with transaction.atomic():
        receivable.amount = apply_collection(receivable.amount, amount)
        if receivable.amount == 0:
            receivable.status = CustomerReceivable.STATUS_PAID
        note = f"Payment received: ৳{amount} via {payment_method} on {today.isoformat()}"
        if notes:
            note = f"{note} ({notes})"
        receivable.notes = _append_note(receivable.notes, note)
        receivable.save()

        sale = _todays_sale(tenant, driver, today)
        if sale is not None:
            sale.cash_deposited = Decimal(sale.cash_deposited) + amount
            sale.recompute_totals()
            sale.save()
        else:
            product = Product.objects.filter(tenant=tenant).order_by('id').first()
            if product is None:
                raise ReceivableOperationError('No product available to record the payment against')
            sale = Sale(
                tenant=tenant,
                user=user,
                driver=driver,
                product=product,
                sale_type=Sale.SALE_TYPE_PACKAGE,
                quantity=0,
                unit_price=product.current_price,
                payment_type=Sale.PAYMENT_CASH,
                cash_deposited=amount,
                sale_date=today,
                customer_name=receivable.customer_name,
                notes=f"Receivable payment: ৳{amount} via {payment_method}",
            )
            sale.recompute_totals()
            sale.save()

        record, old_cash, old_cylinders = recalculate_driver(tenant, driver, today)
    return receivable, sale, record, (old_cash, old_cylinders)


def record_cylinder_return(receivable, quantity, user, notes=''):
    """
    Collect cylinders against a CYLINDER customer receivable.

    The cylinders land on today's sale of the same size, or on a deposit-only
    REFILL sale. Returns (receivable, sale, record, old_totals).
    """
    if receivable.receivable_type != CustomerReceivable.TYPE_CYLINDER:
        raise ReceivableOperationError('Cylinder returns can only be applied to cylinder receivables')
    if quantity > receivable.quantity:
        raise ReceivableOperationError(
            f"Return quantity ({quantity}) exceeds outstanding cylinders ({receivable.quantity})")

    tenant = receivable.tenant
    driver = receivable.driver
    today = timezone.localdate()

    with transaction.atomic():
        receivable.quantity = apply_collection(receivable.quantity, quantity)
        if receivable.quantity == 0:
            receivable.status = CustomerReceivable.STATUS_PAID
        note = f"Cylinders returned: {quantity} x {receivable.size or 'cylinder'} on {today.isoformat()}"
        if notes:
            note = f"{note} ({notes})"
        receivable.notes = _append_note(receivable.notes, note)
        receivable.save()

        sale = _todays_sale(tenant, driver, today)
        if sale is not None and (not receivable.size or sale.product.size_label == receivable.size):
            sale.cylinders_deposited += quantity
            sale.recompute_totals()
            sale.save()
        else:
            product = None
            if receivable.size:
                product = Product.objects.filter(size_q(receivable.size, prefix=''), tenant=tenant).order_by('id').first()
            if product is None:
                product = Product.objects.filter(tenant=tenant).order_by('id').first()
            if product is None:
                raise ReceivableOperationError('No product available to record the cylinder return against')
            sale = Sale(
                tenant=tenant,
                user=user,
                driver=driver,
                product=product,
                sale_type=Sale.SALE_TYPE_REFILL,
                quantity=0,
                unit_price=product.current_price,
                payment_type=Sale.PAYMENT_CASH,
                cylinders_deposited=quantity,
                sale_date=today,
                customer_name=receivable.customer_name,
                notes=f"Cylinder return: {quantity} x {receivable.size or product.size_label}",
            )
            sale.recompute_totals()
            sale.save()

        record, old_cash, old_cylinders = recalculate_driver(tenant, driver, today)
    return receivable, sale, record, (old_cash, old_cylinders)
