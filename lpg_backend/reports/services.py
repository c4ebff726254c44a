"""Aggregates behind the dashboard and the report endpoints"""
import logging
from collections import OrderedDict
from decimal import Decimal

from django.db.models import Sum, Count, Q

from lpg_backend.core.cache_utils import cached_query, cache_generation, REPORTS_CACHE_TTL, DAILY_SALES_PREFIX
from lpg_backend.core.utils import today
from lpg_backend.expenses.models import Expense
from lpg_backend.inventory.models import Shipment
from lpg_backend.inventory.services import low_stock_alerts
from lpg_backend.parties.models import Driver
from lpg_backend.receivables.models import ReceivableRecord
from lpg_backend.receivables.services import receivables_summary
from lpg_backend.sales.models import Sale

logger = logging.getLogger('lpg_backend.reports')

ZERO = Decimal('0.00')


def _sales_totals(queryset):
    totals = queryset.aggregate(
        count=Count('id', filter=Q(quantity__gt=0)),
        quantity=Sum('quantity'),
        net_value=Sum('net_value'),
        cash_deposited=Sum('cash_deposited'),
    )
    return {
        'count': totals['count'] or 0,
        'quantity': totals['quantity'] or 0,
        'net_value': float(totals['net_value'] or ZERO),
        'cash_deposited': float(totals['cash_deposited'] or ZERO),
    }


def build_dashboard(tenant):
    day = today()
    month_start = day.replace(day=1)
    sales = Sale.objects.filter(tenant=tenant)
    expenses = Expense.objects.filter(tenant=tenant)

    receivables = receivables_summary(tenant, day)['totals']
    pending = expenses.filter(is_approved=False).aggregate(count=Count('id'), amount=Sum('amount'))
    month_approved = expenses.filter(is_approved=True, expense_date__gte=month_start).aggregate(amount=Sum('amount'))

    return {
        'date': day.isoformat(),
        'today_sales': _sales_totals(sales.filter(sale_date=day)),
        'month_sales': _sales_totals(sales.filter(sale_date__gte=month_start, sale_date__lte=day)),
        'receivables': {
            'total_cash_receivables': receivables['total_cash_receivables'],
            'total_cylinder_receivables': receivables['total_cylinder_receivables'],
            'drivers_with_dues': receivables['drivers_with_dues'],
        },
        'active_drivers': Driver.objects.filter(tenant=tenant, status=Driver.STATUS_ACTIVE).count(),
        'low_stock_products': len(low_stock_alerts(tenant)),
        'expenses': {
            'pending_count': pending['count'] or 0,
            'pending_amount': float(pending['amount'] or ZERO),
            'month_approved_amount': float(month_approved['amount'] or ZERO),
        },
    }


def daily_sales(tenant_id, date_from, date_to):
    """Per day per driver sales with that day's receivable change and running total"""
    rows = (
        Sale.objects.filter(tenant_id=tenant_id, sale_date__gte=date_from, sale_date__lte=date_to)
        .values('sale_date', 'driver_id', 'driver__name')
        .annotate(
            package_quantity=Sum('quantity', filter=Q(sale_type=Sale.SALE_TYPE_PACKAGE)),
            refill_quantity=Sum('quantity', filter=Q(sale_type=Sale.SALE_TYPE_REFILL)),
            net_value=Sum('net_value'),
            cash_deposited=Sum('cash_deposited'),
            cylinders_deposited=Sum('cylinders_deposited'),
        )
        .order_by('-sale_date', 'driver__name')
    )
    records = {
        (r.date, r.driver_id): r
        for r in ReceivableRecord.objects.filter(tenant_id=tenant_id, date__gte=date_from, date__lte=date_to)
    }

    days = OrderedDict()
    for row in rows:
        record = records.get((row['sale_date'], row['driver_id']))
        entry = {
            'driver_id': row['driver_id'],
            'driver_name': row['driver__name'],
            'package_quantity': row['package_quantity'] or 0,
            'refill_quantity': row['refill_quantity'] or 0,
            'net_value': float(row['net_value'] or ZERO),
            'cash_deposited': float(row['cash_deposited'] or ZERO),
            'cylinders_deposited': row['cylinders_deposited'] or 0,
            'cash_receivables_change': float(record.cash_receivables_change) if record else 0.0,
            'cylinder_receivables_change': record.cylinder_receivables_change if record else 0,
            'total_cash_receivables': float(record.total_cash_receivables) if record else None,
            'total_cylinder_receivables': record.total_cylinder_receivables if record else None,
        }
        days.setdefault(row['sale_date'], []).append(entry)

    result = []
    for day, drivers in days.items():
        result.append({
            'date': day.isoformat(),
            'drivers': drivers,
            'totals': {
                'package_quantity': sum(d['package_quantity'] for d in drivers),
                'refill_quantity': sum(d['refill_quantity'] for d in drivers),
                'net_value': round(sum(d['net_value'] for d in drivers), 2),
                'cash_deposited': round(sum(d['cash_deposited'] for d in drivers), 2),
                'cylinders_deposited': sum(d['cylinders_deposited'] for d in drivers),
            },
        })
    logger.debug(f"Daily sales report for tenant {tenant_id}: {len(result)} days")
    return {'date_from': date_from.isoformat(), 'date_to': date_to.isoformat(), 'days': result}


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=DAILY_SALES_PREFIX)
def _cached_daily_sales(tenant_id, generation, date_from, date_to):
    return daily_sales(tenant_id, date_from, date_to)


def cached_daily_sales(tenant_id, date_from, date_to):
    """
    Closed ranges are cached under the tenant's current generation.
    Backdated sales, bulk deletes and receivable recalculation bump it (see reports_changed).
    """
    generation = cache_generation(DAILY_SALES_PREFIX, tenant_id)
    return _cached_daily_sales(tenant_id, generation, date_from, date_to)


def _money(value):
    return round(float(value or ZERO), 2)


def _margin(part, revenue):
    return round(part / revenue * 100, 2) if revenue > 0 else 0.0


def _period_income(tenant, date_from, date_to):
    sales = Sale.objects.filter(tenant=tenant, sale_date__gte=date_from, sale_date__lte=date_to)
    by_type = {
        row['sale_type']: {'amount': _money(row['amount']), 'quantity': row['quantity'] or 0, 'count': row['count']}
        for row in sales.values('sale_type').annotate(
            amount=Sum('net_value'), quantity=Sum('quantity'), count=Count('id')).order_by('sale_type')
    }
    by_driver = [
        {'driver_id': row['driver_id'], 'driver_name': row['driver__name'],
         'amount': _money(row['amount']), 'quantity': row['quantity'] or 0}
        for row in sales.values('driver_id', 'driver__name').annotate(
            amount=Sum('net_value'), quantity=Sum('quantity')).order_by('-amount', 'driver__name')
    ]
    sales_totals = _sales_totals(sales)

    # only costed, completed purchases of full cylinders count as cost of goods
    purchases = Shipment.objects.filter(
        tenant=tenant, shipment_type=Shipment.INCOMING_FULL, status=Shipment.STATUS_COMPLETED,
        shipment_date__gte=date_from, shipment_date__lte=date_to,
    )
    by_product = [
        {'product_id': row['product_id'], 'product_name': row['product__name'],
         'amount': _money(row['amount']), 'quantity': row['quantity'] or 0}
        for row in purchases.filter(total_cost__isnull=False).values('product_id', 'product__name').annotate(
            amount=Sum('total_cost'), quantity=Sum('quantity')).order_by('product__name')
    ]
    cost_of_goods = round(sum(p['amount'] for p in by_product), 2)

    expenses = Expense.objects.filter(tenant=tenant, is_approved=True,
                                      expense_date__gte=date_from, expense_date__lte=date_to)
    by_category = [
        {'category_id': row['category_id'], 'category_name': row['category__name'], 'amount': _money(row['amount'])}
        for row in expenses.values('category_id', 'category__name').annotate(
            amount=Sum('amount')).order_by('-amount', 'category__name')
    ]
    operating_expenses = round(sum(c['amount'] for c in by_category), 2)

    revenue = sales_totals['net_value']
    gross_profit = round(revenue - cost_of_goods, 2)
    net_income = round(gross_profit - operating_expenses, 2)
    return {
        'date_from': date_from.isoformat(),
        'date_to': date_to.isoformat(),
        'revenue': {
            'total': revenue,
            'quantity': sales_totals['quantity'],
            'cash_collected': sales_totals['cash_deposited'],
            'by_type': by_type,
            'by_driver': by_driver,
        },
        'cost_of_goods_sold': {
            'total': cost_of_goods,
            'by_product': by_product,
            'uncosted_purchases': purchases.filter(total_cost__isnull=True).count(),
        },
        'gross_profit': gross_profit,
        'operating_expenses': {'total': operating_expenses, 'by_category': by_category},
        'net_income': net_income,
        'margins': {
            'gross_margin': _margin(gross_profit, revenue),
            'net_margin': _margin(net_income, revenue),
        },
    }


def financial_summary(tenant, date_from, date_to, compare_from=None, compare_to=None):
    """
    Income statement for a period: sales revenue less the cost of completed full-cylinder
    purchases gives gross profit, less approved expenses gives net income.
    An optional comparison period is reported alongside with the change in net income.
    """
    current = _period_income(tenant, date_from, date_to)
    comparison = None
    if compare_from and compare_to:
        comparison = _period_income(tenant, compare_from, compare_to)
        comparison['net_income_change'] = round(current['net_income'] - comparison['net_income'], 2)
    logger.debug(f"Financial summary for tenant {tenant.id}: net income {current['net_income']}")
    return {'current': current, 'comparison': comparison}
