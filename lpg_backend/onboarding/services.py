"""
First-run setup of a tenant: catalog, drivers and opening balances.

Everything runs in a single transaction; a bad index anywhere aborts it.
"""
import logging
from collections import defaultdict
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from lpg_backend.catalog.models import Company, CylinderSize, Product
from lpg_backend.core.cache_signals import suspend_cache_signals, invalidate_tenant_caches
from lpg_backend.core.cache_utils import PRODUCTS_LIST_PREFIX, DASHBOARD_PREFIX
from lpg_backend.inventory.models import InventoryRecord, EmptyCylinderRecord, DriverCylinderSizeBaseline
from lpg_backend.parties.models import Driver
from lpg_backend.receivables.models import ReceivableRecord, CustomerReceivable

logger = logging.getLogger(__name__)


class OnboardingError(Exception):
    """Onboarding payload that cannot be applied"""


def _pick(items, index, label):
    if index < 0 or index >= len(items):
        raise OnboardingError(f"Invalid {label} index: {index}")
    return items[index]


def complete_onboarding(user, data):
    """
    Create the tenant's starting data from the onboarding payload and mark the
    user onboarded. Returns a dict of created counts.
    """
    tenant = user.tenant
    today = timezone.localdate()

    with suspend_cache_signals(), transaction.atomic():
        companies = []
        for name in data.get('company_names', []):
            company, _ = Company.objects.get_or_create(tenant=tenant, name=name.strip())
            companies.append(company)

        sizes = []
        for entry in data.get('cylinder_sizes', []):
            size, _ = CylinderSize.objects.get_or_create(
                tenant=tenant, size=entry['size'].strip().upper(),
                defaults={'description': entry.get('description', '')},
            )
            sizes.append(size)

        products = []
        for entry in data.get('products', []):
            company = _pick(companies, entry['company_index'], 'company')
            size = _pick(sizes, entry['size_index'], 'cylinder size')
            product, _ = Product.objects.get_or_create(
                tenant=tenant, company=company, name=entry['name'].strip(), size=size.size,
                defaults={
                    'cylinder_size': size,
                    'current_price': entry['current_price'],
                    'low_stock_threshold': entry.get('low_stock_threshold', 10),
                },
            )
            products.append(product)

        drivers = []
        for entry in data.get('drivers', []):
            driver, _ = Driver.objects.get_or_create(
                tenant=tenant, phone=entry['phone'].strip(),
                defaults={
                    'name': entry['name'].strip(),
                    'driver_type': entry.get('driver_type', Driver.TYPE_RETAIL),
                    'route': entry.get('route', ''),
                    'status': Driver.STATUS_ACTIVE,
                    'joining_date': today,
                },
            )
            drivers.append(driver)

        baselines = {}

        def baseline_for(product):
            if product.id not in baselines:
                baselines[product.id], _ = InventoryRecord.objects.get_or_create(
                    tenant=tenant, date=today, product=product, cylinder_size=product.size_label,
                    defaults={'is_onboarding_baseline': True},
                )
            return baselines[product.id]

        for entry in data.get('inventory', []):
            product = _pick(products, entry['product_index'], 'product')
            record = baseline_for(product)
            record.full_cylinders = entry['full_cylinders']
            record.is_onboarding_baseline = True

        empty_records = 0
        for entry in data.get('empty_cylinders', []):
            size = _pick(sizes, entry['size_index'], 'cylinder size')
            quantity = entry['quantity']
            product = next((p for p in products if p.size_label == size.size), None)
            if product is not None:
                baseline_for(product).empty_cylinders += quantity
            EmptyCylinderRecord.objects.update_or_create(
                tenant=tenant, date=today, cylinder_size=size.size,
                defaults={'quantity': quantity, 'notes': 'Onboarding baseline'},
            )
            empty_records += 1

        receivable_records = 0
        receivables_by_size = defaultdict(int)
        for entry in data.get('receivables', []):
            driver = _pick(drivers, entry['driver_index'], 'driver')
            cash = entry.get('cash_receivables') or Decimal('0')
            cylinders = entry.get('cylinder_receivables') or 0
            if cash > 0 or cylinders > 0:
                ReceivableRecord.objects.update_or_create(
                    tenant=tenant, driver=driver, date=today,
                    defaults={
                        'cash_receivables_change': Decimal('0'),
                        'cylinder_receivables_change': 0,
                        'total_cash_receivables': cash,
                        'total_cylinder_receivables': cylinders,
                        'onboarding_cash_receivables': cash,
                        'onboarding_cylinder_receivables': cylinders,
                    },
                )
                receivable_records += 1

            for size_entry in entry.get('cylinders_by_size', []):
                size = _pick(sizes, size_entry['size_index'], 'cylinder size')
                quantity = size_entry['quantity']
                if quantity <= 0:
                    continue
                DriverCylinderSizeBaseline.objects.update_or_create(
                    tenant=tenant, driver=driver, cylinder_size=size.size,
                    defaults={'baseline_quantity': quantity, 'source': 'ONBOARDING'},
                )
                CustomerReceivable.objects.create(
                    tenant=tenant,
                    driver=driver,
                    customer_name=CustomerReceivable.ONBOARDING_CUSTOMER_NAME,
                    receivable_type=CustomerReceivable.TYPE_CYLINDER,
                    quantity=quantity,
                    size=size.size,
                    notes='Opening balance from onboarding',
                )
                receivables_by_size[size.size] += quantity

        for size_label, quantity in receivables_by_size.items():
            product = next((p for p in products if p.size_label == size_label), None)
            if product is not None:
                baseline_for(product).empty_cylinder_receivables += quantity

        for record in baselines.values():
            record.total_cylinders = record.full_cylinders + record.empty_cylinders
            record.save()

        user.onboarding_completed = True
        user.onboarding_completed_at = timezone.now()
        user.save(update_fields=['onboarding_completed', 'onboarding_completed_at', 'updated_at'])

    invalidate_tenant_caches(tenant.id, [PRODUCTS_LIST_PREFIX, DASHBOARD_PREFIX])
    summary = {
        'companies': len(companies),
        'cylinder_sizes': len(sizes),
        'products': len(products),
        'drivers': len(drivers),
        'inventory_records': len(baselines),
        'empty_cylinder_records': empty_records,
        'receivable_records': receivable_records,
    }
    logger.info(f"Onboarding completed for tenant {tenant.id}: {summary}")
    return summary
