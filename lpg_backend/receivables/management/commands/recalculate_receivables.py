from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from lpg_backend.core.cache_signals import suspend_cache_signals
from lpg_backend.core.models import Tenant
from lpg_backend.core.utils import parse_date, today
from lpg_backend.parties.models import Driver
from lpg_backend.receivables.services import recalculate_driver
from lpg_backend.sales.services import reports_changed


class DryRunRollback(Exception):
    pass


class Command(BaseCommand):
    help = 'Recompute driver receivable records day by day, oldest first'

    def add_arguments(self, parser):
        parser.add_argument('--tenant', type=int, help='Only this tenant')
        parser.add_argument('--driver', type=int, help='Only this driver')
        parser.add_argument('--date', help='Last day to recompute (YYYY-MM-DD, defaults to today)')
        parser.add_argument('--days', type=int, default=30, help='How many days back to start (default 30)')
        parser.add_argument('--dry-run', action='store_true', help='Print the changes without saving them')

    def handle(self, *args, **options):
        end = parse_date(options['date'], default=None) if options['date'] else today()
        if end is None:
            raise CommandError(f"Invalid date: {options['date']}")
        if options['days'] < 0:
            raise CommandError('--days must not be negative')
        start = end - timedelta(days=options['days'])

        tenants = Tenant.objects.all()
        if options['tenant']:
            tenants = tenants.filter(pk=options['tenant'])
            if not tenants.exists():
                raise CommandError(f"Tenant {options['tenant']} not found")

        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN: nothing will be saved'))

        changed = 0
        try:
            with suspend_cache_signals(), transaction.atomic():
                for tenant in tenants:
                    changed += self._recalculate_tenant(tenant, options['driver'], start, end)
                if dry_run:
                    raise DryRunRollback()
        except DryRunRollback:
            self.stdout.write(self.style.WARNING(f'Rolled back {changed} changed records'))
            return

        for tenant in tenants:
            reports_changed(tenant.id)
        self.stdout.write(self.style.SUCCESS(f'✓ Recalculated receivables, {changed} records changed'))

    def _recalculate_tenant(self, tenant, driver_id, start, end):
        drivers = Driver.objects.filter(tenant=tenant)
        if driver_id:
            drivers = drivers.filter(pk=driver_id)
        else:
            drivers = drivers.filter(status=Driver.STATUS_ACTIVE)

        changed = 0
        for driver in drivers.order_by('name'):
            day = start
            while day <= end:
                record, old_cash, old_cyl = recalculate_driver(tenant, driver, day)
                if record is not None and (old_cash != record.total_cash_receivables
                                           or old_cyl != record.total_cylinder_receivables):
                    changed += 1
                    self.stdout.write(
                        f'  {tenant.name} / {driver.name} {day}: '
                        f'cash {old_cash} -> {record.total_cash_receivables}, '
                        f'cylinders {old_cyl} -> {record.total_cylinder_receivables}'
                    )
                day += timedelta(days=1)
        return changed
