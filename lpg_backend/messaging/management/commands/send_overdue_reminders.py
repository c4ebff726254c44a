from django.core.management.base import BaseCommand, CommandError

from lpg_backend.core.models import Tenant
from lpg_backend.messaging.service import MessageService


class Command(BaseCommand):
    help = 'Flag overdue customer receivables and send WhatsApp reminders'

    def add_arguments(self, parser):
        parser.add_argument('--tenant', type=int, help='Only this tenant')

    def handle(self, *args, **options):
        tenants = Tenant.objects.filter(is_active=True, approval_status=Tenant.APPROVAL_APPROVED)
        if options['tenant']:
            tenants = Tenant.objects.filter(pk=options['tenant'])
            if not tenants.exists():
                raise CommandError(f"Tenant {options['tenant']} not found")

        total = 0
        for tenant in tenants:
            sent = MessageService(tenant).send_overdue_reminders()
            self.stdout.write(f'  {tenant.name}: {sent} reminders')
            total += sent
        self.stdout.write(self.style.SUCCESS(f'✓ Sent {total} overdue reminders'))
