from django.core.management.base import BaseCommand, CommandError

from lpg_backend.core.models import Tenant
from lpg_backend.messaging.service import process_queue


class Command(BaseCommand):
    help = 'Retry pending WhatsApp messages that still have attempts left'

    def add_arguments(self, parser):
        parser.add_argument('--tenant', type=int, help='Only this tenant')
        parser.add_argument('--limit', type=int, default=100, help='Maximum messages per run (default 100)')

    def handle(self, *args, **options):
        tenant = None
        if options['tenant']:
            tenant = Tenant.objects.filter(pk=options['tenant']).first()
            if tenant is None:
                raise CommandError(f"Tenant {options['tenant']} not found")

        attempted, sent = process_queue(tenant=tenant, limit=options['limit'])
        self.stdout.write(self.style.SUCCESS(f'✓ {attempted} messages attempted, {sent} sent'))
