from django.core.management.base import BaseCommand, CommandError

from lpg_backend.core.models import Tenant
from lpg_backend.messaging.service import ensure_tenant_messaging, create_default_templates


class Command(BaseCommand):
    help = 'Create the default WhatsApp provider, settings and templates for tenants'

    def add_arguments(self, parser):
        parser.add_argument('--tenant', type=int, help='Set up a single tenant')
        parser.add_argument('--all', action='store_true', help='Set up every tenant')

    def handle(self, *args, **options):
        if options['tenant']:
            tenants = Tenant.objects.filter(pk=options['tenant'])
            if not tenants.exists():
                raise CommandError(f"Tenant {options['tenant']} not found")
        elif options['all']:
            tenants = Tenant.objects.all()
        else:
            raise CommandError('Pass --tenant ID or --all')

        for tenant in tenants:
            provider = ensure_tenant_messaging(tenant)
            create_default_templates(tenant, provider)
            self.stdout.write(self.style.SUCCESS(f'✓ {tenant.name}: provider "{provider.name}" ready'))
