from django.core.management.base import BaseCommand, CommandError

from lpg_backend.core.models import User


class Command(BaseCommand):
    help = 'Create the platform super admin, or reset its password and name if it already exists'

    def add_arguments(self, parser):
        parser.add_argument('--email', required=True, help='Login email of the super admin')
        parser.add_argument('--password', required=True, help='Password to set')
        parser.add_argument('--name', default='Super Admin', help='Display name')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        if not email:
            raise CommandError('An email is required')

        user = User.objects.filter(email=email).first()
        created = user is None
        if created:
            user = User(email=email, username=email)
        elif user.tenant_id is not None:
            raise CommandError(f'{email} belongs to a tenant and cannot become super admin')

        user.name = options['name']
        user.role = User.ROLE_SUPER_ADMIN
        user.tenant = None
        user.is_active = True
        user.is_staff = True
        user.is_superuser = True
        user.onboarding_completed = True
        user.set_password(options['password'])
        user.save()

        if created:
            self.stdout.write(self.style.SUCCESS(f'✓ Created super admin {email}'))
        else:
            self.stdout.write(self.style.SUCCESS(f'✓ Updated super admin {email}'))
