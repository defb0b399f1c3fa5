import os

from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model

User = get_user_model()


class Command(BaseCommand):
    help = 'Create the storefront admin account (role admin, Django staff + superuser)'

    def add_arguments(self, parser):
        parser.add_argument('--username', default=os.getenv('ADMIN_USERNAME', 'admin'))
        parser.add_argument('--email', default=os.getenv('ADMIN_EMAIL', 'admin@example.com'))
        parser.add_argument('--password', default=os.getenv('ADMIN_PASSWORD'))

    def handle(self, *args, **options):
        existing = User.objects.filter(role=User.ROLE_ADMIN).first()
        if existing:
            self.stdout.write(f'  Admin user already exists: {existing.email}')
            return

        password = options['password']
        if not password:
            raise CommandError('An admin password is required (--password or ADMIN_PASSWORD)')

        user = User.objects.create_user(
            username=options['username'],
            email=options['email'],
            password=password,
            role=User.ROLE_ADMIN,
            is_staff=True,
            is_superuser=True,
        )
        self.stdout.write(self.style.SUCCESS(f'✓ Created admin user: {user.email}'))
