from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from apps.accounts.models import UserRole


class Command(BaseCommand):
    help = "Create the ADMIN, MANAGER and CASHIER groups used for role resolution"

    def handle(self, *args, **options):
        for role in UserRole.values:
            group, created = Group.objects.get_or_create(name=role)
            status = "created" if created else "exists"
            self.stdout.write(self.style.SUCCESS(f"{group.name}: {status}"))
