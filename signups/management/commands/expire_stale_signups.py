from django.core.management.base import BaseCommand
from signups.reapers import expire_stale_signups


class Command(BaseCommand):
    help = "Mark pending signups older than SIGNUP_EXPIRE_AFTER_DAYS as EXPIRED."

    def handle(self, *args, **options):
        result = expire_stale_signups()
        self.stdout.write(self.style.SUCCESS(f"Expired signups: {result['expired_count']}"))
