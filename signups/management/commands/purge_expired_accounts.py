from django.core.management.base import BaseCommand
from signups.reapers import get_expired_accounts_purge_count, purge_expired_accounts


class Command(BaseCommand):
    help = "Delete signups that have been EXPIRED for longer than SIGNUP_PURGE_AFTER_DAYS."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Only report how many signups would be purged.")

    def handle(self, *args, **options):
        if options["dry_run"]:
            count = get_expired_accounts_purge_count()
            self.stdout.write(f"Signups eligible for purge: {count}")
            return
        result = purge_expired_accounts()
        self.stdout.write(self.style.SUCCESS(f"Purged signups: {result['purged_count']}"))
