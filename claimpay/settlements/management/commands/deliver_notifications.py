"""
Management command to flush the notification outbox.

Usage:
    python manage.py deliver_notifications
"""

from django.core.management.base import BaseCommand

from claimpay.settlements.tasks import deliver_pending_notifications


class Command(BaseCommand):
    help = "Send settlement and payment notifications that have not been delivered"

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=200)
        parser.add_argument("--max-attempts", type=int, default=5)

    def handle(self, *args, **options):
        self.stdout.write("Delivering pending notifications...")

        results = deliver_pending_notifications(
            limit=options["limit"], max_attempts=options["max_attempts"]
        )

        self.stdout.write(
            self.style.SUCCESS(
                f"Notification delivery complete:\n"
                f'  Delivered: {results["delivered"]}\n'
                f'  Failed: {results["failed"]}'
            )
        )
