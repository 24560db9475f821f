"""
Management command to restart status polling for in-flight settlements.

Run after a worker outage or deploy that may have dropped queued poll
tasks. Each claim gets a new poll token, so any chain that survived
stops at its next tick.

Usage:
    python manage.py resume_settlement_polling
    python manage.py resume_settlement_polling --claim 42 --claim 43
"""

from django.core.management.base import BaseCommand

from claimpay.models import Claim
from claimpay.settlements.state import SettlementStatus
from claimpay.settlements.tasks import resume_polling


class Command(BaseCommand):
    help = "Restart status polling for claims whose settlement is processing"

    def add_arguments(self, parser):
        parser.add_argument(
            "--claim",
            type=int,
            action="append",
            dest="claim_ids",
            help="Only resume these claim ids (repeatable)",
        )

    def handle(self, *args, **options):
        claims = Claim.objects.filter(settlement_status=SettlementStatus.PROCESSING)
        if options["claim_ids"]:
            claims = claims.filter(pk__in=options["claim_ids"])

        resumed = 0
        for claim_id in claims.values_list("pk", flat=True):
            if resume_polling(claim_id):
                resumed += 1
                self.stdout.write(f"  Resumed polling for claim {claim_id}")

        self.stdout.write(self.style.SUCCESS(f"Resumed polling for {resumed} settlement(s)"))
