"""
Management command to poll one settlement in the foreground.

Takes over the claim's polling (issuing a new poll token) and prints each
tick until the processor reports a final status or the poll budget is
spent. Ctrl-C stops the watch; the claim is left processing and can be
resumed with ``resume_settlement_polling``.

Usage:
    python manage.py watch_settlement 42
"""

from django.core.management.base import BaseCommand, CommandError

from claimpay.settlements import store
from claimpay.settlements.poller import CANCELLED, StatusPoller


class Command(BaseCommand):
    help = "Poll a processing settlement until it reaches a final status"

    def add_arguments(self, parser):
        parser.add_argument("claim_id", type=int)
        parser.add_argument(
            "--max-polls",
            type=int,
            default=None,
            help="Override SETTLEMENT_MAX_POLLS for this run",
        )

    def handle(self, *args, **options):
        claim_id = options["claim_id"]
        poll_token = store.restart_polling(claim_id)
        if poll_token is None:
            raise CommandError(f"Claim {claim_id} has no settlement in processing")

        def report(outcome, claim):
            status = claim.settlement_status if claim else "unknown"
            self.stdout.write(f"  Polling ended: {outcome} (settlement {status})")

        self.stdout.write(f"Watching settlement of claim {claim_id}...")
        with StatusPoller(
            claim_id, poll_token, max_polls=options["max_polls"], on_finished=report
        ) as poller:
            try:
                outcome = poller.run()
            except KeyboardInterrupt:
                poller.stop()
                outcome = CANCELLED

        if outcome == CANCELLED:
            self.stdout.write(self.style.WARNING("Watch stopped; settlement still processing"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Watch complete after {poller.poll_count} poll(s)"))
