"""Management command to replay stored payment events that never finished processing."""
from __future__ import annotations

from typing import Iterable, Optional

from django.core.management.base import BaseCommand, CommandError

from billing.models import BillingPaymentEvent
from billing.services.webhooks import HandlerResult, process_stored_event


class Command(BaseCommand):
    help = "Replay unprocessed payment provider events through the normal reconciliation pipeline."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--event-id",
            dest="event_ids",
            action="append",
            help="Replay only the specified provider event id. Can be supplied multiple times.",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Maximum number of events to replay in this run.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Preview events that would be replayed without performing any changes.",
        )

    def handle(self, *args, **options) -> None:
        event_ids: Optional[Iterable[str]] = options.get("event_ids")
        limit: Optional[int] = options.get("limit")
        dry_run: bool = options.get("dry_run")

        queryset = BillingPaymentEvent.objects.filter(processed=False, rejected=False).order_by("created_at")
        if event_ids:
            queryset = queryset.filter(provider_event_id__in=list(event_ids))

        if limit is not None:
            queryset = queryset[:limit]

        events = list(queryset)
        total = len(events)
        if total == 0:
            self.stdout.write(self.style.WARNING("No unprocessed payment events matched the requested filters."))
            return

        processed = 0
        failed = 0
        rejected = 0

        for event in events:
            self.stdout.write(f"Replaying payment event {event.provider_event_id} ({event.event_type})")
            if dry_run:
                continue

            try:
                result = process_stored_event(event)
            except Exception as exc:
                failed += 1
                self.stdout.write(self.style.WARNING(f"  failed: {exc}"))
                continue
            if result.status == HandlerResult.REJECTED:
                rejected += 1
                self.stdout.write(self.style.WARNING(f"  rejected: {result.detail}"))
                continue
            processed += 1
            self.stdout.write(f"  {result.status}: {result.detail}")

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f"Dry run complete. {total} events would be replayed.")
            )
            return

        summary = f"Replay complete: {processed} succeeded, {failed} failed, {rejected} rejected, {total} total."
        if failed:
            raise CommandError(summary)
        self.stdout.write(self.style.SUCCESS(summary))
