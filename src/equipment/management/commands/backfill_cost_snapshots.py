"""Management command to fill missing cost snapshots on usage logs."""

from django.core.management.base import BaseCommand

from equipment.services.backfill import backfill_cost_snapshots, resolve_limit


class Command(BaseCommand):
    help = (
        "Compute cost snapshots for completed usage logs that have none. "
        "Safe to re-run; already snapshotted logs are left untouched."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Maximum number of usage logs to process in this run.",
        )
        parser.add_argument(
            "--until-done",
            action="store_true",
            help="Repeat batches until no eligible usage logs remain.",
        )

    def handle(self, *args, **options):
        limit = options.get("limit")
        scanned = updated = 0

        while True:
            result = backfill_cost_snapshots(limit=limit)
            scanned += result["scanned"]
            updated += result["updated"]
            # Stop on a short batch or when only unreadable rows remain.
            if (
                not options.get("until_done")
                or result["updated"] == 0
                or result["scanned"] < resolve_limit(limit)
            ):
                break

        self.stdout.write(
            self.style.SUCCESS(
                f"Scanned {scanned} usage log(s), updated {updated}."
            )
        )
        if scanned > updated:
            self.stdout.write(
                self.style.WARNING(
                    f"{scanned - updated} usage log(s) skipped "
                    f"(unreadable start/end time)."
                )
            )
