"""Management command to re-derive status for every tracked asset."""

from django.core.management.base import BaseCommand

from equipment.services.status import reconcile_all


class Command(BaseCommand):
    help = "Recompute the status of every occupancy-tracked asset"

    def handle(self, *args, **options):
        result = reconcile_all()
        self.stdout.write(
            self.style.SUCCESS(
                f"Scanned {result['scanned']} asset(s), "
                f"updated {result['updated']}."
            )
        )
