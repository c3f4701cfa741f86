"""Register the periodic status reconcile with django-celery-beat."""

from django.conf import settings
from django.core.management.base import BaseCommand
from django_celery_beat.models import IntervalSchedule, PeriodicTask

RECONCILE_TASK_NAME = "Reconcile asset statuses"


class Command(BaseCommand):
    help = "Create or update the periodic asset status reconcile task"

    def handle(self, *args, **options):
        every = getattr(settings, "EQUIPMENT_RECONCILE_INTERVAL_SECONDS", 300)
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=every,
            period=IntervalSchedule.SECONDS,
        )
        task, created = PeriodicTask.objects.update_or_create(
            name=RECONCILE_TASK_NAME,
            defaults={
                "task": "equipment.tasks.reconcile_asset_statuses",
                "interval": schedule,
                "enabled": True,
            },
        )
        action = "Created" if created else "Updated"
        self.stdout.write(f"{action}: {task.name} (every {every}s)")
