"""Seed default statuses, priorities, types and time entry activities."""

from django.core.management.base import BaseCommand

from work_packages import defaults
from work_packages.models import Priority, Status, TimeEntryActivity, Type


class Command(BaseCommand):
    help = "Seed default work package statuses, priorities, types and activities"

    def handle(self, *args, **options):
        seeds = [
            (Status, defaults.STATUSES),
            (Priority, defaults.PRIORITIES),
            (Type, defaults.TYPES),
            (TimeEntryActivity, defaults.TIME_ENTRY_ACTIVITIES),
        ]
        for model, rows in seeds:
            for row in rows:
                obj, created = model.objects.update_or_create(
                    name=row["name"],
                    defaults=row,
                )
                action = "Created" if created else "Updated"
                self.stdout.write(
                    f"{action} {model._meta.verbose_name}: {obj.name}"
                )
