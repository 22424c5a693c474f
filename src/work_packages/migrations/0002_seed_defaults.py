"""Seed default statuses, priorities, types and time entry activities."""

from django.db import migrations

from work_packages import defaults

SEEDS = [
    ("Status", defaults.STATUSES),
    ("Priority", defaults.PRIORITIES),
    ("Type", defaults.TYPES),
    ("TimeEntryActivity", defaults.TIME_ENTRY_ACTIVITIES),
]


def seed_defaults(apps, schema_editor):
    for model_name, rows in SEEDS:
        model = apps.get_model("work_packages", model_name)
        for row in rows:
            values = dict(row)
            model.objects.update_or_create(
                name=values.pop("name"),
                defaults=values,
            )


def reverse_defaults(apps, schema_editor):
    for model_name, rows in SEEDS:
        model = apps.get_model("work_packages", model_name)
        model.objects.filter(name__in=[row["name"] for row in rows]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("work_packages", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_defaults, reverse_defaults),
    ]
