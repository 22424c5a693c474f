"""Custom model fields for the work_packages app."""

import re
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

_DECIMAL_HOURS = re.compile(r"(\d+(?:[.,]\d+)?)h?")
_CLOCK_HOURS = re.compile(r"(\d+):(\d+)")
_UNIT_HOURS = re.compile(
    r"(?:(\d+)\s*(?:h|hours?))?\s*(?:(\d+)\s*(?:m|min)?)?", re.IGNORECASE
)


def parse_hours(value):
    """Convert a duration to decimal hours.

    Accepts numbers and the strings ``1.5``, ``1,5``, ``2h``, ``1:30``,
    ``1h30``, ``1h 30m`` and ``90m``. Blank input yields None.

    Raises ValueError for anything else.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"'{value}' is not a valid duration.")
    if isinstance(value, (int, float, Decimal)):
        return float(value)

    text = str(value).strip()
    if not text:
        return None

    match = _DECIMAL_HOURS.fullmatch(text)
    if match:
        return float(match.group(1).replace(",", "."))

    match = _CLOCK_HOURS.fullmatch(text)
    if match:
        return int(match.group(1)) + int(match.group(2)) / 60

    match = _UNIT_HOURS.fullmatch(text)
    if match and (match.group(1) or match.group(2)):
        return int(match.group(1) or 0) + int(match.group(2) or 0) / 60

    raise ValueError(f"'{value}' is not a valid duration.")


class HoursField(models.FloatField):
    """Float column that accepts human-entered durations like ``1:30``."""

    def to_python(self, value):
        if value is None or isinstance(value, float):
            return value
        try:
            return parse_hours(value)
        except ValueError:
            raise ValidationError(
                self.error_messages["invalid"],
                code="invalid",
                params={"value": value},
            )

    def get_prep_value(self, value):
        return super().get_prep_value(self.to_python(value))

    def pre_save(self, model_instance, add):
        value = self.to_python(getattr(model_instance, self.attname))
        setattr(model_instance, self.attname, value)
        return value
