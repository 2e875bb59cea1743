"""
Module: billing_engines.recurrence
Responsibility:
    Calendar arithmetic for recurring invoices: add a frequency interval
    to a date, decide the next occurrence of a schedule, and advance a
    schedule after an instance has been generated.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access. The
    caller passes every date in.

Invariants enforced:
    - Month-based intervals clamp to the last day of a short month and
      return to the anchor day afterwards (Jan 31 -> Feb 29 -> Mar 31).
    - end_date closes the series: occurrences fall strictly before it. A
      monthly schedule whose end_date is one month after its next date
      generates exactly one more instance.
    - The first occurrence of a schedule is its stored next_date, so a
      start date chosen on the template is honoured.
    - advance() keeps next_date strictly after last_generated_on and
      deactivates the schedule when the projected next_date reaches
      end_date.
"""

from __future__ import annotations

import calendar
from dataclasses import replace
from datetime import date, timedelta

from billing_engines.tracer import traced_engine
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import RecurrenceFrequency, RecurringInvoice

logger = get_logger("engines.recurrence")

_DAY_INTERVALS = {
    RecurrenceFrequency.WEEKLY: 7,
    RecurrenceFrequency.BIWEEKLY: 14,
}

_MONTH_INTERVALS = {
    RecurrenceFrequency.MONTHLY: 1,
    RecurrenceFrequency.QUARTERLY: 3,
    RecurrenceFrequency.YEARLY: 12,
}


def _add_months(d: date, months: int, anchor_day: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor_day, last_day))


def add_interval(
    d: date,
    frequency: RecurrenceFrequency,
    anchor_day: int | None = None,
) -> date:
    """
    Add one ``frequency`` interval to ``d``.

    ``anchor_day`` is the day of month the schedule started on; it lets a
    monthly series that began on the 31st land on the 31st again after a
    clamped February. Defaults to ``d.day``. Ignored for day intervals.
    """
    frequency = RecurrenceFrequency(frequency)
    if frequency in _DAY_INTERVALS:
        return d + timedelta(days=_DAY_INTERVALS[frequency])
    return _add_months(d, _MONTH_INTERVALS[frequency], anchor_day or d.day)


@traced_engine("recurrence", "1.0", fingerprint_fields=("as_of",))
def next_recurrence(recurring: RecurringInvoice, as_of: date) -> date | None:
    """
    Next occurrence after ``as_of`` for ``recurring``, or None.

    ``as_of`` is the issue date of the instance that triggered the
    scheduler. Until something has been generated the schedule's own
    ``next_date`` is the occurrence. Returns None when the schedule is
    inactive or the occurrence is on or after ``end_date``.
    """
    if not recurring.active:
        return None
    if recurring.last_generated_on is None:
        candidate = recurring.next_date
    else:
        candidate = add_interval(as_of, recurring.frequency, recurring.anchor_day)
    if recurring.end_date is not None and candidate >= recurring.end_date:
        logger.info(
            "recurrence_past_end_date",
            extra={
                "recurrence_id": str(recurring.id),
                "candidate": candidate.isoformat(),
                "end_date": recurring.end_date.isoformat(),
            },
        )
        return None
    return candidate


def advance(recurring: RecurringInvoice, generated_on: date) -> RecurringInvoice:
    """
    Schedule state after an instance dated ``generated_on`` was requested.

    The projected next date is one interval later; if that is already
    on or past ``end_date`` the schedule deactivates now, so no further request
    can be emitted for it.
    """
    projected = add_interval(generated_on, recurring.frequency, recurring.anchor_day)
    still_active = recurring.end_date is None or projected < recurring.end_date
    return replace(
        recurring,
        last_generated_on=generated_on,
        next_date=projected,
        active=recurring.active and still_active,
    )


def deactivate(recurring: RecurringInvoice) -> RecurringInvoice:
    return replace(recurring, active=False)


def is_duplicate(recurring: RecurringInvoice, candidate: date) -> bool:
    """True when ``candidate`` was already generated for this schedule."""
    return (
        recurring.last_generated_on is not None
        and candidate <= recurring.last_generated_on
    )
