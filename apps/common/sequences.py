"""Gap-free counters backing human readable document numbers.

Each counter is a single row incremented under a row lock, so two concurrent
callers can never observe the same value. Callers running inside a larger
``transaction.atomic`` block get their increment rolled back together with the
rest of their work.
"""
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F

from apps.common.models import SequenceCounter

logger = logging.getLogger(__name__)

SALE_SEQUENCE = "sale_number"
Z_SERIAL_SEQUENCE = "z_serial_number"


def next_sequence_value(name):
    with transaction.atomic():
        counter, _ = SequenceCounter.objects.select_for_update().get_or_create(name=name)
        counter.last_value = F("last_value") + 1
        counter.save(update_fields=["last_value", "updated_at"])
        counter.refresh_from_db(fields=["last_value"])
    logger.debug("Sequence %s advanced to %s", name, counter.last_value)
    return counter.last_value


def next_sale_number(sold_at):
    value = next_sequence_value(SALE_SEQUENCE)
    return f"{settings.SALE_NUMBER_PREFIX}{sold_at:%Y%m%d}-{value:06d}"


def next_z_serial_number():
    value = next_sequence_value(Z_SERIAL_SEQUENCE)
    return f"{settings.Z_SERIAL_PREFIX}-{value:08d}"
