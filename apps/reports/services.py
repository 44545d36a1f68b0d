import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.audit.services import record_audit
from apps.common.sequences import next_z_serial_number
from apps.reports.aggregation import CashReconciliation, ReportData, compute_report_data, reconcile_cash
from apps.reports.exceptions import DayAlreadyClosed, DayAlreadyOpen, ReportValidationError, SerialNumberUnavailable
from apps.reports.models import DailyReport, DailyReportArchive, DailyReportVatLine
from apps.sales.models import Sale
from apps.sales.pricing import to_cents

logger = logging.getLogger(__name__)

# Largest amount a DailyReport money column (max_digits=12) can hold.
MAX_AMOUNT = Decimal("9999999999.99")

TOTAL_FIELDS = (
    "sales_count",
    "total_sales",
    "total_cash",
    "total_card",
    "total_mobile",
    "total_other",
    "unclassified_total",
)


def day_bounds(report_date):
    start = timezone.make_aware(datetime.combine(report_date, time.min))
    end = timezone.make_aware(datetime.combine(report_date + timedelta(days=1), time.min))
    return start, end


def fetch_day_sales(report_date):
    start, end = day_bounds(report_date)
    return list(
        Sale.objects.filter(is_cancelled=False, sold_at__gte=start, sold_at__lt=end)
        .prefetch_related("items", "payments")
        .order_by("sold_at", "sale_number")
    )


def build_report_data(report_date):
    return compute_report_data(fetch_day_sales(report_date))


def get_report(report_date):
    return DailyReport.objects.select_related("cashier", "closed_by").filter(report_date=report_date).first()


def lock_day(report_date):
    """Lock the report row of a date for the current transaction.

    Sale writers call this before checking the day state so they serialize with
    ``close_day``, which holds the same lock while it totals the day. Returns
    ``None`` when no report exists for the date.
    """
    return DailyReport.objects.select_for_update().filter(report_date=report_date).first()


def _require_amount(value, field_name):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ReportValidationError(
            "Le montant est obligatoire.",
            code=f"{field_name}_required",
            fields={field_name: "Ce champ est obligatoire."},
        )
    try:
        amount = to_cents(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        amount = None
    if amount is None or not amount.is_finite() or amount < 0 or amount > MAX_AMOUNT:
        raise ReportValidationError(
            f"Le montant doit etre compris entre 0 et {MAX_AMOUNT}.",
            code="invalid_amount",
            fields={field_name: "Montant invalide."},
        )
    return amount


def build_x_report(report_date=None, counted_amount=None):
    """Intermediate report for consultation. Reads only, never writes.

    A ``counted_amount`` previews the drawer discrepancy without recording it.
    """
    report_date = report_date or timezone.localdate()
    counted = None if counted_amount is None else _require_amount(counted_amount, "counted_amount")
    report = get_report(report_date)
    data = build_report_data(report_date)
    opening_amount = report.opening_amount if report else Decimal("0")
    cash = reconcile_cash(opening_amount, data.total_cash, counted)
    return {
        "report_type": "X",
        "report_date": report_date.isoformat(),
        "report_id": str(report.id) if report else None,
        "status": report.status if report else None,
        **data.as_dict(),
        "cash": cash.as_dict(),
    }


def _snapshot(report):
    return {
        "report_date": report.report_date.isoformat(),
        "opening_amount": str(report.opening_amount),
        "closing_amount": str(report.closing_amount),
        **{name: str(getattr(report, name)) for name in TOTAL_FIELDS},
        "expected_cash": str(report.expected_cash),
        "cash_difference": str(report.cash_difference),
        "serial_number": report.serial_number,
        "closed_at": report.closed_at.isoformat() if report.closed_at else None,
        "closed_by": report.closed_by_id,
        "vat_lines": [
            {
                "vat_rate": str(line.vat_rate),
                "total_ht": str(line.total_ht),
                "total_vat": str(line.total_vat),
                "total_ttc": str(line.total_ttc),
            }
            for line in report.vat_lines.all()
        ],
    }


def _reopen(report, *, user, opening_amount, reason):
    archive = DailyReportArchive.objects.create(
        report=report,
        serial_number=report.serial_number,
        snapshot=_snapshot(report),
        archived_by=user,
        reason=reason,
    )
    report.vat_lines.all().delete()
    previous_serial = report.serial_number
    report.opening_amount = opening_amount
    report.closing_amount = None
    report.serial_number = None
    report.expected_cash = None
    report.cash_difference = None
    report.closed_at = None
    report.closed_by = None
    report.cashier = user
    report.opened_at = timezone.now()
    for name in TOTAL_FIELDS:
        setattr(report, name, 0)
    report.save()
    record_audit(
        actor=user,
        action="report.day.reopen",
        entity_type="daily_report",
        entity_id=report.id,
        payload={
            "report_date": report.report_date.isoformat(),
            "previous_serial_number": previous_serial,
            "archive_id": str(archive.id),
            "opening_amount": str(opening_amount),
            "reason": reason,
        },
    )
    logger.warning("Day %s reopened by %s, closed report %s archived", report.report_date, user, previous_serial)


def open_day(*, user, opening_amount, report_date=None, allow_reopen=True, reason=""):
    """Open the cash register for a date with an opening float.

    Returns ``(report, reopened)``. A closed day is reopened only when
    ``allow_reopen`` is set; its closed figures are archived first.
    """
    amount = _require_amount(opening_amount, "opening_amount")
    report_date = report_date or timezone.localdate()
    try:
        with transaction.atomic():
            report = DailyReport.objects.select_for_update().filter(report_date=report_date).first()
            if report is None:
                report = DailyReport.objects.create(
                    report_date=report_date,
                    opening_amount=amount,
                    cashier=user,
                    opened_at=timezone.now(),
                )
                record_audit(
                    actor=user,
                    action="report.day.open",
                    entity_type="daily_report",
                    entity_id=report.id,
                    payload={"report_date": report_date.isoformat(), "opening_amount": str(amount)},
                )
                logger.info("Day %s opened with %s", report_date, amount)
                return report, False
            if report.is_open:
                raise DayAlreadyOpen("La journee est deja ouverte.")
            if not allow_reopen:
                raise DayAlreadyClosed(
                    "La journee est deja cloturee. Confirmez la reouverture pour continuer.",
                )
            _reopen(report, user=user, opening_amount=amount, reason=reason)
            return report, True
    except IntegrityError as exc:
        # Another register inserted the row between our read and our insert.
        raise DayAlreadyOpen("La journee est deja ouverte.") from exc


@dataclass
class ClosingResult:
    report: DailyReport
    data: ReportData
    cash: CashReconciliation


def close_day(*, user, counted_amount, report_date=None, serial_generator=None):
    """Close the open day (Z report) with the counted drawer amount.

    Totals are recomputed from the day's sales inside the same transaction that
    writes them. Any failure, including the serial number generator raising,
    leaves the report untouched.
    """
    counted = _require_amount(counted_amount, "closing_amount")
    report_date = report_date or timezone.localdate()
    serial_generator = serial_generator or next_z_serial_number

    with transaction.atomic():
        report = (
            DailyReport.objects.select_for_update()
            .filter(report_date=report_date, closing_amount__isnull=True)
            .first()
        )
        if report is None:
            raise ReportValidationError("Aucune journee ouverte a cloturer.", code="no_open_day")

        data = build_report_data(report_date)
        cash = reconcile_cash(report.opening_amount, data.total_cash, counted)

        serial_number = serial_generator()
        if not serial_number:
            raise SerialNumberUnavailable("Impossible d'obtenir un numero de serie pour le rapport Z.")

        report.closing_amount = counted
        report.sales_count = data.sales_count
        report.total_sales = to_cents(data.total_sales)
        report.total_cash = to_cents(data.total_cash)
        report.total_card = to_cents(data.total_card)
        report.total_mobile = to_cents(data.total_mobile)
        report.total_other = to_cents(data.total_other)
        report.unclassified_total = to_cents(data.unclassified_total)
        report.expected_cash = cash.expected_cash
        report.cash_difference = cash.discrepancy
        report.serial_number = str(serial_number)
        report.closed_by = user
        report.closed_at = timezone.now()
        report.save()

        report.vat_lines.all().delete()
        DailyReportVatLine.objects.bulk_create(
            [DailyReportVatLine(report=report, **line) for line in data.vat.lines()]
        )

        record_audit(
            actor=user,
            action="report.day.close",
            entity_type="daily_report",
            entity_id=report.id,
            payload={
                "report_date": report_date.isoformat(),
                "serial_number": report.serial_number,
                "total_sales": str(report.total_sales),
                "sales_count": report.sales_count,
                "closing_amount": str(counted),
                "expected_cash": str(cash.expected_cash),
                "cash_difference": str(cash.discrepancy),
            },
        )

    if cash.discrepancy:
        logger.warning(
            "Day %s closed with cash discrepancy %s (expected %s, counted %s)",
            report_date,
            cash.discrepancy,
            cash.expected_cash,
            cash.counted_cash,
        )
    logger.info("Day %s closed, Z report %s", report_date, report.serial_number)
    return ClosingResult(report=report, data=data, cash=cash)


def build_z_report(result):
    report = result.report
    return {
        "report_type": "Z",
        "report_date": report.report_date.isoformat(),
        "report_id": str(report.id),
        "status": report.status,
        "serial_number": report.serial_number,
        "closed_at": report.closed_at.isoformat() if report.closed_at else None,
        **result.data.as_dict(),
        "cash": result.cash.as_dict(),
    }
