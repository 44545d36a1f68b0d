from datetime import date

from django.core.management.base import BaseCommand, CommandError

from apps.common.errors import DomainError
from apps.reports.services import build_x_report


class Command(BaseCommand):
    help = "Print the X report of a day. Read only: nothing is recorded."

    def add_arguments(self, parser):
        parser.add_argument("--date", help="Calendar date (YYYY-MM-DD), defaults to today.")
        parser.add_argument("--counted", help="Counted drawer amount, to preview the discrepancy.")

    def handle(self, *args, **options):
        report_date = None
        if options["date"]:
            try:
                report_date = date.fromisoformat(options["date"])
            except ValueError as exc:
                raise CommandError(f"Invalid date: {options['date']}") from exc

        try:
            report = build_x_report(report_date, options["counted"])
        except DomainError as exc:
            raise CommandError(exc.detail) from exc

        cash = report["cash"]
        self.stdout.write(f"X report {report['report_date']} ({report['status'] or 'NO REPORT'})")
        self.stdout.write(f"Sales: {report['sales_count']}  Total: {report['total_sales']}")
        for row in report["by_method"]:
            self.stdout.write(f"  {row['method']:<8} {row['total']:>12} ({row['count']})")
        self.stdout.write("VAT:")
        for line in report["vat_by_rate"]:
            self.stdout.write(
                f"  {line['vat_rate']:>6}%  HT {line['total_ht']:>12}  TVA {line['total_vat']:>10}  TTC {line['total_ttc']:>12}"
            )
        if report["flagged_items"]:
            self.stdout.write(
                self.style.WARNING(
                    f"Unclassified: {report['unclassified_total']} ({len(report['flagged_items'])} items without VAT rate)"
                )
            )
        self.stdout.write(f"Opening: {cash['opening_amount']}  Expected cash: {cash['expected_cash']}")
        if cash["counted_cash"] is not None:
            style = self.style.SUCCESS if cash["discrepancy"] == "0.00" else self.style.WARNING
            self.stdout.write(style(f"Counted: {cash['counted_cash']}  Difference: {cash['discrepancy']}"))
