from decimal import Decimal
from io import StringIO
from types import SimpleNamespace
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import SimpleTestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product
from apps.reports.aggregation import (
    aggregate_payments,
    aggregate_vat,
    compute_report_data,
    normalize_vat_rate,
    payment_shares,
    reconcile_cash,
)
from apps.reports.exceptions import DayAlreadyOpen, SerialNumberUnavailable
from apps.reports.models import DailyReport, DailyReportArchive
from apps.reports.services import close_day, open_day
from apps.sales.models import PaymentMethod

User = get_user_model()


def make_item(unit_price, quantity, vat_rate, discount_pct="0", name="Article"):
    return SimpleNamespace(
        product_name=name,
        unit_price=Decimal(unit_price),
        quantity=Decimal(quantity),
        discount_pct=Decimal(discount_pct),
        vat_rate=None if vat_rate is None else Decimal(vat_rate),
    )


def make_sale(number, total, items, payments=(), method=PaymentMethod.CASH, cancelled=False):
    return SimpleNamespace(
        id=number,
        sale_number=number,
        total=Decimal(total),
        payment_method=method,
        is_cancelled=cancelled,
        items=list(items),
        payments=[SimpleNamespace(method=m, amount=Decimal(a)) for m, a in payments],
    )


class VatAggregationTests(SimpleTestCase):
    def test_single_sale_scenario_excludes_cancelled_sale(self):
        sale_a = make_sale("A", "24.20", [make_item("12.10", "2", "21")])
        sale_b = make_sale("B", "999.00", [make_item("999.00", "1", "21")], cancelled=True)

        data = compute_report_data([sale_a, sale_b])

        self.assertEqual(data.sales_count, 1)
        self.assertEqual(data.total_sales, Decimal("24.20"))
        bucket = data.vat_by_rate[Decimal("21.00")]
        self.assertEqual(bucket["total_ht"], Decimal("20.00"))
        self.assertEqual(bucket["total_vat"], Decimal("4.20"))
        self.assertEqual(data.total_cash, Decimal("24.20"))

    def test_buckets_add_up_to_sale_totals(self):
        sales = [
            make_sale("1", "7.47", [make_item("2.49", "3", "6")]),
            make_sale("2", "13.19", [make_item("4.99", "1", "21"), make_item("8.20", "1", "12")]),
            make_sale("3", "3.33", [make_item("1.11", "3", "21")]),
            make_sale("4", "17.99", [make_item("19.99", "1", "21", discount_pct="10")]),
        ]
        lines = aggregate_vat(sales).lines()
        aggregated = sum((line["total_ht"] + line["total_vat"] for line in lines), Decimal("0"))
        expected = sum((sale.total for sale in sales), Decimal("0"))
        self.assertLessEqual(abs(aggregated - expected), Decimal("0.01"))
        self.assertEqual([line["vat_rate"] for line in lines], [Decimal("21.00"), Decimal("12.00"), Decimal("6.00")])

    def test_zero_rate_has_its_own_bucket(self):
        sale = make_sale("Z", "15.00", [make_item("5.00", "1", "0"), make_item("10.00", "1", "21")])
        result = aggregate_vat([sale])

        self.assertIn(Decimal("0.00"), result.buckets)
        zero = result.buckets[Decimal("0.00")].rounded()
        self.assertEqual(zero["total_ht"], Decimal("5.00"))
        self.assertEqual(zero["total_vat"], Decimal("0.00"))
        self.assertEqual(result.flagged_items, [])

    def test_unknown_rate_is_flagged_not_defaulted(self):
        sale = make_sale("U", "30.00", [make_item("10.00", "1", None, name="Sans taux"), make_item("20.00", "1", "21")])
        with self.assertLogs("apps.reports.aggregation", level="WARNING"):
            result = aggregate_vat([sale])

        self.assertEqual(result.buckets[Decimal("21.00")].rounded()["total_ttc"], Decimal("20.00"))
        self.assertEqual(len(result.flagged_items), 1)
        self.assertEqual(result.flagged_items[0].product_name, "Sans taux")
        self.assertEqual(result.unclassified_total, Decimal("10.00"))

    def test_unreadable_amount_is_flagged_without_breaking_the_report(self):
        broken = make_item("1.00", "1", "21", name="Prix manquant")
        broken.unit_price = None
        sale = make_sale("M", "12.10", [broken, make_item("12.10", "1", "21")])

        with self.assertLogs("apps.reports.aggregation", level="WARNING"):
            data = compute_report_data([sale])

        self.assertEqual(data.vat_by_rate[Decimal("21.00")]["total_ttc"], Decimal("12.10"))
        self.assertEqual([item.reason for item in data.vat.flagged_items], ["amount"])
        self.assertEqual(data.as_dict()["flagged_items"][0]["product_name"], "Prix manquant")
        self.assertEqual(data.unclassified_total, Decimal("0"))

    def test_normalize_vat_rate(self):
        self.assertEqual(normalize_vat_rate("21"), Decimal("21.00"))
        self.assertEqual(normalize_vat_rate(0), Decimal("0.00"))
        self.assertEqual(normalize_vat_rate("5.999"), Decimal("6.00"))
        self.assertIsNone(normalize_vat_rate(None))
        self.assertIsNone(normalize_vat_rate("abc"))
        self.assertIsNone(normalize_vat_rate("-1"))


class PaymentAggregationTests(SimpleTestCase):
    def test_cash_change_comes_off_the_cash_tender(self):
        sale = make_sale(
            "S",
            "24.20",
            [make_item("12.10", "2", "21")],
            payments=[(PaymentMethod.CARD, "10.00"), (PaymentMethod.CASH, "20.00")],
        )
        self.assertEqual(
            dict(payment_shares(sale)),
            {PaymentMethod.CARD: Decimal("10.00"), PaymentMethod.CASH: Decimal("14.20")},
        )

    def test_split_shares_always_sum_to_sale_totals(self):
        sales = [
            make_sale("1", "10.00", [], payments=[(PaymentMethod.CARD, "7.00"), (PaymentMethod.MOBILE, "6.00")]),
            make_sale("2", "5.00", [], payments=[(PaymentMethod.CASH, "20.00")]),
            make_sale("3", "8.50", [], method=PaymentMethod.VOUCHER),
            make_sale("4", "100.00", [], payments=[(PaymentMethod.CARD, "100.00")], cancelled=True),
        ]
        totals = aggregate_payments(sales)
        grand_total = sum((bucket.total for bucket in totals.values()), Decimal("0"))

        self.assertEqual(grand_total, Decimal("23.50"))
        self.assertEqual(totals[PaymentMethod.CARD].total, Decimal("5.38"))
        self.assertEqual(totals[PaymentMethod.MOBILE].total, Decimal("4.62"))
        self.assertEqual(totals[PaymentMethod.CASH].total, Decimal("5.00"))
        self.assertEqual(totals[PaymentMethod.VOUCHER].count, 1)

        data = compute_report_data(sales)
        self.assertEqual(data.total_other, Decimal("8.50"))


class CashReconciliationTests(SimpleTestCase):
    def test_expected_and_discrepancy(self):
        cash = reconcile_cash(Decimal("100"), Decimal("250.50"), Decimal("345.00"))
        self.assertEqual(cash.expected_cash, Decimal("350.50"))
        self.assertEqual(cash.discrepancy, Decimal("-5.50"))

    def test_without_count_there_is_no_discrepancy(self):
        cash = reconcile_cash(Decimal("50"), Decimal("0"))
        self.assertEqual(cash.expected_cash, Decimal("50.00"))
        self.assertIsNone(cash.discrepancy)


class DailyReportApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")
        self.product = Product.objects.create(name="Biere", price=Decimal("12.10"), vat_rate=Decimal("21.00"))

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def sell(self, payments=None):
        response = self.client.post(
            "/api/v1/sales/",
            {
                "items": [{"product": str(self.product.id), "quantity": "2"}],
                "payments": payments or [{"method": PaymentMethod.CASH, "amount": "24.20"}],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        return response.data

    def test_x_report_is_idempotent_and_writes_nothing(self):
        self.auth_as("cashier", "cashier123")
        self.sell()
        audit_count = AuditLog.objects.count()

        first = self.client.get("/api/v1/reports/daily/x/")
        second = self.client.get("/api/v1/reports/daily/x/")

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.data, second.data)
        self.assertEqual(first.data["report_type"], "X")
        self.assertEqual(first.data["total_sales"], "24.20")
        self.assertEqual(first.data["vat_by_rate"][0]["total_vat"], "4.20")
        self.assertEqual(DailyReport.objects.count(), 0)
        self.assertEqual(AuditLog.objects.count(), audit_count)

    def test_x_report_previews_discrepancy(self):
        self.auth_as("cashier", "cashier123")
        self.client.post("/api/v1/reports/daily/open/", {"opening_amount": "100.00"}, format="json")
        self.sell()
        response = self.client.get("/api/v1/reports/daily/x/?counted=120")
        self.assertEqual(response.data["cash"]["expected_cash"], "124.20")
        self.assertEqual(response.data["cash"]["discrepancy"], "-4.20")
        self.assertIsNone(DailyReport.objects.get().closing_amount)

    def test_open_day_is_exclusive(self):
        self.auth_as("cashier", "cashier123")
        self.assertIsNone(self.client.get("/api/v1/reports/daily/today/").data)

        first = self.client.post("/api/v1/reports/daily/open/", {"opening_amount": "100.00"}, format="json")
        second = self.client.post("/api/v1/reports/daily/open/", {"opening_amount": "50.00"}, format="json")

        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.data["status"], "OPEN")
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.data["code"], "day_already_open")
        self.assertEqual(DailyReport.objects.count(), 1)
        self.assertEqual(DailyReport.objects.get().opening_amount, Decimal("100.00"))

    def test_open_day_requires_a_positive_amount(self):
        self.auth_as("cashier", "cashier123")
        missing = self.client.post("/api/v1/reports/daily/open/", {}, format="json")
        negative = self.client.post("/api/v1/reports/daily/open/", {"opening_amount": "-1"}, format="json")
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.data["code"], "opening_amount_required")
        self.assertEqual(negative.data["code"], "invalid_amount")
        self.assertEqual(DailyReport.objects.count(), 0)

    def test_close_day_records_z_report(self):
        self.auth_as("cashier", "cashier123")
        self.client.post("/api/v1/reports/daily/open/", {"opening_amount": "100.00"}, format="json")
        self.sell(payments=[{"method": PaymentMethod.CARD, "amount": "10.00"}, {"method": PaymentMethod.CASH, "amount": "20.00"}])

        with self.assertLogs("apps.reports.services", level="WARNING"):
            response = self.client.post("/api/v1/reports/daily/close/", {"closing_amount": "110.00"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["report_type"], "Z")
        self.assertTrue(response.data["serial_number"])
        self.assertEqual(response.data["cash"]["expected_cash"], "114.20")
        self.assertEqual(response.data["cash"]["discrepancy"], "-4.20")

        report = DailyReport.objects.get()
        self.assertEqual(report.status, "CLOSED")
        self.assertEqual(report.total_sales, Decimal("24.20"))
        self.assertEqual(report.total_cash, Decimal("14.20"))
        self.assertEqual(report.total_card, Decimal("10.00"))
        self.assertEqual(report.cash_difference, Decimal("-4.20"))
        line = report.vat_lines.get()
        self.assertEqual((line.vat_rate, line.total_ht, line.total_vat), (Decimal("21.00"), Decimal("20.00"), Decimal("4.20")))
        self.assertTrue(AuditLog.objects.filter(action="report.day.close", entity_id=str(report.id)).exists())

        detail = self.client.get(f"/api/v1/reports/daily/{report.id}/")
        self.assertEqual(detail.data["vat_lines"][0]["total_ttc"], "24.20")

    def test_close_day_validation(self):
        self.auth_as("cashier", "cashier123")
        no_day = self.client.post("/api/v1/reports/daily/close/", {"closing_amount": "0"}, format="json")
        self.assertEqual(no_day.status_code, 400)
        self.assertEqual(no_day.data["code"], "no_open_day")

        self.client.post("/api/v1/reports/daily/open/", {"opening_amount": "0"}, format="json")
        missing = self.client.post("/api/v1/reports/daily/close/", {}, format="json")
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.data["code"], "closing_amount_required")
        self.assertTrue(DailyReport.objects.get().is_open)

    def test_out_of_range_amounts_are_rejected_before_any_write(self):
        self.auth_as("cashier", "cashier123")
        for amount in ("1e30", "12345678901234.00", "NaN", "Infinity"):
            response = self.client.post("/api/v1/reports/daily/open/", {"opening_amount": amount}, format="json")
            self.assertEqual(response.status_code, 400, amount)
            self.assertEqual(response.data["code"], "invalid_amount")
        self.assertEqual(DailyReport.objects.count(), 0)

        x_report = self.client.get("/api/v1/reports/daily/x/?counted=1e30")
        self.assertEqual(x_report.status_code, 400)
        self.assertEqual(x_report.data["code"], "invalid_amount")

        largest = self.client.post(
            "/api/v1/reports/daily/open/", {"opening_amount": "9999999999.99"}, format="json"
        )
        self.assertEqual(largest.status_code, 201)
        self.assertEqual(largest.data["opening_amount"], "9999999999.99")

    def test_concurrent_insert_surfaces_as_day_already_open(self):
        DailyReport.objects.create(
            report_date=timezone.localdate(),
            opening_amount=Decimal("10.00"),
            cashier=self.admin,
            opened_at=timezone.now(),
        )
        # The locked read misses the row another register just inserted.
        with mock.patch.object(DailyReport.objects, "select_for_update", return_value=DailyReport.objects.none()):
            with self.assertRaises(DayAlreadyOpen):
                open_day(user=self.cashier, opening_amount="20")

        report = DailyReport.objects.get()
        self.assertEqual(report.opening_amount, Decimal("10.00"))
        self.assertFalse(AuditLog.objects.filter(action="report.day.open").exists())

    def test_serial_generator_failure_leaves_day_open(self):
        open_day(user=self.admin, opening_amount="20")

        def broken_generator():
            raise RuntimeError("sequence offline")

        with self.assertRaises(RuntimeError):
            close_day(user=self.admin, counted_amount="20", serial_generator=broken_generator)
        with self.assertRaises(SerialNumberUnavailable):
            close_day(user=self.admin, counted_amount="20", serial_generator=lambda: "")

        report = DailyReport.objects.get()
        self.assertTrue(report.is_open)
        self.assertIsNone(report.serial_number)
        self.assertFalse(report.vat_lines.exists())
        self.assertFalse(AuditLog.objects.filter(action="report.day.close").exists())

    def test_reopen_archives_closed_figures(self):
        self.auth_as("admin", "admin123")
        self.client.post("/api/v1/reports/daily/open/", {"opening_amount": "100.00"}, format="json")
        self.sell()
        closed = self.client.post("/api/v1/reports/daily/close/", {"closing_amount": "124.20"}, format="json")
        first_serial = closed.data["serial_number"]

        refused = self.client.post("/api/v1/reports/daily/open/", {"opening_amount": "50.00"}, format="json")
        self.assertEqual(refused.status_code, 409)
        self.assertEqual(refused.data["code"], "day_closed")

        reopened = self.client.post(
            "/api/v1/reports/daily/open/",
            {"opening_amount": "50.00", "reopen": True, "reason": "vente oubliee"},
            format="json",
        )
        self.assertEqual(reopened.status_code, 200)
        self.assertTrue(reopened.data["reopened"])
        self.assertEqual(reopened.data["status"], "OPEN")
        self.assertIsNone(reopened.data["serial_number"])
        self.assertEqual(reopened.data["total_sales"], "0.00")
        self.assertEqual(reopened.data["vat_lines"], [])

        archive = DailyReportArchive.objects.get()
        self.assertEqual(archive.serial_number, first_serial)
        self.assertEqual(archive.snapshot["total_sales"], "24.20")
        self.assertEqual(archive.snapshot["vat_lines"][0]["total_vat"], "4.20")
        self.assertEqual(archive.reason, "vente oubliee")

        closed_again = self.client.post("/api/v1/reports/daily/close/", {"closing_amount": "74.20"}, format="json")
        self.assertEqual(closed_again.status_code, 200)
        self.assertNotEqual(closed_again.data["serial_number"], first_serial)
        self.assertEqual(closed_again.data["total_sales"], "24.20")

    def test_cashier_cannot_reopen(self):
        open_day(user=self.admin, opening_amount="0")
        close_day(user=self.admin, counted_amount="0")
        self.auth_as("cashier", "cashier123")

        response = self.client.post(
            "/api/v1/reports/daily/open/",
            {"opening_amount": "10.00", "reopen": True},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(DailyReport.objects.get().is_open)
        self.assertFalse(DailyReportArchive.objects.exists())

    def test_reports_require_authentication(self):
        response = self.client.get("/api/v1/reports/daily/x/")
        self.assertEqual(response.status_code, 401)

    def test_daily_report_command_prints_x_report(self):
        self.auth_as("cashier", "cashier123")
        self.sell()
        out = StringIO()
        call_command("daily_report", "--counted", "24.20", stdout=out)
        output = out.getvalue()
        self.assertIn("Total: 24.20", output)
        self.assertIn("Difference: 0.00", output)
        self.assertEqual(DailyReport.objects.count(), 0)
