from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product
from apps.inventory.models import MovementType, StockMovement
from apps.reports.services import close_day, lock_day, open_day
from apps.sales.models import PaymentMethod, Sale
from apps.sales.pricing import compute_line, line_total, split_tax_inclusive
from apps.sales.services import DayClosedError, cancel_sale, create_sale

User = get_user_model()


class PricingTests(SimpleTestCase):
    def test_line_total_applies_discount_and_rounds_to_cents(self):
        self.assertEqual(line_total(Decimal("9.99"), Decimal("3"), Decimal("10")), Decimal("26.97"))

    def test_split_tax_inclusive_keeps_cents_exact(self):
        excl_vat, vat = split_tax_inclusive(Decimal("24.20"), Decimal("21"))
        self.assertEqual(excl_vat, Decimal("20.00"))
        self.assertEqual(vat, Decimal("4.20"))

    def test_compute_line_zero_rate(self):
        line = compute_line(Decimal("3.50"), Decimal("2"), Decimal("0"), Decimal("0"))
        self.assertEqual(line["subtotal"], Decimal("7.00"))
        self.assertEqual(line["vat_amount"], Decimal("0.00"))
        self.assertEqual(line["discount"], Decimal("0.00"))


class SaleApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")
        self.product = Product.objects.create(
            barcode="5410000000011",
            name="Cafe moulu",
            price=Decimal("12.10"),
            vat_rate=Decimal("21.00"),
        )
        StockMovement.objects.create(
            product=self.product,
            movement_type=MovementType.RECEIPT,
            quantity_delta=Decimal("10"),
            reference_type="seed",
            reference_id="seed-stock",
            note="seed",
            created_by=self.admin,
        )

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def stock(self):
        return StockMovement.current_stock(self.product.id)

    def sell(self, items=None, payments=None):
        return self.client.post(
            "/api/v1/sales/",
            {
                "items": items or [{"product": str(self.product.id), "quantity": "2"}],
                "payments": payments or [{"method": PaymentMethod.CASH, "amount": "24.20"}],
            },
            format="json",
        )

    def test_create_sale_snapshots_product_and_moves_stock(self):
        self.auth_as("cashier", "cashier123")
        response = self.sell()

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["sale_number"].startswith("T"))
        self.assertEqual(response.data["total"], "24.20")
        self.assertEqual(response.data["subtotal"], "20.00")
        self.assertEqual(response.data["total_vat"], "4.20")
        self.assertEqual(response.data["payment_method"], PaymentMethod.CASH)
        item = response.data["items"][0]
        self.assertEqual(item["product_name"], "Cafe moulu")
        self.assertEqual(item["product_barcode"], "5410000000011")
        self.assertEqual(item["vat_rate"], "21.00")
        self.assertEqual(self.stock(), Decimal("8"))
        self.assertTrue(AuditLog.objects.filter(action="sale.create", entity_id=response.data["id"]).exists())

    def test_sale_numbers_are_sequential(self):
        self.auth_as("cashier", "cashier123")
        first = self.sell().data["sale_number"]
        second = self.sell().data["sale_number"]
        self.assertEqual(int(second.rsplit("-", 1)[1]), int(first.rsplit("-", 1)[1]) + 1)

    def test_free_item_requires_its_own_vat_rate(self):
        self.auth_as("cashier", "cashier123")
        response = self.sell(items=[{"product_name": "Sac", "unit_price": "0.50", "quantity": "1"}])
        self.assertEqual(response.status_code, 400)
        self.assertEqual(Sale.objects.count(), 0)

        ok = self.sell(
            items=[{"product_name": "Sac", "unit_price": "0.50", "quantity": "1", "vat_rate": "0"}],
            payments=[{"method": PaymentMethod.CASH, "amount": "0.50"}],
        )
        self.assertEqual(ok.status_code, 201)
        self.assertEqual(ok.data["items"][0]["vat_rate"], "0.00")
        self.assertIsNone(ok.data["items"][0]["product"])

    def test_split_payment_with_cash_change(self):
        self.auth_as("cashier", "cashier123")
        response = self.sell(
            payments=[
                {"method": PaymentMethod.CARD, "amount": "10.00"},
                {"method": PaymentMethod.CASH, "amount": "20.00"},
            ]
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["amount_paid"], "30.00")
        self.assertEqual(response.data["change_amount"], "5.80")
        self.assertTrue(response.data["is_split_payment"])
        self.assertEqual(len(response.data["payments"]), 2)

    def test_underpayment_and_card_overpayment_are_rejected(self):
        self.auth_as("cashier", "cashier123")
        short = self.sell(payments=[{"method": PaymentMethod.CASH, "amount": "20.00"}])
        self.assertEqual(short.status_code, 400)
        self.assertIn("payments", short.data["fields"])

        over = self.sell(payments=[{"method": PaymentMethod.CARD, "amount": "30.00"}])
        self.assertEqual(over.status_code, 400)
        self.assertEqual(Sale.objects.count(), 0)

    def test_cancel_restores_stock_once_and_requires_capability(self):
        self.auth_as("cashier", "cashier123")
        sale_id = self.sell().data["id"]

        forbidden = self.client.post(f"/api/v1/sales/{sale_id}/cancel/", {"reason": "erreur"}, format="json")
        self.assertEqual(forbidden.status_code, 403)

        self.auth_as("admin", "admin123")
        first = self.client.post(f"/api/v1/sales/{sale_id}/cancel/", {"reason": "erreur"}, format="json")
        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.data["is_cancelled"])
        self.assertEqual(first.data["cancel_reason"], "erreur")
        self.assertEqual(first.data["cancelled_by_username"], "admin")
        self.assertEqual(self.stock(), Decimal("10"))

        second = self.client.post(f"/api/v1/sales/{sale_id}/cancel/", {}, format="json")
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.data["code"], "already_cancelled")
        self.assertEqual(self.stock(), Decimal("10"))
        self.assertEqual(AuditLog.objects.filter(action="sale.cancel").count(), 1)

    def test_sales_are_immutable_through_the_api(self):
        self.auth_as("admin", "admin123")
        sale_id = self.sell().data["id"]
        patch = self.client.patch(f"/api/v1/sales/{sale_id}/", {"notes": "x"}, format="json")
        delete = self.client.delete(f"/api/v1/sales/{sale_id}/")
        self.assertEqual(patch.status_code, 405)
        self.assertEqual(delete.status_code, 405)

    def test_list_filters_by_date_and_cancellation(self):
        self.auth_as("admin", "admin123")
        kept = self.sell().data["id"]
        cancelled = self.sell().data["id"]
        self.client.post(f"/api/v1/sales/{cancelled}/cancel/", {"reason": "test"}, format="json")

        today = timezone.localdate().isoformat()
        listing = self.client.get(f"/api/v1/sales/?date={today}&is_cancelled=false")
        self.assertEqual(listing.status_code, 200)
        self.assertEqual([row["id"] for row in listing.data["results"]], [kept])

        other_day = self.client.get("/api/v1/sales/?date=2001-01-01")
        self.assertEqual(other_day.data["count"], 0)

    def test_closed_day_refuses_new_sales_and_cancellations(self):
        self.auth_as("admin", "admin123")
        sale_id = self.sell().data["id"]
        open_day(user=self.admin, opening_amount="0")
        close_day(user=self.admin, counted_amount="24.20")

        blocked = self.sell()
        self.assertEqual(blocked.status_code, 409)
        self.assertEqual(blocked.data["code"], "day_closed")

        cancel = self.client.post(f"/api/v1/sales/{sale_id}/cancel/", {"reason": "trop tard"}, format="json")
        self.assertEqual(cancel.status_code, 409)
        self.assertFalse(Sale.objects.get(pk=sale_id).is_cancelled)

    def test_sale_services_lock_the_day_before_writing(self):
        line = {
            "product": self.product,
            "product_name": self.product.name,
            "product_barcode": self.product.barcode,
            "quantity": Decimal("1"),
            "unit_price": self.product.price,
            "discount_pct": Decimal("0"),
            "vat_rate": self.product.vat_rate,
            **compute_line(self.product.price, Decimal("1"), Decimal("0"), self.product.vat_rate),
        }
        payments = [{"method": PaymentMethod.CASH, "amount": Decimal("12.10")}]
        totals = {
            "subtotal": line["subtotal"],
            "total_vat": line["vat_amount"],
            "total_discount": Decimal("0.00"),
            "total": line["total"],
            "amount_paid": Decimal("12.10"),
            "change_amount": Decimal("0.00"),
        }
        open_day(user=self.admin, opening_amount="0")

        with mock.patch("apps.sales.services.lock_day", wraps=lock_day) as locked:
            sale = create_sale(cashier=self.cashier, lines=[line], payments=payments, totals=totals)
        locked.assert_called_once_with(timezone.localdate(sale.sold_at))

        close_day(user=self.admin, counted_amount="12.10")
        with self.assertRaises(DayClosedError):
            create_sale(cashier=self.cashier, lines=[line], payments=payments, totals=totals)
        with self.assertRaises(DayClosedError):
            cancel_sale(sale=sale, actor=self.admin, reason="apres cloture")

        self.assertEqual(Sale.objects.count(), 1)
        self.assertFalse(Sale.objects.get(pk=sale.pk).is_cancelled)
        self.assertEqual(self.stock(), Decimal("9"))
