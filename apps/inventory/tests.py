from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product
from apps.inventory.models import MovementType, StockMovement

User = get_user_model()


class InventoryTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.cashier = User.objects.create_user(username="cashier", password="cash123", role="CASHIER")
        self.product = Product.objects.create(barcode="5400000000001", name="Eau", price=Decimal("0.89"), vat_rate=Decimal("6.00"))
        self.other_product = Product.objects.create(name="Savon", price=Decimal("2.99"), vat_rate=Decimal("21.00"))

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def post_movement(self, movement_type, quantity, reference_id="ref-1", product=None):
        return self.client.post(
            "/api/v1/inventory/movements/",
            {
                "product": str((product or self.product).id),
                "movement_type": movement_type,
                "quantity_delta": quantity,
                "reference_type": "manual",
                "reference_id": reference_id,
                "note": "Comptage",
            },
            format="json",
        )

    def test_receipt_and_adjustment_are_audited(self):
        self.auth_as("admin", "admin123")
        receipt = self.post_movement(MovementType.RECEIPT, "24", reference_id="bl-001")
        adjustment = self.post_movement(MovementType.ADJUSTMENT, "-2", reference_id="inv-001")

        self.assertEqual(receipt.status_code, 201)
        self.assertEqual(adjustment.status_code, 201)
        self.assertEqual(adjustment.data["created_by_username"], "admin")
        self.assertEqual(StockMovement.current_stock(self.product.id), Decimal("22"))
        self.assertTrue(AuditLog.objects.filter(action="inventory.movement.create", entity_id=receipt.data["id"]).exists())
        self.assertTrue(AuditLog.objects.filter(action="inventory.adjustment.create", entity_id=adjustment.data["id"]).exists())

    def test_sign_rules_and_stock_check(self):
        self.auth_as("admin", "admin123")
        self.assertEqual(self.post_movement(MovementType.RECEIPT, "-1").status_code, 400)
        self.assertEqual(self.post_movement(MovementType.LOSS, "1").status_code, 400)
        self.assertEqual(self.post_movement(MovementType.LOSS, "-1").status_code, 400)
        self.assertEqual(self.post_movement(MovementType.SALE, "-1").status_code, 400)
        self.assertFalse(StockMovement.objects.exists())

    def test_list_filter_and_stock_levels(self):
        self.auth_as("admin", "admin123")
        self.post_movement(MovementType.RECEIPT, "10", reference_id="a")
        self.post_movement(MovementType.RECEIPT, "3", reference_id="b", product=self.other_product)

        self.auth_as("cashier", "cash123")
        listing = self.client.get(f"/api/v1/inventory/movements/?product={self.product.id}")
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.data["count"], 1)
        self.assertEqual(listing.data["results"][0]["product_barcode"], "5400000000001")

        stocks = self.client.get("/api/v1/inventory/stocks/")
        self.assertEqual(stocks.status_code, 200)
        levels = {row["name"]: row["stock"] for row in stocks.data}
        self.assertEqual(levels["Eau"], Decimal("10"))
        self.assertEqual(levels["Savon"], Decimal("3"))

        low = self.client.get("/api/v1/inventory/stocks/?below=5")
        self.assertEqual([row["name"] for row in low.data], ["Savon"])
        self.assertEqual(self.client.get("/api/v1/inventory/stocks/?below=abc").status_code, 400)

    def test_cashier_cannot_create_movements(self):
        self.auth_as("cashier", "cash123")
        response = self.post_movement(MovementType.RECEIPT, "5")
        self.assertEqual(response.status_code, 403)
