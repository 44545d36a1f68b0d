from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Product
from apps.inventory.models import MovementType, StockMovement

User = get_user_model()


class CatalogTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.cashier = User.objects.create_user(username="cashier", password="cashier123", role="CASHIER")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_jwt_login_valid_and_invalid(self):
        ok = self.client.post("/api/v1/auth/token/", {"username": "admin", "password": "admin123"}, format="json")
        bad = self.client.post("/api/v1/auth/token/", {"username": "admin", "password": "wrong"}, format="json")
        self.assertEqual(ok.status_code, 200)
        self.assertIn("access", ok.data)
        self.assertEqual(bad.status_code, 401)

    def test_product_create_update_delete_are_audited(self):
        self.auth_as("admin", "admin123")
        created = self.client.post(
            "/api/v1/products/",
            {"barcode": " 5410 0000 00011 ", "name": "Chocolat noir", "price": "3.63", "vat_rate": "6.00"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        product_id = created.data["id"]
        self.assertEqual(created.data["barcode"], "5410000000011")
        self.assertEqual(created.data["price_excl_vat"], "3.42")
        self.assertEqual(created.data["stock"], "0.00")

        updated = self.client.patch(f"/api/v1/products/{product_id}/", {"price": "3.99"}, format="json")
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.data["price"], "3.99")

        deleted = self.client.delete(f"/api/v1/products/{product_id}/")
        self.assertEqual(deleted.status_code, 204)

        self.assertTrue(AuditLog.objects.filter(action="catalog.product.create", entity_id=product_id).exists())
        update_log = AuditLog.objects.get(action="catalog.product.update", entity_id=product_id)
        self.assertEqual(update_log.payload["before"]["price"], "3.63")
        self.assertTrue(AuditLog.objects.filter(action="catalog.product.delete", entity_id=product_id).exists())

    def test_vat_rate_must_be_a_belgian_rate(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/products/",
            {"name": "Vin", "price": "9.99", "vat_rate": "19.60"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("vat_rate", response.data["fields"])

        missing = self.client.post("/api/v1/products/", {"name": "Biscuits", "price": "5.00"}, format="json")
        self.assertEqual(missing.status_code, 400)
        self.assertIn("vat_rate", missing.data["fields"])
        self.assertFalse(Product.objects.filter(name="Biscuits").exists())

        zero = self.client.post(
            "/api/v1/products/",
            {"name": "Journal", "price": "2.50", "vat_rate": "0"},
            format="json",
        )
        self.assertEqual(zero.status_code, 201)
        self.assertEqual(zero.data["vat_rate"], "0.00")

    def test_barcode_is_unique_and_searchable(self):
        self.auth_as("admin", "admin123")
        Product.objects.create(barcode="5410000000011", name="Cafe moulu", price=Decimal("6.49"), vat_rate=Decimal("6.00"))
        Product.objects.create(name="Cafe en grains", price=Decimal("8.99"), vat_rate=Decimal("6.00"), is_active=False)

        dup = self.client.post(
            "/api/v1/products/",
            {"barcode": "5410000000011", "name": "Doublon", "price": "1.00", "vat_rate": "21.00"},
            format="json",
        )
        self.assertEqual(dup.status_code, 400)

        search = self.client.get("/api/v1/products/?q=cafe")
        self.assertEqual(search.data["count"], 2)
        active = self.client.get("/api/v1/products/?q=cafe&is_active=true")
        self.assertEqual(active.data["count"], 1)
        by_barcode = self.client.get("/api/v1/products/", {"barcode": "5410 000000011"})
        self.assertEqual(by_barcode.data["results"][0]["name"], "Cafe moulu")

    def test_product_with_stock_history_cannot_be_deleted(self):
        self.auth_as("admin", "admin123")
        product = Product.objects.create(name="Lait", price=Decimal("1.19"), vat_rate=Decimal("6.00"))
        StockMovement.objects.create(
            product=product,
            movement_type=MovementType.RECEIPT,
            quantity_delta=Decimal("12"),
            reference_type="seed",
            reference_id="seed-1",
            created_by=self.admin,
        )

        response = self.client.delete(f"/api/v1/products/{product.id}/")
        self.assertEqual(response.status_code, 400)
        self.assertTrue(Product.objects.filter(pk=product.pk).exists())

        listed = self.client.get(f"/api/v1/products/{product.id}/")
        self.assertEqual(listed.data["stock"], "12.00")

    def test_cashier_can_read_but_not_manage(self):
        self.auth_as("cashier", "cashier123")
        self.assertEqual(self.client.get("/api/v1/products/").status_code, 200)
        response = self.client.post("/api/v1/products/", {"name": "Pain", "price": "2.40"}, format="json")
        self.assertEqual(response.status_code, 403)
