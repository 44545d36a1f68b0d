from rest_framework import serializers

from apps.catalog.models import BELGIAN_VAT_RATES, Product
from apps.inventory.models import StockMovement


class ProductSerializer(serializers.ModelSerializer):
    price_excl_vat = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "barcode",
            "name",
            "price",
            "price_excl_vat",
            "vat_rate",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at", "price_excl_vat"]
        extra_kwargs = {
            "vat_rate": {"required": True, "error_messages": {"required": "Le taux de TVA est obligatoire."}},
        }

    def to_representation(self, instance):
        data = super().to_representation(instance)
        current_stock = getattr(instance, "stock", None)
        if current_stock is None:
            current_stock = StockMovement.current_stock(instance.id)
        data["stock"] = f"{current_stock:.2f}"
        return data

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Le nom du produit est obligatoire.")
        return value

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Le prix doit etre positif ou nul.")
        return value

    def validate_vat_rate(self, value):
        if value not in BELGIAN_VAT_RATES:
            allowed = ", ".join(str(rate) for rate in BELGIAN_VAT_RATES)
            raise serializers.ValidationError(f"Taux de TVA invalide. Valeurs acceptees: {allowed}.")
        return value

    def validate_barcode(self, value):
        value = "".join((value or "").split())
        if not value:
            return None
        queryset = Product.objects.filter(barcode=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Ce code-barres est deja utilise.")
        return value


def product_snapshot(product):
    return {
        "barcode": product.barcode,
        "name": product.name,
        "price": str(product.price),
        "vat_rate": str(product.vat_rate),
        "is_active": product.is_active,
    }
