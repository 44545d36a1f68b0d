from decimal import Decimal

from rest_framework import serializers

from apps.catalog.models import Product
from apps.sales.models import PaymentMethod, Sale, SaleItem, SalePayment
from apps.sales.pricing import compute_line

ZERO = Decimal("0.00")


class SaleItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = SaleItem
        fields = [
            "id",
            "product",
            "product_name",
            "product_barcode",
            "quantity",
            "unit_price",
            "discount_pct",
            "vat_rate",
            "subtotal",
            "vat_amount",
            "total",
        ]
        read_only_fields = fields


class SalePaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = SalePayment
        fields = ["method", "amount"]
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    items = SaleItemSerializer(many=True, read_only=True)
    payments = SalePaymentSerializer(many=True, read_only=True)
    cashier_username = serializers.CharField(source="cashier.username", read_only=True)
    cancelled_by_username = serializers.CharField(source="cancelled_by.username", read_only=True, default=None)
    is_split_payment = serializers.BooleanField(read_only=True)

    class Meta:
        model = Sale
        fields = [
            "id",
            "sale_number",
            "sold_at",
            "cashier",
            "cashier_username",
            "subtotal",
            "total_vat",
            "total_discount",
            "total",
            "payment_method",
            "amount_paid",
            "change_amount",
            "is_split_payment",
            "notes",
            "is_cancelled",
            "cancelled_at",
            "cancelled_by",
            "cancelled_by_username",
            "cancel_reason",
            "items",
            "payments",
        ]
        read_only_fields = fields


class SaleListSerializer(serializers.ModelSerializer):
    payments = SalePaymentSerializer(many=True, read_only=True)
    cashier_username = serializers.CharField(source="cashier.username", read_only=True)

    class Meta:
        model = Sale
        fields = [
            "id",
            "sale_number",
            "sold_at",
            "cashier_username",
            "total",
            "payment_method",
            "payments",
            "is_cancelled",
        ]
        read_only_fields = fields


class SaleItemInputSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    product_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    discount_pct = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, default=ZERO)
    vat_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)

    def validate(self, attrs):
        product = attrs.get("product")
        if attrs["quantity"] <= 0:
            raise serializers.ValidationError({"quantity": "La quantite doit etre superieure a 0."})
        if attrs["discount_pct"] < 0 or attrs["discount_pct"] > 100:
            raise serializers.ValidationError({"discount_pct": "La remise doit etre comprise entre 0 et 100."})

        if product is not None:
            if not product.is_active:
                raise serializers.ValidationError({"product": "Ce produit est desactive."})
            attrs.setdefault("unit_price", product.price)
            attrs.setdefault("vat_rate", product.vat_rate)
            attrs["product_name"] = (attrs.get("product_name") or "").strip() or product.name
            attrs["product_barcode"] = product.barcode or ""
        else:
            # Free items carry their own snapshot; nothing is inferred.
            if not (attrs.get("product_name") or "").strip():
                raise serializers.ValidationError({"product_name": "Le libelle est obligatoire sans produit."})
            if "unit_price" not in attrs:
                raise serializers.ValidationError({"unit_price": "Le prix est obligatoire sans produit."})
            if "vat_rate" not in attrs:
                raise serializers.ValidationError({"vat_rate": "Le taux de TVA est obligatoire sans produit."})
            attrs["product_name"] = attrs["product_name"].strip()

        if attrs["unit_price"] < 0:
            raise serializers.ValidationError({"unit_price": "Le prix unitaire doit etre positif ou nul."})
        if attrs["vat_rate"] < 0 or attrs["vat_rate"] > 100:
            raise serializers.ValidationError({"vat_rate": "Taux de TVA invalide."})

        attrs.update(compute_line(attrs["unit_price"], attrs["quantity"], attrs["discount_pct"], attrs["vat_rate"]))
        return attrs


class SalePaymentInputSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Le montant du paiement doit etre superieur a 0.")
        return value


class SaleCreateSerializer(serializers.Serializer):
    items = SaleItemInputSerializer(many=True)
    payments = SalePaymentInputSerializer(many=True)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")

    def validate(self, attrs):
        items = attrs.get("items", [])
        payments = attrs.get("payments", [])
        if not items:
            raise serializers.ValidationError({"items": "La vente doit contenir au moins un article."})
        if not payments:
            raise serializers.ValidationError({"payments": "La vente doit contenir au moins un paiement."})

        total = sum((item["total"] for item in items), ZERO)
        subtotal = sum((item["subtotal"] for item in items), ZERO)
        total_vat = sum((item["vat_amount"] for item in items), ZERO)
        total_discount = sum((item["discount"] for item in items), ZERO)

        amount_paid = sum((payment["amount"] for payment in payments), ZERO)
        if amount_paid < total:
            raise serializers.ValidationError({"payments": "La somme des paiements est inferieure au total."})
        change_amount = amount_paid - total
        cash_tendered = sum(
            (payment["amount"] for payment in payments if payment["method"] == PaymentMethod.CASH),
            ZERO,
        )
        if change_amount > cash_tendered:
            raise serializers.ValidationError(
                {"payments": "Seuls les paiements en especes peuvent depasser le total (rendu de monnaie)."}
            )

        attrs["totals"] = {
            "subtotal": subtotal,
            "total_vat": total_vat,
            "total_discount": total_discount,
            "total": total,
            "amount_paid": amount_paid,
            "change_amount": change_amount,
        }
        return attrs


class SaleCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate_reason(self, value):
        return value.strip() or "Sans motif"
