from rest_framework import serializers

from apps.inventory.models import MovementType, StockMovement

MANUAL_MOVEMENT_TYPES = {MovementType.RECEIPT, MovementType.ADJUSTMENT, MovementType.LOSS}


class StockMovementSerializer(serializers.ModelSerializer):
    product_barcode = serializers.CharField(source="product.barcode", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    created_by_username = serializers.CharField(source="created_by.username", read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "product",
            "product_barcode",
            "product_name",
            "movement_type",
            "quantity_delta",
            "reference_type",
            "reference_id",
            "note",
            "created_by",
            "created_by_username",
            "created_at",
        ]
        read_only_fields = ["id", "created_by", "created_at"]

    def validate(self, attrs):
        movement_type = attrs.get("movement_type")
        quantity_delta = attrs.get("quantity_delta")
        if movement_type not in MANUAL_MOVEMENT_TYPES:
            raise serializers.ValidationError({"movement_type": "Les mouvements de vente sont generes par les ventes."})
        if quantity_delta == 0:
            raise serializers.ValidationError({"quantity_delta": "La quantite ne peut pas etre nulle."})
        if movement_type == MovementType.RECEIPT and quantity_delta < 0:
            raise serializers.ValidationError({"quantity_delta": "Une reception doit etre positive."})
        if movement_type == MovementType.LOSS and quantity_delta > 0:
            raise serializers.ValidationError({"quantity_delta": "Une perte doit etre negative."})
        if movement_type in {MovementType.ADJUSTMENT, MovementType.LOSS} and quantity_delta < 0:
            available = StockMovement.current_stock(attrs["product"].id)
            if available + quantity_delta < 0:
                raise serializers.ValidationError({"quantity_delta": "Stock insuffisant."})
        return attrs

    def create(self, validated_data):
        validated_data["created_by"] = self.context["request"].user
        return super().create(validated_data)
