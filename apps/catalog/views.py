from django.db.models import Q
from rest_framework import serializers, viewsets

from apps.audit.services import record_audit
from apps.catalog.models import Product
from apps.catalog.querysets import with_stock
from apps.catalog.serializers import ProductSerializer, product_snapshot
from apps.common.permissions import RolePermission
from apps.inventory.models import StockMovement


class ProductViewSet(viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["catalog.view"],
        "retrieve": ["catalog.view"],
        "create": ["catalog.manage"],
        "partial_update": ["catalog.manage"],
        "update": ["catalog.manage"],
        "destroy": ["catalog.manage"],
    }

    def get_queryset(self):
        queryset = with_stock(Product.objects.all())
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(Q(name__icontains=query) | Q(barcode__icontains=query))

        barcode = self.request.query_params.get("barcode")
        if barcode:
            queryset = queryset.filter(barcode="".join(barcode.split()))

        is_active = self.request.query_params.get("is_active")
        if is_active is not None:
            normalized = is_active.strip().lower()
            if normalized in {"1", "true", "yes"}:
                queryset = queryset.filter(is_active=True)
            elif normalized in {"0", "false", "no"}:
                queryset = queryset.filter(is_active=False)
        return queryset

    def perform_create(self, serializer):
        product = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.product.create",
            entity_type="product",
            entity_id=product.id,
            payload=product_snapshot(product),
        )

    def perform_update(self, serializer):
        before = product_snapshot(self.get_object())
        product = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.product.update",
            entity_type="product",
            entity_id=product.id,
            payload={"before": before, "after": product_snapshot(product)},
        )

    def perform_destroy(self, instance):
        if StockMovement.objects.filter(product=instance).exists():
            raise serializers.ValidationError(
                {"product": "Ce produit a un historique de stock. Desactivez-le au lieu de le supprimer."}
            )
        record_audit(
            actor=self.request.user,
            action="catalog.product.delete",
            entity_type="product",
            entity_id=instance.id,
            payload=product_snapshot(instance),
        )
        super().perform_destroy(instance)
