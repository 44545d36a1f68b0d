import logging
from decimal import Decimal, InvalidOperation

from rest_framework import generics, viewsets
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.catalog.models import Product
from apps.catalog.querysets import with_stock
from apps.common.exceptions import error_response
from apps.common.permissions import RolePermission
from apps.inventory.models import MovementType, StockMovement
from apps.inventory.serializers import StockMovementSerializer

logger = logging.getLogger(__name__)


class StockMovementViewSet(viewsets.ModelViewSet):
    queryset = StockMovement.objects.select_related("product", "created_by")
    serializer_class = StockMovementSerializer
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "head", "options"]
    capability_map = {
        "list": ["inventory.view"],
        "retrieve": ["inventory.view"],
        "create": ["inventory.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        product_id = self.request.query_params.get("product")
        if product_id:
            queryset = queryset.filter(product_id=product_id)
        movement_type = self.request.query_params.get("movement_type")
        if movement_type:
            queryset = queryset.filter(movement_type=movement_type.strip().upper())
        reference = self.request.query_params.get("reference_id")
        if reference:
            queryset = queryset.filter(reference_id=reference.strip())
        return queryset

    def perform_create(self, serializer):
        movement = serializer.save()
        if movement.movement_type == MovementType.RECEIPT:
            action = "inventory.movement.create"
        else:
            action = "inventory.adjustment.create"
            logger.info(
                "Stock %s of %s for %s by %s",
                movement.movement_type.lower(),
                movement.quantity_delta,
                movement.product,
                self.request.user,
            )
        record_audit(
            actor=self.request.user,
            action=action,
            entity_type="stock_movement",
            entity_id=movement.id,
            payload={
                "product_id": str(movement.product_id),
                "movement_type": movement.movement_type,
                "quantity_delta": str(movement.quantity_delta),
                "reference_type": movement.reference_type,
                "reference_id": movement.reference_id,
                "note": movement.note,
            },
        )


class StockLevelView(generics.GenericAPIView):
    """Current stock per active product, optionally only those under a threshold."""

    permission_classes = [RolePermission]
    capability_map = {"get": ["inventory.view"]}

    def get(self, request, *args, **kwargs):
        queryset = with_stock(Product.objects.filter(is_active=True))
        product_id = request.query_params.get("product")
        if product_id:
            queryset = queryset.filter(pk=product_id)

        below = request.query_params.get("below")
        if below:
            try:
                threshold = Decimal(below)
            except InvalidOperation:
                threshold = None
            if threshold is None or not threshold.is_finite():
                return error_response("invalid", "Seuil invalide.", 400, {"below": "Nombre attendu."})
            queryset = queryset.filter(stock__lt=threshold)

        rows = queryset.order_by("name").values("id", "barcode", "name", "stock")
        return Response([{**row, "id": str(row["id"])} for row in rows])
