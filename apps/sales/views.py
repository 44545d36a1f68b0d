from datetime import date

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.common.exceptions import error_response
from apps.common.permissions import RolePermission
from apps.reports.services import day_bounds
from apps.sales.models import Sale
from apps.sales.serializers import SaleCancelSerializer, SaleCreateSerializer, SaleListSerializer, SaleSerializer
from apps.sales.services import cancel_sale, create_sale


class SaleViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "head", "options"]
    capability_map = {
        "list": ["sales.view"],
        "retrieve": ["sales.view"],
        "create": ["sales.create"],
        "cancel": ["sales.cancel"],
    }

    def get_queryset(self):
        queryset = (
            Sale.objects.select_related("cashier", "cancelled_by")
            .prefetch_related("items", "payments")
            .order_by("-sold_at")
        )
        raw_date = self.request.query_params.get("date")
        if raw_date:
            try:
                start, end = day_bounds(date.fromisoformat(raw_date.strip()))
            except ValueError:
                return queryset.none()
            queryset = queryset.filter(sold_at__gte=start, sold_at__lt=end)

        is_cancelled = self.request.query_params.get("is_cancelled")
        if is_cancelled is not None:
            normalized = is_cancelled.strip().lower()
            if normalized in {"1", "true", "yes"}:
                queryset = queryset.filter(is_cancelled=True)
            elif normalized in {"0", "false", "no"}:
                queryset = queryset.filter(is_cancelled=False)
        return queryset

    def get_serializer_class(self):
        if self.action == "list":
            return SaleListSerializer
        if self.action == "create":
            return SaleCreateSerializer
        if self.action == "cancel":
            return SaleCancelSerializer
        return SaleSerializer

    def create(self, request, *args, **kwargs):
        serializer = SaleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        sale = create_sale(
            cashier=request.user,
            lines=data["items"],
            payments=data["payments"],
            totals=data["totals"],
            notes=data.get("notes", ""),
        )
        return Response(SaleSerializer(sale).data, status=201)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        sale = self.get_object()
        serializer = SaleCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cancelled = cancel_sale(sale=sale, actor=request.user, reason=serializer.validated_data["reason"])
        if not cancelled:
            return error_response("already_cancelled", "Cette vente est deja annulee.", 200)

        sale.refresh_from_db()
        return Response(SaleSerializer(sale).data, status=200)
