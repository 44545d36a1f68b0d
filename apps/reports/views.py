
from django.utils import timezone
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.common.exceptions import error_response
from apps.common.permissions import RolePermission, has_capability
from apps.reports.models import DailyReport
from apps.reports.serializers import (
    CloseDaySerializer,
    DailyReportSerializer,
    OpenDaySerializer,
    XReportQuerySerializer,
)
from apps.reports.services import build_x_report, build_z_report, close_day, get_report, open_day


class DailyReportViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = (
        DailyReport.objects.select_related("cashier", "closed_by")
        .prefetch_related("vat_lines", "archives__archived_by")
        .order_by("-report_date")
    )
    serializer_class = DailyReportSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["reports.view"],
        "retrieve": ["reports.view"],
        "today": ["reports.view"],
        "x": ["reports.view"],
        "open": ["reports.open"],
        "close": ["reports.close"],
    }

    @action(detail=False, methods=["get"])
    def today(self, request):
        report = get_report(timezone.localdate())
        if report is None:
            return Response(None, status=200)
        return Response(self.get_serializer(report).data, status=200)

    @action(detail=False, methods=["post"])
    def open(self, request):
        serializer = OpenDaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        allow_reopen = data["reopen"]
        if allow_reopen and not has_capability(request.user, "reports.reopen"):
            return error_response("forbidden", "Seul un responsable peut rouvrir une journee cloturee.", 403)

        report, reopened = open_day(
            user=request.user,
            opening_amount=data.get("opening_amount"),
            allow_reopen=allow_reopen,
            reason=data["reason"],
        )

        payload = self.get_serializer(report).data
        return Response({**payload, "reopened": reopened}, status=200 if reopened else 201)

    @action(detail=False, methods=["get"])
    def x(self, request):
        query = XReportQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        report = build_x_report(query.validated_data.get("date"), query.validated_data.get("counted"))
        return Response(report, status=200)

    @action(detail=False, methods=["post"])
    def close(self, request):
        serializer = CloseDaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = close_day(
            user=request.user,
            counted_amount=data.get("closing_amount"),
            report_date=data.get("date"),
        )
        return Response(build_z_report(result), status=200)
