import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.common.errors import DomainError

logger = logging.getLogger(__name__)


def error_response(code, detail, status, fields=None):
    return Response({"code": code, "detail": detail, "fields": fields or {}}, status=status)


def api_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        view = context.get("view")
        logger.info("%s refused by %s: %s", getattr(view, "action", None) or "request", type(exc).__name__, exc.code)
        return error_response(exc.code, exc.detail, exc.status_code, exc.fields)

    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Requete invalide.")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    else:
        detail = "Requete invalide."
        fields = {"non_field_errors": response.data}

    response.data = {
        "code": getattr(exc, "default_code", "error"),
        "detail": detail,
        "fields": fields,
    }
    return response
