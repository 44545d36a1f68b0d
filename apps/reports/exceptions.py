from apps.common.errors import DomainError


class DailyReportError(DomainError):
    pass


class ReportValidationError(DailyReportError):
    code = "invalid"
    status_code = 400


class DayAlreadyOpen(DailyReportError):
    code = "day_already_open"
    status_code = 409


class DayAlreadyClosed(DailyReportError):
    code = "day_closed"
    status_code = 409


class SerialNumberUnavailable(DailyReportError):
    code = "serial_unavailable"
    status_code = 503
