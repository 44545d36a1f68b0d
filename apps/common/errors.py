class DomainError(Exception):
    """Business rule violation surfaced to API clients as ``{"code", "detail", "fields"}``."""

    code = "error"
    status_code = 400

    def __init__(self, detail, *, code=None, fields=None):
        super().__init__(detail)
        self.detail = detail
        if code is not None:
            self.code = code
        self.fields = fields or {}
