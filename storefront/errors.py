"""Error taxonomy for the storefront.

Every error carries a user-facing message (Spanish, shown as-is in the UI),
a stable ``code`` and optional ``details``/``hint``/``remediation`` so views
can render them as JSON without string matching.
"""

from django.db import DatabaseError


class StorefrontError(Exception):
    """Base error for storefront operations."""

    code = "storefront_error"
    http_status = 400

    def __init__(self, message: str, *, code: str | None = None, details: str = "", hint: str = "", remediation=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details
        self.hint = hint
        self.remediation = remediation

    def as_dict(self) -> dict:
        data = {"error": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        if self.hint:
            data["hint"] = self.hint
        if self.remediation:
            data["remediation"] = self.remediation
        return data


class InsufficientStock(StorefrontError):
    """Raised when the usable lots of a product cannot cover the requested quantity."""

    code = "insufficient_stock"
    http_status = 409

    def __init__(self, product_name: str, requested, available):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Stock insuficiente para {product_name}. Solicitado: {requested}, Disponible: {available}",
            details=f"requested={requested} available={available}",
        )


class AllocationIntegrityError(StorefrontError):
    """Internal invariant breach: allocation left a remainder or referenced a missing lot."""

    code = "allocation_integrity"
    http_status = 500


class ProcedureNotFound(StorefrontError):
    code = "procedure_not_found"
    http_status = 501

    def __init__(self, name: str, remediation=None):
        self.procedure = name
        super().__init__(
            f"La operación '{name}' no está disponible en la base de datos.",
            hint="Registrar el procedimiento antes de invocarlo.",
            remediation=remediation,
        )


class PermissionDenied(StorefrontError):
    code = "permission_denied"
    http_status = 403


class DuplicateConstraint(StorefrontError):
    code = "duplicate"
    http_status = 409


class SameWarehouseTransfer(StorefrontError):
    code = "same_warehouse"

    def __init__(self, message: str = "El depósito de origen y destino no pueden ser el mismo."):
        super().__init__(message)


class InsufficientSourceStock(StorefrontError):
    code = "insufficient_source_stock"
    http_status = 409

    def __init__(self, available, requested):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Stock insuficiente en el lote de origen. Disponible: {available}, Solicitado: {requested}"
        )


class InvalidOperation(StorefrontError):
    """Raised for malformed input or a business rule violation."""

    code = "invalid_operation"


class PaymentVerificationFailed(StorefrontError):
    code = "payment_verification_failed"
    http_status = 502


class UnknownWebhookEvent(StorefrontError):
    code = "unknown_webhook_event"


def classify_database_error(exc: Exception, context: str = "") -> StorefrontError:
    """Map a driver/ORM error to the storefront taxonomy.

    Already-classified errors are returned untouched. Unknown database errors
    become a generic ``StorefrontError`` carrying the original text in
    ``details``.
    """
    if isinstance(exc, StorefrontError):
        return exc

    text = str(exc)
    lowered = text.lower()
    sqlstate = getattr(exc, "pgcode", None) or getattr(getattr(exc, "__cause__", None), "pgcode", None) or ""
    prefix = f"{context}: " if context else ""

    if sqlstate in ("42883", "PGRST202") or "pgrst202" in lowered or "does not exist" in lowered:
        return ProcedureNotFound(context or "desconocida")
    if sqlstate == "42501" or "security policy" in lowered or "permission denied" in lowered:
        return PermissionDenied(f"{prefix}No tiene permisos para realizar esta operación.", details=text)
    if sqlstate == "23505" or "duplicate key" in lowered or "unique constraint failed" in lowered:
        return DuplicateConstraint(f"{prefix}Ya existe un registro con esos datos.", details=text)
    if sqlstate == "P0001" or "stock insuficiente" in lowered:
        return StorefrontError(f"{prefix}{text}", code="insufficient_stock", details=text)
    if isinstance(exc, DatabaseError):
        return StorefrontError(f"{prefix}Error de base de datos.", code="database_error", details=text)
    return StorefrontError(f"{prefix}{text}", details=text)
