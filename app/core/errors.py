"""Domain error taxonomy.

Services raise these; the handlers registered in ``app.main`` turn them into
JSON responses carrying ``detail`` and ``code``.
"""


class FreightError(Exception):
    status_code = 500
    code = "error"
    retryable = False

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class ValidationError(FreightError):
    status_code = 400
    code = "validation_error"


class AuthorizationError(FreightError):
    status_code = 403
    code = "access_denied"


class NotFoundError(FreightError):
    status_code = 404
    code = "not_found"

    def __init__(self, resource_name: str, resource_id=None):
        self.resource_name = resource_name
        self.resource_id = resource_id
        if resource_id is not None:
            message = f"{resource_name} with id {resource_id} not found"
        else:
            message = f"{resource_name} not found"
        super().__init__(message)


class InvalidTransitionError(FreightError):
    status_code = 409
    code = "invalid_transition"


class TransactionFailure(FreightError):
    status_code = 500
    code = "transaction_failed"
    retryable = True
