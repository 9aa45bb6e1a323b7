"""
Typed failures of the entitlement and ledger engine.

These are expected, recoverable conditions: routes translate them into a
JSON body with a stable ``code`` (see app-level handlers in api/errors.py).
"Not entitled" is never an exception; the access evaluator returns a
negative decision instead.
"""


class EntitlementError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ").capitalize()


class InsufficientBalanceError(EntitlementError):
    status_code = 400
    code = "insufficient_balance"

    def __init__(self, required: int, available: int, currency: str = "tokens"):
        self.required = required
        self.available = available
        self.currency = currency
        super().__init__(f"Insufficient {currency}: required {required}, available {available}")


class AlreadySubscribedError(EntitlementError):
    status_code = 409
    code = "already_subscribed"


class NoActiveSubscriptionError(EntitlementError):
    status_code = 404
    code = "no_active_subscription"


class NotFoundError(EntitlementError):
    status_code = 404
    code = "not_found"


class InvalidStateError(EntitlementError):
    status_code = 409
    code = "invalid_state"


class AlreadyPurchasedError(InvalidStateError):
    code = "already_purchased"
