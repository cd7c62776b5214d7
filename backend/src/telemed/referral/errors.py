"""Referral errors.

Every rejection is client-correctable: the caller has to change the code,
the amount, or wait for an admin. Each error carries a stable
``error_code`` for API consumers next to the human-readable message.
"""


class ReferralError(Exception):
    """Base class for referral and commission rejections."""

    error_code = "referral_error"
    status_code = 400

    def __init__(self, message: str, **details):
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidInputError(ReferralError):
    """Missing code or non-positive amount."""

    error_code = "invalid_input"


class CodeNotFoundError(ReferralError):
    """No referral code matches."""

    error_code = "not_found"
    status_code = 404

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Referral code {code} not found", code=code)


class InactiveCodeError(ReferralError):
    """Code deactivated or not started yet."""

    error_code = "inactive"


class ExpiredCodeError(ReferralError):
    """Code is past its expiration date."""

    error_code = "expired"


class UsageLimitExceededError(ReferralError):
    """Code has reached ``max_usage``."""

    error_code = "usage_limit_exceeded"

    def __init__(self, code: str, max_usage: int):
        self.code = code
        self.max_usage = max_usage
        super().__init__(
            "Referral code usage limit exceeded", code=code, maxUsage=max_usage
        )


class MinimumOrderNotMetError(ReferralError):
    """Order amount is below the code's minimum."""

    error_code = "minimum_amount_not_met"

    def __init__(self, minimum_amount: float):
        self.minimum_amount = minimum_amount
        super().__init__(
            f"Minimum order amount of {minimum_amount:g} required",
            minimumAmount=minimum_amount,
        )


class UserUsageLimitExceededError(ReferralError):
    """Caller already used the code as often as allowed."""

    error_code = "user_usage_limit_exceeded"


class RoleNotEligibleError(ReferralError):
    """Code is restricted to other roles."""

    error_code = "invalid_user_role"


class PermissionDeniedError(ReferralError):
    """Actor may not perform the operation."""

    error_code = "forbidden"
    status_code = 403


class DuplicateCodeError(ReferralError):
    """A code with the same string already exists."""

    error_code = "duplicate_code"
    status_code = 409


class ReferralCodeMissingError(ReferralError):
    """Admin lookup by id found nothing."""

    error_code = "not_found"
    status_code = 404


class PaymentNotFoundError(ReferralError):
    """No payment with the given id."""

    error_code = "payment_not_found"
    status_code = 404


class CommissionStateError(ReferralError):
    """Illegal commission status transition."""

    error_code = "invalid_commission_transition"
    status_code = 409
