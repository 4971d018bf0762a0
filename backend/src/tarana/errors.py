"""Error taxonomy for the referral and credit system.

Every error carries the HTTP status it maps to, a stable machine-readable
``code`` and whether the caller may retry. The API layer turns these into
``{"success": false, "error", "code", "details"}`` envelopes.
"""


class ReferralSystemError(Exception):
    """Base class for referral and credit errors."""

    status_code = 500
    title = "Referral system error"

    def __init__(self, message: str, code: str = "REFERRAL_SYSTEM_ERROR", retryable: bool = False):
        self.message = message
        self.code = code
        self.retryable = retryable
        super().__init__(message)


class UnauthorizedError(ReferralSystemError):
    """Raised when a request carries no valid session."""

    status_code = 401
    title = "Unauthorized"

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, code="UNAUTHORIZED")


class ValidationError(ReferralSystemError):
    """Raised for malformed input."""

    status_code = 400
    title = "Invalid request"

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code=code)


class InvalidReferralCodeError(ValidationError):
    """Raised when no profile owns the given referral code."""

    def __init__(self, code: str):
        self.referral_code = code
        super().__init__(f"Invalid referral code: {code}", code="INVALID_REFERRAL_CODE")


class SelfReferralError(ValidationError):
    """Raised when a user tries to use their own referral code."""

    def __init__(self):
        super().__init__("Users cannot refer themselves", code="SELF_REFERRAL")


class DuplicateReferralError(ValidationError):
    """Raised when the referrer/referee pair already exists."""

    def __init__(self):
        super().__init__("Referral relationship already exists", code="DUPLICATE_REFERRAL")


class ProfileNotFoundError(ReferralSystemError):
    """Raised when a user has no profile row."""

    status_code = 404
    title = "Profile not found"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No profile for user {user_id}", code="PROFILE_NOT_FOUND")


class InsufficientBalanceError(ReferralSystemError):
    """Raised when the consume procedure rejects a request for lack of credits."""

    status_code = 402
    title = "Insufficient credits"

    def __init__(self, required: int, available: int, service: str):
        self.required = required
        self.available = available
        self.service = service
        super().__init__(
            f"Insufficient credits: need {required}, have {available} for {service}",
            code="INSUFFICIENT_CREDITS",
        )


class DependencyUnavailableError(ReferralSystemError):
    """Raised when the store or its consume procedure cannot be used."""

    title = "Service unavailable"

    def __init__(self, message: str, code: str = "DEPENDENCY_UNAVAILABLE"):
        super().__init__(message, code=code, retryable=True)


class TierConfigurationError(ReferralSystemError):
    """Raised when the tier catalog is empty or malformed."""

    title = "Tier configuration error"

    def __init__(self, message: str):
        super().__init__(message, code="TIER_CONFIGURATION_ERROR")
