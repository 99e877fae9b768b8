"""
Typed errors for lease signing, payments and activation.

Every error carries a machine-readable ``code`` and the HTTP status the JSON
API answers with, so views never parse messages:

    RentFlowError
    +-- ValidationError            400
    |   +-- InvalidSignature
    |   +-- InvalidAmount
    |   +-- InsufficientBalance
    +-- NotFoundError              404
    |   +-- LeaseNotFound
    |   +-- ObligationNotFound
    +-- ConflictError              409
    |   +-- DuplicateSignature
    |   +-- ObligationAlreadySettled
    |   +-- LeaseTerminal
    |   +-- InvalidTransition
    +-- ExternalProviderError      502
    +-- InvariantViolation         500
        +-- ActivationFailed
        +-- ImmutableTermsError

Conflict errors describe work that is already done; callers may treat them
as success.
"""


class RentFlowError(Exception):
    code = "RENTFLOW_ERROR"
    http_status = 400

    def __init__(self, message="", **details):
        self.message = message or self.__class__.__doc__ or self.code
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        data = {"code": self.code, "message": self.message}
        if self.details:
            data["details"] = {k: _jsonable(v) for k, v in self.details.items()}
        return data


def _jsonable(value):
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(RentFlowError):
    """Malformed input."""

    code = "VALIDATION_ERROR"
    http_status = 400


class InvalidSignature(ValidationError):
    """Signature does not verify against the claimed wallet."""

    code = "INVALID_SIGNATURE"

    def __init__(self, reason, message=""):
        self.reason = reason
        super().__init__(message or f"Invalid signature: {reason}.", reason=reason)


class InvalidAmount(ValidationError):
    """Transfer amount outside the permitted range."""

    code = "INVALID_AMOUNT"


class InsufficientBalance(ValidationError):
    """Source wallet cannot cover the transfer."""

    code = "INSUFFICIENT_BALANCE"


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(RentFlowError):
    code = "NOT_FOUND"
    http_status = 404


class LeaseNotFound(NotFoundError):
    code = "LEASE_NOT_FOUND"

    def __init__(self, lease_id):
        self.lease_id = lease_id
        super().__init__(f"Lease {lease_id} not found.", lease_id=lease_id)


class ObligationNotFound(NotFoundError):
    code = "OBLIGATION_NOT_FOUND"

    def __init__(self, obligation_id):
        self.obligation_id = obligation_id
        super().__init__(f"Payment obligation {obligation_id} not found.", obligation_id=obligation_id)


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class ConflictError(RentFlowError):
    code = "CONFLICT"
    http_status = 409


class DuplicateSignature(ConflictError):
    code = "DUPLICATE_SIGNATURE"

    def __init__(self, lease_id, role):
        self.lease_id = lease_id
        self.role = role
        super().__init__(f"Lease {lease_id} already has a {role} signature.", lease_id=lease_id, role=role)


class ObligationAlreadySettled(ConflictError):
    code = "OBLIGATION_ALREADY_SETTLED"

    def __init__(self, obligation_id, status):
        self.obligation_id = obligation_id
        self.status = status
        super().__init__(
            f"Payment obligation {obligation_id} is already {status}.",
            obligation_id=obligation_id,
            status=status,
        )


class LeaseTerminal(ConflictError):
    code = "LEASE_TERMINAL"

    def __init__(self, lease_id, status):
        self.lease_id = lease_id
        self.status = status
        super().__init__(f"Lease {lease_id} is {status}.", lease_id=lease_id, status=status)


class InvalidTransition(ConflictError):
    code = "INVALID_TRANSITION"

    def __init__(self, kind, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Illegal {kind} transition {current} -> {target}.",
            current=current,
            target=target,
        )


# ---------------------------------------------------------------------------
# Payment network
# ---------------------------------------------------------------------------


class ExternalProviderError(RentFlowError):
    """The payment network failed or rejected the request."""

    code = "EXTERNAL_PROVIDER_ERROR"
    http_status = 502

    def __init__(self, message="", rejected=False, **details):
        self.rejected = rejected
        super().__init__(message, rejected=rejected, **details)


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


class InvariantViolation(RentFlowError):
    code = "INVARIANT_VIOLATION"
    http_status = 500


class ActivationFailed(InvariantViolation):
    code = "ACTIVATION_FAILED"


class ImmutableTermsError(InvariantViolation):
    code = "IMMUTABLE_TERMS"
