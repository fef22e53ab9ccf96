class LoyaltyServiceError(Exception):
    pass


class FieldValidationError(LoyaltyServiceError):
    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class InvalidAmountError(FieldValidationError):
    pass


class InvalidDateError(FieldValidationError):
    pass


class InvalidStatusError(FieldValidationError):
    pass


class NotFoundError(LoyaltyServiceError):
    entity_kind = "Entity"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_kind} {entity_id} not found")


class PatientNotFoundError(NotFoundError):
    entity_kind = "Patient"


class RewardNotFoundError(NotFoundError):
    entity_kind = "Reward"


class RedemptionNotFoundError(NotFoundError):
    entity_kind = "Redemption"


class PlanNotFoundError(NotFoundError):
    entity_kind = "Plan"


class ProviderNotFoundError(NotFoundError):
    entity_kind = "Provider"


class DoctorNotFoundError(NotFoundError):
    entity_kind = "Doctor"


class ConflictError(LoyaltyServiceError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InvalidStateTransitionError(ConflictError):
    pass


class ConcurrencyConflictError(ConflictError):
    pass


class InsufficientBalanceError(LoyaltyServiceError):
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient points: {required} required, {available} available")


class BalanceCapExceededError(LoyaltyServiceError):
    def __init__(self, attempted: int, maximum: int):
        self.attempted = attempted
        self.maximum = maximum
        super().__init__(f"Balance of {attempted} points would exceed the maximum of {maximum}")
