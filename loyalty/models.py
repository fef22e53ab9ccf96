from datetime import date, datetime
from enum import Enum
from typing import Optional, Union
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class _AliasedStatus(str, Enum):
    """String enum that accepts mixed case, padding and Spanish spellings."""

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for member in cls:
            if member.value == key:
                return member
        alias = STATUS_ALIASES.get(cls.__name__, {}).get(key)
        if alias is not None:
            return cls(alias)
        return None


class RewardStatus(_AliasedStatus):
    ACTIVE = "active"
    INACTIVE = "inactive"
    AVAILABLE = "available"
    DEPLETED = "depleted"


class RedemptionStatus(_AliasedStatus):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELIVERED = "delivered"


class PlanStatus(_AliasedStatus):
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EntryType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


STATUS_ALIASES = {
    "RewardStatus": {
        "activo": "active",
        "inactivo": "inactive",
        "disponible": "available",
        "agotado": "depleted",
    },
    "RedemptionStatus": {
        "pendiente": "pending",
        "aprobado": "approved",
        "rechazado": "rejected",
        "entregado": "delivered",
    },
    "PlanStatus": {
        "activo": "active",
        "inactivo": "inactive",
        "completado": "completed",
        "cancelado": "cancelled",
    },
}


DateInput = Union[date, str]


# Records

class Patient(BaseModel):
    id: UUID
    user_id: UUID
    eps_id: UUID
    points: int = 0
    streak_days: int = 0
    last_streak_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class Reward(BaseModel):
    id: UUID
    provider_id: UUID
    name: str
    description: str
    required_points: int
    created_on: date
    status: RewardStatus

    model_config = ConfigDict(from_attributes=True)

    def is_available(self) -> bool:
        return self.status == RewardStatus.ACTIVE


class Redemption(BaseModel):
    id: UUID
    patient_id: UUID
    reward_id: UUID
    points_spent: int
    redeemed_on: date
    status: RedemptionStatus

    model_config = ConfigDict(from_attributes=True)


class Plan(BaseModel):
    id: UUID
    patient_id: UUID
    doctor_id: UUID
    description: str
    start_date: date
    end_date: date
    status: PlanStatus

    model_config = ConfigDict(from_attributes=True)

    def can_activate(self) -> bool:
        return self.status != PlanStatus.ACTIVE

    def can_deactivate(self) -> bool:
        return self.status == PlanStatus.ACTIVE

    def can_complete(self) -> bool:
        return self.status == PlanStatus.ACTIVE

    def can_cancel(self) -> bool:
        return self.status in (PlanStatus.ACTIVE, PlanStatus.INACTIVE)


class PointsEntry(BaseModel):
    id: UUID
    patient_id: UUID
    entry_type: EntryType
    points: int
    balance_after: int
    description: str
    redemption_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Requests

class AdjustPointsRequest(BaseModel):
    amount: int = Field(..., description="Points to add or remove, must be positive")
    description: Optional[str] = None


class StreakRequest(BaseModel):
    on: Optional[date] = None


class CreateRewardRequest(BaseModel):
    provider_id: UUID
    name: str
    description: str
    required_points: int
    created_on: DateInput
    status: str = "active"

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "provider_id": "33333333-3333-3333-3333-333333333333",
            "name": "Free dental cleaning",
            "description": "One cleaning session at any partner clinic",
            "required_points": 300,
            "created_on": "2024-01-01",
            "status": "active"
        }
    })


class UpdateRewardRequest(BaseModel):
    provider_id: Optional[UUID] = None
    name: Optional[str] = None
    description: Optional[str] = None
    required_points: Optional[int] = None
    created_on: Optional[DateInput] = None
    status: Optional[str] = None


class CreateRedemptionRequest(BaseModel):
    patient_id: UUID
    reward_id: UUID
    points_spent: int
    redeemed_on: DateInput
    status: str = "pending"

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "patient_id": "550e8400-e29b-41d4-a716-446655440000",
            "reward_id": "11111111-1111-1111-1111-111111111111",
            "points_spent": 300,
            "redeemed_on": "2024-02-01",
            "status": "pending"
        }
    })


class UpdateRedemptionRequest(BaseModel):
    patient_id: Optional[UUID] = None
    reward_id: Optional[UUID] = None
    points_spent: Optional[int] = None
    redeemed_on: Optional[DateInput] = None
    status: Optional[str] = None


class CreatePlanRequest(BaseModel):
    patient_id: UUID
    doctor_id: UUID
    description: str
    start_date: DateInput
    end_date: DateInput
    status: str = "active"


class UpdatePlanRequest(BaseModel):
    patient_id: Optional[UUID] = None
    doctor_id: Optional[UUID] = None
    description: Optional[str] = None
    start_date: Optional[DateInput] = None
    end_date: Optional[DateInput] = None
    status: Optional[str] = None


# Responses

class PatientBalance(BaseModel):
    patient_id: UUID
    points: int
    max_points: int
    total_entries: int
    last_transaction_at: Optional[datetime] = None


class PointsAdjustmentResponse(BaseModel):
    patient: Patient
    entry: PointsEntry
    message: str


class PointsHistoryResponse(BaseModel):
    patient_id: UUID
    entries: list[PointsEntry]
    total_count: int
    current_points: int


class StreakResponse(BaseModel):
    patient_id: UUID
    streak_days: int
    last_streak_date: date
    extended: bool


class RedemptionResponse(BaseModel):
    redemption: Redemption
    entry: PointsEntry
    balance_after: int
    message: str
