"""
Storage contracts consumed by the loyalty services.

Lookups signal a missing record with ``None`` (``get``/``update``) or
``False`` (``delete``) rather than raising, so each service can raise its
own typed not-found error.
"""

from datetime import date
from typing import Optional, Protocol
from uuid import UUID

from .models import (
    Patient,
    Plan,
    PlanStatus,
    PointsEntry,
    Redemption,
    RedemptionStatus,
    Reward,
    RewardStatus,
)


class PatientPort(Protocol):
    def get(self, patient_id: UUID) -> Optional[Patient]: ...

    def get_by_user(self, user_id: UUID) -> Optional[Patient]: ...

    def get_by_eps(self, eps_id: UUID) -> list[Patient]: ...

    def list_all(self) -> list[Patient]: ...

    def list_by_points_at_least(self, points: int) -> list[Patient]: ...

    def update(self, patient_id: UUID, fields: dict) -> Optional[Patient]: ...

    def compare_and_set_points(self, patient_id: UUID, expected: int, new: int) -> bool:
        """Write ``new`` only if the stored balance still equals ``expected``."""
        ...


class RewardPort(Protocol):
    def get(self, reward_id: UUID) -> Optional[Reward]: ...

    def list_all(self) -> list[Reward]: ...

    def get_by_provider(self, provider_id: UUID) -> list[Reward]: ...

    def get_by_status(self, status: RewardStatus) -> list[Reward]: ...

    def get_by_points_range(self, points_min: int, points_max: int) -> list[Reward]: ...

    def get_by_created_range(self, start: date, end: date) -> list[Reward]: ...

    def create(self, fields: dict) -> Reward: ...

    def update(self, reward_id: UUID, fields: dict) -> Optional[Reward]: ...

    def delete(self, reward_id: UUID) -> bool: ...


class RedemptionPort(Protocol):
    def get(self, redemption_id: UUID) -> Optional[Redemption]: ...

    def list_all(self) -> list[Redemption]: ...

    def get_by_patient(self, patient_id: UUID) -> list[Redemption]: ...

    def get_by_status(self, status: RedemptionStatus) -> list[Redemption]: ...

    def get_by_date_range(self, start: date, end: date) -> list[Redemption]: ...

    def get_by_points_range(self, points_min: int, points_max: int) -> list[Redemption]: ...

    def create(self, fields: dict) -> Redemption: ...

    def update(self, redemption_id: UUID, fields: dict) -> Optional[Redemption]: ...

    def delete(self, redemption_id: UUID) -> bool: ...


class PlanPort(Protocol):
    def get(self, plan_id: UUID) -> Optional[Plan]: ...

    def list_all(self) -> list[Plan]: ...

    def get_by_patient(self, patient_id: UUID) -> list[Plan]: ...

    def get_by_doctor(self, doctor_id: UUID) -> list[Plan]: ...

    def get_by_status(self, status: PlanStatus) -> list[Plan]: ...

    def create(self, fields: dict) -> Plan: ...

    def update(self, plan_id: UUID, fields: dict) -> Optional[Plan]: ...

    def delete(self, plan_id: UUID) -> bool: ...


class PointsHistoryPort(Protocol):
    def create(self, fields: dict) -> PointsEntry: ...

    def get_by_patient(self, patient_id: UUID) -> list[PointsEntry]: ...

    def get_by_date_range(self, start: date, end: date) -> list[PointsEntry]: ...

    def get_by_points_range(self, points_min: int, points_max: int) -> list[PointsEntry]: ...


class DirectoryPort(Protocol):
    def provider_exists(self, provider_id: UUID) -> bool: ...

    def doctor_exists(self, doctor_id: UUID) -> bool: ...
