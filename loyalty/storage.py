import threading
from datetime import date
from typing import Optional
from uuid import UUID, uuid4

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


DEMO_PROVIDER_ID = UUID("33333333-3333-3333-3333-333333333333")
DEMO_DOCTOR_ID = UUID("44444444-4444-4444-4444-444444444444")
DEMO_PATIENT_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
DEMO_REWARD_ID = UUID("11111111-1111-1111-1111-111111111111")


class _InMemoryTable:
    """Dict-backed record table shared by the in-memory repositories."""

    model = None

    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self.rows: dict[UUID, dict] = {}

    def _to_model(self, data: dict):
        return self.model(**data)

    def _select(self, predicate) -> list:
        with self._lock:
            return [self._to_model(row) for row in self.rows.values() if predicate(row)]

    def get(self, record_id: UUID):
        with self._lock:
            data = self.rows.get(record_id)
            return self._to_model(data) if data else None

    def list_all(self) -> list:
        return self._select(lambda row: True)

    def create(self, fields: dict):
        with self._lock:
            record_id = fields.get("id") or uuid4()
            data = dict(fields, id=record_id)
            self._to_model(data)
            self.rows[record_id] = data
            return self._to_model(data)

    def update(self, record_id: UUID, fields: dict):
        with self._lock:
            data = self.rows.get(record_id)
            if not data:
                return None
            merged = dict(data, **fields)
            merged["id"] = record_id
            self._to_model(merged)
            self.rows[record_id] = merged
            return self._to_model(merged)

    def delete(self, record_id: UUID) -> bool:
        with self._lock:
            return self.rows.pop(record_id, None) is not None


class InMemoryPatientRepository(_InMemoryTable):
    model = Patient

    def get_by_user(self, user_id: UUID) -> Optional[Patient]:
        matches = self._select(lambda row: row["user_id"] == user_id)
        return matches[0] if matches else None

    def get_by_eps(self, eps_id: UUID) -> list[Patient]:
        return self._select(lambda row: row["eps_id"] == eps_id)

    def list_by_points_at_least(self, points: int) -> list[Patient]:
        return self._select(lambda row: row["points"] >= points)

    def compare_and_set_points(self, patient_id: UUID, expected: int, new: int) -> bool:
        with self._lock:
            data = self.rows.get(patient_id)
            if not data or data["points"] != expected:
                return False
            data["points"] = new
            return True


class InMemoryRewardRepository(_InMemoryTable):
    model = Reward

    def get_by_provider(self, provider_id: UUID) -> list[Reward]:
        return self._select(lambda row: row["provider_id"] == provider_id)

    def get_by_status(self, status: RewardStatus) -> list[Reward]:
        return self._select(lambda row: row["status"] == status)

    def get_by_points_range(self, points_min: int, points_max: int) -> list[Reward]:
        return self._select(lambda row: points_min <= row["required_points"] <= points_max)

    def get_by_created_range(self, start: date, end: date) -> list[Reward]:
        return self._select(lambda row: start <= row["created_on"] <= end)


class InMemoryRedemptionRepository(_InMemoryTable):
    model = Redemption

    def get_by_patient(self, patient_id: UUID) -> list[Redemption]:
        return self._select(lambda row: row["patient_id"] == patient_id)

    def get_by_status(self, status: RedemptionStatus) -> list[Redemption]:
        return self._select(lambda row: row["status"] == status)

    def get_by_date_range(self, start: date, end: date) -> list[Redemption]:
        return self._select(lambda row: start <= row["redeemed_on"] <= end)

    def get_by_points_range(self, points_min: int, points_max: int) -> list[Redemption]:
        return self._select(lambda row: points_min <= row["points_spent"] <= points_max)


class InMemoryPlanRepository(_InMemoryTable):
    model = Plan

    def get_by_patient(self, patient_id: UUID) -> list[Plan]:
        return self._select(lambda row: row["patient_id"] == patient_id)

    def get_by_doctor(self, doctor_id: UUID) -> list[Plan]:
        return self._select(lambda row: row["doctor_id"] == doctor_id)

    def get_by_status(self, status: PlanStatus) -> list[Plan]:
        return self._select(lambda row: row["status"] == status)


class InMemoryPointsHistoryRepository(_InMemoryTable):
    model = PointsEntry

    def get_by_patient(self, patient_id: UUID) -> list[PointsEntry]:
        return self._select(lambda row: row["patient_id"] == patient_id)

    def get_by_date_range(self, start: date, end: date) -> list[PointsEntry]:
        return self._select(lambda row: start <= row["created_at"].date() <= end)

    def get_by_points_range(self, points_min: int, points_max: int) -> list[PointsEntry]:
        return self._select(lambda row: points_min <= row["points"] <= points_max)


class InMemoryDirectory:
    """Known insurance providers (EPS) and doctors."""

    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self.providers: dict[UUID, dict] = {}
        self.doctors: dict[UUID, dict] = {}

    def provider_exists(self, provider_id: UUID) -> bool:
        with self._lock:
            return provider_id in self.providers

    def doctor_exists(self, doctor_id: UUID) -> bool:
        with self._lock:
            return doctor_id in self.doctors


class InMemoryStorage:
    def __init__(self, seed: bool = True):
        self._lock = threading.RLock()
        self.patients = InMemoryPatientRepository(self._lock)
        self.rewards = InMemoryRewardRepository(self._lock)
        self.redemptions = InMemoryRedemptionRepository(self._lock)
        self.plans = InMemoryPlanRepository(self._lock)
        self.points_history = InMemoryPointsHistoryRepository(self._lock)
        self.directory = InMemoryDirectory(self._lock)
        if seed:
            self._seed_data()

    def add_provider(self, provider_id: Optional[UUID] = None, name: str = "EPS") -> UUID:
        provider_id = provider_id or uuid4()
        self.directory.providers[provider_id] = {"id": provider_id, "name": name}
        return provider_id

    def add_doctor(self, doctor_id: Optional[UUID] = None, name: str = "Doctor") -> UUID:
        doctor_id = doctor_id or uuid4()
        self.directory.doctors[doctor_id] = {"id": doctor_id, "name": name}
        return doctor_id

    def add_patient(
        self,
        points: int = 0,
        patient_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        eps_id: Optional[UUID] = None,
    ) -> Patient:
        if eps_id is None:
            eps_id = self.add_provider()
        return self.patients.create({
            "id": patient_id or uuid4(),
            "user_id": user_id or uuid4(),
            "eps_id": eps_id,
            "points": points,
            "streak_days": 0,
            "last_streak_date": None,
        })

    def _seed_data(self):
        self.add_provider(DEMO_PROVIDER_ID, name="Salud Total EPS")
        self.add_doctor(DEMO_DOCTOR_ID, name="Dr. Ana Rojas")
        self.add_patient(points=500, patient_id=DEMO_PATIENT_ID, eps_id=DEMO_PROVIDER_ID)
        self.rewards.create({
            "id": DEMO_REWARD_ID,
            "provider_id": DEMO_PROVIDER_ID,
            "name": "Free dental cleaning",
            "description": "One cleaning session at any partner clinic",
            "required_points": 300,
            "created_on": date.today(),
            "status": RewardStatus.ACTIVE,
        })
