from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterator, Optional, TypeVar
from uuid import UUID

from .config import LoyaltySettings, settings as default_settings
from .errors import (
    BalanceCapExceededError,
    ConcurrencyConflictError,
    FieldValidationError,
    InsufficientBalanceError,
    PatientNotFoundError,
    ProviderNotFoundError,
)
from .locks import EntityLocks
from .models import (
    EntryType,
    Patient,
    PatientBalance,
    PointsAdjustmentResponse,
    PointsEntry,
    PointsHistoryResponse,
    StreakResponse,
)
from .ports import DirectoryPort, PatientPort, PointsHistoryPort
from .validation import (
    check_date_range,
    parse_date,
    require_non_negative,
    require_positive,
)

RecordT = TypeVar("RecordT")


class PointLedger:
    def __init__(
        self,
        patients: PatientPort,
        history: PointsHistoryPort,
        directory: DirectoryPort,
        settings: Optional[LoyaltySettings] = None,
        locks: Optional[EntityLocks] = None,
    ):
        self.patients = patients
        self.history = history
        self.directory = directory
        self.settings = settings or default_settings
        self.locks = locks or EntityLocks()

    def credit(self, patient_id: UUID, amount: int, description: Optional[str] = None) -> PointsAdjustmentResponse:
        require_positive(amount, "amount")
        with self.locked(patient_id) as patient:
            new_balance = patient.points + amount
            if new_balance > self.settings.max_points:
                raise BalanceCapExceededError(attempted=new_balance, maximum=self.settings.max_points)
            updated = self._set_balance(patient, new_balance)
            entry = self._record_entry(
                patient, updated, EntryType.CREDIT,
                description or f"Credited {amount} points",
            )
        return PointsAdjustmentResponse(patient=updated, entry=entry, message="Points credited successfully")

    def debit(self, patient_id: UUID, amount: int, description: Optional[str] = None) -> PointsAdjustmentResponse:
        require_positive(amount, "amount")
        with self.locked(patient_id) as patient:
            new_balance = patient.points - amount
            if new_balance < 0:
                raise InsufficientBalanceError(required=amount, available=patient.points)
            updated = self._set_balance(patient, new_balance)
            entry = self._record_entry(
                patient, updated, EntryType.DEBIT,
                description or f"Debited {amount} points",
            )
        return PointsAdjustmentResponse(patient=updated, entry=entry, message="Points debited successfully")

    @contextmanager
    def locked(self, patient_id: UUID) -> Iterator[Patient]:
        """Hold the patient's lock and yield a fresh read of the record."""
        with self.locks.for_id(patient_id):
            patient = self.patients.get(patient_id)
            if not patient:
                raise PatientNotFoundError(patient_id)
            yield patient

    def debit_with_record(
        self,
        patient: Patient,
        amount: int,
        description: str,
        record_id: UUID,
        write_record: Callable[[], RecordT],
        discard_record: Callable[[], object],
    ) -> tuple[RecordT, Patient, PointsEntry]:
        """Debit ``amount`` and persist a linked record as one unit of work.

        The caller must hold the patient's lock (see :meth:`locked`) and pass
        the record read inside it. ``write_record`` runs after the debit; the
        DEBIT entry is written last and carries ``record_id``. If either write
        raises, the record is discarded, the balance is restored and the error
        propagates.
        """
        debited = self._set_balance(patient, patient.points - amount)
        try:
            record = write_record()
        except Exception:
            self._restore_balance(patient, debited)
            raise

        try:
            entry = self._record_entry(patient, debited, EntryType.DEBIT, description, redemption_id=record_id)
        except Exception:
            discard_record()
            self._restore_balance(patient, debited)
            raise

        return record, debited, entry

    def _set_balance(self, patient: Patient, new_balance: int) -> Patient:
        # Callers hold the patient's lock and validated against patient.points.
        if not 0 <= new_balance <= self.settings.max_points:
            raise FieldValidationError("points", f"balance must stay between 0 and {self.settings.max_points}")
        if not self.patients.compare_and_set_points(patient.id, patient.points, new_balance):
            raise ConcurrencyConflictError(
                f"Balance of patient {patient.id} changed while it was being updated"
            )
        return patient.model_copy(update={"points": new_balance})

    def _restore_balance(self, original: Patient, current: Patient) -> None:
        self.patients.compare_and_set_points(original.id, current.points, original.points)

    def _record_entry(
        self,
        before: Patient,
        after: Patient,
        entry_type: EntryType,
        description: str,
        redemption_id: Optional[UUID] = None,
    ) -> PointsEntry:
        return self.history.create({
            "patient_id": after.id,
            "entry_type": entry_type,
            "points": after.points - before.points,
            "balance_after": after.points,
            "description": description[: self.settings.description_max_length],
            "redemption_id": redemption_id,
            "created_at": datetime.now(timezone.utc),
        })

    def get_patient(self, patient_id: UUID) -> Patient:
        patient = self.patients.get(patient_id)
        if not patient:
            raise PatientNotFoundError(patient_id)
        return patient

    def get_patient_by_user(self, user_id: UUID) -> Optional[Patient]:
        return self.patients.get_by_user(user_id)

    def get_patients_by_eps(self, eps_id: UUID) -> list[Patient]:
        if not self.directory.provider_exists(eps_id):
            raise ProviderNotFoundError(eps_id)
        return self.patients.get_by_eps(eps_id)

    def get_patients_with_points(self, points: int) -> list[Patient]:
        require_non_negative(points, "points")
        return self.patients.list_by_points_at_least(points)

    def list_above(self, threshold: Optional[int] = None) -> list[Patient]:
        if threshold is None:
            threshold = self.settings.high_points_threshold
        require_non_negative(threshold, "threshold")
        return [p for p in self.patients.list_all() if p.points >= threshold]

    def list_below(self, threshold: Optional[int] = None) -> list[Patient]:
        if threshold is None:
            threshold = self.settings.low_points_threshold
        require_non_negative(threshold, "threshold")
        return [p for p in self.patients.list_all() if p.points <= threshold]

    def get_balance(self, patient_id: UUID) -> PatientBalance:
        patient = self.get_patient(patient_id)
        entries = self.history.get_by_patient(patient_id)
        last_entry = max(entries, key=lambda e: e.created_at) if entries else None

        return PatientBalance(
            patient_id=patient_id,
            points=patient.points,
            max_points=self.settings.max_points,
            total_entries=len(entries),
            last_transaction_at=last_entry.created_at if last_entry else None,
        )

    def get_points_history(self, patient_id: UUID, limit: int = 50, offset: int = 0) -> PointsHistoryResponse:
        patient = self.get_patient(patient_id)
        all_entries = self.history.get_by_patient(patient_id)
        all_entries.sort(key=lambda e: e.created_at, reverse=True)
        paginated = all_entries[offset:offset + limit]

        return PointsHistoryResponse(
            patient_id=patient_id,
            entries=paginated,
            total_count=len(all_entries),
            current_points=patient.points,
        )

    def get_history_by_date_range(self, start, end) -> list[PointsEntry]:
        start_date, end_date = check_date_range(start, end)
        return self.history.get_by_date_range(start_date, end_date)

    def get_history_by_points_range(self, points_min: int, points_max: int) -> list[PointsEntry]:
        # History points are signed, so only the ordering is checked.
        if points_min > points_max:
            raise FieldValidationError("points_min", "must be less than or equal to points_max")
        return self.history.get_by_points_range(points_min, points_max)

    def record_streak_day(self, patient_id: UUID, on=None) -> StreakResponse:
        day = parse_date(on, "on") if on is not None else date.today()
        with self.locked(patient_id) as patient:
            last = patient.last_streak_date
            if last is not None and day < last:
                raise FieldValidationError("on", "cannot be before the last streak date")

            if last == day:
                streak, extended = patient.streak_days, False
            elif last is not None and day - last == timedelta(days=1):
                streak, extended = patient.streak_days + 1, True
            else:
                streak, extended = 1, False

            self.patients.update(patient_id, {"streak_days": streak, "last_streak_date": day})

        return StreakResponse(
            patient_id=patient_id,
            streak_days=streak,
            last_streak_date=day,
            extended=extended,
        )
