"""
Unit Tests for the Point Ledger

Tests cover:
1. Credit flow and the balance cap
2. Debit flow and insufficient balance
3. Points history and balance summary
4. Patient queries
5. Streak tracking
6. Concurrent writers
"""

import threading
from datetime import date, timedelta
from uuid import UUID

import pytest

from loyalty.errors import (
    BalanceCapExceededError,
    ConcurrencyConflictError,
    ConflictError,
    FieldValidationError,
    InsufficientBalanceError,
    InvalidAmountError,
    PatientNotFoundError,
    ProviderNotFoundError,
)
from loyalty.ledger import PointLedger
from loyalty.models import EntryType


MISSING_ID = UUID("00000000-0000-0000-0000-000000000000")


class TestCreditFlow:
    """Tests for crediting points."""

    def test_credit_success(self, storage, ledger):
        """Test crediting adds points and records a CREDIT entry."""
        patient = storage.add_patient(points=100)

        response = ledger.credit(patient.id, 250, "Attended check-up")

        assert response.patient.points == 350
        assert storage.patients.get(patient.id).points == 350
        assert response.entry.entry_type == EntryType.CREDIT
        assert response.entry.points == 250
        assert response.entry.balance_after == 350
        assert response.entry.description == "Attended check-up"

    def test_credit_up_to_cap(self, storage, ledger):
        """Test the balance may reach exactly the cap."""
        patient = storage.add_patient(points=9900)

        response = ledger.credit(patient.id, 100)

        assert response.patient.points == 10000

    def test_credit_over_cap_fails(self, storage, ledger):
        """Test crediting past the cap fails and leaves the balance alone."""
        patient = storage.add_patient(points=9950)

        with pytest.raises(BalanceCapExceededError) as exc_info:
            ledger.credit(patient.id, 100)

        assert exc_info.value.attempted == 10050
        assert exc_info.value.maximum == 10000
        assert storage.patients.get(patient.id).points == 9950
        assert storage.points_history.get_by_patient(patient.id) == []

    @pytest.mark.parametrize("amount", [0, -5])
    def test_credit_non_positive_amount_fails(self, storage, ledger, amount):
        patient = storage.add_patient(points=100)

        with pytest.raises(InvalidAmountError):
            ledger.credit(patient.id, amount)

    def test_credit_missing_patient_fails(self, ledger):
        with pytest.raises(PatientNotFoundError):
            ledger.credit(MISSING_ID, 10)

    def test_cap_comes_from_settings(self, storage, settings):
        """Test a smaller configured cap is enforced."""
        capped = PointLedger(
            storage.patients, storage.points_history, storage.directory,
            settings=settings.model_copy(update={"max_points": 500}),
        )
        patient = storage.add_patient(points=450)

        with pytest.raises(BalanceCapExceededError):
            capped.credit(patient.id, 100)


class TestDebitFlow:
    """Tests for debiting points."""

    def test_debit_success(self, storage, ledger):
        patient = storage.add_patient(points=500)

        response = ledger.debit(patient.id, 200)

        assert response.patient.points == 300
        assert response.entry.entry_type == EntryType.DEBIT
        assert response.entry.points == -200
        assert response.entry.balance_after == 300

    def test_debit_to_zero(self, storage, ledger):
        patient = storage.add_patient(points=200)

        response = ledger.debit(patient.id, 200)

        assert response.patient.points == 0

    def test_debit_more_than_balance_fails(self, storage, ledger):
        """Test debiting below zero fails and reports both amounts."""
        patient = storage.add_patient(points=50)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            ledger.debit(patient.id, 60)

        assert exc_info.value.required == 60
        assert exc_info.value.available == 50
        assert storage.patients.get(patient.id).points == 50

    def test_debit_non_positive_amount_fails(self, storage, ledger):
        patient = storage.add_patient(points=50)

        with pytest.raises(InvalidAmountError):
            ledger.debit(patient.id, 0)

    def test_debit_missing_patient_fails(self, ledger):
        with pytest.raises(PatientNotFoundError):
            ledger.debit(MISSING_ID, 10)


class TestHistoryAndBalance:
    """Tests for the points history and balance summary."""

    def test_balance_summary(self, storage, ledger):
        patient = storage.add_patient(points=0)
        ledger.credit(patient.id, 300)
        ledger.debit(patient.id, 100)

        balance = ledger.get_balance(patient.id)

        assert balance.points == 200
        assert balance.max_points == 10000
        assert balance.total_entries == 2
        assert balance.last_transaction_at is not None

    def test_history_newest_first_and_paginated(self, storage, ledger):
        patient = storage.add_patient(points=0)
        for amount in (10, 20, 30):
            ledger.credit(patient.id, amount)

        history = ledger.get_points_history(patient.id, limit=2)

        assert history.total_count == 3
        assert len(history.entries) == 2
        assert history.current_points == 60
        assert history.entries[0].created_at >= history.entries[1].created_at

    def test_history_by_points_range(self, storage, ledger):
        patient = storage.add_patient(points=1000)
        ledger.credit(patient.id, 100)
        ledger.debit(patient.id, 400)

        debits = ledger.get_history_by_points_range(-500, -1)

        assert [e.points for e in debits] == [-400]

    def test_history_by_points_range_rejects_inverted_bounds(self, ledger):
        with pytest.raises(FieldValidationError):
            ledger.get_history_by_points_range(10, 5)

    def test_history_by_date_range(self, storage, ledger):
        patient = storage.add_patient(points=0)
        ledger.credit(patient.id, 100)
        today = date.today()

        entries = ledger.get_history_by_date_range(today - timedelta(days=1), today + timedelta(days=1))

        assert len(entries) == 1

    def test_history_by_date_range_rejects_equal_bounds(self, ledger):
        today = date.today()
        with pytest.raises(FieldValidationError):
            ledger.get_history_by_date_range(today, today)

    def test_history_for_missing_patient_fails(self, ledger):
        with pytest.raises(PatientNotFoundError):
            ledger.get_points_history(MISSING_ID)


class TestPatientQueries:
    """Tests for the patient filters."""

    def test_list_above_and_below(self, storage, ledger):
        rich = storage.add_patient(points=1500)
        middle = storage.add_patient(points=500)
        poor = storage.add_patient(points=50)

        above = {p.id for p in ledger.list_above()}
        below = {p.id for p in ledger.list_below()}

        assert above == {rich.id}
        assert below == {poor.id}
        assert middle.id not in above | below

    def test_thresholds_are_inclusive(self, storage, ledger):
        patient = storage.add_patient(points=100)

        assert [p.id for p in ledger.list_above(100)] == [patient.id]
        assert [p.id for p in ledger.list_below(100)] == [patient.id]

    def test_negative_threshold_fails(self, ledger):
        with pytest.raises(InvalidAmountError):
            ledger.list_above(-1)

    def test_patients_by_eps(self, storage, ledger, provider_id):
        patient = storage.add_patient(points=10, eps_id=provider_id)
        storage.add_patient(points=10)

        assert [p.id for p in ledger.get_patients_by_eps(provider_id)] == [patient.id]

    def test_patients_by_unknown_eps_fails(self, ledger):
        with pytest.raises(ProviderNotFoundError):
            ledger.get_patients_by_eps(MISSING_ID)

    def test_patient_by_user(self, storage, ledger):
        patient = storage.add_patient(points=10)

        assert ledger.get_patient_by_user(patient.user_id).id == patient.id
        assert ledger.get_patient_by_user(MISSING_ID) is None

    def test_patients_with_points(self, storage, ledger):
        patient = storage.add_patient(points=700)
        storage.add_patient(points=100)

        assert [p.id for p in ledger.get_patients_with_points(700)] == [patient.id]


class TestStreak:
    """Tests for daily streak tracking."""

    def test_first_day_starts_streak(self, storage, ledger):
        patient = storage.add_patient()

        result = ledger.record_streak_day(patient.id, date(2024, 3, 1))

        assert result.streak_days == 1
        assert result.extended is False
        assert storage.patients.get(patient.id).last_streak_date == date(2024, 3, 1)

    def test_consecutive_day_extends_streak(self, storage, ledger):
        patient = storage.add_patient()
        ledger.record_streak_day(patient.id, date(2024, 3, 1))

        result = ledger.record_streak_day(patient.id, date(2024, 3, 2))

        assert result.streak_days == 2
        assert result.extended is True

    def test_same_day_is_unchanged(self, storage, ledger):
        patient = storage.add_patient()
        ledger.record_streak_day(patient.id, date(2024, 3, 1))
        ledger.record_streak_day(patient.id, date(2024, 3, 2))

        result = ledger.record_streak_day(patient.id, "2024-03-02")

        assert result.streak_days == 2
        assert result.extended is False

    def test_gap_resets_streak(self, storage, ledger):
        patient = storage.add_patient()
        ledger.record_streak_day(patient.id, date(2024, 3, 1))
        ledger.record_streak_day(patient.id, date(2024, 3, 2))

        result = ledger.record_streak_day(patient.id, date(2024, 3, 5))

        assert result.streak_days == 1

    def test_earlier_day_fails(self, storage, ledger):
        patient = storage.add_patient()
        ledger.record_streak_day(patient.id, date(2024, 3, 5))

        with pytest.raises(FieldValidationError):
            ledger.record_streak_day(patient.id, date(2024, 3, 4))


class _ExternalWriterPatients:
    """Patient store where another writer bumps the balance right before each write."""

    def __init__(self, inner):
        self.inner = inner

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def compare_and_set_points(self, patient_id, expected, new):
        self.inner.rows[patient_id]["points"] = expected + 1
        return self.inner.compare_and_set_points(patient_id, expected, new)


class TestConcurrency:
    """Tests for concurrent balance writers."""

    def test_stale_read_raises_conflict(self, storage, settings):
        """Test a balance changed behind the ledger's back aborts the write."""
        patients = _ExternalWriterPatients(storage.patients)
        ledger = PointLedger(patients, storage.points_history, storage.directory, settings=settings)
        patient = storage.add_patient(points=300)

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            ledger.debit(patient.id, 100)

        assert isinstance(exc_info.value, ConflictError)
        assert storage.patients.get(patient.id).points == 301
        assert storage.points_history.get_by_patient(patient.id) == []

    def test_parallel_credits_are_all_applied(self, storage, ledger):
        patient = storage.add_patient(points=0)
        barrier = threading.Barrier(20)

        def credit():
            barrier.wait()
            ledger.credit(patient.id, 100)

        threads = [threading.Thread(target=credit) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert storage.patients.get(patient.id).points == 2000
        assert len(storage.points_history.get_by_patient(patient.id)) == 20

    def test_parallel_debits_never_go_negative(self, storage, ledger):
        patient = storage.add_patient(points=500)
        barrier = threading.Barrier(10)
        failures = []

        def debit():
            barrier.wait()
            try:
                ledger.debit(patient.id, 100)
            except InsufficientBalanceError as e:
                failures.append(e)

        threads = [threading.Thread(target=debit) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert storage.patients.get(patient.id).points == 0
        assert len(failures) == 5
