from datetime import date, timedelta
from typing import Callable, Optional
from uuid import UUID

from .config import LoyaltySettings, settings as default_settings
from .errors import (
    DoctorNotFoundError,
    FieldValidationError,
    InvalidStateTransitionError,
    PatientNotFoundError,
    PlanNotFoundError,
)
from .locks import EntityLocks
from .models import CreatePlanRequest, Plan, PlanStatus, UpdatePlanRequest
from .ports import DirectoryPort, PatientPort, PlanPort
from .validation import check_date_range, parse_date, parse_status, require_text


class PlanService:
    def __init__(
        self,
        plans: PlanPort,
        patients: PatientPort,
        directory: DirectoryPort,
        settings: Optional[LoyaltySettings] = None,
        clock: Callable[[], date] = date.today,
        locks: Optional[EntityLocks] = None,
    ):
        self.plans = plans
        self.patients = patients
        self.directory = directory
        self.settings = settings or default_settings
        self.clock = clock
        self.locks = locks or EntityLocks()

    def create_plan(self, request: CreatePlanRequest) -> Plan:
        self._require_patient(request.patient_id)
        self._require_doctor(request.doctor_id)
        description = require_text(request.description, "description", self.settings.description_max_length)

        start_date = parse_date(request.start_date, "start_date")
        end_date = parse_date(request.end_date, "end_date")
        if start_date >= end_date:
            raise FieldValidationError("start_date", "must be before end_date")
        if start_date < self.clock():
            raise FieldValidationError("start_date", "cannot be in the past")

        status = parse_status(PlanStatus, request.status)

        return self.plans.create({
            "patient_id": request.patient_id,
            "doctor_id": request.doctor_id,
            "description": description,
            "start_date": start_date,
            "end_date": end_date,
            "status": status,
        })

    def update_plan(self, plan_id: UUID, request: UpdatePlanRequest) -> Plan:
        data = request.model_dump(exclude_unset=True)
        with self.locks.for_id(plan_id):
            existing = self.get_plan(plan_id)
            fields = {}

            if "patient_id" in data:
                self._require_patient(data["patient_id"])
                fields["patient_id"] = data["patient_id"]
            if "doctor_id" in data:
                self._require_doctor(data["doctor_id"])
                fields["doctor_id"] = data["doctor_id"]
            if "description" in data:
                fields["description"] = require_text(
                    data["description"], "description", self.settings.description_max_length
                )
            if "start_date" in data or "end_date" in data:
                start_date = existing.start_date
                end_date = existing.end_date
                if "start_date" in data:
                    start_date = fields["start_date"] = parse_date(data["start_date"], "start_date")
                if "end_date" in data:
                    end_date = fields["end_date"] = parse_date(data["end_date"], "end_date")
                if start_date >= end_date:
                    raise FieldValidationError("start_date", "must be before end_date")
            if "status" in data:
                fields["status"] = parse_status(PlanStatus, data["status"])

            return self._write(plan_id, fields)

    def delete_plan(self, plan_id: UUID) -> None:
        with self.locks.for_id(plan_id):
            self.get_plan(plan_id)
            if not self.plans.delete(plan_id):
                raise PlanNotFoundError(plan_id)

    def activate_plan(self, plan_id: UUID) -> Plan:
        with self.locks.for_id(plan_id):
            plan = self.get_plan(plan_id)
            if not plan.can_activate():
                raise InvalidStateTransitionError(f"Plan {plan_id} is already active")
            return self._write(plan_id, {"status": PlanStatus.ACTIVE})

    def deactivate_plan(self, plan_id: UUID) -> Plan:
        with self.locks.for_id(plan_id):
            plan = self.get_plan(plan_id)
            if not plan.can_deactivate():
                raise InvalidStateTransitionError(
                    f"Cannot deactivate plan in {plan.status.value} state. Only active plans can be deactivated."
                )
            return self._write(plan_id, {"status": PlanStatus.INACTIVE})

    def complete_plan(self, plan_id: UUID) -> Plan:
        with self.locks.for_id(plan_id):
            plan = self.get_plan(plan_id)
            if not plan.can_complete():
                raise InvalidStateTransitionError(
                    f"Cannot complete plan in {plan.status.value} state. Only active plans can be completed."
                )
            return self._write(plan_id, {"status": PlanStatus.COMPLETED})

    def cancel_plan(self, plan_id: UUID) -> Plan:
        with self.locks.for_id(plan_id):
            plan = self.get_plan(plan_id)
            if not plan.can_cancel():
                raise InvalidStateTransitionError(
                    f"Cannot cancel plan in {plan.status.value} state. Only active or inactive plans can be cancelled."
                )
            return self._write(plan_id, {"status": PlanStatus.CANCELLED})

    def get_plan(self, plan_id: UUID) -> Plan:
        plan = self.plans.get(plan_id)
        if not plan:
            raise PlanNotFoundError(plan_id)
        return plan

    def list_plans(self) -> list[Plan]:
        return self.plans.list_all()

    def get_plans_by_patient(self, patient_id: UUID) -> list[Plan]:
        self._require_patient(patient_id)
        return self.plans.get_by_patient(patient_id)

    def get_plans_by_doctor(self, doctor_id: UUID) -> list[Plan]:
        self._require_doctor(doctor_id)
        return self.plans.get_by_doctor(doctor_id)

    def get_plans_by_status(self, status) -> list[Plan]:
        return self.plans.get_by_status(parse_status(PlanStatus, status))

    def get_active_plans(self) -> list[Plan]:
        return self.plans.get_by_status(PlanStatus.ACTIVE)

    def get_expired_plans(self) -> list[Plan]:
        today = self.clock()
        return [
            p for p in self.plans.list_all()
            if p.end_date < today and p.status == PlanStatus.ACTIVE
        ]

    def get_plans_expiring_soon(self, days: Optional[int] = None) -> list[Plan]:
        if days is None:
            days = self.settings.expiring_soon_days
        if days < 0:
            raise FieldValidationError("days", "cannot be negative")
        today = self.clock()
        limit = today + timedelta(days=days)
        return [
            p for p in self.plans.list_all()
            if today <= p.end_date <= limit and p.status == PlanStatus.ACTIVE
        ]

    def get_plans_overlapping(self, start, end) -> list[Plan]:
        start_date, end_date = check_date_range(start, end)
        return [
            p for p in self.plans.list_all()
            if p.start_date <= end_date and p.end_date >= start_date
        ]

    def _write(self, plan_id: UUID, fields: dict) -> Plan:
        plan = self.plans.update(plan_id, fields)
        if not plan:
            raise PlanNotFoundError(plan_id)
        return plan

    def _require_patient(self, patient_id: Optional[UUID]) -> None:
        if patient_id is None or not self.patients.get(patient_id):
            raise PatientNotFoundError(patient_id)

    def _require_doctor(self, doctor_id: Optional[UUID]) -> None:
        if doctor_id is None or not self.directory.doctor_exists(doctor_id):
            raise DoctorNotFoundError(doctor_id)
