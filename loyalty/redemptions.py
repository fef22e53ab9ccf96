from typing import Optional
from uuid import UUID, uuid4

from .config import LoyaltySettings, settings as default_settings
from .errors import (
    FieldValidationError,
    InsufficientBalanceError,
    PatientNotFoundError,
    RedemptionNotFoundError,
    RewardNotFoundError,
)
from .ledger import PointLedger
from .models import (
    CreateRedemptionRequest,
    Redemption,
    RedemptionResponse,
    RedemptionStatus,
    UpdateRedemptionRequest,
)
from .ports import PatientPort, RedemptionPort, RewardPort
from .validation import (
    check_date_range,
    check_points_range,
    parse_date,
    parse_status,
    require_positive,
)


class RedemptionService:
    """Points-for-reward exchanges.

    Creating a redemption debits the patient's balance and stores the record
    as one unit of work under the ledger's per-patient lock. Updates and
    deletions never move points.
    """

    def __init__(
        self,
        redemptions: RedemptionPort,
        patients: PatientPort,
        rewards: RewardPort,
        ledger: PointLedger,
        settings: Optional[LoyaltySettings] = None,
    ):
        self.redemptions = redemptions
        self.patients = patients
        self.rewards = rewards
        self.ledger = ledger
        self.settings = settings or default_settings

    def create_redemption(self, request: CreateRedemptionRequest) -> RedemptionResponse:
        with self.ledger.locked(request.patient_id) as patient:
            reward = self.rewards.get(request.reward_id)
            if not reward:
                raise RewardNotFoundError(request.reward_id)

            points = require_positive(request.points_spent, "points_spent")
            if patient.points < points:
                raise InsufficientBalanceError(required=points, available=patient.points)

            redeemed_on = parse_date(request.redeemed_on, "redeemed_on")
            status = parse_status(RedemptionStatus, request.status)

            redemption_id = uuid4()
            redemption, debited, entry = self.ledger.debit_with_record(
                patient,
                points,
                f"Redeemed {points} points for reward {reward.name}",
                record_id=redemption_id,
                write_record=lambda: self.redemptions.create({
                    "id": redemption_id,
                    "patient_id": patient.id,
                    "reward_id": reward.id,
                    "points_spent": points,
                    "redeemed_on": redeemed_on,
                    "status": status,
                }),
                discard_record=lambda: self.redemptions.delete(redemption_id),
            )

        return RedemptionResponse(
            redemption=redemption,
            entry=entry,
            balance_after=debited.points,
            message="Redemption created successfully",
        )

    def update_redemption(self, redemption_id: UUID, request: UpdateRedemptionRequest) -> Redemption:
        existing = self.get_redemption(redemption_id)
        data = request.model_dump(exclude_unset=True)
        fields = {}

        if "patient_id" in data:
            if data["patient_id"] is None or not self.patients.get(data["patient_id"]):
                raise PatientNotFoundError(data["patient_id"])
            fields["patient_id"] = data["patient_id"]
        if "reward_id" in data:
            if data["reward_id"] is None or not self.rewards.get(data["reward_id"]):
                raise RewardNotFoundError(data["reward_id"])
            fields["reward_id"] = data["reward_id"]
        if "points_spent" in data:
            points = require_positive(data["points_spent"], "points_spent")
            if points != existing.points_spent:
                raise FieldValidationError("points_spent", "cannot change once the redemption is recorded")
        if "redeemed_on" in data:
            fields["redeemed_on"] = parse_date(data["redeemed_on"], "redeemed_on")
        if "status" in data:
            fields["status"] = parse_status(RedemptionStatus, data["status"])

        redemption = self.redemptions.update(redemption_id, fields)
        if not redemption:
            raise RedemptionNotFoundError(redemption_id)
        return redemption

    def delete_redemption(self, redemption_id: UUID) -> None:
        # Historical record removal only; the debit stays on the ledger.
        self.get_redemption(redemption_id)
        if not self.redemptions.delete(redemption_id):
            raise RedemptionNotFoundError(redemption_id)

    def get_redemption(self, redemption_id: UUID) -> Redemption:
        redemption = self.redemptions.get(redemption_id)
        if not redemption:
            raise RedemptionNotFoundError(redemption_id)
        return redemption

    def list_redemptions(self) -> list[Redemption]:
        return self.redemptions.list_all()

    def get_redemptions_by_patient(self, patient_id: UUID) -> list[Redemption]:
        if not self.patients.get(patient_id):
            raise PatientNotFoundError(patient_id)
        return self.redemptions.get_by_patient(patient_id)

    def get_redemptions_by_status(self, status) -> list[Redemption]:
        return self.redemptions.get_by_status(parse_status(RedemptionStatus, status))

    def get_redemptions_by_date_range(self, start, end) -> list[Redemption]:
        start_date, end_date = check_date_range(start, end)
        return self.redemptions.get_by_date_range(start_date, end_date)

    def get_redemptions_by_points_range(self, points_min: int, points_max: int) -> list[Redemption]:
        check_points_range(points_min, points_max)
        return self.redemptions.get_by_points_range(points_min, points_max)
