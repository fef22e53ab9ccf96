import logging
from typing import Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .errors import (
    BalanceCapExceededError,
    ConflictError,
    FieldValidationError,
    InsufficientBalanceError,
    LoyaltyServiceError,
    NotFoundError,
)
from .ledger import PointLedger
from .models import (
    AdjustPointsRequest,
    CreatePlanRequest,
    CreateRedemptionRequest,
    CreateRewardRequest,
    Patient,
    PatientBalance,
    Plan,
    PointsAdjustmentResponse,
    PointsEntry,
    PointsHistoryResponse,
    Redemption,
    RedemptionResponse,
    Reward,
    StreakRequest,
    StreakResponse,
    UpdatePlanRequest,
    UpdateRedemptionRequest,
    UpdateRewardRequest,
)
from .plans import PlanService
from .redemptions import RedemptionService
from .rewards import RewardService
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


def _http_error(e: LoyaltyServiceError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictError):
        logger.warning("Conflict: %s", e)
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, (FieldValidationError, InsufficientBalanceError, BalanceCapExceededError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.exception("Unhandled loyalty error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def create_app(storage: Optional[InMemoryStorage] = None, root_path: str = "") -> FastAPI:
    storage = storage or InMemoryStorage()

    ledger = PointLedger(storage.patients, storage.points_history, storage.directory)
    reward_service = RewardService(storage.rewards, storage.directory)
    redemption_service = RedemptionService(storage.redemptions, storage.patients, storage.rewards, ledger)
    plan_service = PlanService(storage.plans, storage.patients, storage.directory)

    app = FastAPI(
        title="Clinic Loyalty API",
        description="Patient points ledger, reward redemptions and treatment plan lifecycle",
        version="1.0.0",
        root_path=root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "clinic-loyalty"}

    # Patients and points

    @app.get("/patients/high-points", response_model=list[Patient], tags=["Patients"])
    def list_high_points_patients(threshold: Optional[int] = None) -> list[Patient]:
        try:
            return ledger.list_above(threshold)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/patients/low-points", response_model=list[Patient], tags=["Patients"])
    def list_low_points_patients(threshold: Optional[int] = None) -> list[Patient]:
        try:
            return ledger.list_below(threshold)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/patients/with-points", response_model=list[Patient], tags=["Patients"])
    def list_patients_with_points(points: int) -> list[Patient]:
        try:
            return ledger.get_patients_with_points(points)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/patients/by-user/{user_id}", response_model=Patient, tags=["Patients"])
    def get_patient_by_user(user_id: UUID) -> Patient:
        patient = ledger.get_patient_by_user(user_id)
        if not patient:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No patient for user {user_id}")
        return patient

    @app.get("/patients/by-eps/{eps_id}", response_model=list[Patient], tags=["Patients"])
    def list_patients_by_eps(eps_id: UUID) -> list[Patient]:
        try:
            return ledger.get_patients_by_eps(eps_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/patients/{patient_id}", response_model=Patient, tags=["Patients"])
    def get_patient(patient_id: UUID) -> Patient:
        try:
            return ledger.get_patient(patient_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/patients/{patient_id}/balance", response_model=PatientBalance, tags=["Patients"])
    def get_patient_balance(patient_id: UUID) -> PatientBalance:
        try:
            return ledger.get_balance(patient_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/patients/{patient_id}/history", response_model=PointsHistoryResponse, tags=["Patients"])
    def get_patient_history(patient_id: UUID, limit: int = 50, offset: int = 0) -> PointsHistoryResponse:
        try:
            return ledger.get_points_history(patient_id, limit, offset)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.post("/patients/{patient_id}/credit", response_model=PointsAdjustmentResponse, tags=["Patients"])
    def credit_points(patient_id: UUID, request: AdjustPointsRequest) -> PointsAdjustmentResponse:
        try:
            return ledger.credit(patient_id, request.amount, request.description)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.post("/patients/{patient_id}/debit", response_model=PointsAdjustmentResponse, tags=["Patients"])
    def debit_points(patient_id: UUID, request: AdjustPointsRequest) -> PointsAdjustmentResponse:
        try:
            return ledger.debit(patient_id, request.amount, request.description)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.post("/patients/{patient_id}/streak", response_model=StreakResponse, tags=["Patients"])
    def record_streak(patient_id: UUID, request: StreakRequest) -> StreakResponse:
        try:
            return ledger.record_streak_day(patient_id, request.on)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/patients/{patient_id}/redemptions", response_model=list[Redemption], tags=["Patients"])
    def get_patient_redemptions(patient_id: UUID) -> list[Redemption]:
        try:
            return redemption_service.get_redemptions_by_patient(patient_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/patients/{patient_id}/plans", response_model=list[Plan], tags=["Patients"])
    def get_patient_plans(patient_id: UUID) -> list[Plan]:
        try:
            return plan_service.get_plans_by_patient(patient_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    # Points history

    @app.get("/points-history/date-range", response_model=list[PointsEntry], tags=["Points history"])
    def list_history_by_date_range(start: str, end: str) -> list[PointsEntry]:
        try:
            return ledger.get_history_by_date_range(start, end)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/points-history/points-range", response_model=list[PointsEntry], tags=["Points history"])
    def list_history_by_points_range(points_min: int, points_max: int) -> list[PointsEntry]:
        try:
            return ledger.get_history_by_points_range(points_min, points_max)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    # Rewards

    @app.post("/rewards", response_model=Reward, status_code=status.HTTP_201_CREATED, tags=["Rewards"])
    def create_reward(request: CreateRewardRequest) -> Reward:
        try:
            return reward_service.create_reward(request)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/rewards", response_model=list[Reward], tags=["Rewards"])
    def list_rewards(status_filter: Optional[str] = None) -> list[Reward]:
        try:
            if status_filter:
                return reward_service.get_rewards_by_status(status_filter)
            return reward_service.list_rewards()
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/rewards/available", response_model=list[Reward], tags=["Rewards"])
    def list_available_rewards(
        points_min: Optional[int] = None,
        points_max: Optional[int] = None,
    ) -> list[Reward]:
        try:
            if points_min is None and points_max is None:
                return reward_service.get_available_rewards()
            return reward_service.get_available_rewards_in_points_range(points_min, points_max)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/rewards/points-range", response_model=list[Reward], tags=["Rewards"])
    def list_rewards_by_points_range(points_min: int, points_max: int) -> list[Reward]:
        try:
            return reward_service.get_rewards_by_points_range(points_min, points_max)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/rewards/created-range", response_model=list[Reward], tags=["Rewards"])
    def list_rewards_by_created_range(start: str, end: str) -> list[Reward]:
        try:
            return reward_service.get_rewards_by_created_range(start, end)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/rewards/by-provider/{provider_id}", response_model=list[Reward], tags=["Rewards"])
    def list_rewards_by_provider(provider_id: UUID) -> list[Reward]:
        try:
            return reward_service.get_rewards_by_provider(provider_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/rewards/{reward_id}", response_model=Reward, tags=["Rewards"])
    def get_reward(reward_id: UUID) -> Reward:
        try:
            return reward_service.get_reward(reward_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.patch("/rewards/{reward_id}", response_model=Reward, tags=["Rewards"])
    def update_reward(reward_id: UUID, request: UpdateRewardRequest) -> Reward:
        try:
            return reward_service.update_reward(reward_id, request)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.delete("/rewards/{reward_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Rewards"])
    def delete_reward(reward_id: UUID) -> None:
        try:
            reward_service.delete_reward(reward_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.post("/rewards/{reward_id}/activate", response_model=Reward, tags=["Rewards"])
    def activate_reward(reward_id: UUID) -> Reward:
        try:
            return reward_service.activate_reward(reward_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.post("/rewards/{reward_id}/deactivate", response_model=Reward, tags=["Rewards"])
    def deactivate_reward(reward_id: UUID) -> Reward:
        try:
            return reward_service.deactivate_reward(reward_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.post("/rewards/{reward_id}/deplete", response_model=Reward, tags=["Rewards"])
    def deplete_reward(reward_id: UUID) -> Reward:
        try:
            return reward_service.deplete_reward(reward_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    # Redemptions

    @app.post("/redemptions", response_model=RedemptionResponse, status_code=status.HTTP_201_CREATED, tags=["Redemptions"])
    def create_redemption(request: CreateRedemptionRequest) -> RedemptionResponse:
        try:
            return redemption_service.create_redemption(request)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/redemptions", response_model=list[Redemption], tags=["Redemptions"])
    def list_redemptions(status_filter: Optional[str] = None) -> list[Redemption]:
        try:
            if status_filter:
                return redemption_service.get_redemptions_by_status(status_filter)
            return redemption_service.list_redemptions()
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/redemptions/date-range", response_model=list[Redemption], tags=["Redemptions"])
    def list_redemptions_by_date_range(start: str, end: str) -> list[Redemption]:
        try:
            return redemption_service.get_redemptions_by_date_range(start, end)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/redemptions/points-range", response_model=list[Redemption], tags=["Redemptions"])
    def list_redemptions_by_points_range(points_min: int, points_max: int) -> list[Redemption]:
        try:
            return redemption_service.get_redemptions_by_points_range(points_min, points_max)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/redemptions/{redemption_id}", response_model=Redemption, tags=["Redemptions"])
    def get_redemption(redemption_id: UUID) -> Redemption:
        try:
            return redemption_service.get_redemption(redemption_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.patch("/redemptions/{redemption_id}", response_model=Redemption, tags=["Redemptions"])
    def update_redemption(redemption_id: UUID, request: UpdateRedemptionRequest) -> Redemption:
        try:
            return redemption_service.update_redemption(redemption_id, request)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.delete("/redemptions/{redemption_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Redemptions"])
    def delete_redemption(redemption_id: UUID) -> None:
        try:
            redemption_service.delete_redemption(redemption_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    # Plans

    @app.post("/plans", response_model=Plan, status_code=status.HTTP_201_CREATED, tags=["Plans"])
    def create_plan(request: CreatePlanRequest) -> Plan:
        try:
            return plan_service.create_plan(request)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/plans", response_model=list[Plan], tags=["Plans"])
    def list_plans(status_filter: Optional[str] = None) -> list[Plan]:
        try:
            if status_filter:
                return plan_service.get_plans_by_status(status_filter)
            return plan_service.list_plans()
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/plans/active", response_model=list[Plan], tags=["Plans"])
    def list_active_plans() -> list[Plan]:
        return plan_service.get_active_plans()

    @app.get("/plans/overlapping", response_model=list[Plan], tags=["Plans"])
    def list_overlapping_plans(start: str, end: str) -> list[Plan]:
        try:
            return plan_service.get_plans_overlapping(start, end)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/plans/expired", response_model=list[Plan], tags=["Plans"])
    def list_expired_plans() -> list[Plan]:
        return plan_service.get_expired_plans()

    @app.get("/plans/expiring-soon", response_model=list[Plan], tags=["Plans"])
    def list_plans_expiring_soon(days: Optional[int] = None) -> list[Plan]:
        try:
            return plan_service.get_plans_expiring_soon(days)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/plans/{plan_id}", response_model=Plan, tags=["Plans"])
    def get_plan(plan_id: UUID) -> Plan:
        try:
            return plan_service.get_plan(plan_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.patch("/plans/{plan_id}", response_model=Plan, tags=["Plans"])
    def update_plan(plan_id: UUID, request: UpdatePlanRequest) -> Plan:
        try:
            return plan_service.update_plan(plan_id, request)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Plans"])
    def delete_plan(plan_id: UUID) -> None:
        try:
            plan_service.delete_plan(plan_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.get("/doctors/{doctor_id}/plans", response_model=list[Plan], tags=["Plans"])
    def list_doctor_plans(doctor_id: UUID) -> list[Plan]:
        try:
            return plan_service.get_plans_by_doctor(doctor_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    @app.post("/plans/{plan_id}/{action}", response_model=Plan, tags=["Plans"])
    def transition_plan(plan_id: UUID, action: str) -> Plan:
        transitions = {
            "activate": plan_service.activate_plan,
            "deactivate": plan_service.deactivate_plan,
            "complete": plan_service.complete_plan,
            "cancel": plan_service.cancel_plan,
        }
        if action not in transitions:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown plan action '{action}'")
        try:
            return transitions[action](plan_id)
        except LoyaltyServiceError as e:
            raise _http_error(e)

    return app


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
