"""
Clinic Loyalty Core

This package provides:
- A capped, non-negative patient points ledger with an append-only history
- Reward lifecycle: active / inactive / available / depleted
- Points-for-reward redemptions debited as a single unit of work
- Treatment plan lifecycle: active -> inactive / completed / cancelled
- Daily streak tracking for patients
"""

from .ledger import PointLedger
from .models import (
    EntryType,
    Patient,
    Plan,
    PlanStatus,
    PointsEntry,
    Redemption,
    RedemptionStatus,
    Reward,
    RewardStatus,
)
from .plans import PlanService
from .redemptions import RedemptionService
from .rewards import RewardService

__all__ = [
    "EntryType",
    "Patient",
    "Plan",
    "PlanStatus",
    "PointsEntry",
    "Redemption",
    "RedemptionStatus",
    "Reward",
    "RewardStatus",
    "PointLedger",
    "PlanService",
    "RedemptionService",
    "RewardService",
]
