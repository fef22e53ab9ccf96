import pytest

from loyalty.config import LoyaltySettings
from loyalty.ledger import PointLedger
from loyalty.plans import PlanService
from loyalty.redemptions import RedemptionService
from loyalty.rewards import RewardService
from loyalty.storage import InMemoryStorage


@pytest.fixture
def settings():
    return LoyaltySettings(
        max_points=10000,
        name_max_length=255,
        description_max_length=500,
        expiring_soon_days=7,
        high_points_threshold=1000,
        low_points_threshold=100,
    )


@pytest.fixture
def storage():
    return InMemoryStorage(seed=False)


@pytest.fixture
def provider_id(storage):
    return storage.add_provider(name="Test EPS")


@pytest.fixture
def doctor_id(storage):
    return storage.add_doctor(name="Dr. Test")


@pytest.fixture
def ledger(storage, settings):
    return PointLedger(storage.patients, storage.points_history, storage.directory, settings=settings)


@pytest.fixture
def reward_service(storage, settings):
    return RewardService(storage.rewards, storage.directory, settings=settings)


@pytest.fixture
def redemption_service(storage, ledger, settings):
    return RedemptionService(storage.redemptions, storage.patients, storage.rewards, ledger, settings=settings)


@pytest.fixture
def plan_service(storage, settings):
    return PlanService(storage.plans, storage.patients, storage.directory, settings=settings)
