from typing import Optional
from uuid import UUID

from .config import LoyaltySettings, settings as default_settings
from .errors import (
    InvalidStateTransitionError,
    ProviderNotFoundError,
    RewardNotFoundError,
)
from .locks import EntityLocks
from .models import CreateRewardRequest, Reward, RewardStatus, UpdateRewardRequest
from .ports import DirectoryPort, RewardPort
from .validation import (
    check_date_range,
    check_points_range,
    parse_date,
    parse_status,
    require_positive,
    require_text,
)


class RewardService:
    def __init__(
        self,
        rewards: RewardPort,
        directory: DirectoryPort,
        settings: Optional[LoyaltySettings] = None,
        locks: Optional[EntityLocks] = None,
    ):
        self.rewards = rewards
        self.directory = directory
        self.settings = settings or default_settings
        self.locks = locks or EntityLocks()

    def create_reward(self, request: CreateRewardRequest) -> Reward:
        fields = self._validate_fields(request.model_dump())
        return self.rewards.create(fields)

    def update_reward(self, reward_id: UUID, request: UpdateRewardRequest) -> Reward:
        with self.locks.for_id(reward_id):
            self.get_reward(reward_id)
            fields = self._validate_fields(request.model_dump(exclude_unset=True))
            return self._write(reward_id, fields)

    def delete_reward(self, reward_id: UUID) -> None:
        with self.locks.for_id(reward_id):
            self.get_reward(reward_id)
            if not self.rewards.delete(reward_id):
                raise RewardNotFoundError(reward_id)

    def activate_reward(self, reward_id: UUID) -> Reward:
        with self.locks.for_id(reward_id):
            reward = self.get_reward(reward_id)
            if reward.status == RewardStatus.ACTIVE:
                raise InvalidStateTransitionError(f"Reward {reward_id} is already active")
            return self._write(reward_id, {"status": RewardStatus.ACTIVE})

    def deactivate_reward(self, reward_id: UUID) -> Reward:
        with self.locks.for_id(reward_id):
            reward = self.get_reward(reward_id)
            if reward.status == RewardStatus.INACTIVE:
                raise InvalidStateTransitionError(f"Reward {reward_id} is already inactive")
            return self._write(reward_id, {"status": RewardStatus.INACTIVE})

    def deplete_reward(self, reward_id: UUID) -> Reward:
        with self.locks.for_id(reward_id):
            reward = self.get_reward(reward_id)
            if reward.status != RewardStatus.ACTIVE:
                raise InvalidStateTransitionError(
                    f"Cannot mark reward in {reward.status.value} state as depleted. Only active rewards can be depleted."
                )
            return self._write(reward_id, {"status": RewardStatus.DEPLETED})

    def get_reward(self, reward_id: UUID) -> Reward:
        reward = self.rewards.get(reward_id)
        if not reward:
            raise RewardNotFoundError(reward_id)
        return reward

    def list_rewards(self) -> list[Reward]:
        return self.rewards.list_all()

    def get_rewards_by_provider(self, provider_id: UUID) -> list[Reward]:
        if not self.directory.provider_exists(provider_id):
            raise ProviderNotFoundError(provider_id)
        return self.rewards.get_by_provider(provider_id)

    def get_rewards_by_status(self, status) -> list[Reward]:
        return self.rewards.get_by_status(parse_status(RewardStatus, status))

    def get_rewards_by_points_range(self, points_min: int, points_max: int) -> list[Reward]:
        check_points_range(points_min, points_max)
        return self.rewards.get_by_points_range(points_min, points_max)

    def get_rewards_by_created_range(self, start, end) -> list[Reward]:
        start_date, end_date = check_date_range(start, end)
        return self.rewards.get_by_created_range(start_date, end_date)

    def get_available_rewards(self) -> list[Reward]:
        return self.rewards.get_by_status(RewardStatus.ACTIVE)

    def get_available_rewards_in_points_range(self, points_min: int, points_max: int) -> list[Reward]:
        check_points_range(points_min, points_max)
        return [
            r for r in self.get_available_rewards()
            if points_min <= r.required_points <= points_max
        ]

    def _write(self, reward_id: UUID, fields: dict) -> Reward:
        reward = self.rewards.update(reward_id, fields)
        if not reward:
            raise RewardNotFoundError(reward_id)
        return reward

    def _validate_fields(self, data: dict) -> dict:
        """Validate and normalize whichever reward fields are present."""
        fields = {}
        if "provider_id" in data:
            if data["provider_id"] is None or not self.directory.provider_exists(data["provider_id"]):
                raise ProviderNotFoundError(data["provider_id"])
            fields["provider_id"] = data["provider_id"]
        if "name" in data:
            fields["name"] = require_text(data["name"], "name", self.settings.name_max_length)
        if "description" in data:
            fields["description"] = require_text(
                data["description"], "description", self.settings.description_max_length
            )
        if "required_points" in data:
            fields["required_points"] = require_positive(data["required_points"], "required_points")
        if "created_on" in data:
            fields["created_on"] = parse_date(data["created_on"], "created_on")
        if "status" in data:
            fields["status"] = parse_status(RewardStatus, data["status"])
        return fields
