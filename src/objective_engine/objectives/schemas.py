"""Pydantic request/response models for objective endpoints.

Field names are camelCase on the wire to match the existing frontend.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Listing ---


class ObjectiveResponse(CamelModel):
    id: str
    code: str
    name: str
    description: str
    category: str | None = None
    season_code: str | None = None
    period: str
    type: str
    sort_order: int = 0
    target_value: int
    reward_type: str
    reward_value: str
    current_value: int = 0
    completed_at: datetime | None = None
    reward_claimed_at: datetime | None = None


class ObjectiveSetResponse(CamelModel):
    id: str
    code: str
    title: str
    description: str
    season_code: str | None = None
    sort_order: int = 0
    reward_type: str
    reward_value: str
    is_active: bool = True
    is_completed: bool = False
    completed_at: datetime | None = None
    reward_claimed_at: datetime | None = None
    objectives: list[ObjectiveResponse] = []


class ObjectiveBoardResponse(CamelModel):
    objectives: list[ObjectiveResponse]
    sets: list[ObjectiveSetResponse]


# --- Claims ---


class ClaimObjectiveRequest(CamelModel):
    objective_id: str | None = None
    objective_code: str | None = None

    @model_validator(mode="after")
    def _require_reference(self) -> ClaimObjectiveRequest:
        if not self.objective_id and not self.objective_code:
            raise ValueError("objectiveId or objectiveCode is required.")
        return self

    @property
    def ref(self) -> str:
        return self.objective_id or self.objective_code or ""


class ClaimObjectiveSetRequest(CamelModel):
    objective_set_id: str | None = None
    objective_set_code: str | None = None

    @model_validator(mode="after")
    def _require_reference(self) -> ClaimObjectiveSetRequest:
        if not self.objective_set_id and not self.objective_set_code:
            raise ValueError("objectiveSetId or objectiveSetCode is required.")
        return self

    @property
    def ref(self) -> str:
        return self.objective_set_id or self.objective_set_code or ""


class ClaimResponse(CamelModel):
    success: bool = True
    source_type: str
    id: str
    code: str
    reward_type: str
    reward_value: str
    coins_delta: int = 0
    created_reward_pack_id: str | None = None
