from datetime import datetime

from pydantic import BaseModel, Field

from family_tree.models.entities import CreationStepEnum
from family_tree.schemas.branches import BranchResponse
from family_tree.schemas.members import MemberFields, MemberResponse
from family_tree.services.creation_flow import SetupStep


class CreationFlowResponse(BaseModel):
    family_id: int
    parents_setup: bool
    children_setup: bool
    branches_created: bool
    current_step: CreationStepEnum
    next_step: CreationStepEnum | None
    progress_percentage: int
    setup_completed: bool
    last_activity_at: datetime | None


class StepComplete(BaseModel):
    step: SetupStep


class MotherSetup(MemberFields):
    spouse_order: int = Field(ge=1)


class ParentsSetup(BaseModel):
    father: MemberFields | None = None
    mothers: list[MotherSetup] = Field(min_length=1)


class ParentsSetupResponse(BaseModel):
    flow: CreationFlowResponse
    father: MemberResponse
    mothers: list[MemberResponse]
    branches: list[BranchResponse]
