from datetime import datetime

from pydantic import BaseModel, Field

from family_tree.models.entities import CreationStepEnum, CreationTypeEnum
from family_tree.schemas.members import MemberFields


class FamilyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    creation_type: CreationTypeEnum = CreationTypeEnum.own_family
    is_main_family: bool = True
    creator: MemberFields


class FamilyUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)


class FamilyResponse(BaseModel):
    id: int
    name: str
    description: str | None
    creator_principal_id: str
    creator_join_code: str
    is_main_family: bool
    creation_type: CreationTypeEnum
    current_step: CreationStepEnum
    created_at: datetime


class FamilyListResponse(BaseModel):
    items: list[FamilyResponse]
