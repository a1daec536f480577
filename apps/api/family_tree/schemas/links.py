from datetime import datetime

from pydantic import BaseModel, Field

from family_tree.models.entities import LinkStatusEnum

JOIN_CODE_PATTERN = r"^[A-Z0-9]{8}$"


class LinkCreate(BaseModel):
    join_code: str = Field(pattern=JOIN_CODE_PATTERN)


class JoinCodeValidationResponse(BaseModel):
    is_valid: bool
    member_name: str | None = None
    family_name: str | None = None
    is_family_creator: bool = False
    eligible_for_link: bool = False
    reason: str | None = None


class LinkResponse(BaseModel):
    id: int
    family_a_id: int
    family_b_id: int
    established_by_principal_id: str
    established_at: datetime
    status: LinkStatusEnum


class LinkCreateResponse(LinkResponse):
    mirrored_members: dict[int, int] = Field(default_factory=dict)


class LinkListResponse(BaseModel):
    items: list[LinkResponse]
