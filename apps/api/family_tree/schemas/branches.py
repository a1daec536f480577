from datetime import datetime

from pydantic import BaseModel, Field

from family_tree.schemas.members import MemberResponse


class BranchMove(BaseModel):
    branch_order: int = Field(ge=1)


class BranchResponse(BaseModel):
    id: int
    family_id: int
    mother_id: int
    branch_order: int
    branch_name: str
    description: str | None
    created_at: datetime


class BranchListResponse(BaseModel):
    items: list[BranchResponse]


class MotherNodeResponse(BaseModel):
    mother: MemberResponse
    branch: BranchResponse | None
    children: list[MemberResponse]


class TreeStatisticsResponse(BaseModel):
    total_members: int
    total_branches: int
    total_children: int
    linked_members: int


class TreeResponse(BaseModel):
    family_id: int
    family_name: str
    father: MemberResponse | None
    mothers: list[MotherNodeResponse]
    unassigned_children: list[MemberResponse]
    linked_members: list[MemberResponse]
    statistics: TreeStatisticsResponse


class AvailableMotherResponse(BaseModel):
    mother: MemberResponse
    branch_id: int | None
    branch_name: str | None
    children_count: int


class AvailableMotherListResponse(BaseModel):
    items: list[AvailableMotherResponse]
