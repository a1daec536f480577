from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_tree.core.auth import AuthContext, require_auth
from family_tree.core.db import get_db
from family_tree.schemas.members import (
    JoinCodeResponse,
    MemberCreate,
    MemberListResponse,
    MemberResponse,
    MemberUpdate,
)
from family_tree.services import members as member_service

router = APIRouter(prefix="/v1/families/{family_id}/members", tags=["members"])


@router.get("", response_model=MemberListResponse)
def list_members(family_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    members = member_service.list_members(db, family_id, ctx.principal_id)
    return MemberListResponse(items=[MemberResponse.from_member(item) for item in members])


@router.post("", response_model=MemberResponse, status_code=201)
def add_member(
    family_id: int,
    payload: MemberCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    member = member_service.add_member(
        db,
        family_id,
        ctx.principal_id,
        payload.role,
        payload.to_profile(),
        spouse_order=payload.spouse_order,
        mother_id=payload.mother_id,
    )
    return MemberResponse.from_member(member)


@router.get("/{member_id}", response_model=MemberResponse)
def get_member(family_id: int, member_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    return MemberResponse.from_member(member_service.get_member(db, family_id, ctx.principal_id, member_id))


@router.patch("/{member_id}", response_model=MemberResponse)
def update_member(
    family_id: int,
    member_id: int,
    payload: MemberUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    member = member_service.update_member(db, family_id, ctx.principal_id, member_id, payload.changes())
    return MemberResponse.from_member(member)


@router.delete("/{member_id}", status_code=204)
def delete_member(family_id: int, member_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    member_service.delete_member(db, family_id, ctx.principal_id, member_id)


@router.get("/{member_id}/join-code", response_model=JoinCodeResponse)
def get_join_code(family_id: int, member_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    member = member_service.get_member_join_code(db, family_id, ctx.principal_id, member_id)
    return JoinCodeResponse(member_id=member.id, join_code=member.join_code, is_family_creator=member.is_family_creator)


@router.post("/{member_id}/join-code", response_model=JoinCodeResponse)
def regenerate_join_code(
    family_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    member = member_service.regenerate_join_code(db, family_id, ctx.principal_id, member_id)
    return JoinCodeResponse(member_id=member.id, join_code=member.join_code, is_family_creator=member.is_family_creator)
