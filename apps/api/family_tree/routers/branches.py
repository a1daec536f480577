from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_tree.core.auth import AuthContext, require_auth
from family_tree.core.db import get_db
from family_tree.schemas.branches import BranchListResponse, BranchMove, BranchResponse
from family_tree.services import branches as branch_service
from family_tree.services.access import require_creator

router = APIRouter(prefix="/v1/families/{family_id}/branches", tags=["branches"])


@router.get("", response_model=BranchListResponse)
def list_branches(family_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    require_creator(db, family_id, ctx.principal_id)
    branches = branch_service.branches_for(db, family_id)
    return BranchListResponse(items=[BranchResponse.model_validate(item, from_attributes=True) for item in branches])


@router.patch("/{branch_id}", response_model=BranchResponse)
def move_branch(
    family_id: int,
    branch_id: int,
    payload: BranchMove,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    branch = branch_service.move_branch(db, family_id, ctx.principal_id, branch_id, payload.branch_order)
    return BranchResponse.model_validate(branch, from_attributes=True)
