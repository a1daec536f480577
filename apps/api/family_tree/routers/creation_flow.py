from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_tree.core.auth import AuthContext, require_auth
from family_tree.core.db import get_db
from family_tree.schemas.branches import BranchResponse
from family_tree.schemas.creation_flow import (
    CreationFlowResponse,
    ParentsSetup,
    ParentsSetupResponse,
    StepComplete,
)
from family_tree.schemas.members import MemberResponse
from family_tree.services import creation_flow as flow_service

router = APIRouter(prefix="/v1/families/{family_id}/creation-flow", tags=["creation-flow"])


def flow_response(flow) -> CreationFlowResponse:
    return CreationFlowResponse.model_validate(flow, from_attributes=True)


@router.get("", response_model=CreationFlowResponse)
def get_creation_flow(family_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    return flow_response(flow_service.get_creation_flow(db, family_id, ctx.principal_id))


@router.post("/steps", response_model=CreationFlowResponse)
def complete_step(
    family_id: int,
    payload: StepComplete,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    return flow_response(flow_service.mark_step_complete(db, family_id, ctx.principal_id, payload.step))


@router.post("/parents", response_model=ParentsSetupResponse, status_code=201)
def setup_parents(
    family_id: int,
    payload: ParentsSetup,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    result = flow_service.setup_parents(
        db,
        family_id,
        ctx.principal_id,
        payload.father.to_profile() if payload.father is not None else None,
        [flow_service.MotherInput(profile=item.to_profile(), spouse_order=item.spouse_order) for item in payload.mothers],
    )
    return ParentsSetupResponse(
        flow=flow_response(result.flow),
        father=MemberResponse.from_member(result.father),
        mothers=[MemberResponse.from_member(item) for item in result.mothers],
        branches=[BranchResponse.model_validate(item, from_attributes=True) for item in result.branches],
    )
