from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_tree.core.auth import AuthContext, require_auth
from family_tree.core.db import get_db
from family_tree.core.errors import NoMainFamily
from family_tree.models.entities import Family
from family_tree.schemas.branches import (
    AvailableMotherListResponse,
    AvailableMotherResponse,
    BranchResponse,
    MotherNodeResponse,
    TreeResponse,
    TreeStatisticsResponse,
)
from family_tree.schemas.families import FamilyCreate, FamilyListResponse, FamilyResponse, FamilyUpdate
from family_tree.schemas.members import MemberResponse
from family_tree.services import families as family_service
from family_tree.services import tree as tree_service

router = APIRouter(prefix="/v1/families", tags=["families"])


def family_response(family: Family) -> FamilyResponse:
    return FamilyResponse.model_validate(family, from_attributes=True)


@router.get("", response_model=FamilyListResponse)
def list_families(db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    families = family_service.list_families_for(db, ctx.principal_id)
    return FamilyListResponse(items=[family_response(item) for item in families])


@router.post("", response_model=FamilyResponse, status_code=201)
def create_family(payload: FamilyCreate, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    family = family_service.create_family(
        db,
        ctx.principal_id,
        payload.name,
        payload.creator.to_profile(),
        creation_type=payload.creation_type,
        make_main=payload.is_main_family,
        description=payload.description,
    )
    return family_response(family)


@router.get("/main", response_model=FamilyResponse)
def get_main_family(db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    family = family_service.get_main_family(db, ctx.principal_id)
    if family is None:
        raise NoMainFamily(principal_id=ctx.principal_id)
    return family_response(family)


@router.get("/{family_id}", response_model=FamilyResponse)
def get_family(family_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    return family_response(family_service.get_family(db, family_id, ctx.principal_id))


@router.patch("/{family_id}", response_model=FamilyResponse)
def update_family(
    family_id: int,
    payload: FamilyUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    family = family_service.rename_family(db, family_id, ctx.principal_id, payload.name, payload.description)
    return family_response(family)


@router.post("/{family_id}/main", response_model=FamilyResponse)
def set_main_family(family_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    return family_response(family_service.set_main_family(db, family_id, ctx.principal_id))


@router.get("/{family_id}/tree", response_model=TreeResponse)
def get_tree(family_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    tree = tree_service.tree_structure(db, family_id, ctx.principal_id)
    return TreeResponse(
        family_id=tree.family.id,
        family_name=tree.family.name,
        father=MemberResponse.from_member(tree.father) if tree.father is not None else None,
        mothers=[
            MotherNodeResponse(
                mother=MemberResponse.from_member(node.mother),
                branch=BranchResponse.model_validate(node.branch, from_attributes=True) if node.branch else None,
                children=[MemberResponse.from_member(child) for child in node.children],
            )
            for node in tree.mothers
        ],
        unassigned_children=[MemberResponse.from_member(child) for child in tree.unassigned_children],
        linked_members=[MemberResponse.from_member(member) for member in tree.linked_members],
        statistics=TreeStatisticsResponse(**vars(tree.statistics)),
    )


@router.get("/{family_id}/available-mothers", response_model=AvailableMotherListResponse)
def list_available_mothers(family_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    mothers = tree_service.available_mothers(db, family_id, ctx.principal_id)
    return AvailableMotherListResponse(
        items=[
            AvailableMotherResponse(
                mother=MemberResponse.from_member(item.mother),
                branch_id=item.branch.id if item.branch else None,
                branch_name=item.branch.branch_name if item.branch else None,
                children_count=item.children_count,
            )
            for item in mothers
        ]
    )
