from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_tree.core.auth import AuthContext, require_auth
from family_tree.core.db import get_db
from family_tree.schemas.links import (
    JoinCodeValidationResponse,
    LinkCreate,
    LinkCreateResponse,
    LinkListResponse,
    LinkResponse,
)
from family_tree.services import linkage

router = APIRouter(prefix="/v1", tags=["links"])


@router.get("/join-codes/{join_code}", response_model=JoinCodeValidationResponse)
def validate_join_code(join_code: str, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    status = linkage.validate_join_code(db, join_code)
    return JoinCodeValidationResponse(**vars(status))


@router.post("/links", response_model=LinkCreateResponse, status_code=201)
def link_families(payload: LinkCreate, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    relation = linkage.link_families(db, payload.join_code, ctx.principal_id)
    response = LinkResponse.model_validate(relation, from_attributes=True)
    return LinkCreateResponse(**response.model_dump(), mirrored_members=linkage.mirror_counts(db, relation.id))


@router.get("/families/{family_id}/links", response_model=LinkListResponse)
def list_links(
    family_id: int,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    relations = linkage.linked_families_for(db, family_id, ctx.principal_id, include_inactive=include_inactive)
    return LinkListResponse(items=[LinkResponse.model_validate(item, from_attributes=True) for item in relations])


@router.post("/links/{relation_id}/deactivate", response_model=LinkResponse)
def deactivate_link(relation_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_auth)):
    relation = linkage.deactivate_link(db, relation_id, ctx.principal_id)
    return LinkResponse.model_validate(relation, from_attributes=True)
