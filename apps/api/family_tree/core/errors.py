from __future__ import annotations

from typing import Any


class FamilyTreeError(Exception):
    """
    Base for every failure the core reports to its caller.

    Each error is a (kind, code, message, details) record: `kind` is one of the five
    taxonomy buckets and drives the HTTP status, `code` is stable and machine-readable.
    """

    kind = "internal_error"
    code = "INTERNAL_ERROR"
    default_message = "internal error"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "code": self.code, "message": self.message, "details": self.details}


class ValidationError(FamilyTreeError):
    kind = "validation_error"
    code = "VALIDATION_ERROR"
    default_message = "invalid input"


class NotFoundError(FamilyTreeError):
    kind = "not_found"
    code = "NOT_FOUND"
    default_message = "resource not found"


class ConflictError(FamilyTreeError):
    kind = "conflict"
    code = "CONFLICT"
    default_message = "conflicting state"


class AuthorizationError(FamilyTreeError):
    kind = "authorization_error"
    code = "AUTHORIZATION_ERROR"
    default_message = "not authorized"


class TransientStoreError(FamilyTreeError):
    kind = "transient_store_error"
    code = "TRANSIENT_STORE_ERROR"
    default_message = "store temporarily unavailable, retry the request"


# Validation


class InvalidMemberFields(ValidationError):
    code = "INVALID_MEMBER_FIELDS"


class AgeOrderingViolation(ValidationError):
    code = "AGE_ORDERING_VIOLATION"
    default_message = "birth years violate parent/child ordering"


class InvalidSpouseOrder(ValidationError):
    code = "INVALID_SPOUSE_ORDER"
    default_message = "spouse order must be sequential starting from 1"


class JoinCodeNotEligible(ValidationError):
    code = "JOIN_CODE_NOT_ELIGIBLE"
    default_message = "join code must belong to a father or mother"


# Not found


class FamilyNotFound(NotFoundError):
    code = "FAMILY_NOT_FOUND"
    default_message = "family not found"


class MemberNotFound(NotFoundError):
    code = "MEMBER_NOT_FOUND"
    default_message = "family member not found"


class BranchNotFound(NotFoundError):
    code = "BRANCH_NOT_FOUND"
    default_message = "branch not found"


class LinkNotFound(NotFoundError):
    code = "LINK_NOT_FOUND"
    default_message = "linked family relation not found"


class InvalidJoinCode(NotFoundError):
    code = "INVALID_JOIN_CODE"
    default_message = "invalid join code"


class NoMainFamily(NotFoundError):
    code = "NO_MAIN_FAMILY"
    default_message = "you must have a main family to link with others"


# Conflict


class DuplicateMainFamily(ConflictError):
    code = "DUPLICATE_MAIN_FAMILY"
    default_message = "principal already has a main family"


class DuplicateBranchOrder(ConflictError):
    code = "DUPLICATE_BRANCH_ORDER"
    default_message = "branch order already exists in this family"


class DuplicateFather(ConflictError):
    code = "DUPLICATE_FATHER"
    default_message = "family already has a father"


class ParentsAlreadySetUp(ConflictError):
    code = "PARENTS_ALREADY_SET_UP"
    default_message = "parents have already been set up for this family"


class ProtectedMemberDeletion(ConflictError):
    code = "PROTECTED_MEMBER_DELETION"
    default_message = "cannot delete the family creator"


class MotherDeletionUnsupported(ConflictError):
    code = "MOTHER_DELETION_UNSUPPORTED"
    default_message = "cannot delete a mother that owns a branch"


class AlreadyConsumed(ConflictError):
    code = "ALREADY_CONSUMED"
    default_message = "join code has already been consumed"


class JoinCodeAlreadyUsed(ConflictError):
    code = "JOIN_CODE_ALREADY_USED"
    default_message = "join code has already been used"


class SelfLinkForbidden(ConflictError):
    code = "SELF_LINK_FORBIDDEN"
    default_message = "cannot link a family to itself"


class AlreadyLinked(ConflictError):
    code = "ALREADY_LINKED"
    default_message = "families are already linked"


# Authorization


class NotAuthorized(AuthorizationError):
    code = "NOT_AUTHORIZED"
    default_message = "only the family creator can do this"


# Transient


class IssuanceExhausted(TransientStoreError):
    code = "JOIN_CODE_ISSUANCE_EXHAUSTED"
    default_message = "could not issue a unique join code"


STATUS_BY_KIND = {
    ValidationError.kind: 400,
    NotFoundError.kind: 404,
    ConflictError.kind: 409,
    AuthorizationError.kind: 403,
    TransientStoreError.kind: 503,
}
