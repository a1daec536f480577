from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from family_tree.core.config import settings
from family_tree.core.errors import (
    AlreadyLinked,
    ConflictError,
    DuplicateBranchOrder,
    DuplicateMainFamily,
    FamilyTreeError,
    IssuanceExhausted,
    TransientStoreError,
)

logger = structlog.get_logger()

T = TypeVar("T")


class UnitOfWork:
    """
    One database transaction plus the side effects that may only run once it commits.

    Services receive a UnitOfWork instead of committing on their own, so every mutating
    operation has exactly one commit point and rolls back as a whole.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self._after_commit: list[Callable[[], Any]] = []

    def after_commit(self, callback: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._after_commit.append(functools.partial(callback, *args, **kwargs))

    def commit(self) -> None:
        self.db.commit()
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("after_commit_callback_failed")

    def rollback(self) -> None:
        self._after_commit.clear()
        self.db.rollback()


def _constraint_hint(exc: IntegrityError) -> str:
    return str(exc.orig).lower()


def is_join_code_collision(exc: IntegrityError) -> bool:
    hint = _constraint_hint(exc)
    return "uq_members_join_code" in hint or "members.join_code" in hint


def translate_integrity_error(exc: IntegrityError) -> FamilyTreeError:
    hint = _constraint_hint(exc)
    if "uq_families_creator_main" in hint or "families.creator_principal_id" in hint:
        return DuplicateMainFamily()
    if "uq_family_branches_family_order" in hint or "branch_order" in hint:
        return DuplicateBranchOrder()
    if "uq_linked_families_active_pair" in hint or "pair_low_id" in hint:
        return AlreadyLinked()
    if "uq_family_branches_mother" in hint or "family_branches.mother_id" in hint:
        return ConflictError("mother already owns a branch")
    return ConflictError("integrity constraint violated")


def transactional(fn: Callable[..., T]) -> Callable[..., T]:
    """
    Run `fn(uow, *args, **kwargs)` as a single unit of work on the caller's session.

    A unique-constraint hit on a member join code at flush/commit time means another
    writer took the code between issuance and insert; the whole operation is rolled
    back and re-run with fresh codes, up to JOIN_CODE_MAX_ATTEMPTS times.
    """

    @functools.wraps(fn)
    def wrapper(db: Session, *args: Any, **kwargs: Any) -> T:
        attempts = max(settings.join_code_max_attempts, 1)
        for attempt in range(1, attempts + 1):
            uow = UnitOfWork(db)
            try:
                result = fn(uow, *args, **kwargs)
                uow.db.flush()
            except IntegrityError as exc:
                uow.rollback()
                if is_join_code_collision(exc):
                    logger.warning("join_code_collision", operation=fn.__name__, attempt=attempt)
                    continue
                raise translate_integrity_error(exc) from exc
            except DBAPIError as exc:
                uow.rollback()
                if isinstance(exc, OperationalError) or exc.connection_invalidated:
                    logger.warning("store_unavailable", operation=fn.__name__, error=str(exc.orig))
                    raise TransientStoreError(operation=fn.__name__) from exc
                raise
            except BaseException:
                uow.rollback()
                raise

            try:
                uow.commit()
            except IntegrityError as exc:
                uow.rollback()
                if is_join_code_collision(exc):
                    logger.warning("join_code_collision", operation=fn.__name__, attempt=attempt)
                    continue
                raise translate_integrity_error(exc) from exc
            except DBAPIError as exc:
                uow.rollback()
                logger.warning("store_commit_failed", operation=fn.__name__, error=str(exc.orig))
                raise TransientStoreError(operation=fn.__name__) from exc
            return result

        logger.error("join_code_issuance_exhausted", operation=fn.__name__, attempts=attempts)
        raise IssuanceExhausted(attempts=attempts)

    return wrapper
