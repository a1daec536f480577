from __future__ import annotations

import re
import secrets
import string

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from family_tree.core.config import settings
from family_tree.core.errors import IssuanceExhausted
from family_tree.models.entities import Member

logger = structlog.get_logger()

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_PATTERN = re.compile(r"^[A-Z0-9]{8}$")


def generate_code(length: int | None = None) -> str:
    size = length or settings.join_code_length
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(size))


def is_well_formed(code: str) -> bool:
    return bool(JOIN_CODE_PATTERN.match(code or ""))


def code_exists(db: Session, code: str) -> bool:
    return db.execute(select(Member.id).where(Member.join_code == code).limit(1)).first() is not None


def issue_join_code(db: Session, *, reserved: set[str] | None = None) -> str:
    """
    Draw a join code that no stored member holds.

    `reserved` covers codes handed out earlier in the same unit of work that are not
    flushed yet. This only narrows the race window: the unique constraint on
    `family_members.join_code` is the real guard, and a violation there makes the
    unit of work retry the whole operation.
    """
    attempts = settings.join_code_max_attempts
    for _ in range(attempts):
        code = generate_code()
        if reserved is not None and code in reserved:
            continue
        if code_exists(db, code):
            logger.debug("join_code_collision_at_issue")
            continue
        if reserved is not None:
            reserved.add(code)
        return code
    raise IssuanceExhausted(attempts=attempts)
