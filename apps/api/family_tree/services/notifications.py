from __future__ import annotations

from typing import Any

import structlog
from celery import Celery

from family_tree.core.config import settings

logger = structlog.get_logger()

MEMBER_ADDED = "member_added"
MEMBER_UPDATED = "member_updated"
PARENTS_SET_UP = "parents_set_up"
FAMILY_LINKED = "family_linked"


_celery: Celery | None = None


def celery_client() -> Celery:
    global _celery
    if _celery is None:
        _celery = Celery("family_tree_api", broker=settings.celery_broker_url)
    return _celery


def notify(target_principal_id: str, event_kind: str, context: dict[str, Any]) -> None:
    """
    Fire-and-forget notification dispatch.

    Called only after the mutation has committed. The result is never inspected and a
    failing dispatch never fails the mutation that triggered it.
    """
    if settings.notify_mode == "disabled":
        return
    if settings.notify_mode == "log":
        logger.info("notification", target=target_principal_id, event_kind=event_kind, context=context)
        return

    try:
        celery_client().send_task(
            settings.notification_task_name,
            kwargs={
                "target_principal_id": target_principal_id,
                "event_kind": event_kind,
                "context": context,
            },
        )
    except Exception as exc:
        logger.warning("notification_dispatch_failed", target=target_principal_id, event_kind=event_kind, error=str(exc))
