import os
from datetime import datetime, timezone

import httpx

from worker.celery_app import celery_app


@celery_app.task(name="worker.tasks.deliver_notification")
def deliver_notification(target_principal_id: str, event_kind: str, context: dict | None = None):
    """POST one family-tree notification to the configured webhook."""
    url = os.environ.get("NOTIFICATION_WEBHOOK_URL", "")
    if not url:
        return {"job": "deliver_notification", "status": "skipped", "reason": "missing NOTIFICATION_WEBHOOK_URL"}

    payload = {
        "target_principal_id": target_principal_id,
        "event_kind": event_kind,
        "context": context or {},
        "sent_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        resp = httpx.post(url, json=payload, timeout=float(os.environ.get("NOTIFICATION_TIMEOUT_SECONDS", "10")))
        resp.raise_for_status()
    except Exception as exc:
        return {"job": "deliver_notification", "status": "error", "event_kind": event_kind, "error": str(exc)}

    return {"job": "deliver_notification", "status": "ok", "event_kind": event_kind, "http_status": resp.status_code}
