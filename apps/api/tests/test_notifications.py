import httpx

from family_tree.core.config import settings
from family_tree.services import notifications
from worker import tasks


def test_notify_disabled_does_nothing(monkeypatch):
    monkeypatch.setattr(settings, "notify_mode", "disabled")

    def no_dispatch():
        raise AssertionError("disabled mode must not reach the broker")

    monkeypatch.setattr(notifications, "celery_client", no_dispatch)

    notifications.notify("a@example.com", notifications.MEMBER_ADDED, {"family_id": 1})


def test_notify_celery_sends_task(monkeypatch):
    sent = []

    class FakeCelery:
        def send_task(self, name, kwargs):
            sent.append((name, kwargs))

    monkeypatch.setattr(settings, "notify_mode", "celery")
    monkeypatch.setattr(notifications, "celery_client", lambda: FakeCelery())

    notifications.notify("a@example.com", notifications.FAMILY_LINKED, {"family_id": 1})

    assert sent == [
        (
            "worker.tasks.deliver_notification",
            {"target_principal_id": "a@example.com", "event_kind": "family_linked", "context": {"family_id": 1}},
        )
    ]


def test_notify_swallows_broker_failures(monkeypatch):
    class BrokenCelery:
        def send_task(self, name, kwargs):
            raise ConnectionError("broker down")

    monkeypatch.setattr(settings, "notify_mode", "celery")
    monkeypatch.setattr(notifications, "celery_client", lambda: BrokenCelery())

    notifications.notify("a@example.com", notifications.MEMBER_UPDATED, {})


def test_deliver_notification_skips_without_webhook(monkeypatch):
    monkeypatch.delenv("NOTIFICATION_WEBHOOK_URL", raising=False)

    result = tasks.deliver_notification("a@example.com", "member_added", {})

    assert result["status"] == "skipped"


def test_deliver_notification_posts_to_webhook(monkeypatch):
    posted = []

    def fake_post(url, json, timeout):
        posted.append((url, json))
        return httpx.Response(202, request=httpx.Request("POST", url))

    monkeypatch.setenv("NOTIFICATION_WEBHOOK_URL", "http://notify.local/hook")
    monkeypatch.setattr(tasks.httpx, "post", fake_post)

    result = tasks.deliver_notification("a@example.com", "family_linked", {"family_id": 2})

    assert result == {"job": "deliver_notification", "status": "ok", "event_kind": "family_linked", "http_status": 202}
    assert posted[0][0] == "http://notify.local/hook"
    assert posted[0][1]["context"] == {"family_id": 2}


def test_deliver_notification_reports_http_errors(monkeypatch):
    def failing_post(url, json, timeout):
        return httpx.Response(500, request=httpx.Request("POST", url))

    monkeypatch.setenv("NOTIFICATION_WEBHOOK_URL", "http://notify.local/hook")
    monkeypatch.setattr(tasks.httpx, "post", failing_post)

    result = tasks.deliver_notification("a@example.com", "family_linked", {})

    assert result["status"] == "error"
