"""Outgoing email helper.

Every message goes through Django's configured email backend and is also
appended to a JSON-lines outbox under ``LOG_DIR`` so notification mail can be
inspected without an SMTP server.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from django.conf import settings
from django.core.mail import send_mail


def _append_jsonl(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(payload, ensure_ascii=False) + "\n")


def _safe_name(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_.-]", "_", value)


def _outbox_path() -> Path:
    log_path = getattr(settings, "EMAIL_OUTBOX_LOG", None)
    if not log_path:
        log_path = Path(getattr(settings, "LOG_DIR", ".")) / "email_outbox.jsonl"
    return Path(str(log_path))


def send_email(
    *,
    to_emails: Iterable[str],
    subject: str,
    message: str,
    tag: str = "EMAIL",
    meta: dict[str, Any] | None = None,
    from_email: str | None = None,
) -> int:
    """Send ``message`` to every non-empty address and record it in the outbox.

    Returns the number of messages the backend reports as sent.
    """
    recipients = [e for e in to_emails if e]
    if not recipients:
        return 0

    meta = dict(meta or {})
    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "tag": tag,
        "to": recipients,
        "subject": subject,
        "message": message,
        "meta": meta,
    }

    outbox = _outbox_path()
    _append_jsonl(outbox, payload)
    for email in recipients:
        _append_jsonl(outbox.parent / "email" / f"to_{_safe_name(email)}.jsonl", payload)

    user_id = meta.get("user_id")
    if user_id:
        _append_jsonl(outbox.parent / "email" / f"user_{user_id}.jsonl", payload)

    return send_mail(
        subject=subject,
        message=message,
        from_email=(from_email or getattr(settings, "DEFAULT_FROM_EMAIL", "no-reply@servicehub.local")),
        recipient_list=recipients,
        fail_silently=False,
    )
