from __future__ import annotations

from bookex.extensions import db
from bookex.models import RequestEvent


def record_request_event(
    *,
    request_id: int,
    action: str,
    actor_id: int | None = None,
    from_status: str | None = None,
    to_status: str | None = None,
    details: dict | None = None,
) -> RequestEvent:
    """
    Añade el evento a la sesión actual; se confirma en el mismo commit que
    la transición que describe (si la transición no se escribe, el evento tampoco).
    """
    entry = RequestEvent(
        purchase_request_id=request_id,
        actor_id=actor_id,
        action=action,
        from_status=from_status,
        to_status=to_status,
        details=details,
    )
    db.session.add(entry)
    return entry


def list_request_events(request_id: int) -> list[RequestEvent]:
    return (
        RequestEvent.query
        .filter_by(purchase_request_id=request_id)
        .order_by(RequestEvent.id.asc())
        .all()
    )
