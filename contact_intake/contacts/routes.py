"""Contact routes: public intake and the administrative JSON API."""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..database.base import get_db
from ..dependencies import get_client_ip, get_notifier, require_admin
from ..rate_limit import limiter
from .lifecycle import apply_transition
from .schemas import ContactRecord, ContactSubmission, TransitionRequest
from .service import Notifier, fetch_contact, get_stats, paginate_contacts, search_contacts, submit_contact

router = APIRouter(tags=["contacts"])
admin_router = APIRouter(tags=["contacts-admin"], dependencies=[Depends(require_admin)])


def _dump(record: ContactRecord) -> dict:
    return record.model_dump(mode="json")


@router.post("/contact")
@limiter.limit(settings.contact_rate_limit)
def submit(
    request: Request,
    body: ContactSubmission,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier | None = Depends(get_notifier),
):
    fields = body.model_dump()
    fields["ip_address"] = get_client_ip(request)
    fields["user_agent"] = request.headers.get("user-agent")

    record = submit_contact(db, fields, notifier=notifier, background=background)
    return JSONResponse(
        {
            "success": True,
            "message": "Thank you for contacting us! We have received your message and will get back to you soon.",
            "data": {
                "id": str(record.id),
                "ticket_id": record.ticket_id,
                "submitted_at": record.created_at.isoformat(),
                "priority": record.priority.value,
            },
        },
        status_code=201,
    )


@admin_router.get("/contacts")
def list_contacts(
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
):
    result = paginate_contacts(db, status=status or None, page=page, page_size=limit)
    return JSONResponse(
        {
            "success": True,
            "data": [_dump(r) for r in result.records],
            "pagination": result.pagination.model_dump(),
        }
    )


@admin_router.get("/contacts/search")
def search(q: str = "", db: Session = Depends(get_db)):
    records = search_contacts(db, q)
    return JSONResponse({"success": True, "data": [_dump(r) for r in records]})


@admin_router.get("/contacts/stats")
def statistics(db: Session = Depends(get_db)):
    return JSONResponse({"success": True, "data": get_stats(db).model_dump()})


@admin_router.get("/contacts/{contact_id}")
def get_contact(contact_id: str, db: Session = Depends(get_db)):
    record = fetch_contact(db, contact_id)
    db.commit()
    return JSONResponse({"success": True, "data": _dump(record)})


@admin_router.post("/contacts/{contact_id}/{action}")
def transition(
    contact_id: str,
    action: str,
    body: TransitionRequest | None = None,
    db: Session = Depends(get_db),
):
    payload = body.model_dump(exclude_none=True) if body else {}
    record = apply_transition(db, contact_id, action, payload)
    db.commit()
    return JSONResponse({"success": True, "data": _dump(record)})
