from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from listing_sync.api.deps import get_text_generator
from listing_sync.api.response import envelope
from listing_sync.db.session import get_db
from listing_sync.services.audit_service import get_audit, run_audit, serialize_audit
from listing_sync.services.narrative_service import TextGenerator, generate_audit_narrative


router = APIRouter(tags=["audits"])


@router.post("/listings/{listing_id}/audits", status_code=status.HTTP_201_CREATED)
def create_audit(request: Request, listing_id: str, db: Session = Depends(get_db)) -> dict:
    record = run_audit(db, listing_id)
    return envelope(request, {"audit": serialize_audit(record)})


@router.get("/audits/{audit_id}")
def read_audit(request: Request, audit_id: str, db: Session = Depends(get_db)) -> dict:
    return envelope(request, {"audit": serialize_audit(get_audit(db, audit_id))})


@router.post("/audits/{audit_id}/narrative")
def create_audit_narrative(
    request: Request,
    audit_id: str,
    db: Session = Depends(get_db),
    generator: TextGenerator = Depends(get_text_generator),
) -> dict:
    narrative = generate_audit_narrative(db, audit_id, generator)
    return envelope(request, narrative.to_dict())
