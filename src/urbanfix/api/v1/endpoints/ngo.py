"""NGO onboarding endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, status

from urbanfix.core.errors import TransientStorageError
from urbanfix.models import NgoApplication
from urbanfix.schemas.ngo import NgoApplicationCreate, NgoApplicationResponse
from urbanfix.services.storage import storage_guard

from ..dependencies import SessionDep, raise_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ngo-applications", tags=["ngo"])


@router.post("/", response_model=NgoApplicationResponse, status_code=status.HTTP_201_CREATED)
async def submit_application(payload: NgoApplicationCreate, db: SessionDep) -> NgoApplication:
    """Store an organisation's request to become an NGO triager.

    Applications are reviewed out of band; no account is created here.
    """
    application = NgoApplication(
        organization_name=payload.organization_name.strip(),
        contact_email=payload.contact_email.strip().lower(),
        phone=payload.phone.strip(),
        address=payload.address.strip(),
        description=payload.description.strip(),
    )
    try:
        with storage_guard(db, "submit_ngo_application"):
            db.add(application)
            db.commit()
    except TransientStorageError as exc:
        raise_http_error(exc)
    db.refresh(application)
    logger.info("Received NGO application %s", application.id)
    return application
