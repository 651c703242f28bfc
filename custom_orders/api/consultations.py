from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from custom_orders.api.responses import unwrap
from custom_orders.dependencies import get_db
from custom_orders.schemas import ConsultationComplete
from custom_orders.services import consultations

router = APIRouter(prefix="/api/consultations", tags=["consultations"])


@router.post("/{consultation_id}/start")
async def start(consultation_id: str, db: AsyncSession = Depends(get_db)):
    return unwrap(await consultations.start_consultation(db, consultation_id))


@router.post("/{consultation_id}/complete")
async def complete(
    consultation_id: str,
    body: ConsultationComplete | None = None,
    db: AsyncSession = Depends(get_db),
):
    notes = body.notes if body else None
    return unwrap(await consultations.complete_consultation(db, consultation_id, notes))
