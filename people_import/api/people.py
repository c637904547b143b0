"""Record normalization endpoint — exposes persistence-time reconciliation."""

from fastapi import APIRouter

from people_import.core.field_normalizer import reconcile
from people_import.core.models import NormalizeRequest, NormalizeResponse

router = APIRouter()


@router.post("/people/normalize", response_model=NormalizeResponse)
async def normalize_people(body: NormalizeRequest):
    """Map alternate field spellings to canonical names and derive name fields."""
    return NormalizeResponse(records=[reconcile(record) for record in body.records])
