"""Health sample ingest - feeds the local health store."""

import logging
from fastapi import APIRouter, Depends, HTTPException

from healthsync.core.runtime import get_health_store
from healthsync.schemas.responses import SampleIngestRequest, SampleIngestResponse
from healthsync.services.health_store import (
    HealthDataUnavailableError,
    LocalHealthStore,
    QuantitySample,
    UnitConversionError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/samples", tags=["samples"])


@router.post("", response_model=SampleIngestResponse)
async def ingest_samples(
    body: SampleIngestRequest,
    store: LocalHealthStore = Depends(get_health_store),
):
    """Store quantity samples; observers of the affected metrics are notified."""
    samples = [
        QuantitySample(
            metric_type=s.metric_type,
            value=s.value,
            unit=s.unit or s.metric_type.store_unit,
            start=s.start,
            end=s.end,
            source=s.source,
        )
        for s in body.samples
    ]

    try:
        stored = await store.add_samples(samples)
    except UnitConversionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except HealthDataUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return SampleIngestResponse(stored=stored)
