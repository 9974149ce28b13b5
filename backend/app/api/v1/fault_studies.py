"""Fault study endpoints.

Studies run synchronously in the threadpool (well under a second for
typical radial networks) and the completed result is kept in the
application's result store.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from app.config import settings as app_settings
from app.core.logging import study_id_var
from app.schemas.fault_study import (
    FaultStudyListItem,
    FaultStudyRequest,
    FaultStudyResponse,
)
from app.services.result_store import InMemoryResultStore

router = APIRouter()
standards_router = APIRouter()
logger = logging.getLogger(__name__)


def _store(request: Request) -> InMemoryResultStore:
    return request.app.state.result_store


@router.post("", response_model=FaultStudyResponse, status_code=status.HTTP_201_CREATED)
async def create_fault_study(body: FaultStudyRequest, request: Request):
    from engine.network.components import ArcFlashSettings, StudySettings
    from engine.network.errors import TopologyError, ValidationError
    from engine.network.fault_runner import run_fault_study

    store = _store(request)
    s = body.settings
    study_settings = StudySettings(
        nominal_voltage_v=s.nominal_voltage_v,
        frequency_hz=s.frequency_hz or app_settings.default_frequency_hz,
        standard=s.standard or app_settings.default_standard,
        study_case=s.study_case,
        fault_location=s.fault_location,
        arc_flash=ArcFlashSettings(**s.arc_flash.model_dump()) if s.arc_flash else None,
    )

    try:
        result = await run_in_threadpool(run_fault_study, body.components, study_settings)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"error": "validation", "violations": exc.violations},
        )
    except TopologyError as exc:
        raise HTTPException(
            status_code=422,
            detail={"error": "topology", "violations": exc.problems},
        )

    study_id = store.save(result)
    study_id_var.set(study_id)
    record = result.to_dict()
    summary = record["summary"]
    logger.info(
        "Fault study %s: %d bus(es), max %.2f kA",
        study_id, summary["bus_count"], summary["max_fault_ka"],
        extra={"bus_count": summary["bus_count"], "warning_count": summary["warning_count"]},
    )
    # The store may already have evicted the record; answer from the result itself
    return FaultStudyResponse(id=study_id, summary=summary, result=record)


@router.get("", response_model=list[FaultStudyListItem])
async def list_fault_studies(request: Request):
    return _store(request).list_summaries()


@router.get("/{study_id}", response_model=FaultStudyResponse)
async def get_fault_study(study_id: str, request: Request):
    record = _store(request).get(study_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fault study not found")
    return FaultStudyResponse(id=study_id, summary=record["summary"], result=record)


@standards_router.get("")
async def list_standards():
    from engine.network.standards import list_profiles

    return list_profiles()
