import logging

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from gpxpy.gpx import GPXException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartrunner.core.auth import get_current_user
from smartrunner.core.config import settings
from smartrunner.core.time_utils import format_pace
from smartrunner.db import get_db
from smartrunner.models.run import Run
from smartrunner.schemas.run import ClearResult, RunCreate, RunRead, RunStats
from smartrunner.tracking.errors import InsufficientData, PersistenceFailure
from smartrunner.tracking.gpx_io import record_to_gpx, samples_from_gpx
from smartrunner.tracking.models import PathPoint, RunRecord
from smartrunner.tracking.session import summarize_run
from smartrunner.tracking.stats import MotionStats
from smartrunner.tracking.stores import SqlRunStore, row_to_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/runs", tags=["runs"])


def _to_read(record: RunRecord) -> RunRead:
    return RunRead(
        id=record.id,
        created_at=record.created_at,
        distance=record.distance,
        duration=record.duration,
        avg_speed=record.avg_speed,
        max_speed=record.max_speed,
        calories=record.calories,
        path=[p.to_dict() for p in record.path],
        pace=format_pace(record.distance, record.duration),
    )


def _get_owned_run(db: Session, run_id: str, user_id: str) -> Run:
    # Someone else's run looks exactly like a missing one
    row = db.query(Run).filter(Run.id == run_id, Run.user_id == user_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Run not found")
    return row


@router.post("/", response_model=RunRead, status_code=201)
def create_run(
    payload: RunCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    extra = {}
    if payload.id:
        extra["id"] = payload.id
    if payload.created_at:
        extra["created_at"] = payload.created_at

    record = RunRecord(
        distance=payload.distance,
        duration=payload.duration,
        avg_speed=payload.avg_speed,
        max_speed=payload.max_speed,
        calories=payload.calories,
        path=tuple(PathPoint(**p.model_dump()) for p in payload.path),
        **extra,
    )

    try:
        SqlRunStore(db, user_id).save(record)
    except PersistenceFailure as e:
        # same answer whether the existing id belongs to the caller or not
        if isinstance(e.__cause__, IntegrityError):
            raise HTTPException(status_code=409, detail="Run already exists")
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("Stored run %s for %s", record.id, user_id)
    return _to_read(record)


@router.get("/", response_model=list[RunRead])
def list_runs(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """All runs of the caller, most recent first."""
    try:
        records = SqlRunStore(db, user_id).list_runs()
    except PersistenceFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    return [_to_read(r) for r in records]


@router.delete("/", response_model=ClearResult)
def clear_runs(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    try:
        deleted = SqlRunStore(db, user_id).clear()
    except PersistenceFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    logger.info("Cleared %d runs for %s", deleted, user_id)
    return ClearResult(deleted=deleted)


@router.get("/stats", response_model=RunStats)
def get_run_stats(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    query = db.query(Run).filter(Run.user_id == user_id)
    count, distance, duration, calories, best = query.with_entities(
        func.count(Run.id),
        func.sum(Run.distance_m),
        func.sum(Run.duration_s),
        func.sum(Run.calories),
        func.max(Run.max_speed_kmh),
    ).one()

    return RunStats(
        total_runs=count or 0,
        total_distance_m=float(distance or 0.0),
        total_duration_s=float(duration or 0.0),
        total_calories=int(calories or 0),
        best_max_speed_kmh=float(best or 0.0),
    )


@router.post("/import", response_model=RunRead, status_code=201)
def import_gpx(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """Replay a GPX track through the tracking pipeline and store the result."""
    name = (file.filename or "").lower()
    if not name.endswith(".gpx"):
        raise HTTPException(status_code=400, detail="Only .gpx files are supported")

    raw = file.file.read()
    try:
        samples = samples_from_gpx(raw.decode("utf-8"))
    except (GPXException, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid file: {e}")

    # GPX has no wall-clock session, so duration spans first to last point
    duration_s = (samples[-1].timestamp - samples[0].timestamp) / 1000.0 if samples else 0.0
    stats = MotionStats(
        noise_floor_m=settings.noise_floor_m,
        default_accuracy_m=settings.default_accuracy_m,
    )
    try:
        record = summarize_run(samples, duration_s, stats, settings.calories_per_meter)
    except InsufficientData as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        SqlRunStore(db, user_id).save(record)
    except PersistenceFailure as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("Imported %s as run %s (%d points)", file.filename, record.id, len(samples))
    return _to_read(record)


@router.get("/{run_id}", response_model=RunRead)
def get_run(
    run_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    return _to_read(row_to_record(_get_owned_run(db, run_id, user_id)))


@router.get("/{run_id}/gpx")
def export_gpx(
    run_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    record = row_to_record(_get_owned_run(db, run_id, user_id))
    return Response(
        content=record_to_gpx(record),
        media_type="application/gpx+xml",
        headers={"Content-Disposition": f'attachment; filename="run-{record.id}.gpx"'},
    )


@router.delete("/{run_id}")
def delete_run(
    run_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    row = _get_owned_run(db, run_id, user_id)
    db.delete(row)
    db.commit()
    return {"status": "deleted", "id": run_id}
