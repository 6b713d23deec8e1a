from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/ping")
def ping() -> dict:
    return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}
