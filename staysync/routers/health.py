"""
Health Check Endpoints

- /health - Liveness check (is process running)
- /health/integration - database, Beds24 token and webhook backlog
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..services.container import ServiceContainer
from ..utils.dependencies import get_db, get_services

router = APIRouter(prefix="/health", tags=["Health"])


def get_db_health(db: Session) -> dict:
    """Check database connectivity and latency"""
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
        return {
            "status": "up",
            "latency_ms": round(latency_ms, 2),
            "type": db.get_bind().dialect.name,
        }
    except Exception as e:
        return {
            "status": "down",
            "error": str(e)[:100]
        }


def get_token_health(services: ServiceContainer) -> dict:
    try:
        token = services.token_manager.status()
    except Exception as e:
        return {"status": "down", "error": str(e)[:100]}

    if not token["initialized"]:
        token_state = "not_initialized"
    elif token["expiring"]:
        token_state = "refresh_due"
    else:
        token_state = "valid"
    return {
        "status": token_state,
        "expires_at": token["expires_at"].isoformat() if token["expires_at"] else None,
        "seconds_remaining": token["seconds_remaining"],
    }


@router.get("")
@router.get("/")
def liveness():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/integration")
def integration_health(
    db: Session = Depends(get_db),
    services: ServiceContainer = Depends(get_services),
):
    database = get_db_health(db)
    token = get_token_health(services)

    unprocessed = None
    if database["status"] == "up":
        unprocessed = services.ingestor.unprocessed_count()

    healthy = database["status"] == "up" and token["status"] in ("valid", "refresh_due")
    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": database,
        "token": token,
        "webhooks": {"unprocessed": unprocessed},
        "scheduler": services.scheduler.status(),
    }
