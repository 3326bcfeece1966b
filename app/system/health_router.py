import time
from datetime import datetime

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core import config
from app.core.database import get_db, get_db_status

router = APIRouter(prefix="/health", tags=["Health"])

STARTED_AT = time.monotonic()


@router.get("")
async def check_health(db: AsyncIOMotorDatabase = Depends(get_db)):
    """Liveness plus database connection state"""
    db_status = await get_db_status(db)
    return {
        "status": "success",
        "data": {
            "db_status": {
                "ready_state": db_status["ready_state"],
                "ready_state_text": db_status["ready_state_text"],
            },
            "version": config.VERSION,
            "uptime": round(time.monotonic() - STARTED_AT, 2),
            "timestamp": datetime.utcnow(),
        }
    }
