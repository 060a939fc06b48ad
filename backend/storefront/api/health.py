from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.utils.logging import get_logger

log = get_logger(__name__)

router = APIRouter()


@router.get("/health", tags=["health"])
def health(db: Session = Depends(get_db)):
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        log.exception("health check: database unreachable")
    return {
        "status": "ok" if db_ok else "degraded",
        "db": db_ok,
    }
