"""
Health check endpoint for deployment monitoring.
"""
import logging
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from billing_api.db.session import SessionLocal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/health", tags=["Health"])


@router.get("")
def health_check():
    """
    Returns 200 with status "healthy" when the database answers, "degraded" otherwise.
    """
    status = "healthy"

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.warning(f"Health check database error: {str(e)}")
        db_status = "error"
        status = "degraded"
    finally:
        db.close()

    return {"status": status, "database": db_status}
