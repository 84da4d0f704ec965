from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from src.database.session import get_db_session

router = APIRouter()


@router.get("/api/health")
def health(db: Session = Depends(get_db_session)):
    """Liveness plus a trivial database round-trip."""
    db.execute(text("SELECT 1"))
    return {"ok": True, "status": "ok", "checks": {"database": "ok"}}
