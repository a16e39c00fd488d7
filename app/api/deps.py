"""
Shared FastAPI dependencies.
"""
from app.db.session import SessionLocal
from app.services.session_runner import SessionRunner, get_session_runner


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_runner() -> SessionRunner:
    return get_session_runner()
