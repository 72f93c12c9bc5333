from collections.abc import Generator

from sqlalchemy.orm import Session

from slotwise.core.config import get_settings
from slotwise.db.session import SessionLocal
from slotwise.services.ai_generator import AIScheduleClient, HttpAIScheduleClient


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_ai_client() -> AIScheduleClient | None:
    return HttpAIScheduleClient.from_settings(get_settings())
