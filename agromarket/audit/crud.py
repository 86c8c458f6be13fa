from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session, sessionmaker
from .models import Event


def create_event(db: Session, event: Dict[str, Any]) -> Event:
    db_event = Event(
        user_id=event.get("user_id"),
        action=event["action"],
        entity_type=event.get("entity_type"),
        entity_id=event.get("entity_id"),
        details=event.get("details"),
    )
    db.add(db_event)
    db.commit()
    return db_event


def write_event(session_factory: sessionmaker, event: Dict[str, Any]) -> None:
    """Persist one audit event in its own session (runs in a worker thread)."""
    db = session_factory()
    try:
        create_event(db, event)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_events(db: Session, action: Optional[str] = None, user_id: Optional[int] = None) -> List[Event]:
    query = db.query(Event)
    if action:
        query = query.filter(Event.action == action)
    if user_id is not None:
        query = query.filter(Event.user_id == user_id)
    return query.order_by(Event.id.asc()).all()
