"""Play sessions and point-in-time character snapshots.

A character has at most one open session (``ended_at IS NULL``). Starting
and ending a session each write a snapshot of the stored character;
manual snapshots can be taken at any time and may carry the unsaved state
the browser is currently showing.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db import transaction
from errors import CharSheetError, ConflictError, NotFoundError, PersistenceError
from logs import get_logger
from models import Session as PlaySession
from models import SessionSnapshot
from sheet.character import load_character

logger = get_logger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def default_session_name(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("Session %Y-%m-%d %H:%M")


def session_payload(session: PlaySession) -> dict:
    return {
        "id": session.id,
        "character_id": session.character_id,
        "session_name": session.session_name,
        "started_at": _iso(session.started_at),
        "ended_at": _iso(session.ended_at),
        "notes": session.notes,
    }


def snapshot_summary(snapshot: SessionSnapshot) -> dict:
    return {
        "id": snapshot.id,
        "snapshot_type": snapshot.snapshot_type,
        "created_at": _iso(snapshot.created_at),
    }


def snapshot_payload(snapshot: SessionSnapshot) -> dict:
    payload = snapshot_summary(snapshot)
    payload["session_id"] = snapshot.session_id
    payload["character_id"] = snapshot.character_id
    payload["character_data"] = json.loads(snapshot.character_data)
    return payload


def _write_snapshot(
    db: Session,
    character_id: int,
    snapshot_type: str,
    *,
    session_id: int | None = None,
    character_data: dict | None = None,
) -> SessionSnapshot:
    if character_data is None:
        character_data = load_character(db, character_id)
    else:
        character_data = dict(character_data)
        character_data["id"] = character_id
    snapshot = SessionSnapshot(
        session_id=session_id,
        character_id=character_id,
        snapshot_type=snapshot_type,
        character_data=json.dumps(character_data, ensure_ascii=False, default=str),
    )
    db.add(snapshot)
    db.flush()
    logger.info(
        "snapshots.created",
        snapshot_id=snapshot.id,
        character_id=character_id,
        session_id=session_id,
        snapshot_type=snapshot_type,
    )
    return snapshot


def open_session(db: Session, character_id: int) -> PlaySession | None:
    return db.scalars(
        select(PlaySession)
        .where(PlaySession.character_id == character_id)
        .where(PlaySession.ended_at.is_(None))
        .order_by(PlaySession.started_at.desc(), PlaySession.id.desc())
    ).first()


def session_snapshots(db: Session, session_id: int) -> list[dict]:
    records = db.scalars(
        select(SessionSnapshot)
        .where(SessionSnapshot.session_id == session_id)
        .order_by(SessionSnapshot.created_at, SessionSnapshot.id)
    )
    return [snapshot_summary(record) for record in records]


def start_session(db: Session, character_id: int, session_name: str | None = None) -> int:
    if open_session(db, character_id) is not None:
        raise ConflictError("A session is already running for this character")
    try:
        with transaction(db):
            session = PlaySession(
                character_id=character_id,
                session_name=session_name or default_session_name(),
            )
            db.add(session)
            db.flush()
            session_id = session.id
            _write_snapshot(db, character_id, "session_start", session_id=session_id)
    except CharSheetError:
        raise
    except Exception as exc:
        logger.exception("sessions.start_failed", character_id=character_id)
        raise PersistenceError(f"Failed to start session: {exc}") from exc
    logger.info("sessions.started", session_id=session_id, character_id=character_id)
    return session_id


def get_open_session(db: Session, session_id: int) -> PlaySession:
    session = db.get(PlaySession, session_id)
    if session is None or session.ended_at is not None:
        raise NotFoundError("Session not found or already ended")
    return session


def end_session(db: Session, session: PlaySession, notes: str | None = None) -> None:
    """Close an open session, writing the ``session_end`` snapshot first."""
    session_id, character_id = session.id, session.character_id
    try:
        with transaction(db):
            _write_snapshot(db, character_id, "session_end", session_id=session_id)
            session.ended_at = datetime.now(timezone.utc)
            session.notes = notes
    except CharSheetError:
        raise
    except Exception as exc:
        logger.exception("sessions.end_failed", session_id=session_id)
        raise PersistenceError(f"Failed to end session: {exc}") from exc
    logger.info("sessions.ended", session_id=session_id, character_id=character_id)


def create_snapshot(db: Session, character_id: int, character_data: Any = None) -> int:
    """Store a manual snapshot, from ``character_data`` when given or else the database."""
    if not isinstance(character_data, dict) or not character_data:
        character_data = None
    try:
        with transaction(db):
            snapshot = _write_snapshot(
                db, character_id, "manual", character_data=character_data
            )
            snapshot_id = snapshot.id
    except CharSheetError:
        raise
    except Exception as exc:
        logger.exception("snapshots.create_failed", character_id=character_id)
        raise PersistenceError(f"Failed to create snapshot: {exc}") from exc
    return snapshot_id


def get_snapshot(db: Session, snapshot_id: int) -> SessionSnapshot:
    snapshot = db.get(SessionSnapshot, snapshot_id)
    if snapshot is None:
        raise NotFoundError("Snapshot not found")
    return snapshot


def latest_snapshot(db: Session, character_id: int) -> dict:
    snapshot = db.scalars(
        select(SessionSnapshot)
        .where(SessionSnapshot.character_id == character_id)
        .order_by(SessionSnapshot.created_at.desc(), SessionSnapshot.id.desc())
    ).first()
    if snapshot is None:
        raise NotFoundError("No snapshot found")
    return snapshot_payload(snapshot)


def list_sessions(db: Session, character_id: int) -> list[dict]:
    counts = (
        select(func.count(SessionSnapshot.id))
        .where(SessionSnapshot.session_id == PlaySession.id)
        .correlate(PlaySession)
        .scalar_subquery()
    )
    rows = db.execute(
        select(PlaySession, counts.label("snapshot_count"))
        .where(PlaySession.character_id == character_id)
        .order_by(PlaySession.started_at.desc(), PlaySession.id.desc())
    )
    sessions = []
    for session, snapshot_count in rows:
        payload = session_payload(session)
        payload["snapshot_count"] = snapshot_count
        sessions.append(payload)
    return sessions


def active_session(db: Session, character_id: int) -> dict | None:
    session = open_session(db, character_id)
    if session is None:
        return None
    payload = session_payload(session)
    payload["snapshots"] = session_snapshots(db, session.id)
    return payload


def get_session(db: Session, session_id: int) -> PlaySession:
    session = db.get(PlaySession, session_id)
    if session is None:
        raise NotFoundError("Session not found")
    return session


def session_detail(db: Session, session: PlaySession) -> dict:
    payload = session_payload(session)
    payload["snapshots"] = session_snapshots(db, session.id)
    return payload
