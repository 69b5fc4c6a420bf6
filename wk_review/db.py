from __future__ import annotations
from sqlalchemy import create_engine, Integer, String, DateTime, Text
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session, Mapped, mapped_column
import datetime
import os
from typing import Optional, Any

from .structured import SessionStats, percent


class Base(DeclarativeBase):
    pass


DB_PATH: str = os.environ.get("WK_REVIEW_DB", "wk_review.db")
engine = create_engine(f"sqlite:///{DB_PATH}")
# Prevent attribute expiration on commit so returned objects remain accessible
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


class Credential(Base):
    """The API token, persisted across runs. At most one row."""
    __tablename__ = "credentials"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    token: Mapped[str] = mapped_column(Text, nullable=False)
    saved_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC))


class SessionHistory(Base):
    __tablename__ = "session_history"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user: Mapped[str] = mapped_column(String, nullable=False)
    started_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    finished_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC))
    total: Mapped[int] = mapped_column(Integer, default=0)
    correct: Mapped[int] = mapped_column(Integer, default=0)
    incorrect: Mapped[int] = mapped_column(Integer, default=0)


def init_db() -> None:
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


def save_token(token: str) -> None:
    """Store the API token, replacing any previous one."""
    session: Session = get_session()
    session.query(Credential).delete()
    session.add(Credential(token=token))
    session.commit()
    session.close()


def load_token() -> Optional[str]:
    session: Session = get_session()
    cred: Optional[Credential] = session.query(Credential).order_by(Credential.id.desc()).first()
    session.close()
    return cred.token if cred else None


def clear_token() -> None:
    session: Session = get_session()
    session.query(Credential).delete()
    session.commit()
    session.close()


def record_session(user: str, stats: SessionStats, started_at: Optional[datetime.datetime] = None) -> None:
    """Save the counters of a finished session. Empty sessions are not recorded."""
    if stats.total == 0:
        return
    session: Session = get_session()
    session.add(SessionHistory(
        user=user,
        started_at=started_at,
        total=stats.total,
        correct=stats.correct,
        incorrect=stats.incorrect,
    ))
    session.commit()
    session.close()


def get_history(user: str, limit: int = 10) -> list[dict[str, Any]]:
    """
    Return the most recent sessions for a user, newest first.
    """
    session: Session = get_session()
    rows = (
        session.query(SessionHistory)
        .filter(SessionHistory.user == user)
        .order_by(SessionHistory.finished_at.desc(), SessionHistory.id.desc())
        .limit(limit)
        .all()
    )
    session.close()

    results: list[dict[str, Any]] = []
    for row in rows:
        accuracy = percent(row.correct, row.total)
        results.append({
            "finished_at": row.finished_at,
            "total": row.total,
            "correct": row.correct,
            "incorrect": row.incorrect,
            "accuracy": accuracy,
        })
    return results
