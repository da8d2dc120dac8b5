"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for the local card/request store.
"""

import uuid
from datetime import datetime
from pathlib import Path
from sqlalchemy import create_engine, Column, String, DateTime, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


class IntentCardRow(Base):
    """Intent card model."""

    __tablename__ = "intent_cards"

    id = Column(String, primary_key=True, default=new_id)
    owner_uid = Column(String, nullable=False, index=True)
    owner_name = Column(String, nullable=False)
    owner_email = Column(String, nullable=True)
    owner_photo_url = Column(String, nullable=True)
    event_type = Column(String, nullable=False)  # Hackathon, Sports, Project, Other
    event_name = Column(String, nullable=False)
    looking_for_roles = Column(JSON, nullable=False, default=list)
    required_skills = Column(JSON, nullable=False, default=list)
    availability = Column(JSON, nullable=False)  # {weekdays, weekends, startTime, endTime}
    hostel_status = Column(String, nullable=False)
    commitment_level = Column(String, nullable=False)
    short_goal = Column(String, nullable=False, default="")
    is_public = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class ConnectionRequestRow(Base):
    """Directed connection request between two card owners."""

    __tablename__ = "connection_requests"

    id = Column(String, primary_key=True, default=new_id)
    from_uid = Column(String, nullable=False, index=True)
    from_name = Column(String, nullable=False)
    from_photo_url = Column(String, nullable=True)
    to_uid = Column(String, nullable=False, index=True)
    to_name = Column(String, nullable=False)
    to_photo_url = Column(String, nullable=True)
    from_intent_card_id = Column(String, nullable=False)
    to_intent_card_id = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending, accepted, rejected
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class ConnectionRow(Base):
    """Accepted connection. uid_a < uid_b."""

    __tablename__ = "connections"
    __table_args__ = (UniqueConstraint("request_id", name="uq_connections_request"),)

    id = Column(String, primary_key=True, default=new_id)
    uid_a = Column(String, nullable=False, index=True)
    uid_b = Column(String, nullable=False, index=True)
    request_id = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)


def get_session_factory(db_path: Path) -> sessionmaker:
    """
    Session factory bound to one SQLite file.

    Args:
        db_path: Path to SQLite database file

    Returns:
        sessionmaker; objects stay readable after commit
    """
    engine = create_engine(f"sqlite:///{db_path}")
    return sessionmaker(bind=engine, expire_on_commit=False)


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    return get_session_factory(db_path)()
