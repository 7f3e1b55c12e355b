"""SQLite chat history (SQLAlchemy): the conversation window and the per-task watermark queries."""

from pathlib import Path

from loguru import logger
from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from blady.errors import StoreIOError
from blady.history.models import Base, Message

# Cap for a first pass over a task chat (watermark 0)
FIRST_PASS_LIMIT = 20


def _format(row: Message) -> str:
    return f"{'Me' if row.is_from_me else 'User'}: {row.content}"


class HistoryStore:
    """
    save_message is idempotent on the message id. Lines come back oldest →
    newest as "Me: ..." / "User: ...".
    """

    def __init__(self, db_path: Path | str | None = None):
        url = "sqlite://" if db_path is None else f"sqlite:///{db_path}"
        self.engine = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
        Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def _session(self) -> Session:
        return self._session_factory()

    def save_message(
        self,
        message_id: str,
        chat_id: str,
        sender_id: str,
        content: str,
        timestamp: int,
        is_from_me: bool,
    ) -> bool:
        """Store a message. Returns False when the id was already stored."""
        db = self._session()
        try:
            if db.get(Message, message_id) is not None:
                return False
            db.add(Message(
                id=message_id,
                chat_id=chat_id,
                sender_id=sender_id,
                content=content,
                timestamp=int(timestamp),
                is_from_me=bool(is_from_me),
            ))
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreIOError(f"failed to save message {message_id}: {e}") from e
        finally:
            db.close()

    def get_recent_messages(self, chat_id: str, limit: int = 9) -> list[str]:
        db = self._session()
        try:
            rows = db.scalars(
                select(Message)
                .where(Message.chat_id == chat_id)
                .order_by(Message.timestamp.desc(), Message.id.desc())
                .limit(limit)
            ).all()
        finally:
            db.close()
        return [_format(r) for r in reversed(rows)]

    def get_messages_since(self, chat_id: str, watermark: int) -> tuple[list[str], int]:
        """
        Contact messages (not ours) newer than `watermark`, oldest first, and the
        new watermark (timestamp of the newest one, or `watermark` when none).
        """
        db = self._session()
        try:
            query = (
                select(Message)
                .where(Message.chat_id == chat_id, Message.is_from_me.is_(False), Message.timestamp > watermark)
                .order_by(Message.timestamp.desc(), Message.id.desc())
            )
            if watermark <= 0:
                query = query.limit(FIRST_PASS_LIMIT)
            rows = list(reversed(db.scalars(query).all()))
        finally:
            db.close()
        if not rows:
            return [], watermark
        return [_format(r) for r in rows], max(r.timestamp for r in rows)

    def count(self) -> int:
        db = self._session()
        try:
            return db.query(Message).count()
        finally:
            db.close()

    def close(self) -> None:
        self.engine.dispose()
        logger.debug("History store closed")
