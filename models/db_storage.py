"""SQLAlchemy-backed SessionStore."""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from models.base_model import Base, as_utc
from models.user import User
from models.auth_session import AuthSession
from models.store import (
    Identity,
    IdentityExists,
    RecordNotFound,
    SessionRecord,
    SessionStore,
    StoreError,
    SwapConflict,
)

logger = logging.getLogger(__name__)


def _to_identity(user: User) -> Identity:
    return Identity(
        id=uuid.UUID(user.id),
        username=user.username,
        email=user.email,
        created_at=as_utc(user.created_at),
        updated_at=as_utc(user.updated_at),
    )


def _to_record(row: AuthSession) -> SessionRecord:
    return SessionRecord(
        identity_id=uuid.UUID(row.user_id),
        refresh_token=row.refresh_token,
        refresh_expires_at=as_utc(row.refresh_expires_at),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


# Columns rewritten when a session row already exists for the user
_REPLACED_COLUMNS = ("refresh_token", "refresh_expires_at", "created_at", "updated_at")


def _upsert_session(dialect: str, values: dict):
    """INSERT ... ON CONFLICT (user_id) DO UPDATE for the dialects we run on."""
    if dialect == "sqlite":
        stmt = sqlite_insert(AuthSession).values(**values)
    elif dialect == "postgresql":
        stmt = postgresql_insert(AuthSession).values(**values)
    elif dialect in ("mysql", "mariadb"):
        stmt = mysql_insert(AuthSession).values(**values)
        return stmt.on_duplicate_key_update(
            {name: stmt.inserted[name] for name in _REPLACED_COLUMNS}
        )
    else:
        raise StoreError(f"session upsert is not supported on {dialect}")
    return stmt.on_conflict_do_update(
        index_elements=[AuthSession.user_id],
        set_={name: stmt.excluded[name] for name in _REPLACED_COLUMNS},
    )


class DBStorage(SessionStore):
    __engine = None
    __session = None

    def __init__(self, database_url: str, echo: bool = False):
        """Initialize engine for the given database URL"""
        options = {"echo": echo}
        if database_url.startswith("sqlite"):
            # In-memory SQLite needs one shared connection across sessions
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
        else:
            options["pool_pre_ping"] = True
        self.__engine = create_engine(database_url, **options)

        # Enable SQLite foreign keys (needed for ON DELETE CASCADE and the users FK)
        if self.__engine.url.get_backend_name() == "sqlite":
            @event.listens_for(self.__engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

    def reload(self):
        """Create tables and start session"""
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.__session = scoped_session(session_factory)

    def save(self):
        """Commit session"""
        try:
            self.__session.commit()
        except SQLAlchemyError as exc:
            logger.warning("rolling back session after %s", exc.__class__.__name__)
            self.__session.rollback()
            raise

    def close(self):
        """Remove session (for API teardown)"""
        if self.__session is not None:
            self.__session.remove()

    def dispose(self):
        """Close the pool on shutdown"""
        self.close()
        self.__engine.dispose()

    # expose the SQLAlchemy session for advanced querying
    def get_db_session(self):
        return self.__session

    def create_identity(self, username, password_hash, email):
        user = User(username=username, password_hash=password_hash, email=email)
        self.__session.add(user)
        try:
            self.save()
        except IntegrityError as exc:
            if "unique" in str(getattr(exc, "orig", exc)).lower():
                raise IdentityExists(f"username {username!r} already taken") from exc
            raise StoreError("failed to insert user") from exc
        except SQLAlchemyError as exc:
            raise StoreError("failed to insert user") from exc
        return uuid.UUID(user.id)

    def find_identity_by_username(self, username):
        try:
            user = self.__session.query(User).filter(User.username == username).first()
        except SQLAlchemyError as exc:
            self.__session.rollback()
            raise StoreError("failed to get user by username") from exc
        if user is None:
            raise RecordNotFound(f"no user {username!r}")
        return _to_identity(user)

    def fetch_password_hash(self, identity_id):
        try:
            user = self.__session.get(User, str(identity_id))
        except SQLAlchemyError as exc:
            self.__session.rollback()
            raise StoreError("failed to get password") from exc
        if user is None:
            raise RecordNotFound(f"no user {identity_id}")
        return user.password_hash

    def put_session(self, identity_id, refresh_token, refresh_expires_at):
        """
        Insert or replace in a single statement, so an identity never has two
        session rows even when two logins race for a user with none.
        """
        session = self.__session
        now = datetime.now(timezone.utc)
        try:
            session.execute(_upsert_session(
                self.__engine.dialect.name,
                {
                    "id": str(uuid.uuid4()),
                    "user_id": str(identity_id),
                    "refresh_token": refresh_token,
                    "refresh_expires_at": refresh_expires_at,
                    "created_at": now,
                    "updated_at": now,
                },
            ))
            self.save()
        except IntegrityError as exc:
            session.rollback()
            if "foreign key" in str(getattr(exc, "orig", exc)).lower():
                raise RecordNotFound(f"no user {identity_id}") from exc
            raise StoreError("failed to store refresh token") from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError("failed to store refresh token") from exc

    def get_session(self, identity_id):
        try:
            row = (
                self.__session.query(AuthSession)
                .filter(AuthSession.user_id == str(identity_id))
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as exc:
            self.__session.rollback()
            raise StoreError("failed to get refresh token") from exc
        if row is None:
            raise RecordNotFound(f"no session for {identity_id}")
        return _to_record(row)

    def compare_and_swap_session(self, identity_id, expected_token, new_token):
        """One conditional UPDATE: the comparison and the write cannot interleave."""
        session = self.__session
        try:
            matched = (
                session.query(AuthSession)
                .filter(AuthSession.user_id == str(identity_id))
                .filter(AuthSession.refresh_token == expected_token)
                .update(
                    {
                        AuthSession.refresh_token: new_token,
                        AuthSession.updated_at: datetime.now(timezone.utc),
                    },
                    synchronize_session=False,
                )
            )
            self.save()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError("failed to update refresh token") from exc

        if matched == 1:
            return
        # Nothing matched: either the session is gone or someone rotated it first
        self.get_session(identity_id)
        raise SwapConflict(f"session for {identity_id} was rotated concurrently")

    def delete_session(self, identity_id):
        session = self.__session
        try:
            session.query(AuthSession).filter(AuthSession.user_id == str(identity_id)).delete(
                synchronize_session=False
            )
            self.save()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError("failed to delete refresh token") from exc
