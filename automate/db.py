"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from datetime import date
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    String,
    create_engine,
    delete,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from automate.errors import StoreError

REMINDER_FIELDS = ("vehicle_id", "title", "notes", "due_date", "is_completed")


class DbClient(Protocol):
    """Interface for the relational store."""

    def upsert_user(
        self, firebase_uid: str, email: str | None, display_name: str | None
    ) -> "UserRecord":
        ...

    def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional["UserRecord"]:
        ...

    def create_vehicle(
        self,
        user_id: str,
        *,
        make: str | None = None,
        model: str | None = None,
        year: int | None = None,
        license_plate: str | None = None,
        nickname: str | None = None,
    ) -> "VehicleRecord":
        ...

    def list_vehicles(self, user_id: str) -> list["VehicleRecord"]:
        ...

    def get_vehicle(self, vehicle_id: str) -> Optional["VehicleRecord"]:
        ...

    def create_document(
        self,
        vehicle_id: str,
        *,
        document_type: str | None,
        expiry_date: date | None,
        storage_path: str,
        public_url: str | None,
    ) -> "DocumentRecord":
        ...

    def list_documents(self, vehicle_id: str) -> list["DocumentRecord"]:
        ...

    def list_documents_expiring_between(
        self, start: date, end: date
    ) -> list["DocumentRecord"]:
        ...

    def upsert_device(
        self, user_id: str, token: str, platform: str | None
    ) -> "DeviceRecord":
        ...

    def list_device_tokens(self, user_id: str) -> list[str]:
        ...

    def list_reminders(
        self, user_id: str, vehicle_id: str | None = None
    ) -> list["ReminderRecord"]:
        ...

    def create_reminder(self, user_id: str, values: dict) -> "ReminderRecord":
        ...

    def update_reminder(
        self, reminder_id: str, user_id: str, values: dict
    ) -> Optional["ReminderRecord"]:
        ...

    def delete_reminder(self, reminder_id: str, user_id: str) -> int:
        ...


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class UserRecord:
    id: str
    firebase_uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "firebase_uid": self.firebase_uid,
            "email": self.email,
            "display_name": self.display_name,
            "created_at": self.created_at,
        }


@dataclass
class VehicleRecord:
    id: str
    user_id: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    license_plate: Optional[str] = None
    nickname: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "license_plate": self.license_plate,
            "nickname": self.nickname,
            "created_at": self.created_at,
        }


@dataclass
class DocumentRecord:
    id: str
    vehicle_id: str
    storage_path: str
    document_type: Optional[str] = None
    expiry_date: Optional[date] = None
    public_url: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "document_type": self.document_type,
            "expiry_date": self.expiry_date,
            "storage_path": self.storage_path,
            "public_url": self.public_url,
            "created_at": self.created_at,
        }


@dataclass
class DeviceRecord:
    id: str
    user_id: str
    token: str
    platform: Optional[str] = None
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "token": self.token,
            "platform": self.platform,
            "updated_at": self.updated_at,
        }


@dataclass
class ReminderRecord:
    id: str
    user_id: str
    title: str
    vehicle_id: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[date] = None
    is_completed: bool = False
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "vehicle_id": self.vehicle_id,
            "title": self.title,
            "notes": self.notes,
            "due_date": self.due_date,
            "is_completed": self.is_completed,
            "created_at": self.created_at,
        }


def _by_date(value: Optional[date]) -> tuple:
    # Rows without a date sort last, like NULLS LAST.
    return (value is None, value or date.min)


def _reminder_values(values: dict) -> dict:
    return {key: value for key, value in values.items() if key in REMINDER_FIELDS}


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.vehicles: Dict[str, VehicleRecord] = {}
        self.documents: Dict[str, DocumentRecord] = {}
        self.devices: Dict[str, DeviceRecord] = {}
        self.reminders: Dict[str, ReminderRecord] = {}

    def upsert_user(
        self, firebase_uid: str, email: str | None, display_name: str | None
    ) -> UserRecord:
        existing = self.get_user_by_firebase_uid(firebase_uid)
        if existing:
            existing.email = email
            existing.display_name = display_name
            return replace(existing)
        record = UserRecord(
            id=_new_id(),
            firebase_uid=firebase_uid,
            email=email,
            display_name=display_name,
        )
        self.users[record.id] = record
        return replace(record)

    def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.firebase_uid == firebase_uid:
                return user
        return None

    def create_vehicle(
        self,
        user_id: str,
        *,
        make: str | None = None,
        model: str | None = None,
        year: int | None = None,
        license_plate: str | None = None,
        nickname: str | None = None,
    ) -> VehicleRecord:
        record = VehicleRecord(
            id=_new_id(),
            user_id=user_id,
            make=make,
            model=model,
            year=year,
            license_plate=license_plate,
            nickname=nickname,
        )
        self.vehicles[record.id] = record
        return replace(record)

    def list_vehicles(self, user_id: str) -> list[VehicleRecord]:
        vehicles = [v for v in self.vehicles.values() if v.user_id == user_id]
        return sorted(vehicles, key=lambda v: v.created_at)

    def get_vehicle(self, vehicle_id: str) -> Optional[VehicleRecord]:
        return self.vehicles.get(vehicle_id)

    def create_document(
        self,
        vehicle_id: str,
        *,
        document_type: str | None,
        expiry_date: date | None,
        storage_path: str,
        public_url: str | None,
    ) -> DocumentRecord:
        record = DocumentRecord(
            id=_new_id(),
            vehicle_id=vehicle_id,
            document_type=document_type,
            expiry_date=expiry_date,
            storage_path=storage_path,
            public_url=public_url,
        )
        self.documents[record.id] = record
        return replace(record)

    def list_documents(self, vehicle_id: str) -> list[DocumentRecord]:
        docs = [d for d in self.documents.values() if d.vehicle_id == vehicle_id]
        return sorted(docs, key=lambda d: _by_date(d.expiry_date))

    def list_documents_expiring_between(
        self, start: date, end: date
    ) -> list[DocumentRecord]:
        docs = [
            d
            for d in self.documents.values()
            if d.expiry_date is not None and start <= d.expiry_date <= end
        ]
        return sorted(docs, key=lambda d: d.expiry_date)

    def upsert_device(
        self, user_id: str, token: str, platform: str | None
    ) -> DeviceRecord:
        existing = self.devices.get(token)
        if existing:
            existing.user_id = user_id
            existing.platform = platform
            existing.updated_at = time.time()
            return replace(existing)
        record = DeviceRecord(
            id=_new_id(), user_id=user_id, token=token, platform=platform
        )
        self.devices[token] = record
        return replace(record)

    def list_device_tokens(self, user_id: str) -> list[str]:
        return [d.token for d in self.devices.values() if d.user_id == user_id]

    def list_reminders(
        self, user_id: str, vehicle_id: str | None = None
    ) -> list[ReminderRecord]:
        reminders = [
            r
            for r in self.reminders.values()
            if r.user_id == user_id
            and (vehicle_id is None or r.vehicle_id == vehicle_id)
        ]
        return sorted(reminders, key=lambda r: _by_date(r.due_date))

    def create_reminder(self, user_id: str, values: dict) -> ReminderRecord:
        values = _reminder_values(values)
        if values.get("is_completed") is None:
            values["is_completed"] = False
        record = ReminderRecord(id=_new_id(), user_id=user_id, **values)
        self.reminders[record.id] = record
        return replace(record)

    def update_reminder(
        self, reminder_id: str, user_id: str, values: dict
    ) -> Optional[ReminderRecord]:
        reminder = self.reminders.get(reminder_id)
        if not reminder or reminder.user_id != user_id:
            return None
        for key, value in _reminder_values(values).items():
            setattr(reminder, key, value)
        return replace(reminder)

    def delete_reminder(self, reminder_id: str, user_id: str) -> int:
        reminder = self.reminders.get(reminder_id)
        if not reminder or reminder.user_id != user_id:
            return 0
        del self.reminders[reminder_id]
        return 1


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _to_record(row, record_cls):
        return record_cls(**{f.name: getattr(row, f.name) for f in fields(record_cls)})

    def _insert(self, table):
        """INSERT supporting ON CONFLICT for the engine's dialect."""
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(table)
        if dialect == "sqlite":
            return sqlite.insert(table)
        raise StoreError(f"Upsert not supported for dialect {dialect}")

    def upsert_user(
        self, firebase_uid: str, email: str | None, display_name: str | None
    ) -> UserRecord:
        stmt = self._insert(UserRow).values(
            id=_new_id(),
            firebase_uid=firebase_uid,
            email=email,
            display_name=display_name,
            created_at=time.time(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserRow.firebase_uid],
            set_={
                "email": stmt.excluded.email,
                "display_name": stmt.excluded.display_name,
            },
        )
        with self._session() as session:
            session.execute(stmt)
            session.commit()
            row = session.execute(
                select(UserRow).where(UserRow.firebase_uid == firebase_uid)
            ).scalar_one()
            return self._to_record(row, UserRecord)

    def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[UserRecord]:
        with self._session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.firebase_uid == firebase_uid)
            ).scalar_one_or_none()
            return self._to_record(row, UserRecord) if row else None

    def create_vehicle(
        self,
        user_id: str,
        *,
        make: str | None = None,
        model: str | None = None,
        year: int | None = None,
        license_plate: str | None = None,
        nickname: str | None = None,
    ) -> VehicleRecord:
        with self._session() as session:
            row = VehicleRow(
                id=_new_id(),
                user_id=user_id,
                make=make,
                model=model,
                year=year,
                license_plate=license_plate,
                nickname=nickname,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row, VehicleRecord)

    def list_vehicles(self, user_id: str) -> list[VehicleRecord]:
        with self._session() as session:
            rows = session.execute(
                select(VehicleRow)
                .where(VehicleRow.user_id == user_id)
                .order_by(VehicleRow.created_at.asc())
            ).scalars()
            return [self._to_record(row, VehicleRecord) for row in rows]

    def get_vehicle(self, vehicle_id: str) -> Optional[VehicleRecord]:
        with self._session() as session:
            row = session.get(VehicleRow, vehicle_id)
            return self._to_record(row, VehicleRecord) if row else None

    def create_document(
        self,
        vehicle_id: str,
        *,
        document_type: str | None,
        expiry_date: date | None,
        storage_path: str,
        public_url: str | None,
    ) -> DocumentRecord:
        with self._session() as session:
            row = DocumentRow(
                id=_new_id(),
                vehicle_id=vehicle_id,
                document_type=document_type,
                expiry_date=expiry_date,
                storage_path=storage_path,
                public_url=public_url,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row, DocumentRecord)

    def list_documents(self, vehicle_id: str) -> list[DocumentRecord]:
        with self._session() as session:
            rows = session.execute(
                select(DocumentRow)
                .where(DocumentRow.vehicle_id == vehicle_id)
                .order_by(DocumentRow.expiry_date.asc().nulls_last())
            ).scalars()
            return [self._to_record(row, DocumentRecord) for row in rows]

    def list_documents_expiring_between(
        self, start: date, end: date
    ) -> list[DocumentRecord]:
        with self._session() as session:
            rows = session.execute(
                select(DocumentRow)
                .where(DocumentRow.expiry_date >= start)
                .where(DocumentRow.expiry_date <= end)
                .order_by(DocumentRow.expiry_date.asc())
            ).scalars()
            return [self._to_record(row, DocumentRecord) for row in rows]

    def upsert_device(
        self, user_id: str, token: str, platform: str | None
    ) -> DeviceRecord:
        stmt = self._insert(DeviceRow).values(
            id=_new_id(),
            user_id=user_id,
            token=token,
            platform=platform,
            updated_at=time.time(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DeviceRow.token],
            set_={
                "user_id": stmt.excluded.user_id,
                "platform": stmt.excluded.platform,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with self._session() as session:
            session.execute(stmt)
            session.commit()
            row = session.execute(
                select(DeviceRow).where(DeviceRow.token == token)
            ).scalar_one()
            return self._to_record(row, DeviceRecord)

    def list_device_tokens(self, user_id: str) -> list[str]:
        with self._session() as session:
            tokens = session.execute(
                select(DeviceRow.token).where(DeviceRow.user_id == user_id)
            ).scalars()
            return [token for token in tokens if token]

    def list_reminders(
        self, user_id: str, vehicle_id: str | None = None
    ) -> list[ReminderRecord]:
        stmt = select(ReminderRow).where(ReminderRow.user_id == user_id)
        if vehicle_id is not None:
            stmt = stmt.where(ReminderRow.vehicle_id == vehicle_id)
        stmt = stmt.order_by(ReminderRow.due_date.asc().nulls_last())
        with self._session() as session:
            rows = session.execute(stmt).scalars()
            return [self._to_record(row, ReminderRecord) for row in rows]

    def create_reminder(self, user_id: str, values: dict) -> ReminderRecord:
        values = _reminder_values(values)
        if values.get("is_completed") is None:
            values["is_completed"] = False
        with self._session() as session:
            row = ReminderRow(
                id=_new_id(), user_id=user_id, created_at=time.time(), **values
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row, ReminderRecord)

    def update_reminder(
        self, reminder_id: str, user_id: str, values: dict
    ) -> Optional[ReminderRecord]:
        with self._session() as session:
            row = session.execute(
                select(ReminderRow)
                .where(ReminderRow.id == reminder_id)
                .where(ReminderRow.user_id == user_id)
            ).scalar_one_or_none()
            if not row:
                return None
            for key, value in _reminder_values(values).items():
                setattr(row, key, value)
            session.commit()
            session.refresh(row)
            return self._to_record(row, ReminderRecord)

    def delete_reminder(self, reminder_id: str, user_id: str) -> int:
        with self._session() as session:
            result = session.execute(
                delete(ReminderRow)
                .where(ReminderRow.id == reminder_id)
                .where(ReminderRow.user_id == user_id)
            )
            session.commit()
            return result.rowcount or 0


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    firebase_uid = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class VehicleRow(Base):
    __tablename__ = "vehicles"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    make = Column(String, nullable=True)
    model = Column(String, nullable=True)
    year = Column(Integer, nullable=True)
    license_plate = Column(String, nullable=True)
    nickname = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class DocumentRow(Base):
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    vehicle_id = Column(
        String, ForeignKey("vehicles.id"), nullable=False, index=True
    )
    document_type = Column(String, nullable=True)
    expiry_date = Column(Date, nullable=True, index=True)
    storage_path = Column(String, nullable=False)
    public_url = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class DeviceRow(Base):
    __tablename__ = "devices"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    token = Column(String, nullable=False, unique=True)
    platform = Column(String, nullable=True)
    updated_at = Column(Float, nullable=False)


class ReminderRow(Base):
    __tablename__ = "reminders"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id = Column(String, ForeignKey("vehicles.id"), nullable=True)
    title = Column(String, nullable=False)
    notes = Column(String, nullable=True)
    due_date = Column(Date, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False)
