"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, fields, replace
from typing import Dict, Iterable, List, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.types import (
    DEFAULT_ICON,
    DEFAULT_VERSION,
    UNKNOWN_SIZE,
    AppStatus,
    DeveloperStatus,
    DeveloperType,
    ScanJobStatus,
)


def new_id() -> str:
    return uuid.uuid4().hex


def _now() -> float:
    return time.time()


class DbClient(Protocol):
    """Interface for database access."""

    def create_user(self, email: str, name: str, password_hash: str) -> "UserRecord":
        ...

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def get_user_by_email(self, email: str) -> Optional["UserRecord"]:
        ...

    def create_session(self, user_id: str, ttl_seconds: float) -> "SessionRecord":
        ...

    def get_session(self, token: str) -> Optional["SessionRecord"]:
        ...

    def delete_session(self, token: str) -> None:
        ...

    def create_developer(self, developer: "DeveloperRecord") -> "DeveloperRecord":
        ...

    def get_developer(self, developer_id: str) -> Optional["DeveloperRecord"]:
        ...

    def get_developer_by_user(self, user_id: str) -> Optional["DeveloperRecord"]:
        ...

    def list_developers(
        self, status: Optional[DeveloperStatus] = None
    ) -> List["DeveloperRecord"]:
        ...

    def update_developer(
        self, developer_id: str, **changes
    ) -> Optional["DeveloperRecord"]:
        ...

    def upsert_category(self, category: "CategoryRecord") -> "CategoryRecord":
        ...

    def get_category(self, category_id: str) -> Optional["CategoryRecord"]:
        ...

    def list_categories(self) -> List["CategoryRecord"]:
        ...

    def delete_category(self, category_id: str) -> bool:
        ...

    def create_app(self, app: "AppRecord") -> "AppRecord":
        ...

    def get_app(self, app_id: str) -> Optional["AppRecord"]:
        ...

    def list_apps(
        self,
        *,
        status: Optional[AppStatus] = None,
        developer_id: Optional[str] = None,
    ) -> List["AppRecord"]:
        ...

    def update_app(self, app_id: str, **changes) -> Optional["AppRecord"]:
        ...

    def find_apps_by_package(self, package_name: str) -> List["AppRecord"]:
        ...

    def save_review(self, review: "ReviewRecord") -> "ReviewRecord":
        ...

    def get_review(self, review_id: str) -> Optional["ReviewRecord"]:
        ...

    def list_reviews(self, app_id: Optional[str] = None) -> List["ReviewRecord"]:
        ...

    def delete_review(self, review_id: str) -> bool:
        ...

    def create_scan_job(self, app_id: str) -> "ScanJobRecord":
        ...

    def get_scan_job(self, job_id: str) -> Optional["ScanJobRecord"]:
        ...

    def claim_next_waiting_scan(self) -> Optional["ScanJobRecord"]:
        ...

    def update_scan_job(
        self,
        job_id: str,
        *,
        status: ScanJobStatus,
        error: Optional[str] = None,
    ) -> None:
        ...

    def requeue_stale_scans(self, lock_timeout_seconds: float = 600) -> int:
        ...


@dataclass
class UserRecord:
    email: str
    name: str
    password_hash: str
    user_id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.user_id,
            "email": self.email,
            "name": self.name,
            "created_at": self.created_at,
        }


@dataclass
class SessionRecord:
    user_id: str
    expires_at: float
    token: str = field(default_factory=lambda: uuid.uuid4().hex + uuid.uuid4().hex)
    created_at: float = field(default_factory=_now)

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now or time.time()) >= self.expires_at


@dataclass
class DeveloperRecord:
    user_id: str
    full_name: str
    email: str
    developer_type: DeveloperType
    developer_name: str
    country: str
    phone: str
    website: Optional[str] = None
    bio: Optional[str] = None
    status: DeveloperStatus = DeveloperStatus.PENDING
    rejection_reason: Optional[str] = None
    developer_id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.developer_id,
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "developer_type": str(self.developer_type),
            "developer_name": self.developer_name,
            "country": self.country,
            "phone": self.phone,
            "website": self.website,
            "bio": self.bio,
            "status": str(self.status),
            "rejection_reason": self.rejection_reason,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class CategoryRecord:
    category_id: str
    name: str
    icon: str
    description: str
    created_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.category_id,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
            "created_at": self.created_at,
        }


@dataclass
class AppRecord:
    developer_id: str
    name: str
    description: str
    short_description: str
    category_id: str
    developer_name: Optional[str] = None
    icon_url: str = DEFAULT_ICON
    screenshots: List[str] = field(default_factory=list)
    tablet_screenshots: List[str] = field(default_factory=list)
    feature_graphic_url: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    version: str = DEFAULT_VERSION
    size: str = UNKNOWN_SIZE
    downloads: int = 0
    rating: float = 0.0
    review_count: int = 0
    status: AppStatus = AppStatus.PENDING
    featured: bool = False
    trending: bool = False
    is_paid: bool = False
    price: Optional[float] = None
    contains_ads: bool = False
    in_app_purchases: bool = False
    privacy_policy_url: Optional[str] = None
    contact_email: Optional[str] = None
    contact_website: Optional[str] = None
    release_notes: Optional[str] = None
    apk_url: Optional[str] = None
    apk_storage_path: Optional[str] = None
    package_name: Optional[str] = None
    scan_report: Optional[dict] = None
    app_id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        payload = {f.name: getattr(self, f.name) for f in fields(self)}
        payload.pop("app_id")
        payload.pop("apk_storage_path")
        payload["id"] = self.app_id
        payload["status"] = str(self.status)
        payload["screenshots"] = list(self.screenshots)
        payload["tablet_screenshots"] = list(self.tablet_screenshots)
        payload["tags"] = list(self.tags)
        return payload


@dataclass
class ReviewRecord:
    app_id: str
    user_id: str
    rating: int
    comment: Optional[str] = None
    review_id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.review_id,
            "app_id": self.app_id,
            "user_id": self.user_id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": self.created_at,
        }


@dataclass
class ScanJobRecord:
    app_id: str
    status: ScanJobStatus = ScanJobStatus.WAITING
    error: Optional[str] = None
    locked_at: Optional[float] = None
    job_id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "app_id": self.app_id,
            "status": str(self.status),
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# Fields callers may not change through update_app / update_developer.
_IMMUTABLE_APP_FIELDS = {"app_id", "developer_id", "created_at"}
_IMMUTABLE_DEVELOPER_FIELDS = {"developer_id", "user_id", "created_at"}
_APP_FIELDS = {f.name for f in fields(AppRecord)}
_DEVELOPER_FIELDS = {f.name for f in fields(DeveloperRecord)}


def _check_changes(changes: dict, allowed: set, immutable: set) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {sorted(unknown)}")
    frozen = set(changes) & immutable
    if frozen:
        raise ValueError(f"Fields cannot be changed: {sorted(frozen)}")


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.sessions: Dict[str, SessionRecord] = {}
        self.developers: Dict[str, DeveloperRecord] = {}
        self.categories: Dict[str, CategoryRecord] = {}
        self.apps: Dict[str, AppRecord] = {}
        self.reviews: Dict[str, ReviewRecord] = {}
        self.scan_jobs: Dict[str, ScanJobRecord] = {}
        self.locked: set[str] = set()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.sessions.clear()
        self.developers.clear()
        self.categories.clear()
        self.apps.clear()
        self.reviews.clear()
        self.scan_jobs.clear()
        self.locked.clear()

    # Users and sessions

    def create_user(self, email: str, name: str, password_hash: str) -> UserRecord:
        record = UserRecord(email=email, name=name, password_hash=password_hash)
        self.users[record.user_id] = record
        return replace(record)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        record = self.users.get(user_id)
        return replace(record) if record else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for record in self.users.values():
            if record.email == email:
                return replace(record)
        return None

    def create_session(self, user_id: str, ttl_seconds: float) -> SessionRecord:
        record = SessionRecord(user_id=user_id, expires_at=time.time() + ttl_seconds)
        self.sessions[record.token] = record
        return replace(record)

    def get_session(self, token: str) -> Optional[SessionRecord]:
        record = self.sessions.get(token)
        return replace(record) if record else None

    def delete_session(self, token: str) -> None:
        self.sessions.pop(token, None)

    # Developers

    def create_developer(self, developer: DeveloperRecord) -> DeveloperRecord:
        self.developers[developer.developer_id] = replace(developer)
        return replace(developer)

    def get_developer(self, developer_id: str) -> Optional[DeveloperRecord]:
        record = self.developers.get(developer_id)
        return replace(record) if record else None

    def get_developer_by_user(self, user_id: str) -> Optional[DeveloperRecord]:
        for record in self.developers.values():
            if record.user_id == user_id:
                return replace(record)
        return None

    def list_developers(
        self, status: Optional[DeveloperStatus] = None
    ) -> List[DeveloperRecord]:
        items = [
            replace(d)
            for d in self.developers.values()
            if status is None or d.status == status
        ]
        items.sort(key=lambda d: d.created_at, reverse=True)
        return items

    def update_developer(self, developer_id: str, **changes) -> Optional[DeveloperRecord]:
        _check_changes(changes, _DEVELOPER_FIELDS, _IMMUTABLE_DEVELOPER_FIELDS)
        record = self.developers.get(developer_id)
        if not record:
            return None
        changes.setdefault("updated_at", time.time())
        updated = replace(record, **changes)
        self.developers[developer_id] = updated
        return replace(updated)

    # Categories

    def upsert_category(self, category: CategoryRecord) -> CategoryRecord:
        existing = self.categories.get(category.category_id)
        if existing:
            category = replace(category, created_at=existing.created_at)
        self.categories[category.category_id] = replace(category)
        return replace(category)

    def get_category(self, category_id: str) -> Optional[CategoryRecord]:
        record = self.categories.get(category_id)
        return replace(record) if record else None

    def list_categories(self) -> List[CategoryRecord]:
        items = [replace(c) for c in self.categories.values()]
        items.sort(key=lambda c: c.created_at)
        return items

    def delete_category(self, category_id: str) -> bool:
        return self.categories.pop(category_id, None) is not None

    # Apps

    def create_app(self, app: AppRecord) -> AppRecord:
        self.apps[app.app_id] = replace(app)
        return replace(app)

    def get_app(self, app_id: str) -> Optional[AppRecord]:
        record = self.apps.get(app_id)
        return replace(record) if record else None

    def list_apps(
        self,
        *,
        status: Optional[AppStatus] = None,
        developer_id: Optional[str] = None,
    ) -> List[AppRecord]:
        items = [
            replace(a)
            for a in self.apps.values()
            if (status is None or a.status == status)
            and (developer_id is None or a.developer_id == developer_id)
        ]
        items.sort(key=lambda a: a.created_at, reverse=True)
        return items

    def update_app(self, app_id: str, **changes) -> Optional[AppRecord]:
        _check_changes(changes, _APP_FIELDS, _IMMUTABLE_APP_FIELDS)
        record = self.apps.get(app_id)
        if not record:
            return None
        changes.setdefault("updated_at", time.time())
        updated = replace(record, **changes)
        self.apps[app_id] = updated
        return replace(updated)

    def find_apps_by_package(self, package_name: str) -> List[AppRecord]:
        return [
            replace(a) for a in self.apps.values() if a.package_name == package_name
        ]

    # Reviews

    def save_review(self, review: ReviewRecord) -> ReviewRecord:
        for key, existing in list(self.reviews.items()):
            if existing.app_id == review.app_id and existing.user_id == review.user_id:
                review = replace(review, review_id=existing.review_id)
                del self.reviews[key]
        self.reviews[review.review_id] = replace(review)
        return replace(review)

    def get_review(self, review_id: str) -> Optional[ReviewRecord]:
        record = self.reviews.get(review_id)
        return replace(record) if record else None

    def list_reviews(self, app_id: Optional[str] = None) -> List[ReviewRecord]:
        items = [
            replace(r)
            for r in self.reviews.values()
            if app_id is None or r.app_id == app_id
        ]
        items.sort(key=lambda r: r.created_at, reverse=True)
        return items

    def delete_review(self, review_id: str) -> bool:
        return self.reviews.pop(review_id, None) is not None

    # Scan jobs

    def create_scan_job(self, app_id: str) -> ScanJobRecord:
        record = ScanJobRecord(app_id=app_id)
        self.scan_jobs[record.job_id] = record
        return replace(record)

    def get_scan_job(self, job_id: str) -> Optional[ScanJobRecord]:
        record = self.scan_jobs.get(job_id)
        return replace(record) if record else None

    def claim_next_waiting_scan(self) -> Optional[ScanJobRecord]:
        for job in self.scan_jobs.values():
            if job.status == ScanJobStatus.WAITING and job.job_id not in self.locked:
                job.status = ScanJobStatus.RUNNING
                job.locked_at = time.time()
                job.updated_at = job.locked_at
                self.locked.add(job.job_id)
                return replace(job)
        return None

    def update_scan_job(
        self,
        job_id: str,
        *,
        status: ScanJobStatus,
        error: Optional[str] = None,
    ) -> None:
        job = self.scan_jobs.get(job_id)
        if not job:
            return
        job.status = status
        job.error = error
        job.updated_at = time.time()
        if status != ScanJobStatus.RUNNING:
            self.locked.discard(job_id)

    def requeue_stale_scans(self, lock_timeout_seconds: float = 600) -> int:
        now = time.time()
        requeued = 0
        for job in self.scan_jobs.values():
            if (
                job.status == ScanJobStatus.RUNNING
                and job.locked_at
                and now - job.locked_at > lock_timeout_seconds
            ):
                job.status = ScanJobStatus.WAITING
                job.locked_at = None
                job.updated_at = now
                self.locked.discard(job.job_id)
                requeued += 1
        return requeued


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class SessionRow(Base):
    __tablename__ = "sessions"

    token = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    expires_at = Column(Float, nullable=False)
    created_at = Column(Float, nullable=False)


class DeveloperRow(Base):
    __tablename__ = "developers"

    developer_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, unique=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    developer_type = Column(String, nullable=False)
    developer_name = Column(String, nullable=False)
    country = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    website = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    status = Column(String, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class CategoryRow(Base):
    __tablename__ = "categories"

    category_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    icon = Column(String, nullable=False)
    description = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class AppRow(Base):
    __tablename__ = "apps"

    app_id = Column(String, primary_key=True)
    developer_id = Column(String, nullable=False, index=True)
    developer_name = Column(String, nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    short_description = Column(String, nullable=False)
    category_id = Column(String, nullable=False, index=True)
    icon_url = Column(String, nullable=False)
    screenshots = Column(JSON, nullable=False)
    tablet_screenshots = Column(JSON, nullable=False)
    feature_graphic_url = Column(String, nullable=True)
    tags = Column(JSON, nullable=False)
    version = Column(String, nullable=False)
    size = Column(String, nullable=False)
    downloads = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, index=True)
    featured = Column(Boolean, nullable=False, default=False)
    trending = Column(Boolean, nullable=False, default=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    price = Column(Float, nullable=True)
    contains_ads = Column(Boolean, nullable=False, default=False)
    in_app_purchases = Column(Boolean, nullable=False, default=False)
    privacy_policy_url = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)
    contact_website = Column(String, nullable=True)
    release_notes = Column(Text, nullable=True)
    apk_url = Column(String, nullable=True)
    apk_storage_path = Column(String, nullable=True)
    package_name = Column(String, nullable=True, index=True)
    scan_report = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ReviewRow(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("app_id", "user_id", name="_review_app_user_uc"),)

    review_id = Column(String, primary_key=True)
    app_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False)


class ScanJobRow(Base):
    __tablename__ = "scan_jobs"

    job_id = Column(String, primary_key=True)
    app_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, index=True)
    error = Column(Text, nullable=True)
    locked_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


# Record fields stored as plain strings that come back as enums.
_ENUM_FIELDS = {
    "status": {
        DeveloperRecord: DeveloperStatus,
        AppRecord: AppStatus,
        ScanJobRecord: ScanJobStatus,
    },
    "developer_type": {DeveloperRecord: DeveloperType},
}


def _to_record(row, record_cls):
    values = {}
    for f in fields(record_cls):
        value = getattr(row, f.name)
        enum_cls = _ENUM_FIELDS.get(f.name, {}).get(record_cls)
        if enum_cls is not None and value is not None:
            value = enum_cls(value)
        if isinstance(value, list):
            value = list(value)
        values[f.name] = value
    return record_cls(**values)


def _to_row(record, row_cls):
    values = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if f.name in _ENUM_FIELDS and value is not None:
            value = str(value)
        values[f.name] = value
    return row_cls(**values)


def _apply_changes(row, changes: dict) -> None:
    for key, value in changes.items():
        if key in _ENUM_FIELDS and value is not None:
            value = str(value)
        if isinstance(value, list):
            value = list(value)
        setattr(row, key, value)


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

    def _list(self, stmt, record_cls) -> list:
        with self.Session() as session:
            rows = session.execute(stmt).scalars().all()
            return [_to_record(row, record_cls) for row in rows]

    def _get(self, row_cls, key, record_cls):
        with self.Session() as session:
            row = session.get(row_cls, key)
            return _to_record(row, record_cls) if row else None

    def _add(self, record, row_cls):
        with self.Session() as session:
            session.add(_to_row(record, row_cls))
            session.commit()
        return replace(record)

    def _delete(self, row_cls, key) -> bool:
        with self.Session() as session:
            row = session.get(row_cls, key)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    # Users and sessions

    def create_user(self, email: str, name: str, password_hash: str) -> UserRecord:
        record = UserRecord(email=email, name=name, password_hash=password_hash)
        return self._add(record, UserRow)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._get(UserRow, user_id, UserRecord)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        stmt = select(UserRow).where(UserRow.email == email).limit(1)
        found = self._list(stmt, UserRecord)
        return found[0] if found else None

    def create_session(self, user_id: str, ttl_seconds: float) -> SessionRecord:
        record = SessionRecord(user_id=user_id, expires_at=time.time() + ttl_seconds)
        return self._add(record, SessionRow)

    def get_session(self, token: str) -> Optional[SessionRecord]:
        return self._get(SessionRow, token, SessionRecord)

    def delete_session(self, token: str) -> None:
        self._delete(SessionRow, token)

    # Developers

    def create_developer(self, developer: DeveloperRecord) -> DeveloperRecord:
        return self._add(developer, DeveloperRow)

    def get_developer(self, developer_id: str) -> Optional[DeveloperRecord]:
        return self._get(DeveloperRow, developer_id, DeveloperRecord)

    def get_developer_by_user(self, user_id: str) -> Optional[DeveloperRecord]:
        stmt = select(DeveloperRow).where(DeveloperRow.user_id == user_id).limit(1)
        found = self._list(stmt, DeveloperRecord)
        return found[0] if found else None

    def list_developers(
        self, status: Optional[DeveloperStatus] = None
    ) -> List[DeveloperRecord]:
        stmt = select(DeveloperRow).order_by(DeveloperRow.created_at.desc())
        if status is not None:
            stmt = stmt.where(DeveloperRow.status == str(status))
        return self._list(stmt, DeveloperRecord)

    def update_developer(self, developer_id: str, **changes) -> Optional[DeveloperRecord]:
        _check_changes(changes, _DEVELOPER_FIELDS, _IMMUTABLE_DEVELOPER_FIELDS)
        with self.Session() as session:
            row = session.get(DeveloperRow, developer_id)
            if not row:
                return None
            changes.setdefault("updated_at", time.time())
            _apply_changes(row, changes)
            session.commit()
            session.refresh(row)
            return _to_record(row, DeveloperRecord)

    # Categories

    def upsert_category(self, category: CategoryRecord) -> CategoryRecord:
        with self.Session() as session:
            row = session.get(CategoryRow, category.category_id)
            if row:
                row.name = category.name
                row.icon = category.icon
                row.description = category.description
            else:
                row = _to_row(category, CategoryRow)
                session.add(row)
            session.commit()
            session.refresh(row)
            return _to_record(row, CategoryRecord)

    def get_category(self, category_id: str) -> Optional[CategoryRecord]:
        return self._get(CategoryRow, category_id, CategoryRecord)

    def list_categories(self) -> List[CategoryRecord]:
        stmt = select(CategoryRow).order_by(CategoryRow.created_at.asc())
        return self._list(stmt, CategoryRecord)

    def delete_category(self, category_id: str) -> bool:
        return self._delete(CategoryRow, category_id)

    # Apps

    def create_app(self, app: AppRecord) -> AppRecord:
        return self._add(app, AppRow)

    def get_app(self, app_id: str) -> Optional[AppRecord]:
        return self._get(AppRow, app_id, AppRecord)

    def list_apps(
        self,
        *,
        status: Optional[AppStatus] = None,
        developer_id: Optional[str] = None,
    ) -> List[AppRecord]:
        stmt = select(AppRow).order_by(AppRow.created_at.desc())
        if status is not None:
            stmt = stmt.where(AppRow.status == str(status))
        if developer_id is not None:
            stmt = stmt.where(AppRow.developer_id == developer_id)
        return self._list(stmt, AppRecord)

    def update_app(self, app_id: str, **changes) -> Optional[AppRecord]:
        _check_changes(changes, _APP_FIELDS, _IMMUTABLE_APP_FIELDS)
        with self.Session() as session:
            row = session.get(AppRow, app_id)
            if not row:
                return None
            changes.setdefault("updated_at", time.time())
            _apply_changes(row, changes)
            session.commit()
            session.refresh(row)
            return _to_record(row, AppRecord)

    def find_apps_by_package(self, package_name: str) -> List[AppRecord]:
        stmt = select(AppRow).where(AppRow.package_name == package_name)
        return self._list(stmt, AppRecord)

    # Reviews

    def save_review(self, review: ReviewRecord) -> ReviewRecord:
        with self.Session() as session:
            stmt = select(ReviewRow).where(
                ReviewRow.app_id == review.app_id,
                ReviewRow.user_id == review.user_id,
            )
            row = session.execute(stmt).scalar_one_or_none()
            if row:
                row.rating = review.rating
                row.comment = review.comment
                row.created_at = review.created_at
            else:
                row = _to_row(review, ReviewRow)
                session.add(row)
            session.commit()
            session.refresh(row)
            return _to_record(row, ReviewRecord)

    def get_review(self, review_id: str) -> Optional[ReviewRecord]:
        return self._get(ReviewRow, review_id, ReviewRecord)

    def list_reviews(self, app_id: Optional[str] = None) -> List[ReviewRecord]:
        stmt = select(ReviewRow).order_by(ReviewRow.created_at.desc())
        if app_id is not None:
            stmt = stmt.where(ReviewRow.app_id == app_id)
        return self._list(stmt, ReviewRecord)

    def delete_review(self, review_id: str) -> bool:
        return self._delete(ReviewRow, review_id)

    # Scan jobs

    def create_scan_job(self, app_id: str) -> ScanJobRecord:
        return self._add(ScanJobRecord(app_id=app_id), ScanJobRow)

    def get_scan_job(self, job_id: str) -> Optional[ScanJobRecord]:
        return self._get(ScanJobRow, job_id, ScanJobRecord)

    def claim_next_waiting_scan(self) -> Optional[ScanJobRecord]:
        now = time.time()
        with self.Session() as session:
            stmt = (
                select(ScanJobRow)
                .where(ScanJobRow.status == ScanJobStatus.WAITING.value)
                .order_by(ScanJobRow.created_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            job = session.execute(stmt).scalar_one_or_none()
            if not job:
                return None
            job.status = ScanJobStatus.RUNNING.value
            job.locked_at = now
            job.updated_at = now
            session.commit()
            session.refresh(job)
            return _to_record(job, ScanJobRecord)

    def update_scan_job(
        self,
        job_id: str,
        *,
        status: ScanJobStatus,
        error: Optional[str] = None,
    ) -> None:
        with self.Session() as session:
            job = session.get(ScanJobRow, job_id)
            if not job:
                return
            job.status = status.value
            job.error = error
            job.updated_at = time.time()
            session.commit()

    def requeue_stale_scans(self, lock_timeout_seconds: float = 600) -> int:
        cutoff = time.time() - lock_timeout_seconds
        with self.Session() as session:
            updated = (
                session.query(ScanJobRow)
                .filter(
                    ScanJobRow.status == ScanJobStatus.RUNNING.value,
                    ScanJobRow.locked_at != None,  # noqa: E711
                    ScanJobRow.locked_at < cutoff,
                )
                .update(
                    {
                        ScanJobRow.status: ScanJobStatus.WAITING.value,
                        ScanJobRow.locked_at: None,
                        ScanJobRow.updated_at: time.time(),
                    },
                    synchronize_session=False,
                )
            )
            session.commit()
            return updated or 0


def seed_categories(db: DbClient, seeds: Iterable) -> List[CategoryRecord]:
    """Insert categories that do not exist yet; existing ones are left untouched."""
    created = []
    for seed in seeds:
        if db.get_category(seed.id):
            continue
        created.append(
            db.upsert_category(
                CategoryRecord(
                    category_id=seed.id,
                    name=seed.name,
                    icon=seed.icon,
                    description=seed.description,
                )
            )
        )
    return created
