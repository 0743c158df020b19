import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studybuddy import models
from studybuddy.database import Base
from studybuddy.services.availability import parse_time
from studybuddy.services.kv import InMemoryKeyValueStore
from studybuddy.store import SqlStore

BASE_JOINED_AT = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


class Seeder:
    """Writes fixture rows through the ORM models."""

    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._joined = 0

    def _add(self, *rows):
        with self._session_factory() as db:
            db.add_all(rows)
            db.commit()

    def user(
        self,
        first_name: str = "Test",
        last_name: str = "User",
        *,
        user_id: str | None = None,
        is_active: bool = True,
        is_verified: bool = True,
        joined_at: datetime | None = None,
        bio: str | None = None,
        study_style: str | None = None,
        study_pace: str | None = None,
        location: str | None = None,
        avatar: str | None = None,
    ) -> str:
        user_id = user_id or str(uuid.uuid4())
        if joined_at is None:
            self._joined += 1
            joined_at = BASE_JOINED_AT + timedelta(days=self._joined)
        self._add(
            models.UserAccount(
                id=user_id,
                email=f"{user_id}@campus.test",
                first_name=first_name,
                last_name=last_name,
                is_active=is_active,
                is_verified=is_verified,
                created_at=joined_at,
            )
        )
        self._add(
            models.UserProfile(
                user_id=user_id,
                bio=bio,
                study_style=study_style,
                study_pace=study_pace,
                preferred_location=location,
                profile_image_url=avatar,
            )
        )
        return user_id

    def course(self, name: str = "Linear Algebra", code: str | None = "MATH-221") -> str:
        course_id = str(uuid.uuid4())
        self._add(models.Course(id=course_id, name=name, code=code))
        return course_id

    def topic(self, name: str = "Distributed Systems", category: str | None = "cs") -> str:
        topic_id = str(uuid.uuid4())
        self._add(models.Topic(id=topic_id, name=name, category=category))
        return topic_id

    def enroll(self, user_id: str, course_id: str, *, is_active: bool = True) -> None:
        self._add(models.UserCourse(user_id=user_id, course_id=course_id, is_active=is_active))

    def select_topic(self, user_id: str, topic_id: str, *, is_active: bool = True) -> None:
        self._add(models.UserTopic(user_id=user_id, topic_id=topic_id, is_active=is_active))

    def slot(self, user_id: str, day_of_week: int, start: str, end: str) -> None:
        self._add(
            models.AvailabilitySlotRow(
                id=str(uuid.uuid4()),
                user_id=user_id,
                day_of_week=day_of_week,
                start_time=parse_time(start),
                end_time=parse_time(end),
            )
        )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlStore(session_factory)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()
