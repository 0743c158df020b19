from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)

from .database import Base


class UserAccount(Base):
    __tablename__ = "user_account"

    id = Column(String(36), primary_key=True)
    email = Column(String, nullable=False, unique=True)
    first_name = Column(String, nullable=False, default="")
    last_name = Column(String, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UserProfile(Base):
    __tablename__ = "user_profile"

    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    bio = Column(Text, nullable=True)
    study_style = Column(String, nullable=True)
    study_pace = Column(String, nullable=True)
    preferred_location = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)


class Course(Base):
    __tablename__ = "course"

    id = Column(String(36), primary_key=True)
    code = Column(String, nullable=True)
    name = Column(String, nullable=False)


class Topic(Base):
    __tablename__ = "topic"

    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)


class UserCourse(Base):
    __tablename__ = "user_course"

    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    course_id = Column(String(36), ForeignKey("course.id", ondelete="CASCADE"), primary_key=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_user_course_course_id", "course_id"),)


class UserTopic(Base):
    __tablename__ = "user_topic"

    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    topic_id = Column(String(36), ForeignKey("topic.id", ondelete="CASCADE"), primary_key=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_user_topic_topic_id", "topic_id"),)


class AvailabilitySlotRow(Base):
    __tablename__ = "availability_slot"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day"),
        CheckConstraint("start_time < end_time", name="ck_availability_range"),
        Index("idx_availability_user_id", "user_id"),
    )


class Connection(Base):
    __tablename__ = "connection"

    id = Column(String(36), primary_key=True)
    requester_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    target_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    user_low = Column(String(36), nullable=False)
    user_high = Column(String(36), nullable=False)
    context_type = Column(String, nullable=False, default="none")
    context_id = Column(String(36), nullable=False, default="")
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_low", "user_high", "context_type", "context_id", name="uq_connection_pair_context"),
        CheckConstraint("status IN ('pending', 'accepted')", name="ck_connection_status"),
        CheckConstraint("requester_id <> target_id", name="ck_connection_not_self"),
        Index("idx_connection_requester_id", "requester_id"),
        Index("idx_connection_target_id", "target_id"),
    )
