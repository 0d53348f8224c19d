"""SQLAlchemy ORM database models."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship

Base = declarative_base()


class Syllabus(Base):
    """Syllabind table - one multi-week curriculum owned by a creator."""
    __tablename__ = "syllabinds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    audience_level = Column(String, nullable=False, default="Beginner")  # Beginner, Intermediate, Advanced
    duration_weeks = Column(Integer, nullable=False, default=4)
    status = Column(String, nullable=False, default="draft")  # draft, published, generating
    creator_id = Column(String, nullable=True)  # creator username
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    weeks = relationship(
        "Week",
        back_populates="syllabus",
        cascade="all, delete-orphan",
        order_by="Week.index",
    )
    chat_messages = relationship("ChatMessageRecord", back_populates="syllabus", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_syllabinds_creator", "creator_id"),
    )


class Week(Base):
    """Week table - 1-based index, unique within a syllabus."""
    __tablename__ = "weeks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    syllabus_id = Column(Integer, ForeignKey("syllabinds.id", ondelete="CASCADE"), nullable=False)
    index = Column(Integer, nullable=False)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    syllabus = relationship("Syllabus", back_populates="weeks")
    steps = relationship(
        "Step",
        back_populates="week",
        cascade="all, delete-orphan",
        order_by="Step.position",
    )

    __table_args__ = (
        UniqueConstraint("syllabus_id", "index", name="uq_weeks_syllabus_index"),
        Index("idx_weeks_syllabus", "syllabus_id"),
    )


class Step(Base):
    """Step table - a reading or exercise at a 1-based position within its week."""
    __tablename__ = "steps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    week_id = Column(Integer, ForeignKey("weeks.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    type = Column(String, nullable=False)  # reading, exercise
    title = Column(String, nullable=False)
    url = Column(String, nullable=True)
    note = Column(Text, nullable=True)
    author = Column(String, nullable=True)
    creation_date = Column(String, nullable=True)
    media_type = Column(String, nullable=True)  # Book, Youtube video, Blog/Article, Podcast
    prompt_text = Column(Text, nullable=True)
    estimated_minutes = Column(Integer, nullable=True)

    week = relationship("Week", back_populates="steps")

    __table_args__ = (
        Index("idx_steps_week", "week_id"),
    )


class ChatMessageRecord(Base):
    """Chat history table - persisted user/assistant turns per syllabus."""
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    syllabus_id = Column(Integer, ForeignKey("syllabinds.id", ondelete="CASCADE"), nullable=False)
    username = Column(String, nullable=True)  # editing user
    role = Column(String, nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    syllabus = relationship("Syllabus", back_populates="chat_messages")

    __table_args__ = (
        Index("idx_chat_messages_syllabus_user", "syllabus_id", "username"),
    )
