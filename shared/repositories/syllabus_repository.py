"""Syllabind document data access layer."""
import logging
from typing import Optional
from sqlalchemy.orm import Session as DBSession, selectinload

from shared.models.entities import Syllabus, Week, Step
from shared.models.domain import SyllabusSnapshot

logger = logging.getLogger(__name__)


class SyllabusRepository:
    """
    Repository for the syllabus -> weeks -> steps document.

    Methods never commit; callers own the transaction so that a multi-row
    mutation succeeds or fails as a unit.
    """

    def __init__(self, db: DBSession):
        self.db = db

    def get_by_id(self, syllabus_id: int) -> Optional[Syllabus]:
        """
        Retrieve a syllabus with weeks and steps eagerly loaded.

        Args:
            syllabus_id: Syllabus identifier

        Returns:
            Syllabus if found, None otherwise
        """
        return (
            self.db.query(Syllabus)
            .options(selectinload(Syllabus.weeks).selectinload(Week.steps))
            .filter(Syllabus.id == syllabus_id)
            .first()
        )

    def lock_for_update(self, syllabus_id: int) -> Optional[Syllabus]:
        """Row-lock the syllabus for the rest of the transaction (no-op on SQLite)."""
        return (
            self.db.query(Syllabus)
            .filter(Syllabus.id == syllabus_id)
            .with_for_update()
            .first()
        )

    def get_snapshot(self, syllabus_id: int) -> Optional[SyllabusSnapshot]:
        syllabus = self.get_by_id(syllabus_id)
        if syllabus is None:
            return None
        return SyllabusSnapshot.model_validate(syllabus)

    def get_week(self, syllabus_id: int, index: int) -> Optional[Week]:
        return (
            self.db.query(Week)
            .filter(Week.syllabus_id == syllabus_id, Week.index == index)
            .first()
        )

    def count_weeks(self, syllabus_id: int) -> int:
        return self.db.query(Week).filter(Week.syllabus_id == syllabus_id).count()

    def get_step(self, step_id: int) -> Optional[Step]:
        return self.db.query(Step).filter(Step.id == step_id).first()

    def list_steps(self, week_id: int) -> list[Step]:
        """Steps of a week in display order."""
        return (
            self.db.query(Step)
            .filter(Step.week_id == week_id)
            .order_by(Step.position.asc(), Step.id.asc())
            .all()
        )

    def create_syllabus(
        self,
        title: str,
        description: str = "",
        audience_level: str = "Beginner",
        duration_weeks: int = 4,
        status: str = "draft",
        creator_id: Optional[str] = None,
    ) -> Syllabus:
        syllabus = Syllabus(
            title=title,
            description=description,
            audience_level=audience_level,
            duration_weeks=duration_weeks,
            status=status,
            creator_id=creator_id,
        )
        self.db.add(syllabus)
        self.db.flush()
        return syllabus

    def create_week(
        self,
        syllabus_id: int,
        index: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Week:
        week = Week(syllabus_id=syllabus_id, index=index, title=title, description=description)
        self.db.add(week)
        self.db.flush()
        return week

    def add_step(self, step: Step) -> Step:
        self.db.add(step)
        self.db.flush()
        return step

    def delete_step(self, step: Step) -> None:
        self.db.delete(step)
        self.db.flush()

    def renumber_steps(self, steps: list[Step]) -> None:
        """Assign positions 1..N in list order."""
        for position, step in enumerate(steps, start=1):
            if step.position != position:
                step.position = position
        self.db.flush()
