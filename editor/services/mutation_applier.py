"""
Mutation Applier

Validates a tool's parameters against the current document and applies the
change as one atomic Document Store transaction.
"""

import json
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict

from pydantic import BaseModel

from shared.models.entities import Step
from shared.repositories.syllabus_repository import SyllabusRepository
from shared.utils.formatting import markdown_to_html
from editor.exceptions import NotFoundError, ToolValidationError
from editor.services.document_store import DocumentStore
from editor.tools.schemas import (
    AddStepParams,
    RemoveStepParams,
    UpdateBasicsParams,
    UpdateWeekParams,
)

logger = logging.getLogger("editor.mutations")

MutationHandler = Callable[[SyllabusRepository, int, Any], Dict[str, Any]]


def _require_week(repo: SyllabusRepository, syllabus_id: int, week_index: int):
    week = repo.get_week(syllabus_id, week_index)
    if week is None:
        raise NotFoundError("Week", f"week {week_index} of syllabus {syllabus_id}")
    return week


def add_step(repo: SyllabusRepository, syllabus_id: int, params: AddStepParams) -> Dict[str, Any]:
    """Insert a step at the requested position (or append), shifting later steps down."""
    week = _require_week(repo, syllabus_id, params.week_index)
    steps = repo.list_steps(week.id)
    position = params.position if params.position is not None else len(steps) + 1
    if position > len(steps) + 1:
        raise ToolValidationError(
            "add_step",
            f"position {position} is past the end of week {params.week_index} ({len(steps)} steps)",
        )

    data = params.step
    step = Step(
        week_id=week.id,
        position=position,
        type=data.type,
        title=data.title,
        url=data.url,
        note=markdown_to_html(data.note) or data.note,
        author=data.author,
        creation_date=data.creation_date,
        media_type=data.media_type,
        prompt_text=markdown_to_html(data.prompt_text) or data.prompt_text,
        estimated_minutes=data.estimated_minutes,
    )
    repo.add_step(step)
    steps.insert(position - 1, step)
    repo.renumber_steps(steps)

    return {
        "action": "add_step",
        "week_index": params.week_index,
        "step_id": step.id,
        "position": position,
        "title": step.title,
        "step_count": len(steps),
    }


def remove_step(repo: SyllabusRepository, syllabus_id: int, params: RemoveStepParams) -> Dict[str, Any]:
    """Delete a step and compact the remaining positions to 1..N."""
    week = _require_week(repo, syllabus_id, params.week_index)
    steps = repo.list_steps(week.id)

    if params.step_id is not None:
        target = next((s for s in steps if s.id == params.step_id), None)
        if target is None:
            raise NotFoundError("Step", f"step {params.step_id} in week {params.week_index}")
    else:
        if params.step_position > len(steps):
            raise NotFoundError("Step", f"position {params.step_position} in week {params.week_index}")
        target = steps[params.step_position - 1]

    removed_title = target.title
    removed_position = steps.index(target) + 1
    repo.delete_step(target)
    remaining = [s for s in steps if s is not target]
    repo.renumber_steps(remaining)

    return {
        "action": "remove_step",
        "week_index": params.week_index,
        "removed_position": removed_position,
        "removed_title": removed_title,
        "step_count": len(remaining),
    }


def update_week(repo: SyllabusRepository, syllabus_id: int, params: UpdateWeekParams) -> Dict[str, Any]:
    """Patch a week's title/description; unspecified fields stay unchanged."""
    week = _require_week(repo, syllabus_id, params.week_index)
    patch = params.model_dump(exclude_none=True, include={"title", "description"})
    for field, value in patch.items():
        setattr(week, field, value)
    repo.db.flush()

    return {
        "action": "update_week",
        "week_index": params.week_index,
        "updated_fields": sorted(patch.keys()),
    }


def update_basics(repo: SyllabusRepository, syllabus_id: int, params: UpdateBasicsParams) -> Dict[str, Any]:
    """Patch syllabus title/description/audience/duration; unspecified fields stay unchanged."""
    syllabus = repo.get_by_id(syllabus_id)
    if syllabus is None:
        raise NotFoundError("Syllabus", syllabus_id)

    patch = params.model_dump(exclude_none=True)
    if "duration_weeks" in patch:
        week_count = repo.count_weeks(syllabus_id)
        if patch["duration_weeks"] < week_count:
            raise ToolValidationError(
                "update_basics",
                f"duration_weeks {patch['duration_weeks']} is below the {week_count} existing weeks",
            )

    for field, value in patch.items():
        setattr(syllabus, field, value)
    if patch:
        syllabus.updated_at = datetime.utcnow()
    repo.db.flush()

    return {
        "action": "update_basics",
        "updated_fields": sorted(patch.keys()),
    }


MUTATIONS: Dict[str, MutationHandler] = {
    "add_step": add_step,
    "remove_step": remove_step,
    "update_week": update_week,
    "update_basics": update_basics,
}


class MutationApplier:
    """Applies validated document mutations through the Document Store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def apply(self, syllabus_id: int, tool_name: str, params: BaseModel) -> Dict[str, Any]:
        """
        Apply one mutation atomically.

        Args:
            syllabus_id: Target syllabus
            tool_name: One of MUTATIONS
            params: Validated parameter model for that tool

        Returns:
            JSON-ready summary of the change

        Raises:
            ToolValidationError: Unknown mutation or parameters violating document rules
            NotFoundError: Referenced syllabus/week/step missing
        """
        handler = MUTATIONS.get(tool_name)
        if handler is None:
            raise ToolValidationError(tool_name, "not a document mutation")

        start_time = time.time()
        summary = await self.store.transaction(
            syllabus_id, lambda repo: handler(repo, syllabus_id, params)
        )
        logger.info(json.dumps({
            "step": "MUTATION",
            "status": "applied",
            "tool": tool_name,
            "syllabus_id": syllabus_id,
            "duration_ms": int((time.time() - start_time) * 1000),
        }))
        return summary
