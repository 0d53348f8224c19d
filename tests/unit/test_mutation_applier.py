"""Unit tests for editor/services/mutation_applier.py and document_store.py."""

import random
import pytest

from shared.repositories import SyllabusRepository
from editor.exceptions import NotFoundError, ToolValidationError
from editor.services.document_store import DocumentStore
from editor.services.mutation_applier import MutationApplier
from editor.tools.schemas import AddStepParams, RemoveStepParams, UpdateBasicsParams, UpdateWeekParams


@pytest.fixture
def store(db_manager):
    return DocumentStore(db_manager)


@pytest.fixture
def applier(store):
    return MutationApplier(store)


def reading(title, **extra):
    return {"type": "reading", "title": title, "url": f"https://example.edu/{title.lower().replace(' ', '-')}", **extra}


def positions(snapshot, week_index):
    return [s.position for s in snapshot.get_week(week_index).steps]


def titles(snapshot, week_index):
    return [s.title for s in snapshot.get_week(week_index).steps]


# ---------------------------------------------------------------------------
# Tests — DocumentStore
# ---------------------------------------------------------------------------

class TestDocumentStore:
    @pytest.mark.asyncio
    async def test_read_syllabus(self, store, syllabus_id):
        snapshot = await store.read_syllabus(syllabus_id)

        assert snapshot.title == "Deep Work"
        assert [w.index for w in snapshot.weeks] == [1, 2]
        assert titles(snapshot, 1) == ["Intro to Deep Work", "Attention Residue"]

    @pytest.mark.asyncio
    async def test_read_missing_syllabus(self, store):
        with pytest.raises(NotFoundError):
            await store.read_syllabus(404)

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, store, syllabus_id):
        def work(repo):
            syllabus = repo.get_by_id(syllabus_id)
            syllabus.title = "Changed"
            repo.db.flush()
            raise ToolValidationError("update_basics", "boom")

        with pytest.raises(ToolValidationError):
            await store.transaction(syllabus_id, work)

        snapshot = await store.read_syllabus(syllabus_id)
        assert snapshot.title == "Deep Work"

    @pytest.mark.asyncio
    async def test_transaction_on_missing_syllabus(self, store):
        with pytest.raises(NotFoundError):
            await store.transaction(404, lambda repo: None)

    @pytest.mark.asyncio
    async def test_syllabus_lock_is_dropped_after_transaction(self, store, syllabus_id):
        await store.transaction(syllabus_id, lambda repo: None)
        with pytest.raises(NotFoundError):
            await store.transaction(404, lambda repo: None)

        assert store._locks == {}

    def test_lock_entry_lives_only_while_held(self, store, syllabus_id):
        with store._syllabus_lock(syllabus_id):
            entry = store._locks[syllabus_id]
            assert entry[1] == 1
            assert entry[0].locked()

        assert syllabus_id not in store._locks


# ---------------------------------------------------------------------------
# Tests — add_step
# ---------------------------------------------------------------------------

class TestAddStep:
    @pytest.mark.asyncio
    async def test_append(self, applier, store, syllabus_id):
        params = AddStepParams(week_index=1, step=reading("Flow"))

        summary = await applier.apply(syllabus_id, "add_step", params)

        snapshot = await store.read_syllabus(syllabus_id)
        assert titles(snapshot, 1) == ["Intro to Deep Work", "Attention Residue", "Flow"]
        assert positions(snapshot, 1) == [1, 2, 3]
        assert summary["action"] == "add_step"
        assert summary["position"] == 3
        assert summary["step_count"] == 3
        assert summary["step_id"] is not None

    @pytest.mark.asyncio
    async def test_insert_at_front_shifts_later_steps(self, applier, store, syllabus_id):
        params = AddStepParams(week_index=1, step=reading("Flow"), position=1)

        await applier.apply(syllabus_id, "add_step", params)

        snapshot = await store.read_syllabus(syllabus_id)
        assert titles(snapshot, 1) == ["Flow", "Intro to Deep Work", "Attention Residue"]
        assert positions(snapshot, 1) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_position_past_end_is_rejected(self, applier, store, syllabus_id):
        params = AddStepParams(week_index=1, step=reading("Flow"), position=4)

        with pytest.raises(ToolValidationError):
            await applier.apply(syllabus_id, "add_step", params)

        snapshot = await store.read_syllabus(syllabus_id)
        assert len(snapshot.get_week(1).steps) == 2

    @pytest.mark.asyncio
    async def test_missing_week(self, applier, syllabus_id):
        params = AddStepParams(week_index=3, step=reading("Flow"))

        with pytest.raises(NotFoundError):
            await applier.apply(syllabus_id, "add_step", params)

    @pytest.mark.asyncio
    async def test_markdown_fields_become_html(self, applier, store, syllabus_id):
        params = AddStepParams(
            week_index=2,
            step={
                "type": "exercise",
                "title": "Reflect",
                "prompt_text": "Answer:\n1. What **distracted** you?\n2. What helped?",
                "note": "Be *honest*",
            },
        )

        await applier.apply(syllabus_id, "add_step", params)

        step = (await store.read_syllabus(syllabus_id)).get_week(2).steps[-1]
        assert step.prompt_text == (
            "<p>Answer:</p><ol><li><p>What <strong>distracted</strong> you?</p></li>"
            "<li><p>What helped?</p></li></ol>"
        )
        assert step.note == "<p>Be <em>honest</em></p>"


# ---------------------------------------------------------------------------
# Tests — remove_step
# ---------------------------------------------------------------------------

class TestRemoveStep:
    @pytest.mark.asyncio
    async def test_remove_by_position_renumbers(self, applier, store, syllabus_id):
        summary = await applier.apply(syllabus_id, "remove_step", RemoveStepParams(week_index=1, step_position=1))

        snapshot = await store.read_syllabus(syllabus_id)
        assert titles(snapshot, 1) == ["Attention Residue"]
        assert positions(snapshot, 1) == [1]
        assert summary["removed_title"] == "Intro to Deep Work"
        assert summary["step_count"] == 1

    @pytest.mark.asyncio
    async def test_remove_by_id(self, applier, store, syllabus_id):
        snapshot = await store.read_syllabus(syllabus_id)
        step_id = snapshot.get_week(1).steps[1].id

        summary = await applier.apply(syllabus_id, "remove_step", RemoveStepParams(week_index=1, step_id=step_id))

        assert summary["removed_position"] == 2
        assert titles(await store.read_syllabus(syllabus_id), 1) == ["Intro to Deep Work"]

    @pytest.mark.asyncio
    async def test_step_id_from_another_week(self, applier, store, syllabus_id):
        snapshot = await store.read_syllabus(syllabus_id)
        other_week_step = snapshot.get_week(2).steps[0].id

        with pytest.raises(NotFoundError):
            await applier.apply(syllabus_id, "remove_step", RemoveStepParams(week_index=1, step_id=other_week_step))

    @pytest.mark.asyncio
    async def test_position_out_of_range(self, applier, syllabus_id):
        with pytest.raises(NotFoundError):
            await applier.apply(syllabus_id, "remove_step", RemoveStepParams(week_index=1, step_position=3))

    @pytest.mark.asyncio
    async def test_positions_stay_contiguous_under_random_edits(self, applier, store, syllabus_id):
        rng = random.Random(7)
        for i in range(25):
            snapshot = await store.read_syllabus(syllabus_id)
            count = len(snapshot.get_week(1).steps)
            if count and rng.random() < 0.45:
                params = RemoveStepParams(week_index=1, step_position=rng.randint(1, count))
                await applier.apply(syllabus_id, "remove_step", params)
            else:
                params = AddStepParams(
                    week_index=1, step=reading(f"Step {i}"), position=rng.randint(1, count + 1)
                )
                await applier.apply(syllabus_id, "add_step", params)

            after = await store.read_syllabus(syllabus_id)
            steps = after.get_week(1).steps
            assert [s.position for s in steps] == list(range(1, len(steps) + 1))


# ---------------------------------------------------------------------------
# Tests — update_week / update_basics
# ---------------------------------------------------------------------------

class TestUpdates:
    @pytest.mark.asyncio
    async def test_update_week_partial(self, applier, store, syllabus_id):
        summary = await applier.apply(
            syllabus_id, "update_week", UpdateWeekParams(week_index=1, description="Why focus matters")
        )

        week = (await store.read_syllabus(syllabus_id)).get_week(1)
        assert week.title == "Foundations"
        assert week.description == "Why focus matters"
        assert summary["updated_fields"] == ["description"]

    @pytest.mark.asyncio
    async def test_update_basics_partial(self, applier, store, syllabus_id):
        await applier.apply(
            syllabus_id, "update_basics", UpdateBasicsParams(title="Deep Work 101", audience_level="Intermediate")
        )

        snapshot = await store.read_syllabus(syllabus_id)
        assert snapshot.title == "Deep Work 101"
        assert snapshot.audience_level == "Intermediate"
        assert snapshot.description == "Focus in a distracted world"
        assert snapshot.duration_weeks == 4

    @pytest.mark.asyncio
    async def test_duration_below_week_count_is_rejected(self, applier, store, syllabus_id):
        with pytest.raises(ToolValidationError):
            await applier.apply(syllabus_id, "update_basics", UpdateBasicsParams(duration_weeks=1))

        assert (await store.read_syllabus(syllabus_id)).duration_weeks == 4

    @pytest.mark.asyncio
    async def test_duration_equal_to_week_count_is_allowed(self, applier, store, syllabus_id):
        await applier.apply(syllabus_id, "update_basics", UpdateBasicsParams(duration_weeks=2))

        assert (await store.read_syllabus(syllabus_id)).duration_weeks == 2

    @pytest.mark.asyncio
    async def test_unknown_mutation(self, applier, syllabus_id):
        with pytest.raises(ToolValidationError):
            await applier.apply(syllabus_id, "read_current_syllabind", UpdateWeekParams(week_index=1))


class TestRepository:
    def test_renumber_steps(self, db_session, syllabus_id):
        repo = SyllabusRepository(db_session)
        week = repo.get_week(syllabus_id, 1)
        steps = repo.list_steps(week.id)

        repo.renumber_steps(list(reversed(steps)))

        assert [s.title for s in repo.list_steps(week.id)] == ["Attention Residue", "Intro to Deep Work"]
