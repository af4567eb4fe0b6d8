"""ReviewService tests with a mocked DB layer.

Mock strategy:
  - MockReviewRepository (tests/fakes/repository.py) replaces the SQL
    repository and mutates MockReviewRow in place like the real one.
  - AsyncMock stands in for AsyncSession (db); flush() is a no-op.
  - The tracker runs over the in-memory sources of tests/fakes/sources.py.
"""

from unittest.mock import AsyncMock

import pytest

from suivi_engine.models import CategoryStatus, ExamCategory, LockState, LockTrigger
from suivi_engine.review import ReviewService
from suivi_engine.tracker import SuiviTracker

from fakes.builders import make_record
from fakes.repository import MockReviewRepository

USER = "user1"
SID = "sess1"


@pytest.fixture
def mock_repo():
    return MockReviewRepository()


@pytest.fixture
def service(results, documents, circuits, mock_repo):
    tracker = SuiviTracker(
        results=results, documents=documents, circuits=circuits, batch_pause=0,
    )
    svc = ReviewService(tracker)
    svc._repo = mock_repo
    return svc


@pytest.fixture
def mock_db():
    """AsyncMock standing in for AsyncSession — flush/commit are no-ops."""
    return AsyncMock()


def _view(snapshot, category):
    return next(v for v in snapshot.categories if v.category is category)


async def _open(service, db, dossier_id="D1"):
    return await service.create_session(
        db, user_id=USER, session_id=SID, dossier_id=dossier_id,
    )


# =====================================================================
# Lifecycle
# =====================================================================


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_create_loads_backend_results(self, service, mock_db, results):
        results.results["D1"] = [
            make_record("Code", "echoue", 1),
            make_record("Code", "absent", 2),
            make_record("Permis bateau", "reussi", 3),
        ]
        snap = await _open(service, mock_db)
        assert snap.dossier_id == "D1"
        assert _view(snap, ExamCategory.CODE_CONDUITE).status is CategoryStatus.ABSENT
        assert snap.verdict is CategoryStatus.ABSENT
        assert snap.verdict_label.label == "Absent"
        assert snap.unclassified_count == 1
        assert snap.prompt is None
        assert not snap.saved

    @pytest.mark.asyncio
    async def test_create_without_results(self, service, mock_db):
        snap = await _open(service, mock_db)
        assert snap.verdict is CategoryStatus.NON_SAISI
        assert all(v.attempts == [] for v in snap.categories)

    @pytest.mark.asyncio
    async def test_terminal_data_is_locked_on_open(self, service, mock_db, results):
        results.results["D1"] = [make_record("Creneaux", "reussi", 1)]
        snap = await _open(service, mock_db)
        view = _view(snap, ExamCategory.CRENEAUX)
        assert view.state is LockState.LOCKED
        assert view.locked_indices == [0]
        assert not view.can_add
        assert snap.prompt is None, "Loaded data is locked without asking"

    @pytest.mark.asyncio
    async def test_legacy_status_is_locked_on_open(self, service, mock_db, results):
        results.results["D1"] = [make_record("Creneaux", "echoue", 1)]
        results.legacy["D1"] = {ExamCategory.CRENEAUX: CategoryStatus.REUSSI}
        snap = await _open(service, mock_db)
        view = _view(snap, ExamCategory.CRENEAUX)
        assert view.status is CategoryStatus.REUSSI
        assert view.state is LockState.LOCKED
        assert snap.prompt is None

    @pytest.mark.asyncio
    async def test_duplicate_session(self, service, mock_db):
        await _open(service, mock_db)
        with pytest.raises(ValueError, match="already exists"):
            await _open(service, mock_db)

    @pytest.mark.asyncio
    async def test_get_session(self, service, mock_db):
        assert await service.get_session(mock_db, user_id=USER, session_id=SID) is None
        await _open(service, mock_db)
        snap = await service.get_session(mock_db, user_id=USER, session_id=SID)
        assert snap is not None and snap.session_id == SID

    @pytest.mark.asyncio
    async def test_delete(self, service, mock_db):
        await _open(service, mock_db)
        await service.delete_session(mock_db, user_id=USER, session_id=SID)
        assert await service.get_session(mock_db, user_id=USER, session_id=SID) is None
        with pytest.raises(ValueError, match="not found"):
            await service.delete_session(mock_db, user_id=USER, session_id=SID)

    @pytest.mark.asyncio
    async def test_unknown_session(self, service, mock_db):
        with pytest.raises(ValueError, match="not found"):
            await service.add_attempt(
                mock_db, user_id=USER, session_id="nope",
                category="creneaux", result="reussi",
            )


# =====================================================================
# Mutations & prompts
# =====================================================================


class TestMutations:

    @pytest.mark.asyncio
    async def test_add_opens_failure_prompt(self, service, mock_db, mock_repo, results):
        results.results["D1"] = [
            make_record("Tour de ville", "echoue", 1),
            make_record("Tour de ville", "echoue", 2),
        ]
        await _open(service, mock_db)
        snap = await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="tourVille", result="absent",
        )
        assert snap.accepted
        assert snap.prompt is not None
        assert snap.prompt.trigger is LockTrigger.FAILURE
        assert _view(snap, ExamCategory.TOUR_VILLE).state is LockState.PENDING_FAILURE_CONFIRMATION
        assert mock_repo.reads[-1] == (USER, SID, True), "Mutations must lock the row"

    @pytest.mark.asyncio
    async def test_state_survives_between_calls(self, service, mock_db):
        await _open(service, mock_db)
        await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="codeConduite", result="reussi",
        )
        snap = await service.get_session(mock_db, user_id=USER, session_id=SID)
        assert snap.prompt is not None and snap.prompt.category is ExamCategory.CODE_CONDUITE
        assert snap.prompt.previous_status is CategoryStatus.NON_SAISI

    @pytest.mark.asyncio
    async def test_rejected_add_is_not_an_error(self, service, mock_db, mock_repo, results):
        results.results["D1"] = [make_record("Creneaux", "reussi", 1)]
        await _open(service, mock_db)
        before = dict(mock_repo._rows[(USER, SID)].state)
        snap = await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="creneaux", result="echoue",
        )
        assert not snap.accepted
        assert len(_view(snap, ExamCategory.CRENEAUX).attempts) == 1
        assert mock_repo._rows[(USER, SID)].state == before

    @pytest.mark.asyncio
    async def test_locked_attempt_update_is_rejected(self, service, mock_db, results):
        results.results["D1"] = [make_record("Creneaux", "reussi", 1)]
        await _open(service, mock_db)
        snap = await service.update_attempt(
            mock_db, user_id=USER, session_id=SID, category="creneaux", index=0, result="echoue",
        )
        assert not snap.accepted
        assert _view(snap, ExamCategory.CRENEAUX).status is CategoryStatus.REUSSI

    @pytest.mark.asyncio
    async def test_update_unknown_index(self, service, mock_db):
        await _open(service, mock_db)
        with pytest.raises(ValueError, match="not found"):
            await service.update_attempt(
                mock_db, user_id=USER, session_id=SID, category="creneaux", index=0, note="x",
            )

    @pytest.mark.asyncio
    async def test_invalid_category(self, service, mock_db):
        await _open(service, mock_db)
        with pytest.raises(ValueError):
            await service.add_attempt(
                mock_db, user_id=USER, session_id=SID, category="moto", result="reussi",
            )

    @pytest.mark.asyncio
    async def test_toggle_lock_allows_editing(self, service, mock_db, results):
        results.results["D1"] = [
            make_record("Code", "echoue", 1),
            make_record("Code", "reussi", 2),
        ]
        await _open(service, mock_db)
        snap = await service.toggle_lock(
            mock_db, user_id=USER, session_id=SID, category="codeConduite", index=1,
        )
        assert _view(snap, ExamCategory.CODE_CONDUITE).locked_indices == [0]
        snap = await service.update_attempt(
            mock_db, user_id=USER, session_id=SID, category="codeConduite", index=1, result="echoue",
        )
        assert snap.accepted
        assert _view(snap, ExamCategory.CODE_CONDUITE).status is CategoryStatus.ECHOUE


class TestPrompts:

    @pytest.mark.asyncio
    async def test_confirm_locks_category(self, service, mock_db):
        await _open(service, mock_db)
        await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="creneaux", result="reussi",
        )
        snap = await service.confirm_prompt(mock_db, user_id=USER, session_id=SID)
        assert snap.prompt is None
        assert _view(snap, ExamCategory.CRENEAUX).state is LockState.LOCKED

    @pytest.mark.asyncio
    async def test_decline_is_persisted(self, service, mock_db, mock_repo):
        await _open(service, mock_db)
        await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="creneaux", result="reussi",
        )
        snap = await service.decline_prompt(mock_db, user_id=USER, session_id=SID)
        assert snap.prompt is None
        assert mock_repo._rows[(USER, SID)].declined == [
            {"dossier_id": "D1", "category": "creneaux", "trigger": "success"},
        ]
        # Bounce away from reussi and back: no second prompt
        await service.update_attempt(
            mock_db, user_id=USER, session_id=SID, category="creneaux", index=0, result="absent",
        )
        snap = await service.update_attempt(
            mock_db, user_id=USER, session_id=SID, category="creneaux", index=0, result="reussi",
        )
        assert snap.prompt is None

    @pytest.mark.asyncio
    async def test_no_open_prompt(self, service, mock_db):
        await _open(service, mock_db)
        with pytest.raises(ValueError, match="No open prompt"):
            await service.confirm_prompt(mock_db, user_id=USER, session_id=SID)
        with pytest.raises(ValueError, match="No open prompt"):
            await service.decline_prompt(mock_db, user_id=USER, session_id=SID)

    @pytest.mark.asyncio
    async def test_next_prompt_after_confirm(self, service, mock_db):
        await _open(service, mock_db)
        await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="tourVille", result="reussi",
        )
        await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="codeConduite", result="reussi",
        )
        snap = await service.confirm_prompt(mock_db, user_id=USER, session_id=SID)
        assert snap.prompt is not None
        assert snap.prompt.category is ExamCategory.CODE_CONDUITE


# =====================================================================
# Reload & write-back
# =====================================================================


class TestReloadAndSave:

    @pytest.mark.asyncio
    async def test_save_results(self, service, mock_db, results):
        await _open(service, mock_db)
        await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="creneaux", result="echoue",
        )
        await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="tourVille", result="absent", note="malade",
        )
        snap = await service.save_results(mock_db, user_id=USER, session_id=SID)
        assert snap.saved
        assert [(r.exam_type, r.status, r.comment) for r in results.saved] == [
            ("creneaux", "echoue", ""),
            ("tourVille", "absent", "malade"),
        ]

        snap = await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="creneaux", result="absent",
        )
        assert not snap.saved, "Editing after a save reopens the session"

    @pytest.mark.asyncio
    async def test_reload_takes_fresh_data_and_forgets_declines(
        self, service, mock_db, mock_repo, results,
    ):
        await _open(service, mock_db)
        await service.add_attempt(
            mock_db, user_id=USER, session_id=SID, category="creneaux", result="reussi",
        )
        await service.decline_prompt(mock_db, user_id=USER, session_id=SID)

        results.results["D1"] = [make_record("Code", "echoue", 4)]
        snap = await service.reload(mock_db, user_id=USER, session_id=SID)
        assert _view(snap, ExamCategory.CRENEAUX).attempts == []
        assert len(_view(snap, ExamCategory.CODE_CONDUITE).attempts) == 1
        assert mock_repo._rows[(USER, SID)].declined == []
