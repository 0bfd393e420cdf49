"""Tests for the mentoring relationship lifecycle."""
import asyncio

import pytest

from mentoring.domain.common.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from mentoring.domain.common.types import identity_topic
from mentoring.domain.goals.models import GoalPatch, GoalStatus
from mentoring.domain.mentoring.models import (
    ALLOWED_TRANSITIONS,
    RelationshipPatch,
    RelationshipStatus,
    can_transition,
)
from mentoring.domain.mentoring.services import RelationshipService
from mentoring.infra.db.repositories.relationship_repo import RelationshipRepositoryImpl


async def test_create_relationship_starts_pending(relationship_service):
    rel = await relationship_service.create_relationship("P1", "C1", notes="intro call done")

    assert rel.status == RelationshipStatus.PENDING
    assert rel.professional_id == "P1"
    assert rel.client_id == "C1"
    assert rel.notes == "intro call done"
    assert rel.started_at is None
    assert rel.ended_at is None


async def test_second_open_relationship_for_pair_conflicts(relationship_service):
    await relationship_service.create_relationship("P1", "C1")

    with pytest.raises(ConflictError) as exc_info:
        await relationship_service.create_relationship("P1", "C1")
    assert exc_info.value.current_status == "pending"


async def test_pair_can_reopen_after_ending(relationship_service):
    first = await relationship_service.create_relationship("P1", "C1")
    await relationship_service.end(first.id)

    second = await relationship_service.create_relationship("P1", "C1")

    assert second.id != first.id
    assert second.status == RelationshipStatus.PENDING


async def test_self_mentoring_is_rejected(relationship_service):
    with pytest.raises(ValidationError):
        await relationship_service.create_relationship("P1", "P1")


async def test_concurrent_creates_for_same_pair_yield_one_winner(database, dispatcher):
    async def create():
        async with database.session() as s:
            service = RelationshipService(RelationshipRepositoryImpl(s), dispatcher)
            return await service.create_relationship("P9", "C9")

    results = await asyncio.gather(create(), create(), return_exceptions=True)

    created = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 1


async def test_unique_index_rejects_open_duplicate_even_without_precheck(session):
    repo = RelationshipRepositoryImpl(session)
    from mentoring.domain.mentoring.models import MentoringRelationship

    await repo.create(MentoringRelationship.create("P2", "C2"))
    with pytest.raises(ConflictError) as exc_info:
        await repo.create(MentoringRelationship.create("P2", "C2"))
    assert exc_info.value.current_status == "pending"


async def test_accept_stamps_started_at(relationship_service):
    rel = await relationship_service.create_relationship("P1", "C1")

    accepted = await relationship_service.accept(rel.id)

    assert accepted.status == RelationshipStatus.ACTIVE
    assert accepted.started_at is not None


async def test_pause_and_resume_keep_original_start(relationship_service):
    rel = await relationship_service.create_relationship("P1", "C1")
    accepted = await relationship_service.accept(rel.id)

    paused = await relationship_service.pause(rel.id)
    resumed = await relationship_service.resume(rel.id)

    assert paused.status == RelationshipStatus.PAUSED
    assert resumed.status == RelationshipStatus.ACTIVE
    assert resumed.started_at == accepted.started_at


async def test_pending_can_end_but_ended_cannot_reactivate(relationship_service):
    rel = await relationship_service.create_relationship("P1", "C1")

    ended = await relationship_service.update_relationship(
        rel.id, RelationshipPatch(status=RelationshipStatus.ENDED)
    )
    assert ended.status == RelationshipStatus.ENDED
    assert ended.ended_at is not None

    with pytest.raises(InvalidTransitionError) as exc_info:
        await relationship_service.update_relationship(
            rel.id, RelationshipPatch(status=RelationshipStatus.ACTIVE)
        )
    assert exc_info.value.current_status == "ended"


@pytest.mark.parametrize("target", list(RelationshipStatus))
async def test_ended_rejects_every_status(relationship_service, target):
    rel = await relationship_service.create_relationship("P1", "C1")
    await relationship_service.end(rel.id)

    with pytest.raises(InvalidTransitionError):
        await relationship_service.update_relationship(rel.id, RelationshipPatch(status=target))


async def test_pending_cannot_pause(relationship_service):
    rel = await relationship_service.create_relationship("P1", "C1")

    with pytest.raises(InvalidTransitionError) as exc_info:
        await relationship_service.pause(rel.id)
    assert exc_info.value.current_status == "pending"
    assert exc_info.value.requested_status == "paused"


async def test_same_status_is_not_a_transition(relationship_service):
    rel = await relationship_service.create_relationship("P1", "C1")
    await relationship_service.accept(rel.id)

    with pytest.raises(InvalidTransitionError):
        await relationship_service.accept(rel.id)


def test_transition_table():
    assert can_transition(RelationshipStatus.PENDING, RelationshipStatus.ACTIVE)
    assert can_transition(RelationshipStatus.PAUSED, RelationshipStatus.ENDED)
    assert not can_transition(RelationshipStatus.ACTIVE, RelationshipStatus.PENDING)
    assert ALLOWED_TRANSITIONS[RelationshipStatus.ENDED] == frozenset()


async def test_end_keeps_supplied_ended_at(relationship_service):
    from datetime import datetime

    rel = await relationship_service.create_relationship("P1", "C1")
    when = datetime(2026, 3, 1, 12, 0, 0)

    ended = await relationship_service.update_relationship(
        rel.id, RelationshipPatch(status=RelationshipStatus.ENDED, ended_at=when)
    )

    assert ended.ended_at == when


async def test_ended_at_without_ending_is_invalid(relationship_service):
    from datetime import datetime

    rel = await relationship_service.create_relationship("P1", "C1")

    with pytest.raises(ValidationError):
        await relationship_service.update_relationship(
            rel.id, RelationshipPatch(ended_at=datetime(2026, 3, 1))
        )


async def test_notes_only_update(relationship_service):
    rel = await relationship_service.create_relationship("P1", "C1")

    updated = await relationship_service.update_relationship(rel.id, RelationshipPatch(notes="prefers mornings"))

    assert updated.notes == "prefers mornings"
    assert updated.status == RelationshipStatus.PENDING


async def test_stale_expected_status_conflicts(relationship_service):
    rel = await relationship_service.create_relationship("P1", "C1")
    await relationship_service.accept(rel.id)

    with pytest.raises(ConflictError) as exc_info:
        await relationship_service.update_relationship(
            rel.id,
            RelationshipPatch(status=RelationshipStatus.ENDED),
            expected_status=RelationshipStatus.PENDING,
        )
    assert exc_info.value.current_status == "active"


async def test_compare_and_set_only_applies_to_expected_status(session, relationship_service):
    rel = await relationship_service.create_relationship("P1", "C1")
    repo = RelationshipRepositoryImpl(session)

    stale = await repo.compare_and_set(rel.id, RelationshipStatus.ACTIVE, {"status": RelationshipStatus.PAUSED})
    fresh = await repo.compare_and_set(rel.id, RelationshipStatus.PENDING, {"status": RelationshipStatus.ACTIVE})

    assert stale is None
    assert fresh.status == RelationshipStatus.ACTIVE


async def test_unknown_relationship_not_found(relationship_service):
    with pytest.raises(NotFoundError):
        await relationship_service.get_relationship("missing")
    with pytest.raises(NotFoundError):
        await relationship_service.accept("missing")


async def test_list_relationships_either_party_newest_first(relationship_service):
    first = await relationship_service.create_relationship("P1", "C1")
    second = await relationship_service.create_relationship("P2", "C1")
    await relationship_service.create_relationship("P3", "C3")

    as_client = await relationship_service.list_relationships("C1")
    as_professional = await relationship_service.list_relationships("P1")

    assert [r.id for r in as_client] == [second.id, first.id]
    assert [r.id for r in as_professional] == [first.id]


async def test_lifecycle_events_reach_both_parties(relationship_service, dispatcher, recorder):
    await dispatcher.subscribe(identity_topic("P1"), recorder)
    await dispatcher.subscribe(identity_topic("C1"), recorder)

    rel = await relationship_service.create_relationship("P1", "C1")
    await relationship_service.accept(rel.id)
    await dispatcher.wait_idle()

    assert len(recorder.of_type("RelationshipCreated")) == 2
    assert len(recorder.of_type("RelationshipUpdated")) == 2
    assert {e.topic for e in recorder.events} == {"identity:P1", "identity:C1"}
    assert recorder.of_type("RelationshipUpdated")[0].payload["status"] == "active"


async def test_professional_stats(relationship_service, goal_service):
    a = await relationship_service.create_relationship("P1", "C1")
    await relationship_service.accept(a.id)
    await relationship_service.create_relationship("P1", "C2")
    goal = await goal_service.create_goal("C1", "P1", title="Walk daily")
    await goal_service.update_goal(goal.id, GoalPatch(status=GoalStatus.COMPLETED))

    stats = await relationship_service.get_professional_stats("P1")

    assert stats.total_clients == 2
    assert stats.active_clients == 1
    assert stats.completed_goals == 1


async def test_resume_while_pair_has_pending_conflicts(relationship_service):
    paused = await relationship_service.create_relationship("P1", "C1")
    await relationship_service.accept(paused.id)
    await relationship_service.pause(paused.id)
    await relationship_service.create_relationship("P1", "C1")

    with pytest.raises(ConflictError) as exc_info:
        await relationship_service.resume(paused.id)

    assert exc_info.value.current_status == "paused"
    unchanged = await relationship_service.get_relationship(paused.id)
    assert unchanged.status == RelationshipStatus.PAUSED
