import logging

import pytest

from src.domain.schedule import OneTimeSchedule, RecurringSchedule
from src.domain.user import UserCreate
from src.services import completion_service, group_service, task_aggregator, task_service, user_service
from tests.unit.conftest import MONDAY, TUESDAY


async def _member_of_two_groups(alice, bob):
    """alice joins G1 (bob's) and G2 (bob's)."""
    g1 = await group_service.create_group(admin_id=bob.id, name="G1")
    g2 = await group_service.create_group(admin_id=bob.id, name="G2")
    await group_service.join_group(user_id=alice.id, group_id=g1.id)
    await group_service.join_group(user_id=alice.id, group_id=g2.id)
    return g1, g2


@pytest.mark.unit
class TestTasksForUser:
    async def test_monday_listing_across_scopes(self, patched_db, alice, bob):
        g1, g2 = await _member_of_two_groups(alice, bob)
        p1 = await task_service.create_personal_task(
            owner_id=alice.id, title="P1", schedule=RecurringSchedule(days=["Monday"])
        )
        g1_task = await task_service.create_group_task(
            group_id=g1.id, title="G1 daily", schedule=RecurringSchedule.every_day()
        )
        await task_service.create_group_task(group_id=g2.id, title="G2 tuesday", schedule=RecurringSchedule(days=["Tuesday"]))

        user = await user_service.get_user(user_id=alice.id)
        entries = await task_aggregator.tasks_for_user(user, MONDAY)

        assert [e.task.id for e in entries] == [p1.id, g1_task.id]
        assert [e.is_completed for e in entries] == [False, False]
        assert entries[0].group_name is None
        assert entries[1].group_name == "G1"

    async def test_completion_state_annotated(self, patched_db, alice, bob):
        g1, _ = await _member_of_two_groups(alice, bob)
        g1_task = await task_service.create_group_task(
            group_id=g1.id, title="G1 daily", schedule=RecurringSchedule.every_day()
        )
        other = await task_service.create_personal_task(
            owner_id=alice.id, title="Open", schedule=RecurringSchedule.every_day()
        )
        await completion_service.complete_task(user_id=alice.id, task=g1_task, date=MONDAY)

        user = await user_service.get_user(user_id=alice.id)
        entries = {e.task.id: e.is_completed for e in await task_aggregator.tasks_for_user(user, MONDAY)}
        next_day = {e.task.id: e.is_completed for e in await task_aggregator.tasks_for_user(user, TUESDAY)}

        assert entries == {other.id: False, g1_task.id: True}
        assert next_day == {other.id: False, g1_task.id: False}

    async def test_deleted_group_is_skipped(self, patched_db, alice, bob, caplog):
        g1, g2 = await _member_of_two_groups(alice, bob)
        g1_task = await task_service.create_group_task(
            group_id=g1.id, title="G1 daily", schedule=RecurringSchedule.every_day()
        )
        await task_service.create_group_task(group_id=g2.id, title="G2 daily", schedule=RecurringSchedule.every_day())
        await group_service.delete_group(group_id=g2.id, requester_id=bob.id)

        user = await user_service.get_user(user_id=alice.id)
        assert g2.id in user.group_ids

        with caplog.at_level(logging.WARNING, logger="src.services.task_aggregator"):
            entries = await task_aggregator.tasks_for_user(user, MONDAY)

        assert [e.task.id for e in entries] == [g1_task.id]
        assert "Skipping unresolved group" in caplog.text

    async def test_schedule_override_replaces_group_schedule(self, patched_db, alice, bob):
        g1, _ = await _member_of_two_groups(alice, bob)
        task = await task_service.create_group_task(
            group_id=g1.id, title="Gym", schedule=RecurringSchedule(days=["Monday"])
        )
        await task_service.set_schedule_override(
            user_id=alice.id, task_id=task.id, schedule=RecurringSchedule(days=["Tuesday"])
        )

        alice_user = await user_service.get_user(user_id=alice.id)
        bob_user = await user_service.get_user(user_id=bob.id)

        assert await task_aggregator.tasks_for_user(alice_user, MONDAY) == []
        assert [e.task.id for e in await task_aggregator.tasks_for_user(alice_user, TUESDAY)] == [task.id]
        # Other members keep the group's schedule
        assert [e.task.id for e in await task_aggregator.tasks_for_user(bob_user, MONDAY)] == [task.id]

    async def test_one_time_task(self, patched_db, alice):
        task = await task_service.create_personal_task(
            owner_id=alice.id, title="Exam", schedule=OneTimeSchedule(date=TUESDAY)
        )
        user = await user_service.get_user(user_id=alice.id)

        assert await task_aggregator.tasks_for_user(user, MONDAY) == []
        assert [e.task.id for e in await task_aggregator.tasks_for_user(user, TUESDAY)] == [task.id]

    async def test_user_without_tasks(self, patched_db):
        user = await user_service.create_user(payload=UserCreate(display_name="Yangi"))
        assert await task_aggregator.tasks_for_user(user, MONDAY) == []

    async def test_output_is_deterministic(self, patched_db, alice, bob):
        g1, g2 = await _member_of_two_groups(alice, bob)
        for title in ("a", "b", "c"):
            await task_service.create_group_task(group_id=g2.id, title=title, schedule=RecurringSchedule.every_day())
            await task_service.create_group_task(group_id=g1.id, title=title, schedule=RecurringSchedule.every_day())

        user = await user_service.get_user(user_id=alice.id)
        first = await task_aggregator.tasks_for_user(user, MONDAY)
        second = await task_aggregator.tasks_for_user(user, MONDAY)

        assert first == second
        # Membership order, then creation order
        assert [(e.group_name, e.task.title) for e in first] == [
            ("G1", "a"),
            ("G1", "b"),
            ("G1", "c"),
            ("G2", "a"),
            ("G2", "b"),
            ("G2", "c"),
        ]


@pytest.mark.unit
class TestPendingReminders:
    async def test_open_today_and_missed_yesterday(self, patched_db, alice):
        daily = await task_service.create_personal_task(
            owner_id=alice.id, title="Daily", schedule=RecurringSchedule.every_day()
        )
        monday_only = await task_service.create_personal_task(
            owner_id=alice.id, title="Monday", schedule=RecurringSchedule(days=["Monday"])
        )
        await completion_service.complete_task(user_id=alice.id, task=daily, date=MONDAY)

        user = await user_service.get_user(user_id=alice.id)
        reminders = await task_aggregator.pending_reminders(user, TUESDAY)

        assert [e.task.id for e in reminders.today] == [daily.id]
        assert [e.task.id for e in reminders.overdue] == [monday_only.id]
