import pytest

from src.core import db_client
from src.core.config import constants
from src.core.errors import InvalidScheduleError, UnresolvedScopeReference
from src.domain.schedule import OneTimeSchedule, RecurringSchedule
from src.domain.task import GroupTask, PersonalTask, TaskScope, TaskVisibility
from src.services import task_service
from tests.unit.conftest import MONDAY


@pytest.mark.unit
class TestCreatePersonalTask:
    async def test_create_personal_task(self, patched_db, alice):
        task = await task_service.create_personal_task(
            owner_id=alice.id,
            title="Kitob o'qish",
            schedule={"type": "recurring", "days": ["Monday", "Thursday"]},
        )

        assert isinstance(task, PersonalTask)
        assert task.owner_id == alice.id
        assert task.coins == constants.PERSONAL_TASK_COINS
        assert task.visibility == TaskVisibility.PRIVATE
        assert task.schedule == RecurringSchedule(days=["Monday", "Thursday"])

    async def test_empty_weekdays_rejected_and_nothing_persisted(self, patched_db, alice):
        with pytest.raises(InvalidScheduleError):
            await task_service.create_personal_task(
                owner_id=alice.id,
                title="Never",
                schedule=RecurringSchedule(days=[]),
            )

        assert patched_db.records("tasks") == []

    async def test_unknown_owner(self, patched_db):
        with pytest.raises(UnresolvedScopeReference) as exc_info:
            await task_service.create_personal_task(
                owner_id="9999",
                title="Orphan",
                schedule=RecurringSchedule.every_day(),
            )

        assert exc_info.value.scope_id == "9999"
        assert patched_db.records("tasks") == []


@pytest.mark.unit
class TestCreateGroupTask:
    async def test_create_group_task(self, patched_db, group):
        task = await task_service.create_group_task(
            group_id=group.id,
            title="20 bet o'qish",
            schedule=RecurringSchedule.every_day(),
            coins=15,
        )

        assert isinstance(task, GroupTask)
        assert task.group_id == group.id
        assert task.coins == 15
        assert task.scope == TaskScope.GROUP

    async def test_default_reward(self, patched_db, group):
        task = await task_service.create_group_task(
            group_id=group.id,
            title="Yugurish",
            schedule=OneTimeSchedule(date=MONDAY),
        )

        assert task.coins == constants.DEFAULT_GROUP_TASK_COINS

    async def test_unknown_group(self, patched_db):
        with pytest.raises(UnresolvedScopeReference):
            await task_service.create_group_task(
                group_id="4242",
                title="Lost",
                schedule=RecurringSchedule.every_day(),
            )

    async def test_empty_weekdays_rejected(self, patched_db, group):
        with pytest.raises(InvalidScheduleError):
            await task_service.create_group_task(group_id=group.id, title="x", schedule={"type": "recurring", "days": []})

        assert patched_db.records("tasks") == []


@pytest.mark.unit
class TestGetTasksForScope:
    async def test_scopes_are_separate_and_ordered(self, patched_db, alice, group):
        first = await task_service.create_personal_task(
            owner_id=alice.id, title="First", schedule=RecurringSchedule.every_day()
        )
        second = await task_service.create_personal_task(
            owner_id=alice.id, title="Second", schedule=RecurringSchedule.every_day()
        )
        await task_service.create_group_task(group_id=group.id, title="Shared", schedule=RecurringSchedule.every_day())

        personal = await task_service.get_tasks_for_scope(scope=TaskScope.PERSONAL, scope_id=alice.id)
        shared = await task_service.get_tasks_for_scope(scope=TaskScope.GROUP, scope_id=group.id)

        assert [t.id for t in personal] == [first.id, second.id]
        assert [t.title for t in shared] == ["Shared"]

    async def test_reads_past_one_page(self, patched_db, monkeypatch, alice):
        monkeypatch.setattr(constants, "DEFAULT_PER_PAGE_LIMIT", 2)
        for title in ("Bir", "Ikki", "Uch"):
            await task_service.create_personal_task(owner_id=alice.id, title=title, schedule=RecurringSchedule.every_day())

        tasks = await task_service.get_tasks_for_scope(scope=TaskScope.PERSONAL, scope_id=alice.id)

        assert [t.title for t in tasks] == ["Bir", "Ikki", "Uch"]


@pytest.mark.unit
class TestUpdateTask:
    async def test_update_title_and_schedule(self, patched_db, group):
        task = await task_service.create_group_task(
            group_id=group.id, title="Old", schedule=RecurringSchedule.every_day()
        )

        updated = await task_service.update_task(
            task_id=task.id,
            title="New",
            schedule={"type": "recurring", "days": ["Saturday"]},
        )

        assert updated.title == "New"
        assert updated.schedule == RecurringSchedule(days=["Saturday"])

    async def test_personal_reward_is_fixed(self, patched_db, alice):
        task = await task_service.create_personal_task(
            owner_id=alice.id, title="Mine", schedule=RecurringSchedule.every_day()
        )

        with pytest.raises(ValueError, match="fixed"):
            await task_service.update_task(task_id=task.id, coins=50)

    async def test_invalid_schedule_keeps_old(self, patched_db, group):
        task = await task_service.create_group_task(
            group_id=group.id, title="Keep", schedule=RecurringSchedule.every_day()
        )

        with pytest.raises(InvalidScheduleError):
            await task_service.update_task(task_id=task.id, schedule=RecurringSchedule(days=[]))

        assert (await task_service.get_task(task_id=task.id)).schedule == RecurringSchedule.every_day()

    async def test_nothing_to_update(self, patched_db, group):
        task = await task_service.create_group_task(group_id=group.id, title="x", schedule=RecurringSchedule.every_day())

        with pytest.raises(ValueError, match="Nothing to update"):
            await task_service.update_task(task_id=task.id)


@pytest.mark.unit
class TestDeletePersonalTask:
    async def test_owner_can_delete(self, patched_db, alice):
        task = await task_service.create_personal_task(
            owner_id=alice.id, title="Temp", schedule=RecurringSchedule.every_day()
        )

        await task_service.delete_personal_task(task_id=task.id, owner_id=alice.id)

        with pytest.raises(db_client.RecordNotFoundError):
            await task_service.get_task(task_id=task.id)

    async def test_other_user_cannot_delete(self, patched_db, alice, bob):
        task = await task_service.create_personal_task(
            owner_id=alice.id, title="Mine", schedule=RecurringSchedule.every_day()
        )

        with pytest.raises(PermissionError):
            await task_service.delete_personal_task(task_id=task.id, owner_id=bob.id)

    async def test_group_task_cannot_be_deleted_here(self, patched_db, alice, group):
        task = await task_service.create_group_task(group_id=group.id, title="x", schedule=RecurringSchedule.every_day())

        with pytest.raises(PermissionError):
            await task_service.delete_personal_task(task_id=task.id, owner_id=alice.id)


@pytest.mark.unit
class TestScheduleOverrides:
    async def test_set_replace_and_remove(self, patched_db, alice, group):
        task = await task_service.create_group_task(group_id=group.id, title="x", schedule=RecurringSchedule.every_day())

        await task_service.set_schedule_override(user_id=alice.id, task_id=task.id, schedule={"type": "recurring", "days": ["Monday"]})
        await task_service.set_schedule_override(user_id=alice.id, task_id=task.id, schedule={"type": "recurring", "days": ["Friday"]})

        overrides = await task_service.get_schedule_overrides(user_id=alice.id)
        assert overrides == {task.id: RecurringSchedule(days=["Friday"])}
        assert len(patched_db.records("task_schedules")) == 1

        assert await task_service.remove_schedule_override(user_id=alice.id, task_id=task.id) is True
        assert await task_service.remove_schedule_override(user_id=alice.id, task_id=task.id) is False
        assert await task_service.get_schedule_overrides(user_id=alice.id) == {}

    async def test_override_requires_group_task(self, patched_db, alice):
        task = await task_service.create_personal_task(
            owner_id=alice.id, title="Mine", schedule=RecurringSchedule.every_day()
        )

        with pytest.raises(ValueError, match="group tasks"):
            await task_service.set_schedule_override(
                user_id=alice.id, task_id=task.id, schedule=RecurringSchedule(days=["Monday"])
            )

    async def test_empty_override_rejected(self, patched_db, alice, group):
        task = await task_service.create_group_task(group_id=group.id, title="x", schedule=RecurringSchedule.every_day())

        with pytest.raises(InvalidScheduleError):
            await task_service.set_schedule_override(user_id=alice.id, task_id=task.id, schedule=RecurringSchedule(days=[]))

        assert patched_db.records("task_schedules") == []
