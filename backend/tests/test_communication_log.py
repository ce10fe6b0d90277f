"""
Tests for the project communication log.
"""
import asyncio

import pytest
from sqlalchemy import select, func

from projecthub.communication import (
    CommunicationLog,
    ValidationError,
    NotFoundError,
    ConcurrencyError,
    MESSAGE_MAX_LENGTH,
)
from projecthub.models import (
    CommunicationEvent,
    ReadReceipt,
    EventKind,
    Project,
    ProjectCategory,
    User,
    UserRole,
)


async def _open(db_session, project) -> CommunicationLog:
    return await CommunicationLog.open(db_session, project.id)


async def _receipt_count(db_session, event_id: str, user_id: str) -> int:
    stmt = select(func.count(ReadReceipt.id)).where(
        ReadReceipt.event_id == event_id,
        ReadReceipt.user_id == user_id,
    )
    result = await db_session.execute(stmt)
    return result.scalar()


class TestOpen:
    """Binding a log to a project."""

    async def test_open_unknown_project(self, db_session):
        with pytest.raises(NotFoundError):
            await CommunicationLog.open(db_session, "no-such-project")

    async def test_new_project_log_is_empty(self, db_session, project):
        log = await _open(db_session, project)
        summary = await log.summarize()
        assert summary.last_message is None
        assert summary.total_message_count == 0
        assert await log.list_events() == []


class TestAppend:
    """Appending events."""

    async def test_append_assigns_positions_in_order(self, db_session, project, client_user):
        log = await _open(db_session, project)
        first = await log.append(EventKind.MESSAGE, "one", client_user.id)
        second = await log.append(EventKind.STATUS_UPDATE, "two", client_user.id)
        third = await log.append("milestone", "three", client_user.id)

        assert [first.position, second.position, third.position] == [1, 2, 3]
        assert first.created_at <= second.created_at <= third.created_at
        assert len({first.id, second.id, third.id}) == 3

    async def test_append_returns_fresh_event(self, db_session, project, client_user):
        log = await _open(db_session, project)
        event = await log.append(
            EventKind.MESSAGE, "hello", client_user.id, attachments=["https://files/a.png", "b-id"]
        )

        assert event.kind == EventKind.MESSAGE
        assert event.content == "hello"
        assert event.author_id == client_user.id
        assert event.attachments == ["https://files/a.png", "b-id"]
        assert event.read_receipts == []

    async def test_message_content_is_trimmed(self, db_session, project, client_user):
        log = await _open(db_session, project)
        event = await log.append(EventKind.MESSAGE, "  padded  ", client_user.id)
        assert event.content == "padded"

    async def test_empty_message_rejected(self, db_session, project, client_user):
        log = await _open(db_session, project)
        with pytest.raises(ValidationError):
            await log.append(EventKind.MESSAGE, "", client_user.id)
        with pytest.raises(ValidationError):
            await log.append(EventKind.MESSAGE, "   ", client_user.id)
        with pytest.raises(ValidationError):
            await log.append(EventKind.MESSAGE, None, client_user.id)

    async def test_message_length_limit(self, db_session, project, client_user):
        log = await _open(db_session, project)
        event = await log.append(EventKind.MESSAGE, "x" * MESSAGE_MAX_LENGTH, client_user.id)
        assert len(event.content) == MESSAGE_MAX_LENGTH

        with pytest.raises(ValidationError):
            await log.append(EventKind.MESSAGE, "x" * (MESSAGE_MAX_LENGTH + 1), client_user.id)

    async def test_unknown_kind_rejected(self, db_session, project, client_user):
        log = await _open(db_session, project)
        with pytest.raises(ValidationError):
            await log.append("bogus", "hello", client_user.id)

    async def test_failed_append_leaves_log_unchanged(self, db_session, project, client_user):
        log = await _open(db_session, project)
        await log.append(EventKind.MESSAGE, "kept", client_user.id)
        with pytest.raises(ValidationError):
            await log.append(EventKind.MESSAGE, "", client_user.id)

        events = await log.list_events()
        assert [e.content for e in events] == ["kept"]

    async def test_non_message_kinds_skip_length_rules(self, db_session, project, client_user):
        log = await _open(db_session, project)
        event = await log.append(EventKind.FILE, None, client_user.id, attachments=["brief.pdf"])
        assert event.content is None
        assert event.attachments == ["brief.pdf"]

    async def test_append_touches_project(self, db_session, project, client_user):
        before = project.updated_at
        log = await _open(db_session, project)
        event = await log.append(EventKind.MESSAGE, "bump", client_user.id)
        assert log.project.updated_at >= before
        assert log.project.updated_at == event.created_at

    async def test_position_conflict_raises_concurrency_error(
        self, db_session, project, client_user, monkeypatch
    ):
        project_id = project.id
        log = await _open(db_session, project)
        await log.append(EventKind.MESSAGE, "first", client_user.id)

        # Behave like a writer that has not seen the first event yet
        async def stale_last_event(self):
            return None

        monkeypatch.setattr(CommunicationLog, "_last_event", stale_last_event)
        with pytest.raises(ConcurrencyError):
            await log.append(EventKind.MESSAGE, "second", client_user.id)

        result = await db_session.execute(
            select(func.count(CommunicationEvent.id)).where(
                CommunicationEvent.project_id == project_id
            )
        )
        assert result.scalar() == 1


class TestListMessages:
    """Paging through the chat view."""

    async def test_pages_newest_first_ordered_oldest_first(self, db_session, project, client_user):
        log = await _open(db_session, project)
        m1 = await log.append(EventKind.MESSAGE, "M1", client_user.id)
        m2 = await log.append(EventKind.MESSAGE, "M2", client_user.id)
        m3 = await log.append(EventKind.MESSAGE, "M3", client_user.id)

        page1 = await log.list_messages(page=1, page_size=2)
        assert [e.id for e in page1.events] == [m2.id, m3.id]
        assert page1.has_more is True

        page2 = await log.list_messages(page=2, page_size=2)
        assert [e.id for e in page2.events] == [m1.id]
        assert page2.has_more is False

    async def test_pages_reassemble_append_order(self, db_session, project, client_user):
        log = await _open(db_session, project)
        appended = []
        for i in range(7):
            if i % 3 == 0:
                await log.append(EventKind.STATUS_UPDATE, f"status {i}", client_user.id)
            event = await log.append(EventKind.MESSAGE, f"message {i}", client_user.id)
            appended.append(event.id)

        collected = []
        page = 1
        while True:
            result = await log.list_messages(page=page, page_size=3)
            collected.append([e.id for e in result.events])
            if not result.has_more:
                break
            page += 1

        # Later pages hold older messages
        flattened = [event_id for chunk in reversed(collected) for event_id in chunk]
        assert flattened == appended

    async def test_status_updates_excluded(self, db_session, project, client_user):
        log = await _open(db_session, project)
        await log.append(EventKind.STATUS_UPDATE, "created", client_user.id)
        message = await log.append(EventKind.MESSAGE, "hi", client_user.id)
        await log.append(EventKind.STATUS_UPDATE, "assigned", client_user.id)
        await log.append(EventKind.MILESTONE, "MVP", client_user.id)

        result = await log.list_messages(page=1, page_size=10)
        assert [e.id for e in result.events] == [message.id]
        assert result.has_more is False

    async def test_page_past_end_is_empty(self, db_session, project, client_user):
        log = await _open(db_session, project)
        await log.append(EventKind.MESSAGE, "only", client_user.id)

        result = await log.list_messages(page=5, page_size=10)
        assert result.events == []
        assert result.has_more is False

    async def test_exact_multiple_has_no_more(self, db_session, project, client_user):
        log = await _open(db_session, project)
        for i in range(4):
            await log.append(EventKind.MESSAGE, f"m{i}", client_user.id)

        result = await log.list_messages(page=2, page_size=2)
        assert len(result.events) == 2
        assert result.has_more is False

    async def test_invalid_paging_rejected(self, db_session, project):
        log = await _open(db_session, project)
        with pytest.raises(ValidationError):
            await log.list_messages(page=0, page_size=10)
        with pytest.raises(ValidationError):
            await log.list_messages(page=1, page_size=0)

    async def test_filter_by_author(self, db_session, project, client_user, developer_user):
        log = await _open(db_session, project)
        await log.append(EventKind.MESSAGE, "from client", client_user.id)
        dev_message = await log.append(EventKind.MESSAGE, "from developer", developer_user.id)

        result = await log.list_messages(page=1, page_size=10, author_id=developer_user.id)
        assert [e.id for e in result.events] == [dev_message.id]


class TestMarkRead:
    """Read receipts."""

    async def test_mark_read_twice_keeps_one_receipt(self, db_session, project, client_user, developer_user):
        log = await _open(db_session, project)
        message = await log.append(EventKind.MESSAGE, "M1", client_user.id)

        await log.mark_read(message.id, developer_user.id)
        await log.mark_read(message.id, developer_user.id)

        event = await log.get_event(message.id)
        assert [r.user_id for r in event.read_receipts] == [developer_user.id]
        assert await _receipt_count(db_session, message.id, developer_user.id) == 1

    async def test_multiple_readers(self, db_session, project, client_user, developer_user, admin_user):
        log = await _open(db_session, project)
        message = await log.append(EventKind.MESSAGE, "M1", client_user.id)

        await log.mark_read(message.id, developer_user.id)
        await log.mark_read(message.id, admin_user.id)

        event = await log.get_event(message.id)
        assert {r.user_id for r in event.read_receipts} == {developer_user.id, admin_user.id}
        assert all(r.read_at is not None for r in event.read_receipts)

    async def test_unknown_event(self, db_session, project, client_user):
        log = await _open(db_session, project)
        with pytest.raises(NotFoundError):
            await log.mark_read("missing-event", client_user.id)

    async def test_event_from_other_project(self, db_session, project, client_user):
        other = Project(
            title="Other Project",
            description="Belongs to nobody in this test",
            category=ProjectCategory.OTHER,
            owner_id=client_user.id,
        )
        db_session.add(other)
        await db_session.commit()

        other_log = await CommunicationLog.open(db_session, other.id)
        foreign = await other_log.append(EventKind.MESSAGE, "elsewhere", client_user.id)

        log = await _open(db_session, project)
        with pytest.raises(NotFoundError):
            await log.mark_read(foreign.id, client_user.id)

    async def test_duplicate_insert_race_is_a_no_op(
        self, db_session, project, client_user, developer_user, monkeypatch
    ):
        log = await _open(db_session, project)
        message = await log.append(EventKind.MESSAGE, "M1", client_user.id)
        event_id, reader_id = message.id, developer_user.id
        await log.mark_read(event_id, reader_id)

        # Behave like a second request that checked before the first one committed
        monkeypatch.setattr(CommunicationEvent, "is_read_by", lambda self, user_id: False)
        await log.mark_read(event_id, reader_id)

        # The failed insert rolled the session back, so use the saved ids
        assert await _receipt_count(db_session, event_id, reader_id) == 1


class TestUnreadCount:
    """Derived unread counts."""

    async def test_counts_only_unread_messages(self, db_session, project, client_user, developer_user):
        log = await _open(db_session, project)
        m1 = await log.append(EventKind.MESSAGE, "M1", client_user.id)
        await log.append(EventKind.STATUS_UPDATE, "status", client_user.id)
        await log.append(EventKind.MESSAGE, "M2", client_user.id)
        await log.append(EventKind.FILE, None, client_user.id, attachments=["x"])

        assert await log.unread_count_for(developer_user.id) == 2
        await log.mark_read(m1.id, developer_user.id)
        assert await log.unread_count_for(developer_user.id) == 1

    async def test_authors_own_messages_count_until_read(self, db_session, project, client_user):
        log = await _open(db_session, project)
        own = await log.append(EventKind.MESSAGE, "mine", client_user.id)

        assert await log.unread_count_for(client_user.id) == 1
        await log.mark_read(own.id, client_user.id)
        assert await log.unread_count_for(client_user.id) == 0

    async def test_read_status_is_per_user(self, db_session, project, client_user, developer_user):
        log = await _open(db_session, project)
        message = await log.append(EventKind.MESSAGE, "M1", client_user.id)
        await log.mark_read(message.id, developer_user.id)

        assert await log.unread_count_for(developer_user.id) == 0
        assert await log.unread_count_for(client_user.id) == 1

    async def test_reading_status_update_does_not_change_count(
        self, db_session, project, client_user, developer_user
    ):
        log = await _open(db_session, project)
        status = await log.append(EventKind.STATUS_UPDATE, "status", client_user.id)
        await log.append(EventKind.MESSAGE, "M1", client_user.id)

        await log.mark_read(status.id, developer_user.id)
        assert await log.unread_count_for(developer_user.id) == 1


class TestSummarize:

    async def test_last_message_ignores_other_kinds(self, db_session, project, client_user):
        log = await _open(db_session, project)
        await log.append(EventKind.MESSAGE, "first", client_user.id)
        last = await log.append(EventKind.MESSAGE, "second", client_user.id)
        await log.append(EventKind.STATUS_UPDATE, "later status", client_user.id)

        summary = await log.summarize()
        assert summary.last_message.id == last.id
        assert summary.total_message_count == 2


class TestListEvents:
    """The full timeline."""

    async def test_newest_first_with_kind_filter(self, db_session, project, client_user):
        log = await _open(db_session, project)
        status = await log.append(EventKind.STATUS_UPDATE, "created", client_user.id)
        message = await log.append(EventKind.MESSAGE, "hi", client_user.id)
        milestone = await log.append(EventKind.MILESTONE, "MVP", client_user.id)

        events = await log.list_events()
        assert [e.id for e in events] == [milestone.id, message.id, status.id]

        only_status = await log.list_events(kinds=["status-update"])
        assert [e.id for e in only_status] == [status.id]

    async def test_count_ignores_paging(self, db_session, project, client_user):
        log = await _open(db_session, project)
        for i in range(4):
            await log.append(EventKind.MESSAGE, f"m{i}", client_user.id)
        await log.append(EventKind.MILESTONE, "MVP", client_user.id)

        assert len(await log.list_events(limit=2)) == 2
        assert await log.count_events() == 5
        assert await log.count_events(kinds=[EventKind.MESSAGE]) == 4
        assert await log.count_events(kinds=["file"]) == 0

    async def test_unknown_kind_filter_rejected(self, db_session, project):
        log = await _open(db_session, project)
        with pytest.raises(ValidationError):
            await log.list_events(kinds=["bogus"])


class TestConcurrency:
    """Several sessions writing to one log at once."""

    async def _seed(self, factory):
        async with factory() as session:
            users = [User(name=f"User {i}", email=f"user{i}@test.com", role=UserRole.CLIENT) for i in range(3)]
            session.add_all(users)
            await session.commit()
            project = Project(
                title="Busy Project",
                description="Many writers at once",
                category=ProjectCategory.WEB_APP,
                owner_id=users[0].id,
            )
            session.add(project)
            await session.commit()
            return project.id, [u.id for u in users]

    async def test_concurrent_appends_all_kept(self, file_session_factory):
        project_id, user_ids = await self._seed(file_session_factory)

        async def send(i: int):
            async with file_session_factory() as session:
                log = await CommunicationLog.open(session, project_id)
                event = await log.append(EventKind.MESSAGE, f"message {i}", user_ids[i % 3])
                return event.position

        positions = await asyncio.gather(*(send(i) for i in range(12)))
        assert sorted(positions) == list(range(1, 13))

        async with file_session_factory() as session:
            log = await CommunicationLog.open(session, project_id)
            result = await log.list_messages(page=1, page_size=50)
            assert [e.position for e in result.events] == list(range(1, 13))
            created = [e.created_at for e in result.events]
            assert created == sorted(created)

    async def test_concurrent_reads_by_different_users_all_kept(self, file_session_factory):
        project_id, user_ids = await self._seed(file_session_factory)
        async with file_session_factory() as session:
            log = await CommunicationLog.open(session, project_id)
            message = await log.append(EventKind.MESSAGE, "read me", user_ids[0])

        async def read(user_id: str):
            async with file_session_factory() as session:
                log = await CommunicationLog.open(session, project_id)
                await log.mark_read(message.id, user_id)

        await asyncio.gather(*(read(u) for u in user_ids), read(user_ids[1]))

        async with file_session_factory() as session:
            log = await CommunicationLog.open(session, project_id)
            event = await log.get_event(message.id)
            assert sorted(r.user_id for r in event.read_receipts) == sorted(user_ids)
