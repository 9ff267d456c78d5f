"""Tests for the Meeting state machine.

Covers:
- Initial page payload (title + checkboxes for present members only)
- Degraded mode when page creation fails
- Join events ticking attendance exactly once
- The last leave ending the meeting with one "Meeting ended" notice
- Not-found patches ending the meeting with one "Notion page deleted" notice
- Idempotent deregistration
"""

from __future__ import annotations

import asyncio
from datetime import date
from unittest.mock import MagicMock

from src.meetbot.meetings.schemas import EndReason, MeetingState, NotionCredentials
from src.meetbot.meetings.tracker import Meeting
from src.meetbot.notion.errors import NotionError, NotionTimeoutError, PageNotFoundError
from src.meetbot.notion.properties import CheckboxValue, DatabaseSchema, TitleValue
from tests.fakes import (
    DATABASE_ID,
    make_guild,
    make_member,
    make_page,
    make_schema,
    make_text_channel,
    make_voice_channel,
    sent_titles,
    voice_state,
)


# ── Helpers ──────────────────────────────────────────────────────────────────


GUILD = make_guild(100)


def _make_meeting(
    notion: MagicMock,
    occupants: list[str] = (),
    on_deregister=None,
) -> tuple[Meeting, object, MagicMock]:
    members = [make_member(name, i, GUILD) for i, name in enumerate(occupants, start=1)]
    voice = make_voice_channel(555, GUILD, members)
    text = make_text_channel()
    meeting = Meeting(
        credentials=NotionCredentials(token="secret", database_id=DATABASE_ID),
        voice_channel=voice,
        notification_channel=text,
        notion=notion,
        on_deregister=on_deregister,
        today=lambda: date(2024, 1, 1),
    )
    return meeting, voice, text


async def _started(notion: MagicMock, occupants: list[str] = ("Alice",), **kwargs):
    meeting, voice, text = _make_meeting(notion, list(occupants), **kwargs)
    meeting.start()
    await meeting.wait_initialized()
    return meeting, voice, text


def _join(meeting: Meeting, voice, member, previous=None):
    voice.members.append(member)
    return meeting.handle_voice_state_update(member, voice_state(previous), voice_state(voice))


def _leave(meeting: Meeting, voice, member, destination=None):
    voice.members.remove(member)
    return meeting.handle_voice_state_update(member, voice_state(voice), voice_state(destination))


# ── Page Initialization ──────────────────────────────────────────────────────


class TestPageInitialization:
    async def test_payload_ticks_only_members_in_schema(self, notion: MagicMock):
        meeting, _, _ = await _started(notion, ["Alice", "Bob"])

        notion.fetch_schema.assert_awaited_once_with(DATABASE_ID)
        notion.create_page.assert_awaited_once_with(
            DATABASE_ID,
            {"Name": TitleValue(value="January 1st"), "Alice": CheckboxValue(value=True)},
        )
        assert meeting.page is not None
        assert meeting.page.id == "page-1"

    async def test_empty_channel_only_sets_title(self, notion: MagicMock):
        await _started(notion, [])

        _, properties = notion.create_page.await_args.args
        assert properties == {"Name": TitleValue(value="January 1st")}

    async def test_name_matching_non_checkbox_property_is_skipped(self, notion: MagicMock):
        notion.fetch_schema.return_value = DatabaseSchema(
            database_id=DATABASE_ID,
            properties={"Name": "title", "Bob": "rich_text", "Alice": "checkbox"},
        )

        meeting, _, _ = await _started(notion, ["Bob", "Alice"])

        notion.create_page.assert_awaited_once_with(
            DATABASE_ID,
            {"Name": TitleValue(value="January 1st"), "Alice": CheckboxValue(value=True)},
        )
        assert meeting.page is not None

    async def test_duplicate_display_names_collapse(self, notion: MagicMock):
        await _started(notion, ["Alice", "Alice", "Carol"])

        _, properties = notion.create_page.await_args.args
        assert set(properties) == {"Name", "Alice", "Carol"}

    async def test_start_returns_before_page_exists(self, notion: MagicMock):
        gate = asyncio.Event()

        async def slow_schema(database_id):
            await gate.wait()
            return make_schema()

        notion.fetch_schema.side_effect = slow_schema
        meeting, _, _ = _make_meeting(notion, ["Alice"])

        meeting.start()
        assert meeting.page is None

        gate.set()
        await meeting.wait_initialized()
        assert meeting.page is not None

    async def test_create_failure_leaves_meeting_without_page(self, notion: MagicMock):
        notion.create_page.side_effect = NotionError("boom", status=500)

        meeting, voice, _ = await _started(notion, ["Carol"])

        assert meeting.page is None
        assert meeting.state is MeetingState.ACTIVE

        await _join(meeting, voice, make_member("Alice", 9, GUILD))
        notion.patch_page.assert_not_awaited()

    async def test_schema_failure_skips_creation(self, notion: MagicMock):
        notion.fetch_schema.side_effect = NotionTimeoutError("timed out")

        meeting, _, _ = await _started(notion)

        notion.create_page.assert_not_awaited()
        assert meeting.page is None

    async def test_page_created_after_meeting_ended_is_dropped(self, notion: MagicMock):
        meeting, _, _ = _make_meeting(notion, ["Alice"])
        meeting.deregister()

        await meeting.initialize_page()

        assert meeting.page is None


# ── Join Events ──────────────────────────────────────────────────────────────


class TestJoin:
    async def test_join_with_matching_name_patches_once(self, notion: MagicMock):
        meeting, voice, _ = await _started(notion, [])

        await _join(meeting, voice, make_member("Alice", 7, GUILD))

        notion.patch_page.assert_awaited_once_with("page-1", {"Alice": CheckboxValue(value=True)})
        assert meeting.page.properties["Alice"]["checkbox"] is True

    async def test_join_from_other_channel_counts(self, notion: MagicMock):
        meeting, voice, _ = await _started(notion, [])
        elsewhere = make_voice_channel(777, GUILD)

        await _join(meeting, voice, make_member("Carol", 8, GUILD), previous=elsewhere)

        notion.patch_page.assert_awaited_once_with("page-1", {"Carol": CheckboxValue(value=True)})

    async def test_join_with_unknown_name_is_ignored(self, notion: MagicMock):
        meeting, voice, _ = await _started(notion, [])

        await _join(meeting, voice, make_member("Mallory", 7, GUILD))

        notion.patch_page.assert_not_awaited()

    async def test_join_other_channel_is_ignored(self, notion: MagicMock):
        meeting, _, _ = await _started(notion, [])
        elsewhere = make_voice_channel(777, GUILD)
        alice = make_member("Alice", 7, GUILD)

        await meeting.handle_voice_state_update(alice, voice_state(None), voice_state(elsewhere))

        notion.patch_page.assert_not_awaited()

    async def test_state_change_within_channel_is_ignored(self, notion: MagicMock):
        meeting, voice, _ = await _started(notion, ["Alice"])
        alice = voice.members[0]

        await meeting.handle_voice_state_update(alice, voice_state(voice), voice_state(voice))

        notion.patch_page.assert_not_awaited()

    async def test_patch_failure_is_swallowed(self, notion: MagicMock):
        meeting, voice, text = await _started(notion, [])
        notion.patch_page.side_effect = NotionError("rate limited", status=429)
        page_before = meeting.page

        await _join(meeting, voice, make_member("Alice", 7, GUILD))

        assert meeting.page is page_before
        assert meeting.is_active
        text.send.assert_not_awaited()

    async def test_patches_apply_one_at_a_time(self, notion: MagicMock):
        meeting, voice, _ = await _started(notion, [])
        in_flight = 0
        peak = 0

        async def slow_patch(page_id, properties):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return make_page(**{name: True for name in properties})

        notion.patch_page.side_effect = slow_patch

        await asyncio.gather(
            _join(meeting, voice, make_member("Alice", 7, GUILD)),
            _join(meeting, voice, make_member("Carol", 8, GUILD)),
        )

        assert notion.patch_page.await_count == 2
        assert peak == 1


# ── Leave Events ─────────────────────────────────────────────────────────────


class TestLeave:
    async def test_last_leave_ends_meeting(self, notion: MagicMock):
        meeting, voice, text = await _started(notion, ["Alice"])

        await _leave(meeting, voice, voice.members[0])

        assert meeting.state is MeetingState.DEAD
        assert meeting.voice_channel is None
        assert meeting.page is None
        assert sent_titles(text) == ["Meeting ended"]
        notion.aclose.assert_awaited_once()

    async def test_move_away_counts_as_leave(self, notion: MagicMock):
        meeting, voice, text = await _started(notion, ["Alice"])
        elsewhere = make_voice_channel(777, GUILD)

        await _leave(meeting, voice, voice.members[0], destination=elsewhere)

        assert meeting.state is MeetingState.DEAD
        assert sent_titles(text) == ["Meeting ended"]

    async def test_leave_with_others_present_changes_nothing(self, notion: MagicMock):
        meeting, voice, text = await _started(notion, ["Alice", "Carol"])

        await _leave(meeting, voice, voice.members[0])

        assert meeting.is_active
        text.send.assert_not_awaited()
        # Attendance is write-once-true: leaving never clears a checkbox
        notion.patch_page.assert_not_awaited()

    async def test_events_after_end_are_ignored(self, notion: MagicMock):
        meeting, voice, text = await _started(notion, ["Alice"])
        alice = voice.members[0]
        await _leave(meeting, voice, alice)

        await _join(meeting, voice, alice)
        await _leave(meeting, voice, alice)

        notion.patch_page.assert_not_awaited()
        assert meeting.page is None
        assert sent_titles(text) == ["Meeting ended"]

    async def test_concurrent_last_leaves_notify_once(self, notion: MagicMock):
        meeting, voice, text = await _started(notion, ["Alice", "Carol"])
        alice, carol = voice.members
        voice.members.clear()

        await asyncio.gather(
            meeting.handle_voice_state_update(alice, voice_state(voice), voice_state(None)),
            meeting.handle_voice_state_update(carol, voice_state(voice), voice_state(None)),
        )

        assert sent_titles(text) == ["Meeting ended"]


# ── Page Deleted ─────────────────────────────────────────────────────────────


class TestPageDeleted:
    async def test_not_found_ends_meeting_with_notice(self, notion: MagicMock):
        on_deregister = MagicMock()
        meeting, voice, text = await _started(notion, [], on_deregister=on_deregister)
        notion.patch_page.side_effect = PageNotFoundError("gone", status=404)

        await _join(meeting, voice, make_member("Alice", 7, GUILD))

        assert meeting.state is MeetingState.DEAD
        assert sent_titles(text) == ["Notion page deleted"]
        on_deregister.assert_called_once_with(meeting, EndReason.PAGE_DELETED)

    async def test_no_patches_after_not_found(self, notion: MagicMock):
        meeting, voice, text = await _started(notion, [])
        notion.patch_page.side_effect = PageNotFoundError("gone", status=404)

        await _join(meeting, voice, make_member("Alice", 7, GUILD))
        await _join(meeting, voice, make_member("Carol", 8, GUILD))

        assert notion.patch_page.await_count == 1
        assert sent_titles(text) == ["Notion page deleted"]

    async def test_not_found_after_channel_emptied_is_contained(self, notion: MagicMock):
        meeting, voice, text = await _started(notion, ["Carol"])
        carol = voice.members[0]
        alice = make_member("Alice", 7, GUILD)
        gate = asyncio.Event()

        async def deleted_after_gate(page_id, properties):
            await gate.wait()
            raise PageNotFoundError("gone", status=404)

        notion.patch_page.side_effect = deleted_after_gate
        join = asyncio.create_task(_join(meeting, voice, alice))
        await asyncio.sleep(0)

        await _leave(meeting, voice, alice)
        await _leave(meeting, voice, carol)
        gate.set()
        await join

        assert join.exception() is None
        assert meeting.state is MeetingState.DEAD
        notion.patch_page.assert_awaited_once_with("page-1", {"Alice": CheckboxValue(value=True)})
        assert sent_titles(text) == ["Meeting ended"]

    async def test_update_without_page_is_noop(self, notion: MagicMock):
        notion.create_page.side_effect = NotionError("boom")
        meeting, _, _ = await _started(notion, [])

        await meeting.update_remote_attribute("Alice", True)

        notion.patch_page.assert_not_awaited()


# ── Deregistration ───────────────────────────────────────────────────────────


class TestDeregister:
    async def test_deregister_is_idempotent(self, notion: MagicMock):
        on_deregister = MagicMock()
        meeting, _, text = await _started(notion, ["Alice"], on_deregister=on_deregister)

        assert meeting.deregister() is True
        assert meeting.deregister() is False

        on_deregister.assert_called_once_with(meeting, EndReason.MANUAL)
        text.send.assert_not_awaited()

    def test_accessors(self, notion: MagicMock):
        meeting, voice, _ = _make_meeting(notion)

        assert meeting.voice_channel is voice
        assert meeting.database_id == DATABASE_ID
        assert meeting.guild_id == GUILD.id
        assert meeting.channel_id == 555
        assert meeting.state is MeetingState.ACTIVE

    async def test_aclose_cancels_pending_initialization(self, notion: MagicMock):
        gate = asyncio.Event()

        async def never(database_id):
            await gate.wait()

        notion.fetch_schema.side_effect = never
        meeting, _, _ = _make_meeting(notion)
        task = meeting.start()
        await asyncio.sleep(0)

        meeting.deregister()
        await meeting.aclose()
        await asyncio.wait([task])

        assert task.cancelled()
        notion.create_page.assert_not_awaited()
