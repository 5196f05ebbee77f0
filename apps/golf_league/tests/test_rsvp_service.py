"""
Tests for the RSVP messaging pipeline: templates, queueing, dispatch,
delivery status and inbound responses.
"""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock
from sqlalchemy import select

from golf_league.database.models import (
    EventPlayer,
    EventPlayerStatus,
    Group,
    GroupAssignment,
    MessageStatus,
    RsvpMessage,
    RsvpTemplate,
    TemplateChannel,
)
from golf_league.services import email_service, rsvp_service, sms_service
from golf_league.services.email_service import TransportResult
from golf_league.services.errors import NotFoundError, TransportUnavailableError


@pytest_asyncio.fixture
async def template(db_session):
    row = RsvpTemplate(
        name="Weekly invite",
        channel=TemplateChannel.BOTH,
        subject="Golf on {{event_date}}",
        body="Hi {{player_name}}, {{course_name}} at {{first_tee_time}}. Reply: {{rsvp_link}}",
        is_default=True,
    )
    db_session.add(row)
    await db_session.commit()
    return row


@pytest_asyncio.fixture
async def invited(db_session, make_event, make_players):
    """Event with three invited players: full contact, email only, phone only."""
    event_row = await make_event()
    full = (await make_players(1, prefix="Full"))[0]
    email_only = (await make_players(1, prefix="Mail", phone=False))[0]
    phone_only = (await make_players(1, prefix="Text", email=False))[0]
    rows = [
        EventPlayer(event_id=event_row.id, player_id=p.id, status=EventPlayerStatus.INVITED)
        for p in (full, email_only, phone_only)
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return event_row, rows


class TestRenderTemplate:

    def test_replaces_known_variables(self):
        assert rsvp_service.render_template("Hi {{player_name}}!", {"player_name": "Ann"}) == "Hi Ann!"

    def test_unknown_variables_left_as_is(self):
        assert rsvp_service.render_template("{{nope}} {{player_name}}", {"player_name": "Ann"}) == "{{nope}} Ann"

    def test_values_are_not_rescanned(self):
        rendered = rsvp_service.render_template("{{a}}", {"a": "{{b}}", "b": "x"})
        assert rendered == "{{b}}"

    def test_unclosed_placeholder(self):
        assert rsvp_service.render_template("Hi {{player_name", {"player_name": "Ann"}) == "Hi {{player_name"

    def test_placeholder_after_stray_braces(self):
        assert rsvp_service.render_template("{{x{{player_name}}", {"player_name": "Ann"}) == "{{xAnn"


class TestTemplates:

    @pytest.mark.asyncio
    async def test_sms_template_drops_subject(self, db_session):
        created = await rsvp_service.create_template(
            db_session, name="Text", channel="sms", body="Reply {{rsvp_link}}", subject="ignored"
        )
        assert created["subject"] is None

    @pytest.mark.asyncio
    async def test_email_template_requires_subject(self, db_session):
        with pytest.raises(ValueError, match="Subject is required"):
            await rsvp_service.create_template(db_session, name="Mail", channel="email", body="Hello")

    @pytest.mark.asyncio
    async def test_new_default_clears_previous_default(self, db_session, template):
        await rsvp_service.create_template(
            db_session, name="New default", channel="both", subject="S", body="B", is_default=True
        )
        await db_session.refresh(template)
        assert template.is_default is False
        default = await rsvp_service.get_default_template(db_session, "both")
        assert default["name"] == "New default"

    @pytest.mark.asyncio
    async def test_default_for_channel_falls_back_to_both(self, db_session, template):
        default = await rsvp_service.get_default_template(db_session, "sms")
        assert default["id"] == template.id

    @pytest.mark.asyncio
    async def test_used_template_cannot_be_deleted(self, db_session, template, invited):
        event_row, rows = invited
        await rsvp_service.queue_messages(db_session, event_row.id, [rows[0].id], template.id, "email")
        with pytest.raises(ValueError, match="cannot be deleted"):
            await rsvp_service.delete_template(db_session, template.id)


class TestQueueMessages:

    @pytest.mark.asyncio
    async def test_both_channels_skip_missing_contacts(self, db_session, template, invited):
        event_row, rows = invited
        ids = await rsvp_service.queue_messages(db_session, event_row.id, [r.id for r in rows], template.id, "both")

        # full: email + sms, email-only: email, phone-only: sms
        assert len(ids) == 4
        messages = (await db_session.execute(select(RsvpMessage))).scalars().all()
        assert {m.status for m in messages} == {MessageStatus.PENDING}
        tokens = {r.id: r.rsvp_token for r in rows}
        assert all(m.response_token == tokens[m.event_player_id] for m in messages)

    @pytest.mark.asyncio
    async def test_sms_to_email_only_players(self, db_session, template, invited):
        event_row, rows = invited
        with pytest.raises(ValueError, match="No valid contact information for selected players."):
            await rsvp_service.queue_messages(db_session, event_row.id, [rows[1].id], template.id, "sms")

    @pytest.mark.asyncio
    async def test_no_players_selected(self, db_session, template, invited):
        event_row, _ = invited
        with pytest.raises(ValueError, match="No players selected"):
            await rsvp_service.queue_messages(db_session, event_row.id, [], template.id, "email")

    @pytest.mark.asyncio
    async def test_missing_template(self, db_session, invited):
        event_row, rows = invited
        with pytest.raises(ValueError, match="Please select a template"):
            await rsvp_service.queue_messages(db_session, event_row.id, [rows[0].id], 999, "email")


class TestDispatch:

    @pytest.mark.asyncio
    async def test_dispatch_marks_sent_and_failed(self, db_session, template, invited, monkeypatch):
        event_row, rows = invited
        send_email = AsyncMock(return_value=TransportResult(success=True, external_id="sg-1"))
        send_sms = AsyncMock(return_value=TransportResult(success=False, error="Unreachable number"))
        monkeypatch.setattr(email_service, "send_email", send_email)
        monkeypatch.setattr(sms_service, "send_sms", send_sms)

        ids = await rsvp_service.queue_messages(db_session, event_row.id, [rows[0].id], template.id, "both")
        results = await rsvp_service.dispatch_messages(ids, delay_seconds=0)

        assert results["sent"] == 1
        assert results["failed"] == 1
        by_channel = {
            m.channel.value: m for m in (await db_session.execute(select(RsvpMessage))).scalars().all()
        }
        await db_session.refresh(by_channel["email"])
        await db_session.refresh(by_channel["sms"])
        assert by_channel["email"].status == MessageStatus.SENT
        assert by_channel["email"].external_id == "sg-1"
        assert by_channel["sms"].status == MessageStatus.FAILED
        assert by_channel["sms"].error_message == "Unreachable number"

        # Rendered with the player's link and display tee time
        to, subject, body = send_email.call_args.args[:3]
        assert subject == "Golf on Saturday, June 7"
        assert "8:00 AM" in body
        assert f"/rsvp/{rows[0].rsvp_token}" in body

        await db_session.refresh(rows[0])
        assert rows[0].invite_sent_at is not None

    @pytest.mark.asyncio
    async def test_unavailable_transport_leaves_pending(self, db_session, template, invited, monkeypatch):
        event_row, rows = invited
        monkeypatch.setattr(
            email_service, "send_email", AsyncMock(side_effect=TransportUnavailableError("Email is disabled"))
        )

        ids = await rsvp_service.queue_messages(db_session, event_row.id, [rows[1].id], template.id, "email")
        results = await rsvp_service.dispatch_messages(ids, delay_seconds=0)

        assert results == {"sent": 0, "failed": 0, "skipped": 1, "errors": results["errors"]}
        message = (await db_session.execute(select(RsvpMessage))).scalar_one()
        assert message.status == MessageStatus.PENDING

    @pytest.mark.asyncio
    async def test_dispatch_pauses_between_sends(self, db_session, template, invited, monkeypatch):
        event_row, rows = invited
        monkeypatch.setattr(email_service, "send_email", AsyncMock(return_value=TransportResult(success=True)))
        sleep = AsyncMock()
        monkeypatch.setattr(rsvp_service.asyncio, "sleep", sleep)

        ids = await rsvp_service.queue_messages(
            db_session, event_row.id, [rows[0].id, rows[1].id], template.id, "email"
        )
        await rsvp_service.dispatch_messages(ids, delay_seconds=1.5)

        # One pause between two sends, none before the first
        pauses = [c for c in sleep.await_args_list if c.args == (1.5,)]
        assert len(pauses) == 1


class TestDeliveryStatus:

    @pytest.mark.asyncio
    async def test_transitions(self, db_session, template, invited):
        event_row, rows = invited
        (message_id,) = await rsvp_service.queue_messages(db_session, event_row.id, [rows[1].id], template.id, "email")

        sent = await rsvp_service.record_delivery_status(db_session, message_id, "sent")
        assert sent["status"] == "sent"
        assert sent["sent_at"] is not None

        delivered = await rsvp_service.record_delivery_status(db_session, message_id, "delivered")
        assert delivered["status"] == "delivered"

        with pytest.raises(ValueError, match="Cannot change message status"):
            await rsvp_service.record_delivery_status(db_session, message_id, "pending")

    @pytest.mark.asyncio
    async def test_unknown_message(self, db_session):
        with pytest.raises(NotFoundError):
            await rsvp_service.record_delivery_status(db_session, 999, "sent")


class TestResolveRsvp:

    @pytest.mark.asyncio
    async def test_success_then_already_responded(self, db_session, invited):
        _, rows = invited
        token = rows[0].rsvp_token

        first = await rsvp_service.resolve_rsvp(db_session, token, "yes")
        assert first["result"] == "success"
        assert first["status"] == "yes"
        assert first["eventDetails"]["date"] == "Saturday, June 7, 2025"
        assert first["eventDetails"]["teeTime"] == "8:00 AM"

        second = await rsvp_service.resolve_rsvp(db_session, token, "no")
        assert second["result"] == "already_responded"
        assert second["status"] == "yes"
        assert "Your current status is: YES." in second["message"]

        await db_session.refresh(rows[0])
        assert rows[0].status == EventPlayerStatus.YES

    @pytest.mark.asyncio
    async def test_invalid_token(self, db_session):
        result = await rsvp_service.resolve_rsvp(db_session, "not-a-token", "yes")
        assert result["result"] == "invalid"
        assert result["message"] == "This RSVP link is invalid or has expired. Please contact the event organizer."

    @pytest.mark.asyncio
    async def test_bad_response(self, db_session, invited):
        _, rows = invited
        result = await rsvp_service.resolve_rsvp(db_session, rows[0].rsvp_token, "maybe")
        assert result["result"] == "error"

    @pytest.mark.asyncio
    async def test_missing_response(self, db_session, invited):
        _, rows = invited
        result = await rsvp_service.resolve_rsvp(db_session, rows[0].rsvp_token, None)
        assert result == {"result": "error", "message": "Missing token or response parameter"}

    @pytest.mark.asyncio
    async def test_locked_event(self, db_session, invited):
        event_row, rows = invited
        event_row.is_locked = True
        await db_session.commit()

        result = await rsvp_service.resolve_rsvp(db_session, rows[0].rsvp_token, "yes")
        assert result["result"] == "error"
        await db_session.refresh(rows[0])
        assert rows[0].status == EventPlayerStatus.INVITED

    @pytest.mark.asyncio
    async def test_declining_frees_tee_sheet_slot(self, db_session, invited):
        event_row, rows = invited
        rows[0].status = EventPlayerStatus.PLAYING
        group = Group(event_id=event_row.id, group_index=1, tee_time="08:00")
        db_session.add(group)
        await db_session.flush()
        db_session.add(GroupAssignment(group_id=group.id, player_id=rows[0].player_id, position=1))
        await db_session.commit()

        result = await rsvp_service.resolve_rsvp(db_session, rows[0].rsvp_token, "no")
        assert result["result"] == "success"
        assert (await db_session.execute(select(GroupAssignment))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_response_stamps_messages(self, db_session, template, invited):
        event_row, rows = invited
        await rsvp_service.queue_messages(db_session, event_row.id, [rows[0].id], template.id, "both")

        await rsvp_service.resolve_rsvp(db_session, rows[0].rsvp_token, "no")
        messages = (await db_session.execute(select(RsvpMessage))).scalars().all()
        assert all(m.responded_at is not None for m in messages)
