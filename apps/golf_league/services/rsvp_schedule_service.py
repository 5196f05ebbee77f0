"""
Scheduled RSVP sends.

Admins can schedule an RSVP send for later. A background worker polls for due
schedules and, for each one, queues messages to the event's invited players
who have not been sent an invite yet, then dispatches them.
"""

import os
import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from golf_league.database import db
from golf_league.database.models import (
    EventPlayer,
    EventPlayerStatus,
    RsvpSchedule,
    RsvpTemplate,
    TemplateChannel,
)
from golf_league.services import event_access, rsvp_service
from golf_league.services.errors import NotFoundError
from golf_league.utils.constants import DEFAULT_SCHEDULE_POLL_SECONDS
from golf_league.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# How often the worker checks for due schedules (seconds)
POLL_INTERVAL_SECONDS = int(os.getenv("RSVP_SCHEDULE_POLL_SECONDS", str(DEFAULT_SCHEDULE_POLL_SECONDS)))


def schedule_to_dict(schedule: RsvpSchedule) -> Dict:
    return {
        "id": schedule.id,
        "event_id": schedule.event_id,
        "template_id": schedule.template_id,
        "channel": schedule.channel.value,
        "scheduled_for": schedule.scheduled_for.isoformat() if schedule.scheduled_for else None,
        "created_by": schedule.created_by,
        "sent_at": schedule.sent_at.isoformat() if schedule.sent_at else None,
        "error_message": schedule.error_message,
    }


async def create_schedule(
    session: AsyncSession,
    event_id: int,
    template_id: int,
    channel: str,
    scheduled_for: datetime,
    created_by: Optional[str] = None,
) -> Dict:
    """Schedule an RSVP send for an event."""
    await event_access.get_event(session, event_id)
    if await session.get(RsvpTemplate, template_id) is None:
        raise ValueError("Please select a template")
    try:
        channel_value = TemplateChannel(channel)
    except ValueError:
        raise ValueError(f"Invalid channel '{channel}'. Must be one of: email, sms, both")
    if scheduled_for.tzinfo is None:
        raise ValueError("scheduled_for must include a timezone")

    schedule = RsvpSchedule(
        event_id=event_id,
        template_id=template_id,
        channel=channel_value,
        scheduled_for=scheduled_for,
        created_by=created_by,
    )
    session.add(schedule)
    await session.commit()
    await session.refresh(schedule)
    return schedule_to_dict(schedule)


async def list_schedules(session: AsyncSession, event_id: int) -> List[Dict]:
    result = await session.execute(
        select(RsvpSchedule)
        .where(RsvpSchedule.event_id == event_id)
        .order_by(RsvpSchedule.scheduled_for.asc())
    )
    return [schedule_to_dict(s) for s in result.scalars().all()]


async def delete_schedule(session: AsyncSession, schedule_id: int) -> bool:
    """Cancel a schedule that has not been sent."""
    schedule = await session.get(RsvpSchedule, schedule_id)
    if schedule is None:
        raise NotFoundError("Schedule not found")
    if schedule.sent_at is not None:
        raise ValueError("Schedule has already been sent")
    await session.delete(schedule)
    await session.commit()
    return True


async def _pending_invitee_ids(session: AsyncSession, event_id: int) -> List[int]:
    """Invited players who have not been sent an invite yet."""
    result = await session.execute(
        select(EventPlayer.id).where(
            EventPlayer.event_id == event_id,
            EventPlayer.status == EventPlayerStatus.INVITED,
            EventPlayer.invite_sent_at.is_(None),
        ).order_by(EventPlayer.id.asc())
    )
    return list(result.scalars().all())


class RsvpScheduleWorker:
    """Background service that sends scheduled RSVPs when they come due."""

    def __init__(self, session_factory=None, delay_seconds: Optional[float] = None):
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._session_factory = session_factory
        self._delay_seconds = delay_seconds

    @property
    def session_factory(self):
        return self._session_factory or db.AsyncSessionLocal

    def start(self) -> None:
        """Start the background worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("RSVP schedule worker started")

    def stop(self) -> None:
        """Stop the background worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("RSVP schedule worker stopped")

    async def _poll_loop(self) -> None:
        """Main loop: process due schedules, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.process_due_schedules()
            except Exception as e:
                logger.error(f"Error in RSVP schedule worker: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=POLL_INTERVAL_SECONDS)
                break
            except asyncio.TimeoutError:
                pass

    async def process_due_schedules(self) -> int:
        """
        Send every schedule whose time has passed. Returns how many were processed.

        Each schedule runs in its own session so one failure cannot disturb
        the others in the same poll.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(RsvpSchedule.id).where(
                    and_(
                        RsvpSchedule.sent_at.is_(None),
                        RsvpSchedule.error_message.is_(None),
                        RsvpSchedule.scheduled_for <= utcnow(),
                    )
                ).order_by(RsvpSchedule.scheduled_for.asc(), RsvpSchedule.id.asc())
            )
            due_ids = list(result.scalars().all())
        if not due_ids:
            return 0

        logger.info(f"Found {len(due_ids)} due RSVP schedule(s)")
        for schedule_id in due_ids:
            await self._run_schedule(schedule_id)
        return len(due_ids)

    async def _run_schedule(self, schedule_id: int) -> None:
        async with self.session_factory() as session:
            schedule = await session.get(RsvpSchedule, schedule_id)
            if schedule is None or schedule.sent_at is not None:
                return
            event_id, template_id, channel = schedule.event_id, schedule.template_id, schedule.channel
            try:
                invitee_ids = await _pending_invitee_ids(session, event_id)
                message_ids = []
                if invitee_ids:
                    message_ids = await rsvp_service.queue_messages(
                        session, event_id, invitee_ids, template_id, channel
                    )
                schedule.sent_at = utcnow()
                await session.commit()
            except Exception as e:
                logger.error(f"RSVP schedule {schedule_id} failed: {e}", exc_info=True)
                await session.rollback()
                await _record_failure(session, schedule_id, str(e))
                return

        if not message_ids:
            return
        # Already marked sent; unsent messages stay pending for a manual resend
        try:
            await rsvp_service.dispatch_messages(
                message_ids,
                delay_seconds=self._delay_seconds,
                session_factory=self.session_factory,
            )
        except Exception as e:
            logger.error(f"RSVP schedule {schedule_id} dispatch failed: {e}", exc_info=True)


async def _record_failure(session: AsyncSession, schedule_id: int, error: str) -> None:
    await session.execute(
        update(RsvpSchedule).where(RsvpSchedule.id == schedule_id).values(error_message=error)
    )
    await session.commit()


# Global singleton
_schedule_worker = RsvpScheduleWorker()


def get_rsvp_schedule_worker() -> RsvpScheduleWorker:
    """Get the global RSVP schedule worker instance."""
    return _schedule_worker
