# singlebrief/services/scheduler.py
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from singlebrief.database import async_session_maker
from singlebrief.services.briefs import expire_overdue, send_deadline_reminders
from singlebrief.settings.config import settings

scheduler: AsyncIOScheduler | None = None
logger = logging.getLogger(__name__)


def _pick_tz(name: str | None):
    for candidate in (name, "Etc/UTC"):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return None  # let APScheduler use its default


def _reminder_trigger(tz) -> CronTrigger:
    # REMINDER_CRON in crontab format; default daily 09:00
    cron_expr = (settings.REMINDER_CRON or "").strip()
    if cron_expr:
        try:
            trigger = CronTrigger.from_crontab(cron_expr, timezone=tz)
            logger.info("Deadline reminders using REMINDER_CRON='%s' tz=%s", cron_expr, settings.APP_TZ)
            return trigger
        except ValueError:
            logger.warning("Invalid REMINDER_CRON %r; falling back to daily 09:00", cron_expr)
    return CronTrigger(hour=9, minute=0, timezone=tz)


def start_scheduler() -> AsyncIOScheduler:
    global scheduler
    if scheduler:
        return scheduler
    tz = _pick_tz(settings.APP_TZ)
    scheduler = AsyncIOScheduler(timezone=tz)
    scheduler.add_job(job_expire_overdue, IntervalTrigger(hours=1), id="expire_overdue", replace_existing=True)
    scheduler.add_job(job_deadline_reminders, _reminder_trigger(tz), id="deadline_reminders", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started")
    return scheduler


def stop_scheduler() -> None:
    global scheduler
    if scheduler:
        scheduler.shutdown(wait=False)
        scheduler = None


async def job_expire_overdue():
    async with async_session_maker() as db:
        expired = await expire_overdue(db)
    if expired:
        logger.info("Expired %d overdue responses", expired)


async def job_deadline_reminders():
    async with async_session_maker() as db:
        sent = await send_deadline_reminders(db)
    logger.info("Deadline reminder scan done: %d owners emailed", sent)
