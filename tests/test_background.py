import asyncio
import logging

from singlebrief.background import NotificationQueue


async def test_failed_notification_is_logged_with_its_label(caplog):
    queue = NotificationQueue()

    async def _broken():
        raise RuntimeError("smtp down")

    async def _fine():
        await asyncio.sleep(0)

    with caplog.at_level(logging.ERROR, logger="singlebrief.background"):
        queue.submit(_broken(), "completion alert for response 7")
        queue.submit(_fine(), "completion alert for response 8")
        assert len(queue) == 2
        assert await queue.drain(timeout=5) == 0

    assert len(queue) == 0
    assert [r.getMessage() for r in caplog.records] == ["Notification completion alert for response 7 failed"]


async def test_drain_reports_jobs_still_running():
    queue = NotificationQueue()
    release = asyncio.Event()

    queue.submit(release.wait(), "slow")
    assert await queue.drain(timeout=0.01) == 1

    release.set()
    assert await queue.drain(timeout=5) == 0
