"""Cancellation notices for briefs that are archived or deleted."""

from __future__ import annotations

import logging
from typing import Any

from singlebrief.services.mailer import render_email, send_many

logger = logging.getLogger(__name__)


async def send_brief_cancellation(brief_id: Any, brief_title: str, recipients: list[str]) -> dict[str, Any]:
    """Email every recipient that the brief was cancelled.

    Per-recipient failures are recorded in ``results``; the call as a whole
    still reports ``success``.
    """
    recipients = list(recipients or [])
    logger.info(
        "Sending cancellation emails for brief: %s to %d recipients", brief_title, len(recipients)
    )

    html, text = render_email("brief_cancellation", {"brief_id": brief_id, "brief_title": brief_title})
    results = await send_many(recipients, f"Brief Cancelled: {brief_title}", text, html)

    successful = sum(1 for r in results if r["success"])
    failed = len(results) - successful
    logger.info("Email sending complete: %d successful, %d failed", successful, failed)

    return {
        "success": True,
        "briefId": brief_id,
        "briefTitle": brief_title,
        "totalRecipients": len(recipients),
        "successful": successful,
        "failed": failed,
        "results": results,
    }


__all__ = ["send_brief_cancellation"]
