# services/recipients.py
from typing import Iterable, Optional

from fastapi import HTTPException

from singlebrief.models import Team
from singlebrief.utils import dedupe_emails, is_valid_email, normalize_email, split_emails


def team_member_emails(team: Team) -> list[str]:
    """Emails of a team, preferring the detailed member records over the legacy list."""
    details = [d for d in (team.member_details or []) if isinstance(d, dict)]
    if details:
        return [d.get("email") or "" for d in details]
    return list(team.members or [])


def resolve_recipients(
    teams: Iterable[Team] = (),
    selected_members: Optional[Iterable[str]] = None,
    manual_members: Optional[Iterable] = None,
    custom_emails: str | list[str] | None = None,
) -> list[str]:
    """
    Build the recipient list for a brief: members of the selected teams
    (narrowed to `selected_members` where any of them belong to a team),
    then manual entries, then free-form addresses. Normalised, deduplicated,
    first-seen order. Raises 400 on an empty result or invalid addresses.
    """
    picked = {normalize_email(e) for e in (selected_members or []) if normalize_email(e)}
    collected: list[str] = []

    for team in teams:
        emails = [normalize_email(e) for e in team_member_emails(team)]
        chosen = [e for e in emails if e in picked]
        collected.extend(chosen if chosen else emails)

    for m in manual_members or []:
        email = m.get("email") if isinstance(m, dict) else getattr(m, "email", "")
        if (email or "").strip():
            collected.append(email)

    collected.extend(split_emails(custom_emails))

    recipients = dedupe_emails(collected)
    if not recipients:
        raise HTTPException(400, "Please select a team or enter email addresses.")

    invalid = [e for e in recipients if not is_valid_email(e)]
    if invalid:
        raise HTTPException(400, f"Invalid email address(es): {', '.join(invalid)}")
    return recipients


__all__ = ["resolve_recipients", "team_member_emails"]
