"""Token links handed to recipients. No login; the token is the credential."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from singlebrief.database import get_db
from singlebrief.models import Response
from singlebrief.schemas import ConversationMessage, RespondentView
from singlebrief.services import briefs as svc

router = APIRouter(prefix="/r", tags=["respond"])


def _view(resp: Response) -> RespondentView:
    return RespondentView(
        brief_title=resp.brief.title,
        brief_prompt=resp.brief.prompt,
        deadline=resp.brief.deadline,
        recipient_email=resp.recipient_email,
        status=resp.status,
        conversation=list(resp.conversation or []),
        started_at=resp.started_at,
        completed_at=resp.completed_at,
    )


@router.get("/{token}", response_model=RespondentView)
async def open_response(token: str, db: AsyncSession = Depends(get_db)):
    return _view(await svc.get_by_token(db, token))


@router.post("/{token}/messages", response_model=RespondentView)
async def post_message(token: str, payload: ConversationMessage, db: AsyncSession = Depends(get_db)):
    return _view(await svc.append_message(db, token, payload.role, payload.content))


@router.post("/{token}/complete", response_model=RespondentView)
async def complete(token: str, db: AsyncSession = Depends(get_db)):
    return _view(await svc.complete_response(db, token))


__all__ = ["router"]
