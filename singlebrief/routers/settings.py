from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from singlebrief.database import get_db
from singlebrief.schemas import PasswordChange, ProfileRead, ProfileUpdate, TwoFactorEnable, TwoFactorSetupRead
from singlebrief.services import profiles as svc
from singlebrief.users import get_user_manager
from singlebrief.utils import require_authenticated_user

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/profile", response_model=ProfileRead)
async def get_profile(user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    prof = await svc.ensure_profile(db, user)
    await db.commit()
    return svc.profile_payload(prof)


@router.put("/profile", response_model=ProfileRead)
async def update_profile(
    payload: ProfileUpdate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    prof = await svc.update_profile(
        db, user,
        name=payload.name,
        email=payload.email,
        avatar_url=payload.avatar_url,
        notification_preferences=payload.notification_preferences,
    )
    return svc.profile_payload(prof)


@router.post("/avatar", response_model=ProfileRead)
async def upload_avatar(
    avatar: UploadFile = File(...),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    prof = await svc.upload_avatar(db, user, avatar)
    return svc.profile_payload(prof)


@router.post("/password")
async def change_password(
    payload: PasswordChange,
    user=Depends(require_authenticated_user),
    user_manager=Depends(get_user_manager),
):
    await svc.change_password(
        user_manager, user, payload.current_password, payload.new_password, payload.confirm_password
    )
    return {"ok": True}


@router.post("/2fa/setup", response_model=TwoFactorSetupRead)
async def two_factor_setup(user=Depends(require_authenticated_user)):
    return svc.begin_two_factor(user)


@router.post("/2fa/enable", response_model=ProfileRead)
async def two_factor_enable(
    payload: TwoFactorEnable,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    prof = await svc.enable_two_factor(db, user, payload.secret, payload.code)
    return svc.profile_payload(prof)


@router.post("/2fa/disable", response_model=ProfileRead)
async def two_factor_disable(user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    prof = await svc.disable_two_factor(db, user)
    return svc.profile_payload(prof)


@router.delete("/account", status_code=204)
async def delete_account(user=Depends(require_authenticated_user), user_manager=Depends(get_user_manager)):
    await svc.delete_account(user_manager, user)


__all__ = ["router"]
