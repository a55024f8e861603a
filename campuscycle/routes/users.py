from fastapi import APIRouter, Depends
from typing import List
from ..schemas.users import UserOut, ProfileUpdateIn, PasswordUpdateIn, ActionOkOut
from ..schemas.listings import ListingOut
from ..crud import get_user_by_id, update_profile, change_password, list_user_listings
from ..auth import get_current_user
from ..errors import NotFound

router = APIRouter()


@router.get('/me', response_model=UserOut)
async def me(current_user: dict = Depends(get_current_user)):
    user = await get_user_by_id(current_user['id'])
    if not user:
        raise NotFound('User not found')
    return user


@router.patch('/me', response_model=UserOut)
async def update_me(payload: ProfileUpdateIn, current_user: dict = Depends(get_current_user)):
    return await update_profile(current_user['id'], payload.model_dump(exclude_unset=True))


@router.post('/me/password', response_model=ActionOkOut)
async def update_password(payload: PasswordUpdateIn, current_user: dict = Depends(get_current_user)):
    await change_password(current_user['id'], payload.current_password, payload.new_password)
    return {'ok': True, 'message': 'Password updated'}


@router.get('/me/listings', response_model=List[ListingOut])
async def my_listings(current_user: dict = Depends(get_current_user)):
    return await list_user_listings(current_user['id'])
