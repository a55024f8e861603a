from fastapi import APIRouter, Depends, Response
from typing import List
from ..schemas.moderation import BlockIn, BlockOut
from ..crud import block_user, unblock_user, list_blocks
from ..auth import get_current_user

router = APIRouter()


@router.post('', response_model=BlockOut, status_code=201)
async def block(payload: BlockIn, current_user: dict = Depends(get_current_user)):
    return await block_user(current_user, payload.user_id)


@router.delete('/{user_id}', status_code=204)
async def unblock(user_id: int, current_user: dict = Depends(get_current_user)):
    await unblock_user(current_user['id'], user_id)
    return Response(status_code=204)


@router.get('', response_model=List[BlockOut])
async def blocked_users(current_user: dict = Depends(get_current_user)):
    return await list_blocks(current_user['id'])
