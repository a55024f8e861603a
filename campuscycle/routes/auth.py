from fastapi import APIRouter, Header, Query
from typing import Optional
from ..schemas.users import RegisterIn, LoginIn, RefreshIn, TokenOut, AccessTokenOut, MeOut, ActionOkOut
from ..crud import create_user, verify_email, authenticate_user, refresh_access_token, get_user_by_id
from ..auth import bearer_token, authenticate_token
from ..errors import ValidationError
from ..mailer import send_verification_email
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post('/register', response_model=ActionOkOut, status_code=201)
async def register(payload: RegisterIn):
    user = await create_user(payload)
    await send_verification_email(user)
    logger.info({'msg': 'user_registered', 'user_id': user.id, 'campus_id': user.campus_id})
    return {'ok': True, 'message': 'Registration successful. Please check your email to verify your account.'}


@router.get('/verify-email', response_model=ActionOkOut)
async def verify(token: Optional[str] = Query(None)):
    if not token:
        raise ValidationError('Token required')
    user = await verify_email(token)
    logger.info({'msg': 'email_verified', 'user_id': user.id})
    return {'ok': True, 'message': 'Email verified successfully'}


@router.post('/login', response_model=TokenOut)
async def login(payload: LoginIn):
    token = await authenticate_user(payload.email, payload.password)
    logger.info({'msg': 'user_logged_in', 'user_id': token['user'].id})
    return token


@router.post('/refresh', response_model=AccessTokenOut)
async def refresh(payload: RefreshIn):
    return await refresh_access_token(payload.refresh_token)


@router.post('/logout', response_model=ActionOkOut)
async def logout():
    # tokens are stateless; the client discards them
    return {'ok': True}


@router.get('/me', response_model=MeOut)
async def me(authorization: Optional[str] = Header(None)):
    principal = await authenticate_token(bearer_token(authorization))
    if not principal:
        return {'user': None}
    return {'user': await get_user_by_id(principal['id'])}
