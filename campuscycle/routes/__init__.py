from fastapi import APIRouter
from .auth import router as auth_router
from .users import router as users_router
from .campuses import router as campuses_router
from .listings import router as listings_router
from .conversations import router as conversations_router
from .blocks import router as blocks_router
from .reports import router as reports_router
from .ws import router as ws_router

router = APIRouter()
router.include_router(auth_router, prefix='/auth', tags=['auth'])
router.include_router(users_router, prefix='/users', tags=['users'])
router.include_router(campuses_router, prefix='/campuses', tags=['campuses'])
router.include_router(listings_router, prefix='/listings', tags=['listings'])
router.include_router(conversations_router, prefix='/conversations', tags=['conversations'])
router.include_router(blocks_router, prefix='/blocks', tags=['blocks'])
router.include_router(reports_router, prefix='/reports', tags=['reports'])
router.include_router(ws_router, prefix='/ws', tags=['ws'])
