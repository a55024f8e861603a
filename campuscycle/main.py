import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from .routes import router
from .core import redis_startup, init_metrics, shutdown_connections
from .errors import register_error_handlers
from .realtime import gateway
import logging
from pythonjsonlogger import jsonlogger

# setup structured logging
logger = logging.getLogger('campuscycle')
handler = logging.StreamHandler()
formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
handler.setFormatter(formatter)
logger.addHandler(handler)
logger.setLevel(os.getenv('LOG_LEVEL', 'INFO').upper())

FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:3000')

app = FastAPI(title="CampusCycle API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

register_error_handlers(app)

app.include_router(router, prefix="/api")

@app.get('/healthz')
async def healthz():
    return {'status': 'ok'}

@app.middleware('http')
async def log_requests(request: Request, call_next):
    logger.info({'msg':'request_start','method':request.method,'path':request.url.path})
    response = await call_next(request)
    logger.info({'msg':'request_end','path':request.url.path,'status': response.status_code})
    return response

@app.on_event("startup")
async def startup():
    # Best-effort init, don't block app from starting if a dependency fails
    try:
        await redis_startup()
    except Exception as e:
        logger.warning({'msg': 'redis_start_failed', 'error': str(e)})
    try:
        init_metrics()
    except Exception as e:
        logger.warning({'msg': 'metrics_init_failed', 'error': str(e)})
    try:
        gateway.rooms.start_relay()
    except Exception as e:
        logger.warning({'msg': 'ws_relay_start_failed', 'error': str(e)})

@app.on_event("shutdown")
async def shutdown():
    await gateway.rooms.stop_relay()
    await shutdown_connections()
