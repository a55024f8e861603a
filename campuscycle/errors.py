from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class CampusCycleError(Exception):
    status_code = 500
    default_message = 'Server error'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CampusCycleError):
    status_code = 400
    default_message = 'Invalid request'


class Unauthorized(CampusCycleError):
    status_code = 401
    default_message = 'Authentication failed'


class Forbidden(CampusCycleError):
    status_code = 403
    default_message = 'Forbidden'


class NotFound(CampusCycleError):
    status_code = 404
    default_message = 'Not found'


class ServerError(CampusCycleError):
    status_code = 500


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return 'Invalid request'
    err = errors[0]
    field = '.'.join(str(p) for p in err.get('loc', ()) if p != 'body')
    msg = err.get('msg', 'Invalid request')
    return f'{field}: {msg}' if field else msg


def register_error_handlers(app: FastAPI):
    @app.exception_handler(CampusCycleError)
    async def domain_error(request: Request, exc: CampusCycleError):
        if exc.status_code >= 500:
            logger.error({'msg': 'server_error', 'path': request.url.path, 'error': exc.message})
        return JSONResponse(status_code=exc.status_code, content={'detail': exc.message})

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={'detail': _first_validation_message(exc)})

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        logger.exception({'msg': 'unhandled_error', 'path': request.url.path})
        return JSONResponse(status_code=500, content={'detail': 'Server error'})
