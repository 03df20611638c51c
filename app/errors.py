import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class MovieError(Exception):
    """Base class for errors the API reports to the caller."""
    status_code = 500
    message = 'Server error'

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class MovieNotFoundError(MovieError):
    status_code = 404
    message = 'Not found'

    def __init__(self, movie_id: str):
        super().__init__()
        self.movie_id = movie_id


class MovieValidationError(MovieError):
    status_code = 400
    message = 'Invalid request'


def configure_logging(level: str = 'INFO') -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': message})


async def movie_error_handler(request: Request, exc: MovieError) -> JSONResponse:
    if isinstance(exc, MovieNotFoundError):
        logger.info("Movie %s not found (%s %s)",
                    exc.movie_id, request.method, request.url.path)
    else:
        logger.warning("Rejected %s %s: %s",
                       request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = '.'.join(str(part) for part in first.get('loc', ())[1:])
    message = f"{field}: {first.get('msg')}" if field else str(first.get('msg', 'Invalid request'))
    logger.warning("Invalid request %s %s: %s",
                   request.method, request.url.path, message)
    return _error(400, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s",
                     request.method, request.url.path, exc_info=exc)
    return _error(500, 'Server error')


async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %s (%.1f ms)",
                request.method, request.url.path, response.status_code, elapsed_ms)
    return response


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MovieError, movie_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.middleware('http')(log_requests)
