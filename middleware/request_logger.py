import logging
import time

from fastapi import Request

logger = logging.getLogger("phonebook.requests")


async def request_logger(request: Request, call_next):
    """Log method, path, status and elapsed time for every request."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"{request.method} {request.url.path} {response.status_code} "
        f"{response.headers.get('content-length', '-')} - {elapsed_ms:.1f} ms"
    )
    return response
