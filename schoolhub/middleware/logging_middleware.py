"""
Logging Middleware
Logs requests and responses when DEBUG_MODE is enabled, with passwords masked.
"""
import json
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.concurrency import iterate_in_threadpool
from schoolhub import config

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = {"password"}


def mask_sensitive(body: bytes) -> str:
    """Decode a body for logging, replacing sensitive JSON fields with '***'."""
    text = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(text)
    except ValueError:
        return text
    if isinstance(data, dict):
        data = {key: "***" if key in SENSITIVE_FIELDS else value for key, value in data.items()}
        return json.dumps(data)
    return text


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log requests and responses when DEBUG_MODE is True.
    """

    async def dispatch(self, request: Request, call_next):
        if not config.DEBUG_MODE:
            return await call_next(request)

        # Log Request
        try:
            body = await request.body()
            logger.info(f"Request: {request.method} {request.url}")
            if body:
                logger.info(f"Request Body: {mask_sensitive(body)}")

            # Restore body for next handler
            async def receive():
                return {"type": "http.request", "body": body}
            request._receive = receive

        except Exception as e:
            logger.error(f"Error logging request: {e}")

        response = await call_next(request)

        # Log Response
        try:
            logger.info(f"Response Status: {response.status_code}")

            # Reads the entire response into memory; API responses are small JSON
            response_body = [chunk async for chunk in response.body_iterator]
            response.body_iterator = iterate_in_threadpool(iter(response_body))

            if response_body:
                logger.info(f"Response Body: {mask_sensitive(b''.join(response_body))}")

        except Exception as e:
            logger.error(f"Error logging response: {e}")

        return response
