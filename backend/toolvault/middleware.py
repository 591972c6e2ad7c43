"""ASGI middleware bounding the size of upload request bodies.

The multipart form is parsed and spooled before the route runs, so the limit
has to be applied while the body is still being received.
"""
import logging

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from toolvault.config import settings

logger = logging.getLogger(__name__)


def upload_body_limit() -> int:
    """Largest request body accepted for an upload: file ceiling plus multipart framing."""
    return settings.MAX_UPLOAD_BYTES + settings.MULTIPART_OVERHEAD_BYTES


class UploadSizeLimitMiddleware:
    """Refuse upload bodies larger than the ceiling without buffering them.

    A declared Content-Length over the limit is answered with 413 before any
    body is read. Bodies without a length (chunked) are counted as they
    arrive and the request fails with 413 as soon as the count passes the limit.
    """

    def __init__(self, app, paths: tuple[str, ...] = ("/api/upload",)):
        self.app = app
        self.paths = paths

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["path"] not in self.paths:
            await self.app(scope, receive, send)
            return

        limit = upload_body_limit()
        headers = dict(scope.get("headers") or [])
        declared = headers.get(b"content-length")
        if declared is not None and declared.isdigit() and int(declared) > limit:
            logger.info(f"Refused upload of {int(declared)} bytes (limit {limit})")
            response = JSONResponse(
                status_code=413,
                content={"detail": f"Request body exceeds the maximum upload size of {limit} bytes"},
                headers={"Connection": "close"},
            )
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    logger.info(f"Aborted upload after {received} bytes (limit {limit})")
                    raise HTTPException(
                        status_code=413,
                        detail=f"Request body exceeds the maximum upload size of {limit} bytes",
                    )
            return message

        await self.app(scope, limited_receive, send)
