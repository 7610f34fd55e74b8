"""
Request lifecycle middleware for the BizHub API.
Generates request IDs, populates context variables, logs each request and
turns anything unhandled into a uniform 500 body.
"""

import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
from jose import JWTError, jwt
from logging_config import get_logger, request_id_var, user_id_var, user_role_var
from config import config

logger = get_logger("middleware")


def _extract_user_from_token(request: Request) -> tuple[str, str]:
    """user_id and role from the bearer token, for log context only. Never fails."""
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        return "-", "-"

    try:
        payload = jwt.decode(auth_header[7:], config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return "-", "-"
    return payload.get("sub", "-"), payload.get("role", "-")


class RequestLifecycleMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = uuid.uuid4().hex[:8]
        request_id_var.set(req_id)

        user_id, role = _extract_user_from_token(request)
        user_id_var.set(user_id)
        user_role_var.set(role)

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        logger.info(
            f"→ {method} {path}",
            extra={"data": {"query": str(request.query_params) if request.query_params else None}}
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 1)
            logger.error(
                f"✖ {method} {path} UNHANDLED ERROR ({duration_ms}ms): {exc}",
                exc_info=True,
                extra={"data": {"duration_ms": duration_ms, "error": str(exc)}}
            )
            return JSONResponse(
                status_code=500,
                content={"success": False, "message": "Internal server error", "request_id": req_id},
                headers={"X-Request-ID": req_id}
            )

        duration_ms = round((time.perf_counter() - start_time) * 1000, 1)
        log_fn = logger.info if response.status_code < 400 else logger.warning
        log_fn(
            f"← {method} {path} {response.status_code} ({duration_ms}ms)",
            extra={"data": {"status": response.status_code, "duration_ms": duration_ms}}
        )
        response.headers["X-Request-ID"] = req_id
        return response
