from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
import hashlib
from app.core.audit import audit_repo
from app.schemas.audit import AuditLogEntry, AuditStatus, ActionType
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TENANT_COOKIE = "recon_tenant_id"
TENANT_HEADER = "X-Tenant-ID"

PUBLIC_PREFIXES = ("/health", "/docs", "/redoc", "/openapi.json")

# First matching path fragment wins
ACTION_RULES = [
    ("/reconcile/upload", ActionType.UPLOAD),
    ("/reconcile/analysis", ActionType.ANALYZE),
    ("/reconcile", ActionType.RECONCILE),
    ("/column-mapping", ActionType.MAPPING),
    ("/reports/reconciliation/pdf", ActionType.PDF_DOWNLOAD),
    ("/reports/reconciliation/export", ActionType.EXPORT),
    ("/reports", ActionType.REPORT),
    ("/health", ActionType.HEALTH_CHECK),
]


def classify_action(path: str) -> ActionType:
    for fragment, action in ACTION_RULES:
        if path.startswith(fragment):
            return action
    return ActionType.UNKNOWN


def is_public_path(path: str) -> bool:
    return path == "/" or path.startswith(PUBLIC_PREFIXES)


def _record(endpoint: str, method: str, action_type: ActionType, tenant_id: str, status: AuditStatus,
            input_hash: Optional[str] = None, output_hash: Optional[str] = None):
    try:
        audit_repo.save(AuditLogEntry(
            endpoint=endpoint,
            method=method,
            action_type=action_type,
            tenant_id=tenant_id,
            input_hash=input_hash,
            output_hash=output_hash,
            status=status
        ))
    except Exception as e:
        logger.error(f"Audit Logging Failed: {e}")


class AuditMiddleware(BaseHTTPMiddleware):
    """
    Records every request in the audit repository with SHA-256 digests of both bodies.
    Non-public paths must identify a tenant via cookie or X-Tenant-ID header.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        endpoint = request.url.path
        method = request.method
        action_type = classify_action(endpoint)

        tenant_id = request.cookies.get(TENANT_COOKIE) or request.headers.get(TENANT_HEADER)
        public = is_public_path(endpoint)
        logger.debug(f"Request to {endpoint}, tenant_id={tenant_id}, is_public={public}")

        if not tenant_id and not public:
            _record(endpoint, method, action_type, "MISSING", AuditStatus.FAILURE)
            return JSONResponse(status_code=400, content={"detail": "Missing tenant identifier"})

        tenant_id = tenant_id or "PUBLIC"

        # Hash even an empty body so every entry carries a digest.
        # Starlette caches the body read here and replays it to the route.
        request_body = await request.body()
        input_hash = hashlib.sha256(request_body).hexdigest()

        status = AuditStatus.FAILURE
        output_hash = None
        try:
            response = await call_next(request)
            if 200 <= response.status_code < 300:
                status = AuditStatus.SUCCESS

            response_body = b""
            async for chunk in response.body_iterator:
                response_body += chunk
            output_hash = hashlib.sha256(response_body).hexdigest()

            response = Response(
                content=response_body,
                status_code=response.status_code,
                headers=dict(response.headers),
                media_type=response.media_type
            )
        finally:
            _record(endpoint, method, action_type, tenant_id, status, input_hash, output_hash)

        return response
