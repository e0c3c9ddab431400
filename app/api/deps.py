from fastapi import HTTPException, Request
from typing import Any, Dict
from app.core.middleware import TENANT_COOKIE, TENANT_HEADER
from app.db.memory import APP_STATE


def get_tenant_id(request: Request) -> str:
    tenant_id = request.cookies.get(TENANT_COOKIE) or request.headers.get(TENANT_HEADER)
    if not tenant_id:
        raise HTTPException(status_code=400, detail="Missing tenant identifier")
    return tenant_id


def get_latest_run(tenant_id: str) -> Dict[str, Any]:
    run = APP_STATE.get(tenant_id)
    if not run or "outcomes" not in run:
        raise HTTPException(status_code=404, detail="No reconciliation results found for this session.")
    return run
