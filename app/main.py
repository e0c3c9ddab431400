import logging
from fastapi import FastAPI
from app.core.config import settings
from app.core.middleware import AuditMiddleware
from app.api import health, mapping, reconciliation, analysis, reports

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

app = FastAPI(title=settings.PROJECT_NAME)
app.add_middleware(AuditMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(mapping.router)
app.include_router(reconciliation.router)
app.include_router(analysis.router)
app.include_router(reports.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
