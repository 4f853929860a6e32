"""Main FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from officedesk.config import CORS_ORIGINS, LOG_LEVEL
from officedesk.database import engine, Base
from officedesk.api.routes import router
# Import models to register them with SQLAlchemy Base
from officedesk.models.domain import Contact, ContactSuggestion, Memo, ReviewEntry  # noqa: F401
from officedesk.models.audit import AuditEvent  # noqa: F401

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="officedesk",
    description="Office dashboard backend: contact directory suggestions and memo routing workflows.",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api", tags=["officedesk"])


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "officedesk"}


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting officedesk API")
    uvicorn.run(app, host="0.0.0.0", port=8000)
