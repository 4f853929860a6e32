"""Runtime configuration read from environment variables."""
import os

# Use PostgreSQL in production (from DATABASE_URL env var), SQLite locally
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./officedesk.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Dashboard side
API_BASE = os.getenv("API_BASE", "http://localhost:8000/api")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))
DASHBOARD_ACTOR_ID = os.getenv("DASHBOARD_ACTOR_ID", "admin")
DASHBOARD_ACTOR_ROLE = os.getenv("DASHBOARD_ACTOR_ROLE", "ADMIN")
