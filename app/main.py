import logging
from fastapi import Depends, FastAPI
from app.config import get_settings
from app.api.deps import get_tool_service
from app.api.errors import register_error_handlers
from app.api.routes import credentials, directory, messages
from app.services.slack_tools import SlackToolService

settings = get_settings()

# Configure application logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Set log level for app modules
logger = logging.getLogger("app")
logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

# slack_sdk logs every request at DEBUG
logging.getLogger("slack_sdk").setLevel(logging.INFO)

app = FastAPI(
    title=settings.app_name,
    description="Local Slack directory cache with live message retrieval and sending",
    version="0.1.0",
)

register_error_handlers(app)

# Include routers
app.include_router(credentials.router, prefix="/api", tags=["Credentials"])
app.include_router(directory.router, prefix="/api", tags=["Directory"])
app.include_router(messages.router, prefix="/api", tags=["Messages"])


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": "0.1.0",
        "endpoints": {
            "channels": "/api/channels",
            "users": "/api/users",
            "dms": "/api/dms",
            "refresh": "/api/directory/refresh",
            "messages": "/api/messages",
            "threads": "/api/threads/replies",
            "credentials": "/api/credentials",
            "health": "/health",
            "docs": "/docs",
            "redoc": "/redoc",
        },
    }


@app.get("/health")
def health_check(service: SlackToolService = Depends(get_tool_service)):
    """Liveness plus row counts of the local directory cache."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "directory": service.store.counts(),
    }
