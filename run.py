"""
Uvicorn server runner with configurable logging.

Usage:
    python run.py

Environment variables (set in .env file):
    DEBUG=true - Enable debug logging
    DATABASE_URL=sqlite:///slack_data.db - Local directory cache
    SLACK_USER_TOKEN=xoxp-... - Fallback token when none is stored
    PORT=8000 - Set server port (default: 8000)
    HOST=127.0.0.1 - Set server host (default: 127.0.0.1)
"""

import os

import uvicorn
from app.config import get_settings

if __name__ == "__main__":
    settings = get_settings()

    # HOST and PORT are read straight from the environment, not Settings
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    log_level = "debug" if settings.debug else "info"

    print(f"Starting {settings.app_name} server...")
    print(f"Host: {host}  Port: {port}  Log Level: {log_level}")
    print(f"Database: {settings.database_url}")
    print(f"Docs available at: http://{host}:{port}/docs")

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        reload=settings.debug,
        log_level=log_level,
        access_log=True,
    )
