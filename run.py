#!/usr/bin/env python
"""
Entry point for the WhatsApp gateway.
Starts the FastAPI server with uvicorn.
"""

import uvicorn

from app.config import settings
from app.logging import uvicorn_log_config

if __name__ == "__main__":
    # uvicorn handles SIGINT/SIGTERM and runs the lifespan shutdown,
    # which tears the WhatsApp client down before exit
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.ENVIRONMENT == "dev",
        log_level=settings.LOG_LEVEL.lower(),
        log_config=uvicorn_log_config(settings.LOG_LEVEL),
    )
