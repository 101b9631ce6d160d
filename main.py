#!/usr/bin/env python3
"""
Main entry point for keyrelay

An OpenAI-compatible reverse proxy that forwards chat-completion requests
upstream and rotates across a pool of API keys when one is rate limited
or rejected.
"""

import os
import uvicorn

from keyrelay.utils.logging import setup_logging
from keyrelay.api.app import create_app

# Setup logging
logger = setup_logging()


def main():
    """Main entry point for the application"""

    # Get configuration from environment
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 3000))
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    logger.info("Starting keyrelay", host=host, port=port, log_level=log_level)

    # Create the FastAPI application
    app = create_app()

    # Rotation state is in-memory, so the server runs a single worker
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=log_level,
        workers=1,
        reload=False
    )


if __name__ == "__main__":
    main()
