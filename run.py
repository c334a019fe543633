#!/usr/bin/env python3
"""
Microfund Entry Point

Starts the FastAPI server with the configured storage backend.
"""

import sys

from microfund.api import run_server
from microfund.config import get_config
from microfund.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    logger.info(f"Starting Microfund ({config.storage_backend} storage, key {config.storage_key})")
    logger.info(f"API available at: http://{config.api_host}:{config.api_port}")
    logger.info(f"Documentation at: http://{config.api_host}:{config.api_port}/docs")

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=False,  # Set to True for development
            log_level=config.log_level
        )
    except KeyboardInterrupt:
        logger.info("Shutting down Microfund")
    except Exception as e:
        logger.error(f"Error starting server: {e}", exc_info=True)
        sys.exit(1)
