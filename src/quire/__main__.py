"""Entry point for running Quire as a module: python -m quire"""

import os

import uvicorn

from quire.config import settings


def main():
    """Run the Quire REST API server."""
    import logging
    import sys

    # Log which port configuration is being used
    port_source = "default (19200)"
    if "PORT" in os.environ:
        port_source = "PORT environment variable"
    elif "QUIRE_PORT" in os.environ:
        port_source = "QUIRE_PORT environment variable"

    print(f"Starting Quire on port {settings.port} (from {port_source})")

    # Suppress the scary stack traces from startup failures
    if not settings.debug:
        logging.getLogger("uvicorn.error").setLevel(logging.CRITICAL)

    logging.basicConfig(level=settings.log_level.upper())

    try:
        uvicorn.run(
            "quire.api.main:app",
            host=settings.host,
            port=settings.port,
            reload=settings.debug,
            log_level=settings.log_level.lower() if settings.debug else "critical",
        )
    except SystemExit:
        sys.exit(1)


if __name__ == "__main__":
    main()
