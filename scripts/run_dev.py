#!/usr/bin/env python3
"""
Development server runner for the mintguard API
Includes auto-reload and environment checking
"""

import os
import sys
from pathlib import Path

import uvicorn

# Add the parent directory to Python path
sys.path.append(str(Path(__file__).parent.parent))

from mintguard import config


def check_environment():
    """Report which configuration values come from the environment."""
    variables = [
        "CATALOG_DB_DSN",
        "MATCH_THRESHOLD",
        "MATCH_CANDIDATE_LIMIT",
        "MATCH_MAX_RESULTS",
        "MATCH_BUDGET_SECONDS",
        "MAX_FILE_SIZE",
        "API_HOST",
        "API_PORT",
        "DEBUG",
    ]

    if not os.getenv("CATALOG_DB_DSN") and not os.getenv("DB_DSN"):
        print("CATALOG_DB_DSN not set; similarity checks will return no matches without a catalog.")

    print("Configuration:")
    for var in variables:
        value = os.getenv(var, "Not set")
        if var == "CATALOG_DB_DSN" and value != "Not set":
            # Don't show full database URL for security
            value = f"{value[:20]}..." if len(value) > 20 else value
        print(f"  {var}: {value}")


def main():
    """Main entry point for development server."""
    print("mintguard - Development Server")
    print("=" * 50)

    check_environment()

    print("\nStarting development server...")
    print(f"   Docs: http://{config.API_HOST}:{config.API_PORT}/docs")
    print(f"   API: http://{config.API_HOST}:{config.API_PORT}/api")
    print("=" * 50)

    try:
        uvicorn.run(
            "mintguard.main:app",
            host=config.API_HOST,
            port=config.API_PORT,
            reload=True,
            log_config=None,
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")


if __name__ == "__main__":
    main()
