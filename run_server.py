"""
Credential Validator Server Runner
==================================
Run this directly: python run_server.py
"""
import os

import uvicorn

from app.core.config import get_settings


def main():
    # Don't override values already set in the environment
    if "DEBUG" not in os.environ:
        os.environ["DEBUG"] = "false"

    settings = get_settings()

    print()
    print("=" * 60)
    print(f"  {settings.app_name.upper()} v{settings.app_version}")
    print("=" * 60)
    print()
    print(f"  API Docs:   http://localhost:{settings.port}/api/docs")
    print(f"  Health:     http://localhost:{settings.port}/health")
    print(f"  Timeouts:   tier {settings.tier_timeout_seconds}s, extraction {settings.extraction_timeout_seconds}s")
    print()
    print("  Press Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        workers=1,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
