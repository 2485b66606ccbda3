"""Single entry point for the Cookie Manager service."""
import os
import uvicorn

from backend.logging_setup import setup_logging

if __name__ == "__main__":
    setup_logging()
    port = int(os.environ.get("PORT", 8000))
    host = os.environ.get("HOST", "0.0.0.0")

    uvicorn.run(
        "backend.app:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
