"""Entry point for running the buckets service."""

import uvicorn

from buckets.config import get_settings
from buckets.main import app

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
