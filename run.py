#!/usr/bin/env python3
"""Entry point for running the consultation call service locally."""

import uvicorn

from consult_call.main import app

if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8080,
        log_level="info",
    )
