"""ASGI entrypoint for the job URL importer.

Run with ``uvicorn api_server:app`` or ``python api_server.py`` (binds API_HOST:API_PORT).
"""

from __future__ import annotations

import pathlib
import sys

import uvicorn

ROOT = pathlib.Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from job_importer.api.app import create_app
from job_importer.configuration import settings

app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())
