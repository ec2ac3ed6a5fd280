#!/usr/bin/env python3
"""
Local run entrypoint for the plan builder API.

The engine lives under `plan_builder_app/`; `python3 server.py` serves it
with uvicorn (host/port from PLAN_BUILDER_HOST / PLAN_BUILDER_PORT).
"""

from plan_builder_app.main import app, run


if __name__ == "__main__":
    run()
