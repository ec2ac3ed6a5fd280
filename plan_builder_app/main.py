import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plan_builder_app import config
from plan_builder_app.api.routes import router as api_router
from plan_builder_app.utils.json_safety import SafeJSONResponse


def setup_logging(level: str = config.LOG_LEVEL) -> logging.Logger:
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(config.LOG_FORMAT))
    root_logger.addHandler(console_handler)

    return root_logger


def create_app() -> FastAPI:
    app = FastAPI(
        title="Plan Builder Yield Engine",
        default_response_class=SafeJSONResponse,
    )

    # ── CORS (kept for local dev convenience) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── API routes ──
    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


def run():
    import uvicorn

    logger = setup_logging()
    logger.info("Starting plan builder API on %s:%s", config.HOST, config.PORT)
    uvicorn.run(app, host=config.HOST, port=config.PORT)
