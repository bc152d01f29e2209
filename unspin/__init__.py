import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, request

from unspin.config import AppSettings
from unspin.services.orchestrator import ExtractionPipeline
from unspin.utils.correlation import clear_correlation_context, ensure_correlation_id
from unspin.utils.logging_config import setup_logging


def create_app(pipeline: Optional[ExtractionPipeline] = None):
    """Create and configure an instance of the Flask application."""
    load_dotenv()

    # Set up logging as early as possible
    setup_logging()
    logger = logging.getLogger(__name__)

    app_settings = AppSettings()
    app = Flask(__name__)
    app.config["ENV"] = app_settings.ENV
    app.config["JSON_SORT_KEYS"] = False

    logger.info("Application starting with configuration:")
    logger.info(f"  ENV: {app_settings.ENV}")
    logger.info(f"  LOG_LEVEL: {app_settings.LOG_LEVEL}")

    app.extensions["extraction_pipeline"] = pipeline or ExtractionPipeline()

    @app.before_request
    def bind_correlation_id():
        ensure_correlation_id(request.headers.get("X-Request-ID"))

    @app.teardown_request
    def reset_correlation_id(_exc=None):
        clear_correlation_context()

    from .routes import extract

    app.register_blueprint(extract.bp)

    return app
