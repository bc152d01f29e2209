import logging

from flask import Blueprint, current_app, jsonify, request

from unspin.services.exceptions import InvalidInput

bp = Blueprint("extract", __name__)
logger = logging.getLogger(__name__)


@bp.route("/api/extract")
def extract():
    """Run the extraction pipeline for ``?url=`` and return the result record."""
    url = request.args.get("url", "")
    pipeline = current_app.extensions["extraction_pipeline"]
    try:
        result = pipeline.extract(url)
    except InvalidInput as exc:
        logger.info("Rejected extraction request: %s", exc)
        return jsonify({"error": str(exc)}), 400
    return jsonify(result.to_dict()), 200


@bp.route("/healthz")
def healthz():
    """Lightweight liveness probe."""
    return "ok", 200
