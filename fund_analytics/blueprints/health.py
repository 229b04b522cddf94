"""Liveness endpoint for load balancers and container probes."""

from flask import Blueprint, Response, current_app, jsonify

health_bp = Blueprint("health", __name__)

SERVICE_NAME = "fund-analytics"


@health_bp.route("/healthz")
def health_check() -> Response:
    """Report that the service is up and which environment it runs in."""
    return jsonify(
        {
            "status": "ok",
            "service": SERVICE_NAME,
            "environment": current_app.config["APP_ENV"],
        }
    )
