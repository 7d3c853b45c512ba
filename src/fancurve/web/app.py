"""
HTTP API Module

This module exposes the curve editor API: saving a curve and getting the
sampled chart back, reading the saved curve, and reading the fan speed the
current temperature maps to.
"""

import logging
import os
from typing import Optional

from flask import Flask, Response, jsonify, request, send_from_directory

from ..control.curve import CurveConfig, generate_curve_data
from ..control.manager import DeliveryManager
from ..control.state import CurveState
from ..control.storage import CurveRepository
from ..errors import ConfigIOError, SensorError

logger = logging.getLogger(__name__)

INVALID_REQUEST = "Invalid request body"


def add_cors_headers(response: Response) -> Response:
    """Allow the frontend to call the API from another origin"""
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "POST, GET, DELETE, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


def create_app(state: CurveState, curve_repository: CurveRepository,
               manager: DeliveryManager, static_dir: Optional[str] = None) -> Flask:
    """Create the Flask application

    Args:
        state: Shared curve configuration
        curve_repository: Store for the last generated curve
        manager: Delivery manager used for speed lookups and triggered sends
        static_dir: Optional directory with the frontend to serve at /

    Returns:
        Configured Flask app
    """
    app = Flask(__name__, static_folder=None)
    app.after_request(add_cors_headers)

    @app.route("/api/generate-curve", methods=["POST", "OPTIONS"])
    def generate_curve():
        if request.method == "OPTIONS":
            return "", 200

        data = request.get_json(force=True, silent=True)
        try:
            config = CurveConfig.from_dict(data)
        except ValueError as e:
            logger.warning(f"Rejected curve update: {e}")
            return Response(INVALID_REQUEST, status=400, mimetype="text/plain")

        try:
            state.set(config)
        except ConfigIOError as e:
            logger.error(f"Could not save the curve configuration: {e}")

        curve = generate_curve_data(config)
        try:
            curve_repository.save(curve)
        except ConfigIOError as e:
            logger.error(f"Could not save the curve file: {e}")

        response = jsonify(curve.to_dict())
        manager.trigger()
        return response

    @app.route("/api/config", methods=["GET", "OPTIONS"])
    def get_config():
        if request.method == "OPTIONS":
            return "", 200
        return jsonify(state.get_or_create_default().to_dict())

    @app.route("/api/getFanSpeed", methods=["GET", "OPTIONS"])
    def get_fan_speed():
        if request.method == "OPTIONS":
            return "", 200
        try:
            speed = manager.current_speed()
        except SensorError as e:
            logger.error(f"Could not read temperature for speed lookup: {e}")
            return Response("Temperature unavailable", status=503, mimetype="text/plain")
        return Response(str(speed), mimetype="text/plain")

    @app.route("/api/status", methods=["GET"])
    def get_status():
        return jsonify(manager.get_status())

    if static_dir:
        static_root = os.path.abspath(static_dir)

        @app.route("/", defaults={"path": "index.html"})
        @app.route("/<path:path>")
        def serve_static(path):
            return send_from_directory(static_root, path)

        logger.info(f"Serving frontend from {static_root}")

    return app
