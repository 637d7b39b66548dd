import logging
import os

from flask import Flask, jsonify

from .aadhaar_registry import init_registry
from .auth import jwt, LegacyTokenHeader
from .chain import init_chain
from .cli import register_commands
from .config import Config
from .extensions import cors, limiter
from .models import init_db
from .routes import register_blueprints

logger = logging.getLogger(__name__)


def create_app(config_object=Config, mongo_client=None, chain=None, registry=None):
    """Build the API. ``mongo_client``, ``chain`` and ``registry`` replace the real backends when given."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config["RATELIMIT_DEFAULT"] = app.config["DEFAULT_RATE_LIMIT"]
    app.json.sort_keys = False

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    origins = list(app.config["CORS_ORIGINS"])
    if app.config["FRONTEND_URL"]:
        origins.append(app.config["FRONTEND_URL"])
    cors.init_app(
        app,
        origins=origins,
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization", "x-auth-token"],
        expose_headers=["x-auth-token"],
    )
    jwt.init_app(app)
    limiter.init_app(app)

    init_db(app, mongo_client)
    init_chain(app, chain)
    init_registry(app, registry)

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    app.wsgi_app = LegacyTokenHeader(app.wsgi_app)
    return app


def register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "message": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"success": False, "message": "Method not allowed"}), 405

    @app.errorhandler(429)
    def too_many_requests(e):
        return jsonify({"success": False, "message": "Too many requests, please try again later."}), 429

    @app.errorhandler(500)
    def server_error(e):
        logger.exception("Unhandled error: %s", getattr(e, "original_exception", e))
        return jsonify({"success": False, "message": "Something went wrong!"}), 500


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=True)
