import logging
import os
import traceback

import click
from flask import Flask
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import CONFIGS, DevelopmentConfig
from .extensions import db, migrate, jwt, ma, cors, limiter, socketio

logger = logging.getLogger(__name__)

_sockets_registered = False


def _register_sockets():
    # Flask-SocketIO only replays handlers registered before the first
    # init_app onto servers created by later init_app calls.
    global _sockets_registered
    if _sockets_registered:
        return

    from .sockets.gateway import init_sockets
    init_sockets(socketio)
    _sockets_registered = True


def create_app(config_name=None):
    app = Flask(__name__, instance_relative_config=False)
    env = config_name or os.getenv("FLASK_ENV", "development")
    app.config.from_object(CONFIGS.get(env, DevelopmentConfig))

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    origins = [o.strip() for o in app.config["CORS_ORIGINS"].split(",")]
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )
    limiter.init_app(app)

    _register_sockets()
    socketio.init_app(
        app,
        cors_allowed_origins=origins,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE"),
        async_handlers=False,
        ping_timeout=60,
        ping_interval=25,
    )

    hops = app.config.get("PROXY_FIX_X_FOR") or 0
    if hops:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops)

    # register blueprints
    from .routes.chat_routes import bp as chat_bp
    from .routes.notification_routes import bp as notification_bp

    app.register_blueprint(chat_bp)
    app.register_blueprint(notification_bp)

    _register_error_handlers(app)
    _register_jwt_loaders()
    _register_commands(app)

    return app


def _register_error_handlers(app):
    # error handlers to match required error format
    from .utils.exceptions import ServiceError
    from .utils.response_formatter import error_response

    @app.errorhandler(ServiceError)
    def service_error(e):
        return error_response(e.code, e.message, e.details, status=e.status)

    @app.errorhandler(ValidationError)
    def validation_error(e):
        return error_response("VALIDATION_ERROR", "Invalid request data", e.messages, status=400)

    @app.errorhandler(400)
    def bad_request(e):
        return error_response("BAD_REQUEST", e.description, status=400)

    @app.errorhandler(401)
    def unauthorized(e):
        return error_response("UNAUTHORIZED", e.description, status=401)

    @app.errorhandler(403)
    def forbidden(e):
        return error_response("FORBIDDEN", e.description, status=403)

    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return error_response("METHOD_NOT_ALLOWED", "Method not allowed", status=405)

    @app.errorhandler(429)
    def too_many_requests(e):
        return error_response("RATE_LIMITED", "Too many requests", {"limit": e.description}, status=429)

    @app.errorhandler(Exception)
    def server_error(e):
        if isinstance(e, HTTPException):
            return error_response(e.name.upper().replace(" ", "_"), e.description, status=e.code)

        db.session.rollback()
        logger.exception("Unhandled error")
        stack = traceback.format_exc() if app.debug else None
        return error_response("SERVER_ERROR", "Internal server error", status=500, stack=stack)


def _register_jwt_loaders():
    from .utils.response_formatter import error_response

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response("UNAUTHORIZED", reason, status=401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response("INVALID_TOKEN", reason, status=401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response("TOKEN_EXPIRED", "Token has expired", status=401)


def _register_commands(app):
    @app.cli.command("purge-expired-messages")
    def purge_expired_messages_command():
        """Delete anonymous-thread messages past their expiry."""
        from .services.chat_service import purge_expired_messages

        removed = purge_expired_messages()
        click.echo(f"Removed {removed} expired messages")
