from flask import Flask
from flasgger import Swagger
from flask_cors import CORS
import logging

__version__ = "1.0.0"

from .config import get_config
from .errors import register_error_handlers
from models.store import SessionStore
from models.db_storage import DBStorage
from models.schemas.auth import RequestValidator
from services.sessions import SessionLifecycle
from utils.keys import load_private_key, load_public_key
from utils.tokens import TokenService

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Session Auth API",
        "version": __version__,
        "description": "Registers users and issues, validates, rotates and revokes signed session tokens.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
    "schemes": ["http"],
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def build_token_service(config) -> TokenService:
    """Read the PEM key pair once; the service is immutable afterwards."""
    return TokenService(
        load_private_key(config["JWT_PRIVATE_KEY_PATH"]),
        load_public_key(config["JWT_PUBLIC_KEY_PATH"]),
        config["ACCESS_TOKEN_EXPIRES"],
        config["REFRESH_TOKEN_EXPIRES"],
        algorithm=config["JWT_ALGORITHM"],
        issuer=config["JWT_ISSUER"],
    )


def build_store(config) -> SessionStore:
    database_url = config.get("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not configured")
    storage = DBStorage(database_url, echo=config.get("SQL_ECHO", False))
    storage.reload()
    return storage


def create_app(
    config_name: str | None = None,
    *,
    store: SessionStore | None = None,
    token_service: TokenService | None = None,
    request_validator: RequestValidator | None = None,
) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    The store, token service and request validator can be injected, which is
    how tests run against in-memory state and throwaway keys.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    store = store if store is not None else build_store(app.config)
    token_service = token_service if token_service is not None else build_token_service(app.config)
    app.extensions["session_store"] = store
    app.extensions["request_validator"] = request_validator or RequestValidator()
    app.extensions["session_lifecycle"] = SessionLifecycle(
        store,
        token_service,
        refresh_window=app.config["SESSION_REFRESH_WINDOW"],
    )

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        store.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Session Auth API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
