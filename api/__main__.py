"""
Entrypoint for running the API in development.

    python -m api            # serve
    python -m api keygen     # write private.pem / public.pem from the configured paths
"""
import logging
import os
import sys

from .config import get_config
from utils.keys import write_key_pair

logger = logging.getLogger("api")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if argv and argv[0] == "keygen":
        config = get_config(None)
        write_key_pair(config.JWT_PRIVATE_KEY_PATH, config.JWT_PUBLIC_KEY_PATH)
        print(f"wrote {config.JWT_PRIVATE_KEY_PATH} and {config.JWT_PUBLIC_KEY_PATH}")
        return 0

    from . import create_app

    # Respect APP_ENV for configuration selection (handled in get_config())
    app = create_app()
    # Dev-friendly defaults; in production you'd run via a WSGI server (gunicorn/uwsgi)
    host = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_RUN_PORT", "8000"))
    debug = bool(os.getenv("FLASK_DEBUG", str(app.config.get("DEBUG", True))).lower() in ("1", "true", "yes"))
    try:
        app.run(host=host, port=port, debug=debug)
    finally:
        store = app.extensions["session_store"]
        if hasattr(store, "dispose"):
            logger.info("Closing database connection gracefully...")
            store.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
