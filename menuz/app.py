"""Application factory.

Builds the Flask app, wires the store and blob store, and registers all
blueprints. Tests pass their own store/blob_store; production lets the
environment decide.
"""

from __future__ import annotations

import logging
import re

from flask import Flask
from flask_cors import CORS

from menuz import db
from menuz.config import config
from menuz.services import blob_store as blob_store_module
from menuz.services import store as store_module
from menuz.utils.error_handlers import register_error_handlers


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(store=None, blob_store=None) -> Flask:
    _configure_logging()
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_CONTENT_LENGTH
    app.json.sort_keys = False

    if config.ALLOW_ALL_ORIGINS:
        origins = [re.compile(r".*")]
    else:
        origins = config.ALLOWED_ORIGINS

    CORS(
        app,
        resources={r"/api/*": {"origins": origins}},
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        expose_headers=["Content-Type"],
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    )

    if store is None:
        if db.USE_DB:
            db.init_db()
        store = store_module.build_store()
    if blob_store is None:
        blob_store = blob_store_module.build_blob_store()

    app.extensions[store_module.EXTENSION_KEY] = store
    app.extensions[blob_store_module.EXTENSION_KEY] = blob_store

    register_error_handlers(app)

    from menuz.routes import register_blueprints

    register_blueprints(app, print_routes=config.IS_DEV or config.PRINT_ROUTES)

    for warning in config.validate():
        print(f"[CONFIG] WARNING: {warning}")

    return app


if __name__ == "__main__":
    config.log_summary()
    create_app().run(host=config.HOST, port=config.PORT, debug=config.IS_DEV)
