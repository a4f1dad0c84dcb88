# gamehub/__init__.py
import logging
from typing import Any, Mapping, Optional

import sqlalchemy as sa
from flask import Flask, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from .config import load_config
from .models.base import db as SA_DB  # single SQLAlchemy() instance
from .security import login_manager
from .services.join_tokens import JoinTokenAuthority
from .services.loot import LootEngine

migrate = Migrate()


def _enable_sqlite_foreign_keys(engine) -> None:
    if engine.dialect.name != "sqlite":
        return

    @sa.event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def create_app(overrides: Optional[Mapping[str, Any]] = None):
    overrides = dict(overrides or {})
    app = Flask(__name__)
    app.config.update(load_config(testing=bool(overrides.get("TESTING"))))
    app.config.update(overrides)

    # Init core extensions with the un-shadowable alias
    SA_DB.init_app(app)
    migrate.init_app(app, SA_DB)
    login_manager.init_app(app)

    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.getLogger("gamehub").setLevel(level)
    app.logger.setLevel(level)
    app.logger.info("DB URI: %s", app.config["SQLALCHEMY_DATABASE_URI"])
    app.logger.info("AUTO_CREATE_TABLES=%s", app.config.get("AUTO_CREATE_TABLES"))

    with app.app_context():
        # Ensure all models are imported so metadata is complete
        from . import models as _models  # noqa: F401

        _enable_sqlite_foreign_keys(SA_DB.engine)
        if app.config.get("AUTO_CREATE_TABLES"):
            SA_DB.create_all()

    # shared service instances; tests swap in seeded ones
    app.extensions["loot_engine"] = LootEngine()
    app.extensions["join_tokens"] = JoinTokenAuthority()

    from .api_auth import bp as auth_bp
    from .api_account import bp as account_bp
    from .api_progression import bp as progression_bp
    from .api_servers import bp as servers_bp
    from .api_matches import bp as matches_bp
    from .api_social import bp as social_bp
    from .api_loot import bp as loot_bp
    from .api_admin import admin_api

    app.register_blueprint(auth_bp)
    app.register_blueprint(account_bp)
    app.register_blueprint(progression_bp)
    app.register_blueprint(servers_bp)
    app.register_blueprint(matches_bp)
    app.register_blueprint(social_bp)
    app.register_blueprint(loot_bp)
    app.register_blueprint(admin_api)

    from .cli import register_cli
    register_cli(app)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify(error=e.description), e.code

    @app.get("/health")
    def health():
        return jsonify(status="ok")

    return app
