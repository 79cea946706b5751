import os
import logging
from typing import Dict, Optional

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase
from werkzeug.middleware.proxy_fix import ProxyFix

from config import Config

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)


def _engine_options(database_url: str) -> Dict:
    options = {"pool_pre_ping": True}
    if database_url.startswith("postgres"):
        options.update({
            "pool_recycle": 180,
            "pool_size": 5,
            "max_overflow": 10,
            "connect_args": {
                "connect_timeout": 30,
                "application_name": "VT_LiveView_Collector"
            }
        })
    return options


def create_app(config_overrides: Optional[Dict] = None) -> Flask:
    """
    Build the health/status app. The database is bound only when a
    DATABASE_URL is configured; without one the collectors run as no-ops.
    """
    app = Flask(__name__)
    app.secret_key = os.environ.get("SESSION_SECRET", "dev-secret-key-change-in-production")
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)

    app.config["DATABASE_URL"] = Config.DATABASE_URL
    if config_overrides:
        app.config.update(config_overrides)

    database_url = app.config.get("DATABASE_URL")
    if database_url:
        # SQLAlchemy only accepts the postgresql:// scheme
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        app.config["SQLALCHEMY_DATABASE_URI"] = database_url
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", _engine_options(database_url))
        db.init_app(app)

        with app.app_context():
            import models  # noqa: F401
            db.create_all()
        logger.info(f"Connected to database: {database_url.split('@')[-1][:50]}")
    else:
        logger.warning("DATABASE_URL not set, persistence disabled")

    app.config["PERSISTENCE_ENABLED"] = bool(database_url)

    from routes.api_routes import api_bp
    app.register_blueprint(api_bp)

    return app
