import logging
import os

from flask import Flask, send_from_directory

from . import cli
from .auth import auth_bp
from .config import Config
from .errors import register_error_handlers
from .extensions import cors, db, login_manager, migrate
from .views import register_blueprints


def create_app(config_object=Config, **overrides):
    """Application factory; ``overrides`` win over ``config_object`` (used by tests)."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    if not app.debug and not app.testing:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    app.logger.setLevel(logging.INFO)

    db.init_app(app)
    migrate.init_app(app, db)  # 数据库迁移 (flask db ...)
    login_manager.init_app(app)
    cors.init_app(app, supports_credentials=True)  # 前端单独部署，需要跨域带 cookie

    app.register_blueprint(auth_bp)
    register_blueprints(app)
    register_error_handlers(app)
    cli.register(app)

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    @app.route('/uploads/<path:filename>', endpoint='uploaded_file')
    def uploaded_file(filename):
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    app.logger.info(f"[create_app] {app.config['SITE_NAME']} ready")
    return app
