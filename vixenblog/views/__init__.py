from .admin import admin_bp
from .cron import cron_bp
from .feeds import feeds_bp
from .public import public_bp


def register_blueprints(app):
    for bp in (public_bp, admin_bp, cron_bp, feeds_bp):
        app.register_blueprint(bp)
