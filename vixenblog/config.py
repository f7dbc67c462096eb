import os
import logging

from dotenv import load_dotenv

load_dotenv()  # .env 里的变量要在读取配置之前加载

logger = logging.getLogger(__name__)

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _database_url():
    # 优先使用环境变量 DATABASE_URL (Render / Heroku 会设置)
    url = os.environ.get('DATABASE_URL')
    if url:
        # Some hosts hand out postgres:// but SQLAlchemy wants postgresql://
        if url.startswith('postgres://'):
            url = url.replace('postgres://', 'postgresql://', 1)
        return url
    logger.warning("[config] DATABASE_URL not set, falling back to SQLite. This is for local development only.")
    return 'sqlite:///' + os.path.join(BASE_DIR, 'blog.db')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-change-me')
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SITE_NAME = os.environ.get('SITE_NAME', 'VixenAhri Blog')
    SITE_URL = os.environ.get('SITE_URL', 'http://localhost:5000').rstrip('/')

    # Transactional email (Resend). Missing key means notifications are skipped.
    RESEND_API_KEY = os.environ.get('RESEND_API_KEY')
    RESEND_API_URL = os.environ.get('RESEND_API_URL', 'https://api.resend.com/emails')
    MAIL_FROM = os.environ.get('MAIL_FROM', 'VixenAhri Blog <noreply@example.com>')
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL')
    MAIL_SYNC = _env_flag('MAIL_SYNC')

    # Shared secret for the external scheduler hitting /api/cron/publish
    CRON_SECRET = os.environ.get('CRON_SECRET')

    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'uploads'))
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 5 * 1024 * 1024))
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
