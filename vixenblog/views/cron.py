import hmac

from flask import Blueprint, current_app, jsonify, request

from ..errors import UnauthorizedError
from ..publishing import publish_due_posts

cron_bp = Blueprint('cron', __name__, url_prefix='/api/cron')


def _check_cron_secret():
    secret = current_app.config.get('CRON_SECRET')
    if not secret:
        return
    supplied = request.headers.get('Authorization', '')
    if not hmac.compare_digest(supplied.encode(), f"Bearer {secret}".encode()):
        raise UnauthorizedError('Unauthorized')


@cron_bp.route('/publish', methods=['GET', 'POST'])
def publish_scheduled():
    """定时发布检查，由外部 cron 调用"""
    _check_cron_secret()
    posts = publish_due_posts()
    current_app.logger.info(f"[cron_publish] Published {len(posts)} post(s)")
    return jsonify({
        'success': True,
        'published': len(posts),
        'posts': [{'id': post.id, 'title': post.title} for post in posts],
    })
