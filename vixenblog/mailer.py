"""Best-effort notification email through the Resend HTTP API.

Nothing here raises: a missing API key turns every send into a logged no-op,
and delivery errors are logged and reported in the returned dict.
"""
import logging
import threading

import requests
from flask import current_app, render_template_string

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10

NEW_COMMENT_TEMPLATE = """
<!doctype html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2>新评论通知</h2>
  <p><strong>文章：</strong><a href="{{ post_url }}">{{ post.title }}</a></p>
  <p><strong>评论者：</strong>{{ comment.author }} ({{ comment.email }})</p>
  <div style="background: #f5f5f5; padding: 15px; border-radius: 8px; margin: 20px 0;">
    <p style="margin: 0;">{{ comment.content }}</p>
  </div>
  <p><a href="{{ admin_url }}">前往审核</a></p>
</body>
</html>
"""

REPLY_TEMPLATE = """
<!doctype html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="font-size: 22px;">{{ site_name }}</h1>
  <p>Hi {{ parent.author }}，</p>
  <p>您在文章「<a href="{{ post_url }}">{{ post.title }}</a>」中的评论收到了新回复：</p>
  <blockquote style="border-left: 4px solid #e5e7eb; padding-left: 12px; color: #666;">{{ parent.content }}</blockquote>
  <p><strong>{{ reply.author }}</strong> 回复了您：</p>
  <blockquote style="border-left: 4px solid #2563eb; padding-left: 12px;">{{ reply.content }}</blockquote>
  <p><a href="{{ post_url }}">查看完整对话</a></p>
  <hr>
  <p style="color: #999; font-size: 12px;">此邮件由 {{ site_name }} 自动发送，请勿直接回复。</p>
</body>
</html>
"""


def _mail_settings():
    config = current_app.config
    return {
        'api_key': config.get('RESEND_API_KEY'),
        'api_url': config.get('RESEND_API_URL'),
        'sender': config.get('MAIL_FROM'),
    }


def deliver(settings, to, subject, html):
    """Send one message. Runs without an app context so it can live on a thread."""
    if not settings.get('api_key'):
        logger.info(f"[mailer] Resend not configured, skipping email to {to}")
        return {'success': False, 'error': 'Email service not configured'}

    try:
        response = requests.post(
            settings['api_url'],
            headers={'Authorization': f"Bearer {settings['api_key']}"},
            json={'from': settings['sender'], 'to': [to], 'subject': subject, 'html': html},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"[mailer] Failed to send '{subject}' to {to}: {e}")
        return {'success': False, 'error': str(e)}

    try:
        data = response.json()
    except ValueError:
        data = {}
    logger.info(f"[mailer] Sent '{subject}' to {to}")
    return {'success': True, 'data': data}


def send_email(to, subject, html):
    """Fire-and-forget send; never blocks or fails the calling request."""
    settings = _mail_settings()
    if not settings['api_key']:
        logger.info(f"[mailer] Resend not configured, skipping email to {to}")
        return None
    if current_app.config.get('MAIL_SYNC'):
        return deliver(settings, to, subject, html)

    thread = threading.Thread(target=deliver, args=(settings, to, subject, html), daemon=True)
    thread.start()
    return None


def _post_url(post):
    return f"{current_app.config['SITE_URL']}/posts/{post.slug}"


def notify_new_comment(post, comment):
    admin_email = current_app.config.get('ADMIN_EMAIL')
    if not admin_email:
        logger.info("[mailer] ADMIN_EMAIL not configured, skipping new comment notification")
        return None
    html = render_template_string(
        NEW_COMMENT_TEMPLATE,
        post=post,
        comment=comment,
        post_url=_post_url(post),
        admin_url=f"{current_app.config['SITE_URL']}/admin/comments",
    )
    subject = f"[新评论] {comment.author} 在「{post.title}」发表了评论"
    return send_email(admin_email, subject, html)


def notify_comment_reply(parent, reply):
    post = parent.post
    html = render_template_string(
        REPLY_TEMPLATE,
        site_name=current_app.config['SITE_NAME'],
        parent=parent,
        reply=reply,
        post=post,
        post_url=_post_url(post),
    )
    subject = f"您在「{post.title}」的评论收到了回复"
    return send_email(parent.email, subject, html)
