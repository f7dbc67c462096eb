"""Draft / scheduled / published transitions and the scheduled-publish sweep."""
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update

from .errors import ValidationError
from .extensions import db
from .models import Post, utcnow

logger = logging.getLogger(__name__)

DRAFT = 'draft'
SCHEDULED = 'scheduled'
PUBLISHED = 'published'


def parse_schedule(value):
    """Parse an ISO-8601 ``scheduledAt`` into naive UTC; blank means no schedule."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError('scheduledAt must be an ISO-8601 string')
    value = value.strip()
    if not value:
        return None
    if value.endswith('Z') or value.endswith('z'):
        value = value[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid scheduledAt: '{value}'")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def apply_publish_state(post, published, scheduled_at, now=None):
    """Move ``post`` into the state requested by an editor save.

    A future ``scheduled_at`` always wins over the ``published`` flag. The
    original ``published_at`` of an already published post is preserved.
    Returns the resulting state name.
    """
    now = now or utcnow()

    if scheduled_at is not None and scheduled_at > now:
        post.published = False
        post.scheduled_at = scheduled_at
        return SCHEDULED

    post.scheduled_at = None
    if published:
        if not post.published or post.published_at is None:
            post.published_at = now
        post.published = True
        return PUBLISHED

    post.published = False
    return DRAFT


def _due_condition(now):
    return (
        Post.published.is_(False),
        Post.scheduled_at.isnot(None),
        Post.scheduled_at <= now,
    )


def publish_due_posts(now=None):
    """Publish every scheduled post whose time has come.

    Each row is promoted with a conditional UPDATE that repeats the due check,
    so a schedule cancelled (or a post published) between the scan and the
    write is left alone, and running the sweep twice publishes nothing new.
    Returns the posts that this call published.
    """
    now = now or utcnow()
    candidate_ids = db.session.scalars(
        select(Post.id).where(*_due_condition(now)).order_by(Post.scheduled_at)
    ).all()

    published_ids = []
    for post_id in candidate_ids:
        result = db.session.execute(
            update(Post)
            .where(Post.id == post_id, *_due_condition(now))
            .values(published=True, published_at=Post.scheduled_at, scheduled_at=None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            published_ids.append(post_id)
        else:
            logger.info(f"[publish_sweep] Post {post_id} no longer due, skipped.")
    db.session.commit()

    if not published_ids:
        return []
    posts = db.session.scalars(select(Post).where(Post.id.in_(published_ids)).order_by(Post.published_at)).all()
    logger.info(f"[publish_sweep] Published {len(posts)} scheduled post(s): {published_ids}")
    return posts
