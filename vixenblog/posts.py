"""Create / update rules for posts shared by the admin endpoints and the CLI."""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from .errors import ConflictError, ValidationError
from .extensions import db
from .models import Category, Post, Series, Tag
from .publishing import DRAFT, apply_publish_state, parse_schedule
from .rendering import extract_excerpt
from .site_settings import parse_bool
from .slugs import fallback_slug, generate_slug

logger = logging.getLogger(__name__)


def parse_id(value, field):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def text_value(data, field):
    """``data[field]`` as a string; missing or null is ''."""
    value = data.get(field)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def require_title_and_content(data):
    title = text_value(data, 'title').strip()
    content = text_value(data, 'content')
    if not title or not content.strip():
        raise ValidationError('Title and content are required')
    return title, content


def resolve_slug(requested, title, exclude_id=None, current=None):
    """Normalise the requested slug (or derive one from the title) and make sure it is free.

    An existing post whose title yields no slug keeps ``current`` instead of
    drawing a new random one on every save.
    """
    if requested is not None and not isinstance(requested, str):
        raise ValidationError('slug must be a string')
    slug = generate_slug(requested) if requested else generate_slug(title)
    if not slug:
        if exclude_id is not None and current and not requested:
            return current
        slug = fallback_slug('post')

    stmt = select(Post.id).where(Post.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(Post.id != exclude_id)
    with db.session.no_autoflush:
        taken = db.session.scalar(stmt)
    if taken is not None:
        raise ConflictError(f"Slug '{slug}' is already used by another post")
    return slug


def get_or_create_tag(name, pending=None):
    """Find a tag by name or slug, creating it if neither exists.

    ``pending`` maps names and slugs to tags created earlier in the same save,
    which the no-autoflush query cannot see yet.
    """
    pending = {} if pending is None else pending
    name = name.strip()
    slug = generate_slug(name) or fallback_slug('tag')
    tag = pending.get(('name', name)) or pending.get(('slug', slug))
    if tag is None:
        with db.session.no_autoflush:
            tag = db.session.scalars(select(Tag).where((Tag.name == name) | (Tag.slug == slug))).first()
    if tag is None:
        logger.info(f"[save_post] Tag '{name}' not found, creating it.")
        tag = Tag(name=name, slug=slug)
        db.session.add(tag)
    pending[('name', name)] = tag
    pending[('slug', tag.slug)] = tag
    return tag


def resolve_tags(data):
    """``tagIds`` are existing ids; ``tags`` may mix ids and names (names are created on demand)."""
    wanted_ids = []
    names = []
    for value in list(data.get('tagIds') or []) + list(data.get('tags') or []):
        if isinstance(value, str) and not value.strip().isdigit():
            if value.strip() and value.strip() not in names:
                names.append(value.strip())
        else:
            wanted_ids.append(parse_id(value, 'tagIds'))

    tags = []
    if wanted_ids:
        with db.session.no_autoflush:
            found = {t.id: t for t in db.session.scalars(select(Tag).where(Tag.id.in_(wanted_ids)))}
        missing = [tag_id for tag_id in wanted_ids if tag_id not in found]
        if missing:
            raise ValidationError(f"Unknown tag id(s): {missing}")
        tags.extend(found[tag_id] for tag_id in dict.fromkeys(wanted_ids))
    pending = {}
    for name in names:
        tag = get_or_create_tag(name, pending)
        if tag not in tags:
            tags.append(tag)
    return tags


def resolve_category(data):
    category_id = parse_id(data.get('categoryId'), 'categoryId')
    if category_id is not None:
        category = db.session.get(Category, category_id)
        if category is None:
            raise ValidationError(f"Unknown category id: {category_id}")
        return category

    name = text_value(data, 'category').strip()
    if not name:
        return None
    with db.session.no_autoflush:
        category = db.session.scalars(select(Category).where(Category.name == name)).first()
    if not category:
        logger.info(f"[save_post] Category '{name}' not found, creating it.")
        category = Category(name=name, slug=generate_slug(name) or fallback_slug('category'))
        db.session.add(category)
    return category


def resolve_series(data):
    series_id = parse_id(data.get('seriesId'), 'seriesId')
    if series_id is None:
        return None, None
    series = db.session.get(Series, series_id)
    if series is None:
        raise ValidationError(f"Unknown series id: {series_id}")
    return series, parse_id(data.get('seriesOrder'), 'seriesOrder')


def save_post(post, data, author=None, now=None):
    """Validate ``data`` and apply it to ``post`` (new or existing); flushes, does not commit.

    Order of checks: title/content, schedule format, slug collision, then
    associations. Returns the resulting publishing state.
    """
    title, content = require_title_and_content(data)
    scheduled_at = parse_schedule(data.get('scheduledAt'))
    slug = resolve_slug(data.get('slug'), title, exclude_id=post.id, current=post.slug)
    category = resolve_category(data)
    series, series_order = resolve_series(data)
    tags = resolve_tags(data)

    post.title = title
    post.slug = slug
    post.content = content
    post.excerpt = text_value(data, 'excerpt').strip() or extract_excerpt(content)
    post.cover_image = data.get('coverImage') or None
    post.category = category
    post.series = series
    post.series_order = series_order
    post.tags = tags

    state = apply_publish_state(post, parse_bool(data.get('published')), scheduled_at, now=now)

    if post.id is None:
        post.author = author
        db.session.add(post)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Post '{title}' conflicts with an existing slug or tag")
    return state


def autosave_post(post, data):
    """Save editor content of a draft without touching slug, relations or publish state."""
    if post.status != DRAFT:
        raise ConflictError('Autosave is only available for drafts')

    for key, attr in (('title', 'title'), ('content', 'content'), ('excerpt', 'excerpt'), ('coverImage', 'cover_image')):
        if key in data:
            value = text_value(data, key)
            setattr(post, attr, value.strip() if key == 'title' else value or None)

    if not (post.title or '').strip() or not (post.content or '').strip():
        raise ValidationError('Title and content are required')
    db.session.flush()
    return post
