from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import case, func, or_, select

from .. import engagement
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Post, Series, Tag, post_tags
from ..posts import parse_id, text_value
from ..rendering import render_content
from ..site_settings import load_settings, parse_int

public_bp = Blueprint('public', __name__, url_prefix='/api')

SEARCH_LIMIT = 20
RELATED_LIMIT = 5


def published_posts():
    return select(Post).where(Post.published.is_(True))


def series_ordering():
    # Explicit series_order first (ascending), unnumbered posts after them
    return (case((Post.series_order.is_(None), 1), else_=0), Post.series_order, Post.created_at, Post.id)


def get_published_or_404(slug):
    post = db.session.scalars(published_posts().where(Post.slug == slug)).first()
    if post is None:
        raise NotFoundError(f"Post '{slug}' not found")
    return post


@public_bp.route('/posts', methods=['GET'])
def get_posts():
    """API 端点：已发布文章列表（分页，可按分类/标签/系列过滤）"""
    settings = load_settings()
    page = parse_int(request.args.get('page'), 1, minimum=1)
    per_page = settings.posts_per_page

    stmt = published_posts()
    if request.args.get('category'):
        stmt = stmt.join(Post.category).where(Category.slug == request.args['category'])
    if request.args.get('tag'):
        stmt = stmt.where(Post.tags.any(Tag.slug == request.args['tag']))
    if request.args.get('series'):
        stmt = stmt.join(Post.series).where(Series.slug == request.args['series'])

    total = db.session.scalar(select(func.count()).select_from(stmt.subquery()))
    posts = db.session.scalars(
        stmt.order_by(Post.published_at.desc(), Post.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    ).all()

    return jsonify({
        'success': True,
        'data': [post.to_dict(include_content=False) for post in posts],
        'pagination': {
            'page': page,
            'perPage': per_page,
            'total': total,
            'totalPages': (total + per_page - 1) // per_page,
        },
    })


def _neighbours(post):
    previous = db.session.scalars(
        published_posts()
        .where(or_(Post.published_at < post.published_at,
                   (Post.published_at == post.published_at) & (Post.id < post.id)))
        .order_by(Post.published_at.desc(), Post.id.desc())
    ).first()
    following = db.session.scalars(
        published_posts()
        .where(or_(Post.published_at > post.published_at,
                   (Post.published_at == post.published_at) & (Post.id > post.id)))
        .order_by(Post.published_at, Post.id)
    ).first()
    return previous, following


def _related(post):
    if post.category_id is None:
        return []
    return db.session.scalars(
        published_posts()
        .where(Post.category_id == post.category_id, Post.id != post.id)
        .order_by(Post.published_at.desc())
        .limit(RELATED_LIMIT)
    ).all()


def _series_posts(series_id):
    return db.session.scalars(
        published_posts().where(Post.series_id == series_id).order_by(*series_ordering())
    ).all()


@public_bp.route('/posts/<string:slug>', methods=['GET'])
def get_post_detail(slug):
    """API 端点：单篇文章详情，正文渲染为 HTML 并附带目录"""
    post = get_published_or_404(slug)
    engagement.record_view(post.id)

    data = post.to_dict()
    data.update(render_content(post.content).to_dict())

    previous, following = _neighbours(post)
    data['prevPost'] = previous.to_summary() if previous else None
    data['nextPost'] = following.to_summary() if following else None
    data['relatedPosts'] = [p.to_summary() for p in _related(post)]
    data['seriesPosts'] = [p.to_summary() for p in _series_posts(post.series_id)] if post.series_id else []

    visitor_id = request.args.get('visitorId')
    data['liked'] = engagement.has_liked(post.id, visitor_id) if visitor_id else False
    return jsonify({'success': True, 'data': data})


@public_bp.route('/posts/<string:slug>/like', methods=['POST'])
def like_post(slug):
    data = request.get_json(silent=True) or {}
    visitor_id = str(data.get('visitorId') or '').strip()
    if not visitor_id:
        raise ValidationError('visitorId is required')
    post = get_published_or_404(slug)
    result = engagement.toggle_like(post.id, visitor_id[:100])
    return jsonify({'success': True, 'data': result.to_dict()})


@public_bp.route('/comments', methods=['GET'])
def get_comments():
    post_id = parse_id(request.args.get('postId'), 'postId')
    slug = request.args.get('slug')
    if post_id is None and not slug:
        raise ValidationError('postId or slug is required')

    stmt = published_posts()
    stmt = stmt.where(Post.id == post_id) if post_id is not None else stmt.where(Post.slug == slug)
    post = db.session.scalars(stmt).first()
    if post is None:
        raise NotFoundError('Post not found')
    return jsonify({'success': True, 'data': engagement.public_comments(post.id)})


@public_bp.route('/comments', methods=['POST'])
def create_comment():
    """API 端点：提交评论（需审核后才会显示）"""
    if not load_settings().enable_comments:
        raise ForbiddenError('Comments are disabled')

    data = request.get_json(silent=True) or {}
    author = text_value(data, 'author').strip()
    email = text_value(data, 'email').strip()
    content = text_value(data, 'content').strip()
    if not author or not email or not content:
        raise ValidationError('author, email and content are required')
    if '@' not in email:
        raise ValidationError('Invalid email address')
    if len(author) > 100 or len(content) > 5000:
        raise ValidationError('Comment is too long')

    post_id = parse_id(data.get('postId'), 'postId')
    slug = text_value(data, 'slug').strip()
    if post_id is None and not slug:
        raise ValidationError('postId or slug is required')
    stmt = published_posts()
    stmt = stmt.where(Post.id == post_id) if post_id is not None else stmt.where(Post.slug == slug)
    post = db.session.scalars(stmt).first()
    if post is None:
        raise NotFoundError('Post not found')

    comment = engagement.submit_comment(
        post,
        author=author,
        email=email,
        content=content,
        website=text_value(data, 'website').strip() or None,
        parent_id=parse_id(data.get('parentId'), 'parentId'),
    )
    current_app.logger.info(f"[create_comment] Comment {comment.id} received for post {post.id}")
    return jsonify({
        'success': True,
        'data': comment.to_public_dict(),
        'message': 'Comment submitted and awaiting moderation',
    }), 201


@public_bp.route('/search', methods=['GET'])
def search():
    query = (request.args.get('q') or '').strip()
    if len(query) < 2:
        return jsonify({'success': True, 'data': []})

    pattern = f"%{query}%"
    posts = db.session.scalars(
        published_posts()
        .where(or_(Post.title.ilike(pattern), Post.content.ilike(pattern), Post.excerpt.ilike(pattern)))
        .order_by(Post.published_at.desc())
        .limit(SEARCH_LIMIT)
    ).all()
    return jsonify({'success': True, 'data': [post.to_summary() for post in posts]})


@public_bp.route('/series/<string:slug>', methods=['GET'])
def get_series(slug):
    series = db.session.scalars(select(Series).where(Series.slug == slug)).first()
    if series is None:
        raise NotFoundError(f"Series '{slug}' not found")
    data = series.to_dict()
    data['posts'] = [post.to_summary() for post in _series_posts(series.id)]
    return jsonify({'success': True, 'data': data})


def _published_count(column):
    return (
        select(column, func.count(Post.id))
        .where(Post.published.is_(True))
        .group_by(column)
    )


@public_bp.route('/categories', methods=['GET'])
def get_categories():
    counts = dict(db.session.execute(_published_count(Post.category_id).where(Post.category_id.isnot(None))).all())
    categories = db.session.scalars(select(Category).order_by(Category.name)).all()
    return jsonify({'success': True, 'data': [
        dict(category.to_dict(), postCount=counts.get(category.id, 0)) for category in categories
    ]})


@public_bp.route('/tags', methods=['GET'])
def get_tags():
    counts = dict(db.session.execute(
        select(post_tags.c.tag_id, func.count(Post.id))
        .join(Post, Post.id == post_tags.c.post_id)
        .where(Post.published.is_(True))
        .group_by(post_tags.c.tag_id)
    ).all())
    tags = db.session.scalars(select(Tag).order_by(Tag.name)).all()
    return jsonify({'success': True, 'data': [
        dict(tag.to_dict(), postCount=counts.get(tag.id, 0)) for tag in tags
    ]})


SETTING_GROUPS = {
    'display': ('postsPerPage', 'enableComments'),
    'footer': ('socialGithub', 'socialTwitter', 'socialWeibo', 'socialEmail', 'siteIcp'),
    'analytics': ('siteAnalytics',),
}


@public_bp.route('/settings/<string:group>', methods=['GET'])
def get_public_settings(group):
    keys = SETTING_GROUPS.get(group)
    if keys is None:
        raise NotFoundError(f"Unknown settings group '{group}'")
    values = load_settings().to_dict()
    return jsonify({'success': True, 'data': {key: values[key] for key in keys}})
