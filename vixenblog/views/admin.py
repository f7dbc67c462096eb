import os
import uuid
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request, url_for
from flask_login import current_user
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from werkzeug.utils import secure_filename

from .. import engagement
from ..auth import admin_required, record_operation
from ..crud import CrudResource, Field
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Comment, Post, Series, Tag, User, isoformat
from ..posts import autosave_post, save_post
from ..publishing import DRAFT, PUBLISHED, SCHEDULED
from ..rendering import render_content
from ..site_settings import load_settings, save_settings

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

MIN_PASSWORD_LENGTH = 6


def get_post_or_404(post_id):
    post = db.session.get(Post, post_id)
    if post is None:
        raise NotFoundError(f"Post {post_id} not found")
    return post


def _commit_post(post):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Slug '{post.slug}' is already used by another post")


# --- Posts ---

@admin_bp.route('/posts', methods=['GET'])
@admin_required
def list_posts():
    """API 端点：后台文章列表（含草稿与定时文章）"""
    status = request.args.get('status')
    stmt = select(Post)
    if status == PUBLISHED:
        stmt = stmt.where(Post.published.is_(True))
    elif status == SCHEDULED:
        stmt = stmt.where(Post.published.is_(False), Post.scheduled_at.isnot(None))
    elif status == DRAFT:
        stmt = stmt.where(Post.published.is_(False), Post.scheduled_at.is_(None))
    elif status:
        raise ValidationError(f"Unknown status '{status}'")

    posts = db.session.scalars(stmt.order_by(Post.updated_at.desc(), Post.id.desc())).all()
    return jsonify({'success': True, 'data': [post.to_dict(include_content=False) for post in posts]})


@admin_bp.route('/posts', methods=['POST'])
@admin_required
def create_post():
    """API 端点：新建文章"""
    data = request.get_json(silent=True) or {}
    post = Post()
    state = save_post(post, data, author=current_user)
    record_operation('create', 'posts', post.title, post.id)
    _commit_post(post)
    current_app.logger.info(f"[create_post] Post {post.id} '{post.slug}' created as {state}")
    return jsonify({'success': True, 'data': post.to_dict()}), 201


@admin_bp.route('/posts/<int:post_id>', methods=['GET'])
@admin_required
def get_post(post_id):
    return jsonify({'success': True, 'data': get_post_or_404(post_id).to_dict()})


@admin_bp.route('/posts/<int:post_id>', methods=['PUT'])
@admin_required
def update_post(post_id):
    """API 端点：更新文章（标题、内容、状态、标签等整体替换）"""
    post = get_post_or_404(post_id)
    data = request.get_json(silent=True) or {}
    state = save_post(post, data)
    record_operation('update', 'posts', post.title, post.id)
    _commit_post(post)
    current_app.logger.info(f"[update_post] Post {post.id} '{post.slug}' saved as {state}")
    return jsonify({'success': True, 'data': post.to_dict()})


@admin_bp.route('/posts/<int:post_id>/autosave', methods=['PUT'])
@admin_required
def autosave(post_id):
    post = get_post_or_404(post_id)
    autosave_post(post, request.get_json(silent=True) or {})
    db.session.commit()
    return jsonify({'success': True, 'data': {'id': post.id, 'updatedAt': post.to_dict()['updatedAt']}})


@admin_bp.route('/posts/<int:post_id>', methods=['DELETE'])
@admin_required
def delete_post(post_id):
    post = get_post_or_404(post_id)
    record_operation('delete', 'posts', post.title, post.id)
    db.session.delete(post)
    db.session.commit()
    current_app.logger.info(f"[delete_post] Post {post_id} deleted")
    return jsonify({'success': True})


@admin_bp.route('/posts/preview', methods=['POST'])
@admin_required
def preview_post():
    data = request.get_json(silent=True) or {}
    return jsonify({'success': True, 'data': render_content(data.get('content') or '').to_dict()})


# --- Comments ---

@admin_bp.route('/comments', methods=['GET'])
@admin_required
def list_comments():
    status = request.args.get('status', 'all')
    stmt = select(Comment)
    if status == 'pending':
        stmt = stmt.where(Comment.approved.is_(False))
    elif status == 'approved':
        stmt = stmt.where(Comment.approved.is_(True))
    elif status != 'all':
        raise ValidationError(f"Unknown status '{status}'")
    comments = db.session.scalars(stmt.order_by(Comment.created_at.desc(), Comment.id.desc())).all()
    return jsonify({'success': True, 'data': [comment.to_dict() for comment in comments]})


def get_comment_or_404(comment_id):
    comment = db.session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} not found")
    return comment


@admin_bp.route('/comments/<int:comment_id>', methods=['PUT'])
@admin_required
def moderate_comment(comment_id):
    comment = get_comment_or_404(comment_id)
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('approved'), bool):
        raise ValidationError('approved must be true or false')
    record_operation('approve' if data['approved'] else 'reject', 'comments', comment.author, comment.id)
    engagement.set_comment_approval(comment, data['approved'])
    return jsonify({'success': True, 'data': comment.to_dict()})


@admin_bp.route('/comments/<int:comment_id>', methods=['DELETE'])
@admin_required
def delete_comment(comment_id):
    comment = get_comment_or_404(comment_id)
    record_operation('delete', 'comments', comment.author, comment.id)
    db.session.delete(comment)
    db.session.commit()
    return jsonify({'success': True})


# --- Categories, tags and series ---

def _detach_series(series):
    for post in list(series.posts):
        post.series = None
        post.series_order = None


def _serialize_with_count(obj):
    return dict(obj.to_dict(), postCount=len(obj.posts))


categories = CrudResource(
    'categories', Category, singular='category',
    fields=[
        Field('name', 'name', required=True, max_length=100, label='名称'),
        Field('description', 'description', max_length=255, label='描述'),
    ],
    slug_from='name', order_by=Category.name, serialize=_serialize_with_count,
)

tags = CrudResource(
    'tags', Tag, singular='tag',
    fields=[Field('name', 'name', required=True, max_length=100, label='名称')],
    slug_from='name', order_by=Tag.name, serialize=_serialize_with_count,
)

series = CrudResource(
    'series', Series, singular='series',
    fields=[
        Field('name', 'name', required=True, max_length=100, label='名称'),
        Field('description', 'description', label='描述'),
        Field('coverImage', 'cover_image', max_length=500, label='封面'),
    ],
    slug_from='name', order_by=Series.created_at.desc(), serialize=_serialize_with_count,
    before_delete=_detach_series,
)

for resource in (categories, tags, series):
    resource.register(admin_bp)


# --- Settings ---

@admin_bp.route('/settings', methods=['GET'])
@admin_required
def get_settings():
    return jsonify({'success': True, 'data': load_settings().to_dict()})


@admin_bp.route('/settings', methods=['PUT'])
@admin_required
def update_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object of settings')
    record_operation('update', 'settings', ','.join(sorted(data))[:200])
    changed = save_settings(data)
    current_app.logger.info(f"[update_settings] Changed keys: {changed}")
    return jsonify({'success': True, 'data': load_settings().to_dict(), 'changed': changed})


# --- Profile ---

@admin_bp.route('/profile', methods=['GET'])
@admin_required
def get_profile():
    return jsonify({'success': True, 'data': current_user.to_dict()})


@admin_bp.route('/profile', methods=['PUT'])
@admin_required
def update_profile():
    data = request.get_json(silent=True) or {}
    user = db.session.get(User, current_user.id)

    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError('name cannot be empty')
        user.name = name[:80]
    if 'email' in data:
        email = (data.get('email') or '').strip()
        if '@' not in email:
            raise ValidationError('Invalid email address')
        user.email = email
    if 'image' in data:
        user.image = data.get('image') or None

    new_password = data.get('newPassword')
    if new_password:
        if not user.check_password(data.get('currentPassword') or ''):
            raise ValidationError('Current password is incorrect')
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters")
        user.set_password(new_password)

    record_operation('update', 'profile', user.name, user.id)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('Name or email already in use')
    return jsonify({'success': True, 'data': user.to_dict()})


# --- Media library ---

def allowed_file(filename):
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']


def _media_item(filename):
    path = os.path.join(current_app.config['UPLOAD_FOLDER'], filename)
    stat = os.stat(path)
    return {
        'filename': filename,
        'url': url_for('uploaded_file', filename=filename),
        'size': stat.st_size,
        'modifiedAt': isoformat(datetime.fromtimestamp(stat.st_mtime, timezone.utc).replace(tzinfo=None)),
    }


@admin_bp.route('/media', methods=['GET'])
@admin_required
def list_media():
    folder = current_app.config['UPLOAD_FOLDER']
    names = [name for name in os.listdir(folder)
             if os.path.isfile(os.path.join(folder, name)) and allowed_file(name)] if os.path.isdir(folder) else []
    items = sorted((_media_item(name) for name in names), key=lambda item: item['modifiedAt'], reverse=True)
    return jsonify({'success': True, 'data': items})


@admin_bp.route('/media', methods=['POST'])
@admin_required
def upload_media():
    """Stores an uploaded image under a random name inside UPLOAD_FOLDER."""
    file = request.files.get('file') or request.files.get('image')
    if file is None:
        raise ValidationError('No file part')
    if file.filename == '':
        raise ValidationError('No selected file')
    if not allowed_file(file.filename):
        raise ValidationError('File type not allowed')

    original_filename = secure_filename(file.filename)
    extension = original_filename.rsplit('.', 1)[-1].lower()
    unique_filename = f"{uuid.uuid4().hex}.{extension}"
    os.makedirs(current_app.config['UPLOAD_FOLDER'], exist_ok=True)
    file.save(os.path.join(current_app.config['UPLOAD_FOLDER'], unique_filename))

    record_operation('upload', 'media', original_filename)
    db.session.commit()
    current_app.logger.info(f"[upload_media] Saved {original_filename} as {unique_filename}")
    return jsonify({'success': True, 'data': _media_item(unique_filename)}), 201


@admin_bp.route('/media/<string:filename>', methods=['DELETE'])
@admin_required
def delete_media(filename):
    safe_name = secure_filename(filename)
    path = os.path.join(current_app.config['UPLOAD_FOLDER'], safe_name)
    if not safe_name or safe_name != filename or not os.path.isfile(path):
        raise NotFoundError(f"File '{filename}' not found")
    os.remove(path)
    record_operation('delete', 'media', safe_name)
    db.session.commit()
    return jsonify({'success': True})
