from functools import wraps

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy import or_, select

from .errors import ForbiddenError, UnauthorizedError, ValidationError
from .extensions import db, login_manager
from .models import LoginLog, OperationLog, User

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@login_manager.user_loader
def load_user(user_id):
    # Flask-Login stores the id in the session; the user may have been deleted since
    if user_id is None:
        return None
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    # JSON API: answer 401 instead of redirecting to a login page
    raise UnauthorizedError('Login required')


def admin_required(view):
    """login_required plus an admin role check, both before the view runs."""
    @wraps(view)
    @login_required
    def wrapper(*args, **kwargs):
        if not current_user.is_admin:
            raise ForbiddenError('Admin access required')
        return view(*args, **kwargs)
    return wrapper


def client_info():
    forwarded = request.headers.get('X-Forwarded-For', '')
    ip = forwarded.split(',')[0].strip() if forwarded else request.remote_addr
    return ip, (request.user_agent.string or '')[:300]


def record_operation(action, module, target=None, target_id=None):
    """Append an audit row for an admin mutation; committed with the caller's transaction."""
    ip, user_agent = client_info()
    db.session.add(OperationLog(
        user_id=current_user.id,
        user_name=current_user.name,
        action=action,
        module=module,
        target=(target or '')[:200],
        target_id=target_id,
        ip=ip,
        user_agent=user_agent,
    ))


def _log_login(success, message, identifier=None, user=None):
    ip, user_agent = client_info()
    db.session.add(LoginLog(
        user_id=user.id if user else None,
        user_name=user.name if user else None,
        email=user.email if user else identifier,
        success=success,
        message=message,
        ip=ip,
        user_agent=user_agent,
    ))
    db.session.commit()


@auth_bp.route('/login', methods=['POST'])
def login():
    """API 端点：管理员登录（用户名或邮箱）"""
    data = request.get_json(silent=True) or {}
    identifier = (data.get('username') or data.get('email') or '').strip()
    password = data.get('password') or ''
    remember = bool(data.get('remember'))

    if not identifier or not password:
        _log_login(False, 'missing credentials', identifier or None)
        raise ValidationError('Username and password are required')

    user = db.session.scalars(
        select(User).where(or_(User.email == identifier, User.name == identifier))
    ).first()

    if not user:
        _log_login(False, 'unknown user', identifier)
        raise UnauthorizedError('Invalid username or password')
    if not user.check_password(password):
        _log_login(False, 'wrong password', identifier, user)
        raise UnauthorizedError('Invalid username or password')

    login_user(user, remember=remember)
    _log_login(True, 'login ok', identifier, user)
    current_app.logger.info(f"[login] Successful login for user: {user.name}")
    return jsonify({'success': True, 'data': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'success': True, 'data': current_user.to_dict()})
