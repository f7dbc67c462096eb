import os

import click
from sqlalchemy import select

from .extensions import db
from .models import Category, Post, Tag, User, utcnow
from .publishing import publish_due_posts
from .site_settings import SiteSettings, load_settings, save_settings

DEFAULT_CATEGORIES = [
    ('技术', 'tech', '技术文章与教程'),
    ('生活', 'life', '生活随笔与感悟'),
    ('项目', 'projects', '个人项目展示'),
]

DEFAULT_TAGS = [
    ('Python', 'python'),
    ('Flask', 'flask'),
    ('Docker', 'docker'),
    ('PostgreSQL', 'postgresql'),
]

WELCOME_POST = """## 👋 欢迎来到我的博客

你好，欢迎来到我的个人博客！在这里我会分享技术文章、生活感悟和个人思考。

### 🎯 关于这个博客

- 📝 记录学习笔记和技术心得
- 💡 分享开发经验和最佳实践
- 🎨 展示个人项目和作品

感谢你的访问，希望这里的内容对你有所帮助！🎉
"""


def _create_admin(name, email, password):
    existing = db.session.scalars(select(User).where((User.name == name) | (User.email == email))).first()
    if existing:
        return existing, False
    user = User(name=name, email=email, role='admin')
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user, True


def register(app):
    @app.cli.command('create-db')
    def create_db_command():
        """Creates the database tables."""
        db.create_all()
        click.echo('Database tables created.')

    @app.cli.command('create-admin')
    @click.option('--name', prompt='Admin name')
    @click.option('--email', prompt='Admin email')
    @click.password_option('--password', prompt='Admin password')
    def create_admin_command(name, email, password):
        """Creates the admin user."""
        if len(password) < 6:
            raise click.BadParameter('password must be at least 6 characters', param_hint='--password')
        user, created = _create_admin(name.strip(), email.strip(), password)
        if created:
            click.echo(f"Admin user '{user.name}' created successfully.")
        else:
            click.echo(f"User '{user.name}' already exists.")

    @app.cli.command('seed')
    def seed_command():
        """Adds the admin user, default categories/tags, a welcome post and default settings."""
        db.create_all()
        admin, _ = _create_admin(
            os.environ.get('ADMIN_NAME', 'Admin'),
            os.environ.get('ADMIN_EMAIL') or 'admin@example.com',
            os.environ.get('ADMIN_PASSWORD', 'admin123'),
        )
        click.echo(f"✓ 管理员用户: {admin.name}")

        categories = {}
        for name, slug, description in DEFAULT_CATEGORIES:
            category = db.session.scalars(select(Category).where(Category.slug == slug)).first()
            if category is None:
                category = Category(name=name, slug=slug, description=description)
                db.session.add(category)
            categories[slug] = category

        tags = []
        for name, slug in DEFAULT_TAGS:
            tag = db.session.scalars(select(Tag).where(Tag.slug == slug)).first()
            if tag is None:
                tag = Tag(name=name, slug=slug)
                db.session.add(tag)
            tags.append(tag)
        db.session.commit()
        click.echo(f"✓ 分类 {len(categories)} 个, 标签 {len(tags)} 个")

        if db.session.scalar(select(Post.id).where(Post.slug == 'welcome')) is None:
            db.session.add(Post(
                title='欢迎来到我的博客',
                slug='welcome',
                excerpt='你好，欢迎来到我的个人博客！',
                content=WELCOME_POST,
                published=True,
                published_at=utcnow(),
                author=admin,
                category=categories['tech'],
                tags=tags[:2],
            ))
            db.session.commit()
            click.echo('✓ 欢迎文章已创建')

        # Keys still at their default get an explicit row; edited values are left alone
        defaults = SiteSettings().to_dict()
        stored = load_settings().to_dict()
        missing = {key: value for key, value in defaults.items() if stored[key] == value}
        save_settings(missing)
        click.echo('✓ 默认设置已写入')

    @app.cli.command('publish-scheduled')
    def publish_scheduled_command():
        """Publishes every scheduled post whose time has come."""
        posts = publish_due_posts()
        for post in posts:
            click.echo(f"Published: {post.title} ({post.slug})")
        click.echo(f"{len(posts)} post(s) published.")
