"""Typed view over the flat ``Setting`` key/value table.

Rows are parsed once per request and cached on ``flask.g``; every write goes
through :func:`save_settings`, which drops the cached copy.
"""
from dataclasses import dataclass, fields

from flask import g
from sqlalchemy import select

from .extensions import db
from .models import Setting

TRUE_VALUES = ('true', '1', 'yes', 'on')


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def parse_int(value, default, minimum=None, maximum=None):
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    if minimum is not None:
        number = max(minimum, number)
    if maximum is not None:
        number = min(maximum, number)
    return number


@dataclass
class SiteSettings:
    # Attribute name -> Setting.key is the camelCase form (site_name -> siteName)
    site_name: str = 'VixenAhri Blog'
    site_description: str = ''
    site_keywords: str = ''
    site_url: str = ''
    site_author: str = ''
    site_email: str = ''
    site_icp: str = ''
    site_analytics: str = ''
    enable_sitemap: bool = False
    enable_rss: bool = False
    posts_per_page: int = 10
    enable_comments: bool = True
    social_github: str = ''
    social_twitter: str = ''
    social_weibo: str = ''
    social_email: str = ''

    @classmethod
    def from_rows(cls, rows):
        values = {}
        defaults = cls()
        for f in fields(cls):
            raw = rows.get(setting_key(f.name))
            default = getattr(defaults, f.name)
            if f.type is bool or f.type == 'bool':
                values[f.name] = parse_bool(raw, default)
            elif f.name == 'posts_per_page':
                values[f.name] = parse_int(raw, default, minimum=1, maximum=50)
            else:
                values[f.name] = default if raw is None else raw
        return cls(**values)

    def to_dict(self):
        return {setting_key(f.name): getattr(self, f.name) for f in fields(self)}


def setting_key(attribute):
    head, *rest = attribute.split('_')
    return head + ''.join(part.capitalize() for part in rest)


SETTING_KEYS = tuple(setting_key(f.name) for f in fields(SiteSettings))


def load_settings():
    cached = g.get('_site_settings')
    if cached is None:
        rows = {s.key: s.value for s in db.session.scalars(select(Setting))}
        cached = SiteSettings.from_rows(rows)
        g._site_settings = cached
    return cached


def invalidate_settings():
    g.pop('_site_settings', None)


def _to_storage(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return ''
    return str(value)


def save_settings(values):
    """Upsert known keys from ``values`` (camelCase); unknown keys are ignored."""
    existing = {s.key: s for s in db.session.scalars(select(Setting).where(Setting.key.in_(SETTING_KEYS)))}
    changed = []
    for key in SETTING_KEYS:
        if key not in values:
            continue
        stored = _to_storage(values[key])
        row = existing.get(key)
        if row is None:
            db.session.add(Setting(key=key, value=stored))
        elif row.value != stored:
            row.value = stored
        else:
            continue
        changed.append(key)
    db.session.commit()
    invalidate_settings()
    return changed
