"""Generic admin CRUD endpoints for simple tabular resources.

    GET    /api/admin/<name>        -> list
    POST   /api/admin/<name>        -> create
    GET    /api/admin/<name>/5      -> one
    PUT    /api/admin/<name>/5      -> update
    DELETE /api/admin/<name>/5      -> delete

A resource is described by its model, its editable fields and the set of
capabilities it exposes, instead of a hand-written view module per table.
"""
from dataclasses import dataclass

from flask import current_app, jsonify, request
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from .auth import admin_required, record_operation
from .errors import ConflictError, NotFoundError, ValidationError
from .extensions import db
from .slugs import fallback_slug, generate_slug

ALL_CAPABILITIES = frozenset({'list', 'create', 'update', 'delete'})


@dataclass(frozen=True)
class Field:
    key: str                 # JSON key
    attr: str                # model attribute
    required: bool = False
    max_length: int = None
    label: str = None        # column title for the admin table

    def clean(self, raw):
        if raw is None:
            return None
        value = str(raw).strip()
        if self.max_length and len(value) > self.max_length:
            raise ValidationError(f"{self.key} must be at most {self.max_length} characters")
        return value or None


class CrudResource:
    def __init__(self, name, model, fields, capabilities=ALL_CAPABILITIES, singular=None,
                 slug_from=None, order_by=None, serialize=None, before_delete=None):
        self.name = name
        self.singular = singular or name.rstrip('s')
        self.model = model
        self.fields = list(fields)
        self.capabilities = frozenset(capabilities)
        self.slug_from = slug_from
        self.order_by = order_by
        self.serialize = serialize or (lambda obj: obj.to_dict())
        self.before_delete = before_delete

    def describe(self):
        """Field descriptors the admin UI uses to build its table and form."""
        return {
            'name': self.name,
            'capabilities': sorted(self.capabilities),
            'fields': [
                {'key': f.key, 'label': f.label or f.key, 'required': f.required, 'maxLength': f.max_length}
                for f in self.fields
            ],
            'slug': self.slug_from is not None,
        }

    # -- persistence helpers -------------------------------------------------

    def get_or_404(self, obj_id):
        obj = db.session.get(self.model, obj_id)
        if obj is None:
            raise NotFoundError(f"{self.name} {obj_id} not found")
        return obj

    def _apply(self, obj, data, creating):
        for f in self.fields:
            if f.key not in data:
                if creating and f.required:
                    raise ValidationError(f"{f.key} is required")
                continue
            value = f.clean(data[f.key])
            if f.required and not value:
                raise ValidationError(f"{f.key} is required")
            setattr(obj, f.attr, value)

        if self.slug_from:
            # Slugs stay stable on rename unless one is sent explicitly
            requested = data.get('slug')
            if requested:
                obj.slug = generate_slug(str(requested)) or fallback_slug(self.singular)
            elif creating or not obj.slug:
                obj.slug = generate_slug(getattr(obj, self.slug_from) or '') or fallback_slug(self.singular)

    def _check_unique(self, obj):
        model = self.model
        clauses = []
        if hasattr(model, 'name') and obj.name:
            clauses.append(model.name == obj.name)
        if hasattr(model, 'slug') and obj.slug:
            clauses.append(model.slug == obj.slug)
        if not clauses:
            return
        stmt = select(model.id).where(or_(*clauses))
        if obj.id is not None:
            stmt = stmt.where(model.id != obj.id)
        with db.session.no_autoflush:
            clash = db.session.scalar(stmt)
        if clash is not None:
            raise ConflictError(f"A {self.singular} with this name or slug already exists")

    def _commit(self):
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"A {self.singular} with this name or slug already exists")

    # -- routes ---------------------------------------------------------------

    def register(self, bp):
        name = self.name
        resource = self

        if 'list' in self.capabilities:
            @bp.route(f'/{name}', methods=['GET'], endpoint=f'{name}_all')
            @admin_required
            def get_all():
                stmt = select(resource.model)
                if resource.order_by is not None:
                    stmt = stmt.order_by(resource.order_by)
                items = db.session.scalars(stmt).all()
                return jsonify({'success': True, 'data': [resource.serialize(x) for x in items]})

            @bp.route(f'/{name}/<int:obj_id>', methods=['GET'], endpoint=f'{name}_one')
            @admin_required
            def get_one(obj_id):
                return jsonify({'success': True, 'data': resource.serialize(resource.get_or_404(obj_id))})

        if 'create' in self.capabilities:
            @bp.route(f'/{name}', methods=['POST'], endpoint=f'{name}_create')
            @admin_required
            def create():
                data = request.get_json(silent=True) or {}
                obj = resource.model()
                resource._apply(obj, data, creating=True)
                resource._check_unique(obj)
                db.session.add(obj)
                db.session.flush()
                record_operation('create', name, getattr(obj, 'name', None), obj.id)
                resource._commit()
                current_app.logger.info(f"[{name}_create] Created {name} {obj.id}")
                return jsonify({'success': True, 'data': resource.serialize(obj)}), 201

        if 'update' in self.capabilities:
            @bp.route(f'/{name}/<int:obj_id>', methods=['PUT'], endpoint=f'{name}_update')
            @admin_required
            def update(obj_id):
                obj = resource.get_or_404(obj_id)
                data = request.get_json(silent=True) or {}
                resource._apply(obj, data, creating=False)
                resource._check_unique(obj)
                record_operation('update', name, getattr(obj, 'name', None), obj.id)
                resource._commit()
                return jsonify({'success': True, 'data': resource.serialize(obj)})

        if 'delete' in self.capabilities:
            @bp.route(f'/{name}/<int:obj_id>', methods=['DELETE'], endpoint=f'{name}_delete')
            @admin_required
            def delete(obj_id):
                obj = resource.get_or_404(obj_id)
                if resource.before_delete:
                    resource.before_delete(obj)
                record_operation('delete', name, getattr(obj, 'name', None), obj_id)
                db.session.delete(obj)
                db.session.commit()
                current_app.logger.info(f"[{name}_delete] Deleted {name} {obj_id}")
                return jsonify({'success': True})

        @bp.route(f'/{name}/schema', methods=['GET'], endpoint=f'{name}_schema')
        @admin_required
        def schema():
            return jsonify({'success': True, 'data': resource.describe()})
