from __future__ import annotations

from ..extensions import db
from flexpos.time_utils import to_utc_z

class FieldDefinition(db.Model):
    """
    One attribute of a tenant's product schema.

    MULTI-TENANT: Keys are unique within an organization, not globally.
    Keys are stored already normalized (lowercase slug), so the unique
    constraint also enforces case-insensitive uniqueness.

    Core keys (sku, name, ...) map onto Product columns; every other key
    lives in Product.attributes.
    """
    __tablename__ = "field_definitions"
    __table_args__ = (
        db.UniqueConstraint("org_id", "field_key", name="uq_field_definitions_org_key"),
        db.Index("ix_field_definitions_org_order", "org_id", "display_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    field_key = db.Column(db.String(64), nullable=False)
    label = db.Column(db.String(120), nullable=False)
    field_type = db.Column(db.String(16), nullable=False, default="text")

    is_required = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    is_custom = db.Column(db.Boolean, nullable=False, default=True)

    # Ordered list of allowed values (select/multiselect only)
    options = db.Column(db.JSON, nullable=False, default=list)
    # Subset of {min, max, min_length, max_length}
    validation_rules = db.Column(db.JSON, nullable=False, default=dict)

    placeholder_text = db.Column(db.String(255), nullable=True)
    help_text = db.Column(db.String(255), nullable=True)

    display_order = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("field_definitions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<FieldDefinition key={self.field_key!r} type={self.field_type} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "field_key": self.field_key,
            "label": self.label,
            "field_type": self.field_type,
            "is_required": self.is_required,
            "is_active": self.is_active,
            "is_custom": self.is_custom,
            "options": list(self.options or []),
            "validation_rules": dict(self.validation_rules or {}),
            "placeholder_text": self.placeholder_text,
            "help_text": self.help_text,
            "display_order": self.display_order,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
