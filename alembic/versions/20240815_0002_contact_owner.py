"""Scope contacts to an owning user

Existing contacts predate login and have no owner. They are assigned to the
user for OWNER_EMAIL (created if missing) before owner_id becomes NOT NULL.

Revision ID: 20240815_0002
Revises: 20240801_0001
Create Date: 2024-08-15 10:30:00.000000
"""

import os
import uuid
from datetime import datetime, timezone

from alembic import context, op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20240815_0002"
down_revision = "20240801_0001"
branch_labels = None
depends_on = None


users = sa.table(
    "users",
    sa.column("id", sa.Uuid()),
    sa.column("email", sa.String()),
    sa.column("created_at", sa.DateTime(timezone=True)),
)
contacts = sa.table(
    "contacts",
    sa.column("owner_id", sa.Uuid()),
)


def _owner_email() -> str:
    email = context.config.attributes.get("owner_email") or os.getenv("OWNER_EMAIL") or ""
    return email.strip().lower()


def _ensure_owner(bind, email: str) -> uuid.UUID:
    owner_id = bind.execute(sa.select(users.c.id).where(users.c.email == email)).scalar()
    if owner_id is not None:
        return owner_id
    owner_id = uuid.uuid4()
    bind.execute(users.insert().values(id=owner_id, email=email, created_at=datetime.now(timezone.utc)))
    return owner_id


def upgrade() -> None:
    with op.batch_alter_table("contacts") as batch_op:
        batch_op.add_column(sa.Column("owner_id", sa.Uuid(), nullable=True))

    bind = op.get_bind()
    orphaned = bind.execute(
        sa.select(sa.func.count()).select_from(contacts).where(contacts.c.owner_id.is_(None))
    ).scalar()
    if orphaned:
        email = _owner_email()
        if not email:
            raise RuntimeError(
                f"{orphaned} contacts have no owner; set OWNER_EMAIL to assign them before upgrading"
            )
        owner_id = _ensure_owner(bind, email)
        bind.execute(contacts.update().where(contacts.c.owner_id.is_(None)).values(owner_id=owner_id))

    with op.batch_alter_table("contacts") as batch_op:
        batch_op.alter_column("owner_id", existing_type=sa.Uuid(), nullable=False)
        batch_op.create_foreign_key(
            "fk_contacts_owner_id_users", "users", ["owner_id"], ["id"], ondelete="CASCADE"
        )
        batch_op.create_index("ix_contacts_owner_updated", ["owner_id", "updated_at"])


def downgrade() -> None:
    with op.batch_alter_table("contacts") as batch_op:
        batch_op.drop_index("ix_contacts_owner_updated")
        batch_op.drop_constraint("fk_contacts_owner_id_users", type_="foreignkey")
        batch_op.drop_column("owner_id")
