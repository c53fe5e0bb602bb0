"""Initial schema: users, login codes, sessions, contacts

Databases created by the pre-Alembic bootstrap already hold ``users``,
``contacts``, ``magic_tokens`` and a ``sessions`` table keyed by the raw
token. Existing tables are adopted as they are; pending codes move to
``login_codes`` and live sessions are re-keyed by token hash.

Revision ID: 20240801_0001
Revises:
Create Date: 2024-08-01 09:00:00.000000
"""

import hashlib

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20240801_0001"
down_revision = None
branch_labels = None
depends_on = None


def _hash_token(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _index_names(inspector, table: str) -> set:
    return {index["name"] for index in inspector.get_indexes(table)}


def _create_sessions() -> None:
    op.create_table(
        "sessions",
        sa.Column("token_hash", sa.String(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])


def _rekey_legacy_sessions(bind) -> None:
    legacy = sa.table(
        "sessions",
        sa.column("token", sa.String()),
        sa.column("user_id", sa.Uuid()),
        sa.column("created_at", sa.DateTime(timezone=True)),
        sa.column("last_used_at", sa.DateTime(timezone=True)),
    )
    rows = bind.execute(
        sa.select(legacy.c.token, legacy.c.user_id, legacy.c.created_at, legacy.c.last_used_at)
    ).all()

    op.drop_table("sessions")
    _create_sessions()

    if rows:
        sessions = sa.table(
            "sessions",
            sa.column("token_hash", sa.String()),
            sa.column("user_id", sa.Uuid()),
            sa.column("created_at", sa.DateTime(timezone=True)),
            sa.column("last_used_at", sa.DateTime(timezone=True)),
        )
        bind.execute(
            sessions.insert(),
            [
                {
                    "token_hash": _hash_token(row.token),
                    "user_id": row.user_id,
                    "created_at": row.created_at,
                    "last_used_at": row.last_used_at,
                }
                for row in rows
            ],
        )


def _copy_magic_tokens(bind) -> None:
    columns = ["id", "email", "code", "expires_at", "used_at", "created_at"]
    magic_tokens = sa.table("magic_tokens", *(sa.column(name) for name in columns))
    login_codes = sa.table("login_codes", *(sa.column(name) for name in columns))
    bind.execute(
        login_codes.insert().from_select(columns, sa.select(*(magic_tokens.c[name] for name in columns)))
    )
    op.drop_table("magic_tokens")


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing = set(inspector.get_table_names())

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
    if "users" not in existing or "ix_users_email" not in _index_names(inspector, "users"):
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    if "login_codes" not in existing:
        op.create_table(
            "login_codes",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("code", sa.String(length=6), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_login_codes_email", "login_codes", ["email"])
    if "magic_tokens" in existing:
        _copy_magic_tokens(bind)

    if "sessions" not in existing:
        _create_sessions()
    elif "token" in {column["name"] for column in inspector.get_columns("sessions")}:
        _rekey_legacy_sessions(bind)

    if "contacts" not in existing:
        op.create_table(
            "contacts",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("phone", sa.String(), nullable=True),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("address", sa.String(), nullable=True),
            sa.Column("value_cents", sa.Integer(), nullable=True),
            sa.Column("lat", sa.Float(), nullable=True),
            sa.Column("lng", sa.Float(), nullable=True),
            sa.Column("tags", sa.String(), nullable=True),
            sa.Column("job_type", sa.String(), nullable=True),
            sa.Column("u1", sa.String(), nullable=True),
            sa.Column("u2", sa.String(), nullable=True),
            sa.Column("u3", sa.String(), nullable=True),
            sa.Column("u4", sa.String(), nullable=True),
            sa.Column("u5", sa.String(), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
    if "contacts" not in existing or "contacts_updated_idx" not in _index_names(inspector, "contacts"):
        op.create_index("contacts_updated_idx", "contacts", ["updated_at"])


def downgrade() -> None:
    op.drop_index("contacts_updated_idx", table_name="contacts")
    op.drop_table("contacts")
    op.drop_index("ix_sessions_user_id", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("ix_login_codes_email", table_name="login_codes")
    op.drop_table("login_codes")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
