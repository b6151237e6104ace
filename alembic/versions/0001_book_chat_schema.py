"""Users, books, chat messages and annotations."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_book_chat_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("username", sa.String(length=255), nullable=True, unique=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("initial_greeting", sa.Text(), nullable=True),
        sa.Column(
            "owner_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("uploaded_at"),
    )
    op.create_index("ix_books_owner_id", "books", ["owner_id"])

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "book_id", sa.Integer(), sa.ForeignKey("books.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("sender", sa.String(length=16), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        _timestamp("timestamp"),
    )
    op.create_index("ix_chat_messages_book_id", "chat_messages", ["book_id"])
    op.create_index("ix_chat_messages_owner_id", "chat_messages", ["owner_id"])

    op.create_table(
        "annotations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "book_id", sa.Integer(), sa.ForeignKey("books.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("start_offset", sa.Integer(), nullable=False),
        sa.Column("end_offset", sa.Integer(), nullable=False),
        _timestamp("timestamp"),
        sa.CheckConstraint("start_offset < end_offset", name="ck_annotations_offsets"),
    )
    op.create_index("ix_annotations_owner_book", "annotations", ["owner_id", "book_id"])


def downgrade() -> None:
    op.drop_index("ix_annotations_owner_book", table_name="annotations")
    op.drop_table("annotations")
    op.drop_index("ix_chat_messages_owner_id", table_name="chat_messages")
    op.drop_index("ix_chat_messages_book_id", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_index("ix_books_owner_id", table_name="books")
    op.drop_table("books")
    op.drop_table("users")
