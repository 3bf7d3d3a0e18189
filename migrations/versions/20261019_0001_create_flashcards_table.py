"""Create the flashcards table with its due-date index."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "flashcards",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("deck_id", sa.String(length=128), nullable=False),
        sa.Column("note_id", sa.String(length=64), nullable=True),
        sa.Column("front", sa.Text(), nullable=False),
        sa.Column("back", sa.Text(), nullable=False),
        sa.Column("ease_factor", sa.Float(), server_default=sa.text("2.5"), nullable=False),
        sa.Column("interval", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("repetitions", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "next_review_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("ease_factor >= 1.3", name="ck_flashcards_ease_factor_floor"),
        sa.CheckConstraint("interval >= 0", name="ck_flashcards_interval_non_negative"),
        sa.CheckConstraint("repetitions >= 0", name="ck_flashcards_repetitions_non_negative"),
    )
    op.create_index(
        "ix_flashcards_owner_id_next_review_at",
        "flashcards",
        ("owner_id", "next_review_at"),
    )
    op.create_index(
        "ix_flashcards_owner_id_deck_id",
        "flashcards",
        ("owner_id", "deck_id"),
    )


def downgrade() -> None:
    op.drop_index("ix_flashcards_owner_id_deck_id", table_name="flashcards")
    op.drop_index("ix_flashcards_owner_id_next_review_at", table_name="flashcards")
    op.drop_table("flashcards")
