"""004: create conversations and messages

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE conversations (
            id              VARCHAR(64)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            client_id       VARCHAR(64)     NOT NULL,
            provider_id     VARCHAR(64)     NOT NULL REFERENCES providers(id),
            order_id        VARCHAR(64)     REFERENCES orders(id) ON DELETE SET NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    # One conversation per (client, provider, order); NULL order is its own context
    op.execute("""
        CREATE UNIQUE INDEX uq_conversations_participants_order
        ON conversations (client_id, provider_id, COALESCE(order_id, ''));
    """)
    op.execute("CREATE INDEX idx_conversations_client ON conversations (client_id, updated_at DESC);")
    op.execute("CREATE INDEX idx_conversations_provider ON conversations (provider_id, updated_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_conversations_updated_at
            BEFORE UPDATE ON conversations
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE messages (
            id              VARCHAR(64)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            conversation_id VARCHAR(64)     NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            sender_id       VARCHAR(64)     NOT NULL,
            content         TEXT            NOT NULL,
            is_read         BOOLEAN         NOT NULL DEFAULT FALSE,
            delivery_status VARCHAR(10)     NOT NULL DEFAULT 'sent',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_messages_delivery_status CHECK (
                delivery_status IN ('pending', 'sent', 'delivered', 'read')
            ),
            CONSTRAINT ck_messages_read_consistency CHECK (
                NOT is_read OR delivery_status = 'read'
            ),
            CONSTRAINT ck_messages_content_not_blank CHECK (length(btrim(content)) > 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_messages_conversation_created
        ON messages (conversation_id, created_at DESC);
    """)
    op.execute("""
        CREATE INDEX idx_messages_unread
        ON messages (conversation_id, sender_id)
        WHERE is_read = FALSE;
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS messages;")
    op.execute("DROP TABLE IF EXISTS conversations;")
