"""003: create orders and postulations

Invariants enforced here:
- winner_provider_id is set iff status is IN_PROGRESS or COMPLETED
- one postulation per (order, provider)
- at most one ACCEPTED postulation per order

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(64)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            client_id           VARCHAR(64)     NOT NULL,
            category_id         INT             NOT NULL REFERENCES categories(id),
            title               VARCHAR(200)    NOT NULL,
            description         TEXT            NOT NULL,
            lat                 NUMERIC(10, 7)  NOT NULL,
            lng                 NUMERIC(10, 7)  NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            images              JSONB           NOT NULL DEFAULT '[]'::jsonb,
            budget_estimate     VARCHAR(100),
            winner_provider_id  VARCHAR(64)     REFERENCES providers(id),
            final_agreed_price  NUMERIC(12, 2),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_status CHECK (
                status IN ('PENDING', 'MATCHED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')
            ),
            CONSTRAINT ck_orders_lat CHECK (lat BETWEEN -90 AND 90),
            CONSTRAINT ck_orders_lng CHECK (lng BETWEEN -180 AND 180),
            CONSTRAINT ck_orders_winner_status CHECK (
                (winner_provider_id IS NOT NULL) = (status IN ('IN_PROGRESS', 'COMPLETED'))
            ),
            CONSTRAINT ck_orders_final_price_gte_0 CHECK (
                final_agreed_price IS NULL OR final_agreed_price >= 0
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_client ON orders (client_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_orders_feed
        ON orders (category_id, created_at DESC)
        WHERE status = 'PENDING';
    """)
    op.execute("CREATE INDEX idx_orders_status_updated ON orders (status, updated_at);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE postulations (
            id              VARCHAR(64)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            order_id        VARCHAR(64)     NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
            provider_id     VARCHAR(64)     NOT NULL REFERENCES providers(id),
            status          VARCHAR(20)     NOT NULL DEFAULT 'SENT',
            message         TEXT,
            budget          NUMERIC(12, 2),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_postulations_order_provider UNIQUE (order_id, provider_id),
            CONSTRAINT ck_postulations_status CHECK (status IN ('SENT', 'ACCEPTED', 'REJECTED')),
            CONSTRAINT ck_postulations_budget_gte_0 CHECK (budget IS NULL OR budget >= 0)
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_postulations_one_accepted
        ON postulations (order_id)
        WHERE status = 'ACCEPTED';
    """)
    op.execute("""
        CREATE INDEX idx_postulations_provider_sent
        ON postulations (provider_id)
        WHERE status = 'SENT';
    """)
    op.execute("""
        CREATE TRIGGER trg_postulations_updated_at
            BEFORE UPDATE ON postulations
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS postulations;")
    op.execute("DROP TABLE IF EXISTS orders;")
