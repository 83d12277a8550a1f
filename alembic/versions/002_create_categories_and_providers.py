"""002: create categories, providers and provider_categories

Provider profiles are written by the provider CRUD surface; this service
reads them for identity resolution, matching and chat display.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE categories (
            id              SERIAL          PRIMARY KEY,
            name            VARCHAR(80)     NOT NULL,
            slug            VARCHAR(80)     NOT NULL,
            icon            VARCHAR(80),
            sort_order      SMALLINT        NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_categories_slug UNIQUE (slug)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_categories_updated_at
            BEFORE UPDATE ON categories
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE providers (
            id                  VARCHAR(64)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            user_id             VARCHAR(64)     NOT NULL,
            category_id         INT             NOT NULL REFERENCES categories(id),
            first_name          VARCHAR(60)     NOT NULL,
            last_name           VARCHAR(60)     NOT NULL,
            lat                 NUMERIC(10, 7),
            lng                 NUMERIC(10, 7),
            status              VARCHAR(16)     NOT NULL DEFAULT 'active',
            emergency_available BOOLEAN         NOT NULL DEFAULT FALSE,
            avatar_url          VARCHAR(512),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_providers_user_id UNIQUE (user_id),
            CONSTRAINT ck_providers_status  CHECK (status IN ('active', 'paused', 'suspended')),
            CONSTRAINT ck_providers_lat     CHECK (lat IS NULL OR lat BETWEEN -90 AND 90),
            CONSTRAINT ck_providers_lng     CHECK (lng IS NULL OR lng BETWEEN -180 AND 180),
            CONSTRAINT ck_providers_coords  CHECK ((lat IS NULL) = (lng IS NULL))
        );
    """)
    op.execute("CREATE INDEX idx_providers_category_status ON providers (category_id, status);")
    op.execute("""
        CREATE TRIGGER trg_providers_updated_at
            BEFORE UPDATE ON providers
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE provider_categories (
            provider_id     VARCHAR(64)     NOT NULL REFERENCES providers(id) ON DELETE CASCADE,
            category_id     INT             NOT NULL REFERENCES categories(id),
            PRIMARY KEY (provider_id, category_id)
        );
    """)
    op.execute("CREATE INDEX idx_provider_categories_category ON provider_categories (category_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS provider_categories;")
    op.execute("DROP TABLE IF EXISTS providers;")
    op.execute("DROP TABLE IF EXISTS categories;")
