"""Engagement & notification tables.

Deals, lenders and activity logs already exist in the CRM database; they are
created here only if missing so a fresh database can run the service. Adds the
activity index used by engagement queries and the two FLEx notification tables.

Revision ID: 001_engagement_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_engagement_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- CRM tables (normally pre-existing) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS deals (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            company VARCHAR(256) NOT NULL,
            stage VARCHAR(64),
            status VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_deals_user ON deals(user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS deal_lenders (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            deal_id UUID NOT NULL REFERENCES deals(id) ON DELETE CASCADE,
            name VARCHAR(256) NOT NULL,
            tracking_status VARCHAR(32) NOT NULL DEFAULT 'active',
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_deal_lenders_deal ON deal_lenders(deal_id)")

    # --- Event store ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS activity_logs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            deal_id UUID NOT NULL REFERENCES deals(id) ON DELETE CASCADE,
            activity_type VARCHAR(64) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            user_id UUID,
            user_display_name VARCHAR(128),
            metadata JSONB DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_activity_logs_deal_type
        ON activity_logs(deal_id, activity_type)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_activity_logs_created
        ON activity_logs(created_at)
    """)

    # --- Settings ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_settings (
            user_id UUID PRIMARY KEY,
            notifications JSONB NOT NULL DEFAULT '{}',
            updated_at TIMESTAMPTZ
        )
    """)

    # --- FLEx notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS flex_info_notifications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            deal_id UUID NOT NULL REFERENCES deals(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL DEFAULT 'info_request',
            status VARCHAR(16) NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'read', 'approved', 'denied')),
            message TEXT NOT NULL,
            lender_name VARCHAR(256),
            user_email VARCHAR(320),
            company_name VARCHAR(256),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            decided_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_flex_info_notifications_deal
        ON flex_info_notifications(deal_id)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS flex_notifications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL,
            deal_id UUID NOT NULL REFERENCES deals(id) ON DELETE CASCADE,
            alert_type VARCHAR(32) NOT NULL,
            title VARCHAR(256) NOT NULL,
            message TEXT NOT NULL,
            lender_name VARCHAR(256),
            lender_email VARCHAR(320),
            engagement_score INTEGER,
            read_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_flex_notifications_user
        ON flex_notifications(user_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS flex_notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS flex_info_notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS user_settings CASCADE")
    # CRM tables existed before this migration; only drop the indexes added here
    op.execute("DROP INDEX IF EXISTS idx_activity_logs_deal_type")
    op.execute("DROP INDEX IF EXISTS idx_activity_logs_created")
