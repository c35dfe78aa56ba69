"""Initial schema"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    ]
    if updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False)
        )
    return columns


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto";')

    uuid = postgresql.UUID(as_uuid=False)
    jsonb = postgresql.JSONB()
    empty_object = sa.text("'{}'::jsonb")
    empty_array = sa.text("'[]'::jsonb")

    op.create_table(
        "orgs",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("external_id", sa.Text(), nullable=True, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "applications",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("org_id", uuid, sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(120), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("branding", jsonb, nullable=False, server_default=empty_object),
        sa.Column("settings", jsonb, nullable=False, server_default=empty_object),
        sa.Column("component_styles", jsonb, nullable=False, server_default=empty_object),
        sa.Column("branding_revision", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_applications_org", "applications", ["org_id"])

    op.create_table(
        "application_versions",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("application_id", uuid, sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("branding", jsonb, nullable=False, server_default=empty_object),
        sa.Column("settings", jsonb, nullable=False, server_default=empty_object),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("application_id", "version_number", name="uq_application_versions_number"),
    )

    op.create_table(
        "stored_assets",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("org_id", uuid, sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("application_id", uuid, sa.ForeignKey("applications.id", ondelete="SET NULL"), nullable=True),
        sa.Column("kind", sa.String(32), nullable=False, server_default="branding"),
        sa.Column("storage_backend", sa.String(16), nullable=False),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("content_type", sa.Text(), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("filename", sa.Text(), nullable=True),
        sa.Column("sha256", sa.String(64), nullable=False),
        sa.Column("created_by", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("idx_stored_assets_application", "stored_assets", ["application_id"])

    op.create_table(
        "content_pages",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("org_id", uuid, sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("application_id", uuid, sa.ForeignKey("applications.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(200), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("components", jsonb, nullable=False, server_default=empty_array),
        sa.Column("mobile_display", jsonb, nullable=False, server_default=empty_object),
        sa.Column("created_by", sa.Text(), nullable=True),
        sa.Column("updated_by", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "slug", name="uq_content_pages_org_slug"),
    )
    op.create_index("idx_content_pages_org_status", "content_pages", ["org_id", "status"])

    op.create_table(
        "content_versions",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("page_id", uuid, sa.ForeignKey("content_pages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", jsonb, nullable=False),
        sa.Column("change_description", sa.Text(), nullable=True),
        sa.Column("is_auto_save", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("size_bytes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("page_id", "version_number", name="uq_content_versions_page_number"),
    )

    op.create_table(
        "content_analytics",
        sa.Column("page_id", uuid, sa.ForeignKey("content_pages.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("clicks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("conversions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_viewed", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "marketing_slides",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("org_id", uuid, sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("application_id", uuid, sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("subtitle", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("ordering", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("slide_data", jsonb, nullable=False, server_default=empty_object),
        sa.Column("created_by", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_marketing_slides_org_app", "marketing_slides", ["org_id", "application_id"])

    op.create_table(
        "billing_customers",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("org_id", uuid, sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("stripe_customer_id", sa.Text(), nullable=False, unique=True),
        sa.Column("default_payment_method_id", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("org_id", "user_id", name="uq_billing_customers_org_user"),
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("org_id", uuid, sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("application_id", uuid, sa.ForeignKey("applications.id", ondelete="SET NULL"), nullable=True),
        sa.Column("stripe_subscription_id", sa.Text(), nullable=False, unique=True),
        sa.Column("stripe_customer_id", sa.Text(), nullable=False),
        sa.Column("plan", jsonb, nullable=False, server_default=empty_object),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("seats", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payment_status", sa.String(32), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_subscriptions_org_user", "subscriptions", ["org_id", "user_id"])

    op.create_table(
        "entities",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("org_id", uuid, sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("application_id", uuid, sa.ForeignKey("applications.id", ondelete="SET NULL"), nullable=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("data", jsonb, nullable=False, server_default=empty_object),
        sa.Column("metadata", jsonb, nullable=False, server_default=empty_object),
        *_timestamps(),
    )
    op.create_index("idx_entities_org_type_owner", "entities", ["org_id", "type", "owner_id"])
    op.create_index("idx_entities_application", "entities", ["application_id"])
    op.create_index("idx_entities_data_gin", "entities", ["data"], postgresql_using="gin")

    op.create_table(
        "entity_relations",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("source_id", uuid, sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("target_id", uuid, sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("relation_type", sa.String(64), nullable=False),
        sa.Column("metadata", jsonb, nullable=False, server_default=empty_object),
        *_timestamps(updated=False),
        sa.UniqueConstraint("source_id", "target_id", "relation_type", name="uq_entity_relations_edge"),
    )
    op.create_index("idx_entity_relations_source_type", "entity_relations", ["source_id", "relation_type"])


def downgrade() -> None:
    op.drop_table("entity_relations")
    op.drop_table("entities")
    op.drop_table("subscriptions")
    op.drop_table("billing_customers")
    op.drop_table("marketing_slides")
    op.drop_table("content_analytics")
    op.drop_table("content_versions")
    op.drop_table("content_pages")
    op.drop_table("stored_assets")
    op.drop_table("application_versions")
    op.drop_table("applications")
    op.drop_table("orgs")
