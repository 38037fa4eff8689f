"""
SQL Table Definitions
=====================

SQLAlchemy Core tables, one per record collection, registered on the
shared metadata so `PostgresClient.create_schema()` creates them.

Version: 0.1.0
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Table,
    Text,
    text,
)

from shared.database.postgres import Base


metadata = Base.metadata


def _id() -> Column:
    return Column("id", String(36), primary_key=True)


def _ref(name: str, nullable: bool = False) -> Column:
    return Column(name, String(36), nullable=nullable, index=True)


def _ts(name: str, nullable: bool = True) -> Column:
    return Column(name, DateTime(timezone=True), nullable=nullable)


sites = Table(
    "sites",
    metadata,
    _id(),
    Column("name", Text, nullable=False),
    Column("site_code", String(32), nullable=False, unique=True),
    Column("hs_content_version", Integer, nullable=False, server_default="1"),
    Column("notification_escalation_minutes", Integer),
    Column("pre_approval_default_days", Integer),
    Column("is_active", Boolean, nullable=False, server_default="true"),
    _ts("created_at", nullable=False),
)

members = Table(
    "members",
    metadata,
    _id(),
    Column("name", Text, nullable=False),
    _ref("site_id"),
    Column("role", String(16), nullable=False),
    Column("email", Text),
    Column("is_active", Boolean, nullable=False, server_default="true"),
    _ts("created_at", nullable=False),
)

visitors = Table(
    "visitors",
    metadata,
    _id(),
    Column("name", Text, nullable=False),
    Column("email", Text, nullable=False),
    Column("company", Text),
    Column("phone", String(32)),
    Column("visitor_type", String(16), nullable=False),
    _ts("created_at", nullable=False),
)

visits = Table(
    "visits",
    metadata,
    _id(),
    _ref("visitor_id"),
    _ref("site_id"),
    _ref("host_user_id"),
    Column("purpose", Text, nullable=False),
    _ts("planned_arrival", nullable=False),
    _ts("planned_departure", nullable=False),
    _ts("actual_arrival"),
    _ts("actual_departure"),
    Column("status", String(16), nullable=False, index=True),
    Column("access_status", String(16)),
    Column("induction_completed", Boolean, nullable=False, server_default="false"),
    Column("induction_version", Integer),
    _ts("induction_completed_at"),
    Column("documents_accepted", Boolean, nullable=False, server_default="false"),
    _ts("documents_accepted_at"),
    Column("is_walk_in", Boolean, nullable=False, server_default="false"),
    Column("checked_in_by", String(36)),
    _ts("created_at", nullable=False),
    _ts("updated_at"),
)

visit_host_contacts = Table(
    "visit_host_contacts",
    metadata,
    _id(),
    _ref("visit_id"),
    _ref("user_id"),
    Column("is_backup", Boolean, nullable=False, server_default="false"),
    _ts("created_at", nullable=False),
)

visit_documents = Table(
    "visit_documents",
    metadata,
    _id(),
    _ref("visit_id"),
    Column("document_name", Text, nullable=False),
    Column("document_content", Text, nullable=False),
    Column("accepted", Boolean, nullable=False, server_default="false"),
    _ts("accepted_at"),
    _ts("created_at", nullable=False),
)

messages = Table(
    "messages",
    metadata,
    _id(),
    Column("recipient_type", String(16), nullable=False),
    _ref("recipient_user_id", nullable=True),
    _ref("recipient_visitor_id", nullable=True),
    _ref("visit_id", nullable=True),
    Column("notification_type", String(32), nullable=False, index=True),
    Column("title", Text, nullable=False),
    Column("body", Text, nullable=False),
    Column("action_url", Text),
    Column("is_read", Boolean, nullable=False, server_default="false"),
    Column("requires_acknowledgement", Boolean, nullable=False, server_default="false"),
    _ts("acknowledged_at"),
    Column("escalated", Boolean, nullable=False, server_default="false"),
    _ts("created_at", nullable=False),
)

deny_list = Table(
    "deny_list",
    metadata,
    _id(),
    _ref("site_id"),
    _ref("visitor_id", nullable=True),
    Column("visitor_name", Text, nullable=False),
    Column("visitor_email", Text),
    Column("reason", Text, nullable=False),
    Column("is_permanent", Boolean, nullable=False, server_default="false"),
    _ts("expires_at"),
    Column("added_by", String(36), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default="true"),
    _ts("created_at", nullable=False),
    _ts("updated_at"),
)

pre_approvals = Table(
    "pre_approvals",
    metadata,
    _id(),
    _ref("visitor_id"),
    _ref("site_id"),
    Column("requested_by", String(36), nullable=False),
    Column("approved_by", String(36)),
    Column("status", String(16), nullable=False),
    Column("reason", Text),
    _ts("expires_at"),
    _ts("revoked_at"),
    Column("revoked_by", String(36)),
    _ts("created_at", nullable=False),
    _ts("updated_at"),
)

induction_records = Table(
    "induction_records",
    metadata,
    _id(),
    _ref("visitor_id"),
    _ref("site_id"),
    Column("content_version", Integer, nullable=False),
    _ts("completed_at", nullable=False),
    _ref("visit_id", nullable=True),
    _ts("created_at", nullable=False),
)

evacuation_events = Table(
    "evacuation_events",
    metadata,
    _id(),
    _ref("site_id"),
    Column("activated_by", String(36), nullable=False),
    _ts("activated_at", nullable=False),
    _ts("closed_at"),
    Column("closed_by", String(36)),
    Column("headcount_at_activation", Integer, nullable=False, server_default="0"),
    Column("headcount_accounted", Integer, nullable=False, server_default="0"),
    Column("accounted_visit_ids", JSON, nullable=False, server_default="[]"),
    Column("accounting_revision", Integer, nullable=False, server_default="0"),
    Column("notes", Text),
    _ts("created_at", nullable=False),
)

# At most one open evacuation per site
Index(
    "uq_evacuation_events_open_site",
    evacuation_events.c.site_id,
    unique=True,
    postgresql_where=text("closed_at IS NULL"),
)

audit_trail = Table(
    "audit_trail",
    metadata,
    _id(),
    Column("action", String(48), nullable=False),
    Column("entity_type", String(32), nullable=False),
    _ref("entity_id", nullable=True),
    Column("user_id", String(36)),
    Column("details", JSON, nullable=False, server_default="{}"),
    _ts("created_at", nullable=False),
)


TABLES: dict[str, Table] = {table.name: table for table in metadata.sorted_tables}
