# This project was developed with assistance from AI tools.
"""append-only trigger on audit_events

Revision ID: c7d8e9f0a1b2
Revises: a1c2e3f4b5d6
Create Date: 2026-10-05 09:40:03.118274
"""

from alembic import op

revision = "c7d8e9f0a1b2"
down_revision = "a1c2e3f4b5d6"
branch_labels = None
depends_on = None

TRIGGER_FUNCTION = """
CREATE OR REPLACE FUNCTION audit_events_prevent_mutation()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'audit_events is append-only: % denied for row %', TG_OP, OLD.id;
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;
"""

TRIGGER_UPDATE = """
CREATE TRIGGER audit_events_no_update
    BEFORE UPDATE ON audit_events
    FOR EACH ROW
    EXECUTE FUNCTION audit_events_prevent_mutation();
"""

TRIGGER_DELETE = """
CREATE TRIGGER audit_events_no_delete
    BEFORE DELETE ON audit_events
    FOR EACH ROW
    EXECUTE FUNCTION audit_events_prevent_mutation();
"""


def upgrade() -> None:
    op.execute(TRIGGER_FUNCTION)
    op.execute(TRIGGER_UPDATE)
    op.execute(TRIGGER_DELETE)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS audit_events_no_delete ON audit_events")
    op.execute("DROP TRIGGER IF EXISTS audit_events_no_update ON audit_events")
    op.execute("DROP FUNCTION IF EXISTS audit_events_prevent_mutation()")
