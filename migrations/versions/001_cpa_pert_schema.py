"""Create CPA/PERT tables and seed the competency catalog.

Revision ID: 001_cpa_pert_schema
Revises:
Create Date: 2026-10-16

Tables: experiences (profile-owned, read-only here), cpa_competencies,
cpa_competency_mappings, cpa_proficiency_assessments, cpa_pert_responses,
cpa_pert_history, cpa_compliance_checks.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

from pathfinder.services.competency_catalog import CPA_COMPETENCIES

revision: str = "001_cpa_pert_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        sa.UUID(),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def upgrade() -> None:
    # Profile-owned experiences. Created here so standalone deployments have
    # the table the mappings and responses reference.
    op.create_table(
        "experiences",
        _uuid_pk(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("organization", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column(
            "experience_type", sa.String(30), nullable=False, server_default="work"
        ),
        *_timestamps(),
    )
    op.create_index("ix_experiences_user_id", "experiences", ["user_id"])

    competencies = op.create_table(
        "cpa_competencies",
        sa.Column("competency_id", sa.String(10), primary_key=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("area_code", sa.String(10), nullable=False),
        sa.Column("area_name", sa.String(100), nullable=False),
        sa.Column("sub_code", sa.String(10), nullable=False),
        sa.Column("sub_name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("evr_relevance", sa.String(10), nullable=False),
        sa.Column("level_1_criteria", sa.Text(), nullable=False),
        sa.Column("level_2_criteria", sa.Text(), nullable=False),
        sa.Column("guiding_questions", sa.Text(), nullable=False),
        sa.Column(
            "keywords",
            JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.UniqueConstraint("area_code", "sub_code", name="uq_competency_area_sub"),
        sa.CheckConstraint(
            "category IN ('Technical', 'Enabling')",
            name="ck_competency_category",
        ),
        sa.CheckConstraint(
            "evr_relevance IN ('HIGH', 'MEDIUM', 'LOW')",
            name="ck_competency_evr_relevance",
        ),
    )

    op.create_table(
        "cpa_competency_mappings",
        _uuid_pk(),
        sa.Column(
            "experience_id",
            sa.UUID(),
            sa.ForeignKey("experiences.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column(
            "competency_id",
            sa.String(10),
            sa.ForeignKey("cpa_competencies.competency_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("relevance_score", sa.Float(), nullable=False),
        sa.Column(
            "evidence_extracted",
            JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "mapping_method",
            sa.String(20),
            nullable=False,
            server_default="AI_ASSISTED",
        ),
        sa.Column(
            "suggested_proficiency", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "is_validated", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("validated_by", sa.String(255), nullable=True),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "experience_id",
            "competency_id",
            "user_id",
            name="uq_mapping_experience_competency_user",
        ),
        sa.CheckConstraint(
            "relevance_score >= 0 AND relevance_score <= 1",
            name="ck_mapping_relevance_range",
        ),
        sa.CheckConstraint(
            "suggested_proficiency IN (0, 1, 2)",
            name="ck_mapping_suggested_proficiency",
        ),
        sa.CheckConstraint(
            "mapping_method IN ('AI_ASSISTED', 'USER_EDITED', 'MENTOR_VALIDATED')",
            name="ck_mapping_method",
        ),
    )
    op.create_index(
        "ix_cpa_competency_mappings_experience_id",
        "cpa_competency_mappings",
        ["experience_id"],
    )
    op.create_index(
        "ix_cpa_competency_mappings_user_id", "cpa_competency_mappings", ["user_id"]
    )

    op.create_table(
        "cpa_proficiency_assessments",
        _uuid_pk(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column(
            "competency_id",
            sa.String(10),
            sa.ForeignKey("cpa_competencies.competency_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("current_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("target_level", sa.Integer(), nullable=False),
        sa.Column("evidence_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("development_notes", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "next_steps",
            JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "assessment_date",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "user_id", "competency_id", name="uq_assessment_user_competency"
        ),
        sa.CheckConstraint(
            "current_level IN (0, 1, 2)", name="ck_assessment_current_level"
        ),
        sa.CheckConstraint(
            "target_level IN (0, 1, 2)", name="ck_assessment_target_level"
        ),
    )
    op.create_index(
        "ix_cpa_proficiency_assessments_user_id",
        "cpa_proficiency_assessments",
        ["user_id"],
    )

    op.create_table(
        "cpa_pert_responses",
        _uuid_pk(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column(
            "experience_id",
            sa.UUID(),
            sa.ForeignKey("experiences.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "competency_id",
            sa.String(10),
            sa.ForeignKey("cpa_competencies.competency_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("proficiency_level", sa.Integer(), nullable=False),
        sa.Column("situation_text", sa.Text(), nullable=False),
        sa.Column("task_text", sa.Text(), nullable=False),
        sa.Column("action_text", sa.Text(), nullable=False),
        sa.Column("result_text", sa.Text(), nullable=False),
        sa.Column("response_text", sa.Text(), nullable=False),
        sa.Column("character_count", sa.Integer(), nullable=False),
        sa.Column("quantified_impact", sa.Text(), nullable=True),
        sa.Column("is_compliant", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id",
            "competency_id",
            "version",
            name="uq_pert_user_competency_version",
        ),
        sa.CheckConstraint(
            "character_count <= 5000", name="ck_pert_character_count"
        ),
        sa.CheckConstraint("proficiency_level IN (0, 1, 2)", name="ck_pert_level"),
        sa.CheckConstraint("version >= 1", name="ck_pert_version_positive"),
    )
    # At most one current version per (user, competency)
    op.create_index(
        "uq_pert_one_current",
        "cpa_pert_responses",
        ["user_id", "competency_id"],
        unique=True,
        postgresql_where=sa.text("is_current"),
    )

    op.create_table(
        "cpa_pert_history",
        _uuid_pk(),
        sa.Column(
            "response_id",
            sa.UUID(),
            sa.ForeignKey("cpa_pert_responses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("experience_id", sa.UUID(), nullable=False),
        sa.Column("competency_id", sa.String(10), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("proficiency_level", sa.Integer(), nullable=False),
        sa.Column("situation_text", sa.Text(), nullable=False),
        sa.Column("task_text", sa.Text(), nullable=False),
        sa.Column("action_text", sa.Text(), nullable=False),
        sa.Column("result_text", sa.Text(), nullable=False),
        sa.Column("response_text", sa.Text(), nullable=False),
        sa.Column("character_count", sa.Integer(), nullable=False),
        sa.Column("quantified_impact", sa.Text(), nullable=True),
        sa.Column("changed_by", sa.String(255), nullable=True),
        sa.Column("change_reason", sa.Text(), nullable=True),
        sa.Column(
            "archived_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_cpa_pert_history_response_id", "cpa_pert_history", ["response_id"]
    )

    op.create_table(
        "cpa_compliance_checks",
        _uuid_pk(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("check_type", sa.String(10), nullable=False),
        sa.Column(
            "check_date",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("is_compliant", sa.Boolean(), nullable=False),
        sa.Column("total_competencies", sa.Integer(), nullable=False),
        sa.Column("competencies_met", sa.Integer(), nullable=False),
        sa.Column("level2_count", sa.Integer(), nullable=False),
        sa.Column(
            "missing_competencies",
            JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "recommendations",
            JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("thirty_month_start", sa.Date(), nullable=True),
        sa.Column("thirty_month_end", sa.Date(), nullable=True),
        sa.Column("thirty_month_rule_met", sa.Boolean(), nullable=False),
        sa.Column("twelve_month_rule_met", sa.Boolean(), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.CheckConstraint(
            "check_type IN ('initial', 'annual', 'final')",
            name="ck_compliance_check_type",
        ),
    )
    op.create_index(
        "ix_cpa_compliance_checks_user_id", "cpa_compliance_checks", ["user_id"]
    )

    op.bulk_insert(
        competencies,
        [{"is_active": True, **entry} for entry in CPA_COMPETENCIES],
    )


def downgrade() -> None:
    op.drop_index("ix_cpa_compliance_checks_user_id")
    op.drop_table("cpa_compliance_checks")
    op.drop_index("ix_cpa_pert_history_response_id")
    op.drop_table("cpa_pert_history")
    op.drop_index("uq_pert_one_current")
    op.drop_table("cpa_pert_responses")
    op.drop_index("ix_cpa_proficiency_assessments_user_id")
    op.drop_table("cpa_proficiency_assessments")
    op.drop_index("ix_cpa_competency_mappings_user_id")
    op.drop_index("ix_cpa_competency_mappings_experience_id")
    op.drop_table("cpa_competency_mappings")
    op.drop_table("cpa_competencies")
    op.drop_index("ix_experiences_user_id")
    op.drop_table("experiences")
