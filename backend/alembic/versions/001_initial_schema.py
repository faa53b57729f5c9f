"""Initial CareNotes schema

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Creates every table: children, care organisations, placement requests,
       placements, reviews, agreements, child finance, HR and medication.
How:   Enum columns are VARCHAR(40) holding the enum value (see
       carenotes/models/_types.py), so adding a status never needs ALTER TYPE.
       Money is NUMERIC(10, 2). Lists (needs, specialisms, fees) are JSON.

Rollback: downgrade() drops everything in reverse dependency order.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(10, 2)


def _audit_columns():
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("updated_by", sa.String(100), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    ]


def _enum(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.String(40), nullable=nullable)


def _fk(name: str, target: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey(target), nullable=nullable)


def _json_list(name: str) -> sa.Column:
    return sa.Column(name, sa.JSON(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "children",
        *_audit_columns(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        _enum("gender"),
        sa.Column("religion", sa.String(100), nullable=True),
        sa.Column("ethnicity", sa.String(100), nullable=True),
        sa.Column("first_language", sa.String(100), nullable=True),
        _enum("jurisdiction"),
        sa.Column("local_authority", sa.String(200), nullable=True),
        sa.Column("legal_status", sa.String(100), nullable=True),
        _enum("behavioural_risk_level"),
        _json_list("medical_needs"),
        _json_list("education_needs"),
        _json_list("accessibility_needs"),
        _json_list("cultural_needs"),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("idx_children_last_name", "children", ["last_name"])

    op.create_table(
        "care_organisations",
        *_audit_columns(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("postcode", sa.String(10), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("registered_capacity", sa.Integer(), nullable=False),
        sa.Column("current_occupancy", sa.Integer(), nullable=False),
        sa.Column("min_age", sa.Integer(), nullable=False),
        sa.Column("max_age", sa.Integer(), nullable=False),
        _json_list("accepted_genders"),
        _json_list("specialisms"),
        _json_list("cultural_provisions"),
        _json_list("medical_capabilities"),
        _json_list("education_provisions"),
        _json_list("accessibility_features"),
        _enum("behavioural_capability"),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )

    op.create_table(
        "placement_requests",
        *_audit_columns(),
        _fk("child_id", "children.id"),
        sa.Column("requesting_authority", sa.String(200), nullable=False),
        sa.Column("social_worker_name", sa.String(200), nullable=False),
        sa.Column("social_worker_email", sa.String(200), nullable=False),
        sa.Column("social_worker_phone", sa.String(50), nullable=True),
        sa.Column("request_type", sa.String(50), nullable=False),
        sa.Column("request_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("required_start_date", sa.Date(), nullable=False),
        sa.Column("expected_duration_days", sa.Integer(), nullable=True),
        _enum("urgency"),
        _enum("status"),
        _json_list("status_history"),
        sa.Column("matching_criteria", sa.JSON(), nullable=False),
        _fk("matched_organisation_id", "care_organisations.id", nullable=True),
        sa.Column("matched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("matched_by", sa.String(100), nullable=True),
        sa.Column("placement_id", sa.Uuid(), nullable=True),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "idx_placement_requests_status_urgency", "placement_requests", ["status", "urgency"]
    )

    op.create_table(
        "placements",
        *_audit_columns(),
        sa.Column("placement_number", sa.String(20), nullable=False, unique=True),
        _fk("child_id", "children.id"),
        _fk("organisation_id", "care_organisations.id"),
        _fk("placement_request_id", "placement_requests.id", nullable=True),
        _enum("status"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("expected_end_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        _enum("end_reason", nullable=True),
        sa.Column("end_notes", sa.Text(), nullable=True),
        sa.Column("room_number", sa.String(20), nullable=True),
        sa.Column("room_type", sa.String(50), nullable=True),
        sa.Column("key_worker_id", sa.String(100), nullable=True),
        sa.Column("key_worker_name", sa.String(200), nullable=True),
        sa.Column("funding_authority", sa.String(200), nullable=False),
        sa.Column("weekly_rate", MONEY, nullable=True),
        sa.Column("admission_notes", sa.Text(), nullable=True),
        sa.Column("initial_72hr_review_date", sa.Date(), nullable=False),
        sa.Column("initial_72hr_review_completed", sa.Boolean(), nullable=False),
        sa.Column("next_placement_review_date", sa.Date(), nullable=True),
        sa.Column("last_placement_review_date", sa.Date(), nullable=True),
        sa.Column("placement_stability_score", sa.Integer(), nullable=True),
        sa.Column("at_risk_of_breakdown", sa.Boolean(), nullable=False),
        _json_list("breakdown_risk_factors"),
    )
    op.create_index("idx_placements_child_status", "placements", ["child_id", "status"])
    op.create_index("idx_placements_org_status", "placements", ["organisation_id", "status"])

    op.create_table(
        "placement_reviews",
        *_audit_columns(),
        _fk("placement_id", "placements.id"),
        _fk("child_id", "children.id"),
        _enum("review_type"),
        sa.Column("review_number", sa.Integer(), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(100), nullable=True),
        _enum("outcome", nullable=True),
        sa.Column("child_attended", sa.Boolean(), nullable=False),
        sa.Column("child_views", sa.Text(), nullable=True),
        _json_list("attendees"),
        _json_list("actions_agreed"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("next_review_date", sa.Date(), nullable=True),
    )
    op.create_index("ix_placement_reviews_placement_id", "placement_reviews", ["placement_id"])

    op.create_table(
        "placement_agreements",
        *_audit_columns(),
        sa.Column("agreement_number", sa.String(20), nullable=False, unique=True),
        _fk("placement_id", "placements.id"),
        _enum("status"),
        sa.Column("base_weekly_fee", MONEY, nullable=False),
        _json_list("additional_fees"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("notice_period_days", sa.Integer(), nullable=False),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(100), nullable=True),
        sa.Column("terminated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("termination_reason", sa.Text(), nullable=True),
    )
    op.create_index(
        "ix_placement_agreements_placement_id", "placement_agreements", ["placement_id"]
    )

    # ── Child finance ─────────────────────────────────────────────────────
    op.create_table(
        "pocket_money_transactions",
        *_audit_columns(),
        _fk("child_id", "children.id"),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("week_start_date", sa.Date(), nullable=False),
        sa.Column("week_end_date", sa.Date(), nullable=False),
        _enum("jurisdiction"),
        _enum("age_band"),
        sa.Column("expected_amount", MONEY, nullable=False),
        sa.Column("disbursed_amount", MONEY, nullable=True),
        _enum("method", nullable=True),
        _enum("status"),
        sa.Column("disbursed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("disbursed_by", sa.String(100), nullable=True),
        sa.Column("has_variance", sa.Boolean(), nullable=False),
        sa.Column("variance_reason", sa.Text(), nullable=True),
        sa.Column("receipt_confirmed", sa.Boolean(), nullable=False),
        sa.Column("child_signature", sa.String(200), nullable=True),
        sa.Column("child_comment", sa.Text(), nullable=True),
        sa.Column("refusal_reason", sa.Text(), nullable=True),
        sa.Column("withheld_reason", sa.Text(), nullable=True),
        sa.Column("withheld_authorised_by", sa.String(100), nullable=True),
        sa.Column("deferral_reason", sa.Text(), nullable=True),
        sa.Column("deferred_until", sa.Date(), nullable=True),
        sa.Column("transferred_to_savings", MONEY, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("child_id", "week_number", "year", name="uq_pocket_money_child_week"),
    )

    op.create_table(
        "allowance_expenditures",
        *_audit_columns(),
        _fk("child_id", "children.id"),
        _enum("allowance_type"),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("item_description", sa.Text(), nullable=False),
        sa.Column("vendor", sa.String(200), nullable=True),
        sa.Column("purchase_date", sa.Date(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("quarter", sa.Integer(), nullable=False),
        _enum("approval_status"),
        sa.Column("approved_by", sa.String(100), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _enum("receipt_status"),
        sa.Column("receipt_path", sa.String(500), nullable=True),
        sa.Column("receipt_verified_by", sa.String(100), nullable=True),
        sa.Column("budget_amount", MONEY, nullable=True),
        sa.Column("spent_to_date", MONEY, nullable=True),
        sa.Column("exceeds_budget", sa.Boolean(), nullable=False),
        sa.Column("is_cultural_need", sa.Boolean(), nullable=False),
        sa.Column("is_religious_need", sa.Boolean(), nullable=False),
        sa.Column("child_chose_item", sa.Boolean(), nullable=False),
    )
    op.create_index(
        "idx_allowance_child_year_quarter",
        "allowance_expenditures",
        ["child_id", "year", "quarter"],
    )

    op.create_table(
        "child_savings_accounts",
        *_audit_columns(),
        _fk("child_id", "children.id"),
        _enum("account_type"),
        sa.Column("account_name", sa.String(200), nullable=False),
        _enum("status"),
        sa.Column("opened_date", sa.Date(), nullable=False),
        sa.Column("closed_date", sa.Date(), nullable=True),
        sa.Column("current_balance", MONEY, nullable=False),
        sa.Column("total_deposits", MONEY, nullable=False),
        sa.Column("total_withdrawals", MONEY, nullable=False),
        sa.Column("pending_withdrawals", sa.Integer(), nullable=False),
        sa.Column("high_value_threshold", MONEY, nullable=False),
        sa.Column("interest_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("savings_goal_amount", MONEY, nullable=True),
        sa.Column("savings_goal_description", sa.Text(), nullable=True),
        sa.Column("savings_goal_achieved", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_child_savings_accounts_child_id", "child_savings_accounts", ["child_id"])

    op.create_table(
        "savings_transactions",
        *_audit_columns(),
        _fk("account_id", "child_savings_accounts.id"),
        _fk("child_id", "children.id"),
        _enum("transaction_type"),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("balance_before", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        _enum("withdrawal_status", nullable=True),
        sa.Column("requires_manager_approval", sa.Boolean(), nullable=False),
        sa.Column("approved_by", sa.String(100), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        _fk("linked_pocket_money_transaction_id", "pocket_money_transactions.id", nullable=True),
    )
    op.create_index("ix_savings_transactions_account_id", "savings_transactions", ["account_id"])

    # ── HR ────────────────────────────────────────────────────────────────
    op.create_table(
        "employee_profiles",
        *_audit_columns(),
        sa.Column("employee_number", sa.String(50), nullable=False, unique=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(200), nullable=False),
        _enum("role"),
        _fk("organisation_id", "care_organisations.id"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_employee_profiles_organisation_id", "employee_profiles", ["organisation_id"])

    op.create_table(
        "time_off_requests",
        *_audit_columns(),
        _fk("employee_id", "employee_profiles.id"),
        _enum("time_off_type"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        _enum("status"),
        sa.Column("decided_by", sa.String(100), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_time_off_requests_employee_id", "time_off_requests", ["employee_id"])

    op.create_table(
        "shift_swaps",
        *_audit_columns(),
        _fk("requester_id", "employee_profiles.id"),
        _fk("target_employee_id", "employee_profiles.id"),
        sa.Column("shift_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("shift_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        _enum("status"),
        sa.Column("decided_by", sa.String(100), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_shift_swaps_requester_id", "shift_swaps", ["requester_id"])

    op.create_table(
        "medication_records",
        *_audit_columns(),
        _fk("child_id", "children.id"),
        _enum("patient_type"),
        sa.Column("patient_age_years", sa.Integer(), nullable=False),
        sa.Column("patient_weight_kg", sa.Numeric(5, 2), nullable=True),
        sa.Column("patient_height_cm", sa.Numeric(5, 1), nullable=True),
        sa.Column("medication_name", sa.String(200), nullable=False),
        sa.Column("generic_name", sa.String(200), nullable=True),
        sa.Column("formulation", sa.String(100), nullable=True),
        sa.Column("dosage", sa.String(100), nullable=False),
        sa.Column("frequency", sa.String(100), nullable=False),
        sa.Column("route", sa.String(50), nullable=True),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("indication_reason", sa.Text(), nullable=True),
        sa.Column("is_prn", sa.Boolean(), nullable=False),
        sa.Column("prn_instructions", sa.Text(), nullable=True),
        sa.Column("prescriber_name", sa.String(200), nullable=False),
        sa.Column("prescriber_gmc_number", sa.String(20), nullable=True),
        sa.Column("prescribed_date", sa.Date(), nullable=False),
        sa.Column("dosage_calculation", sa.String(200), nullable=True),
        sa.Column("max_daily_dose", sa.String(200), nullable=True),
        _json_list("dosing_warnings"),
        sa.Column("contraindicated_for_age", sa.Boolean(), nullable=False),
        _enum("consent_type"),
        sa.Column("consent_given_by", sa.String(200), nullable=True),
        sa.Column("consent_date", sa.Date(), nullable=False),
        sa.Column("consent_document_ref", sa.String(200), nullable=True),
        sa.Column("parental_authority_holder", sa.String(200), nullable=True),
        sa.Column("gillick_competence_required", sa.Boolean(), nullable=False),
        _enum("gillick_result", nullable=True),
        sa.Column("gillick_assessed_by", sa.String(100), nullable=True),
        sa.Column("gillick_assessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("gillick_assessment_notes", sa.Text(), nullable=True),
        sa.Column("gillick_reassessment_due", sa.Date(), nullable=True),
        _enum("status"),
        sa.Column("next_review_due", sa.Date(), nullable=False),
        sa.Column("discontinued_reason", sa.Text(), nullable=True),
        _json_list("side_effects_observed"),
    )
    op.create_index("ix_medication_records_child_id", "medication_records", ["child_id"])


def downgrade() -> None:
    """Drops every table. Destructive: care records are lost."""
    for table in (
        "medication_records",
        "shift_swaps",
        "time_off_requests",
        "employee_profiles",
        "savings_transactions",
        "child_savings_accounts",
        "allowance_expenditures",
        "pocket_money_transactions",
        "placement_agreements",
        "placement_reviews",
        "placements",
        "placement_requests",
        "care_organisations",
        "children",
    ):
        op.drop_table(table)
