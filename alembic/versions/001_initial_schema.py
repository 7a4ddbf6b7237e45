"""Initial terminology schema

Revision ID: 0001
Revises:
Create Date: 2025-02-03 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create namaste_codes table
    op.create_table('namaste_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=100), nullable=False),
        sa.Column('display', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('ayush_system', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_namaste_codes_code'), 'namaste_codes', ['code'], unique=True)
    op.create_index(op.f('ix_namaste_codes_category'), 'namaste_codes', ['category'], unique=False)

    # Create icd11_tm2_codes table
    op.create_table('icd11_tm2_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=100), nullable=False),
        sa.Column('display', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('equivalence', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_icd11_tm2_codes_code'), 'icd11_tm2_codes', ['code'], unique=True)

    # Create snomed_ct_codes table
    op.create_table('snomed_ct_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('term', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('semantic_tag', sa.String(length=100), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_snomed_ct_codes_code'), 'snomed_ct_codes', ['code'], unique=True)

    # Create loinc_codes table
    op.create_table('loinc_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('long_name', sa.String(length=500), nullable=False),
        sa.Column('short_name', sa.String(length=200), nullable=True),
        sa.Column('component', sa.String(length=200), nullable=True),
        sa.Column('property', sa.String(length=50), nullable=True),
        sa.Column('system', sa.String(length=100), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_loinc_codes_code'), 'loinc_codes', ['code'], unique=True)

    # Create terminology_mappings table
    op.create_table('terminology_mappings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ayush_code', sa.String(length=100), nullable=False),
        sa.Column('ayush_term', sa.String(length=500), nullable=True),
        sa.Column('icd11_code', sa.String(length=100), nullable=False),
        sa.Column('icd11_term', sa.String(length=500), nullable=True),
        sa.Column('snomed_ct_code', sa.String(length=50), nullable=True),
        sa.Column('snomed_ct_term', sa.String(length=500), nullable=True),
        sa.Column('semantic_tag', sa.String(length=100), nullable=True),
        sa.Column('loinc_code', sa.String(length=50), nullable=True),
        sa.Column('loinc_term', sa.String(length=500), nullable=True),
        sa.Column('mapping_confidence', sa.Float(), nullable=False, comment='Confidence score between 0.0 and 1.0'),
        sa.Column('equivalence', sa.String(length=20), nullable=False, comment='equivalent, wider, inexact, related'),
        sa.Column('mapping_method', sa.String(length=100), nullable=True),
        sa.Column('clinical_evidence', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('cross_validated', sa.Boolean(), nullable=False),
        sa.Column('curator', sa.String(length=200), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ayush_code', 'icd11_code', name='uq_mapping_source_target')
    )
    op.create_index(op.f('ix_terminology_mappings_ayush_code'), 'terminology_mappings', ['ayush_code'], unique=False)
    op.create_index(op.f('ix_terminology_mappings_icd11_code'), 'terminology_mappings', ['icd11_code'], unique=False)
    op.create_index(op.f('ix_terminology_mappings_snomed_ct_code'), 'terminology_mappings', ['snomed_ct_code'], unique=False)
    op.create_index(op.f('ix_terminology_mappings_loinc_code'), 'terminology_mappings', ['loinc_code'], unique=False)
    op.create_index(op.f('ix_terminology_mappings_status'), 'terminology_mappings', ['status'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_terminology_mappings_status'), table_name='terminology_mappings')
    op.drop_index(op.f('ix_terminology_mappings_loinc_code'), table_name='terminology_mappings')
    op.drop_index(op.f('ix_terminology_mappings_snomed_ct_code'), table_name='terminology_mappings')
    op.drop_index(op.f('ix_terminology_mappings_icd11_code'), table_name='terminology_mappings')
    op.drop_index(op.f('ix_terminology_mappings_ayush_code'), table_name='terminology_mappings')
    op.drop_table('terminology_mappings')
    op.drop_index(op.f('ix_loinc_codes_code'), table_name='loinc_codes')
    op.drop_table('loinc_codes')
    op.drop_index(op.f('ix_snomed_ct_codes_code'), table_name='snomed_ct_codes')
    op.drop_table('snomed_ct_codes')
    op.drop_index(op.f('ix_icd11_tm2_codes_code'), table_name='icd11_tm2_codes')
    op.drop_table('icd11_tm2_codes')
    op.drop_index(op.f('ix_namaste_codes_category'), table_name='namaste_codes')
    op.drop_index(op.f('ix_namaste_codes_code'), table_name='namaste_codes')
    op.drop_table('namaste_codes')
