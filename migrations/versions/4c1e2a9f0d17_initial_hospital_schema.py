from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '4c1e2a9f0d17'
down_revision = None
branch_labels = None
depends_on = None


staff_roles = sa.Enum(
    'super_admin', 'manager', 'registration', 'cash_point', 'vitals', 'doctor', 'injection_room',
    'lab', 'pharmacist', 'hmo_desk', 'hmo_admin', 'records_officer', name='staff_roles',
)
payment_statuses = ('pending', 'paid')
item_payment_statuses = ('pending', 'paid', 'dispensed')
dose_types = ('initial', 'review', 'subsequent', 'one_off')
destinations = ('injection', 'final')


def upgrade():
    # --- catalogs ---
    op.create_table(
        'hospital_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('hospital_name', sa.String(length=120), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('tax_id', sa.String(length=40), nullable=True),
        sa.Column('consultation_fee', sa.Integer(), nullable=False),
        sa.Column('general_medicine_fee', sa.Integer(), nullable=False),
        sa.Column('pediatrics_fee', sa.Integer(), nullable=False),
        sa.Column('specialist_fee', sa.Integer(), nullable=False),
        sa.Column('staff_discount', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'staff',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=True),
        sa.Column('role', staff_roles, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('status', sa.Enum('active', 'inactive', 'on_leave', name='staff_status_enum'), nullable=False),
        sa.Column('join_date', sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name=op.f('uq_staff_username')),
    )
    op.create_table(
        'hmo_providers',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('contact_person', sa.String(length=120), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name=op.f('uq_hmo_providers_name')),
    )
    op.create_table(
        'departments',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('head', sa.String(length=120), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name=op.f('uq_departments_name')),
    )
    op.create_table(
        'medicines',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('dosage', sa.String(length=50), nullable=True),
        sa.Column('form', sa.Enum(
            'tablet', 'capsule', 'syrup', 'injection', 'cream', 'ointment', 'other', name='medicine_form_enum',
        ), nullable=False),
        sa.Column('category', sa.String(length=80), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'consumables',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('category', sa.Enum(
            'syringe', 'needle', 'swabs', 'plaster', 'gloves', 'iv_bag', 'cannula', 'iv_set', 'gauze', 'other',
            name='consumable_category_enum',
        ), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('min_stock_level', sa.Integer(), nullable=False),
        sa.Column('reorder_level', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(length=30), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'vaccines',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('type', sa.String(length=80), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('total_required_doses', sa.Integer(), nullable=False),
        sa.Column('interval_days', sa.Integer(), nullable=True),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('is_government_provided', sa.Boolean(), nullable=False),
        sa.Column('min_age', sa.Integer(), nullable=True),
        sa.Column('max_age', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'lab_tests',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=80), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('normal_range', sa.String(length=80), nullable=True),
        sa.Column('unit', sa.String(length=30), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'lab_test_ranges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lab_test_id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('normal_range', sa.String(length=80), nullable=True),
        sa.Column('unit', sa.String(length=30), nullable=True),
        sa.Column('category', sa.String(length=80), nullable=True),
        sa.ForeignKeyConstraint(['lab_test_id'], ['lab_tests.id'],
                                name=op.f('fk_lab_test_ranges_lab_test_id_lab_tests')),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- patients and visits ---
    op.create_table(
        'patients',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('dob', sa.Date(), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('gender', sa.Enum('Male', 'Female', 'Unknown', name='gender_enum'), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('last_visit', sa.Date(), nullable=True),
        sa.Column('patient_type', sa.Enum('cash', 'hmo', name='patient_type_enum'), nullable=False),
        sa.Column('hmo_provider', sa.String(length=120), nullable=True),
        sa.Column('policy_number', sa.String(length=60), nullable=True),
        sa.Column('medical_history', sa.JSON(), nullable=True),
        sa.Column('allergies', sa.JSON(), nullable=True),
        sa.Column('balance', sa.Integer(), nullable=False),
        sa.Column('is_staff', sa.Boolean(), nullable=False),
        sa.Column('staff_id', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'visits',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('patient_id', sa.String(length=20), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('doctor', sa.String(length=100), nullable=True),
        sa.Column('workflow_owner', sa.Enum(
            'vitals', 'doctor', 'laboratory', 'pharmacy', 'injection_room', 'injection_room_later',
            'cash_point', 'hmo', 'admission', 'pending', 'cancelled', 'completed', 'vaccination_denied',
            name='workflow_owner_enum',
        ), nullable=True),
        sa.Column('clinical_note', sa.Text(), nullable=True),
        sa.Column('original_diagnosis', sa.Text(), nullable=True),
        sa.Column('physical_examination', sa.Text(), nullable=True),
        sa.Column('presenting_complaints', sa.Text(), nullable=True),
        sa.Column('vitals', sa.JSON(), nullable=True),
        sa.Column('prescriptions', sa.JSON(), nullable=True),
        sa.Column('lab_tests', sa.JSON(), nullable=True),
        sa.Column('lab_data', sa.JSON(), nullable=True),
        sa.Column('doctor_changes', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], name=op.f('fk_visits_patient_id_patients')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'appointments',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('patient_id', sa.String(length=20), nullable=False),
        sa.Column('patient_name', sa.String(length=120), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(length=10), nullable=True),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('status', sa.Enum(
            'scheduled', 'completed', 'cancelled', 'In Progress', name='appointment_status_enum',
        ), nullable=False),
        sa.Column('doctor', sa.String(length=100), nullable=True),
        sa.Column('doctor_id', sa.String(length=20), nullable=True),
        sa.Column('consultation_type', sa.Enum(
            'initial', 'follow_up', 'specialist', 'general', 'pediatrician', 'vaccination',
            name='consultation_type_enum',
        ), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('bill_id', sa.String(length=30), nullable=True),
        sa.Column('vaccine_id', sa.String(length=20), nullable=True),
        sa.Column('vaccine_name', sa.String(length=120), nullable=True),
        sa.Column('dose_type', sa.Enum(*dose_types, name='appointment_dose_type_enum'), nullable=True),
        sa.Column('vaccination_price', sa.Integer(), nullable=True),
        sa.Column('is_government_provided', sa.Boolean(), nullable=True),
        sa.Column('vaccination_session_id', sa.String(length=30), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], name=op.f('fk_appointments_patient_id_patients')),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- billing ---
    op.create_table(
        'bills',
        sa.Column('id', sa.String(length=40), nullable=False),
        sa.Column('patient_id', sa.String(length=20), nullable=False),
        sa.Column('patient_name', sa.String(length=120), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum(
            'pending', 'paid', 'cancelled', 'hmo_pending', 'billed', 'dispensed', name='bill_status_enum',
        ), nullable=False),
        sa.Column('type', sa.Enum(
            'consultation', 'pharmacy', 'laboratory', 'medication', 'deposit', 'vaccination', 'other',
            name='bill_type_enum',
        ), nullable=False),
        sa.Column('destination', sa.Enum(*destinations, name='bill_destination_enum'), nullable=True),
        sa.Column('payment_method', sa.Enum(
            'cash', 'card', 'transfer', 'hmo', 'balance', name='payment_method_enum',
        ), nullable=True),
        sa.Column('payment_reference', sa.String(length=60), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('processed_by', sa.String(length=120), nullable=True),
        sa.Column('source', sa.String(length=40), nullable=True),
        sa.Column('discount', sa.Integer(), nullable=True),
        sa.Column('discount_reason', sa.String(length=120), nullable=True),
        sa.Column('original_total', sa.Integer(), nullable=True),
        sa.Column('visit_id', sa.String(length=20), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('all_items_dispensed', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], name=op.f('fk_bills_patient_id_patients')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'bill_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.String(length=40), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('is_injectable', sa.Boolean(), nullable=False),
        sa.Column('is_consumable', sa.Boolean(), nullable=False),
        sa.Column('dispensed', sa.Boolean(), nullable=True),
        sa.Column('payment_status', sa.Enum(*item_payment_statuses, name='item_payment_status_enum'), nullable=True),
        sa.Column('medicine_id', sa.String(length=20), nullable=True),
        sa.Column('consumable_id', sa.String(length=20), nullable=True),
        sa.ForeignKeyConstraint(['bill_id'], ['bills.id'], name=op.f('fk_bill_items_bill_id_bills')),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- laboratory ---
    op.create_table(
        'lab_requests',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('patient_id', sa.String(length=20), nullable=False),
        sa.Column('patient_name', sa.String(length=120), nullable=False),
        sa.Column('visit_id', sa.String(length=20), nullable=True),
        sa.Column('doctor_name', sa.String(length=100), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum(
            'pending', 'billed', 'in_progress', 'completed', name='lab_request_status_enum',
        ), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('results', sa.Text(), nullable=True),
        sa.Column('doctor_prescriptions', sa.JSON(), nullable=True),
        sa.Column('completed_by', sa.String(length=120), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], name=op.f('fk_lab_requests_patient_id_patients')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'lab_request_tests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.String(length=20), nullable=False),
        sa.Column('test_id', sa.String(length=20), nullable=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('normal_range', sa.String(length=80), nullable=True),
        sa.Column('unit', sa.String(length=30), nullable=True),
        sa.Column('result', sa.Text(), nullable=True),
        sa.Column('parameter_results', sa.JSON(), nullable=True),
        sa.Column('payment_status', sa.Enum(*payment_statuses, name='test_payment_status_enum'), nullable=False),
        sa.Column('bill_id', sa.String(length=40), nullable=True),
        sa.ForeignKeyConstraint(['request_id'], ['lab_requests.id'],
                                name=op.f('fk_lab_request_tests_request_id_lab_requests')),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- pharmacy ---
    op.create_table(
        'prescriptions',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('patient_id', sa.String(length=20), nullable=False),
        sa.Column('patient_name', sa.String(length=120), nullable=False),
        sa.Column('visit_id', sa.String(length=20), nullable=True),
        sa.Column('doctor_name', sa.String(length=100), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum(
            'pending', 'billed', 'paid', 'dispensed', 'hmo_pending', 'hmo_approved', name='prescription_status_enum',
        ), nullable=False),
        sa.Column('payment_type', sa.Enum('cash', 'hmo', name='prescription_payment_type_enum'), nullable=False),
        sa.Column('hmo_provider', sa.String(length=120), nullable=True),
        sa.Column('destination', sa.Enum(*destinations, name='prescription_destination_enum'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('doctor_prescriptions', sa.JSON(), nullable=True),
        sa.Column('bill_id', sa.String(length=40), nullable=True),
        sa.Column('all_items_dispensed', sa.Boolean(), nullable=False),
        sa.Column('dispensed_by', sa.String(length=120), nullable=True),
        sa.Column('dispensed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], name=op.f('fk_prescriptions_patient_id_patients')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'prescription_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('prescription_id', sa.String(length=20), nullable=False),
        sa.Column('medicine_id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('dosage', sa.String(length=50), nullable=True),
        sa.Column('form', sa.String(length=30), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('payment_status', sa.Enum(*item_payment_statuses, name='rx_item_payment_status_enum'), nullable=False),
        sa.Column('dispensed', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['prescription_id'], ['prescriptions.id'],
                                name=op.f('fk_prescription_items_prescription_id_prescriptions')),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- injection room ---
    op.create_table(
        'injection_requests',
        sa.Column('id', sa.String(length=40), nullable=False),
        sa.Column('visit_id', sa.String(length=20), nullable=False),
        sa.Column('patient_id', sa.String(length=20), nullable=False),
        sa.Column('patient_name', sa.String(length=120), nullable=False),
        sa.Column('doctor_name', sa.String(length=100), nullable=True),
        sa.Column('prescription_id', sa.String(length=20), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum(
            'pending', 'not_paid', 'paid', 'in_progress', 'completed', 'later', name='injection_status_enum',
        ), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('doctor_prescriptions', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['visit_id'], ['visits.id'], name=op.f('fk_injection_requests_visit_id_visits')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('visit_id', name=op.f('uq_injection_requests_visit_id')),
    )
    op.create_table(
        'injections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.String(length=40), nullable=False),
        sa.Column('medicine_id', sa.String(length=20), nullable=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('dosage', sa.String(length=50), nullable=True),
        sa.Column('form', sa.String(length=30), nullable=False),
        sa.Column('route', sa.String(length=20), nullable=False),
        sa.Column('frequency', sa.String(length=40), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('administered', sa.Boolean(), nullable=False),
        sa.Column('administered_time', sa.DateTime(), nullable=True),
        sa.Column('administered_by', sa.String(length=120), nullable=True),
        sa.Column('payment_status', sa.Enum(*payment_statuses, name='injection_payment_status_enum'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('bill_id', sa.String(length=40), nullable=True),
        sa.Column('sent_to_cash_point', sa.Boolean(), nullable=False),
        sa.Column('saved', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['request_id'], ['injection_requests.id'],
                                name=op.f('fk_injections_request_id_injection_requests')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'vaccination_sessions',
        sa.Column('id', sa.String(length=30), nullable=False),
        sa.Column('visit_id', sa.String(length=20), nullable=False),
        sa.Column('patient_id', sa.String(length=20), nullable=False),
        sa.Column('vaccine_id', sa.String(length=20), nullable=False),
        sa.Column('vaccine_name', sa.String(length=120), nullable=True),
        sa.Column('dose_type', sa.Enum(*dose_types, name='dose_type_enum'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum(
            'scheduled', 'approved', 'denied', 'completed', 'cancelled', name='vaccination_status_enum',
        ), nullable=False),
        sa.Column('administered_by', sa.String(length=120), nullable=True),
        sa.Column('administered_time', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('bill_id', sa.String(length=40), nullable=True),
        sa.ForeignKeyConstraint(['visit_id'], ['visits.id'], name=op.f('fk_vaccination_sessions_visit_id_visits')),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- HMO claims ---
    op.create_table(
        'hmo_claims',
        sa.Column('id', sa.String(length=80), nullable=False),
        sa.Column('patient_id', sa.String(length=20), nullable=False),
        sa.Column('patient_name', sa.String(length=120), nullable=False),
        sa.Column('hmo_provider', sa.String(length=120), nullable=True),
        sa.Column('policy_number', sa.String(length=60), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('pending', 'approved', 'rejected', 'completed', name='claim_status_enum'),
                  nullable=False),
        sa.Column('approval_code', sa.String(length=60), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('source_department', sa.Enum(
            'pharmacy', 'laboratory', 'injection_room', 'doctor', name='source_department_enum',
        ), nullable=False),
        sa.Column('source_id', sa.String(length=60), nullable=False),
        sa.Column('processed_by', sa.String(length=120), nullable=True),
        sa.Column('processed_date', sa.Date(), nullable=True),
        sa.Column('approved_item_ids', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], name=op.f('fk_hmo_claims_patient_id_patients')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_department', 'source_id', name='uq_hmo_claims_source'),
    )


def downgrade():
    for table in (
        'hmo_claims',
        'vaccination_sessions',
        'injections',
        'injection_requests',
        'prescription_items',
        'prescriptions',
        'lab_request_tests',
        'lab_requests',
        'bill_items',
        'bills',
        'appointments',
        'visits',
        'patients',
        'lab_test_ranges',
        'lab_tests',
        'vaccines',
        'consumables',
        'medicines',
        'departments',
        'hmo_providers',
        'staff',
        'hospital_settings',
    ):
        op.drop_table(table)
