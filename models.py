from sqlalchemy_serializer import SerializerMixin
from sqlalchemy.orm import validates
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData, Enum, UniqueConstraint
from datetime import datetime, date
import pytz
import re
import phonenumbers

from config import HOSPITAL_TIMEZONE
from money import calculate_total, apply_discount
from workflow import workflow_owners, render_diagnosis, parse_legacy_diagnosis, VisitState

# Define metadata, instantiate db
metadata = MetaData(naming_convention={
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
})
db = SQLAlchemy(metadata=metadata)

staff_roles = (
    'super_admin',
    'manager',
    'registration',
    'cash_point',
    'vitals',
    'doctor',
    'injection_room',
    'lab',
    'pharmacist',
    'hmo_desk',
    'hmo_admin',
    'records_officer',
)
staff_statuses = ('active', 'inactive', 'on_leave')
genders = ('Male', 'Female', 'Unknown')
patient_types = ('cash', 'hmo')

bill_statuses = ('pending', 'paid', 'cancelled', 'hmo_pending', 'billed', 'dispensed')
bill_types = ('consultation', 'pharmacy', 'laboratory', 'medication', 'deposit', 'vaccination', 'other')
payment_methods = ('cash', 'card', 'transfer', 'hmo', 'balance')
bill_destinations = ('injection', 'final')
item_payment_statuses = ('pending', 'paid', 'dispensed')

lab_request_statuses = ('pending', 'billed', 'in_progress', 'completed')
test_payment_statuses = ('pending', 'paid')

prescription_statuses = ('pending', 'billed', 'paid', 'dispensed', 'hmo_pending', 'hmo_approved')
injection_statuses = ('pending', 'not_paid', 'paid', 'in_progress', 'completed', 'later')

claim_statuses = ('pending', 'approved', 'rejected', 'completed')
source_departments = ('pharmacy', 'laboratory', 'injection_room', 'doctor')

appointment_statuses = ('scheduled', 'completed', 'cancelled', 'In Progress')
consultation_types = ('initial', 'follow_up', 'specialist', 'general', 'pediatrician', 'vaccination')

medicine_forms = ('tablet', 'capsule', 'syrup', 'injection', 'cream', 'ointment', 'other')
consumable_categories = (
    'syringe', 'needle', 'swabs', 'plaster', 'gloves', 'iv_bag', 'cannula', 'iv_set', 'gauze', 'other',
)

dose_types = ('initial', 'review', 'subsequent', 'one_off')
vaccination_statuses = ('scheduled', 'approved', 'denied', 'completed', 'cancelled')

hospital_tz = pytz.timezone(HOSPITAL_TIMEZONE)


def now_in_hospital_tz():
    return datetime.now(hospital_tz)


def _iso(value):
    return value.isoformat() if value else None


def _normalize_phone(phone_number):
    if not phone_number:
        return None
    try:
        parsed_number = phonenumbers.parse(phone_number, "NG")
    except phonenumbers.phonenumberutil.NumberParseException:
        raise ValueError('Invalid phone number format. Use "08031234567" or "+2348031234567"')
    if not phonenumbers.is_valid_number(parsed_number):
        raise ValueError('Invalid Nigerian phone number')
    return phonenumbers.format_number(parsed_number, phonenumbers.PhoneNumberFormat.E164)


def _check_email(email):
    if email:
        if not re.match(r'^[\w\.-]+@[\w\.-]+\.\w+$', email):
            raise ValueError('Invalid email format')
    return email


# ===========================
# Catalogs
# ===========================

class HospitalSettings(db.Model, SerializerMixin):
    __tablename__ = 'hospital_settings'

    serialize_rules = ('-id',)

    id = db.Column(db.Integer, primary_key=True)
    hospital_name = db.Column(db.String(120), nullable=False, default='eHospital')
    address = db.Column(db.String(255), nullable=True, default='123 Main St, City')
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True, default='info@ehospital.com')
    tax_id = db.Column(db.String(40), nullable=True)
    consultation_fee = db.Column(db.Integer, nullable=False, default=5000)
    general_medicine_fee = db.Column(db.Integer, nullable=False, default=5000)
    pediatrics_fee = db.Column(db.Integer, nullable=False, default=7500)
    specialist_fee = db.Column(db.Integer, nullable=False, default=10000)
    staff_discount = db.Column(db.Integer, nullable=False, default=20)

    def __repr__(self):
        return f"<HospitalSettings {self.hospital_name}>"

    @validates('consultation_fee', 'general_medicine_fee', 'pediatrics_fee', 'specialist_fee')
    def validate_fee(self, key, value):
        if value is None or value < 0:
            raise ValueError(f"{key.replace('_', ' ').capitalize()} must be zero or more")
        return value

    @validates('staff_discount')
    def validate_staff_discount(self, key, value):
        if value is None or not 0 <= value <= 100:
            raise ValueError("Staff discount must be between 0 and 100")
        return value

    @validates('email')
    def validate_email(self, key, email):
        return _check_email(email)


class Staff(db.Model, SerializerMixin):
    __tablename__ = 'staff'

    id = db.Column(db.String(20), primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    username = db.Column(db.String(50), nullable=True, unique=True)
    role = db.Column(Enum(*staff_roles, name='staff_roles'), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    department = db.Column(db.String(100), nullable=True)
    status = db.Column(Enum(*staff_statuses, name='staff_status_enum'), nullable=False, default='active')
    join_date = db.Column(db.Date, nullable=True)

    def __repr__(self):
        return f"<Staff {self.id} {self.name} ({self.role})>"

    @validates('name')
    def validate_name(self, key, name):
        if not name or len(name) > 100:
            raise ValueError("Name must be present and under 100 characters.")
        return name

    @validates('role')
    def validate_role(self, key, role):
        if role not in staff_roles:
            raise ValueError(f"Invalid role. Must be one of: {staff_roles}")
        return role

    @validates('status')
    def validate_status(self, key, status):
        if status not in staff_statuses:
            raise ValueError(f"Invalid status. Must be one of: {staff_statuses}")
        return status

    @validates('email')
    def validate_email(self, key, email):
        return _check_email(email)

    @validates('phone')
    def validate_phone(self, key, phone):
        return _normalize_phone(phone)


class HMOProvider(db.Model, SerializerMixin):
    __tablename__ = 'hmo_providers'

    id = db.Column(db.String(20), primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    contact_person = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<HMOProvider {self.name}>"

    @validates('name')
    def validate_name(self, key, name):
        if not name:
            raise ValueError("Provider name is required")
        return name

    @validates('email')
    def validate_email(self, key, email):
        return _check_email(email)

    @validates('phone')
    def validate_phone(self, key, phone):
        return _normalize_phone(phone)


class Department(db.Model, SerializerMixin):
    __tablename__ = 'departments'

    id = db.Column(db.String(20), primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    head = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Department {self.name}>"

    @validates('name')
    def validate_name(self, key, name):
        if not name:
            raise ValueError("Department name is required")
        return name


class Medicine(db.Model, SerializerMixin):
    __tablename__ = 'medicines'

    id = db.Column(db.String(20), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    dosage = db.Column(db.String(50), nullable=True)
    form = db.Column(Enum(*medicine_forms, name='medicine_form_enum'), nullable=False, default='tablet')
    category = db.Column(db.String(80), nullable=True)
    price = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.Text, nullable=True)

    def __repr__(self):
        return f"<Medicine {self.name} {self.dosage} | Stock: {self.stock}>"

    @validates('price', 'stock')
    def validate_non_negative(self, key, value):
        if value is None or value < 0:
            raise ValueError(f"{key.capitalize()} cannot be negative")
        return value

    @validates('form')
    def validate_form(self, key, form):
        if form not in medicine_forms:
            raise ValueError(f"Invalid form. Must be one of: {medicine_forms}")
        return form


class Consumable(db.Model, SerializerMixin):
    __tablename__ = 'consumables'

    id = db.Column(db.String(20), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    category = db.Column(Enum(*consumable_categories, name='consumable_category_enum'), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=10)
    reorder_level = db.Column(db.Integer, nullable=False, default=20)
    unit = db.Column(db.String(30), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Consumable {self.name} | Stock: {self.stock}>"

    @validates('price', 'stock')
    def validate_non_negative(self, key, value):
        if value is None or value < 0:
            raise ValueError(f"{key.capitalize()} cannot be negative")
        return value


class Vaccine(db.Model, SerializerMixin):
    __tablename__ = 'vaccines'

    id = db.Column(db.String(20), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(80), nullable=True)
    description = db.Column(db.Text, nullable=True)
    total_required_doses = db.Column(db.Integer, nullable=False, default=1)
    interval_days = db.Column(db.Integer, nullable=True)
    stock = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Integer, nullable=False, default=0)
    is_government_provided = db.Column(db.Boolean, nullable=False, default=False)
    min_age = db.Column(db.Integer, nullable=True)
    max_age = db.Column(db.Integer, nullable=True)

    def __repr__(self):
        return f"<Vaccine {self.name} | Doses: {self.total_required_doses}>"

    @validates('total_required_doses')
    def validate_doses(self, key, value):
        if not value or value < 1:
            raise ValueError("A vaccine needs at least one dose")
        return value


class LabTest(db.Model, SerializerMixin):
    __tablename__ = 'lab_tests'

    serialize_rules = ('-ranges.lab_test',)

    id = db.Column(db.String(20), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(80), nullable=False, default='General')
    price = db.Column(db.Integer, nullable=False, default=0)
    normal_range = db.Column(db.String(80), nullable=True)
    unit = db.Column(db.String(30), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)

    ranges = db.relationship('LabTestRange', back_populates='lab_test', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<LabTest {self.name} ({self.category}) - {self.price}>"

    @validates('name')
    def validate_name(self, key, name):
        if not name:
            raise ValueError("Test name is required")
        return name

    @validates('price')
    def validate_price(self, key, price):
        if price is None or price < 0:
            raise ValueError("Price cannot be negative")
        return price


class LabTestRange(db.Model, SerializerMixin):
    __tablename__ = 'lab_test_ranges'

    serialize_rules = ('-lab_test',)

    id = db.Column(db.Integer, primary_key=True)
    lab_test_id = db.Column(db.String(20), db.ForeignKey('lab_tests.id'), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    normal_range = db.Column(db.String(80), nullable=True)
    unit = db.Column(db.String(30), nullable=True)
    category = db.Column(db.String(80), nullable=True)

    lab_test = db.relationship('LabTest', back_populates='ranges')


# ===========================
# Patients and visits
# ===========================

class Patient(db.Model, SerializerMixin):
    __tablename__ = 'patients'

    def to_dict(self, include_visits=True):
        data = {
            'id': self.id,
            'name': self.name,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'dob': _iso(self.dob),
            'age': self.age,
            'gender': self.gender,
            'phone': self.phone,
            'email': self.email,
            'address': self.address,
            'last_visit': _iso(self.last_visit),
            'patient_type': self.patient_type,
            'hmo_provider': self.hmo_provider,
            'policy_number': self.policy_number,
            'medical_history': self.medical_history or [],
            'allergies': self.allergies or [],
            'balance': self.balance,
            'is_staff': self.is_staff,
            'staff_id': self.staff_id,
            'bills': [b.id for b in self.bills],
            'created_at': _iso(self.created_at),
        }
        if include_visits:
            data['visits'] = [v.to_dict() for v in self.visits]
        return data

    id = db.Column(db.String(20), primary_key=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    dob = db.Column(db.Date, nullable=True)
    age = db.Column(db.Integer, nullable=True)
    gender = db.Column(Enum(*genders, name='gender_enum'), nullable=False, default='Unknown')
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    last_visit = db.Column(db.Date, nullable=True)
    patient_type = db.Column(Enum(*patient_types, name='patient_type_enum'), nullable=False, default='cash')
    hmo_provider = db.Column(db.String(120), nullable=True)
    policy_number = db.Column(db.String(60), nullable=True)
    medical_history = db.Column(db.JSON, nullable=True)
    allergies = db.Column(db.JSON, nullable=True)
    balance = db.Column(db.Integer, nullable=False, default=0)
    is_staff = db.Column(db.Boolean, nullable=False, default=False)
    staff_id = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, default=now_in_hospital_tz)

    visits = db.relationship(
        'Visit', back_populates='patient', cascade='all, delete-orphan', order_by='Visit.sequence'
    )
    bills = db.relationship('Bill', back_populates='patient', cascade='all, delete-orphan', order_by='Bill.created_at')
    appointments = db.relationship('Appointment', back_populates='patient', cascade='all, delete-orphan')
    claims = db.relationship('HMOClaim', back_populates='patient', cascade='all, delete-orphan')
    lab_requests = db.relationship('LabRequest', back_populates='patient', cascade='all, delete-orphan')
    prescriptions = db.relationship('Prescription', back_populates='patient', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Patient {self.id} {self.name} ({self.patient_type})>"

    @property
    def name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def is_hmo(self):
        return self.patient_type == 'hmo'

    @property
    def current_visit(self):
        return self.visits[-1] if self.visits else None

    @validates('first_name', 'last_name')
    def validate_name(self, key, name):
        if not name or len(name) > 50:
            raise ValueError(f"{key.replace('_', ' ').capitalize()} must be present and under 50 characters.")
        return name

    @validates('patient_type')
    def validate_patient_type(self, key, patient_type):
        if patient_type not in patient_types:
            raise ValueError(f"Patient type must be one of: {patient_types}")
        return patient_type

    @validates('gender')
    def validate_gender(self, key, gender):
        if gender not in genders:
            raise ValueError(f"Gender must be one of: {genders}")
        return gender

    @validates('dob')
    def validate_dob(self, key, dob):
        if dob is None:
            return dob
        today = now_in_hospital_tz().date()
        if dob >= today:
            raise ValueError("Date of birth must be in the past.")
        if dob < date(1900, 1, 1):
            raise ValueError("Date of birth is too far in the past.")
        if self.age is None:
            self.age = today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))
        return dob

    @validates('email')
    def validate_email(self, key, email):
        return _check_email(email)

    @validates('phone')
    def validate_phone(self, key, phone):
        return _normalize_phone(phone)


class Visit(db.Model, SerializerMixin):
    __tablename__ = 'visits'

    id = db.Column(db.String(20), primary_key=True)
    patient_id = db.Column(db.String(20), db.ForeignKey('patients.id'), nullable=False)
    sequence = db.Column(db.Integer, nullable=False, default=0)
    date = db.Column(db.Date, nullable=False)
    type = db.Column(db.String(50), nullable=False, default='Consultation')
    doctor = db.Column(db.String(100), nullable=True)

    workflow_owner = db.Column(Enum(*workflow_owners, name='workflow_owner_enum'), nullable=True)
    clinical_note = db.Column(db.Text, nullable=True, default='')
    original_diagnosis = db.Column(db.Text, nullable=True)

    physical_examination = db.Column(db.Text, nullable=True)
    presenting_complaints = db.Column(db.Text, nullable=True)
    vitals = db.Column(db.JSON, nullable=True)
    prescriptions = db.Column(db.JSON, nullable=True)
    lab_tests = db.Column(db.JSON, nullable=True)
    lab_data = db.Column(db.JSON, nullable=True)
    doctor_changes = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=now_in_hospital_tz)

    patient = db.relationship('Patient', back_populates='visits')
    injection_request = db.relationship(
        'InjectionRequest', back_populates='visit', uselist=False, cascade='all, delete-orphan'
    )
    vaccination_sessions = db.relationship(
        'VaccinationSession', back_populates='visit', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f"<Visit {self.id} PatientID={self.patient_id}, Diagnosis={self.diagnosis!r}>"

    @property
    def diagnosis(self):
        return render_diagnosis(self.workflow_owner, self.clinical_note)

    @diagnosis.setter
    def diagnosis(self, value):
        routing = parse_legacy_diagnosis(value)
        self.workflow_owner = routing.owner
        self.clinical_note = routing.clinical_note

    @property
    def state(self):
        return VisitState(self.workflow_owner, self.clinical_note, self.notes, {})

    def apply_state(self, state):
        for key in state.changes:
            if key in ('id', 'patient_id', 'sequence') or not hasattr(Visit, key):
                raise ValueError(f"Visit has no field {key}")
        self.workflow_owner = state.owner
        self.clinical_note = state.clinical_note
        self.notes = state.notes
        for key, value in state.changes.items():
            setattr(self, key, value)

    @property
    def vaccination_data(self):
        return self.vaccination_sessions[-1] if self.vaccination_sessions else None

    @validates('workflow_owner')
    def validate_workflow_owner(self, key, owner):
        if owner is not None and owner not in workflow_owners:
            raise ValueError(f"Unknown workflow owner: {owner}")
        return owner

    def to_dict(self):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'date': _iso(self.date),
            'type': self.type,
            'doctor': self.doctor,
            'workflow_owner': self.workflow_owner,
            'clinical_note': self.clinical_note,
            'diagnosis': self.diagnosis,
            'original_diagnosis': self.original_diagnosis,
            'physical_examination': self.physical_examination,
            'presenting_complaints': self.presenting_complaints,
            'vitals': self.vitals,
            'prescriptions': self.prescriptions,
            'lab_tests': self.lab_tests,
            'lab_data': self.lab_data,
            'doctor_changes': self.doctor_changes or [],
            'notes': self.notes,
            'injection_data': self.injection_request.to_dict() if self.injection_request else None,
            'vaccination_sessions': [s.to_dict() for s in self.vaccination_sessions],
        }


class Appointment(db.Model, SerializerMixin):
    __tablename__ = 'appointments'

    serialize_rules = ('-patient',)

    id = db.Column(db.String(20), primary_key=True)
    patient_id = db.Column(db.String(20), db.ForeignKey('patients.id'), nullable=False)
    patient_name = db.Column(db.String(120), nullable=False)
    date = db.Column(db.Date, nullable=False)
    time = db.Column(db.String(10), nullable=True)
    type = db.Column(db.String(50), nullable=False, default='Consultation')
    status = db.Column(Enum(*appointment_statuses, name='appointment_status_enum'), nullable=False, default='scheduled')
    doctor = db.Column(db.String(100), nullable=True)
    doctor_id = db.Column(db.String(20), nullable=True)
    consultation_type = db.Column(Enum(*consultation_types, name='consultation_type_enum'), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    bill_id = db.Column(db.String(30), nullable=True)
    vaccine_id = db.Column(db.String(20), nullable=True)
    vaccine_name = db.Column(db.String(120), nullable=True)
    dose_type = db.Column(Enum(*dose_types, name='appointment_dose_type_enum'), nullable=True)
    vaccination_price = db.Column(db.Integer, nullable=True)
    is_government_provided = db.Column(db.Boolean, nullable=True)
    vaccination_session_id = db.Column(db.String(30), nullable=True)

    patient = db.relationship('Patient', back_populates='appointments')

    def __repr__(self):
        return f"<Appointment {self.id} {self.patient_name} {self.date} ({self.status})>"

    @validates('status')
    def validate_status(self, key, status):
        if status not in appointment_statuses:
            raise ValueError(f"Invalid status. Must be one of: {appointment_statuses}")
        return status


# ===========================
# Billing
# ===========================

class Bill(db.Model, SerializerMixin):
    __tablename__ = 'bills'

    id = db.Column(db.String(40), primary_key=True)
    patient_id = db.Column(db.String(20), db.ForeignKey('patients.id'), nullable=False)
    patient_name = db.Column(db.String(120), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(Enum(*bill_statuses, name='bill_status_enum'), nullable=False, default='pending')
    type = db.Column(Enum(*bill_types, name='bill_type_enum'), nullable=False)
    destination = db.Column(Enum(*bill_destinations, name='bill_destination_enum'), nullable=True)
    payment_method = db.Column(Enum(*payment_methods, name='payment_method_enum'), nullable=True)
    payment_reference = db.Column(db.String(60), nullable=True)
    payment_date = db.Column(db.Date, nullable=True)
    processed_by = db.Column(db.String(120), nullable=True)
    source = db.Column(db.String(40), nullable=True)
    discount = db.Column(db.Integer, nullable=True)
    discount_reason = db.Column(db.String(120), nullable=True)
    original_total = db.Column(db.Integer, nullable=True)
    visit_id = db.Column(db.String(20), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    all_items_dispensed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=now_in_hospital_tz)

    patient = db.relationship('Patient', back_populates='bills')
    items = db.relationship('BillItem', back_populates='bill', cascade='all, delete-orphan', order_by='BillItem.id')

    def __repr__(self):
        return f"<Bill {self.id} {self.type} {self.status} | Total: {self.total}>"

    @property
    def total(self):
        return calculate_total(self.items)

    @property
    def amount_due(self):
        return apply_discount(self.total, self.discount)

    @validates('status')
    def validate_status(self, key, status):
        if status not in bill_statuses:
            raise ValueError(f"Invalid bill status. Must be one of: {bill_statuses}")
        return status

    @validates('type')
    def validate_type(self, key, bill_type):
        if bill_type not in bill_types:
            raise ValueError(f"Invalid bill type. Must be one of: {bill_types}")
        return bill_type

    @validates('payment_method')
    def validate_payment_method(self, key, method):
        if method is not None and method not in payment_methods:
            raise ValueError(f"Invalid payment method. Must be one of: {payment_methods}")
        return method

    def to_dict(self):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'patient_name': self.patient_name,
            'date': _iso(self.date),
            'status': self.status,
            'type': self.type,
            'destination': self.destination,
            'items': [item.to_dict() for item in self.items],
            'payment_method': self.payment_method,
            'payment_reference': self.payment_reference,
            'payment_date': _iso(self.payment_date),
            'processed_by': self.processed_by,
            'source': self.source,
            'discount': self.discount,
            'discount_reason': self.discount_reason,
            'original_total': self.original_total,
            'visit_id': self.visit_id,
            'notes': self.notes,
            'all_items_dispensed': self.all_items_dispensed,
            'total': self.total,
            'amount_due': self.amount_due,
        }


class BillItem(db.Model, SerializerMixin):
    __tablename__ = 'bill_items'

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.String(40), db.ForeignKey('bills.id'), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Integer, nullable=False, default=0)
    is_injectable = db.Column(db.Boolean, nullable=False, default=False)
    is_consumable = db.Column(db.Boolean, nullable=False, default=False)
    dispensed = db.Column(db.Boolean, nullable=True)
    payment_status = db.Column(Enum(*item_payment_statuses, name='item_payment_status_enum'), nullable=True)
    medicine_id = db.Column(db.String(20), nullable=True)
    consumable_id = db.Column(db.String(20), nullable=True)

    bill = db.relationship('Bill', back_populates='items')

    def __repr__(self):
        return f"<BillItem {self.description} x{self.quantity} @ {self.unit_price}>"

    @validates('quantity')
    def validate_quantity(self, key, quantity):
        if quantity is None or quantity < 1:
            raise ValueError("Quantity must be at least 1")
        return quantity

    @validates('unit_price')
    def validate_unit_price(self, key, unit_price):
        if unit_price is None or unit_price < 0:
            raise ValueError("Unit price cannot be negative")
        return unit_price

    def to_dict(self):
        return {
            'id': self.id,
            'description': self.description,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'is_injectable': self.is_injectable,
            'is_consumable': self.is_consumable,
            'dispensed': self.dispensed,
            'payment_status': self.payment_status,
            'medicine_id': self.medicine_id,
            'consumable_id': self.consumable_id,
        }


# ===========================
# Laboratory
# ===========================

class LabRequest(db.Model, SerializerMixin):
    __tablename__ = 'lab_requests'

    id = db.Column(db.String(20), primary_key=True)
    patient_id = db.Column(db.String(20), db.ForeignKey('patients.id'), nullable=False)
    patient_name = db.Column(db.String(120), nullable=False)
    visit_id = db.Column(db.String(20), nullable=True)
    doctor_name = db.Column(db.String(100), nullable=True)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(Enum(*lab_request_statuses, name='lab_request_status_enum'), nullable=False, default='pending')
    notes = db.Column(db.Text, nullable=True)
    results = db.Column(db.Text, nullable=True)
    doctor_prescriptions = db.Column(db.JSON, nullable=True)
    completed_by = db.Column(db.String(120), nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=now_in_hospital_tz)

    patient = db.relationship('Patient', back_populates='lab_requests')
    tests = db.relationship(
        'LabRequestTest', back_populates='request', cascade='all, delete-orphan', order_by='LabRequestTest.id'
    )

    def __repr__(self):
        return f"<LabRequest {self.id} {self.patient_name} ({self.status})>"

    @validates('status')
    def validate_status(self, key, status):
        if status not in lab_request_statuses:
            raise ValueError(f"Invalid lab request status. Must be one of: {lab_request_statuses}")
        return status

    @property
    def total(self):
        return sum(test.price for test in self.tests)

    def to_dict(self):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'patient_name': self.patient_name,
            'visit_id': self.visit_id,
            'doctor_name': self.doctor_name,
            'date': _iso(self.date),
            'status': self.status,
            'tests': [test.to_dict() for test in self.tests],
            'notes': self.notes,
            'results': self.results,
            'doctor_prescriptions': self.doctor_prescriptions,
            'completed_by': self.completed_by,
            'completed_at': _iso(self.completed_at),
            'total': self.total,
        }


class LabRequestTest(db.Model, SerializerMixin):
    __tablename__ = 'lab_request_tests'

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(20), db.ForeignKey('lab_requests.id'), nullable=False)
    test_id = db.Column(db.String(20), nullable=True)
    name = db.Column(db.String(120), nullable=False)
    price = db.Column(db.Integer, nullable=False, default=0)
    normal_range = db.Column(db.String(80), nullable=True)
    unit = db.Column(db.String(30), nullable=True)
    result = db.Column(db.Text, nullable=True)
    parameter_results = db.Column(db.JSON, nullable=True)
    payment_status = db.Column(Enum(*test_payment_statuses, name='test_payment_status_enum'), nullable=False, default='pending')
    bill_id = db.Column(db.String(40), nullable=True)

    request = db.relationship('LabRequest', back_populates='tests')

    def __repr__(self):
        return f"<LabRequestTest {self.name} ({self.payment_status})>"

    def to_dict(self):
        return {
            'id': self.id,
            'test_id': self.test_id,
            'name': self.name,
            'price': self.price,
            'normal_range': self.normal_range,
            'unit': self.unit,
            'result': self.result,
            'parameter_results': self.parameter_results or [],
            'payment_status': self.payment_status,
            'bill_id': self.bill_id,
        }


# ===========================
# Pharmacy and injections
# ===========================

class Prescription(db.Model, SerializerMixin):
    __tablename__ = 'prescriptions'

    id = db.Column(db.String(20), primary_key=True)
    patient_id = db.Column(db.String(20), db.ForeignKey('patients.id'), nullable=False)
    patient_name = db.Column(db.String(120), nullable=False)
    visit_id = db.Column(db.String(20), nullable=True)
    doctor_name = db.Column(db.String(100), nullable=True)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(Enum(*prescription_statuses, name='prescription_status_enum'), nullable=False, default='pending')
    payment_type = db.Column(Enum(*patient_types, name='prescription_payment_type_enum'), nullable=False, default='cash')
    hmo_provider = db.Column(db.String(120), nullable=True)
    destination = db.Column(Enum(*bill_destinations, name='prescription_destination_enum'), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    doctor_prescriptions = db.Column(db.JSON, nullable=True)
    bill_id = db.Column(db.String(40), nullable=True)
    all_items_dispensed = db.Column(db.Boolean, nullable=False, default=False)
    dispensed_by = db.Column(db.String(120), nullable=True)
    dispensed_at = db.Column(db.DateTime, nullable=True)

    patient = db.relationship('Patient', back_populates='prescriptions')
    items = db.relationship(
        'PrescriptionItem', back_populates='prescription', cascade='all, delete-orphan', order_by='PrescriptionItem.id'
    )

    def __repr__(self):
        return f"<Prescription {self.id} {self.patient_name} ({self.status})>"

    @validates('status')
    def validate_status(self, key, status):
        if status not in prescription_statuses:
            raise ValueError(f"Invalid prescription status. Must be one of: {prescription_statuses}")
        return status

    @property
    def is_dispensable(self):
        return self.status in ('paid', 'hmo_approved') and not self.all_items_dispensed

    def to_dict(self):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'patient_name': self.patient_name,
            'visit_id': self.visit_id,
            'doctor_name': self.doctor_name,
            'date': _iso(self.date),
            'status': self.status,
            'payment_type': self.payment_type,
            'hmo_provider': self.hmo_provider,
            'destination': self.destination,
            'notes': self.notes,
            'doctor_prescriptions': self.doctor_prescriptions,
            'bill_id': self.bill_id,
            'all_items_dispensed': self.all_items_dispensed,
            'dispensed_by': self.dispensed_by,
            'items': [item.to_dict() for item in self.items],
        }


class PrescriptionItem(db.Model, SerializerMixin):
    __tablename__ = 'prescription_items'

    serialize_rules = ('-prescription',)

    id = db.Column(db.Integer, primary_key=True)
    prescription_id = db.Column(db.String(20), db.ForeignKey('prescriptions.id'), nullable=False)
    medicine_id = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    dosage = db.Column(db.String(50), nullable=True)
    form = db.Column(db.String(30), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(Enum(*item_payment_statuses, name='rx_item_payment_status_enum'), nullable=False, default='pending')
    dispensed = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    prescription = db.relationship('Prescription', back_populates='items')

    @property
    def is_injectable(self):
        return self.form == 'injection'

    @validates('quantity')
    def validate_quantity(self, key, quantity):
        if quantity is None or quantity < 1:
            raise ValueError("Quantity must be at least 1")
        return quantity


class InjectionRequest(db.Model, SerializerMixin):
    __tablename__ = 'injection_requests'

    id = db.Column(db.String(40), primary_key=True)
    visit_id = db.Column(db.String(20), db.ForeignKey('visits.id'), nullable=False, unique=True)
    patient_id = db.Column(db.String(20), nullable=False)
    patient_name = db.Column(db.String(120), nullable=False)
    doctor_name = db.Column(db.String(100), nullable=True)
    prescription_id = db.Column(db.String(20), nullable=True)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(Enum(*injection_statuses, name='injection_status_enum'), nullable=False, default='not_paid')
    notes = db.Column(db.Text, nullable=True)
    doctor_prescriptions = db.Column(db.JSON, nullable=True)

    visit = db.relationship('Visit', back_populates='injection_request')
    injections = db.relationship(
        'Injection', back_populates='request', cascade='all, delete-orphan', order_by='Injection.id'
    )

    def __repr__(self):
        return f"<InjectionRequest {self.id} {self.patient_name} ({self.status})>"

    @validates('status')
    def validate_status(self, key, status):
        if status not in injection_statuses:
            raise ValueError(f"Invalid injection status. Must be one of: {injection_statuses}")
        return status

    @property
    def paid_injections(self):
        return [i for i in self.injections if i.payment_status == 'paid']

    def to_dict(self):
        return {
            'id': self.id,
            'visit_id': self.visit_id,
            'patient_id': self.patient_id,
            'patient_name': self.patient_name,
            'doctor_name': self.doctor_name,
            'prescription_id': self.prescription_id,
            'date': _iso(self.date),
            'status': self.status,
            'notes': self.notes,
            'doctor_prescriptions': self.doctor_prescriptions,
            'injections': [i.to_dict() for i in self.injections],
        }


class Injection(db.Model, SerializerMixin):
    __tablename__ = 'injections'

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(40), db.ForeignKey('injection_requests.id'), nullable=False)
    medicine_id = db.Column(db.String(20), nullable=True)
    name = db.Column(db.String(120), nullable=False)
    dosage = db.Column(db.String(50), nullable=True)
    form = db.Column(db.String(30), nullable=False, default='injection')
    route = db.Column(db.String(20), nullable=False, default='IV')
    frequency = db.Column(db.String(40), nullable=False, default='Once')
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Integer, nullable=False, default=0)
    administered = db.Column(db.Boolean, nullable=False, default=False)
    administered_time = db.Column(db.DateTime, nullable=True)
    administered_by = db.Column(db.String(120), nullable=True)
    payment_status = db.Column(Enum(*test_payment_statuses, name='injection_payment_status_enum'), nullable=False, default='pending')
    notes = db.Column(db.Text, nullable=True)
    bill_id = db.Column(db.String(40), nullable=True)
    sent_to_cash_point = db.Column(db.Boolean, nullable=False, default=False)
    saved = db.Column(db.Boolean, nullable=False, default=False)

    request = db.relationship('InjectionRequest', back_populates='injections')

    def __repr__(self):
        return f"<Injection {self.description} ({self.payment_status})>"

    @property
    def description(self):
        return f"{self.name} {self.dosage} ({self.route})"

    def to_dict(self):
        return {
            'id': self.id,
            'medicine_id': self.medicine_id,
            'name': self.name,
            'dosage': self.dosage,
            'form': self.form,
            'route': self.route,
            'frequency': self.frequency,
            'quantity': self.quantity,
            'price': self.price,
            'administered': self.administered,
            'administered_time': _iso(self.administered_time),
            'administered_by': self.administered_by,
            'payment_status': self.payment_status,
            'notes': self.notes,
            'bill_id': self.bill_id,
            'sent_to_cash_point': self.sent_to_cash_point,
            'saved': self.saved,
        }


# ===========================
# Vaccinations
# ===========================

class VaccinationSession(db.Model, SerializerMixin):
    __tablename__ = 'vaccination_sessions'

    id = db.Column(db.String(30), primary_key=True)
    visit_id = db.Column(db.String(20), db.ForeignKey('visits.id'), nullable=False)
    patient_id = db.Column(db.String(20), nullable=False)
    vaccine_id = db.Column(db.String(20), nullable=False)
    vaccine_name = db.Column(db.String(120), nullable=True)
    dose_type = db.Column(Enum(*dose_types, name='dose_type_enum'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(Enum(*vaccination_statuses, name='vaccination_status_enum'), nullable=False, default='scheduled')
    administered_by = db.Column(db.String(120), nullable=True)
    administered_time = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    bill_id = db.Column(db.String(40), nullable=True)

    visit = db.relationship('Visit', back_populates='vaccination_sessions')

    def __repr__(self):
        return f"<VaccinationSession {self.id} {self.vaccine_name} {self.dose_type} ({self.status})>"

    def to_dict(self):
        return {
            'id': self.id,
            'visit_id': self.visit_id,
            'patient_id': self.patient_id,
            'vaccine_id': self.vaccine_id,
            'vaccine_name': self.vaccine_name,
            'dose_type': self.dose_type,
            'date': _iso(self.date),
            'status': self.status,
            'administered_by': self.administered_by,
            'administered_time': _iso(self.administered_time),
            'notes': self.notes,
            'bill_id': self.bill_id,
        }


# ===========================
# HMO claims
# ===========================

class HMOClaim(db.Model, SerializerMixin):
    __tablename__ = 'hmo_claims'
    __table_args__ = (
        UniqueConstraint('source_department', 'source_id', name='uq_hmo_claims_source'),
    )

    id = db.Column(db.String(80), primary_key=True)
    patient_id = db.Column(db.String(20), db.ForeignKey('patients.id'), nullable=False)
    patient_name = db.Column(db.String(120), nullable=False)
    hmo_provider = db.Column(db.String(120), nullable=True)
    policy_number = db.Column(db.String(60), nullable=True)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(Enum(*claim_statuses, name='claim_status_enum'), nullable=False, default='pending')
    approval_code = db.Column(db.String(60), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    source_department = db.Column(Enum(*source_departments, name='source_department_enum'), nullable=False)
    source_id = db.Column(db.String(60), nullable=False)
    processed_by = db.Column(db.String(120), nullable=True)
    processed_date = db.Column(db.Date, nullable=True)
    approved_item_ids = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=now_in_hospital_tz)

    patient = db.relationship('Patient', back_populates='claims')

    def __repr__(self):
        return f"<HMOClaim {self.id} {self.source_department}:{self.source_id} ({self.status})>"

    @validates('source_department')
    def validate_source_department(self, key, department):
        if department not in source_departments:
            raise ValueError(f"Invalid source department. Must be one of: {source_departments}")
        return department

    @validates('status')
    def validate_status(self, key, status):
        if status not in claim_statuses:
            raise ValueError(f"Invalid claim status. Must be one of: {claim_statuses}")
        return status

    def to_dict(self, items=None):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'patient_name': self.patient_name,
            'hmo_provider': self.hmo_provider,
            'policy_number': self.policy_number,
            'date': _iso(self.date),
            'status': self.status,
            'items': items if items is not None else [],
            'approval_code': self.approval_code,
            'rejection_reason': self.rejection_reason,
            'notes': self.notes,
            'source_department': self.source_department,
            'source_id': self.source_id,
            'processed_by': self.processed_by,
            'processed_date': _iso(self.processed_date),
        }
