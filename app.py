import logging
import logging.config
import re
from datetime import date, datetime
from functools import wraps
from io import BytesIO

from flask import Flask, g, jsonify, make_response, request
from flask_cors import CORS
from flask_migrate import Migrate
from flask_restful import Api, Resource
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from config import DATABASE_URI, LOGGING_CONFIG, SECRET_KEY
from errors import RecordNotFound
from models import db
from money import format_currency
from store import HospitalStore

logging.config.dictConfig(LOGGING_CONFIG)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = DATABASE_URI
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.json.compact = False
app.json.ensure_ascii = False

migrate = Migrate(app, db)
db.init_app(app)

api = Api(app)

CORS(app)

app.secret_key = SECRET_KEY

date_fields = ('dob', 'date', 'join_date', 'last_visit', 'payment_date')


def get_store():
    if 'store' not in g:
        g.store = HospitalStore(db.session)
    return g.store


def parse_dates(data):
    """Turn ISO date strings in a request body into ``date`` objects."""
    data = dict(data or {})
    for field in date_fields:
        value = data.get(field)
        if isinstance(value, str) and value:
            try:
                data[field] = datetime.fromisoformat(value).date()
            except ValueError:
                raise ValueError(f"Invalid date format for {field}. Use YYYY-MM-DD.")
    return data


def require_fields(data, *fields):
    for field in fields:
        if data.get(field) in (None, ''):
            raise ValueError(f"{field} is required")


def store_action(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except RecordNotFound as e:
            return {'message': str(e)}, 404
        except ValueError as e:
            db.session.rollback()
            return {'error': str(e)}, 400
        except IntegrityError as e:
            db.session.rollback()
            logger.warning("Integrity error: %s", e.orig)
            return {'error': f'Integrity error: {e.orig}'}, 400
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Database error in %s", func.__qualname__)
            return {'error': 'An unexpected error occurred.'}, 500
    return wrapper


class StoreResource(Resource):
    method_decorators = [store_action]


def _date_arg(name):
    value = request.args.get(name)
    return date.fromisoformat(value) if value else None


@app.route('/receipt/<bill_id>', methods=['GET'])
def generate_receipt(bill_id):
    store = get_store()
    try:
        bill, rows = store.receipt_lines(bill_id)
    except RecordNotFound as e:
        return {'message': str(e)}, 404
    settings = store.settings

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    elements = []

    styles = getSampleStyleSheet()
    normal = styles['Normal']

    # Header
    elements.append(Paragraph(settings.hospital_name.upper(), styles['Title']))
    if settings.address:
        elements.append(Paragraph(settings.address, normal))
    elements.append(Paragraph("OFFICIAL RECEIPT", styles['Heading2']))
    elements.append(Spacer(1, 20))

    info = [
        f"Patient: {bill.patient_name}",
        f"Patient ID: {bill.patient_id}",
        f"Bill ID: {bill.id}",
        f"Bill Type: {bill.type.capitalize()}",
        f"Status: {bill.status}",
        f"Date: {bill.date.isoformat()}",
    ]
    if bill.payment_method:
        info.append(f"Payment Method: {bill.payment_method}")
    if bill.payment_reference:
        info.append(f"Reference: {bill.payment_reference}")
    for line in info:
        elements.append(Paragraph(line, normal))
    elements.append(Spacer(1, 15))

    service_data = [["Description", "Qty", "Unit Price", "Total"]]
    for description, quantity, unit_price, line_total in rows:
        service_data.append([Paragraph(description, normal), quantity, unit_price, line_total])

    table = Table(service_data, colWidths=[220, 50, 100, 100])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("ALIGN", (1, 1), (-1, -1), "CENTER"),
        ("ALIGN", (0, 0), (0, -1), "LEFT"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 12),
        ("GRID", (0, 0), (-1, -1), 1, colors.black),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 15))

    # Totals
    elements.append(Paragraph(f"<b>Total: {format_currency(bill.total)}</b>", styles['Heading3']))
    if bill.discount:
        elements.append(Paragraph(
            f"<b>{bill.discount_reason or 'Discount'} ({bill.discount}%): "
            f"{format_currency(bill.total - bill.amount_due)}</b>",
            styles['Heading3'],
        ))
    elements.append(Paragraph(f"<b>Amount Due: {format_currency(bill.amount_due)}</b>", styles['Heading3']))
    elements.append(Spacer(1, 20))

    elements.append(Paragraph("Thank you for your payment.", styles['Italic']))
    elements.append(Paragraph(f"This is a system-generated receipt from {settings.hospital_name}.", styles['Italic']))

    doc.build(elements)
    buffer.seek(0)

    safe_name = re.sub(r'[^A-Za-z0-9]+', '_', bill.patient_name or 'Patient')
    filename = f"{safe_name}_receipt_{bill.id}.pdf"

    response = make_response(buffer.read())
    response.headers['Content-Type'] = 'application/pdf'
    response.headers['Content-Disposition'] = f'inline; filename="{filename}"'
    return response


# PATIENT MANAGEMENT ROUTES
class Patients(StoreResource):
    def get(self):
        store = get_store()
        query = request.args.get('q')
        patients = store.search_patients(query) if query else store.list_patients(request.args.get('type'))
        return make_response(jsonify([p.to_dict(include_visits=False) for p in patients]), 200)

    def post(self):
        data = parse_dates(request.get_json())
        require_fields(data, 'first_name', 'last_name')
        visits = [parse_dates(v) for v in data.pop('visits', None) or []]
        patient = get_store().add_patient(data, visits=visits)
        return {'message': 'Patient successfully created', 'patient': patient.to_dict()}, 201


class PatientByID(StoreResource):
    def get(self, id):
        patient = get_store().get_patient(id)
        if not patient:
            return {'message': 'Patient not found'}, 404
        return make_response(jsonify(patient.to_dict()), 200)

    def patch(self, id):
        patient = get_store().update_patient(id, parse_dates(request.get_json()))
        return make_response(jsonify(patient.to_dict()), 200)

    def delete(self, id):
        get_store().delete_patient(id)
        return {'message': f'Patient {id} deleted successfully'}, 200


class PatientFromStaff(StoreResource):
    def post(self, staff_id):
        patient = get_store().create_patient_from_staff(staff_id)
        return make_response(jsonify(patient.to_dict()), 201)


class PatientBalance(StoreResource):
    def patch(self, id):
        data = request.get_json() or {}
        require_fields(data, 'amount')
        balance = get_store().update_patient_balance(id, int(data['amount']))
        return {'patient_id': id, 'balance': balance}, 200


class PatientDeposits(StoreResource):
    def get(self, id):
        bills = get_store().get_deposit_bills(patient_id=id)
        return make_response(jsonify([b.to_dict() for b in bills]), 200)

    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'amount')
        bill = get_store().create_deposit_bill(id, int(data['amount']), data.get('staff_name'))
        return {'message': 'Deposit recorded', 'bill': bill.to_dict(), 'balance': bill.patient.balance}, 201


api.add_resource(Patients, '/patients')
api.add_resource(PatientByID, '/patients/<id>')
api.add_resource(PatientFromStaff, '/patients/from_staff/<staff_id>')
api.add_resource(PatientBalance, '/patients/<id>/balance')
api.add_resource(PatientDeposits, '/patients/<id>/deposits')


# VISIT MANAGEMENT ROUTES
class PatientVisits(StoreResource):
    def get(self, id):
        patient = get_store().get_patient(id)
        if not patient:
            return {'message': 'Patient not found'}, 404
        return make_response(jsonify([v.to_dict() for v in patient.visits]), 200)

    def post(self, id):
        visit = get_store().add_visit(id, parse_dates(request.get_json()))
        return {'message': 'Visit created successfully', 'visit': visit.to_dict()}, 201


class PatientVitals(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'vitals')
        state = get_store().record_vitals(
            id, data['vitals'], recorded_by=data.get('recorded_by'), doctor=data.get('doctor'),
        )
        return {'message': 'Vitals recorded', 'workflow_owner': state.owner}, 200


class PatientConsultation(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'diagnosis', 'destination', 'doctor')
        store = get_store()
        store.complete_consultation(
            id,
            data['diagnosis'],
            data['destination'],
            data['doctor'],
            prescriptions=data.get('prescriptions'),
            lab_tests=data.get('lab_tests'),
            notes=data.get('notes'),
            physical_examination=data.get('physical_examination'),
        )
        visit = store.get_current_visit(id)
        return make_response(jsonify(visit.to_dict()), 200)


class VisitByID(StoreResource):
    def get(self, id):
        visit = get_store().get_visit(id)
        if not visit:
            return {'message': 'Visit not found'}, 404
        return make_response(jsonify(visit.to_dict()), 200)

    def patch(self, id):
        data = request.get_json() or {}
        store = get_store()
        if 'diagnosis' in data:
            store.import_visit_diagnosis(id, data['diagnosis'], note=data.get('note'))
        else:
            return {'error': 'Only diagnosis can be updated on a visit'}, 400
        return make_response(jsonify(store.get_visit(id).to_dict()), 200)


api.add_resource(PatientVisits, '/patients/<id>/visits')
api.add_resource(PatientVitals, '/patients/<id>/vitals')
api.add_resource(PatientConsultation, '/patients/<id>/consultation')
api.add_resource(VisitByID, '/visits/<id>')


# APPOINTMENT ROUTES
class Appointments(StoreResource):
    def get(self):
        appointments = get_store().get_appointments(
            patient_id=request.args.get('patient_id'),
            status=request.args.get('status'),
            on_date=_date_arg('date'),
        )
        return make_response(jsonify([a.to_dict() for a in appointments]), 200)

    def post(self):
        data = parse_dates(request.get_json())
        require_fields(data, 'patient_id', 'date')
        appointment = get_store().add_appointment(data)
        return {'message': 'Appointment created', 'appointment': appointment.to_dict()}, 201


class AppointmentByID(StoreResource):
    def get(self, id):
        appointment = get_store().get_appointment(id)
        if not appointment:
            return {'message': 'Appointment not found'}, 404
        return make_response(jsonify(appointment.to_dict()), 200)

    def patch(self, id):
        appointment = get_store().update_appointment(id, parse_dates(request.get_json()))
        return make_response(jsonify(appointment.to_dict()), 200)


class AppointmentCancel(StoreResource):
    def post(self, id):
        data = request.get_json(silent=True) or {}
        return get_store().cancel_consultation(id, data.get('staff_name')), 200


api.add_resource(Appointments, '/appointments')
api.add_resource(AppointmentByID, '/appointments/<id>')
api.add_resource(AppointmentCancel, '/appointments/<id>/cancel')


# BILLING ROUTES
class Bills(StoreResource):
    def get(self):
        store = get_store()
        if request.args.get('paid_today') == 'true':
            return make_response(jsonify([b.to_dict() for b in store.get_bills_paid_today()]), 200)
        bills = store.get_bills(
            status=request.args.get('status'),
            bill_type=request.args.get('type'),
            patient_id=request.args.get('patient_id'),
        )
        return make_response(jsonify([b.to_dict() for b in bills]), 200)

    def post(self):
        data = parse_dates(request.get_json())
        require_fields(data, 'patient_id', 'type', 'items')
        bill = get_store().add_bill(data)
        return {'message': 'Bill created', 'bill': bill.to_dict()}, 201


class BillByID(StoreResource):
    def get(self, id):
        bill = get_store().get_bill(id)
        if not bill:
            return {'message': 'Bill not found'}, 404
        return make_response(jsonify(bill.to_dict()), 200)

    def patch(self, id):
        bill = get_store().update_bill(id, parse_dates(request.get_json()))
        return make_response(jsonify(bill.to_dict()), 200)


class BillPayment(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'payment_method')
        bill = get_store().process_payment(
            id, data['payment_method'], data.get('payment_reference'), data.get('processed_by'),
        )
        return {'message': 'Payment processed', 'bill': bill.to_dict()}, 200


class BillCancel(StoreResource):
    def post(self, id):
        data = request.get_json(silent=True) or {}
        bill = get_store().cancel_bill(id, data.get('reason'), data.get('staff_name'))
        return {'message': 'Bill cancelled', 'bill': bill.to_dict()}, 200


class BillDiscount(StoreResource):
    def post(self, id):
        bill = get_store().apply_staff_discount(id)
        return make_response(jsonify(bill.to_dict()), 200)


class BillConsumables(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'consumables')
        bill = get_store().add_consumables_to_bill(id, data['consumables'])
        return make_response(jsonify(bill.to_dict()), 200)


class BillDoctorChange(StoreResource):
    def get(self, id):
        return {'can_change': get_store().can_change_doctor(id)}, 200

    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'doctor_id')
        result = get_store().change_consultation_doctor(
            id, data['doctor_id'], data.get('consultation_type'), data.get('staff_name'),
        )
        return result, 200 if result['success'] else 400


api.add_resource(Bills, '/bills')
api.add_resource(BillByID, '/bills/<id>')
api.add_resource(BillPayment, '/bills/<id>/pay')
api.add_resource(BillCancel, '/bills/<id>/cancel')
api.add_resource(BillDiscount, '/bills/<id>/discount')
api.add_resource(BillConsumables, '/bills/<id>/consumables')
api.add_resource(BillDoctorChange, '/bills/<id>/doctor')


# LABORATORY ROUTES
class LabTests(StoreResource):
    def get(self):
        store = get_store()
        if request.args.get('name'):
            test = store.get_lab_test_by_name(request.args['name'])
            return make_response(jsonify([test.to_dict()] if test else []), 200)
        query = request.args.get('q')
        tests = store.search_lab_tests(query) if query else store.list_lab_tests()
        return make_response(jsonify([t.to_dict() for t in tests]), 200)

    def post(self):
        data = request.get_json() or {}
        require_fields(data, 'name', 'price')
        test = get_store().add_lab_test(data)
        return {'message': 'Lab test created', 'lab_test': test.to_dict()}, 201


class LabTestByID(StoreResource):
    def get(self, id):
        test = get_store().get_lab_test(id)
        if not test:
            return {'message': 'Lab test not found'}, 404
        return make_response(jsonify(test.to_dict()), 200)

    def patch(self, id):
        test = get_store().update_lab_test(id, request.get_json() or {})
        return make_response(jsonify(test.to_dict()), 200)

    def delete(self, id):
        get_store().delete_lab_test(id)
        return {'message': f'Lab test {id} deactivated'}, 200


class LabRequests(StoreResource):
    def get(self):
        requests = get_store().get_lab_requests(
            status=request.args.get('status'), patient_id=request.args.get('patient_id'),
        )
        return make_response(jsonify([r.to_dict() for r in requests]), 200)

    def post(self):
        data = request.get_json() or {}
        require_fields(data, 'patient_id', 'test_ids')
        lab_request = get_store().add_lab_request(
            data['patient_id'], data['test_ids'], doctor_name=data.get('doctor_name'), notes=data.get('notes'),
        )
        return {'message': 'Lab request created', 'lab_request': lab_request.to_dict()}, 201


class LabRequestByID(StoreResource):
    def get(self, id):
        lab_request = get_store().get_lab_request(id)
        if not lab_request:
            return {'message': 'Lab request not found'}, 404
        return make_response(jsonify(lab_request.to_dict()), 200)

    def patch(self, id):
        lab_request = get_store().update_lab_request(id, request.get_json() or {})
        return make_response(jsonify(lab_request.to_dict()), 200)


class LabRequestToCashPoint(StoreResource):
    def post(self, id):
        bill = get_store().send_lab_request_to_cash_point(id)
        return {'message': 'Lab request billed', 'bill_id': bill.id if bill else None}, 200


class LabRequestStart(StoreResource):
    def post(self, id):
        lab_request = get_store().start_lab_test(id)
        return make_response(jsonify(lab_request.to_dict()), 200)


class LabRequestResults(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'results')
        lab_request = get_store().submit_lab_results(
            id, data['results'], completed_by=data.get('completed_by'), notes=data.get('notes'),
        )
        return make_response(jsonify(lab_request.to_dict()), 200)


api.add_resource(LabTests, '/lab_tests')
api.add_resource(LabTestByID, '/lab_tests/<id>')
api.add_resource(LabRequests, '/lab_requests')
api.add_resource(LabRequestByID, '/lab_requests/<id>')
api.add_resource(LabRequestToCashPoint, '/lab_requests/<id>/send_to_cash_point')
api.add_resource(LabRequestStart, '/lab_requests/<id>/start')
api.add_resource(LabRequestResults, '/lab_requests/<id>/results')


# PHARMACY ROUTES
class Prescriptions(StoreResource):
    def get(self):
        prescriptions = get_store().get_prescriptions(
            status=request.args.get('status'), patient_id=request.args.get('patient_id'),
        )
        return make_response(jsonify([p.to_dict() for p in prescriptions]), 200)

    def post(self):
        data = request.get_json() or {}
        require_fields(data, 'patient_id')
        prescription = get_store().create_prescription(
            data['patient_id'], data.get('items'), doctor_name=data.get('doctor_name'), notes=data.get('notes'),
        )
        return {'message': 'Prescription created', 'prescription': prescription.to_dict()}, 201


class PrescriptionByID(StoreResource):
    def get(self, id):
        prescription = get_store().get_prescription(id)
        if not prescription:
            return {'message': 'Prescription not found'}, 404
        return make_response(jsonify(prescription.to_dict()), 200)

    def patch(self, id):
        data = request.get_json() or {}
        require_fields(data, 'items')
        prescription = get_store().update_prescription_items(id, data['items'])
        return make_response(jsonify(prescription.to_dict()), 200)


class PrescriptionToCashPoint(StoreResource):
    def post(self, id):
        data = request.get_json(silent=True) or {}
        bill = get_store().send_prescription_to_cash_point(
            id, consumables=data.get('consumables'), staff_name=data.get('staff_name'),
        )
        return {'message': 'Prescription billed', 'bill_id': bill.id if bill else None}, 200


class PrescriptionDispense(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'staff_name')
        prescription = get_store().dispense_prescription(id, data['staff_name'])
        return make_response(jsonify(prescription.to_dict()), 200)


api.add_resource(Prescriptions, '/prescriptions')
api.add_resource(PrescriptionByID, '/prescriptions/<id>')
api.add_resource(PrescriptionToCashPoint, '/prescriptions/<id>/send_to_cash_point')
api.add_resource(PrescriptionDispense, '/prescriptions/<id>/dispense')


# INJECTION ROOM ROUTES
class InjectionRequests(StoreResource):
    def get(self):
        requests = get_store().get_injection_requests(
            status=request.args.get('status'), patient_id=request.args.get('patient_id'),
        )
        return make_response(jsonify([r.to_dict() for r in requests]), 200)


class InjectionRequestByID(StoreResource):
    def get(self, id):
        injection_request = get_store().get_injection_request(id)
        if not injection_request:
            return {'message': 'Injection request not found'}, 404
        return make_response(jsonify(injection_request.to_dict()), 200)


class InjectionRequestSend(StoreResource):
    def post(self, id):
        injection_request = get_store().send_injections_to_injection_room(id)
        return make_response(jsonify(injection_request.to_dict()), 200)


class InjectionRequestStart(StoreResource):
    def post(self, id):
        injection_request = get_store().start_administration(id)
        return make_response(jsonify(injection_request.to_dict()), 200)


class InjectionRequestLater(StoreResource):
    def post(self, id):
        data = request.get_json(silent=True) or {}
        injection_request = get_store().move_to_later(id, data.get('staff_name'))
        return make_response(jsonify(injection_request.to_dict()), 200)


class InjectionRequestComplete(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'staff_name')
        injection_request = get_store().complete_administration(id, data['staff_name'], data.get('notes'))
        return make_response(jsonify(injection_request.to_dict()), 200)


class InjectionToggle(StoreResource):
    def post(self, id, injection_id):
        data = request.get_json(silent=True) or {}
        injection = get_store().toggle_administered(id, injection_id, data.get('staff_name'))
        return make_response(jsonify(injection.to_dict()), 200)


class InjectionSave(StoreResource):
    def post(self, id, injection_id):
        data = request.get_json(silent=True) or {}
        injection = get_store().save_administration(id, injection_id, data.get('notes'))
        return make_response(jsonify(injection.to_dict()), 200)


api.add_resource(InjectionRequests, '/injection_requests')
api.add_resource(InjectionRequestByID, '/injection_requests/<id>')
api.add_resource(InjectionRequestSend, '/injection_requests/<id>/send')
api.add_resource(InjectionRequestStart, '/injection_requests/<id>/start')
api.add_resource(InjectionRequestLater, '/injection_requests/<id>/later')
api.add_resource(InjectionRequestComplete, '/injection_requests/<id>/complete')
api.add_resource(InjectionToggle, '/injection_requests/<id>/injections/<int:injection_id>/toggle')
api.add_resource(InjectionSave, '/injection_requests/<id>/injections/<int:injection_id>/save')


# HMO CLAIM ROUTES
class HMOClaims(StoreResource):
    def get(self):
        store = get_store()
        claims = store.get_hmo_claims(
            status=request.args.get('status'),
            patient_id=request.args.get('patient_id'),
            source_department=request.args.get('source_department'),
        )
        return make_response(jsonify([store.serialize_claim(c) for c in claims]), 200)


class HMOClaimByID(StoreResource):
    def get(self, id):
        store = get_store()
        claim = store.get_claim(id)
        if not claim:
            return {'message': 'Claim not found'}, 404
        return make_response(jsonify(store.serialize_claim(claim)), 200)


class HMOClaimProcess(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'action')
        store = get_store()
        claim = store.process_hmo_claim(
            id,
            data['action'],
            approval_code=data.get('approval_code'),
            rejection_reason=data.get('rejection_reason'),
            processed_by=data.get('processed_by') or 'HMO Desk',
            approved_item_ids=data.get('approved_item_ids'),
        )
        return make_response(jsonify(store.serialize_claim(claim)), 200)


class HMOClaimRefresh(StoreResource):
    def post(self):
        store = get_store()
        created = store.refresh_hmo_claims()
        return {'created': [store.serialize_claim(c) for c in created]}, 200


api.add_resource(HMOClaims, '/hmo_claims')
api.add_resource(HMOClaimRefresh, '/hmo_claims/refresh')
api.add_resource(HMOClaimByID, '/hmo_claims/<id>')
api.add_resource(HMOClaimProcess, '/hmo_claims/<id>/process')


# VACCINATION ROUTES
class PatientVaccinations(StoreResource):
    def get(self, id):
        store = get_store()
        history = store.get_patient_vaccination_history(id)
        return {
            'history': [s.to_dict() for s in history],
            'recommended': store.get_recommended_vaccines_for_patient(id),
        }, 200

    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'vaccine_id', 'dose_type')
        result = get_store().schedule_vaccination_appointment(
            id, data['vaccine_id'], data['dose_type'], bool(data.get('override_eligibility')),
        )
        return result, 201


class VaccinationEligibility(StoreResource):
    def get(self):
        for field in ('patient_id', 'vaccine_id', 'dose_type'):
            if not request.args.get(field):
                return {'error': f'{field} is required'}, 400
        return get_store().check_patient_vaccine_eligibility(
            request.args['patient_id'], request.args['vaccine_id'], request.args['dose_type'],
        ), 200


class VaccinationAppointments(StoreResource):
    def get(self):
        appointments = get_store().get_vaccination_appointments(request.args.get('status'))
        return make_response(jsonify([a.to_dict() for a in appointments]), 200)


class VaccinationAtVitals(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'action')
        return get_store().process_vaccination_at_vitals(id, data['action'], data.get('notes')), 200


class VaccinationComplete(StoreResource):
    def post(self, id):
        data = request.get_json() or {}
        require_fields(data, 'staff_name')
        return get_store().complete_vaccination_administration(id, data['staff_name'], data.get('notes')), 200


api.add_resource(PatientVaccinations, '/patients/<id>/vaccinations')
api.add_resource(VaccinationEligibility, '/vaccinations/eligibility')
api.add_resource(VaccinationAppointments, '/vaccinations/appointments')
api.add_resource(VaccinationAtVitals, '/vaccinations/appointments/<id>/vitals')
api.add_resource(VaccinationComplete, '/vaccinations/appointments/<id>/complete')


# CATALOG AND SETTINGS ROUTES
class StaffList(StoreResource):
    def get(self):
        staff = get_store().list_staff(role=request.args.get('role'),
                                       active_only=request.args.get('active') == 'true')
        return make_response(jsonify([s.to_dict() for s in staff]), 200)

    def post(self):
        data = parse_dates(request.get_json())
        require_fields(data, 'name', 'role')
        staff = get_store().add_staff(data)
        return {'message': 'Staff created', 'staff': staff.to_dict()}, 201


class StaffByID(StoreResource):
    def get(self, id):
        staff = get_store().get_staff(id)
        if not staff:
            return {'message': 'Staff not found'}, 404
        return make_response(jsonify(staff.to_dict()), 200)

    def patch(self, id):
        staff = get_store().update_staff(id, parse_dates(request.get_json()))
        return make_response(jsonify(staff.to_dict()), 200)

    def delete(self, id):
        get_store().delete_staff(id)
        return {'message': f'Staff {id} deleted successfully'}, 200


class HMOProviders(StoreResource):
    def get(self):
        providers = get_store().list_hmo_providers(active_only=request.args.get('active') == 'true')
        return make_response(jsonify([p.to_dict() for p in providers]), 200)

    def post(self):
        data = request.get_json() or {}
        require_fields(data, 'name')
        provider = get_store().add_hmo_provider(data)
        return {'message': 'HMO provider created', 'hmo_provider': provider.to_dict()}, 201


class HMOProviderByID(StoreResource):
    def get(self, id):
        provider = get_store().get_hmo_provider(id)
        if not provider:
            return {'message': 'HMO provider not found'}, 404
        return make_response(jsonify(provider.to_dict()), 200)

    def patch(self, id):
        provider = get_store().update_hmo_provider(id, request.get_json() or {})
        return make_response(jsonify(provider.to_dict()), 200)

    def delete(self, id):
        get_store().delete_hmo_provider(id)
        return {'message': f'HMO provider {id} deleted successfully'}, 200


class Departments(StoreResource):
    def get(self):
        departments = get_store().list_departments(active_only=request.args.get('active') == 'true')
        return make_response(jsonify([d.to_dict() for d in departments]), 200)

    def post(self):
        data = request.get_json() or {}
        require_fields(data, 'name')
        department = get_store().add_department(data)
        return {'message': 'Department created', 'department': department.to_dict()}, 201


class DepartmentByID(StoreResource):
    def get(self, id):
        department = get_store().get_department(id)
        if not department:
            return {'message': 'Department not found'}, 404
        return make_response(jsonify(department.to_dict()), 200)

    def patch(self, id):
        department = get_store().update_department(id, request.get_json() or {})
        return make_response(jsonify(department.to_dict()), 200)

    def delete(self, id):
        get_store().delete_department(id)
        return {'message': f'Department {id} deleted successfully'}, 200


class Settings(StoreResource):
    def get(self):
        return make_response(jsonify(get_store().settings.to_dict()), 200)

    def patch(self):
        settings = get_store().update_hospital_settings(request.get_json() or {})
        return make_response(jsonify(settings.to_dict()), 200)


class Medicines(StoreResource):
    def get(self):
        store = get_store()
        query = request.args.get('q')
        medicines = store.search_medicines(query) if query else store.list_medicines()
        return make_response(jsonify([m.to_dict() for m in medicines]), 200)


class Consumables(StoreResource):
    def get(self):
        store = get_store()
        if request.args.get('low_stock') == 'true':
            consumables = store.get_low_stock_consumables()
        elif request.args.get('form'):
            consumables = store.get_recommended_consumables(request.args['form'])
        else:
            consumables = store.list_consumables()
        return make_response(jsonify([c.to_dict() for c in consumables]), 200)


class Vaccines(StoreResource):
    def get(self):
        store = get_store()
        age = request.args.get('age', type=int)
        if age is not None:
            vaccines = store.get_age_appropriate_vaccines(age)
        elif request.args.get('active') == 'true':
            vaccines = store.get_active_vaccines()
        else:
            vaccines = store.list_vaccines()
        return make_response(jsonify([v.to_dict() for v in vaccines]), 200)


class ConsumableByID(StoreResource):
    def delete(self, id):
        get_store().delete_consumable(id)
        return {'message': f'Consumable {id} deleted successfully'}, 200


class CatalogStock(StoreResource):
    """POST ``{'action': 'increase' | 'decrease', 'quantity': n}``."""

    adjusters = {
        'medicines': ('get_medicine', 'increase_medicine_stock', 'decrease_medicine_stock'),
        'consumables': ('get_consumable', 'increase_consumable_stock', 'decrease_consumable_stock'),
        'vaccines': ('get_vaccine', 'increase_vaccine_stock', 'decrease_vaccine_stock'),
    }

    def post(self, catalog, id):
        data = request.get_json() or {}
        require_fields(data, 'quantity')
        store = get_store()
        getter, increase, decrease = self.adjusters[catalog]

        if data.get('action') == 'decrease':
            if not getattr(store, decrease)(id, int(data['quantity'])):
                return {'error': 'Insufficient stock'}, 400
        else:
            getattr(store, increase)(id, int(data['quantity']))
        return {'id': id, 'stock': getattr(store, getter)(id).stock}, 200


class Doctors(StoreResource):
    def get(self):
        return make_response(jsonify([s.to_dict() for s in get_store().get_doctors()]), 200)


api.add_resource(StaffList, '/staff')
api.add_resource(Doctors, '/doctors')
api.add_resource(StaffByID, '/staff/<id>')
api.add_resource(HMOProviders, '/hmo_providers')
api.add_resource(HMOProviderByID, '/hmo_providers/<id>')
api.add_resource(Departments, '/departments')
api.add_resource(DepartmentByID, '/departments/<id>')
api.add_resource(Settings, '/settings')
api.add_resource(Medicines, '/medicines')
api.add_resource(Consumables, '/consumables')
api.add_resource(ConsumableByID, '/consumables/<id>')
api.add_resource(CatalogStock, '/<any(medicines, consumables, vaccines):catalog>/<id>/stock')
api.add_resource(Vaccines, '/vaccines')


if __name__ == '__main__':
    with app.app_context():
        app.run(port=5050, debug=True)
