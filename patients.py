import logging

from sqlalchemy import or_

from ids import next_numeric_id
from models import Appointment, Bill, Patient, Staff, Visit
from money import format_currency
from workflow import annotate, release, route_to, stamp

logger = logging.getLogger(__name__)

consultation_destinations = ('pharmacy', 'lab', 'injection', 'admission', 'discharge')

# Visits in these states have not reached the doctor yet.
pre_consultation_owners = ('pending', 'cash_point', 'vitals')


def bmi_for(weight, height):
    try:
        weight = float(weight)
        height_m = float(height) / 100
    except (TypeError, ValueError):
        return None, None
    if weight <= 0 or height_m <= 0:
        return None, None
    bmi = round(weight / (height_m ** 2), 1)
    if bmi < 18.5:
        return bmi, 'Underweight'
    if bmi < 25:
        return bmi, 'Normal weight'
    if bmi < 30:
        return bmi, 'Overweight'
    return bmi, 'Obese'


class PatientRegistry:
    """Patients, their visits and appointments."""

    patient_fields = (
        'first_name', 'last_name', 'dob', 'age', 'gender', 'phone', 'email', 'address', 'patient_type',
        'hmo_provider', 'policy_number', 'medical_history', 'allergies', 'is_staff', 'staff_id', 'last_visit',
    )
    appointment_fields = (
        'date', 'time', 'type', 'status', 'doctor', 'doctor_id', 'consultation_type', 'notes', 'bill_id',
    )

    # --- patients ---

    def add_patient(self, data, visits=None):
        data = dict(data)
        unknown = set(data) - set(self.patient_fields) - {'balance'}
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
        if data.get('patient_type') == 'hmo' and not data.get('hmo_provider'):
            raise ValueError("HMO patients need an HMO provider")

        with self.atomic():
            patient = Patient(id=next_numeric_id(self.session, Patient.id, 'P-'), **data)
            patient.last_visit = patient.last_visit or self.today()
            self.session.add(patient)
            for visit_data in visits or []:
                self._append_visit(patient, visit_data)
        logger.info("Registered patient %s (%s)", patient.id, patient.patient_type)
        return patient

    def update_patient(self, patient_id, data):
        patient = self.require(Patient, patient_id, 'Patient')
        unknown = set(data) - set(self.patient_fields)
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
        with self.atomic():
            for key, value in data.items():
                setattr(patient, key, value)
            if patient.patient_type == 'hmo' and not patient.hmo_provider:
                raise ValueError("HMO patients need an HMO provider")
        return patient

    def delete_patient(self, patient_id):
        """Hard delete; appointments, bills, claims and requests go with the patient."""
        patient = self.require(Patient, patient_id, 'Patient')
        with self.atomic():
            self.session.delete(patient)
        logger.info("Deleted patient %s", patient_id)
        return True

    def get_patient(self, patient_id):
        return self.session.get(Patient, patient_id)

    def list_patients(self, patient_type=None):
        query = self.session.query(Patient)
        if patient_type:
            query = query.filter_by(patient_type=patient_type)
        return query.order_by(Patient.id).all()

    def get_hmo_patients(self):
        return self.list_patients(patient_type='hmo')

    def search_patients(self, query):
        pattern = f"%{query}%"
        return (
            self.session.query(Patient)
            .filter(or_(
                Patient.id.ilike(pattern),
                Patient.first_name.ilike(pattern),
                Patient.last_name.ilike(pattern),
                Patient.phone.ilike(pattern),
            ))
            .order_by(Patient.id)
            .all()
        )

    def update_patient_balance(self, patient_id, amount):
        patient = self.require(Patient, patient_id, 'Patient')
        with self.atomic():
            patient.balance = (patient.balance or 0) + amount
        logger.info("Balance of %s changed by %s to %s", patient_id, amount, patient.balance)
        return patient.balance

    def create_patient_from_staff(self, staff_id):
        staff = self.require(Staff, staff_id, 'Staff')

        existing = self.session.query(Patient).filter_by(is_staff=True, staff_id=staff_id).first()
        if existing:
            return existing

        age = 30
        if staff.join_date:
            age = self.today().year - staff.join_date.year + 25

        first_name, _, last_name = staff.name.partition(' ')
        return self.add_patient({
            'first_name': first_name or 'Unknown',
            'last_name': last_name or 'Unknown',
            'age': age,
            'gender': 'Unknown',
            'phone': staff.phone,
            'email': staff.email,
            'patient_type': 'cash',
            'is_staff': True,
            'staff_id': staff.id,
        })

    # --- visits ---

    def _append_visit(self, patient, data):
        data = dict(data)
        visit = Visit(
            id=next_numeric_id(self.session, Visit.id, 'V-'),
            sequence=len(patient.visits),
            date=data.pop('date', None) or self.today(),
            type=data.pop('type', 'Consultation'),
        )
        if 'diagnosis' in data:
            # legacy "With X: Y" strings are only accepted here
            visit.diagnosis = data.pop('diagnosis')
        for key, value in data.items():
            if key in ('id', 'patient_id', 'sequence') or not hasattr(Visit, key):
                raise ValueError(f"Visit has no field {key}")
            setattr(visit, key, value)
        patient.visits.append(visit)
        self.session.flush()
        return visit

    def add_visit(self, patient_id, data=None):
        patient = self.require(Patient, patient_id, 'Patient')
        with self.atomic():
            visit = self._append_visit(patient, data or {})
            patient.last_visit = visit.date
        logger.info("Visit %s opened for %s", visit.id, patient_id)
        return visit

    def get_current_visit(self, patient_id):
        patient = self.require(Patient, patient_id, 'Patient')
        return patient.current_visit

    def get_visit(self, visit_id):
        return self.session.get(Visit, visit_id)

    def import_visit_diagnosis(self, visit_id, diagnosis, note=None):
        """Route the current visit from a legacy diagnosis string."""
        visit = self.require(Visit, visit_id, 'Visit')
        if visit.patient.current_visit is not visit:
            raise ValueError("Only the current visit can be re-routed")
        probe = Visit()
        probe.diagnosis = diagnosis
        return self.advance_visit(
            visit.patient, route_to(probe.workflow_owner, note=note, clinical_note=probe.clinical_note)
        )

    def record_vitals(self, patient_id, vitals, recorded_by=None, doctor=None):
        """Attach vitals to the open visit (or a new one) and queue the patient for the doctor."""
        patient = self.require(Patient, patient_id, 'Patient')
        required_fields = ('blood_pressure', 'temperature', 'heart_rate')
        for field in required_fields:
            if not vitals.get(field):
                raise ValueError(f"{field} is required")

        vitals = dict(vitals)
        for field in ('respiratory_rate', 'oxygen_saturation', 'weight', 'height'):
            vitals.setdefault(field, 'Not recorded')
        bmi, interpretation = bmi_for(vitals.get('weight'), vitals.get('height'))
        if bmi:
            vitals['bmi'] = bmi
            vitals['bmi_interpretation'] = interpretation

        if doctor is None:
            appointment = (
                self.session.query(Appointment)
                .filter_by(patient_id=patient.id)
                .filter(Appointment.status.in_(('scheduled', 'In Progress')))
                .order_by(Appointment.date.desc())
                .first()
            )
            doctor = appointment.doctor if appointment and appointment.doctor else 'Pending'

        with self.atomic():
            visit = patient.current_visit
            if visit is None or visit.workflow_owner not in pre_consultation_owners:
                self._append_visit(patient, {'type': 'Consultation', 'doctor': doctor})
            patient.last_visit = self.today()
            note = "Vitals recorded, awaiting doctor consultation"
            if recorded_by:
                note = stamp(recorded_by, self.now(), note)
            state = self.advance_visit(patient, route_to('pending', note=note, vitals=vitals, doctor=doctor))
        return state

    def complete_consultation(self, patient_id, diagnosis, destination, doctor, prescriptions=None,
                              lab_tests=None, notes=None, physical_examination=None):
        patient = self.require(Patient, patient_id, 'Patient')
        if not diagnosis:
            raise ValueError("diagnosis is required")
        if destination not in consultation_destinations:
            raise ValueError(f"Destination must be one of: {consultation_destinations}")
        if patient.current_visit is None:
            raise ValueError("No visit record found")

        fields = {'doctor': doctor}
        if physical_examination:
            fields['physical_examination'] = physical_examination
        if prescriptions:
            fields['prescriptions'] = list(prescriptions)
        if lab_tests:
            fields['lab_tests'] = [
                {'name': name, 'result': 'Pending', 'date': self.today().isoformat()} for name in lab_tests
            ]
        note = stamp(doctor, self.now(), notes) if notes else None

        owner = {
            'pharmacy': 'pharmacy',
            'lab': 'laboratory',
            'injection': 'injection_room',
            'admission': 'admission',
        }.get(destination)
        if destination == 'discharge' and patient.is_hmo:
            owner = 'hmo'

        with self.atomic():
            if owner is None:
                state = self.advance_visit(patient, release(note=note, clinical_note=diagnosis, **fields))
            else:
                state = self.advance_visit(
                    patient, route_to(owner, note=note, clinical_note=diagnosis, **fields)
                )
            if destination == 'discharge' and patient.is_hmo:
                visit = patient.current_visit
                bill = self.add_bill({
                    'patient_id': patient.id,
                    'type': 'consultation',
                    'status': 'hmo_pending',
                    'source': 'doctor',
                    'visit_id': visit.id,
                    'items': [{
                        'description': f"Consultation with {doctor}",
                        'quantity': 1,
                        'unit_price': self.settings.general_medicine_fee,
                    }],
                })
                self.add_hmo_claim(patient, 'doctor', bill.id, claim_id=f"HMO-CONS-{patient.id}-{bill.id}")
        logger.info("Consultation for %s completed, destination %s", patient.id, destination)
        return state

    # --- appointments ---

    def add_appointment(self, data):
        data = dict(data)
        patient = self.require(Patient, data.pop('patient_id', None), 'Patient')
        unknown = set(data) - set(self.appointment_fields)
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
        if not data.get('date'):
            raise ValueError("date is required")
        with self.atomic():
            appointment = Appointment(
                id=next_numeric_id(self.session, Appointment.id, 'A-'),
                patient_id=patient.id,
                patient_name=patient.name,
                **data
            )
            if appointment.doctor_id and not appointment.doctor:
                doctor = self.get_staff(appointment.doctor_id)
                appointment.doctor = doctor.name if doctor else None
            self.session.add(appointment)
        return appointment

    def update_appointment(self, appointment_id, data):
        appointment = self.require(Appointment, appointment_id, 'Appointment')
        unknown = set(data) - set(self.appointment_fields)
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
        with self.atomic():
            for key, value in data.items():
                setattr(appointment, key, value)
        return appointment

    def get_appointment(self, appointment_id):
        return self.session.get(Appointment, appointment_id)

    def get_appointment_by_bill(self, bill_id):
        return self.session.query(Appointment).filter_by(bill_id=bill_id).first()

    def get_appointments(self, patient_id=None, status=None, on_date=None):
        query = self.session.query(Appointment)
        if patient_id:
            query = query.filter_by(patient_id=patient_id)
        if status:
            query = query.filter_by(status=status)
        if on_date:
            query = query.filter_by(date=on_date)
        return query.order_by(Appointment.date, Appointment.time).all()

    def cancel_consultation(self, appointment_id, staff_name=None):
        staff_name = staff_name or 'Staff'
        appointment = self.require(Appointment, appointment_id, 'Appointment')
        patient = self.require(Patient, appointment.patient_id, 'Patient')
        bill = self.session.get(Bill, appointment.bill_id) if appointment.bill_id else None

        with self.atomic():
            appointment.status = 'cancelled'
            message = "Consultation cancelled"

            if bill and bill.status != 'cancelled':
                if not patient.is_hmo and bill.status == 'paid':
                    refund = bill.amount_due
                    patient.balance = (patient.balance or 0) + refund
                    bill.notes = f"Cancelled by {staff_name}. {format_currency(refund)} refunded to patient balance."
                    message = f"Consultation cancelled. {format_currency(refund)} refunded to patient balance."
                bill.status = 'cancelled'

            if patient.current_visit is not None:
                self.advance_visit(patient, route_to(
                    'cancelled',
                    note=stamp(staff_name, self.now(), "Consultation cancelled"),
                ))
        logger.info("Appointment %s cancelled by %s", appointment_id, staff_name)
        return {'success': True, 'message': message}

    # --- doctor changes ---

    def can_change_doctor(self, bill_id):
        bill = self.session.get(Bill, bill_id)
        if not bill or bill.type != 'consultation':
            return False
        if bill.status == 'pending':
            return True

        if not self.get_appointment_by_bill(bill_id):
            return False

        visit = bill.patient.current_visit
        if visit is None:
            return True
        return visit.workflow_owner in pre_consultation_owners

    def log_doctor_change(self, patient_id, old_doctor_id, new_doctor_id, price_difference, bill_id=None,
                          notes=None):
        patient = self.require(Patient, patient_id, 'Patient')
        old_doctor = self.get_staff(old_doctor_id)
        new_doctor = self.get_staff(new_doctor_id)
        change = {
            'date': self.today().isoformat(),
            'from_doctor': old_doctor.name if old_doctor else old_doctor_id,
            'to_doctor': new_doctor.name if new_doctor else new_doctor_id,
            'from_department': old_doctor.department if old_doctor else None,
            'to_department': new_doctor.department if new_doctor else None,
            'price_difference': price_difference,
            'bill_id': bill_id,
            'notes': notes,
        }
        with self.atomic():
            if patient.current_visit is None:
                self._append_visit(patient, {
                    'type': 'Consultation',
                    'diagnosis': 'With Vitals: New consultation',
                    'doctor': change['to_doctor'],
                })
            changes = list(patient.current_visit.doctor_changes or []) + [change]
            self.advance_visit(patient, annotate(doctor_changes=changes))
        return change

    def change_consultation_doctor(self, bill_id, new_doctor_id, consultation_type, staff_name=None):
        bill = self.session.get(Bill, bill_id)
        if not bill or bill.type != 'consultation':
            return {'success': False, 'message': "Invalid bill or bill type"}
        if not self.can_change_doctor(bill_id):
            return {'success': False, 'message': "Cannot change doctor after patient has seen the doctor"}

        appointment = self.get_appointment_by_bill(bill_id)
        if not appointment:
            return {'success': False, 'message': "No appointment found for this bill"}
        if not appointment.doctor_id:
            return {'success': False, 'message': "No previous doctor found"}

        old_doctor = self.get_staff(appointment.doctor_id)
        new_doctor = self.get_staff(new_doctor_id)
        if not old_doctor or not new_doctor:
            return {'success': False, 'message': "Doctor information not found"}

        old_price = self.get_consultation_fee_by_doctor(old_doctor.id)
        new_price = self.get_consultation_fee_by_doctor(new_doctor.id)
        difference = new_price - old_price
        patient = bill.patient

        with self.atomic():
            appointment.doctor_id = new_doctor.id
            appointment.doctor = new_doctor.name
            if consultation_type:
                appointment.consultation_type = consultation_type

            if bill.status == 'pending':
                first = bill.items[0]
                first.description = f"{consultation_type or 'Consultation'} Fee"
                first.unit_price = new_price
                if patient.current_visit is not None:
                    self.advance_visit(patient, annotate(doctor=new_doctor.name))
                self.log_doctor_change(
                    patient.id, old_doctor.id, new_doctor.id, difference, bill.id,
                    f"Doctor changed from {old_doctor.name} to {new_doctor.name} before payment",
                )
                return {'success': True, 'message': "Doctor updated successfully", 'new_bill_id': None}

            if difference > 0:
                upgrade = self.add_bill({
                    'patient_id': patient.id,
                    'type': 'consultation',
                    'status': 'pending',
                    'items': [{
                        'description': f"Consultation Upgrade: {old_doctor.name} to {new_doctor.name}",
                        'quantity': 1,
                        'unit_price': difference,
                    }],
                })
                visit = patient.current_visit
                if visit is not None:
                    if visit.workflow_owner in ('cash_point', 'vitals'):
                        self.advance_visit(patient, annotate(doctor=new_doctor.name))
                    else:
                        self.advance_visit(patient, route_to(
                            'cash_point',
                            clinical_note=f"Upgrade consultation from {old_doctor.name} to {new_doctor.name}",
                            doctor=new_doctor.name,
                        ))
                self.log_doctor_change(
                    patient.id, old_doctor.id, new_doctor.id, difference, upgrade.id,
                    f"Doctor upgraded from {old_doctor.name} to {new_doctor.name} after payment. "
                    f"Patient sent back to billing.",
                )
                return {
                    'success': True,
                    'message': f"Doctor upgraded. New bill created for {format_currency(difference)}. "
                               f"Patient sent to billing.",
                    'new_bill_id': upgrade.id,
                }

            if difference < 0 and not patient.is_hmo:
                patient.balance = (patient.balance or 0) + abs(difference)
            if patient.current_visit is not None:
                self.advance_visit(patient, annotate(doctor=new_doctor.name))
            self.log_doctor_change(
                patient.id, old_doctor.id, new_doctor.id, difference, bill.id,
                f"Doctor changed from {old_doctor.name} to {new_doctor.name} after payment",
            )

        if difference < 0:
            message = f"Doctor changed. {format_currency(abs(difference))} credited to patient balance."
            if patient.is_hmo:
                message = "Doctor changed."
        else:
            message = "Doctor changed successfully"
        return {'success': True, 'message': message, 'new_bill_id': None}
