import logging
from datetime import timedelta

from ids import next_numeric_id
from models import Appointment, Bill, Patient, Vaccine, VaccinationSession
from workflow import route_to

logger = logging.getLogger(__name__)


def _completed(vaccine, history):
    return [s for s in history if s.vaccine_id == vaccine.id and s.status == 'completed']


def get_recommended_dose_type(vaccine, history):
    """Next dose a patient should get, or None when nothing more is due."""
    given = _completed(vaccine, history)
    if vaccine.total_required_doses == 1:
        return 'one_off' if not given else None
    if not given:
        return 'initial'

    has_initial = any(s.dose_type == 'initial' for s in given)
    has_review = any(s.dose_type == 'review' for s in given)
    if has_initial and not has_review:
        return 'review'
    if has_initial and has_review and len(given) < vaccine.total_required_doses:
        return 'subsequent'
    return None


def is_vaccination_series_complete(vaccine, history):
    return len(_completed(vaccine, history)) >= vaccine.total_required_doses


def _refuse(reason):
    return {'eligible': False, 'reason': reason, 'requires_override': True}


def check_vaccination_eligibility(vaccine, dose_type, history, age=None, today=None):
    if vaccine is None:
        return {'eligible': False, 'reason': "Vaccine not found", 'requires_override': False}

    if age is not None:
        if vaccine.min_age is not None and age < vaccine.min_age:
            return _refuse(f"Patient is too young for this vaccine (minimum age: {vaccine.min_age})")
        if vaccine.max_age is not None and age > vaccine.max_age:
            return _refuse(f"Patient is too old for this vaccine (maximum age: {vaccine.max_age})")

    given = _completed(vaccine, history)
    if len(given) >= vaccine.total_required_doses:
        return _refuse(
            f"Patient has already completed all {vaccine.total_required_doses} required doses for this vaccine"
        )

    if dose_type == 'one_off':
        if given:
            return _refuse("Patient has already received this one-off vaccine")
        return {'eligible': True, 'reason': None, 'requires_override': False}

    has_initial = any(s.dose_type == 'initial' for s in given)
    has_review = any(s.dose_type == 'review' for s in given)

    if dose_type == 'initial':
        if has_initial:
            return _refuse("Patient has already received the initial dose")

    elif dose_type == 'review':
        if not has_initial:
            return _refuse("Patient must receive the initial dose before review dose")
        if vaccine.interval_days and today is not None:
            initial = next(s for s in given if s.dose_type == 'initial')
            days = (today - initial.date).days
            if days < vaccine.interval_days:
                return _refuse(
                    f"Review dose should be given after {vaccine.interval_days} days. "
                    f"Only {days} days have passed."
                )

    elif dose_type == 'subsequent':
        if not has_initial or not has_review:
            return _refuse("Patient must receive both initial and review doses before subsequent doses")
        if vaccine.total_required_doses <= 2:
            return _refuse(f"This vaccine only requires {vaccine.total_required_doses} doses")
        if vaccine.interval_days and today is not None:
            last = max(given, key=lambda s: s.date)
            days = (today - last.date).days
            if days < vaccine.interval_days:
                return _refuse(
                    f"Subsequent dose should be given after {vaccine.interval_days} days. "
                    f"Only {days} days have passed."
                )

    return {'eligible': True, 'reason': None, 'requires_override': False}


class VaccinationClinic:
    """Vaccination appointments from scheduling through vitals to the injection room."""

    def get_patient_vaccination_history(self, patient_id):
        patient = self.require(Patient, patient_id, 'Patient')
        return [session for visit in patient.visits for session in visit.vaccination_sessions]

    def check_patient_vaccine_eligibility(self, patient_id, vaccine_id, dose_type):
        patient = self.require(Patient, patient_id, 'Patient')
        return check_vaccination_eligibility(
            self.get_vaccine(vaccine_id), dose_type,
            self.get_patient_vaccination_history(patient.id), patient.age, self.today(),
        )

    def get_recommended_vaccines_for_patient(self, patient_id):
        patient = self.require(Patient, patient_id, 'Patient')
        history = self.get_patient_vaccination_history(patient.id)
        vaccines = self.list_vaccines()
        if patient.age is not None:
            vaccines = self.get_age_appropriate_vaccines(patient.age)

        recommendations = []
        for vaccine in vaccines:
            if vaccine.stock <= 0 or is_vaccination_series_complete(vaccine, history):
                continue
            dose_type = get_recommended_dose_type(vaccine, history)
            if not dose_type:
                continue
            next_due = None
            given = _completed(vaccine, history)
            if dose_type != 'initial' and vaccine.interval_days and given:
                last = max(given, key=lambda s: s.date)
                next_due = (last.date + timedelta(days=vaccine.interval_days)).isoformat()
            recommendations.append({
                'vaccine_id': vaccine.id,
                'name': vaccine.name,
                'dose_type': dose_type,
                'next_due_date': next_due,
            })
        return recommendations

    def schedule_vaccination_appointment(self, patient_id, vaccine_id, dose_type, override_eligibility=False):
        patient = self.require(Patient, patient_id, 'Patient')
        vaccine = self.require(Vaccine, vaccine_id, 'Vaccine')

        if not override_eligibility:
            eligibility = self.check_patient_vaccine_eligibility(patient.id, vaccine.id, dose_type)
            if not eligibility['eligible']:
                raise ValueError(eligibility['reason'] or "Patient is not eligible for this vaccination dose")
        if vaccine.stock <= 0:
            raise ValueError("Vaccine is out of stock")

        now = self.now()
        with self.atomic():
            appointment = Appointment(
                id=next_numeric_id(self.session, Appointment.id, 'A-'),
                patient_id=patient.id,
                patient_name=patient.name,
                date=now.date(),
                time=f"{now:%H:%M}",
                type='Vaccination',
                status='scheduled',
                consultation_type='vaccination',
                notes=f"{vaccine.name} vaccination ({dose_type} dose)",
                vaccine_id=vaccine.id,
                vaccine_name=vaccine.name,
                dose_type=dose_type,
                vaccination_price=vaccine.price,
                is_government_provided=vaccine.is_government_provided,
            )
            self.session.add(appointment)
        logger.info("Vaccination appointment %s: %s %s for %s", appointment.id, vaccine.name, dose_type, patient.id)
        message = "Vaccination appointment scheduled successfully"
        if override_eligibility:
            message += " (with eligibility override)"
        return {'message': message, 'appointment_id': appointment.id}

    def _vaccination_appointment(self, appointment_id):
        appointment = self.require(Appointment, appointment_id, 'Appointment')
        if appointment.type != 'Vaccination' or not appointment.vaccine_id:
            raise ValueError("This is not a vaccination appointment")
        return appointment

    def process_vaccination_at_vitals(self, appointment_id, action, notes=None):
        appointment = self._vaccination_appointment(appointment_id)
        if action not in ('approve', 'deny'):
            raise ValueError("Action must be approve or deny")
        patient = self.require(Patient, appointment.patient_id, 'Patient')
        vaccine = self.require(Vaccine, appointment.vaccine_id, 'Vaccine')
        approved = action == 'approve'
        today = self.today()

        with self.atomic():
            visit = patient.current_visit
            if visit is None or visit.date != today:
                visit = self._append_visit(patient, {
                    'type': 'Vaccination',
                    'doctor': 'Nurse',
                    'diagnosis': 'With Vitals: Vaccination',
                })
            patient.last_visit = today

            session = VaccinationSession(
                id=next_numeric_id(self.session, VaccinationSession.id, 'VS-'),
                patient_id=patient.id,
                vaccine_id=vaccine.id,
                vaccine_name=vaccine.name,
                dose_type=appointment.dose_type,
                date=today,
                status='approved' if approved else 'denied',
                notes=notes or '',
            )
            visit.vaccination_sessions.append(session)
            appointment.vaccination_session_id = session.id
            self.session.flush()

            if not approved:
                reason = notes or "No reason provided"
                self.advance_visit(patient, route_to('vaccination_denied', note=f"Vaccination denied: {reason}"))
                appointment.status = 'cancelled'
                appointment.notes = f"{appointment.notes or ''}\nDenied at vitals: {reason}"
                message = f"Vaccination denied. Reason: {reason}"
            else:
                appointment.status = 'In Progress'
                appointment.notes = f"{appointment.notes or ''}\nApproved at vitals: {notes or 'No notes provided'}"
                if vaccine.is_government_provided:
                    self.advance_visit(patient, route_to(
                        'injection_room', clinical_note='Vaccination (Government Provided)'))
                    message = ("Vaccination approved and sent to injection room "
                               "(government provided - no payment required)")
                else:
                    bill = self.create_vaccination_bill(patient.id, vaccine.id, appointment.id)
                    session.bill_id = bill.id
                    if patient.is_hmo:
                        self.advance_visit(patient, route_to('hmo', clinical_note='Vaccination'))
                        message = "Vaccination approved and sent to HMO desk for approval"
                    else:
                        self.advance_visit(patient, route_to('cash_point', clinical_note='Vaccination'))
                        message = "Vaccination approved and sent to cash point for payment"
        logger.info("Vaccination %s at vitals: %s", appointment.id, action)
        return {'message': message, 'session_id': session.id}

    def create_vaccination_bill(self, patient_id, vaccine_id, appointment_id):
        patient = self.require(Patient, patient_id, 'Patient')
        vaccine = self.require(Vaccine, vaccine_id, 'Vaccine')
        appointment = self._vaccination_appointment(appointment_id)
        if vaccine.is_government_provided:
            raise ValueError("Government-provided vaccines are not billed")

        with self.atomic():
            bill = self.add_bill({
                'patient_id': patient.id,
                'type': 'vaccination',
                'status': 'hmo_pending' if patient.is_hmo else 'pending',
                'source': 'vaccination',
                'visit_id': patient.current_visit.id if patient.current_visit else None,
                'items': [{
                    'description': f"{vaccine.name} Vaccination ({appointment.dose_type} dose)",
                    'quantity': 1,
                    'unit_price': vaccine.price,
                }],
            })
            appointment.bill_id = bill.id
            appointment.notes = f"{appointment.notes or ''}\nBill created: {bill.id}"
            if patient.is_hmo:
                self.add_hmo_claim(patient, 'injection_room', bill.id, claim_id=f"HMO-VACC-{bill.id}")
        return bill

    def complete_vaccination_administration(self, appointment_id, staff_name, notes=None):
        appointment = self._vaccination_appointment(appointment_id)
        patient = self.require(Patient, appointment.patient_id, 'Patient')
        vaccine = self.require(Vaccine, appointment.vaccine_id, 'Vaccine')

        session = self.session.get(VaccinationSession, appointment.vaccination_session_id) \
            if appointment.vaccination_session_id else None
        if session is None or session.status != 'approved':
            raise ValueError("No approved vaccination session found")
        if session.visit is not patient.current_visit:
            raise ValueError("Vaccination session does not belong to the current visit")
        if not vaccine.is_government_provided:
            bill = self.session.get(Bill, appointment.bill_id) if appointment.bill_id else None
            if bill is None or bill.status != 'paid':
                raise ValueError("Vaccination has not been paid for")
        if vaccine.stock <= 0:
            raise ValueError("Failed to update vaccine inventory. Vaccine may be out of stock.")

        now = self.now()
        with self.atomic():
            session.status = 'completed'
            session.administered_by = staff_name
            session.administered_time = now
            session.notes = f"{session.notes or ''}\n{notes or 'Vaccination administered'}".strip()

            self.advance_visit(patient, route_to('completed'))
            appointment.status = 'completed'
            appointment.notes = f"{appointment.notes or ''}\nVaccination completed by {staff_name} on {now:%Y-%m-%d}"
            self._decrease_stock(vaccine, 1)

        series_complete = is_vaccination_series_complete(vaccine, self.get_patient_vaccination_history(patient.id))
        message = "Vaccination administered successfully."
        if series_complete:
            message = (f"Vaccination administered successfully. Patient has completed all required doses "
                       f"for {vaccine.name}.")
        logger.info("Vaccination %s administered by %s", appointment.id, staff_name)
        return {'message': message, 'series_complete': series_complete}

    def get_vaccination_appointments(self, status=None):
        query = self.session.query(Appointment).filter_by(type='Vaccination')
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Appointment.date, Appointment.id).all()
