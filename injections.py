import logging

from models import Injection, InjectionRequest
from workflow import release, route_to

logger = logging.getLogger(__name__)


class InjectionRoom:
    """Administration of injections that were split off a prescription."""

    def get_injection_request(self, request_id):
        return self.session.get(InjectionRequest, request_id)

    def get_injection_requests(self, status=None, patient_id=None):
        query = self.session.query(InjectionRequest)
        if status:
            query = query.filter_by(status=status)
        if patient_id:
            query = query.filter_by(patient_id=patient_id)
        return query.order_by(InjectionRequest.date, InjectionRequest.id).all()

    def _injection(self, request, injection_id):
        injection = self.session.get(Injection, injection_id)
        if injection is None or injection.request_id != request.id:
            raise ValueError("Injection not found in this request")
        return injection

    def send_injections_to_injection_room(self, request_id):
        request = self.require(InjectionRequest, request_id, 'Injection request')
        if not request.paid_injections:
            raise ValueError("No paid injections to send to the injection room")
        patient = request.visit.patient
        with self.atomic():
            if request.status in ('pending', 'not_paid'):
                request.status = 'paid'
            if patient.current_visit is request.visit:
                self.advance_visit(patient, route_to('injection_room'))
        return request

    def start_administration(self, request_id):
        request = self.require(InjectionRequest, request_id, 'Injection request')
        if not request.paid_injections:
            raise ValueError("At least one injection must be paid for before starting administration")
        if request.status == 'completed':
            raise ValueError("Injection request is already completed")
        with self.atomic():
            request.status = 'in_progress'
        logger.info("Administration of %s started", request.id)
        return request

    def toggle_administered(self, request_id, injection_id, staff_name=None):
        request = self.require(InjectionRequest, request_id, 'Injection request')
        injection = self._injection(request, injection_id)
        if injection.saved:
            raise ValueError("Saved administrations cannot be changed")
        if injection.payment_status != 'paid' and not injection.administered:
            raise ValueError("This injection has not been paid for yet")

        with self.atomic():
            if injection.administered:
                injection.administered = False
                injection.administered_time = None
                injection.administered_by = None
                injection.saved = False
            else:
                injection.administered = True
                injection.administered_time = self.now()
                injection.administered_by = staff_name or 'Unknown Nurse'
        return injection

    def save_administration(self, request_id, injection_id, notes=None):
        request = self.require(InjectionRequest, request_id, 'Injection request')
        injection = self._injection(request, injection_id)
        if not injection.administered:
            raise ValueError("Mark the injection as administered before saving")
        with self.atomic():
            injection.saved = True
            if notes is not None:
                injection.notes = notes
        return injection

    def move_to_later(self, request_id, staff_name=None):
        request = self.require(InjectionRequest, request_id, 'Injection request')
        if request.status == 'completed':
            raise ValueError("Injection request is already completed")
        patient = request.visit.patient
        with self.atomic():
            request.status = 'later'
            if patient.current_visit is request.visit:
                self.advance_visit(patient, route_to(
                    'injection_room_later',
                    note=f"Moved to later by {staff_name or 'staff'} on {self.today().isoformat()}",
                ))
        return request

    def complete_administration(self, request_id, staff_name, notes=None):
        request = self.require(InjectionRequest, request_id, 'Injection request')
        paid = request.paid_injections
        if not paid:
            raise ValueError("Cannot complete: no paid injections")
        if not all(injection.administered and injection.saved for injection in paid):
            raise ValueError("Cannot complete: all paid injections must be administered and saved")

        patient = request.visit.patient
        with self.atomic():
            request.status = 'completed'
            if notes:
                request.notes = notes
            if patient.current_visit is request.visit:
                given = ', '.join(injection.description for injection in paid)
                note = f"Injection Room Notes ({self.today():%Y-%m-%d}): {given} administered by {staff_name}"
                if notes:
                    note = f"{note}. {notes}"
                if request.visit.workflow_owner == 'hmo':
                    self.advance_visit(patient, route_to('hmo', note=note))
                else:
                    self.advance_visit(patient, release(note=note))
            if patient.is_hmo:
                self.refresh_hmo_claims()
        logger.info("Injection request %s completed by %s", request.id, staff_name)
        return request
