import logging
import re

from ids import next_numeric_id, slugify
from models import LabRequest, LabRequestTest, LabTest, Patient
from workflow import route_to, stamp

logger = logging.getLogger(__name__)

_leading_number = re.compile(r'^\s*([-+]?\d*\.?\d+)')


def _parse_float(text):
    match = _leading_number.match(text or '')
    return float(match.group(1)) if match else None


def is_abnormal_value(value, normal_range):
    """Whether a numeric result falls outside ``normal_range``.

    Understands ``"a-b"``, ``"<x"`` and ``">x"``. Qualitative ranges
    (negative/reactive, comma separated options) and non-numeric values are
    never flagged.
    """
    if not value or not normal_range:
        return False
    lowered = normal_range.lower()
    if 'negative' in lowered or 'reactive' in lowered or ',' in normal_range:
        return False

    number = _parse_float(str(value))
    if number is None:
        return False

    if '-' in normal_range:
        low, _, high = normal_range.partition('-')
        low, high = _parse_float(low), _parse_float(high)
        if low is None or high is None:
            return False
        return number < low or number > high
    if normal_range.startswith('<'):
        limit = _parse_float(normal_range[1:])
        return limit is not None and number >= limit
    if normal_range.startswith('>'):
        limit = _parse_float(normal_range[1:])
        return limit is not None and number <= limit
    return False


class LaboratoryDesk:
    """Lab requests: pending -> billed -> in_progress -> completed."""

    lab_request_fields = ('status', 'notes', 'results', 'doctor_name', 'completed_by', 'doctor_prescriptions')

    def add_lab_request(self, patient_id, test_ids, doctor_name=None, notes=None, visit_id=None):
        patient = self.require(Patient, patient_id, 'Patient')
        if not test_ids:
            raise ValueError("Select at least one test")

        with self.atomic():
            request = LabRequest(
                id=next_numeric_id(self.session, LabRequest.id, 'LAB-REQ-', start=0, width=3),
                patient_id=patient.id,
                patient_name=patient.name,
                visit_id=visit_id or (patient.current_visit.id if patient.current_visit else None),
                doctor_name=doctor_name,
                date=self.today(),
                notes=notes,
            )
            for test_id in test_ids:
                test = self.require(LabTest, test_id, 'Lab test')
                request.tests.append(LabRequestTest(
                    test_id=test.id,
                    name=test.name,
                    price=test.price,
                    normal_range=test.normal_range,
                    unit=test.unit,
                ))
            self.session.add(request)
            self.session.flush()

            if patient.is_hmo:
                self.add_hmo_claim(patient, 'laboratory', request.id, claim_id=f"HMO-LAB-{request.id}")
                if patient.current_visit is not None:
                    self.advance_visit(patient, route_to('hmo'))
        logger.info("Lab request %s for %s: %s", request.id, patient.id, ', '.join(t.name for t in request.tests))
        return request

    def get_lab_request(self, request_id):
        return self.session.get(LabRequest, request_id)

    def get_lab_requests(self, status=None, patient_id=None):
        query = self.session.query(LabRequest)
        if status:
            query = query.filter_by(status=status)
        if patient_id:
            query = query.filter_by(patient_id=patient_id)
        return query.order_by(LabRequest.id).all()

    def get_patients_with_lab_requests(self):
        """Patients with at least one open lab request, each with those requests."""
        grouped = {}
        for request in self.get_lab_requests():
            if request.status == 'completed':
                continue
            grouped.setdefault(request.patient_id, []).append(request)
        return [(self.session.get(Patient, pid), requests) for pid, requests in grouped.items()]

    def update_lab_request(self, request_id, data):
        """Apply ``data``; completing a request writes results back to the visit.

        A visit that was waiting on the laboratory goes back to the doctor's
        queue as ``pending``.
        """
        request = self.require(LabRequest, request_id, 'Lab request')
        unknown = set(data) - set(self.lab_request_fields)
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")

        was_completed = request.status == 'completed'
        with self.atomic():
            for key, value in data.items():
                setattr(request, key, value)
            if request.status == 'completed' and not was_completed:
                request.completed_at = self.now()
                self._write_results_to_visit(request)
        return request

    def _write_results_to_visit(self, request):
        patient = request.patient
        visit = patient.current_visit
        if visit is None:
            return

        today = self.today().isoformat()
        lab_tests = [
            {'name': test.name, 'result': test.result or "No result recorded", 'date': today}
            for test in request.tests
        ]
        fields = {'lab_tests': lab_tests, 'lab_data': request.to_dict()}
        if visit.workflow_owner == 'laboratory':
            fields['original_diagnosis'] = visit.diagnosis
            note = stamp(request.completed_by or 'Laboratory', self.now(), "Lab results ready for review")
            self.advance_visit(patient, route_to('pending', note=note, **fields))
        else:
            self.advance_visit(patient, route_to(visit.workflow_owner, **fields))
        logger.info("Results of %s written to visit %s", request.id, visit.id)

    def send_lab_request_to_cash_point(self, request_id):
        request = self.require(LabRequest, request_id, 'Lab request')
        if request.status != 'pending':
            raise ValueError(f"Lab request is already {request.status}")
        patient = request.patient

        with self.atomic():
            claim = self.get_claim_for_source('laboratory', request.id)
            if patient.is_hmo and (claim is None or claim.status != 'rejected'):
                if claim is None:
                    self.add_hmo_claim(patient, 'laboratory', request.id, claim_id=f"HMO-LAB-{request.id}")
                request.status = 'billed'
                logger.info("Lab request %s billed to HMO", request.id)
                return None

            bill = self.add_bill({
                'patient_id': patient.id,
                'type': 'laboratory',
                'status': 'pending',
                'source': 'laboratory',
                'visit_id': request.visit_id,
                'items': [
                    {'description': test.name, 'quantity': 1, 'unit_price': test.price}
                    for test in request.tests
                ],
            })
            for test in request.tests:
                test.bill_id = bill.id
            request.status = 'billed'
        logger.info("Lab request %s sent to cash point as %s", request.id, bill.id)
        return bill

    def start_lab_test(self, request_id):
        request = self.require(LabRequest, request_id, 'Lab request')
        if request.status not in ('billed', 'pending'):
            raise ValueError(f"Lab request is already {request.status}")
        if not all(test.payment_status == 'paid' for test in request.tests):
            raise ValueError("All tests must be paid before testing can start")
        with self.atomic():
            request.status = 'in_progress'
        logger.info("Lab request %s in progress", request.id)
        return request

    def submit_lab_results(self, request_id, results, completed_by=None, notes=None):
        """Record results and complete the request.

        ``results`` maps a request-test id to either a free-text result or a
        dict of ``{parameter name: value}``.
        """
        request = self.require(LabRequest, request_id, 'Lab request')
        if request.status != 'in_progress':
            raise ValueError("Lab test has not been started")

        with self.atomic():
            for test in request.tests:
                result = results.get(test.id, results.get(str(test.id)))
                if result is None:
                    continue
                if isinstance(result, dict):
                    ranges = {}
                    catalog_test = self.session.get(LabTest, test.test_id) if test.test_id else None
                    if catalog_test:
                        ranges = {r.name: r for r in catalog_test.ranges}
                    parameters = []
                    for name, value in result.items():
                        entry = ranges.get(name)
                        normal_range = entry.normal_range if entry else None
                        parameters.append({
                            'id': f"{test.test_id}-{slugify(name)}",
                            'name': name,
                            'value': value,
                            'unit': entry.unit if entry else None,
                            'normal_range': normal_range,
                            'abnormal': is_abnormal_value(value, normal_range),
                        })
                    test.parameter_results = parameters
                    test.result = "See detailed parameters"
                else:
                    test.result = result

            self.update_lab_request(request.id, {
                'status': 'completed',
                'completed_by': completed_by,
                'notes': notes or request.notes,
            })
        return request

