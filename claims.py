import logging
from datetime import timedelta

from ids import generate_claim_id
from models import Appointment, Bill, HMOClaim, InjectionRequest, LabRequest, Patient, Prescription, Visit
from workflow import release, route_to, stamp

logger = logging.getLogger(__name__)

claim_prefixes = {
    'doctor': 'CONS',
    'pharmacy': 'PHARM',
    'laboratory': 'LAB',
    'injection_room': 'INJ',
}
claim_actions = ('approve', 'reject')


class ClaimsDesk:
    """HMO claims derived from bills, lab requests and injection requests.

    A claim only points at its source; its line items are recomputed from
    that source every time they are read.
    """

    def add_hmo_claim(self, patient, source_department, source_id, claim_id=None, notes=None):
        existing = self.get_claim_for_source(source_department, source_id)
        if existing:
            return existing

        with self.atomic():
            claim = HMOClaim(
                id=claim_id or generate_claim_id(claim_prefixes[source_department], self.now()),
                patient_id=patient.id,
                patient_name=patient.name,
                hmo_provider=patient.hmo_provider,
                policy_number=patient.policy_number,
                date=self.today(),
                status='pending',
                source_department=source_department,
                source_id=source_id,
                notes=notes,
            )
            self.session.add(claim)
            self.session.flush()
        logger.info("Claim %s opened for %s (%s %s)", claim.id, patient.id, source_department, source_id)
        return claim

    def get_claim(self, claim_id):
        return self.session.get(HMOClaim, claim_id)

    def get_claim_for_source(self, source_department, source_id):
        return (
            self.session.query(HMOClaim)
            .filter_by(source_department=source_department, source_id=source_id)
            .first()
        )

    def get_hmo_claims(self, status=None, patient_id=None, source_department=None):
        query = self.session.query(HMOClaim)
        if status:
            query = query.filter_by(status=status)
        if patient_id:
            query = query.filter_by(patient_id=patient_id)
        if source_department:
            query = query.filter_by(source_department=source_department)
        return query.order_by(HMOClaim.created_at).all()

    def serialize_claim(self, claim):
        return claim.to_dict(items=self.generate_claim_items(claim.patient_id, claim.source_id,
                                                             claim.source_department, claim))

    # --- items ---

    def generate_claim_items(self, patient_id, source_id, source_department, claim=None):
        """Project the source record's lines into claim items."""
        items = []

        def add(line_id, description, quantity, unit_price, item_type):
            item_id = f"{source_id}-{line_id}"
            items.append({
                'id': item_id,
                'description': description,
                'quantity': quantity,
                'unit_price': unit_price,
                'total': quantity * unit_price,
                'type': item_type,
                'source_id': source_id,
                'approved': bool(claim and item_id in (claim.approved_item_ids or [])),
            })

        if source_department == 'pharmacy':
            bill = self.session.get(Bill, source_id)
            if bill:
                for line in bill.items:
                    add(line.id, line.description, line.quantity, line.unit_price, 'medication')

        elif source_department == 'laboratory':
            request = self.session.get(LabRequest, source_id)
            if request:
                for test in request.tests:
                    add(test.id, test.name, 1, test.price, 'lab')

        elif source_department == 'injection_room':
            request = self.session.get(InjectionRequest, source_id)
            if request:
                for injection in request.injections:
                    add(injection.id, injection.description, injection.quantity, injection.price, 'injection')
            else:
                bill = self.session.get(Bill, source_id)
                if bill:
                    for line in bill.items:
                        add(line.id, line.description, line.quantity, line.unit_price, 'injection')

        elif source_department == 'doctor':
            bill = self.session.get(Bill, source_id)
            if bill and bill.items:
                line = bill.items[0]
                add(line.id, line.description, line.quantity, line.unit_price, 'consultation')
            else:
                visit = self.session.get(Visit, source_id)
                if visit:
                    doctor = self.get_staff_by_name(visit.doctor) if visit.doctor else None
                    fee = self.consultation_fee_for_department(doctor.department if doctor else None)
                    add(visit.id, f"Consultation with {visit.doctor or 'Doctor'}", 1, fee, 'consultation')

        return items

    # --- processing ---

    def process_hmo_claim(self, claim_id, action, approval_code=None, rejection_reason=None,
                          processed_by='HMO Desk', approved_item_ids=None):
        """Approve or reject a claim and carry the outcome back to its source.

        Approval lets the patient continue to the department that raised the
        claim; rejection sends them back there with the reason in the notes.
        """
        claim = self.require(HMOClaim, claim_id, 'Claim')
        if action not in claim_actions:
            raise ValueError(f"Action must be one of: {claim_actions}")
        if claim.status in ('completed', 'rejected'):
            raise ValueError(f"Claim is already {claim.status}")
        if action == 'reject' and not rejection_reason:
            raise ValueError("A rejection reason is required")

        approved = action == 'approve'
        patient = claim.patient
        items = self.generate_claim_items(claim.patient_id, claim.source_id, claim.source_department)
        if approved:
            wanted = approved_item_ids if approved_item_ids is not None else [item['id'] for item in items]
        else:
            wanted = []

        with self.atomic():
            claim.status = 'completed' if approved else 'rejected'
            claim.approval_code = approval_code if approved else None
            claim.rejection_reason = None if approved else rejection_reason
            claim.processed_by = processed_by
            claim.processed_date = self.today()
            claim.approved_item_ids = list(wanted)

            handler = {
                'doctor': self._settle_consultation_claim,
                'pharmacy': self._settle_pharmacy_claim,
                'laboratory': self._settle_laboratory_claim,
                'injection_room': self._settle_injection_claim,
            }[claim.source_department]
            handler(claim, patient, approved, set(wanted))

            self.refresh_hmo_claims()
        logger.info("Claim %s %s by %s", claim.id, claim.status, processed_by)
        return claim

    def _claim_note(self, claim, approved):
        if approved:
            text = f"HMO claim {claim.id} approved with code {claim.approval_code or 'N/A'}"
        else:
            text = f"HMO claim {claim.id} rejected: {claim.rejection_reason}"
        return stamp(claim.processed_by, self.now(), text)

    def _settle_consultation_claim(self, claim, patient, approved, approved_ids):
        bill = self.session.get(Bill, claim.source_id)
        visit = patient.current_visit
        note = self._claim_note(claim, approved)

        if approved:
            if bill and bill.status == 'hmo_pending':
                self._mark_paid_by_hmo(bill, claim)
                if visit is not None and visit.workflow_owner == 'hmo':
                    self.advance_visit(patient, release(note=note))
            elif visit is not None:
                self.advance_visit(patient, route_to(
                    'vitals',
                    note=f"Initial consultation approved with code {claim.approval_code or 'N/A'}",
                    clinical_note='Initial Consultation',
                ))
            return

        if bill and bill.status != 'cancelled':
            bill.status = 'cancelled'
            bill.notes = f"HMO claim rejected: {claim.rejection_reason}"
        if bill:
            appointment = self.session.query(Appointment).filter_by(bill_id=bill.id).first()
            if appointment:
                appointment.status = 'cancelled'
        if visit is not None:
            self.advance_visit(patient, route_to('cancelled', note=note))

    def _settle_pharmacy_claim(self, claim, patient, approved, approved_ids):
        bill = self.session.get(Bill, claim.source_id)
        prescription = self.session.query(Prescription).filter_by(bill_id=claim.source_id).first()
        visit = patient.current_visit
        note = self._claim_note(claim, approved)

        if approved:
            if bill:
                self._mark_paid_by_hmo(bill, claim)
                bill.destination = 'final'
            if prescription:
                prescription.status = 'hmo_approved'
                for item in prescription.items:
                    if not item.is_injectable:
                        item.payment_status = 'paid'
            if visit is not None and visit.workflow_owner == 'hmo':
                self.advance_visit(patient, release(note=note))
            return

        if bill:
            bill.status = 'pending'
        if prescription:
            prescription.status = 'pending'
            for item in prescription.items:
                item.payment_status = 'pending'
                item.dispensed = False
        if visit is not None:
            self.advance_visit(patient, route_to('pharmacy', note=note))

    def _settle_laboratory_claim(self, claim, patient, approved, approved_ids):
        request = self.session.get(LabRequest, claim.source_id)
        note = self._claim_note(claim, approved)

        owner = 'laboratory'
        if request:
            if approved:
                if request.status == 'pending':
                    request.status = 'billed'
                for test in request.tests:
                    if f"{claim.source_id}-{test.id}" in approved_ids:
                        test.payment_status = 'paid'
                if self._bill_unapproved_tests(request):
                    owner = 'cash_point'
            else:
                request.status = 'pending'
        if patient.current_visit is not None:
            self.advance_visit(patient, route_to(owner, note=note))

    def _bill_unapproved_tests(self, request):
        """Send the tests an HMO left out of a partial approval to the cash point."""
        unpaid = [test for test in request.tests if test.payment_status != 'paid' and test.bill_id is None]
        if not unpaid:
            return None
        bill = self.add_bill({
            'patient_id': request.patient_id,
            'type': 'laboratory',
            'status': 'pending',
            'source': 'laboratory',
            'visit_id': request.visit_id,
            'items': [{'description': test.name, 'quantity': 1, 'unit_price': test.price} for test in unpaid],
        })
        for test in unpaid:
            test.bill_id = bill.id
        logger.info("Unapproved tests of %s sent to cash point as %s", request.id, bill.id)
        return bill

    def _settle_injection_claim(self, claim, patient, approved, approved_ids):
        request = self.session.get(InjectionRequest, claim.source_id)
        note = self._claim_note(claim, approved)

        if request is None:
            # vaccination claims point at the vaccination bill
            bill = self.session.get(Bill, claim.source_id)
            if bill:
                if approved:
                    self._mark_paid_by_hmo(bill, claim)
                else:
                    bill.status = 'pending'
            if patient.current_visit is not None:
                owner = 'injection_room' if approved else 'cash_point'
                self.advance_visit(patient, route_to(owner, note=note))
            return

        if approved:
            for injection in request.injections:
                if f"{claim.source_id}-{injection.id}" not in approved_ids:
                    continue
                injection.payment_status = 'paid'
                bill = self.session.get(Bill, injection.bill_id) if injection.bill_id else None
                if bill and bill.status != 'paid':
                    self._mark_paid_by_hmo(bill, claim)
            if request.status in ('pending', 'not_paid'):
                request.status = 'paid'
        else:
            request.status = 'pending'
            for injection in request.injections:
                bill = self.session.get(Bill, injection.bill_id) if injection.bill_id else None
                if bill and bill.status == 'hmo_pending':
                    bill.status = 'pending'
        if patient.current_visit is not None:
            self.advance_visit(patient, route_to('injection_room', note=note))

    def _mark_paid_by_hmo(self, bill, claim):
        bill.status = 'paid'
        bill.payment_method = 'hmo'
        bill.payment_reference = claim.approval_code or 'HMO-APPROVED'
        bill.payment_date = self.today()
        bill.processed_by = claim.processed_by
        self._sync_bill_payment(bill)

    # --- reconciliation ---

    def refresh_hmo_claims(self):
        """Open a claim for every claimable record that has none yet.

        Claim ids are derived from the source id, so running this twice
        creates nothing the second time.
        """
        created = []

        def ensure(patient, department, source_id, claim_id):
            if self.get_claim_for_source(department, source_id) is None:
                created.append(self.add_hmo_claim(patient, department, source_id, claim_id=claim_id))

        with self.atomic():
            for patient in self.session.query(Patient).filter_by(patient_type='hmo'):
                visit = patient.current_visit

                if visit is not None and visit.workflow_owner == 'hmo' and visit.clinical_note != 'Initial Consultation':
                    for bill in patient.bills:
                        if bill.type != 'pharmacy' or bill.status == 'cancelled':
                            continue
                        if bill.visit_id == visit.id or bill.status == 'hmo_pending':
                            ensure(patient, 'pharmacy', bill.id, f"HMO-PHARM-{bill.id}")

                if visit is not None:
                    window = timedelta(days=1)
                    for bill in patient.bills:
                        if bill.type == 'consultation' and bill.status == 'paid' and bill.payment_method != 'hmo' \
                                and bill.date and abs(bill.date - visit.date) <= window:
                            ensure(patient, 'doctor', bill.id, f"HMO-CONS-{patient.id}-{bill.id}")

                for request in patient.lab_requests:
                    if request.status == 'completed':
                        ensure(patient, 'laboratory', request.id, f"HMO-LAB-{request.id}")

                if visit is not None and visit.injection_request is not None:
                    request = visit.injection_request
                    if request.status == 'completed' or visit.workflow_owner == 'hmo':
                        ensure(patient, 'injection_room', request.id, f"HMO-INJ-{request.id}")

        if created:
            logger.info("Claim refresh opened %s claim(s)", len(created))
        return created
