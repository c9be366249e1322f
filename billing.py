import logging

from ids import deposit_reference, next_numeric_id, timestamp_suffix
from models import Appointment, Bill, BillItem, Consumable, InjectionRequest, LabRequestTest, Patient, Prescription, \
    VaccinationSession
from money import calculate_total, format_currency
from workflow import release, route_to

logger = logging.getLogger(__name__)

bill_item_fields = (
    'description', 'quantity', 'unit_price', 'is_injectable', 'is_consumable', 'dispensed', 'payment_status',
    'medicine_id', 'consumable_id',
)
bill_fields = (
    'date', 'status', 'type', 'destination', 'payment_method', 'payment_reference', 'payment_date',
    'processed_by', 'source', 'discount', 'discount_reason', 'original_total', 'visit_id', 'notes',
    'all_items_dispensed',
)
cash_point_methods = ('cash', 'card', 'transfer', 'balance')


def _bill_item(data):
    unknown = set(data) - set(bill_item_fields) - {'id', 'total'}
    if unknown:
        raise ValueError(f"Unknown bill item field(s): {', '.join(sorted(unknown))}")
    return BillItem(**{key: value for key, value in data.items() if key in bill_item_fields})


class BillingLedger:
    """Bills, deposits, payments and the effects a payment has elsewhere."""

    def calculate_total(self, items):
        return calculate_total(items)

    def format_currency(self, amount):
        return format_currency(amount)

    def add_bill(self, data):
        """Create a bill from a dict carrying ``patient_id`` and ``items``.

        A consultation bill that is already paid for an HMO patient also
        opens the consultation claim and routes the visit to the HMO desk.
        """
        data = dict(data)
        patient = self.require(Patient, data.pop('patient_id', None), 'Patient')
        items = data.pop('items', None) or []
        bill_id = data.pop('id', None)
        if not items:
            raise ValueError("A bill needs at least one item")
        unknown = set(data) - set(bill_fields)
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")

        with self.atomic():
            bill = Bill(
                id=bill_id or next_numeric_id(self.session, Bill.id, 'BILL-'),
                patient_id=patient.id,
                patient_name=patient.name,
                date=data.pop('date', None) or self.today(),
                **data
            )
            for item in items:
                bill.items.append(_bill_item(item))
            self.session.add(bill)
            self.session.flush()

            if bill.type == 'consultation' and bill.status == 'paid' and patient.is_hmo:
                if patient.current_visit is None:
                    self._append_visit(patient, {'type': 'Consultation'})
                self.advance_visit(patient, route_to('hmo', clinical_note='Initial Consultation'))
                self.add_hmo_claim(patient, 'doctor', bill.id, claim_id=f"HMO-CONS-{patient.id}-{bill.id}")
        logger.info("Bill %s (%s, %s) for %s: %s", bill.id, bill.type, bill.status, patient.id,
                    format_currency(bill.total))
        return bill

    def update_bill(self, bill_id, data):
        """Replace the given fields, and the item list when ``items`` is passed."""
        bill = self.require(Bill, bill_id, 'Bill')
        data = dict(data)
        items = data.pop('items', None)
        unknown = set(data) - set(bill_fields)
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
        with self.atomic():
            for key, value in data.items():
                setattr(bill, key, value)
            if items is not None:
                bill.items = [_bill_item(item) for item in items]
        return bill

    def get_bill(self, bill_id):
        return self.session.get(Bill, bill_id)

    def get_bills(self, status=None, bill_type=None, patient_id=None):
        query = self.session.query(Bill)
        if status:
            query = query.filter_by(status=status)
        if bill_type:
            query = query.filter_by(type=bill_type)
        if patient_id:
            query = query.filter_by(patient_id=patient_id)
        return query.order_by(Bill.created_at).all()

    def get_bills_by_patient(self, patient_id):
        return self.get_bills(patient_id=patient_id)

    def get_pending_bills(self):
        return self.get_bills(status='pending')

    def get_paid_bills(self):
        return self.get_bills(status='paid')

    def get_cancelled_bills(self):
        return self.get_bills(status='cancelled')

    def get_deposit_bills(self, patient_id=None):
        return self.get_bills(bill_type='deposit', patient_id=patient_id)

    def get_bills_paid_today(self):
        return self.session.query(Bill).filter_by(status='paid', payment_date=self.today()).all()

    def create_deposit_bill(self, patient_id, amount, staff_name=None):
        patient = self.require(Patient, patient_id, 'Patient')
        if not amount or amount <= 0:
            raise ValueError("Deposit amount must be greater than zero")

        now = self.now()
        with self.atomic():
            bill = Bill(
                id=next_numeric_id(self.session, Bill.id, 'BILL-DEP-'),
                patient_id=patient.id,
                patient_name=patient.name,
                date=now.date(),
                status='paid',
                type='deposit',
                payment_method='cash',
                payment_reference=deposit_reference(now),
                payment_date=now.date(),
                processed_by=staff_name,
                items=[BillItem(description='Retainership Deposit', quantity=1, unit_price=amount)],
            )
            self.session.add(bill)
            patient.balance = (patient.balance or 0) + amount
        logger.info("Deposit %s of %s for %s, balance now %s",
                    bill.id, format_currency(amount), patient.id, format_currency(patient.balance))
        return bill

    def apply_staff_discount(self, bill_id):
        """Discount a staff patient's bill once; other bills are returned untouched."""
        bill = self.require(Bill, bill_id, 'Bill')
        if not bill.patient.is_staff or bill.discount or bill.type == 'deposit':
            return bill
        discount = self.settings.staff_discount
        if not discount:
            return bill
        with self.atomic():
            bill.original_total = bill.total
            bill.discount = discount
            bill.discount_reason = 'Staff Discount'
        logger.info("Staff discount of %s%% on %s", discount, bill.id)
        return bill

    def process_payment(self, bill_id, payment_method, payment_reference=None, processed_by=None):
        bill = self.require(Bill, bill_id, 'Bill')
        if bill.status == 'paid':
            raise ValueError("Bill is already paid")
        if bill.status == 'cancelled':
            raise ValueError("Cancelled bills cannot be paid")
        if payment_method not in cash_point_methods:
            raise ValueError(f"Payment method must be one of: {cash_point_methods}")
        if payment_method in ('card', 'transfer') and not payment_reference:
            raise ValueError("Payment reference is required for card and transfer payments")

        patient = bill.patient
        now = self.now()
        with self.atomic():
            self.apply_staff_discount(bill.id)
            amount = bill.amount_due
            if payment_method == 'balance':
                if (patient.balance or 0) < amount:
                    raise ValueError(
                        f"Insufficient balance: {format_currency(patient.balance)} available, "
                        f"{format_currency(amount)} required"
                    )
                patient.balance -= amount
                payment_reference = f"BALANCE-{timestamp_suffix(now)}"
            elif payment_method == 'cash':
                payment_reference = payment_reference or f"CASH-{timestamp_suffix(now)}"

            bill.status = 'paid'
            bill.payment_method = payment_method
            bill.payment_reference = payment_reference
            bill.payment_date = now.date()
            bill.processed_by = processed_by
            if bill.type == 'pharmacy':
                bill.destination = 'final'

            self._route_after_payment(bill)
            self._sync_bill_payment(bill)
        logger.info("Bill %s paid by %s (%s)", bill.id, payment_method, format_currency(amount))
        return bill

    def _route_after_payment(self, bill):
        patient = bill.patient
        visit = patient.current_visit
        if visit is None or visit.workflow_owner != 'cash_point':
            return

        if bill.type == 'pharmacy':
            self.advance_visit(patient, release())
            appointment = (
                self.session.query(Appointment)
                .filter_by(patient_id=patient.id)
                .filter(Appointment.status.in_(('scheduled', 'In Progress')))
                .order_by(Appointment.date.desc())
                .first()
            )
            if appointment:
                appointment.status = 'completed'
        elif bill.type == 'vaccination' or bill.source == 'injection_room':
            self.advance_visit(patient, route_to('injection_room'))
        elif bill.type == 'consultation':
            self.advance_visit(patient, route_to('vitals'))
        elif bill.type == 'laboratory':
            self.advance_visit(patient, route_to('laboratory'))

    def _sync_bill_payment(self, bill):
        """Flip every record that points at ``bill`` to paid."""
        for test in self.session.query(LabRequestTest).filter_by(bill_id=bill.id):
            test.payment_status = 'paid'

        for request in self.session.query(InjectionRequest).filter_by(patient_id=bill.patient_id):
            touched = False
            for injection in request.injections:
                if injection.bill_id == bill.id:
                    injection.payment_status = 'paid'
                    touched = True
            if touched and request.status in ('pending', 'not_paid'):
                request.status = 'paid'

        prescription = self.session.query(Prescription).filter_by(bill_id=bill.id).first()
        if prescription and prescription.status in ('pending', 'billed', 'hmo_pending'):
            prescription.status = 'hmo_approved' if bill.payment_method == 'hmo' else 'paid'
            for item in prescription.items:
                if not item.is_injectable:
                    item.payment_status = 'paid'

        for session in self.session.query(VaccinationSession).filter_by(bill_id=bill.id):
            if session.status == 'scheduled':
                session.status = 'approved'

    def cancel_bill(self, bill_id, reason=None, staff_name=None):
        bill = self.require(Bill, bill_id, 'Bill')
        if bill.status == 'paid':
            raise ValueError("Paid bills cannot be cancelled")
        with self.atomic():
            bill.status = 'cancelled'
            if reason:
                bill.notes = f"Cancelled by {staff_name or 'Staff'}: {reason}"
        logger.info("Bill %s cancelled", bill_id)
        return bill

    def add_consumables_to_bill(self, bill_id, consumables):
        """Append ``[{'consumable_id', 'quantity'}]`` lines to a pending bill."""
        bill = self.require(Bill, bill_id, 'Bill')
        if bill.status not in ('pending', 'hmo_pending'):
            raise ValueError("Consumables can only be added to unpaid bills")
        with self.atomic():
            for entry in consumables:
                consumable = self.require(Consumable, entry.get('consumable_id'), 'Consumable')
                bill.items.append(BillItem(
                    description=f"Consumable: {consumable.name}",
                    quantity=entry.get('quantity') or 1,
                    unit_price=consumable.price,
                    is_consumable=True,
                    consumable_id=consumable.id,
                ))
        return bill

    def receipt_lines(self, bill_id):
        """(description, quantity, unit price, line total) rows for a receipt."""
        bill = self.require(Bill, bill_id, 'Bill')
        rows = [
            (item.description, item.quantity, format_currency(item.unit_price),
             format_currency(item.quantity * item.unit_price))
            for item in bill.items
        ]
        return bill, rows

