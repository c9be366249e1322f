from models import Bill, LabRequestTest
from tests.base import FIXED_NOW, StoreTestCase


class DepositTest(StoreTestCase):

    def test_deposit_updates_balance_and_creates_one_bill(self):
        patient = self.make_patient()
        before = self.store.session.query(Bill).count()

        bill = self.store.create_deposit_bill(patient.id, 5000, 'Kemi Lawal')

        self.assertEqual(patient.balance, 5000)
        self.assertEqual(self.store.session.query(Bill).count(), before + 1)
        self.assertEqual(bill.id, 'BILL-DEP-1001')
        self.assertEqual((bill.status, bill.type), ('paid', 'deposit'))
        self.assertEqual(len(bill.items), 1)
        self.assertEqual(bill.items[0].unit_price, 5000)
        self.assertTrue(bill.payment_reference.startswith('DEP-20260310-'))

    def test_deposit_must_be_positive(self):
        patient = self.make_patient()
        with self.assertRaises(ValueError):
            self.store.create_deposit_bill(patient.id, 0)
        self.assertEqual(patient.balance, 0)

    def test_deposit_ids_do_not_affect_bill_ids(self):
        patient = self.make_patient()
        self.store.create_deposit_bill(patient.id, 2000)
        bill = self.store.add_bill({
            'patient_id': patient.id, 'type': 'other',
            'items': [{'description': 'Card', 'quantity': 1, 'unit_price': 500}],
        })
        self.assertEqual(bill.id, 'BILL-1001')


class PaymentTest(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.patient = self.make_patient(diagnosis='With Cash Point: Consultation')

    def consultation_bill(self, amount=10000):
        return self.store.add_bill({
            'patient_id': self.patient.id, 'type': 'consultation',
            'items': [{'description': 'Consultation Fee', 'quantity': 1, 'unit_price': amount}],
        })

    def test_bill_needs_items(self):
        with self.assertRaises(ValueError):
            self.store.add_bill({'patient_id': self.patient.id, 'type': 'other', 'items': []})

    def test_cash_payment(self):
        bill = self.consultation_bill()
        self.store.process_payment(bill.id, 'cash', processed_by='Kemi Lawal')
        self.assertEqual(bill.status, 'paid')
        self.assertTrue(bill.payment_reference.startswith('CASH-'))
        self.assertEqual(bill.payment_date, FIXED_NOW.date())
        self.assertEqual(self.patient.current_visit.workflow_owner, 'vitals')
        self.assertEqual(self.store.get_bills_paid_today(), [bill])

    def test_card_needs_reference(self):
        bill = self.consultation_bill()
        with self.assertRaises(ValueError):
            self.store.process_payment(bill.id, 'card')

    def test_paid_bill_cannot_be_paid_again(self):
        bill = self.consultation_bill()
        self.store.process_payment(bill.id, 'cash')
        with self.assertRaises(ValueError):
            self.store.process_payment(bill.id, 'cash')

    def test_pay_from_balance(self):
        self.store.create_deposit_bill(self.patient.id, 15000)
        bill = self.consultation_bill()
        self.store.process_payment(bill.id, 'balance')
        self.assertEqual(self.patient.balance, 5000)
        self.assertTrue(bill.payment_reference.startswith('BALANCE-'))

    def test_insufficient_balance_changes_nothing(self):
        self.store.create_deposit_bill(self.patient.id, 2000)
        bill = self.consultation_bill()
        with self.assertRaises(ValueError):
            self.store.process_payment(bill.id, 'balance')
        self.assertEqual(bill.status, 'pending')
        self.assertEqual(self.patient.balance, 2000)
        self.assertEqual(self.patient.current_visit.workflow_owner, 'cash_point')

    def test_cancel_bill(self):
        bill = self.consultation_bill()
        self.store.cancel_bill(bill.id, 'Duplicate', 'Kemi Lawal')
        self.assertEqual(bill.status, 'cancelled')
        self.assertEqual(self.store.get_cancelled_bills(), [bill])
        with self.assertRaises(ValueError):
            self.store.process_payment(bill.id, 'cash')

    def test_add_consumables(self):
        bill = self.consultation_bill(5000)
        self.store.add_consumables_to_bill(bill.id, [{'consumable_id': 'CONS-005', 'quantity': 2}])
        self.assertEqual(bill.total, 5300)

    def test_lab_payment_marks_tests_paid(self):
        self.store.import_visit_diagnosis(self.patient.current_visit.id, 'With Laboratory: Fever')
        request = self.store.add_lab_request(self.patient.id, ['LAB-TEST-002', 'LAB-TEST-003'])
        bill = self.store.send_lab_request_to_cash_point(request.id)
        self.store.process_payment(bill.id, 'transfer', payment_reference='TRF-88213')
        statuses = {t.payment_status for t in self.store.session.query(LabRequestTest)}
        self.assertEqual(statuses, {'paid'})


class StaffDiscountTest(StoreTestCase):

    def setUp(self):
        super().setUp()
        staff = self.make_doctor()
        self.patient = self.store.create_patient_from_staff(staff.id)

    def test_discount_applied_at_payment(self):
        bill = self.store.add_bill({
            'patient_id': self.patient.id, 'type': 'consultation',
            'items': [{'description': 'Consultation Fee', 'quantity': 1, 'unit_price': 10000}],
        })
        self.store.process_payment(bill.id, 'cash')
        self.assertEqual(bill.discount, 20)
        self.assertEqual(bill.discount_reason, 'Staff Discount')
        self.assertEqual(bill.original_total, 10000)
        self.assertEqual(bill.amount_due, 8000)

    def test_discount_applied_once(self):
        bill = self.store.add_bill({
            'patient_id': self.patient.id, 'type': 'other',
            'items': [{'description': 'Dressing', 'quantity': 1, 'unit_price': 2500}],
        })
        self.store.apply_staff_discount(bill.id)
        self.store.apply_staff_discount(bill.id)
        self.assertEqual(bill.amount_due, 2000)

    def test_custom_discount_from_settings(self):
        self.store.update_hospital_settings({'staff_discount': 50})
        bill = self.store.add_bill({
            'patient_id': self.patient.id, 'type': 'other',
            'items': [{'description': 'Dressing', 'quantity': 1, 'unit_price': 2500}],
        })
        self.assertEqual(self.store.apply_staff_discount(bill.id).amount_due, 1250)

    def test_non_staff_untouched(self):
        other = self.make_patient()
        bill = self.store.add_bill({
            'patient_id': other.id, 'type': 'other',
            'items': [{'description': 'Dressing', 'quantity': 1, 'unit_price': 2500}],
        })
        self.store.apply_staff_discount(bill.id)
        self.assertIsNone(bill.discount)


class BillQueryTest(StoreTestCase):

    def test_getters(self):
        patient = self.make_patient()
        other = self.make_patient(patient_type='hmo', first_name='Tobi')
        deposit = self.store.create_deposit_bill(patient.id, 3000)
        pending = self.store.add_bill({
            'patient_id': patient.id, 'type': 'other',
            'items': [{'description': 'Card', 'quantity': 1, 'unit_price': 500}],
        })

        self.assertEqual(self.store.get_pending_bills(), [pending])
        self.assertEqual(self.store.get_paid_bills(), [deposit])
        self.assertEqual(self.store.get_deposit_bills(patient.id), [deposit])
        self.assertEqual(len(self.store.get_bills_by_patient(patient.id)), 2)
        self.assertEqual(self.store.get_bills_by_patient(other.id), [])
        self.assertEqual(self.store.get_hmo_patients(), [other])
