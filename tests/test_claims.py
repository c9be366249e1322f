from models import HMOClaim
from tests.base import StoreTestCase


class ClaimRefreshTest(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.patient = self.make_patient(patient_type='hmo', diagnosis='With HMO: Malaria')
        self.bill = self.store.add_bill({
            'patient_id': self.patient.id, 'type': 'pharmacy', 'status': 'hmo_pending', 'source': 'pharmacy',
            'items': [{'description': 'MED003 - Artemether/Lumefantrine 80/480mg', 'quantity': 2, 'unit_price': 1500}],
        })

    def test_refresh_is_idempotent(self):
        created = self.store.refresh_hmo_claims()
        self.assertEqual([claim.id for claim in created], [f"HMO-PHARM-{self.bill.id}"])
        self.assertEqual(self.store.refresh_hmo_claims(), [])
        self.assertEqual(self.store.session.query(HMOClaim).count(), 1)

    def test_one_claim_per_source(self):
        first = self.store.add_hmo_claim(self.patient, 'pharmacy', self.bill.id)
        second = self.store.add_hmo_claim(self.patient, 'pharmacy', self.bill.id, claim_id='HMO-PHARM-OTHER')
        self.assertIs(first, second)
        self.assertTrue(first.id.startswith('HMO-PHARM-'))
        self.assertEqual(self.store.session.query(HMOClaim).count(), 1)

    def test_items_are_read_from_the_source(self):
        claim = self.store.refresh_hmo_claims()[0]
        items = self.store.serialize_claim(claim)['items']
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]['total'], 3000)
        self.assertFalse(items[0]['approved'])

        self.store.add_consumables_to_bill(self.bill.id, [{'consumable_id': 'CONS-005', 'quantity': 1}])
        self.assertEqual(len(self.store.serialize_claim(claim)['items']), 2)

    def test_cash_patients_are_ignored(self):
        self.make_patient(diagnosis='With HMO: Malaria')
        self.assertEqual(len(self.store.refresh_hmo_claims()), 1)

    def test_processing_rules(self):
        claim = self.store.refresh_hmo_claims()[0]
        with self.assertRaises(ValueError):
            self.store.process_hmo_claim(claim.id, 'reject')
        with self.assertRaises(ValueError):
            self.store.process_hmo_claim(claim.id, 'escalate')
        self.store.process_hmo_claim(claim.id, 'approve', approval_code='APV-1')
        with self.assertRaises(ValueError):
            self.store.process_hmo_claim(claim.id, 'approve', approval_code='APV-2')

    def test_approval_marks_items(self):
        claim = self.store.refresh_hmo_claims()[0]
        self.store.process_hmo_claim(claim.id, 'approve', approval_code='APV-1')
        items = self.store.serialize_claim(claim)['items']
        self.assertTrue(all(item['approved'] for item in items))
        self.assertEqual(self.patient.current_visit.diagnosis, 'Malaria')


class PharmacyClaimRejectionTest(StoreTestCase):

    def test_rejection_returns_patient_to_pharmacy(self):
        patient = self.make_patient(patient_type='hmo', diagnosis='With Pharmacy: Malaria')
        prescription = self.store.create_prescription(patient.id, [{'medicine_id': 'MED004', 'quantity': 3}])
        bill = self.store.send_prescription_to_cash_point(prescription.id)
        claim = self.store.get_claim_for_source('pharmacy', bill.id)

        self.store.process_hmo_claim(claim.id, 'reject', rejection_reason='Not covered', processed_by='Femi Oladipo')

        visit = patient.current_visit
        self.assertEqual(claim.status, 'rejected')
        self.assertEqual(bill.status, 'pending')
        self.assertEqual(prescription.status, 'pending')
        self.assertEqual(visit.diagnosis, 'With Pharmacy: Malaria')
        self.assertIn(f"HMO claim {claim.id} rejected: Not covered", visit.notes)


class LabClaimTest(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.patient = self.make_patient(patient_type='hmo', diagnosis='With Laboratory: Fever')
        self.request = self.store.add_lab_request(self.patient.id, ['LAB-TEST-002', 'LAB-TEST-003'])
        self.assertIsNone(self.store.send_lab_request_to_cash_point(self.request.id))
        self.claim = self.store.get_claim(f"HMO-LAB-{self.request.id}")

    def test_claim_replaces_the_cash_bill(self):
        self.assertEqual(self.request.status, 'billed')
        self.assertEqual(self.store.get_bills(bill_type='laboratory'), [])
        self.assertEqual(sum(item['total'] for item in self.store.serialize_claim(self.claim)['items']), 2500)

    def test_approval_pays_the_tests(self):
        self.store.process_hmo_claim(self.claim.id, 'approve', approval_code='LAB-OK')
        self.assertEqual({test.payment_status for test in self.request.tests}, {'paid'})
        self.assertEqual(self.patient.current_visit.workflow_owner, 'laboratory')
        self.store.start_lab_test(self.request.id)
        self.assertEqual(self.request.status, 'in_progress')

    def test_partial_approval(self):
        malaria, sugar = self.request.tests
        self.store.process_hmo_claim(
            self.claim.id, 'approve', approval_code='LAB-OK',
            approved_item_ids=[f"{self.request.id}-{malaria.id}"],
        )
        self.assertEqual(malaria.payment_status, 'paid')
        self.assertEqual(sugar.payment_status, 'pending')
        self.assertEqual(self.patient.current_visit.workflow_owner, 'cash_point')
        with self.assertRaises(ValueError):
            self.store.start_lab_test(self.request.id)

        bill = self.store.get_bills(bill_type='laboratory')[0]
        self.assertEqual((bill.status, bill.total), ('pending', sugar.price))
        self.assertEqual(sugar.bill_id, bill.id)

        self.store.process_payment(bill.id, 'cash')
        self.assertEqual(sugar.payment_status, 'paid')
        self.assertEqual(self.patient.current_visit.workflow_owner, 'laboratory')
        self.store.start_lab_test(self.request.id)
        self.assertEqual(self.request.status, 'in_progress')

    def test_full_approval_bills_nothing(self):
        self.store.process_hmo_claim(self.claim.id, 'approve', approval_code='LAB-OK')
        self.assertEqual(self.store.get_bills(bill_type='laboratory'), [])

    def test_rejection_falls_back_to_the_cash_point(self):
        self.store.process_hmo_claim(self.claim.id, 'reject', rejection_reason='Outside plan')
        self.assertEqual(self.request.status, 'pending')

        bill = self.store.send_lab_request_to_cash_point(self.request.id)
        self.assertEqual((bill.type, bill.total), ('laboratory', 2500))


class ConsultationClaimTest(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.patient = self.make_patient(patient_type='hmo')
        self.bill = self.store.add_bill({
            'patient_id': self.patient.id, 'type': 'consultation', 'status': 'paid',
            'items': [{'description': 'General Consultation', 'quantity': 1, 'unit_price': 5000}],
        })
        self.claim = self.store.get_claim(f"HMO-CONS-{self.patient.id}-{self.bill.id}")

    def test_paid_consultation_waits_at_the_hmo_desk(self):
        self.assertEqual(self.patient.current_visit.diagnosis, 'With HMO: Initial Consultation')
        self.assertEqual(self.claim.source_department, 'doctor')
        self.assertEqual(self.store.refresh_hmo_claims(), [])

    def test_approval_sends_patient_to_vitals(self):
        self.store.process_hmo_claim(self.claim.id, 'approve', approval_code='CONS-9')
        visit = self.patient.current_visit
        self.assertEqual(visit.diagnosis, 'With Vitals: Initial Consultation')
        self.assertIn('Initial consultation approved with code CONS-9', visit.notes)

    def test_rejection_cancels_the_visit(self):
        self.store.process_hmo_claim(self.claim.id, 'reject', rejection_reason='Policy expired')
        self.assertEqual(self.bill.status, 'cancelled')
        self.assertEqual(self.bill.notes, 'HMO claim rejected: Policy expired')
        self.assertEqual(self.patient.current_visit.diagnosis, 'Cancelled')


class DischargeClaimTest(StoreTestCase):

    def test_approval_releases_the_patient(self):
        patient = self.make_patient(patient_type='hmo', diagnosis='Pending')
        self.store.complete_consultation(patient.id, 'Tension headache', 'discharge', 'Dr. Adaeze')
        bill = self.store.get_bills(bill_type='consultation', patient_id=patient.id)[0]
        claim = self.store.get_claim_for_source('doctor', bill.id)

        self.store.process_hmo_claim(claim.id, 'approve', approval_code='DIS-4')

        self.assertEqual(bill.status, 'paid')
        self.assertEqual(bill.payment_reference, 'DIS-4')
        self.assertEqual(patient.current_visit.diagnosis, 'Tension headache')


class InjectionClaimTest(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.patient = self.make_patient(patient_type='hmo', diagnosis='With Pharmacy: Severe malaria')
        prescription = self.store.create_prescription(self.patient.id, [
            {'medicine_id': 'MED001', 'quantity': 10},
            {'medicine_id': 'MED010', 'quantity': 1},
        ])
        self.store.send_prescription_to_cash_point(prescription.id)
        self.request = self.patient.current_visit.injection_request
        self.injection = self.request.injections[0]
        self.bill = self.store.get_bill(self.injection.bill_id)
        self.claim = self.store.get_claim(f"HMO-INJ-{self.request.id}")

    def test_claim_covers_the_injections(self):
        self.assertEqual(self.claim.source_department, 'injection_room')
        self.assertEqual(self.bill.status, 'hmo_pending')
        items = self.store.serialize_claim(self.claim)['items']
        self.assertEqual([item['id'] for item in items], [f"{self.request.id}-{self.injection.id}"])

    def test_approval_pays_the_injections(self):
        self.store.process_hmo_claim(self.claim.id, 'approve', approval_code='INJ-OK')

        self.assertEqual(self.injection.payment_status, 'paid')
        self.assertEqual(self.request.status, 'paid')
        self.assertEqual((self.bill.status, self.bill.payment_method), ('paid', 'hmo'))
        self.assertEqual(self.bill.payment_reference, 'INJ-OK')
        self.assertEqual(self.patient.current_visit.workflow_owner, 'injection_room')

    def test_rejection_returns_the_request_to_pending(self):
        self.store.process_hmo_claim(self.claim.id, 'reject', rejection_reason='Injectables excluded')

        visit = self.patient.current_visit
        self.assertEqual(self.request.status, 'pending')
        self.assertEqual(self.injection.payment_status, 'pending')
        self.assertEqual(self.bill.status, 'pending')
        self.assertEqual(visit.workflow_owner, 'injection_room')
        self.assertIn('rejected: Injectables excluded', visit.notes)
