from tests.base import StoreTestCase


class InjectionRoomTest(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.patient = self.make_patient(diagnosis='With Pharmacy: Severe malaria')
        prescription = self.store.create_prescription(self.patient.id, [
            {'medicine_id': 'MED010', 'quantity': 1},
            {'medicine_id': 'MED011', 'quantity': 1},
        ], doctor_name='Dr. Adaeze')
        self.store.send_prescription_to_cash_point(prescription.id)
        self.request = self.patient.current_visit.injection_request
        self.artemether, self.ceftriaxone = self.request.injections

    def pay(self, injection):
        self.store.process_payment(injection.bill_id, 'cash')

    def test_unpaid_injection_cannot_be_started_or_marked(self):
        with self.assertRaises(ValueError):
            self.store.start_administration(self.request.id)
        with self.assertRaises(ValueError):
            self.store.toggle_administered(self.request.id, self.artemether.id, 'Nurse Bola')
        self.assertFalse(self.artemether.administered)

    def test_payment_routes_to_injection_room(self):
        self.pay(self.artemether)
        self.assertEqual(self.artemether.payment_status, 'paid')
        self.assertEqual(self.ceftriaxone.payment_status, 'pending')
        self.assertEqual(self.request.status, 'paid')
        self.assertEqual(self.patient.current_visit.diagnosis, 'With Injection Room: Severe malaria')

    def test_toggle_sets_and_clears_administration(self):
        self.pay(self.artemether)
        self.store.toggle_administered(self.request.id, self.artemether.id, 'Nurse Bola')
        self.assertTrue(self.artemether.administered)
        self.assertEqual(self.artemether.administered_by, 'Nurse Bola')

        self.store.toggle_administered(self.request.id, self.artemether.id)
        self.assertFalse(self.artemether.administered)
        self.assertIsNone(self.artemether.administered_time)

    def test_saved_administration_is_locked(self):
        self.pay(self.artemether)
        self.store.toggle_administered(self.request.id, self.artemether.id, 'Nurse Bola')
        self.store.save_administration(self.request.id, self.artemether.id, notes='Left deltoid')
        with self.assertRaises(ValueError):
            self.store.toggle_administered(self.request.id, self.artemether.id)

    def test_completion_needs_every_paid_injection_saved(self):
        self.pay(self.artemether)
        self.pay(self.ceftriaxone)
        self.store.start_administration(self.request.id)
        self.store.toggle_administered(self.request.id, self.artemether.id, 'Nurse Bola')
        self.store.save_administration(self.request.id, self.artemether.id)

        with self.assertRaises(ValueError):
            self.store.complete_administration(self.request.id, 'Nurse Bola')

        self.store.toggle_administered(self.request.id, self.ceftriaxone.id, 'Nurse Bola')
        self.store.save_administration(self.request.id, self.ceftriaxone.id)
        self.store.complete_administration(self.request.id, 'Nurse Bola')

        visit = self.patient.current_visit
        self.assertEqual(self.request.status, 'completed')
        self.assertEqual(visit.diagnosis, 'Severe malaria')
        self.assertIn('administered by Nurse Bola', visit.notes)

    def test_unpaid_injections_do_not_block_completion(self):
        self.pay(self.artemether)
        self.store.toggle_administered(self.request.id, self.artemether.id, 'Nurse Bola')
        self.store.save_administration(self.request.id, self.artemether.id)
        self.store.complete_administration(self.request.id, 'Nurse Bola')
        self.assertEqual(self.request.status, 'completed')

    def test_move_to_later(self):
        self.store.move_to_later(self.request.id, 'Nurse Bola')
        self.assertEqual(self.request.status, 'later')
        self.assertEqual(self.patient.current_visit.workflow_owner, 'injection_room_later')

    def test_injection_from_another_request(self):
        with self.assertRaises(ValueError):
            self.store.toggle_administered(self.request.id, 9999)
