from tests.base import StoreTestCase


class CashLabFlowTest(StoreTestCase):

    def test_request_to_results(self):
        patient = self.make_patient(diagnosis='With Laboratory: Malaria test')
        request = self.store.add_lab_request(patient.id, ['LAB-TEST-002'], doctor_name='Dr. Adaeze')
        self.assertEqual(request.id, 'LAB-REQ-001')
        self.assertEqual(request.status, 'pending')

        bill = self.store.send_lab_request_to_cash_point(request.id)
        self.assertEqual((bill.status, bill.type), ('pending', 'laboratory'))
        self.assertEqual(bill.total, 1500)
        self.assertEqual(request.status, 'billed')

        with self.assertRaises(ValueError):
            self.store.start_lab_test(request.id)

        self.store.process_payment(bill.id, 'cash')
        self.assertEqual(request.tests[0].payment_status, 'paid')

        self.store.start_lab_test(request.id)
        self.assertEqual(request.status, 'in_progress')

        self.store.submit_lab_results(request.id, {request.tests[0].id: 'Positive (++)'}, completed_by='Musa Ibrahim')

        visit = patient.current_visit
        self.assertEqual(request.status, 'completed')
        self.assertEqual(visit.diagnosis, 'Pending')
        self.assertEqual(visit.original_diagnosis, 'With Laboratory: Malaria test')
        self.assertEqual(visit.lab_tests, [{'name': 'Malaria Parasite', 'result': 'Positive (++)', 'date': '2026-03-10'}])
        self.assertEqual(visit.lab_data['id'], request.id)
        self.assertIn('Lab results ready for review', visit.notes)

    def test_results_need_a_started_test(self):
        patient = self.make_patient(diagnosis='With Laboratory: Fever')
        request = self.store.add_lab_request(patient.id, ['LAB-TEST-003'])
        with self.assertRaises(ValueError):
            self.store.submit_lab_results(request.id, {request.tests[0].id: '92'})

    def test_completion_elsewhere_keeps_routing(self):
        patient = self.make_patient(diagnosis='With Pharmacy: Malaria')
        request = self.store.add_lab_request(patient.id, ['LAB-TEST-003'])
        self.store.update_lab_request(request.id, {'status': 'completed', 'completed_by': 'Musa Ibrahim'})
        self.assertEqual(patient.current_visit.diagnosis, 'With Pharmacy: Malaria')
        self.assertEqual(patient.current_visit.lab_tests[0]['result'], 'No result recorded')

    def test_parameter_results_flag_abnormal_values(self):
        patient = self.make_patient(diagnosis='With Laboratory: Anaemia')
        request = self.store.add_lab_request(patient.id, ['LAB-TEST-001'])
        bill = self.store.send_lab_request_to_cash_point(request.id)
        self.store.process_payment(bill.id, 'cash')
        self.store.start_lab_test(request.id)

        test = request.tests[0]
        self.store.submit_lab_results(request.id, {str(test.id): {'Hemoglobin': '9.1', 'WBC': '6.2'}})

        self.assertEqual(test.result, 'See detailed parameters')
        by_name = {p['name']: p for p in test.parameter_results}
        self.assertTrue(by_name['Hemoglobin']['abnormal'])
        self.assertFalse(by_name['WBC']['abnormal'])
        self.assertEqual(by_name['Hemoglobin']['id'], 'LAB-TEST-001-hemoglobin')
        self.assertEqual(by_name['Hemoglobin']['unit'], 'g/dL')

    def test_open_requests_grouped_by_patient(self):
        first = self.make_patient(diagnosis='With Laboratory: Fever')
        second = self.make_patient(first_name='Tobi', diagnosis='With Laboratory: Cough')
        self.store.add_lab_request(first.id, ['LAB-TEST-002'])
        self.store.add_lab_request(first.id, ['LAB-TEST-003'])
        done = self.store.add_lab_request(second.id, ['LAB-TEST-004'])
        self.store.update_lab_request(done.id, {'status': 'completed'})

        grouped = self.store.get_patients_with_lab_requests()
        self.assertEqual([(p.id, len(r)) for p, r in grouped], [(first.id, 2)])

    def test_unknown_test(self):
        patient = self.make_patient()
        with self.assertRaises(LookupError):
            self.store.add_lab_request(patient.id, ['LAB-TEST-999'])


class LabCatalogTest(StoreTestCase):

    def test_add_lab_test_with_ranges(self):
        test = self.store.add_lab_test({
            'name': 'Lipid Profile', 'category': 'Chemistry', 'price': 7000,
            'ranges': [{'name': 'HDL', 'normal_range': '>40', 'unit': 'mg/dL'}],
        })
        self.assertEqual(test.id, 'LAB-TEST-008')
        self.assertEqual(test.ranges[0].name, 'HDL')

    def test_deleted_tests_are_hidden(self):
        self.store.delete_lab_test('LAB-TEST-007')
        self.assertNotIn('LAB-TEST-007', [t.id for t in self.store.list_lab_tests()])
        self.assertEqual(len(self.store.list_lab_tests(active_only=False)), 7)

    def test_search(self):
        self.assertEqual([t.id for t in self.store.search_lab_tests('serology')], ['LAB-TEST-006', 'LAB-TEST-007'])
