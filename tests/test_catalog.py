from app import app
from tests.base import StoreTestCase


class StockTest(StoreTestCase):

    def test_decrease_refuses_to_go_negative(self):
        self.assertTrue(self.store.decrease_medicine_stock('MED002', 100))
        self.assertFalse(self.store.decrease_medicine_stock('MED002', 201))
        self.assertEqual(self.store.get_medicine('MED002').stock, 200)

    def test_increase(self):
        self.assertEqual(self.store.increase_consumable_stock('CONS-009', 12), 20)
        self.assertEqual(self.store.increase_vaccine_stock('VAC-002', 5), 105)
        self.assertTrue(self.store.decrease_vaccine_stock('VAC-002', 105))
        self.assertTrue(self.store.decrease_consumable_stock('CONS-009', 20))

    def test_quantity_must_be_positive(self):
        with self.assertRaises(ValueError):
            self.store.increase_medicine_stock('MED001', 0)

    def test_unknown_item(self):
        with self.assertRaises(LookupError):
            self.store.decrease_medicine_stock('MED999', 1)


class ConsumableTest(StoreTestCase):

    def test_low_stock(self):
        self.assertEqual([c.id for c in self.store.get_low_stock_consumables()], ['CONS-009'])

    def test_recommended_for_injection(self):
        recommended = self.store.get_recommended_consumables('injection')
        self.assertEqual([c.category for c in recommended], ['syringe', 'needle', 'swabs', 'plaster', 'gloves'])
        self.assertEqual(self.store.get_recommended_consumables('tablet'), [])

    def test_deleted_consumables_are_not_offered(self):
        self.store.delete_consumable('CONS-004')
        self.assertNotIn('CONS-004', [c.id for c in self.store.list_consumables()])
        categories = [c.category for c in self.store.get_recommended_consumables('injection')]
        self.assertNotIn('plaster', categories)


class VaccineCatalogTest(StoreTestCase):

    def test_active_vaccines_have_stock(self):
        self.store.decrease_vaccine_stock('VAC-004', 30)
        self.assertNotIn('VAC-004', [v.id for v in self.store.get_active_vaccines()])

    def test_age_appropriate(self):
        ids = {v.id for v in self.store.get_age_appropriate_vaccines(0)}
        self.assertEqual(ids, {'VAC-001', 'VAC-002'})


class ReferenceDataTest(StoreTestCase):

    def test_staff_ids_and_doctors(self):
        doctor = self.make_doctor()
        nurse = self.store.add_staff({'name': 'Bola Ade', 'role': 'vitals'})
        self.assertEqual((doctor.id, nurse.id), ('STAFF-001', 'STAFF-002'))
        self.store.update_staff(doctor.id, {'status': 'on_leave'})
        self.assertEqual(self.store.get_doctors(), [])

    def test_providers_and_departments(self):
        provider = self.store.add_hmo_provider({'name': 'Hygeia HMO'})
        department = self.store.add_department({'name': 'Pediatrics'})
        self.assertEqual((provider.id, department.id), ('HMO-001', 'DEPT-001'))
        self.store.update_hmo_provider(provider.id, {'is_active': False})
        self.assertEqual(self.store.list_hmo_providers(active_only=True), [])
        self.store.delete_department(department.id)
        self.assertIsNone(self.store.get_department(department.id))

    def test_unknown_field(self):
        with self.assertRaises(ValueError):
            self.store.add_department({'name': 'Radiology', 'floor': 2})

    def test_consultation_fees(self):
        self.assertEqual(self.store.get_consultation_fee_by_doctor('STAFF-404'), 5000)
        pediatrician = self.make_doctor('Ife Bankole', 'Pediatrics')
        self.assertEqual(self.store.get_consultation_fee_by_doctor(pediatrician.id), 7500)
        self.assertEqual(self.store.consultation_fee_for_department('Cardiology'), 10000)

    def test_lab_test_by_name(self):
        self.assertEqual(self.store.get_lab_test_by_name('malaria parasite').id, 'LAB-TEST-002')


class CatalogRoutesTest(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.client = app.test_client()

    def test_stock_adjustment(self):
        response = self.client.post('/medicines/MED001/stock', json={'action': 'decrease', 'quantity': 20})
        self.assertEqual(response.get_json(), {'id': 'MED001', 'stock': 480})

        response = self.client.post('/vaccines/VAC-001/stock', json={'action': 'decrease', 'quantity': 51})
        self.assertEqual(response.status_code, 400)

        response = self.client.post('/consumables/CONS-009/stock', json={'quantity': 2})
        self.assertEqual(response.get_json()['stock'], 10)

    def test_listings(self):
        self.client.delete('/consumables/CONS-001')
        ids = [c['id'] for c in self.client.get('/consumables').get_json()]
        self.assertNotIn('CONS-001', ids)
        self.assertEqual(len(self.client.get('/vaccines?active=true').get_json()), 4)
        self.assertEqual(self.client.get('/lab_tests', query_string={'name': 'Widal Test'}).get_json()[0]['id'], 'LAB-TEST-007')
        self.assertEqual(self.client.get('/doctors').get_json(), [])
