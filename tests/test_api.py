from app import app
from tests.base import StoreTestCase


class APITestCase(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.client = app.test_client()

    def create_patient(self, **overrides):
        body = {
            'first_name': 'Amaka', 'last_name': 'Okonkwo', 'gender': 'Female', 'age': 34,
            'phone': '08031234567', 'patient_type': 'cash',
        }
        body.update(overrides)
        return self.client.post('/patients', json=body)


class PatientRoutesTest(APITestCase):

    def test_create_and_fetch(self):
        response = self.create_patient()
        self.assertEqual(response.status_code, 201)
        patient = response.get_json()['patient']
        self.assertEqual(patient['id'], 'P-1001')
        self.assertEqual(patient['phone'], '+2348031234567')

        response = self.client.get('/patients/P-1001')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['first_name'], 'Amaka')

    def test_missing_patient(self):
        self.assertEqual(self.client.get('/patients/P-4040').status_code, 404)
        response = self.client.patch('/patients/P-4040', json={'first_name': 'Ada'})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['message'], 'Patient not found')

    def test_invalid_phone(self):
        response = self.create_patient(phone='555')
        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.get_json())
        self.assertEqual(self.client.get('/patients').get_json(), [])

    def test_required_names(self):
        response = self.create_patient(last_name='')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], 'last_name is required')

    def test_search(self):
        self.create_patient()
        self.create_patient(first_name='Chinedu', last_name='Eze')
        names = [p['first_name'] for p in self.client.get('/patients?q=eze').get_json()]
        self.assertEqual(names, ['Chinedu'])


class BillingRoutesTest(APITestCase):

    def setUp(self):
        super().setUp()
        self.create_patient()

    def test_deposit(self):
        response = self.client.post('/patients/P-1001/deposits', json={'amount': 5000, 'staff_name': 'Kemi Lawal'})
        self.assertEqual(response.status_code, 201)
        body = response.get_json()
        self.assertEqual(body['balance'], 5000)
        self.assertEqual(body['bill']['type'], 'deposit')
        self.assertEqual(len(self.client.get('/patients/P-1001/deposits').get_json()), 1)

    def test_negative_deposit(self):
        response = self.client.post('/patients/P-1001/deposits', json={'amount': -100})
        self.assertEqual(response.status_code, 400)

    def test_bill_payment_and_receipt(self):
        response = self.client.post('/bills', json={
            'patient_id': 'P-1001', 'type': 'other',
            'items': [{'description': 'Wound dressing', 'quantity': 2, 'unit_price': 1500}],
        })
        self.assertEqual(response.status_code, 201)
        bill_id = response.get_json()['bill']['id']

        response = self.client.post(f'/bills/{bill_id}/pay', json={'payment_method': 'card'})
        self.assertEqual(response.status_code, 400)

        response = self.client.post(f'/bills/{bill_id}/pay', json={'payment_method': 'cash'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['bill']['status'], 'paid')

        receipt = self.client.get(f'/receipt/{bill_id}')
        self.assertEqual(receipt.status_code, 200)
        self.assertEqual(receipt.headers['Content-Type'], 'application/pdf')
        self.assertTrue(receipt.data.startswith(b'%PDF'))
        self.assertIn(f'Amaka_Okonkwo_receipt_{bill_id}.pdf', receipt.headers['Content-Disposition'])

    def test_receipt_for_missing_bill(self):
        self.assertEqual(self.client.get('/receipt/BILL-0000').status_code, 404)


class ClaimRoutesTest(APITestCase):

    def test_refresh_and_approve(self):
        self.create_patient(
            patient_type='hmo', hmo_provider='Hygeia HMO', policy_number='POL-204311',
            visits=[{'type': 'Consultation', 'diagnosis': 'With HMO: Malaria'}],
        )
        self.client.post('/bills', json={
            'patient_id': 'P-1001', 'type': 'pharmacy', 'status': 'hmo_pending', 'source': 'pharmacy',
            'items': [{'description': 'MED001 - Paracetamol 500mg', 'quantity': 10, 'unit_price': 200}],
        })

        created = self.client.post('/hmo_claims/refresh').get_json()['created']
        self.assertEqual(len(created), 1)
        claim_id = created[0]['id']
        self.assertEqual(created[0]['items'][0]['total'], 2000)
        self.assertEqual(self.client.post('/hmo_claims/refresh').get_json()['created'], [])

        response = self.client.post(f'/hmo_claims/{claim_id}/process', json={'action': 'reject'})
        self.assertEqual(response.status_code, 400)

        response = self.client.post(f'/hmo_claims/{claim_id}/process', json={
            'action': 'approve', 'approval_code': 'APV-900', 'processed_by': 'Femi Oladipo',
        })
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body['status'], 'completed')
        self.assertTrue(all(item['approved'] for item in body['items']))

        visit = self.client.get('/patients/P-1001/visits').get_json()[-1]
        self.assertEqual(visit['diagnosis'], 'Malaria')

    def test_unknown_claim(self):
        self.assertEqual(self.client.get('/hmo_claims/HMO-NOPE').status_code, 404)
        response = self.client.post('/hmo_claims/HMO-NOPE/process', json={'action': 'approve'})
        self.assertEqual(response.status_code, 404)
