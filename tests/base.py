import unittest
from datetime import datetime

from app import app
from catalog_seed import consumables, lab_tests, medicines, vaccines
from models import db, hospital_tz
from store import HospitalStore

FIXED_NOW = hospital_tz.localize(datetime(2026, 3, 10, 9, 30))


class StoreTestCase(unittest.TestCase):
    """Fresh in-memory database with the seed catalogs and a store on a fixed clock."""

    def setUp(self):
        app.config['TESTING'] = True
        self.ctx = app.app_context()
        self.ctx.push()
        db.create_all()

        db.session.add_all(medicines() + consumables() + vaccines() + lab_tests())
        db.session.commit()

        self.store = HospitalStore(db.session, clock=lambda: FIXED_NOW)

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def make_patient(self, patient_type='cash', diagnosis=None, **extra):
        data = {
            'first_name': 'Amaka',
            'last_name': 'Okonkwo',
            'gender': 'Female',
            'age': 34,
            'phone': '08031234567',
            'patient_type': patient_type,
        }
        if patient_type == 'hmo':
            data['hmo_provider'] = 'Hygeia HMO'
            data['policy_number'] = 'POL-204311'
        data.update(extra)
        visits = [{'type': 'Consultation', 'diagnosis': diagnosis}] if diagnosis is not None else None
        return self.store.add_patient(data, visits=visits)

    def make_doctor(self, name='Adaeze Okafor', department='General Medicine'):
        return self.store.add_staff({'name': name, 'role': 'doctor', 'department': department})
