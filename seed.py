from random import choice, randint
from faker import Faker
from datetime import date

# Local imports
from app import app  # Flask app instance
from models import db, genders
from store import HospitalStore
from catalog_seed import medicines, consumables, vaccines, lab_tests


fake = Faker()

staff_members = (
    ('Adaeze Okafor', 'doctor', 'General Medicine'),
    ('Tunde Bakare', 'doctor', 'Pediatrics'),
    ('Ngozi Eze', 'doctor', 'Cardiology'),
    ('Bola Adeyemi', 'vitals', 'Nursing'),
    ('Ifeanyi Obi', 'injection_room', 'Nursing'),
    ('Kemi Lawal', 'cash_point', 'Accounts'),
    ('Musa Ibrahim', 'lab', 'Laboratory'),
    ('Chioma Nwosu', 'pharmacist', 'Pharmacy'),
    ('Femi Oladipo', 'hmo_desk', 'HMO'),
)


def nigerian_phone():
    return f"080{randint(30_000_000, 39_999_999)}"


def seed_catalogs():
    for label, records in (
        ('medicines', medicines()),
        ('consumables', consumables()),
        ('vaccines', vaccines()),
        ('lab tests', lab_tests()),
    ):
        db.session.add_all(records)
        db.session.commit()
        print(f"✅ Seeded {len(records)} {label}.")


def seed_staff(store):
    for name, role, department in staff_members:
        store.add_staff({
            'name': name,
            'username': name.split()[0].lower(),
            'role': role,
            'department': department,
            'email': f"{name.split()[0].lower()}@ehospital.com",
            'phone': nigerian_phone(),
            'join_date': fake.date_between(start_date=date(2015, 1, 1), end_date=date(2023, 12, 31)),
        })
    print(f"✅ Seeded {len(staff_members)} staff.")


def seed_providers(store):
    for name in ('Hygeia HMO', 'AXA Mansard', 'Reliance HMO'):
        store.add_hmo_provider({'name': name, 'contact_person': fake.name(), 'phone': nigerian_phone()})
    for name in ('General Medicine', 'Pediatrics', 'Cardiology', 'Laboratory', 'Pharmacy'):
        store.add_department({'name': name})
    print("✅ Seeded HMO providers and departments.")


def create_patient(store, patient_type):
    providers = store.list_hmo_providers()
    data = {
        'first_name': fake.first_name(),
        'last_name': fake.last_name(),
        'gender': choice([g for g in genders if g != 'Unknown']),
        'dob': fake.date_of_birth(minimum_age=1, maximum_age=80),
        'phone': nigerian_phone(),
        'address': fake.address().replace('\n', ', '),
        'patient_type': patient_type,
    }
    if patient_type == 'hmo':
        data['hmo_provider'] = choice(providers).name
        data['policy_number'] = f"POL-{randint(100000, 999999)}"
    return store.add_patient(data, visits=[{
        'type': 'Consultation',
        'diagnosis': choice(['Pending', 'With Vitals: Routine check', 'Malaria']),
    }])


if __name__ == '__main__':
    with app.app_context():
        print("🔄 Dropping and recreating tables...")
        db.drop_all()
        db.create_all()

        store = HospitalStore(db.session)
        store.settings

        print("🌱 Seeding catalogs...")
        seed_catalogs()

        print("🌱 Seeding staff...")
        seed_staff(store)
        seed_providers(store)

        print("🌱 Seeding patients...")
        patients = [create_patient(store, choice(['cash', 'hmo'])) for _ in range(10)]
        print(f"✅ Seeded {len(patients)} patients.")

        print("🎉 Done seeding!")
