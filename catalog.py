import logging

from sqlalchemy import or_

from ids import next_numeric_id
from models import (
    Consumable, Department, HMOProvider, HospitalSettings, LabTest, LabTestRange, Medicine, Staff, Vaccine,
)

logger = logging.getLogger(__name__)

recommended_consumables = {
    'injection': ('syringe', 'needle', 'swabs', 'plaster', 'gloves'),
    'iv': ('iv_bag', 'cannula', 'iv_set', 'swabs', 'plaster', 'gloves'),
    'topical': ('gloves', 'gauze'),
    'oral': (),
    'tablet': (),
    'capsule': (),
}

specialist_departments = ('cardiology', 'orthopedics', 'obstetrics & gynecology', 'ophthalmology')


def _assign(record, data, allowed):
    unknown = set(data) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    for key, value in data.items():
        setattr(record, key, value)
    return record


class CatalogDesk:
    """Reference data: stock-keeping catalogs, staff, HMO providers, departments and settings."""

    staff_fields = ('name', 'username', 'role', 'email', 'phone', 'department', 'status', 'join_date')
    provider_fields = ('name', 'contact_person', 'email', 'phone', 'is_active')
    department_fields = ('name', 'head', 'is_active')
    lab_test_fields = ('name', 'description', 'category', 'price', 'normal_range', 'unit', 'active')
    settings_fields = (
        'hospital_name', 'address', 'phone', 'email', 'tax_id', 'consultation_fee',
        'general_medicine_fee', 'pediatrics_fee', 'specialist_fee', 'staff_discount',
    )

    # --- stock ---

    def _decrease_stock(self, record, quantity):
        if quantity is None or quantity < 1:
            raise ValueError("Quantity must be at least 1")
        if record.stock < quantity:
            logger.warning("Not enough stock for %s: %s left, %s requested", record.id, record.stock, quantity)
            return False
        with self.atomic():
            record.stock -= quantity
        logger.info("Stock for %s decreased by %s to %s", record.id, quantity, record.stock)
        return True

    def _increase_stock(self, record, quantity):
        if quantity is None or quantity < 1:
            raise ValueError("Quantity must be at least 1")
        with self.atomic():
            record.stock += quantity
        logger.info("Stock for %s increased by %s to %s", record.id, quantity, record.stock)
        return record.stock

    # --- medicines ---

    def get_medicine(self, medicine_id):
        return self.session.get(Medicine, medicine_id)

    def list_medicines(self):
        return self.session.query(Medicine).order_by(Medicine.name).all()

    def search_medicines(self, query):
        pattern = f"%{query}%"
        return (
            self.session.query(Medicine)
            .filter(or_(Medicine.name.ilike(pattern), Medicine.category.ilike(pattern)))
            .order_by(Medicine.name)
            .all()
        )

    def decrease_medicine_stock(self, medicine_id, quantity):
        return self._decrease_stock(self.require(Medicine, medicine_id, 'Medicine'), quantity)

    def increase_medicine_stock(self, medicine_id, quantity):
        return self._increase_stock(self.require(Medicine, medicine_id, 'Medicine'), quantity)

    # --- consumables ---

    def get_consumable(self, consumable_id):
        return self.session.get(Consumable, consumable_id)

    def list_consumables(self, active_only=True):
        query = self.session.query(Consumable)
        if active_only:
            query = query.filter(Consumable.active.is_(True))
        return query.order_by(Consumable.name).all()

    def get_consumables_by_category(self, category):
        return self.session.query(Consumable).filter_by(category=category, active=True).all()

    def get_low_stock_consumables(self):
        return (
            self.session.query(Consumable)
            .filter(Consumable.active.is_(True), Consumable.stock <= Consumable.min_stock_level)
            .all()
        )

    def get_recommended_consumables(self, form):
        categories = recommended_consumables.get((form or '').lower(), ())
        if not categories:
            return []
        consumables = (
            self.session.query(Consumable)
            .filter(Consumable.active.is_(True), Consumable.category.in_(categories))
            .all()
        )
        # one per category, in the recommended order
        by_category = {}
        for consumable in consumables:
            by_category.setdefault(consumable.category, consumable)
        return [by_category[c] for c in categories if c in by_category]

    def delete_consumable(self, consumable_id):
        consumable = self.require(Consumable, consumable_id, 'Consumable')
        with self.atomic():
            consumable.active = False
        return consumable

    def decrease_consumable_stock(self, consumable_id, quantity):
        return self._decrease_stock(self.require(Consumable, consumable_id, 'Consumable'), quantity)

    def increase_consumable_stock(self, consumable_id, quantity):
        return self._increase_stock(self.require(Consumable, consumable_id, 'Consumable'), quantity)

    # --- vaccines ---

    def get_vaccine(self, vaccine_id):
        return self.session.get(Vaccine, vaccine_id)

    def list_vaccines(self):
        return self.session.query(Vaccine).order_by(Vaccine.name).all()

    def get_active_vaccines(self):
        return self.session.query(Vaccine).filter(Vaccine.stock > 0).order_by(Vaccine.name).all()

    def get_age_appropriate_vaccines(self, age):
        return [
            v for v in self.list_vaccines()
            if (v.min_age is None or age >= v.min_age) and (v.max_age is None or age <= v.max_age)
        ]

    def decrease_vaccine_stock(self, vaccine_id, quantity):
        return self._decrease_stock(self.require(Vaccine, vaccine_id, 'Vaccine'), quantity)

    def increase_vaccine_stock(self, vaccine_id, quantity):
        return self._increase_stock(self.require(Vaccine, vaccine_id, 'Vaccine'), quantity)

    # --- lab tests ---

    def add_lab_test(self, data):
        data = dict(data)
        ranges = data.pop('ranges', None) or []
        with self.atomic():
            test = LabTest(id=next_numeric_id(self.session, LabTest.id, 'LAB-TEST-', start=0, width=3))
            _assign(test, data, self.lab_test_fields)
            for entry in ranges:
                test.ranges.append(LabTestRange(
                    name=entry['name'],
                    normal_range=entry.get('normal_range'),
                    unit=entry.get('unit'),
                    category=entry.get('category'),
                ))
            self.session.add(test)
        logger.info("Lab test %s (%s) added", test.id, test.name)
        return test

    def update_lab_test(self, test_id, data):
        test = self.require(LabTest, test_id, 'Lab test')
        with self.atomic():
            _assign(test, data, self.lab_test_fields)
        return test

    def delete_lab_test(self, test_id):
        test = self.require(LabTest, test_id, 'Lab test')
        with self.atomic():
            test.active = False
        logger.info("Lab test %s deactivated", test_id)
        return test

    def get_lab_test(self, test_id):
        return self.session.get(LabTest, test_id)

    def get_lab_test_by_name(self, name):
        return self.session.query(LabTest).filter(LabTest.name.ilike(name)).first()

    def list_lab_tests(self, active_only=True):
        query = self.session.query(LabTest)
        if active_only:
            query = query.filter(LabTest.active.is_(True))
        return query.order_by(LabTest.id).all()

    def search_lab_tests(self, query):
        pattern = f"%{query}%"
        return (
            self.session.query(LabTest)
            .filter(LabTest.active.is_(True))
            .filter(or_(LabTest.name.ilike(pattern), LabTest.category.ilike(pattern)))
            .order_by(LabTest.name)
            .all()
        )

    # --- staff ---

    def add_staff(self, data):
        with self.atomic():
            staff = Staff(id=next_numeric_id(self.session, Staff.id, 'STAFF-', start=0, width=3))
            _assign(staff, data, self.staff_fields)
            self.session.add(staff)
        logger.info("Staff %s (%s) added", staff.id, staff.role)
        return staff

    def update_staff(self, staff_id, data):
        staff = self.require(Staff, staff_id, 'Staff')
        with self.atomic():
            _assign(staff, data, self.staff_fields)
        return staff

    def delete_staff(self, staff_id):
        staff = self.require(Staff, staff_id, 'Staff')
        with self.atomic():
            self.session.delete(staff)
        return True

    def get_staff(self, staff_id):
        return self.session.get(Staff, staff_id)

    def get_staff_by_name(self, name):
        return self.session.query(Staff).filter_by(name=name).first()

    def list_staff(self, role=None, active_only=False):
        query = self.session.query(Staff)
        if role:
            query = query.filter_by(role=role)
        if active_only:
            query = query.filter_by(status='active')
        return query.order_by(Staff.id).all()

    def get_doctors(self):
        return self.list_staff(role='doctor', active_only=True)

    # --- HMO providers ---

    def add_hmo_provider(self, data):
        with self.atomic():
            provider = HMOProvider(id=next_numeric_id(self.session, HMOProvider.id, 'HMO-', start=0, width=3))
            _assign(provider, data, self.provider_fields)
            self.session.add(provider)
        return provider

    def update_hmo_provider(self, provider_id, data):
        provider = self.require(HMOProvider, provider_id, 'HMO provider')
        with self.atomic():
            _assign(provider, data, self.provider_fields)
        return provider

    def delete_hmo_provider(self, provider_id):
        provider = self.require(HMOProvider, provider_id, 'HMO provider')
        with self.atomic():
            self.session.delete(provider)
        return True

    def get_hmo_provider(self, provider_id):
        return self.session.get(HMOProvider, provider_id)

    def list_hmo_providers(self, active_only=False):
        query = self.session.query(HMOProvider)
        if active_only:
            query = query.filter(HMOProvider.is_active.is_(True))
        return query.order_by(HMOProvider.id).all()

    # --- departments ---

    def add_department(self, data):
        with self.atomic():
            department = Department(id=next_numeric_id(self.session, Department.id, 'DEPT-', start=0, width=3))
            _assign(department, data, self.department_fields)
            self.session.add(department)
        return department

    def update_department(self, department_id, data):
        department = self.require(Department, department_id, 'Department')
        with self.atomic():
            _assign(department, data, self.department_fields)
        return department

    def delete_department(self, department_id):
        department = self.require(Department, department_id, 'Department')
        with self.atomic():
            self.session.delete(department)
        return True

    def get_department(self, department_id):
        return self.session.get(Department, department_id)

    def list_departments(self, active_only=False):
        query = self.session.query(Department)
        if active_only:
            query = query.filter(Department.is_active.is_(True))
        return query.order_by(Department.id).all()

    # --- settings ---

    @property
    def settings(self):
        settings = self.session.query(HospitalSettings).first()
        if settings is None:
            with self.atomic():
                settings = HospitalSettings(
                    hospital_name='eHospital',
                    consultation_fee=5000,
                    general_medicine_fee=5000,
                    pediatrics_fee=7500,
                    specialist_fee=10000,
                    staff_discount=20,
                )
                self.session.add(settings)
        return settings

    def update_hospital_settings(self, data):
        settings = self.settings
        with self.atomic():
            _assign(settings, data, self.settings_fields)
        logger.info("Hospital settings updated: %s", ', '.join(sorted(data)))
        return settings

    def consultation_fee_for_department(self, department):
        settings = self.settings
        department = (department or '').lower()
        if department == 'pediatrics':
            return settings.pediatrics_fee
        if department in specialist_departments:
            return settings.specialist_fee
        return settings.general_medicine_fee

    def get_consultation_fee_by_doctor(self, doctor_id):
        doctor = self.get_staff(doctor_id)
        if not doctor:
            return self.settings.general_medicine_fee
        return self.consultation_fee_for_department(doctor.department)
