import logging

from errors import InsufficientStock
from ids import next_numeric_id
from models import Bill, Consumable, Injection, InjectionRequest, Medicine, Patient, Prescription, PrescriptionItem
from workflow import release, route_to

logger = logging.getLogger(__name__)

# Consumables charged with every injection, by category.
injection_consumables = ('syringe', 'needle', 'swabs')


class PharmacyDesk:
    """Prescriptions from the doctor through the cash point to dispensing."""

    def _prescription_item(self, entry):
        medicine = self.require(Medicine, entry.get('medicine_id'), 'Medicine')
        return PrescriptionItem(
            medicine_id=medicine.id,
            name=medicine.name,
            dosage=medicine.dosage,
            form=medicine.form,
            quantity=entry.get('quantity') or 1,
            price=medicine.price,
            notes=entry.get('notes'),
        )

    def create_prescription(self, patient_id, items, doctor_name=None, notes=None, visit_id=None):
        patient = self.require(Patient, patient_id, 'Patient')
        with self.atomic():
            prescription = Prescription(
                id=next_numeric_id(self.session, Prescription.id, 'RX-'),
                patient_id=patient.id,
                patient_name=patient.name,
                visit_id=visit_id or (patient.current_visit.id if patient.current_visit else None),
                doctor_name=doctor_name,
                date=self.today(),
                payment_type=patient.patient_type,
                hmo_provider=patient.hmo_provider,
                notes=notes,
                doctor_prescriptions=(patient.current_visit.prescriptions if patient.current_visit else None),
            )
            for entry in items or []:
                prescription.items.append(self._prescription_item(entry))
            self.session.add(prescription)
        logger.info("Prescription %s for %s with %s item(s)", prescription.id, patient.id, len(prescription.items))
        return prescription

    def get_prescription(self, prescription_id):
        return self.session.get(Prescription, prescription_id)

    def get_prescriptions(self, status=None, patient_id=None):
        query = self.session.query(Prescription)
        if status:
            query = query.filter_by(status=status)
        if patient_id:
            query = query.filter_by(patient_id=patient_id)
        return query.order_by(Prescription.id).all()

    def update_prescription_items(self, prescription_id, items):
        prescription = self.require(Prescription, prescription_id, 'Prescription')
        if prescription.status != 'pending':
            raise ValueError("Only pending prescriptions can be edited")
        with self.atomic():
            prescription.items = [self._prescription_item(entry) for entry in items]
        return prescription

    def send_prescription_to_cash_point(self, prescription_id, consumables=None, staff_name=None):
        """Bill a prescription.

        Injectable items leave the prescription for the injection room with a
        bill each; everything else goes on one pharmacy bill together with the
        selected consumables. HMO patients are billed ``hmo_pending`` and sent
        to the HMO desk, cash patients to the cash point.
        """
        prescription = self.require(Prescription, prescription_id, 'Prescription')
        if not prescription.items:
            raise ValueError("No medicines added")
        if prescription.status != 'pending':
            raise ValueError(f"Prescription is already {prescription.status}")

        patient = prescription.patient
        injectables = [item for item in prescription.items if item.is_injectable]
        others = [item for item in prescription.items if not item.is_injectable]
        status = 'hmo_pending' if patient.is_hmo else 'pending'

        with self.atomic():
            bill = None
            self._cancel_superseded_bill(prescription)
            if others or consumables:
                lines = [
                    {
                        'description': f"{item.medicine_id} - {item.name} {item.dosage}",
                        'quantity': item.quantity,
                        'unit_price': item.price,
                        'medicine_id': item.medicine_id,
                        'payment_status': 'pending',
                        'dispensed': False,
                    }
                    for item in others
                ]
                for entry in consumables or []:
                    consumable = self.require(Consumable, entry.get('consumable_id'), 'Consumable')
                    lines.append({
                        'description': f"Consumable: {consumable.name}",
                        'quantity': entry.get('quantity') or 1,
                        'unit_price': consumable.price,
                        'consumable_id': consumable.id,
                        'is_consumable': True,
                        'dispensed': False,
                    })
                bill = self.add_bill({
                    'patient_id': patient.id,
                    'type': 'pharmacy',
                    'status': status,
                    'source': 'pharmacy',
                    'visit_id': prescription.visit_id,
                    'items': lines,
                })
                prescription.bill_id = bill.id

            if injectables:
                self._create_injection_request(patient, prescription, injectables, status)

            prescription.status = 'hmo_pending' if patient.is_hmo else 'billed'
            if patient.current_visit is not None:
                owner = 'hmo' if patient.is_hmo else 'cash_point'
                self.advance_visit(patient, route_to(owner))
            if patient.is_hmo:
                self.refresh_hmo_claims()
        logger.info("Prescription %s sent to %s", prescription.id, 'HMO' if patient.is_hmo else 'cash point')
        return bill

    def _cancel_superseded_bill(self, prescription):
        previous = self.session.get(Bill, prescription.bill_id) if prescription.bill_id else None
        if previous is None or previous.status in ('paid', 'cancelled'):
            return
        previous.status = 'cancelled'
        previous.notes = f"Superseded when {prescription.id} was sent again"
        prescription.bill_id = None
        logger.info("Bill %s superseded by a new bill for %s", previous.id, prescription.id)

    def _create_injection_request(self, patient, prescription, injectables, bill_status):
        visit = patient.current_visit
        if visit is None:
            raise ValueError("No visit record found")

        request = visit.injection_request
        if request is None:
            request = InjectionRequest(
                id=next_numeric_id(self.session, InjectionRequest.id, 'INJ-'),
                visit_id=visit.id,
                patient_id=patient.id,
                patient_name=patient.name,
                doctor_name=prescription.doctor_name,
                prescription_id=prescription.id,
                date=self.today(),
                status='not_paid',
                doctor_prescriptions=prescription.doctor_prescriptions,
            )
            visit.injection_request = request
        elif request.prescription_id == prescription.id:
            # a re-sent prescription keeps the injections it already raised
            raised = {injection.medicine_id for injection in request.injections}
            injectables = [item for item in injectables if item.medicine_id not in raised]

        extras = []
        for category in injection_consumables:
            options = self.get_consumables_by_category(category)
            if options:
                extras.append(options[0])

        for item in injectables:
            injection = Injection(
                medicine_id=item.medicine_id,
                name=item.name,
                dosage=item.dosage,
                route='IV',
                quantity=item.quantity,
                price=item.price,
                notes=item.notes,
                sent_to_cash_point=True,
            )
            lines = [{
                'description': injection.description,
                'quantity': item.quantity,
                'unit_price': item.price,
                'medicine_id': item.medicine_id,
                'is_injectable': True,
            }]
            lines.extend(
                {
                    'description': f"Consumable: {consumable.name}",
                    'quantity': 1,
                    'unit_price': consumable.price,
                    'consumable_id': consumable.id,
                    'is_consumable': True,
                }
                for consumable in extras
            )
            bill = self.add_bill({
                'patient_id': patient.id,
                'type': 'medication',
                'status': bill_status,
                'source': 'injection_room',
                'destination': 'injection',
                'visit_id': visit.id,
                'items': lines,
            })
            injection.bill_id = bill.id
            request.injections.append(injection)
        self.session.flush()
        logger.info("Injection request %s holds %s injection(s)", request.id, len(request.injections))
        return request

    def dispense_prescription(self, prescription_id, staff_name):
        """Hand out every non-injectable item and the billed consumables.

        All stock is checked before anything is decremented, so a shortfall
        leaves stock and the prescription exactly as they were.
        """
        prescription = self.require(Prescription, prescription_id, 'Prescription')
        if not prescription.is_dispensable:
            raise ValueError(f"Prescription cannot be dispensed while {prescription.status}")

        bill = self.session.get(Bill, prescription.bill_id) if prescription.bill_id else None
        items = [item for item in prescription.items if not item.is_injectable and not item.dispensed]
        consumable_lines = [line for line in (bill.items if bill else []) if line.consumable_id]

        needed = {}
        for item in items:
            key = (Medicine, item.medicine_id)
            needed[key] = needed.get(key, 0) + item.quantity
        for line in consumable_lines:
            key = (Consumable, line.consumable_id)
            needed[key] = needed.get(key, 0) + line.quantity

        stock = {}
        for (model, record_id), quantity in needed.items():
            record = self.require(model, record_id, model.__name__)
            if record.stock < quantity:
                logger.warning("Dispensing %s blocked: %s has %s, needs %s",
                               prescription.id, record.name, record.stock, quantity)
                raise InsufficientStock(record.name, record.stock, quantity)
            stock[(model, record_id)] = record

        patient = prescription.patient
        now = self.now()
        with self.atomic():
            for key, quantity in needed.items():
                if not self._decrease_stock(stock[key], quantity):
                    raise InsufficientStock(stock[key].name, stock[key].stock, quantity)

            for item in items:
                item.dispensed = True
                item.payment_status = 'dispensed'
            if bill:
                for line in bill.items:
                    line.dispensed = True
                bill.all_items_dispensed = True

            prescription.status = 'dispensed'
            prescription.all_items_dispensed = True
            prescription.dispensed_by = staff_name
            prescription.dispensed_at = now

            visit = patient.current_visit
            if visit is not None:
                dispensed = list(visit.prescriptions or []) + [
                    f"{item.name} {item.dosage} - {item.quantity} units" for item in items
                ]
                note = f"Pharmacy Notes ({now:%Y-%m-%d}): Medications and consumables dispensed by {staff_name}"
                if visit.workflow_owner in ('pharmacy', 'cash_point', 'hmo'):
                    self.advance_visit(patient, release(note=note, prescriptions=dispensed))
                else:
                    self.advance_visit(patient, route_to(visit.workflow_owner, note=note, prescriptions=dispensed))
        logger.info("Prescription %s dispensed by %s", prescription.id, staff_name)
        return prescription
