from models import Consumable, LabTest, LabTestRange, Medicine, Vaccine


def medicines():
    return [
        # Analgesics and antimalarials
        Medicine(id="MED001", name="Paracetamol", dosage="500mg", form="tablet", category="Analgesic", price=200, stock=500),
        Medicine(id="MED002", name="Ibuprofen", dosage="400mg", form="tablet", category="Analgesic", price=300, stock=300),
        Medicine(id="MED003", name="Artemether/Lumefantrine", dosage="80/480mg", form="tablet", category="Antimalarial", price=1500, stock=200),
        Medicine(id="MED004", name="Amoxicillin", dosage="500mg", form="capsule", category="Antibiotic", price=800, stock=250),
        Medicine(id="MED005", name="Ciprofloxacin", dosage="500mg", form="tablet", category="Antibiotic", price=900, stock=150),
        Medicine(id="MED006", name="Metronidazole", dosage="400mg", form="tablet", category="Antibiotic", price=400, stock=200),
        Medicine(id="MED007", name="Vitamin C", dosage="100mg", form="tablet", category="Supplement", price=150, stock=400),
        Medicine(id="MED008", name="Cough Syrup", dosage="100ml", form="syrup", category="Respiratory", price=1200, stock=80),
        Medicine(id="MED009", name="Hydrocortisone Cream", dosage="1%", form="cream", category="Dermatological", price=1000, stock=60),

        # Injectables
        Medicine(id="MED010", name="Artemether Injection", dosage="80mg", form="injection", category="Antimalarial", price=2500, stock=100),
        Medicine(id="MED011", name="Ceftriaxone", dosage="1g", form="injection", category="Antibiotic", price=3000, stock=90),
        Medicine(id="MED012", name="Diclofenac Injection", dosage="75mg", form="injection", category="Analgesic", price=1200, stock=120),
    ]


def consumables():
    return [
        Consumable(id="CONS-001", name="Syringe 5ml", category="syringe", price=100, stock=1000, unit="piece"),
        Consumable(id="CONS-002", name="Needle 21G", category="needle", price=50, stock=1000, unit="piece"),
        Consumable(id="CONS-003", name="Alcohol Swabs", category="swabs", price=50, stock=2000, unit="piece"),
        Consumable(id="CONS-004", name="Plaster", category="plaster", price=100, stock=500, unit="roll"),
        Consumable(id="CONS-005", name="Examination Gloves", category="gloves", price=150, stock=800, unit="pair"),
        Consumable(id="CONS-006", name="IV Fluid 500ml", category="iv_bag", price=1500, stock=200, unit="bag"),
        Consumable(id="CONS-007", name="Cannula 20G", category="cannula", price=500, stock=300, unit="piece"),
        Consumable(id="CONS-008", name="Giving Set", category="iv_set", price=600, stock=200, unit="piece"),
        Consumable(id="CONS-009", name="Sterile Gauze", category="gauze", price=200, stock=8, min_stock_level=10, unit="pack"),
    ]


def vaccines():
    return [
        Vaccine(id="VAC-001", name="Hepatitis B", type="Viral", total_required_doses=3, interval_days=30,
                stock=50, price=5000, is_government_provided=False),
        Vaccine(id="VAC-002", name="Tetanus Toxoid", type="Bacterial", total_required_doses=1,
                stock=100, price=2000, is_government_provided=False),
        Vaccine(id="VAC-003", name="Yellow Fever", type="Viral", total_required_doses=1,
                stock=40, price=0, is_government_provided=True, min_age=1),
        Vaccine(id="VAC-004", name="HPV", type="Viral", total_required_doses=2, interval_days=180,
                stock=30, price=15000, is_government_provided=False, min_age=9, max_age=45),
    ]


def lab_tests():
    full_blood_count = LabTest(
        id="LAB-TEST-001", name="Full Blood Count", category="Hematology", price=3500,
        description="Complete blood count with differentials",
    )
    full_blood_count.ranges = [
        LabTestRange(name="Hemoglobin", normal_range="12-16", unit="g/dL"),
        LabTestRange(name="WBC", normal_range="4-11", unit="x10^9/L"),
        LabTestRange(name="Platelets", normal_range="150-400", unit="x10^9/L"),
    ]

    liver_function = LabTest(
        id="LAB-TEST-005", name="Liver Function Test", category="Chemistry", price=6000,
    )
    liver_function.ranges = [
        LabTestRange(name="ALT", normal_range="7-56", unit="U/L"),
        LabTestRange(name="AST", normal_range="10-40", unit="U/L"),
        LabTestRange(name="Total Bilirubin", normal_range="<1.2", unit="mg/dL"),
    ]

    return [
        full_blood_count,
        LabTest(id="LAB-TEST-002", name="Malaria Parasite", category="Parasitology", price=1500,
                normal_range="Negative"),
        LabTest(id="LAB-TEST-003", name="Fasting Blood Sugar", category="Chemistry", price=1000,
                normal_range="70-100", unit="mg/dL"),
        LabTest(id="LAB-TEST-004", name="Urinalysis", category="Urinalysis", price=1200,
                normal_range="Negative, Trace"),
        liver_function,
        LabTest(id="LAB-TEST-006", name="HIV Screening", category="Serology", price=2000,
                normal_range="Non-reactive"),
        LabTest(id="LAB-TEST-007", name="Widal Test", category="Serology", price=1500,
                normal_range="<1:80"),
    ]
