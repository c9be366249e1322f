import unittest
from datetime import date

from workflow import (
    Routing, VisitState, advance, annotate, parse_legacy_diagnosis, release, render_diagnosis, route_to, stamp,
)


class LegacyDiagnosisTest(unittest.TestCase):

    def test_department_tag(self):
        self.assertEqual(parse_legacy_diagnosis("With Pharmacy: Malaria"), Routing('pharmacy', 'Malaria'))

    def test_multi_word_department(self):
        self.assertEqual(
            parse_legacy_diagnosis("With Injection Room Later: Typhoid"),
            Routing('injection_room_later', 'Typhoid'),
        )

    def test_only_first_separator_splits(self):
        routing = parse_legacy_diagnosis("With HMO: Diagnosis: suspected TB: follow up")
        self.assertEqual(routing.owner, 'hmo')
        self.assertEqual(routing.clinical_note, "Diagnosis: suspected TB: follow up")

    def test_sentinels(self):
        self.assertEqual(parse_legacy_diagnosis("Pending"), Routing('pending', ''))
        self.assertEqual(parse_legacy_diagnosis("Cancelled"), Routing('cancelled', ''))
        self.assertEqual(parse_legacy_diagnosis("Vaccination Denied"), Routing('vaccination_denied', ''))

    def test_plain_text_has_no_owner(self):
        self.assertEqual(parse_legacy_diagnosis("Hypertension"), Routing(None, "Hypertension"))

    def test_unknown_department_is_plain_text(self):
        self.assertEqual(parse_legacy_diagnosis("With Radiology: X-ray"), Routing(None, "With Radiology: X-ray"))

    def test_admission(self):
        self.assertEqual(parse_legacy_diagnosis("For Admission: Sepsis"), Routing('admission', 'Sepsis'))

    def test_render_is_inverse_of_parse(self):
        for text in ("With Laboratory: Malaria test", "With Cash Point: Consultation", "Pending", "Fever"):
            routing = parse_legacy_diagnosis(text)
            self.assertEqual(render_diagnosis(*routing), text)
            self.assertEqual(routing.label, text)


class AdvanceTest(unittest.TestCase):

    def setUp(self):
        self.state = VisitState('pharmacy', 'Malaria', 'Seen by doctor', {})

    def test_round_trip_keeps_clinical_note(self):
        there = advance(self.state, route_to('hmo'))
        back = advance(there, route_to('pharmacy'))
        self.assertEqual(render_diagnosis(back.owner, back.clinical_note), "With Pharmacy: Malaria")

    def test_round_trip_with_colons_in_note(self):
        state = VisitState('laboratory', 'Diagnosis: suspected TB: follow up', None, {})
        back = advance(advance(state, route_to('cash_point')), route_to('laboratory'))
        self.assertEqual(back.clinical_note, 'Diagnosis: suspected TB: follow up')

    def test_input_state_is_not_modified(self):
        advance(self.state, route_to('cash_point', note="Billed", doctor='Dr. Obi'))
        self.assertEqual(self.state, VisitState('pharmacy', 'Malaria', 'Seen by doctor', {}))

    def test_notes_are_appended(self):
        state = advance(self.state, annotate(note="Dispensed"))
        self.assertEqual(state.notes, "Seen by doctor\n\nDispensed")
        self.assertEqual(state.owner, 'pharmacy')

    def test_release_drops_owner_only(self):
        state = advance(self.state, release())
        self.assertIsNone(state.owner)
        self.assertEqual(render_diagnosis(state.owner, state.clinical_note), 'Malaria')

    def test_release_can_replace_clinical_note(self):
        state = advance(self.state, release(clinical_note='Malaria, resolved'))
        self.assertEqual(state.clinical_note, 'Malaria, resolved')

    def test_fields_are_carried(self):
        state = advance(self.state, route_to('vitals', doctor='Dr. Obi'))
        self.assertEqual(state.changes, {'doctor': 'Dr. Obi'})

    def test_unknown_owner_rejected(self):
        with self.assertRaises(ValueError):
            advance(self.state, route_to('radiology'))


class StampTest(unittest.TestCase):

    def test_stamp(self):
        self.assertEqual(stamp('Nurse Bola', date(2026, 3, 10), 'Vitals taken'), 'Nurse Bola (2026-03-10): Vitals taken')
