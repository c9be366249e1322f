import random
import unittest
from datetime import datetime

from ids import generate_claim_id, deposit_reference, slugify, timestamp_suffix
from laboratory import is_abnormal_value
from money import apply_discount, calculate_total, format_currency


class BillTotalsTest(unittest.TestCase):

    def test_total_is_sum_of_lines(self):
        items = [
            {'quantity': 2, 'unit_price': 1500},
            {'quantity': 1, 'unit_price': 3500},
            {'quantity': 10, 'unit_price': 200},
        ]
        self.assertEqual(calculate_total(items), 8500)

    def test_total_ignores_order(self):
        items = [{'quantity': q, 'unit_price': p} for q, p in ((3, 100), (1, 2500), (7, 40), (2, 999))]
        expected = calculate_total(items)
        for seed in range(5):
            shuffled = list(items)
            random.Random(seed).shuffle(shuffled)
            self.assertEqual(calculate_total(shuffled), expected)

    def test_empty_bill(self):
        self.assertEqual(calculate_total([]), 0)

    def test_discount(self):
        self.assertEqual(apply_discount(10000, 20), 8000)
        self.assertEqual(apply_discount(10000, None), 10000)
        self.assertEqual(apply_discount(333, 10), 300)

    def test_format_currency(self):
        self.assertEqual(format_currency(1250000), "₦1,250,000")
        self.assertEqual(format_currency(None), "₦0")


class IdentifierTest(unittest.TestCase):

    def setUp(self):
        self.now = datetime(2026, 3, 10, 9, 30)

    def test_claim_id_shape(self):
        claim_id = generate_claim_id('PHARM', self.now)
        prefix, department, stamp, suffix = claim_id.split('-')
        self.assertEqual((prefix, department), ('HMO', 'PHARM'))
        self.assertEqual(stamp, timestamp_suffix(self.now))
        self.assertEqual(len(suffix), 3)

    def test_deposit_reference(self):
        self.assertTrue(deposit_reference(self.now).startswith('DEP-20260310-'))

    def test_slugify(self):
        self.assertEqual(slugify('Total Bilirubin'), 'total-bilirubin')


class AbnormalValueTest(unittest.TestCase):

    def test_inside_and_outside_a_range(self):
        self.assertFalse(is_abnormal_value('13.5', '12-16'))
        self.assertTrue(is_abnormal_value('9.8', '12-16'))
        self.assertTrue(is_abnormal_value('17 g/dL', '12-16'))

    def test_upper_limit(self):
        self.assertFalse(is_abnormal_value('0.8', '<1.2'))
        self.assertTrue(is_abnormal_value('1.2', '<1.2'))

    def test_lower_limit(self):
        self.assertFalse(is_abnormal_value('60', '>40'))
        self.assertTrue(is_abnormal_value('40', '>40'))

    def test_qualitative_ranges_are_never_flagged(self):
        self.assertFalse(is_abnormal_value('Positive', 'Negative'))
        self.assertFalse(is_abnormal_value('3', 'Negative, Trace'))
        self.assertFalse(is_abnormal_value('Reactive', 'Non-reactive'))

    def test_non_numeric_value(self):
        self.assertFalse(is_abnormal_value('see comment', '70-100'))
        self.assertFalse(is_abnormal_value('', '70-100'))
