# ========================
# tests/test_reconciliation.py
# ========================

import unittest
import os
import sys

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.merger.reconciliation import SchemaReconciler, project_row


class TestProjectRow(unittest.TestCase):
    """Test projection of rows onto the canonical schema."""

    def test_extra_columns_dropped_and_missing_filled(self):
        projected = project_row({'b': 5, 'c': 9}, ['a', 'b'])
        self.assertEqual(projected, {'a': '', 'b': 5})
        self.assertEqual(list(projected), ['a', 'b'])

    def test_schema_order_wins(self):
        projected = project_row({'b': 2, 'a': 1}, ['a', 'b'])
        self.assertEqual(list(projected), ['a', 'b'])

    def test_falsy_values_are_kept(self):
        self.assertEqual(project_row({'a': 0, 'b': None}, ['a', 'b']), {'a': 0, 'b': ''})


class TestSchemaReconciler(unittest.TestCase):
    """Test the canonical schema holder."""

    def setUp(self):
        self.reconciler = SchemaReconciler()

    def test_first_header_wins(self):
        self.assertFalse(self.reconciler.is_established)
        self.assertEqual(self.reconciler.establish(['a', 'b']), ['a', 'b'])
        self.assertEqual(self.reconciler.establish(['x', 'y', 'z']), ['a', 'b'])
        self.assertEqual(self.reconciler.schema, ['a', 'b'])

    def test_schema_is_a_copy(self):
        self.reconciler.establish(['a', 'b'])
        self.reconciler.schema.append('c')
        self.assertEqual(self.reconciler.schema, ['a', 'b'])

    def test_project_requires_schema(self):
        with self.assertRaises(RuntimeError):
            self.reconciler.project({'a': 1})

    def test_describe_degradation(self):
        self.reconciler.establish(['a', 'b'])

        degradation = self.reconciler.describe_degradation('second.csv', ['b', 'c'])
        self.assertEqual(degradation.file_name, 'second.csv')
        self.assertEqual(degradation.dropped_columns, ['c'])
        self.assertEqual(degradation.missing_columns, ['a'])

    def test_reordered_header_is_not_degraded(self):
        self.reconciler.establish(['a', 'b'])
        self.assertIsNone(self.reconciler.describe_degradation('same.csv', ['b', 'a']))

    def test_reset(self):
        self.reconciler.establish(['a'])
        self.reconciler.reset()
        self.assertIsNone(self.reconciler.schema)
        self.assertFalse(self.reconciler.is_established)


if __name__ == '__main__':
    unittest.main()
