"""
Unit tests for calculation reports.
"""

import unittest
from datetime import datetime

from pharmacalc.analysis.report import CalculationReporter
from pharmacalc.models.exposure_margin import ExposureMarginCalculator
from pharmacalc.models.material_requirement import TestMaterialCalculator, study_from_template
from pharmacalc.models.mrsd import MRSDCalculator


class TestCalculationReporter(unittest.TestCase):
    """Test report tables and HTML output."""

    def setUp(self):
        """Set up test fixtures."""
        self.reporter = CalculationReporter()
        self.records = [
            {
                'name': 'Working solution',
                'type': 'dilution',
                'status': 'ok',
                'result': {'v1': 1.0, 'v2': 10.0},
                'calculation_steps': ['C1 × V1 = C2 × V2', 'V1 = 1.0000 mL'],
                'error': None,
            },
            {
                'name': 'Broken <entry>',
                'type': 'stock_solution',
                'status': 'error',
                'result': None,
                'calculation_steps': [],
                'error': 'InvalidInputError: purity_percent must be in (0, 100], got 120',
            },
        ]

    def test_margin_table(self):
        """Test the multi-species margin table."""
        result = ExposureMarginCalculator().compare_multi_species_margin(
            [{'species': 'rat', 'noael': 100}, {'species': 'dog', 'noael': 10}], human_dose=1
        )
        df = self.reporter.margin_table(result)

        self.assertEqual(len(df), 2)
        self.assertIn('HED margin (x)', df.columns)
        self.assertEqual(df.loc[df['Most conservative'], 'Species key'].tolist(), ['dog'])

    def test_mrsd_table(self):
        """Test the MRSD table."""
        result = MRSDCalculator().calculate_mrsd([
            {'species': 'rat', 'noael': 50},
            {'species': 'dog', 'noael': 10},
        ])
        df = self.reporter.mrsd_table(result)
        self.assertEqual(df['selected'].sum(), 1)

    def test_material_requirement_table(self):
        """Test the test material table with subtotals and total."""
        result = TestMaterialCalculator().calculate_test_material([
            study_from_template('drf_4week', dose_levels=[100, 300, 1000]),
            study_from_template('dog_4week', dose_levels=[5, 15, 50]),
        ])
        df = self.reporter.test_material_table(result)

        self.assertEqual(len(df), 8 + 2 + 1)
        self.assertEqual(df['Group'].iloc[-1], 'Total')
        self.assertAlmostEqual(df['Calculated (mg)'].iloc[-1], result.grand_total_calculated)
        subtotals = df[df['Group'] == 'Subtotal']
        self.assertAlmostEqual(subtotals['Required (mg)'].sum(), result.grand_total_required)

    def test_species_reference_table(self):
        """Test the species reference table."""
        df = self.reporter.species_reference_table()

        self.assertAlmostEqual(df.loc['human', 'km_ratio'], 1.0)
        self.assertAlmostEqual(df.loc['rat', 'km_ratio'], 6 / 37)

    def test_summary_frame(self):
        """Test the batch summary frame."""
        df = self.reporter.summary_frame(self.records)

        self.assertEqual(list(df.columns), ['Name', 'Type', 'Status', 'Headline field', 'Headline value'])
        self.assertEqual(df.loc[0, 'Headline field'], 'v1')
        self.assertEqual(df.loc[0, 'Headline value'], '1')
        self.assertTrue(df.loc[1, 'Headline value'].startswith('InvalidInputError'))

    def test_generate_report(self):
        """Test HTML report generation."""
        report = self.reporter.generate_report(self.records, generated_at=datetime(2024, 1, 2, 3, 4, 5))

        self.assertTrue(report.startswith('<!DOCTYPE html>'))
        self.assertIn('2 calculations, 1 failed', report)
        self.assertIn('V1 = 1.0000 mL', report)
        self.assertIn('Broken &lt;entry&gt;', report)
        self.assertNotIn('Broken <entry>', report)
        self.assertIn('Generated 2024-01-02 03:04:05', report)

    def test_generate_empty_report(self):
        """Test a report with no records."""
        report = self.reporter.generate_report([])
        self.assertIn('0 calculations, 0 failed', report)


if __name__ == '__main__':
    unittest.main()
