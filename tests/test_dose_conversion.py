"""
Unit tests for interspecies dose conversion.
"""

import unittest

from pharmacalc.exceptions import InvalidInputError, UnknownSpeciesError
from pharmacalc.models.dose_conversion import DoseConverter


class TestDoseConverter(unittest.TestCase):
    """Test interspecies dose conversion."""

    def setUp(self):
        """Set up test fixtures."""
        self.converter = DoseConverter()

    def test_km_conversion(self):
        """Test Km-ratio conversion."""
        result = self.converter.convert_dose_by_km(50, 'rat', 'human')
        self.assertAlmostEqual(result.converted_dose, 50 * 6 / 37)
        self.assertEqual(result.unit, 'mg/kg')

        back = self.converter.convert_dose_by_km(result.converted_dose, 'human', 'rat')
        self.assertAlmostEqual(back.converted_dose, 50)

    def test_bsa_conversion(self):
        """Test body-surface-area conversion."""
        result = self.converter.convert_dose_by_bsa(10, 'dog', 'human')
        self.assertAlmostEqual(result.converted_dose, 10 * 0.5 / 1.62)

    def test_allometric_conversion(self):
        """Test allometric conversion."""
        result = self.converter.convert_dose_allometric(10, 'dog', 'human')
        self.assertAlmostEqual(result.converted_dose, 10 * (10 / 60) ** (1 - 0.67))

        result = self.converter.convert_dose_allometric(10, 'dog', 'human', from_weight=12, to_weight=70)
        self.assertAlmostEqual(result.converted_dose, 10 * (12 / 70) ** (1 - 0.67))

    def test_mg_per_m2(self):
        """Test mg/kg and mg/m² conversion."""
        result = self.converter.mg_per_kg_to_mg_per_m2(10, 'rat')
        self.assertAlmostEqual(result.converted_dose, 60)
        self.assertEqual(result.unit, 'mg/m²')

        back = self.converter.mg_per_m2_to_mg_per_kg(60, 'rat')
        self.assertAlmostEqual(back.converted_dose, 10)

    def test_invalid_inputs(self):
        """Test invalid doses and species."""
        with self.assertRaises(UnknownSpeciesError):
            self.converter.convert_dose_by_km(10, 'rat', 'martian')
        with self.assertRaises(InvalidInputError):
            self.converter.convert_dose_by_bsa(0, 'rat', 'human')
        with self.assertRaises(InvalidInputError):
            self.converter.convert_dose_allometric(10, 'rat', 'human', from_weight=-1)

    def test_species_overrides_from_config(self):
        """Test species overrides from configuration."""
        converter = DoseConverter({'species': {'rat': {'km': 7}}})
        result = converter.convert_dose_by_km(37, 'rat', 'human')
        self.assertAlmostEqual(result.converted_dose, 7)


if __name__ == '__main__':
    unittest.main()
