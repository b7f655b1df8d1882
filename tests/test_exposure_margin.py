"""
Unit tests for HED-based exposure margin calculations.
"""

import unittest

from pharmacalc.exceptions import InvalidInputError, UnknownSpeciesError, UnsupportedUnitError
from pharmacalc.models.exposure_margin import (
    ADEQUATE_MARGIN,
    MARGINAL_MARGIN,
    ExposureMarginCalculator,
    classify_margin,
    margin_recommendation,
)
from pharmacalc.models.species import build_species_table


def expected_hed(noael, animal_weight, human_weight=60.0, b=0.67):
    return noael * (animal_weight / human_weight) ** (1 - b)


class TestMarginClassification(unittest.TestCase):
    """Test risk classification thresholds."""

    def test_thresholds(self):
        """Test risk level thresholds."""
        self.assertEqual(ADEQUATE_MARGIN, 10)
        self.assertEqual(MARGINAL_MARGIN, 3)

        self.assertEqual(classify_margin(10), 'adequate')
        self.assertEqual(classify_margin(250), 'adequate')
        self.assertEqual(classify_margin(9.99), 'marginal')
        self.assertEqual(classify_margin(3), 'marginal')
        self.assertEqual(classify_margin(2.99), 'inadequate')
        self.assertEqual(classify_margin(0.1), 'inadequate')

    def test_recommendation_text(self):
        """Test recommendation text per risk level."""
        self.assertTrue(margin_recommendation(12).startswith('Adequate margin'))
        self.assertTrue(margin_recommendation(5).startswith('Marginal'))
        self.assertTrue(margin_recommendation(1).startswith('Inadequate'))


class TestSafetyMargin(unittest.TestCase):
    """Test single-species safety margins."""

    def setUp(self):
        """Set up test fixtures."""
        self.calculator = ExposureMarginCalculator()

    def test_rat_noael_against_per_kg_dose(self):
        """Test rat NOAEL against a mg/kg clinical dose."""
        result = self.calculator.calculate_safety_margin(100, 'rat', 1)
        hed = expected_hed(100, 0.15)

        self.assertAlmostEqual(result.safety_margin, 100.0)
        self.assertAlmostEqual(result.hed, hed)
        self.assertAlmostEqual(result.hed_based_margin, hed / 1)
        self.assertNotAlmostEqual(result.hed_based_margin, result.safety_margin)
        self.assertIsNone(result.auc_based_margin)
        self.assertEqual(result.risk_level, 'adequate')
        self.assertEqual(result.human_dose_per_kg, 1)

    def test_risk_level_follows_hed_margin(self):
        """Test risk level uses the HED-based margin."""
        marginal = self.calculator.calculate_safety_margin(100, 'rat', 3)
        inadequate = self.calculator.calculate_safety_margin(100, 'rat', 10)

        self.assertEqual(marginal.risk_level, 'marginal')
        self.assertEqual(inadequate.risk_level, 'inadequate')
        self.assertIn(inadequate.recommendation, inadequate.calculation_steps)

    def test_per_person_dose(self):
        """Test a per-person clinical dose."""
        per_kg = self.calculator.calculate_safety_margin(50, 'dog', 1)
        per_person = self.calculator.calculate_safety_margin(50, 'dog', 60, human_dose_unit='person')

        self.assertAlmostEqual(per_person.human_dose_per_kg, 1.0)
        self.assertAlmostEqual(per_person.hed_based_margin, per_kg.hed_based_margin)
        self.assertAlmostEqual(per_person.safety_margin, per_kg.safety_margin)

    def test_custom_weights(self):
        """Test custom animal and human body weights."""
        result = self.calculator.calculate_safety_margin(
            100, 'rat', 1, human_weight=70, animal_weight=0.25
        )
        self.assertAlmostEqual(result.hed, expected_hed(100, 0.25, human_weight=70))

    def test_auc_margin_requires_both_exposures(self):
        """Test the AUC margin needs both AUC values."""
        both = self.calculator.calculate_safety_margin(100, 'rat', 1, animal_auc=500, human_auc=20)
        animal_only = self.calculator.calculate_safety_margin(100, 'rat', 1, animal_auc=500)

        self.assertAlmostEqual(both.auc_based_margin, 25.0)
        self.assertIsNone(animal_only.auc_based_margin)

    def test_configured_human_weight(self):
        """Test the configured human body weight."""
        calculator = ExposureMarginCalculator({'human_body_weight_kg': 70})
        result = calculator.calculate_safety_margin(100, 'rat', 1)
        self.assertAlmostEqual(result.hed, expected_hed(100, 0.15, human_weight=70))

    def test_unknown_species(self):
        """Test unknown species."""
        with self.assertRaises(UnknownSpeciesError) as ctx:
            self.calculator.calculate_safety_margin(100, 'unicorn', 1)
        self.assertEqual(ctx.exception.species, 'unicorn')
        self.assertIsInstance(ctx.exception, InvalidInputError)

    def test_human_is_not_a_source_species(self):
        """Test human cannot be the source species."""
        with self.assertRaises(InvalidInputError):
            self.calculator.calculate_safety_margin(100, 'human', 1)

    def test_invalid_values(self):
        """Test invalid NOAEL and dose values."""
        with self.assertRaises(InvalidInputError):
            self.calculator.calculate_safety_margin(0, 'rat', 1)
        with self.assertRaises(InvalidInputError):
            self.calculator.calculate_safety_margin(100, 'rat', -1)
        with self.assertRaises(InvalidInputError):
            self.calculator.calculate_safety_margin(100, 'rat', 1, human_weight=0)
        with self.assertRaises(InvalidInputError):
            self.calculator.calculate_safety_margin(100, 'rat', 1, animal_auc=-5, human_auc=1)

    def test_unsupported_dose_unit(self):
        """Test unsupported dose units."""
        with self.assertRaises(UnsupportedUnitError):
            self.calculator.calculate_safety_margin(100, 'rat', 1, human_dose_unit='m2')


class TestMultiSpeciesMargin(unittest.TestCase):
    """Test multi-species comparison."""

    def setUp(self):
        """Set up test fixtures."""
        self.calculator = ExposureMarginCalculator()

    def test_most_conservative_is_minimum_margin(self):
        """Test the most conservative species has the smallest margin."""
        inputs = [
            {'species': 'rat', 'noael': 100},
            {'species': 'dog', 'noael': 10},
            {'species': 'monkey', 'noael': 30},
        ]
        result = self.calculator.compare_multi_species_margin(inputs, human_dose=1)

        expected = {
            entry['species']: self.calculator.human_equivalent_dose(entry['noael'], entry['species'])
            for entry in inputs
        }
        self.assertEqual([r.species for r in result.results], ['rat', 'dog', 'monkey'])
        for r in result.results:
            self.assertAlmostEqual(r.margin, expected[r.species])

        worst = min(expected, key=expected.get)
        self.assertEqual(result.most_conservative, worst)
        self.assertEqual(result.most_conservative, 'dog')
        self.assertEqual(result.most_conservative_name, 'Beagle Dog')

    def test_tie_goes_to_first_in_input_order(self):
        """Test ties resolve to the first species."""
        table = build_species_table({
            'rat_sd': {'default_body_weight_kg': 0.15, 'km': 6, 'bsa_m2': 0.025},
        })
        calculator = ExposureMarginCalculator(species_table=table)

        forward = calculator.compare_multi_species_margin(
            [{'species': 'rat_sd', 'noael': 20}, {'species': 'rat', 'noael': 20}], human_dose=1
        )
        backward = calculator.compare_multi_species_margin(
            [{'species': 'rat', 'noael': 20}, {'species': 'rat_sd', 'noael': 20}], human_dose=1
        )
        self.assertEqual(forward.most_conservative, 'rat_sd')
        self.assertEqual(backward.most_conservative, 'rat')

    def test_auc_and_body_weight_per_entry(self):
        """Test per-species AUC and body weight."""
        result = self.calculator.compare_multi_species_margin(
            [{'species': 'rat', 'noael': 100, 'auc': 400, 'body_weight': 0.3}],
            human_dose=2, human_auc=8,
        )
        r = result.results[0]
        self.assertAlmostEqual(r.hed, expected_hed(100, 0.3))
        self.assertAlmostEqual(r.margin, expected_hed(100, 0.3) / 2)
        self.assertAlmostEqual(r.auc_margin, 50.0)

    def test_per_person_dose(self):
        """Test a per-person clinical dose."""
        result = self.calculator.compare_multi_species_margin(
            [{'species': 'rat', 'noael': 100}], human_dose=120, human_dose_unit='person'
        )
        self.assertAlmostEqual(result.human_dose_per_kg, 2.0)

    def test_invalid_inputs(self):
        """Test invalid species entries."""
        with self.assertRaises(InvalidInputError):
            self.calculator.compare_multi_species_margin([], human_dose=1)
        with self.assertRaises(InvalidInputError):
            self.calculator.compare_multi_species_margin([{'species': 'rat'}], human_dose=1)
        with self.assertRaises(UnknownSpeciesError):
            self.calculator.compare_multi_species_margin(
                [{'species': 'rat', 'noael': 1}, {'species': 'yeti', 'noael': 1}], human_dose=1
            )


class TestMaxHumanDose(unittest.TestCase):
    """Test reverse calculation of the maximum human dose."""

    def setUp(self):
        """Set up test fixtures."""
        self.calculator = ExposureMarginCalculator()

    def test_max_dose(self):
        """Test maximum human dose for a target margin."""
        result = self.calculator.calculate_max_human_dose(50, 'dog', 10)
        hed = expected_hed(50, 10.0)

        self.assertAlmostEqual(result.hed, hed)
        self.assertAlmostEqual(result.max_dose_per_kg, hed / 10)
        self.assertAlmostEqual(result.max_dose_per_person, hed / 10 * 60)

    def test_round_trip_with_safety_margin(self):
        """Test the maximum dose gives the target margin back."""
        for species, noael, target, weight in [('dog', 50, 10, 60), ('rat', 100, 3, 70),
                                               ('minipig', 12.5, 25, 55)]:
            reverse = self.calculator.calculate_max_human_dose(noael, species, target, human_weight=weight)
            forward = self.calculator.calculate_safety_margin(
                noael, species, reverse.max_dose_per_person,
                human_dose_unit='person', human_weight=weight,
            )
            self.assertAlmostEqual(forward.hed_based_margin, target)

    def test_invalid_target_margin(self):
        """Test invalid target margins."""
        with self.assertRaises(InvalidInputError):
            self.calculator.calculate_max_human_dose(50, 'dog', 0)
        with self.assertRaises(InvalidInputError):
            self.calculator.calculate_max_human_dose(50, 'dog', -10)


if __name__ == '__main__':
    unittest.main()
