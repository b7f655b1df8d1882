"""
Unit tests for TK parameter estimation.
"""

import unittest

import numpy as np
import pandas as pd

from pharmacalc.exceptions import InvalidInputError
from pharmacalc.models.tk_parameters import TKAnalyzer


class TestTKParameters(unittest.TestCase):
    """Test non-compartmental analysis on a mono-exponential profile."""

    def setUp(self):
        """Set up test fixtures."""
        self.analyzer = TKAnalyzer({'min_terminal_points': 3})
        self.times = np.array([0.0, 1.0, 2.0, 4.0, 8.0])
        self.conc = 10.0 * np.exp(-0.2 * self.times)

    def _trapezoid(self, y, x):
        return sum((x[i + 1] - x[i]) * (y[i] + y[i + 1]) / 2 for i in range(len(x) - 1))

    def test_monoexponential_profile(self):
        """Test parameters of a monoexponential profile."""
        params = self.analyzer.calculate_tk_parameters(self.times, self.conc, dose=100).parameters
        auc = self._trapezoid(self.conc, self.times)

        self.assertAlmostEqual(params.cmax, 10.0)
        self.assertAlmostEqual(params.tmax, 0.0)
        self.assertAlmostEqual(params.auc_0_t, auc)
        self.assertAlmostEqual(params.ke, 0.2)
        self.assertAlmostEqual(params.half_life, np.log(2) / 0.2)
        self.assertAlmostEqual(params.auc_0_inf, auc + self.conc[-1] / 0.2)
        self.assertAlmostEqual(params.terminal_r_squared, 1.0)
        self.assertEqual(params.terminal_points, 5)
        self.assertAlmostEqual(params.cl, 100 / params.auc_0_inf)
        self.assertAlmostEqual(params.vd, params.cl / params.ke)

        aumc = self._trapezoid(self.times * self.conc, self.times)
        self.assertAlmostEqual(params.mrt, aumc / auc)

    def test_unsorted_input(self):
        """Test unsorted samples are sorted by time."""
        order = [3, 0, 4, 1, 2]
        shuffled = self.analyzer.calculate_tk_parameters(self.times[order], self.conc[order]).parameters
        ordered = self.analyzer.calculate_tk_parameters(self.times, self.conc).parameters

        self.assertAlmostEqual(shuffled.auc_0_t, ordered.auc_0_t)
        self.assertAlmostEqual(shuffled.ke, ordered.ke)

    def test_no_dose_leaves_clearance_empty(self):
        """Test clearance and volume need a dose."""
        params = self.analyzer.calculate_tk_parameters(self.times, self.conc).parameters
        self.assertIsNone(params.cl)
        self.assertIsNone(params.vd)
        self.assertIsNotNone(params.ke)

    def test_terminal_phase_not_estimable(self):
        """Test profiles without a usable terminal phase."""
        result = self.analyzer.calculate_tk_parameters([0, 1, 2], [0, 5, 2])
        params = result.parameters

        self.assertAlmostEqual(params.cmax, 5.0)
        self.assertAlmostEqual(params.tmax, 1.0)
        self.assertAlmostEqual(params.auc_0_t, 6.0)
        self.assertEqual(params.terminal_points, 2)
        self.assertIsNone(params.ke)
        self.assertIsNone(params.half_life)
        self.assertIsNone(params.auc_0_inf)
        self.assertTrue(any('not estimable' in s for s in result.calculation_steps))

    def test_invalid_profiles(self):
        """Test invalid concentration-time profiles."""
        bad = [
            ([0, 1, 2], [1, 2]),
            ([0], [1]),
            ([0, 1], [1, -1]),
            ([-1, 1], [1, 1]),
            ([0, 1, 1], [3, 2, 1]),
            ([0, 1], [1, float('nan')]),
            (['a', 'b'], [1, 2]),
        ]
        for times, conc in bad:
            with self.assertRaises(InvalidInputError):
                self.analyzer.calculate_tk_parameters(times, conc)

    def test_invalid_configuration(self):
        """Test invalid TK configuration."""
        with self.assertRaises(InvalidInputError):
            TKAnalyzer({'min_terminal_points': 1})

    def test_from_frame(self):
        """Test parameters from a DataFrame."""
        df = pd.DataFrame({'time': self.times, 'conc': self.conc})
        result = self.analyzer.calculate_from_frame(df, concentration_column='conc', dose=50)
        self.assertAlmostEqual(result.parameters.ke, 0.2)

        with self.assertRaises(InvalidInputError):
            self.analyzer.calculate_from_frame(df)


if __name__ == '__main__':
    unittest.main()
