"""
Non-compartmental toxicokinetic (TK) parameter estimation.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats
from scipy.integrate import trapezoid

from ..exceptions import InvalidInputError
from ..utils.validation import optional_positive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TKParameters:
    cmax: float
    tmax: float
    auc_0_t: float
    auc_0_inf: Optional[float]
    half_life: Optional[float]
    ke: Optional[float]
    mrt: Optional[float]
    cl: Optional[float]
    vd: Optional[float]
    terminal_points: int
    terminal_r_squared: Optional[float]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class TKResult:
    parameters: TKParameters
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


class TKAnalyzer:
    """Derive Cmax, AUC, half-life and related parameters from a concentration-time profile."""

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize TKAnalyzer.

        Parameters
        ----------
        config : Dict, optional
            TK configuration. ``min_terminal_points`` is the number of
            post-Tmax points needed for the terminal regression (default 3).
        """
        self.config = config or {}
        self.min_terminal_points = int(self.config.get('min_terminal_points', 3))
        if self.min_terminal_points < 2:
            raise InvalidInputError("min_terminal_points must be at least 2")

    @staticmethod
    def _prepare_profile(times: Sequence[float], concentrations: Sequence[float]):
        try:
            t = np.asarray(times, dtype=float)
            c = np.asarray(concentrations, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Times and concentrations must be numeric: {e}") from e

        if t.ndim != 1 or c.ndim != 1 or len(t) != len(c):
            raise InvalidInputError("times and concentrations must be 1-D sequences of equal length")
        if len(t) < 2:
            raise InvalidInputError("At least two time points are required")
        if not (np.all(np.isfinite(t)) and np.all(np.isfinite(c))):
            raise InvalidInputError("times and concentrations must be finite")
        if np.any(t < 0):
            raise InvalidInputError("times must be >= 0")
        if np.any(c < 0):
            raise InvalidInputError("concentrations must be >= 0")
        if len(np.unique(t)) != len(t):
            raise InvalidInputError("Duplicate time points are not allowed")

        order = np.argsort(t, kind='stable')
        return t[order], c[order]

    def calculate_tk_parameters(self, times: Sequence[float], concentrations: Sequence[float],
                                dose: Optional[float] = None) -> TKResult:
        """
        Calculate TK parameters.

        Parameters
        ----------
        times : Sequence[float]
            Sampling times (h). Need not be sorted.
        concentrations : Sequence[float]
            Concentrations at ``times``.
        dose : float, optional
            Administered dose (mg/kg); enables CL and Vd.

        Returns
        -------
        TKResult
            Parameters that need the elimination rate constant are ``None``
            when the terminal phase cannot be estimated.
        """
        t, c = self._prepare_profile(times, concentrations)
        dose = optional_positive('dose', dose)
        steps = []

        idx_max = int(np.argmax(c))
        cmax = float(c[idx_max])
        tmax = float(t[idx_max])
        steps.append(f"Cmax = {cmax:.4f} (maximum concentration)")
        steps.append(f"Tmax = {tmax:.2f} h (time of maximum concentration)")

        auc_0_t = float(trapezoid(c, t))
        steps.append(f"AUC0-t = {auc_0_t:.4f} (linear trapezoidal rule)")

        terminal = (t >= tmax) & (c > 0)
        n_terminal = int(np.count_nonzero(terminal))

        ke = half_life = auc_0_inf = mrt = cl = vd = r_squared = None

        if n_terminal >= self.min_terminal_points:
            fit = stats.linregress(t[terminal], np.log(c[terminal]))
            r_squared = float(fit.rvalue ** 2)
            if fit.slope < 0:
                ke = float(-fit.slope)

        if ke is not None:
            steps.append(f"ke = {ke:.4f} 1/h (log-linear regression of {n_terminal} terminal "
                         f"points, R² = {r_squared:.4f})")

            half_life = float(np.log(2) / ke)
            steps.append(f"t1/2 = ln(2) / ke = {half_life:.2f} h")

            c_last = float(c[-1])
            auc_0_inf = auc_0_t + c_last / ke
            steps.append(f"AUC0-inf = AUC0-t + Clast / ke = {auc_0_inf:.4f}")

            if auc_0_t > 0:
                aumc = float(trapezoid(t * c, t))
                mrt = aumc / auc_0_t
                steps.append(f"MRT = AUMC / AUC = {mrt:.2f} h")

            if dose is not None:
                cl = dose / auc_0_inf
                vd = cl / ke
                steps.append(f"CL = Dose / AUC0-inf = {cl:.4f} L/h/kg")
                steps.append(f"Vd = CL / ke = {vd:.4f} L/kg")
        else:
            steps.append(f"ke: not estimable ({n_terminal} usable terminal points, "
                         f"{self.min_terminal_points} required with a declining slope)")

        logger.debug(f"TK parameters: Cmax={cmax:.4f}, AUC0-t={auc_0_t:.4f}, ke={ke}")

        parameters = TKParameters(
            cmax=cmax,
            tmax=tmax,
            auc_0_t=auc_0_t,
            auc_0_inf=auc_0_inf,
            half_life=half_life,
            ke=ke,
            mrt=mrt,
            cl=cl,
            vd=vd,
            terminal_points=n_terminal,
            terminal_r_squared=r_squared,
        )
        return TKResult(parameters=parameters, calculation_steps=steps)

    def calculate_from_frame(self, profile: pd.DataFrame, time_column: str = 'time',
                             concentration_column: str = 'concentration',
                             dose: Optional[float] = None) -> TKResult:
        """Calculate TK parameters from a DataFrame with time and concentration columns."""
        missing = {time_column, concentration_column} - set(profile.columns)
        if missing:
            raise InvalidInputError(f"Profile is missing columns: {sorted(missing)}")
        return self.calculate_tk_parameters(
            profile[time_column].to_numpy(),
            profile[concentration_column].to_numpy(),
            dose=dose,
        )
