"""
Batch runner: execute a YAML job of calculations and write results and an
HTML audit report.
"""

import argparse
import inspect
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

import numpy as np
import yaml

from .analysis.report import CalculationReporter
from .exceptions import CalculationError, InvalidInputError
from .models.dilution import DilutionCalculator
from .models.dose_conversion import DoseConverter
from .models.dosing import DosingCalculator
from .models.material_requirement import TestMaterialCalculator
from .models.exposure_margin import ExposureMarginCalculator
from .models.mrsd import MRSDCalculator
from .models.species import build_species_table
from .models.tk_parameters import TKAnalyzer
from .utils.config import load_config, merge_config

logger = logging.getLogger(__name__)


def _call(func: Callable, params: Mapping):
    """Call ``func`` with keyword ``params``, rejecting arguments it does not take."""
    try:
        inspect.signature(func).bind(**params)
    except TypeError as e:
        raise InvalidInputError(f"Invalid parameters for {func.__name__}: {e}") from None
    return func(**params)


class CalculationPipeline:
    """Dispatch named calculations to the calculators built from one configuration."""

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize CalculationPipeline.

        Parameters
        ----------
        config : Dict, optional
            Full engine configuration (see ``pharmacalc.utils.config``).
        """
        self.config = merge_config(config)
        species_table = build_species_table(self.config.get('species'))

        self.dilution = DilutionCalculator(self.config.get('dilution', {}))
        self.exposure_margin = ExposureMarginCalculator(self.config.get('exposure_margin', {}),
                                                        species_table=species_table)
        self.dose_converter = DoseConverter(self.config.get('dose_conversion', {}),
                                            species_table=species_table)
        self.mrsd = MRSDCalculator(self.config.get('mrsd', {}), species_table=species_table)
        self.tk = TKAnalyzer(self.config.get('tk', {}))
        self.dosing = DosingCalculator(self.config.get('dosing', {}))
        self.test_material = TestMaterialCalculator(self.config.get('test_material', {}))

        self.registry: Dict[str, Callable] = {
            'dilution': self.dilution.calculate_dilution,
            'serial_dilution': self.dilution.calculate_serial_dilution,
            'stock_solution': self.dilution.calculate_stock_solution,
            'unit_conversion': self.dilution.convert_concentration_unit,
            'safety_margin': self.exposure_margin.calculate_safety_margin,
            'multi_species_margin': self.exposure_margin.compare_multi_species_margin,
            'max_human_dose': self.exposure_margin.calculate_max_human_dose,
            'dose_conversion': self._convert_dose,
            'mrsd': self.mrsd.calculate_mrsd,
            'required_noael': self.mrsd.calculate_required_noael,
            'tk_parameters': self.tk.calculate_tk_parameters,
            'dosing': self._dosing,
            'test_material': self.test_material.calculate_test_material,
        }

    def _convert_dose(self, method: str = 'km', **params):
        methods = {
            'km': self.dose_converter.convert_dose_by_km,
            'bsa': self.dose_converter.convert_dose_by_bsa,
            'allometric': self.dose_converter.convert_dose_allometric,
            'mg_per_kg_to_mg_per_m2': self.dose_converter.mg_per_kg_to_mg_per_m2,
            'mg_per_m2_to_mg_per_kg': self.dose_converter.mg_per_m2_to_mg_per_kg,
        }
        if method not in methods:
            raise InvalidInputError(f"Unknown dose conversion method: {method!r}")
        return _call(methods[method], params)

    def _dosing(self, method: str = 'dose', **params):
        methods = {
            'dose': self.dosing.calculate_dose,
            'required_concentration': self.dosing.calculate_required_concentration,
            'max_dose_by_volume': self.dosing.calculate_max_dose_by_volume,
            'group': self.dosing.calculate_group_dosing,
        }
        if method not in methods:
            raise InvalidInputError(f"Unknown dosing method: {method!r}")
        return _call(methods[method], params)

    def run_calculation(self, calc_type: str, params: Optional[Mapping] = None):
        """Run one calculation and return its result record."""
        if not isinstance(calc_type, str) or calc_type not in self.registry:
            raise InvalidInputError(
                f"Unknown calculation type: {calc_type!r} (known: {', '.join(sorted(self.registry))})"
            )
        if params is not None and not isinstance(params, Mapping):
            raise InvalidInputError(f"params of {calc_type!r} must be a mapping")
        return _call(self.registry[calc_type], dict(params or {}))

    def run_job(self, job: Mapping) -> List[Dict]:
        """
        Execute every entry of ``job['calculations']``.

        Parameters
        ----------
        job : Mapping
            ``{'calculations': [{'name': ..., 'type': ..., 'params': {...}}, ...]}``

        Returns
        -------
        List[Dict]
            One record per entry with ``name``, ``type``, ``status`` (``'ok'``
            or ``'error'``), ``result``, ``calculation_steps`` and ``error``.
            Entries failing with a CalculationError are recorded and the run
            continues.
        """
        entries = job.get('calculations') or []
        logger.info(f"Running {len(entries)} calculations")

        records = []
        for i, entry in enumerate(entries, start=1):
            if isinstance(entry, Mapping):
                calc_type = entry.get('type')
                name = entry.get('name') or f"{calc_type}-{i}"
            else:
                calc_type = None
                name = f"entry-{i}"

            try:
                if not isinstance(entry, Mapping):
                    raise InvalidInputError(f"Job entry {i} must be a mapping, got {entry!r}")
                result = self.run_calculation(calc_type, entry.get('params'))
            except CalculationError as e:
                logger.warning(f"Calculation {name!r} failed: {e}")
                records.append({
                    'name': name,
                    'type': calc_type,
                    'status': 'error',
                    'result': None,
                    'calculation_steps': [],
                    'error': f"{type(e).__name__}: {e}",
                })
                continue

            records.append({
                'name': name,
                'type': calc_type,
                'status': 'ok',
                'result': result.to_dict(),
                'calculation_steps': list(result.calculation_steps),
                'error': None,
            })
            logger.info(f"Calculation {name!r} ({calc_type}) completed")

        return records


def setup_logging(output_dir: Path):
    """Setup logging configuration."""
    log_dir = output_dir / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_dir / 'pipeline.log'),
            logging.StreamHandler()
        ]
    )

    return logging.getLogger(__name__)


def load_job(job_path: str) -> Dict:
    """Load a calculation job from a YAML file."""
    with open(job_path, 'r', encoding='utf-8') as f:
        job = yaml.safe_load(f) or {}

    if not isinstance(job, dict):
        raise ValueError(f"Job file root must be a mapping: {job_path}")

    return job


def convert_for_json(obj):
    """Convert numpy values and nested containers to JSON-serializable types."""
    if isinstance(obj, (np.ndarray, np.generic)):
        return obj.tolist()
    elif isinstance(obj, dict):
        return {k: convert_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_for_json(item) for item in obj]
    else:
        return obj


def write_outputs(records: List[Dict], output_dir: Path) -> Dict[str, Path]:
    """Write results.json, summary.csv and calculation_report.html."""
    output_dir.mkdir(parents=True, exist_ok=True)
    reporter = CalculationReporter()

    paths = {
        'results': output_dir / 'results.json',
        'summary': output_dir / 'summary.csv',
        'report': output_dir / 'calculation_report.html',
    }

    with open(paths['results'], 'w', encoding='utf-8') as f:
        json.dump(convert_for_json(records), f, indent=2, ensure_ascii=False)

    reporter.summary_frame(records).to_csv(paths['summary'], index=False)

    with open(paths['report'], 'w', encoding='utf-8') as f:
        f.write(reporter.generate_report(records))

    return paths


def main(argv: Optional[List[str]] = None):
    """Main pipeline function."""
    parser = argparse.ArgumentParser(
        description='Run a batch of pharmacology calculations'
    )
    parser.add_argument('--job', type=str, required=True,
                        help='Path to the calculation job YAML file')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to engine configuration YAML file')
    parser.add_argument('--output', type=str, default='results',
                        help='Output directory for results')

    args = parser.parse_args(argv)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    logger = setup_logging(output_dir)
    logger.info("Starting calculation pipeline")
    logger.info(f"Job: {args.job}")
    logger.info(f"Output directory: {output_dir}")

    try:
        config = load_config(args.config)
        job = load_job(args.job)
        if job.get('config'):
            config = merge_config(job['config'], base=config)

        pipeline = CalculationPipeline(config)
        records = pipeline.run_job(job)
        paths = write_outputs(records, output_dir)

        n_failed = sum(1 for r in records if r['status'] != 'ok')
        logger.info("Pipeline completed successfully!")
        logger.info(f"Results saved to: {paths['results']}")

        print("\n" + "=" * 60)
        print("CALCULATION SUMMARY")
        print("=" * 60)
        print(CalculationReporter.summary_frame(records).to_string(index=False))
        print(f"{len(records)} calculations, {n_failed} failed")
        print("=" * 60)

    except Exception as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
