"""
Tabular summaries and HTML audit reports of calculation results.
"""

import html
import logging
from datetime import datetime
from typing import Dict, Mapping, Optional, Sequence

import pandas as pd

from ..models.exposure_margin import ADEQUATE_MARGIN, MARGINAL_MARGIN, MultiSpeciesMarginResult
from ..models.material_requirement import TestMaterialResult
from ..models.mrsd import MRSDResult
from ..models.species import SPECIES_TABLE, SpeciesFactor

logger = logging.getLogger(__name__)

# Result field shown as the headline value of each calculation type
HEADLINE_FIELDS: Dict[str, str] = {
    'dilution': 'v1',
    'serial_dilution': 'mode',
    'stock_solution': 'volume',
    'unit_conversion': 'converted_value',
    'safety_margin': 'hed_based_margin',
    'multi_species_margin': 'most_conservative',
    'max_human_dose': 'max_dose_per_kg',
    'dose_conversion': 'converted_dose',
    'mrsd': 'most_conservative.mrsd',
    'required_noael': 'required_noael',
    'tk_parameters': 'parameters.auc_0_t',
    'dosing': 'volume',
    'test_material': 'grand_total_calculated',
}


def _lookup(result: Mapping, path: str):
    value = result
    for part in path.split('.'):
        if not isinstance(value, Mapping) or part not in value:
            return None
        value = value[part]
    return value


def _format_value(value) -> str:
    if value is None:
        return '-'
    if isinstance(value, float):
        return f"{value:.4g}"
    return str(value)


class CalculationReporter:
    """Build DataFrames and HTML reports from calculation results."""

    def __init__(self, title: str = 'Pharmacology Calculation Report'):
        self.title = title

    @staticmethod
    def margin_table(result: MultiSpeciesMarginResult) -> pd.DataFrame:
        """One row per species of a multi-species margin comparison."""
        df = pd.DataFrame([r.to_dict() for r in result.results])
        df = df.rename(columns={
            'species': 'Species key',
            'species_name': 'Species',
            'noael': 'NOAEL (mg/kg/day)',
            'hed': 'HED (mg/kg/day)',
            'margin': 'HED margin (x)',
            'auc_margin': 'AUC margin (x)',
        })
        df['Most conservative'] = df['Species key'] == result.most_conservative
        return df

    @staticmethod
    def mrsd_table(result: MRSDResult) -> pd.DataFrame:
        df = pd.DataFrame([r.to_dict() for r in result.results])
        df['selected'] = df['species'] == result.most_conservative.species
        return df

    @staticmethod
    def test_material_table(result: TestMaterialResult) -> pd.DataFrame:
        """One row per dose group, with study totals in the last rows."""
        rows = []
        for study in result.studies:
            for group in study.groups:
                rows.append({
                    'Study': study.name,
                    'Group': group.name,
                    'Animals': group.animal_count,
                    'Body weight (g)': group.body_weight_g,
                    'Dose (mg/kg/day)': group.dose_level,
                    'Days': group.dose_days,
                    'Required (mg)': group.required_amount,
                    'Calculated (mg)': group.calculated_amount,
                })
        df = pd.DataFrame(rows)
        totals = pd.DataFrame([
            {'Study': study.name, 'Group': 'Subtotal',
             'Required (mg)': study.total_required, 'Calculated (mg)': study.total_calculated}
            for study in result.studies
        ] + [
            {'Study': 'All studies', 'Group': 'Total',
             'Required (mg)': result.grand_total_required,
             'Calculated (mg)': result.grand_total_calculated},
        ])
        return pd.concat([df, totals], ignore_index=True)

    @staticmethod
    def species_reference_table(table: Mapping[str, SpeciesFactor] = SPECIES_TABLE) -> pd.DataFrame:
        """Species reference table with the Km ratio to human."""
        df = pd.DataFrame([row.to_dict() for row in table.values()]).set_index('key')
        if 'human' in df.index:
            df['km_ratio'] = df['km'] / df.loc['human', 'km']
        return df

    @staticmethod
    def summary_frame(records: Sequence[Mapping]) -> pd.DataFrame:
        """
        Summarize batch records (see ``pharmacalc.pipeline.run_job``).

        Returns
        -------
        pd.DataFrame
            Columns: Name, Type, Status, Headline field, Headline value.
        """
        rows = []
        for record in records:
            field = HEADLINE_FIELDS.get(record.get('type'), '')
            value = _lookup(record.get('result') or {}, field) if field else None
            rows.append({
                'Name': record.get('name'),
                'Type': record.get('type'),
                'Status': record.get('status'),
                'Headline field': field or None,
                'Headline value': _format_value(value) if record.get('status') == 'ok'
                else record.get('error'),
            })
        return pd.DataFrame(rows, columns=['Name', 'Type', 'Status', 'Headline field', 'Headline value'])

    def generate_report(self, records: Sequence[Mapping],
                        generated_at: Optional[datetime] = None) -> str:
        """
        Generate an HTML audit report with the calculation steps of every record.

        Parameters
        ----------
        records : Sequence[Mapping]
            Batch records with ``name``, ``type``, ``status`` and either
            ``result`` / ``calculation_steps`` or ``error``.
        generated_at : datetime, optional
            Timestamp printed in the footer (default: now).

        Returns
        -------
        str
            HTML document.
        """
        generated_at = generated_at or datetime.now()
        summary = self.summary_frame(records)
        n_errors = int((summary['Status'] == 'error').sum()) if len(summary) else 0

        logger.info(f"Generating report for {len(records)} calculations ({n_errors} failed)")

        report = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{html.escape(self.title)}</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 40px; }}
        h1 {{ color: #2c3e50; }}
        h2 {{ color: #34495e; border-bottom: 2px solid #3498db; padding-bottom: 5px; }}
        table {{ border-collapse: collapse; margin: 20px 0; }}
        th, td {{ border: 1px solid #ddd; padding: 8px; text-align: left; }}
        th {{ background-color: #3498db; color: white; }}
        pre {{ background-color: #f8f9fa; padding: 10px; }}
        .error {{ color: #e74c3c; font-weight: bold; }}
    </style>
</head>
<body>
    <h1>{html.escape(self.title)}</h1>
    <p>{len(records)} calculations, {n_errors} failed.</p>
    <h2>Summary</h2>
    {summary.to_html(index=False, na_rep='-', escape=True)}
"""

        for i, record in enumerate(records, start=1):
            name = html.escape(str(record.get('name') or f"calculation {i}"))
            calc_type = html.escape(str(record.get('type')))
            report += f"\n    <h2>{i}. {name} ({calc_type})</h2>\n"

            if record.get('status') != 'ok':
                report += f"    <p class=\"error\">{html.escape(str(record.get('error')))}</p>\n"
                continue

            steps = record.get('calculation_steps') or []
            report += "    <pre>" + html.escape('\n'.join(steps)) + "</pre>\n"

        report += f"""
    <h2>Notes</h2>
    <p>Margins of at least {ADEQUATE_MARGIN:g}x are adequate, {MARGINAL_MARGIN:g}x to
    {ADEQUATE_MARGIN:g}x marginal, below {MARGINAL_MARGIN:g}x inadequate.</p>
    <hr>
    <p><em>Generated {generated_at:%Y-%m-%d %H:%M:%S}</em></p>
</body>
</html>
"""
        return report

