#!/usr/bin/env python
"""
Run a batch of pharmacology calculations from a YAML job file.

Usage:
    python scripts/run_calculations.py --job config/example_job.yaml --output results
"""

from pharmacalc.pipeline import main

if __name__ == '__main__':
    main()
