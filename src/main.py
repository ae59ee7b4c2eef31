"""
Configuration check for the observation scoring engine.

Loads the layered configuration, validates it, sets up logging and builds an
ObservationManager (which loads the vanishing-point file, if one is set).
Optionally prints the vanishing-point confidence of some horizon rows.

Usage:
    python src/main.py --config config/config.yaml
    python src/main.py --config config/config.yaml --rows 180 200 220

Arguments:
    --config: Path to configuration file
    --rows: Horizon rows to report vanishing-point confidence for
"""

import argparse
import logging
import sys

from models.errors import ObservationError
from observation.manager import create_manager_from_config
from ops.config import load_typed_config
from ops.logging import setup_logging


def main(argv=None):
    """Validate configuration and report the effective observation parameters."""
    parser = argparse.ArgumentParser(description='Observation Scoring Engine - configuration check')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--rows', type=float, nargs='*', default=[],
                        help='Horizon rows to report vanishing-point confidence for')
    args = parser.parse_args(argv)

    try:
        config = load_typed_config(args.config)
    except ObservationError as e:
        logging.error(str(e))
        return 1

    setup_logging(config.log_path, config.log_level)

    try:
        manager = create_manager_from_config(config)
    except ObservationError as e:
        logging.error(f"Failed to initialize observation manager: {e}")
        return 1

    params = manager.params
    logging.info(f"Object type: {params.object_type.value}, height prior {params.height_prior()}")
    logging.info(f"Height band: [{params.min_height}, {params.max_height}] m, total weight {params.total_weight}")
    if params.has_horizon_prior:
        logging.info(f"Horizon prior: {params.mean_horizon} +/- {params.std_horizon}")
    else:
        logging.info("Horizon prior: disabled")

    if args.rows and not manager.vp_estimator.is_loaded:
        logging.warning("No vanishing point estimate loaded; confidences are 0")
    for row in args.rows:
        print(f"{row:g}\t{manager.vp_estimator.get_horizon_confidence(row):.4f}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
