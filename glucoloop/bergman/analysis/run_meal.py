import argparse
import logging
import os
from typing import List, Optional

import jax.numpy as jnp

from ..core.params import (
    ModelParameters,
    MeasurementConfig,
    deterministic_config,
    create_model_parameters,
    DEFAULT_START_TIME,
    DEFAULT_END_TIME,
    DEFAULT_MEAL_TIME,
    DEFAULT_MEAL_CARBS,
    MEASURED_INTERVAL_MIN,
)
from ..evaluation.metrics import (
    glucose_trace,
    glucose_variability_metrics,
    paired_rmse,
    peak_excursion,
    time_in_range,
)
from ..physiology.glucose_dynamics import basal_state, bergman_minimal
from ..sim.dataset import ChartDataset, generate_chart_dataset

logger = logging.getLogger(__name__)


def _log_equilibrium_residual(params: ModelParameters) -> None:
    """Log ||dx/dt|| at the basal state with no meal; should be ~0."""
    dxdt = bergman_minimal(basal_state(params), jnp.asarray(0.0), params)
    residual_l2 = float(jnp.linalg.norm(dxdt))
    residual_max = float(jnp.max(jnp.abs(dxdt)))
    logger.info(f"Equilibrium residual at basal: ||dx/dt||={residual_l2:.4e}, max|dx/dt|={residual_max:.4e}")


def _log_summary(dataset: ChartDataset) -> None:
    for name, series in (("measured", dataset.measured_data), ("predicted", dataset.predicted_data)):
        if len(series) < 2:
            logger.warning(f"{name} series has {len(series)} samples, skipping metrics")
            continue
        trace = glucose_trace(series)
        tir = float(time_in_range(trace))
        sd, cv, mag = glucose_variability_metrics(trace, dt=MEASURED_INTERVAL_MIN)
        t_peak, g_peak = peak_excursion(series)
        logger.info(
            f"{name}: peak {g_peak:.1f} mg/dL at t={t_peak:.0f} min, TIR {100 * tir:.1f}%, "
            f"SD {float(sd):.1f} mg/dL, CV {float(cv):.1f}%, MAG {float(mag):.2f} mg/dL/min"
        )
    logger.info(f"RMSE measured vs predicted: {paired_rmse(dataset.measured_data, dataset.predicted_data):.2f} mg/dL")


def _parse_overrides(pairs: Optional[List[str]]) -> dict:
    overrides = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"Expected NAME=VALUE, got {pair!r}")
        overrides[name.strip()] = float(value)
    return overrides


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Single-meal minimal model simulation")
    parser.add_argument("--start", type=float, default=DEFAULT_START_TIME, help="Window start (min)")
    parser.add_argument("--end", type=float, default=DEFAULT_END_TIME, help="Window end (min)")
    parser.add_argument("--meal-time", type=float, default=DEFAULT_MEAL_TIME, help="Meal onset (min)")
    parser.add_argument("--carbs", type=float, default=DEFAULT_MEAL_CARBS, help="Meal carbohydrate (g)")
    parser.add_argument("--param", action="append", metavar="NAME=VALUE",
                        help="Model parameter override, e.g. --param S_I=8e-5 (repeatable)")
    parser.add_argument("--seed", type=int, default=42, help="PRNG seed for the synthetic measurements")
    parser.add_argument("--physiology_only", "--physiology-only", dest="physiology_only", action="store_true",
                        help="Disable measurement noise")
    parser.add_argument("--output_dir", "--output-dir", dest="output_dir", type=str, default="results",
                        help="Directory to save results")
    return parser


def main(argv: Optional[List[str]] = None) -> ChartDataset:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        params = create_model_parameters(**_parse_overrides(args.param))
    except ValueError as e:
        parser.error(str(e))
    cfg = MeasurementConfig()
    if args.physiology_only:
        cfg = deterministic_config(cfg)
        logger.info("Physiology-only mode enabled: measurement noise disabled.")

    _log_equilibrium_residual(params)

    dataset = generate_chart_dataset(
        start_time=args.start,
        end_time=args.end,
        meal_time=args.meal_time,
        meal_carbs=args.carbs,
        parameters=params,
        key=args.seed,
        config=cfg,
    )
    _log_summary(dataset)

    os.makedirs(args.output_dir, exist_ok=True)
    base_name = f"meal_{args.carbs:g}g_t{args.meal_time:g}"
    dataset.to_csv(os.path.join(args.output_dir, f"{base_name}.csv"))
    return dataset


def cli() -> None:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    main()


if __name__ == "__main__":
    cli()
