# stdlib
import argparse
from pathlib import Path
# projectlib
from pv_plant_analytics.config.env import data_paths_from_env, model_root_from_env
from pv_plant_analytics.config.station import station_from_env
from pv_plant_analytics.models.inference import ForecastModelSession
from pv_plant_analytics.pipelines.forecast import run_forecast
from pv_plant_analytics.utils.logging import Logger
from pv_plant_analytics.utils.paths import validate_address

def parse_args() -> argparse.Namespace:
    """Parse input arguments for the PV power forecast."""
    parser = argparse.ArgumentParser(
        description="Run the PV power forecast pipeline",
    )
    parser.add_argument(
        "--verbosity",
        type=int,
        default=1,
        choices=(0, 1, 2),
        help=(
            "Verbosity level: "
            "0 = silent, "
            "1 = info, "
            "2 = debug"
        ),
    )
    parser.add_argument(
        "--no_fetch",
        action="store_true",
        help="Fail instead of fetching forecast weather when none is stored.",
    )
    parser.add_argument(
        "--write_log",
        action="store_true",
        help="Whether to store message/info outputs to a log file.",
    )

    return parser.parse_args()

def main() -> None:
    """
    Entry point for running the forecast from the command line.

    Station configuration and data locations are read from the
    environment (``.env``); the forecast is written to
    ``outputs/forecast/forecast.csv``.
    """
    output_dir = validate_address(
        Path.cwd() / "outputs" / "forecast", mkdir=True
    )
    args = parse_args()
    logger = Logger(args.verbosity, output_dir, args.write_log)
    session = ForecastModelSession.from_directory(
        model_root_from_env() / "prediction", logger=logger
    )
    kwargs = {"fetcher": None} if args.no_fetch else {}
    result = run_forecast(
        session,
        station_from_env(),
        data_paths_from_env(),
        logger=logger,
        **kwargs,
    )
    address = validate_address(output_dir / "forecast.csv", mode="w")
    result.to_frame().write_csv(address)
    logger(
        f"Wrote {len(result.predictions)} predictions to {address} "
        f"(operational data found: {result.operational_data_found}, "
        f"calibrated: {result.calibration_performed}).",
    )

if __name__ == "__main__":
    main()
