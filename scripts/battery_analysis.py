# stdlib
import argparse
from pathlib import Path
# projectlib
from pv_plant_analytics.config.env import data_paths_from_env, model_root_from_env
from pv_plant_analytics.config.station import station_from_env
from pv_plant_analytics.models.inference import BatteryModelSession
from pv_plant_analytics.pipelines.battery import run_battery_analysis
from pv_plant_analytics.utils.logging import Logger
from pv_plant_analytics.utils.paths import validate_address

def parse_args() -> argparse.Namespace:
    """Parse input arguments for the battery analysis."""
    parser = argparse.ArgumentParser(
        description="Classify daily battery stress from station history",
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
        "--write_log",
        action="store_true",
        help="Whether to store message/info outputs to a log file.",
    )

    return parser.parse_args()

def main() -> None:
    """
    Entry point for the battery analysis.

    Writes the per-day verdicts to ``outputs/battery/battery_days.csv``
    and the aligned state-of-charge and temperature samples to
    ``outputs/battery/battery_samples.csv``.
    """
    output_dir = validate_address(
        Path.cwd() / "outputs" / "battery", mkdir=True
    )
    args = parse_args()
    logger = Logger(args.verbosity, output_dir, args.write_log)
    session = BatteryModelSession.from_directory(
        model_root_from_env() / "battery", logger=logger
    )
    result = run_battery_analysis(
        session,
        station_from_env(),
        data_paths_from_env(),
        logger=logger,
    )
    days = validate_address(output_dir / "battery_days.csv", mode="w")
    samples = validate_address(output_dir / "battery_samples.csv", mode="w")
    result.to_frame().write_csv(days)
    result.samples.write_csv(samples)
    for day in result.days:
        logger(
            f"{day.day}: {day.label} "
            f"(stress {day.stress:.2f}, utilization {day.utilization:.2f})",
            verbosity=1,
        )

if __name__ == "__main__":
    main()
