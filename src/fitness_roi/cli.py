"""
cli.py - Command line entry point

Usage:
    fitness-roi run [--env dev|prod] [--input-path PATH] [--output-path PATH]
                    [--input-format csv|parquet] [--warehouse] [--strict] [date_string]
    fitness-roi generate [--users N] [--output-dir PATH]

Also runnable with spark-submit:
    spark-submit fitness_roi/cli.py run --env prod 2025-03-31
"""

import sys
import argparse
import logging

from fitness_roi.config import load_config, get_spark_session, ENVIRONMENTS
from fitness_roi.data_generation import fitness_app
from fitness_roi.exceptions import PipelineError
from fitness_roi.orchestration.pipeline import run_pipeline, get_date_to_process


def build_parser():
    parser = argparse.ArgumentParser(prog="fitness-roi", description="Per-user marketing ROI pipeline")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Run the pipeline once")
    run.add_argument("date", nargs="?", default=None, help="Processing date (YYYY-MM-DD), defaults to yesterday")
    run.add_argument("--env", choices=sorted(ENVIRONMENTS), default=None, help="Target environment")
    run.add_argument("--input-path", default=None, help="Directory holding the raw feeds")
    run.add_argument("--output-path", default=None, help="Directory for parquet marts")
    run.add_argument("--input-format", choices=["csv", "parquet"], default="csv")
    run.add_argument("--warehouse", action="store_true", default=None, help="Write marts to Snowflake")
    run.add_argument("--strict", action="store_true", help="Fail on any malformed row or missing cost reference")
    run.add_argument("--dry-run", action="store_true", help="Compute and test the marts without writing them")

    generate = commands.add_parser("generate", help="Write synthetic raw feeds")
    fitness_app.build_parser(generate)
    return parser


def run_command(args):
    overrides = {
        "input_path": args.input_path,
        "output_path": args.output_path,
        "input_format": args.input_format,
        "strict": args.strict,
    }
    if args.warehouse is not None:
        overrides["use_warehouse"] = args.warehouse
    pipeline_config = load_config(args.env, **overrides)

    spark = get_spark_session(use_warehouse=pipeline_config.use_warehouse)
    try:
        report, _ = run_pipeline(
            spark,
            pipeline_config,
            processing_date=get_date_to_process(args.date),
            write=not args.dry_run,
        )
    except PipelineError as e:
        print(f"Run failed: {e}", file=sys.stderr)
        return 1
    finally:
        spark.stop()

    print(report.to_json())
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "generate":
        paths = fitness_app.generate_from_args(args)
        print(f"Wrote raw feeds: {', '.join(sorted(paths.values()))}")
        return 0
    return run_command(args)


if __name__ == "__main__":
    sys.exit(main())
