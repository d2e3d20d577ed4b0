#!/usr/bin/env python3
# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.
"""
Bag -> dataset conversion tool

Splits a recorded bag into one folder per configured sensor:

    <bagDir>/<bagName>/<sensor>/<data_file>          CSV, one line per message
    <bagDir>/<bagName>/<sensor>/<data_dir>/<ts>.png  camera frames

Usage:
    python3 dataset_convert.py --help
    python3 dataset_convert.py /abs/path/run1.bag --config config/dataset_convertor.yaml
    python3 dataset_convert.py /abs/path/run1.bag --config config/dataset_convertor.yaml --list-topics
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from dataset_converter import (
    ConverterError,
    ConfigurationError,
    convert_bag,
    list_topics_in_bag,
    load_config_file,
)
from dataset_converter.config import TYPESTORE_DEFAULT

logger = logging.getLogger("dataset_convert")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert a bag into per-sensor CSV files and PNG images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert, writing next to the bag
  python dataset_convert.py /data/run1.bag -c config/dataset_convertor.yaml

  # rosbag2 folders need an explicit output folder
  python dataset_convert.py /data/run1 -c config/dataset_convertor.yaml --output-dir /data/run1_dataset

  # Show which topics map to which sensor
  python dataset_convert.py /data/run1.bag -c config/dataset_convertor.yaml --list-topics
        """
    )
    parser.add_argument("bag", type=str,
                        help="Absolute path to the bag file (or rosbag2 folder)")
    parser.add_argument("-c", "--config", type=str, required=True,
                        help="YAML sensor configuration")
    parser.add_argument("--output-dir", type=str,
                        help="Output folder (default: <bagDir>/<bagName>)")
    parser.add_argument("--typestore", type=str, default=TYPESTORE_DEFAULT,
                        help=f"Message definitions for bags that do not carry them (default: {TYPESTORE_DEFAULT})")
    parser.add_argument("--list-topics", action="store_true",
                        help="Only list bag topics and the sensor each one resolves to")
    parser.add_argument("--no-progress", action="store_true",
                        help="Disable the progress bar")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%y/%m/%d %H:%M:%S",
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        bag_path = Path(args.bag)
        if not bag_path.is_absolute():
            raise ConfigurationError(
                "Relative paths are not supported. Use an absolute path instead, "
                "for example: dataset_convert.py /absolute/path/here.bag"
            )

        logger.info("Initializing sensor information:")
        config = load_config_file(args.config)
        logger.info("%d sensor(s): %s", len(config), ", ".join(e.name for e in config))

        if args.list_topics:
            df = list_topics_in_bag(bag_path, config, typestore=args.typestore)
            with pd.option_context("display.max_rows", None, "display.width", 200):
                print(df.to_string(index=False) if not df.empty else "(no topics)")
            return 0

        result = convert_bag(
            bag_path,
            config,
            output_root=args.output_dir,
            typestore=args.typestore,
            progress=not args.no_progress,
        )
    except ConverterError as e:
        logger.error("FAIL! %s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("Conversion interrupted by user")
        return 1

    for name, count in result.per_sensor.items():
        logger.info("  %s: %d record(s)", name, count)
    logger.info("DONE! Dataset written to %s", result.output_root)
    return 0


if __name__ == "__main__":
    sys.exit(main())
