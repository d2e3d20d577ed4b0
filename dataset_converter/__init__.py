# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

# Re-export main entry points for convenience.

from .errors import ConverterError, ConfigurationError, OutputError, BagReadError
from .config import SensorKind, SensorEntry, SensorConfig, load_sensor_config, load_config_file
from .topics import TopicResolver, toggle_separator
from .layout import CSV_HEADERS, OutputLayout, OutputSink, build_output_layout, output_root_for_bag
from .images import ImageDecodeError, decode_image, write_image
from .bag_io import BagReader, list_topics_in_bag
from .converter import ConverterState, ConversionResult, DatasetConverter, convert_bag

__version__ = "0.1.0"
