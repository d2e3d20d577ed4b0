# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

"""Exceptions raised by the dataset converter."""

from __future__ import annotations


class ConverterError(Exception):
    """Base class for every fatal conversion error."""


class ConfigurationError(ConverterError):
    """Missing or malformed sensor configuration (or command line input)."""


class OutputError(ConverterError, OSError):
    """Creating or writing the output dataset failed."""


class BagReadError(ConverterError):
    """A stored message could not be read or deserialized."""


__all__ = ["ConverterError", "ConfigurationError", "OutputError", "BagReadError"]
