#!/usr/bin/env python3
"""
Error taxonomy for the donations data-prep pipeline.

Each component re-raises low-level failures as one of these kinds with the
original exception chained as ``__cause__``.
"""


class PipelineError(Exception):
    """Base class for every failure surfaced by the pipeline."""


class FilesystemError(PipelineError, OSError):
    """A path could not be created, read or written."""


class NetworkError(PipelineError):
    """The API could not be reached, timed out or returned a non-2xx status."""

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(PipelineError, ValueError):
    """Downloaded content is not valid comma-separated tabular text."""
