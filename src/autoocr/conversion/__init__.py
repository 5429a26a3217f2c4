"""
Domain layer for document conversion.
Provides the converter gateway, the on-disk naming conventions for jobs and
the processor that drains the input directory, so the HTTP surface and the
watcher can share the same core logic.
"""

from .interfaces import ConverterGateway, JobPaths, TriggerTarget
from .markers import debug_marker_name, input_file_name, output_file_name, success_marker_name
from .service import Processor
