"""
stage-sink - batched CSV staging uploads for cloud data warehouses
"""

__version__ = "0.1.0"

from stage_sink.decoder import MapToRecordTransformer, StructuredRecord
from stage_sink.pipeline import StagePipeline
from stage_sink.types import CSVRecord
from stage_sink.writer import StageRecordWriter

__all__ = [
    "CSVRecord",
    "MapToRecordTransformer",
    "StagePipeline",
    "StageRecordWriter",
    "StructuredRecord",
]
