"""Audit trail pipeline: key, bucket, optional topic and the trail itself."""

from .assembler import PipelineAssembler
from .config import CaptureMode, IdentityFacts, TrailConfig, load_config, parse_config
from .graph import ResourceGraph

__all__ = [
    "CaptureMode",
    "IdentityFacts",
    "PipelineAssembler",
    "ResourceGraph",
    "TrailConfig",
    "load_config",
    "parse_config",
]
