# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Public import surface for remap components."""

from remap.batch import BatchRemapper, BatchResult
from remap.descriptor import remap_signature, remap_type
from remap.loader import MappingParseError, parse_mappings, read_mappings
from remap.mapping import MappingEntry, MappingTable
from remap.remapper import AccessorTargetError, Remapper, ShadowedFieldReference
from remap.rewriter import RewriteError, TreeRewriter

__all__ = [
    "AccessorTargetError",
    "BatchRemapper",
    "BatchResult",
    "MappingEntry",
    "MappingParseError",
    "MappingTable",
    "Remapper",
    "RewriteError",
    "ShadowedFieldReference",
    "TreeRewriter",
    "parse_mappings",
    "read_mappings",
    "remap_signature",
    "remap_type",
]
