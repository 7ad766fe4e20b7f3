# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Java source resolution with tree-sitter and class path lookup."""

from remap.java.classpath import ClassFileError, ClassInfo, ClasspathIndex, parse_class_file
from remap.java.resolver import JavaSourceResolver

__all__ = [
    "ClassFileError",
    "ClassInfo",
    "ClasspathIndex",
    "JavaSourceResolver",
    "parse_class_file",
]
