"""Source/documentation path mapping, ignore rules and filesystem access."""

from doch.mapping.filesystem import FileSystem, LocalFileSystem, MemoryFileSystem
from doch.mapping.ignore import IgnoreFilter
from doch.mapping.paths import MappedPath, PathKind, PathMapper

__all__ = [
    "FileSystem",
    "IgnoreFilter",
    "LocalFileSystem",
    "MappedPath",
    "MemoryFileSystem",
    "PathKind",
    "PathMapper",
]
