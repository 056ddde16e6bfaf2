"""On-disk caching for the loaded script.

This package provides :class:`FileCache`, a single-directory key/value
store whose entries expire by file modification time. The loader keeps
exactly one entry in it: the script for the configured channel.
"""

from jsloader.cache.file_cache import FileCache

__all__ = ["FileCache"]
