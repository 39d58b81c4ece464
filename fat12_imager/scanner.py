#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
Host directory scanning
Selects the regular files of a host directory that fit on one floppy.
"""

import os
import logging
from dataclasses import dataclass
from typing import List, Optional

from .fat_utils import FLOPPY_CAPACITY, ROOT_ENTRIES, clusters_for_size
from .directory import FAT12Error

logger = logging.getLogger(__name__)


@dataclass
class ScannedFile:
    """A host file selected for the image"""
    path: str
    name: str
    size: int
    mtime: float


def scan_host_files(directory: str, capacity: int = FLOPPY_CAPACITY,
                    max_entries: int = ROOT_ENTRIES,
                    max_clusters: Optional[int] = None) -> List[ScannedFile]:
    """
    List the regular files of a directory that fit within capacity.

    Files are taken in the order the host filesystem enumerates them, which
    is implementation-defined. The first file that would push the running
    byte total past capacity, or its rounded-up cluster total past
    max_clusters, or that finds no free root directory slot, is dropped
    together with every file after it.

    Args:
        directory: Host directory path.
        capacity: Maximum total bytes of file data.
        max_entries: Maximum number of files (root directory slots).
        max_clusters: Maximum total data clusters, or None for no limit.

    Returns:
        Ordered list of ScannedFile.

    Raises:
        FAT12Error: If the directory cannot be enumerated.
    """
    try:
        with os.scandir(directory) as it:
            dir_entries = list(it)
    except OSError as e:
        logger.critical(f"Cannot enumerate source directory {directory}: {e}")
        raise FAT12Error(f"Cannot enumerate source directory {directory}: {e}")

    files = []
    total_size = 0
    total_clusters = 0
    for i, entry in enumerate(dir_entries):
        try:
            if not entry.is_file():
                continue
            st = entry.stat()
        except OSError as e:
            logger.warning(f"Skipping '{entry.name}': {e}")
            continue

        clusters = clusters_for_size(st.st_size)
        over_clusters = max_clusters is not None and total_clusters + clusters > max_clusters
        if total_size + st.st_size > capacity or over_clusters or len(files) >= max_entries:
            logger.warning(f"Capacity reached at '{entry.name}'; dropping it and "
                           f"{len(dir_entries) - i - 1} later directory entries")
            break

        total_size += st.st_size
        total_clusters += clusters
        files.append(ScannedFile(entry.path, entry.name, st.st_size, st.st_mtime))

    logger.info(f"Scanned {directory}: {len(files)} files, {total_size} bytes, {total_clusters} clusters")
    return files
