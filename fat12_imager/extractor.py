#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
FAT12 Image Extractor
Reconstructs the root directory files of a FAT12 image on the host filesystem.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .fat_utils import CLUSTER_SIZE, DATA_START_SECTOR, FIRST_DATA_CLUSTER
from .fat import read_fat_entry, classify_cluster, CLUSTER_USED, CLUSTER_EOF
from .boot import parse_boot_sector
from .directory import read_root_directory, FAT12Error, FAT12CorruptionError

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Result of extracting every file of an image"""
    extracted: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


def extract_file(image, entry: dict) -> bytes:
    """
    Extract file data from the image.

    Follows the cluster chain to read the complete file content.

    Args:
        image: Anything with ``get_sector(n)``.
        entry: The file's directory entry dictionary.

    Returns:
        The file content as bytes.

    Raises:
        FAT12CorruptionError: If the cluster chain is broken or loops.
    """
    logger.debug(f"Extracting file '{entry.get('name')}' (Size: {entry.get('size')})")
    size = entry['size']
    if size == 0:
        return bytes()

    data = bytearray()
    current_cluster = entry['cluster']
    remaining = size
    visited = set()

    if classify_cluster(current_cluster) != CLUSTER_USED:
        raise FAT12CorruptionError(f"Invalid start cluster {current_cluster:#05x} for '{entry['name']}'")

    while remaining > 0:
        if current_cluster in visited:
            raise FAT12CorruptionError(f"Loop detected in file cluster chain at {current_cluster}")
        visited.add(current_cluster)

        sector = image.get_sector(DATA_START_SECTOR + (current_cluster - FIRST_DATA_CLUSTER))
        to_read = min(CLUSTER_SIZE, remaining)
        data.extend(sector[:to_read])
        remaining -= to_read
        if remaining == 0:
            break

        next_cluster = read_fat_entry(image, current_cluster)
        status = classify_cluster(next_cluster)
        if status == CLUSTER_EOF:
            break
        if status != CLUSTER_USED:
            raise FAT12CorruptionError(f"{status} cluster {next_cluster:#05x} in chain of '{entry['name']}'")
        current_cluster = next_cluster

    if len(data) < size:
        raise FAT12CorruptionError(f"File '{entry['name']}' truncated: Expected {size} bytes, got {len(data)}")

    return bytes(data)


def safe_output_path(output_dir: str, name: str) -> Optional[str]:
    """
    Resolve name inside output_dir.

    Returns:
        The output path, or None if name is empty, is '.' or '..', contains
        a path separator, or would resolve outside output_dir.
    """
    if not name or name in ('.', '..'):
        return None
    if os.sep in name or (os.altsep and os.altsep in name):
        return None

    root = os.path.realpath(output_dir)
    out_path = os.path.realpath(os.path.join(root, name))
    if os.path.commonpath([root, out_path]) != root or out_path == root:
        return None
    return os.path.join(output_dir, name)


def extract_all_files(image, output_dir: str) -> ExtractionResult:
    """
    Write every file of the root directory into output_dir.

    A file that cannot be extracted or written is logged and recorded in the
    result; the remaining files are still processed. Entries whose name
    would land outside output_dir are refused the same way.

    An entry with size 0 and start cluster 0 is written as an empty file.
    That is how the builder records empty files; entries with any other
    start cluster outside [2, 0xFF0) are skipped.

    Args:
        image: Anything with ``get_sector(n)``.
        output_dir: Host directory to write into (created if missing).

    Returns:
        ExtractionResult listing written paths and failures.

    Raises:
        FAT12Error: If the output directory cannot be created.
    """
    bpb = parse_boot_sector(image.get_sector(0))
    if not bpb.has_valid_signature:
        logger.warning("Boot sector signature is not 0x55AA")
    if not bpb.matches_floppy_geometry:
        logger.warning("Boot sector geometry differs from the 1.44 MB layout; reading with fixed layout")

    try:
        os.makedirs(output_dir, exist_ok=True)
    except OSError as e:
        logger.critical(f"Cannot create output directory {output_dir}: {e}")
        raise FAT12Error(f"Cannot create output directory {output_dir}: {e}")

    result = ExtractionResult()
    for entry in read_root_directory(image):
        name = entry['name']
        cluster = entry['cluster']

        out_path = safe_output_path(output_dir, name)
        if out_path is None:
            logger.warning(f"Skipping '{name}': name escapes {output_dir}")
            result.failed.append((name, "unsafe file name"))
            continue

        if entry['size'] == 0 and cluster == 0:
            data = bytes()
        elif classify_cluster(cluster) == CLUSTER_USED:
            try:
                data = extract_file(image, entry)
            except FAT12CorruptionError as e:
                logger.error(f"Corruption extracting '{name}': {e}")
                result.failed.append((name, str(e)))
                continue
        else:
            logger.warning(f"Skipping '{name}': start cluster {cluster} out of range")
            result.failed.append((name, f"start cluster {cluster} out of range"))
            continue

        try:
            with open(out_path, 'wb') as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Failed to write '{out_path}': {e}")
            result.failed.append((name, str(e)))
            continue

        result.extracted.append(out_path)

    logger.info(f"Extracted {len(result.extracted)} files to {output_dir}, {len(result.failed)} failed")
    return result
