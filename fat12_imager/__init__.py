"""
FAT12 floppy image builder and extractor
"""

from .directory import FAT12Error, FAT12CorruptionError, ImageTooLargeError
from .image import DiskImage
from .layout import LayoutPolicy
from .builder import ImageBuilder, build_image
from .extractor import ExtractionResult, extract_all_files, extract_file

__all__ = [
    'FAT12Error', 'FAT12CorruptionError', 'ImageTooLargeError',
    'DiskImage', 'LayoutPolicy', 'ImageBuilder', 'build_image',
    'ExtractionResult', 'extract_all_files', 'extract_file',
]
