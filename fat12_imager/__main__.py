#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
Command-line entry point

    python -m fat12_imager build SOURCE_DIR IMAGE_FILE [--fixed]
    python -m fat12_imager extract IMAGE_FILE OUTPUT_DIR
"""

import sys
import logging

from .directory import FAT12Error
from .image import DiskImage
from .layout import LayoutPolicy
from .builder import build_image
from .extractor import extract_all_files

USAGE = """usage:
  python -m fat12_imager build SOURCE_DIR IMAGE_FILE [--fixed]
  python -m fat12_imager extract IMAGE_FILE OUTPUT_DIR"""


def setup_logging():
    """Configure application-wide logging"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(filename)s:%(lineno)d - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def main(argv=None) -> int:
    """Main entry point"""
    args = list(sys.argv[1:] if argv is None else argv)

    policy = LayoutPolicy.TIGHT_PACK
    if '--fixed' in args:
        args.remove('--fixed')
        policy = LayoutPolicy.FIXED_CAPACITY

    if len(args) != 3 or args[0] not in ('build', 'extract'):
        print(USAGE, file=sys.stderr)
        return 2

    setup_logging()
    logger = logging.getLogger("fat12_imager")

    command, src, dst = args
    try:
        if command == 'build':
            image = build_image(src, policy)
            image.save(dst)
        else:
            result = extract_all_files(DiskImage.load(src), dst)
            for name, reason in result.failed:
                logger.warning(f"Not extracted: {name} ({reason})")
    except FAT12Error as e:
        logger.error(f"{command} failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
