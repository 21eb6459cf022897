# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Utility functions for form flattening."""

import logging
import sys
from typing import Any

from pikepdf import Pdf

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Sentinel objgen of direct (non-indirect) objects
DIRECT_OBJGEN = (0, 0)


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """Configures logging for pdfflatten.

    Args:
        verbose: If True, DEBUG level is used.
        quiet: If True, only ERROR and higher are output.
            Takes precedence over verbose.

    Returns:
        Configured logger for pdfflatten.
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    pdfflatten_logger = logging.getLogger("pdfflatten")
    pdfflatten_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    pdfflatten_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    pdfflatten_logger.addHandler(handler)

    logger.debug("Logging configured with level: %s", logging.getLevelName(level))
    return pdfflatten_logger


def is_pdf_encrypted(pdf: Pdf) -> bool:
    """Checks if a PDF is encrypted.

    Args:
        pdf: Opened pikepdf PDF object.

    Returns:
        True if the PDF is encrypted.
    """
    return pdf.is_encrypted


def resolve_indirect(obj: Any) -> Any:
    """Resolve indirect object reference if needed.

    pikepdf objects may be indirect references that need to be resolved.
    This safely handles the resolution without using hasattr which can
    throw exceptions on certain pikepdf object types.

    Args:
        obj: A pikepdf object that may be an indirect reference.

    Returns:
        The resolved object.
    """
    try:
        return obj.get_object()
    except Exception:
        return obj


def safe_objgen(obj: Any) -> tuple[int, int]:
    """Return the ``(obj_num, gen)`` identity of a pikepdf object.

    Direct objects, and anything that is not a pikepdf object, report
    ``(0, 0)``.
    """
    try:
        return tuple(obj.objgen)
    except Exception:
        return DIRECT_OBJGEN
