# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Catalog and AcroForm cleanup around flattening."""

import logging

from pikepdf import Array, Pdf

from ..utils import resolve_indirect as _resolve_indirect

logger = logging.getLogger(__name__)

# AcroForm entries that only apply to interactive forms
_INTERACTIVE_KEYS = ("/XFA", "/NeedsRendering", "/NeedAppearances", "/SigFlags")


def remove_optional_content(pdf: Pdf) -> bool:
    """Removes /OCProperties from the catalog.

    Without optional content configuration every layer is shown, so
    flattened appearances tied to hidden layers stay visible.

    Args:
        pdf: Opened pikepdf PDF object (modified in place).

    Returns:
        True if /OCProperties was removed.
    """
    if "/OCProperties" not in pdf.Root:
        return False
    del pdf.Root["/OCProperties"]
    logger.debug("Removed /OCProperties from catalog")
    return True


def finalize_acroform(pdf: Pdf) -> int:
    """Strips interactive entries from /AcroForm and empties /Fields.

    Args:
        pdf: Opened pikepdf PDF object (modified in place).

    Returns:
        Number of entries removed.
    """
    if "/AcroForm" not in pdf.Root:
        return 0

    acroform = _resolve_indirect(pdf.Root.AcroForm)
    removed = 0
    for key in _INTERACTIVE_KEYS:
        if key in acroform:
            del acroform[key]
            removed += 1
            logger.debug("Removed %s from AcroForm", key)

    acroform["/Fields"] = Array()
    return removed
