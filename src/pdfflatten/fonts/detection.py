# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Script detection for choosing the form font."""

import re

from .constants import CJK_RANGES

_CJK_RE = re.compile(
    "[" + "".join(f"{chr(lo)}-{chr(hi)}" for lo, hi in CJK_RANGES) + "]"
)


def _join_surrogates(text: str) -> str:
    """Combine UTF-16 surrogate pairs into their supplementary code points.

    Strings decoded from UTF-16 with ``surrogatepass`` keep pairs as two
    lone surrogates; re-encoding folds them back into one character.
    """
    if not any(0xD800 <= ord(ch) <= 0xDFFF for ch in text):
        return text
    return text.encode("utf-16-le", "surrogatepass").decode(
        "utf-16-le", "replace"
    )


def contains_cjk(text: str | None) -> bool:
    """Checks whether text contains a CJK ideograph.

    Args:
        text: Text to inspect. None and empty strings never match.

    Returns:
        True if any code point lies in one of the CJK_RANGES blocks.
    """
    if not text:
        return False
    return _CJK_RE.search(_join_surrogates(text)) is not None
