# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Font subsetting for the embedded form font.

Reduces file size by removing glyphs the form never renders. Uses
fontTools.subset with retain_gids=True to keep GIDs stable, so the
glyph codes written into appearance streams stay valid.
"""

import logging
import random
import string
from io import BytesIO

logger = logging.getLogger(__name__)


def generate_subset_prefix() -> str:
    """Generates a random 6-letter uppercase subset prefix.

    Returns:
        String like "ABCDEF+" for use as a font subset tag.
    """
    letters = "".join(random.choices(string.ascii_uppercase, k=6))
    return f"{letters}+"


def subset_font_data(font_data: bytes, text: str) -> bytes | None:
    """Subsets TrueType or CFF/OpenType font data to the glyphs of text.

    Args:
        font_data: Original font bytes (a single face, not a collection).
        text: Every character the font has to render.

    Returns:
        Subsetted font bytes, or None when the font cannot be subset.
    """
    from fontTools.subset import Options, Subsetter
    from fontTools.ttLib import TTFont

    tt_font = None
    try:
        tt_font = TTFont(BytesIO(font_data))

        # fontTools requires a cmap table for subsetting
        cmap_table = tt_font.get("cmap")
        if cmap_table is None or not any(t.cmap for t in cmap_table.tables):
            logger.debug("Font has no cmap table, skipping subsetting")
            return None

        options = Options()
        options.retain_gids = True
        options.notdef_outline = True
        options.name_legacy = True
        options.name_IDs = ["*"]
        options.name_languages = ["*"]

        subsetter = Subsetter(options=options)
        # Space is always kept: word wrapping and comb layout measure it
        subsetter.populate(unicodes={ord(ch) for ch in text} | {0x20})
        subsetter.subset(tt_font)

        output = BytesIO()
        tt_font.save(output)
        return output.getvalue()

    except Exception as e:
        logger.debug("fontTools subsetting error: %s", e)
        return None

    finally:
        if tt_font is not None:
            try:
                tt_font.close()
            except Exception:
                pass
