# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Font constants and default font locations."""

# Location prefix for fonts shipped inside the package
# (``pdfflatten/resources/fonts``)
PACKAGE_SCHEME = "package:"

# Default Unicode-coverage font, embedded unsubsetted
DEFAULT_FONT_LOCATION = f"{PACKAGE_SCHEME}NotoSans-Regular.ttf"

# CJK-coverage font, embedded as a subset of the glyphs in use
CJK_FONT_LOCATION = f"{PACKAGE_SCHEME}NotoSansCJK-Regular.ttc"

# NotoSansCJK TTC face index for Simplified Chinese
CJK_FONT_INDEX = 0

# Resource name of the form font in /AcroForm /DR /Font and in /DA strings
FORM_FONT_RESOURCE = "FlatFont"

# Code point ranges treated as CJK ideographs when choosing the form font:
# CJK Unified Ideographs, Extension A, and the supplementary-plane
# Extensions B through H
CJK_RANGES: tuple[tuple[int, int], ...] = (
    (0x4E00, 0x9FFF),
    (0x3400, 0x4DBF),
    (0x20000, 0x2A6DF),
    (0x2A700, 0x2B73F),
    (0x2B740, 0x2B81F),
    (0x2B820, 0x2CEAF),
    (0x2CEB0, 0x2EBEF),
    (0x30000, 0x3134F),
)
