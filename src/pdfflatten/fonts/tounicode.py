# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""ToUnicode CMap generation for the embedded form font."""

# Values a ToUnicode CMap must not map to
_FORBIDDEN_UNICODE = frozenset({0x0000, 0xFEFF, 0xFFFE})


def _is_mappable(unicode_val: int) -> bool:
    if unicode_val in _FORBIDDEN_UNICODE:
        return False
    if 0xD800 <= unicode_val <= 0xDFFF:
        return False
    return 0 < unicode_val <= 0x10FFFF


def generate_cidfont_tounicode_cmap(
    code_to_unicode: dict[int, int],
) -> bytes:
    """Generates ToUnicode CMap data for CIDFonts (16-bit encoding).

    Entries mapping to surrogates, U+0000, U+FEFF or U+FFFE are dropped.

    Args:
        code_to_unicode: Mapping from character codes (CIDs) to Unicode.

    Returns:
        CMap data as bytes.
    """
    lines = [
        "/CIDInit /ProcSet findresource begin",
        "12 dict begin",
        "begincmap",
        "/CIDSystemInfo <<",
        "  /Registry (Adobe)",
        "  /Ordering (UCS)",
        "  /Supplement 0",
        ">> def",
        "/CMapName /Adobe-Identity-UCS def",
        "/CMapType 2 def",
        "1 begincodespacerange",
        "<0000> <FFFF>",
        "endcodespacerange",
    ]

    sorted_codes = sorted(
        code
        for code, unicode_val in code_to_unicode.items()
        if 0 <= code <= 0xFFFF and _is_mappable(unicode_val)
    )
    chunk_size = 100

    for i in range(0, len(sorted_codes), chunk_size):
        chunk = sorted_codes[i : i + chunk_size]
        lines.append(f"{len(chunk)} beginbfchar")
        for code in chunk:
            unicode_val = code_to_unicode[code]
            if unicode_val <= 0xFFFF:
                lines.append(f"<{code:04X}> <{unicode_val:04X}>")
            else:
                # Surrogate pair for Unicode > 0xFFFF
                high = 0xD800 + ((unicode_val - 0x10000) >> 10)
                low = 0xDC00 + ((unicode_val - 0x10000) & 0x3FF)
                lines.append(f"<{code:04X}> <{high:04X}{low:04X}>")
        lines.append("endbfchar")

    lines.extend(
        [
            "endcmap",
            "CMapName currentdict /CMap defineresource pop",
            "end",
            "end",
        ]
    )

    return "\n".join(lines).encode("ascii")
