# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Font metrics extraction for embedded form fonts."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fontTools.ttLib import TTFont


class FontMetricsExtractor:
    """Extracts font metrics from TTFont objects.

    Stateless helper used when building the FontDescriptor and the
    /W array of the embedded CIDFont.
    """

    def _compute_font_flags(self, tt_font: "TTFont") -> int:
        """Computes PDF font flags from TrueType font data.

        PDF Font Flags (ISO 32000):
        - Bit 1 (1): FixedPitch - Monospace font
        - Bit 2 (2): Serif - Font has serifs
        - Bit 3 (4): Symbolic - Non-standard character set
        - Bit 4 (8): Script - Cursive/handwriting style
        - Bit 7 (64): Italic - Slanted glyphs

        CIDFonts always carry the Symbolic flag.

        Args:
            tt_font: fonttools TTFont object.

        Returns:
            Integer with combined font flags.
        """
        flags = 4  # Symbolic

        if "post" in tt_font:
            if getattr(tt_font["post"], "isFixedPitch", 0):
                flags |= 1

        os2 = tt_font.get("OS/2")
        if os2 is not None:
            family_class = getattr(os2, "sFamilyClass", 0) >> 8
            if 1 <= family_class <= 7:
                flags |= 2
            if family_class == 10:
                flags |= 8
            if getattr(os2, "fsSelection", 0) & 0x0001:
                flags |= 64

        if "post" in tt_font and getattr(tt_font["post"], "italicAngle", 0) != 0:
            flags |= 64

        return flags

    def extract_metrics(self, tt_font: "TTFont") -> dict | None:
        """Extracts font metrics from a TrueType/OpenType font.

        Args:
            tt_font: fonttools TTFont object.

        Returns:
            Dictionary with font metrics (FontBBox, Ascent, Descent, etc.),
            or None when the head or OS/2 table is missing.
        """
        if "head" not in tt_font or "OS/2" not in tt_font:
            return None
        head = tt_font["head"]
        os2 = tt_font["OS/2"]
        scale = 1000.0 / head.unitsPerEm

        font_bbox = [
            int(head.xMin * scale),
            int(head.yMin * scale),
            int(head.xMax * scale),
            int(head.yMax * scale),
        ]

        ascent = int(os2.sTypoAscender * scale)
        descent = int(os2.sTypoDescender * scale)

        cap_height = int(getattr(os2, "sCapHeight", 700) * scale)
        # Estimate StemV from usWeightClass: 10 + 220 * (weight/1000)^2
        weight = getattr(os2, "usWeightClass", 400)
        stem_v = int(10 + 220 * (weight / 1000) ** 2)

        italic_angle = 0
        if "post" in tt_font:
            italic_angle = tt_font["post"].italicAngle

        return {
            "FontBBox": font_bbox,
            "Ascent": ascent,
            "Descent": descent,
            "CapHeight": cap_height,
            "StemV": stem_v,
            "ItalicAngle": italic_angle,
            "Flags": self._compute_font_flags(tt_font),
        }

    def glyph_widths(self, tt_font: "TTFont") -> dict[str, int]:
        """Returns advance widths of every glyph in 1000-unit text space.

        Args:
            tt_font: fonttools TTFont object.

        Returns:
            Mapping from glyph name to scaled advance width.
        """
        hmtx = tt_font["hmtx"]
        scale = 1000.0 / tt_font["head"].unitsPerEm
        notdef = hmtx.metrics.get(".notdef", (500, 0))[0]
        return {
            name: round(hmtx.metrics.get(name, (notdef, 0))[0] * scale)
            for name in tt_font.getGlyphOrder()
        }

    def build_cidfont_w_array(self, code_widths: dict[int, int]) -> list:
        """Creates /W array for CIDFont (sparse format).

        The /W array contains character widths in CIDFont-specific format:
        [cid [w1 w2 ...]] for consecutive CIDs or
        [cid_start cid_end width] for equal widths.

        Args:
            code_widths: Mapping from CID to width in 1000-unit text space.

        Returns:
            List in sparse format for the /W array.
        """
        widths = sorted(code_widths.items())

        w_array: list = []
        i = 0
        while i < len(widths):
            start_cid = widths[i][0]

            # Find the full run of consecutive CIDs
            j = i + 1
            while j < len(widths) and widths[j][0] == start_cid + (j - i):
                j += 1
            run = widths[i:j]

            # Split run into sub-runs: same-width ranges vs mixed sequences
            k = 0
            while k < len(run):
                w = run[k][1]
                m = k + 1
                while m < len(run) and run[m][1] == w:
                    m += 1

                if m - k >= 4:
                    # Range format: cid_first cid_last width
                    w_array.extend([run[k][0], run[m - 1][0], w])
                    k = m
                else:
                    # Individual format: collect until next same-width run (>=4)
                    end = m
                    while end < len(run):
                        w2 = run[end][1]
                        lookahead = end + 1
                        while lookahead < len(run) and run[lookahead][1] == w2:
                            lookahead += 1
                        if lookahead - end >= 4:
                            break
                        end = lookahead
                    w_array.append(run[k][0])
                    w_array.append([run[n][1] for n in range(k, end)])
                    k = end

            i = j

        return w_array
