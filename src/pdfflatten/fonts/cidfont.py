# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""CIDFont building for the embedded form font."""

from typing import TYPE_CHECKING

import pikepdf
from pikepdf import Array, Dictionary, Name, Stream

from ..exceptions import FontEmbeddingError
from .metrics import FontMetricsExtractor
from .tounicode import generate_cidfont_tounicode_cmap

if TYPE_CHECKING:
    from fontTools.ttLib import TTFont


def glyph_cids(tt_font: "TTFont") -> dict[str, int]:
    """Maps every glyph name of a font to the CID that selects it.

    TrueType outlines are addressed through an identity CIDToGIDMap, so
    the CID is the glyph index. CID-keyed CFF fonts name their glyphs
    ``cidNNNNN`` and are addressed by that CID; other CFF fonts use the
    glyph index.

    Args:
        tt_font: fonttools TTFont object.

    Returns:
        Mapping from glyph name to CID.
    """
    glyph_order = tt_font.getGlyphOrder()
    cid_keyed = False
    if "CFF " in tt_font:
        top_dict = tt_font["CFF "].cff.topDictIndex[0]
        cid_keyed = hasattr(top_dict, "ROS")

    result: dict[str, int] = {}
    for gid, name in enumerate(glyph_order):
        if cid_keyed and name.startswith("cid") and name[3:].isdigit():
            result[name] = int(name[3:])
        else:
            result[name] = gid
    return result


class CIDFontBuilder:
    """Builds CIDFont/Type0 PDF structures.

    Creates the complete font hierarchy (Type0 font, descendant CIDFont,
    CIDSystemInfo, FontDescriptor with the font program, ToUnicode CMap
    and /W array) for one TrueType or CFF-flavoured OpenType font.
    """

    def __init__(
        self,
        pdf: pikepdf.Pdf,
        metrics_extractor: FontMetricsExtractor,
    ) -> None:
        """Initializes the CIDFontBuilder.

        Args:
            pdf: Opened pikepdf PDF object.
            metrics_extractor: FontMetricsExtractor instance for metrics extraction.
        """
        self._pdf = pdf
        self._metrics = metrics_extractor

    def build_structure(
        self,
        font_name: str,
        tt_font: "TTFont",
        font_data: bytes,
        *,
        encoding: str = "Identity-H",
    ) -> Dictionary:
        """Creates complete Type0/CIDFont structure.

        Args:
            font_name: PostScript name for /BaseFont (with subset tag if any).
            tt_font: fonttools TTFont object parsed from font_data.
            font_data: Raw font program bytes.
            encoding: CMap name, 'Identity-H' (default) or 'Identity-V'.

        Returns:
            Indirect pikepdf Dictionary for the Type0 font.

        Raises:
            FontEmbeddingError: If the font lacks required tables or uses
                unsupported outlines.
        """
        metrics = self._metrics.extract_metrics(tt_font)
        if metrics is None:
            raise FontEmbeddingError(f"Font '{font_name}' missing head/OS2 tables")

        if "glyf" in tt_font:
            subtype = Name.CIDFontType2
            font_stream = Stream(self._pdf, font_data)
            font_stream[Name.Length1] = len(font_data)
            font_file_key = Name.FontFile2
        elif "CFF " in tt_font:
            subtype = Name.CIDFontType0
            font_stream = Stream(self._pdf, font_data)
            font_stream[Name.Subtype] = Name.OpenType
            font_file_key = Name.FontFile3
        else:
            raise FontEmbeddingError(
                f"Font '{font_name}' has neither TrueType nor CFF outlines"
            )

        font_descriptor = Dictionary(
            Type=Name.FontDescriptor,
            FontName=Name(f"/{font_name}"),
            Flags=metrics["Flags"],
            FontBBox=Array(metrics["FontBBox"]),
            ItalicAngle=metrics["ItalicAngle"],
            Ascent=metrics["Ascent"],
            Descent=metrics["Descent"],
            CapHeight=metrics["CapHeight"],
            StemV=metrics["StemV"],
        )
        font_descriptor[font_file_key] = self._pdf.make_indirect(font_stream)

        cids = glyph_cids(tt_font)
        widths = self._metrics.glyph_widths(tt_font)
        code_widths = {cids[name]: width for name, width in widths.items()}
        w_array = self._metrics.build_cidfont_w_array(code_widths)

        glyph_order = tt_font.getGlyphOrder()
        default_width = widths.get(glyph_order[0], 1000) if glyph_order else 1000

        cid_system_info = Dictionary(
            Registry=pikepdf.String("Adobe"),
            Ordering=pikepdf.String("Identity"),
            Supplement=0,
        )

        cid_font = Dictionary(
            Type=Name.Font,
            Subtype=subtype,
            BaseFont=Name(f"/{font_name}"),
            CIDSystemInfo=cid_system_info,
            FontDescriptor=self._pdf.make_indirect(font_descriptor),
            DW=default_width,
            W=Array(self._convert_w_array_to_pikepdf(w_array)),
        )
        if subtype == Name.CIDFontType2:
            cid_font[Name.CIDToGIDMap] = Name.Identity

        to_unicode_data = self._generate_to_unicode_cmap(tt_font, cids)
        to_unicode_stream = Stream(self._pdf, to_unicode_data)

        type0_font = Dictionary(
            Type=Name.Font,
            Subtype=Name.Type0,
            BaseFont=Name(f"/{font_name}"),
            Encoding=Name(f"/{encoding}"),
            DescendantFonts=Array([self._pdf.make_indirect(cid_font)]),
            ToUnicode=self._pdf.make_indirect(to_unicode_stream),
        )

        return self._pdf.make_indirect(type0_font)

    def _generate_to_unicode_cmap(
        self, tt_font: "TTFont", cids: dict[str, int]
    ) -> bytes:
        """Generates the ToUnicode CMap so text stays extractable.

        Args:
            tt_font: fonttools TTFont object.
            cids: Glyph name to CID mapping from glyph_cids().

        Returns:
            CMap data in PostScript format as bytes.
        """
        try:
            cmap = tt_font.getBestCmap()
        except KeyError:
            cmap = None
        if cmap is None:
            cmap = {}

        cid_to_unicode: dict[int, int] = {}
        for unicode_val, glyph_name in sorted(cmap.items()):
            cid = cids.get(glyph_name)
            # Only store the first Unicode value per CID
            if cid is not None and cid not in cid_to_unicode:
                cid_to_unicode[cid] = unicode_val

        return generate_cidfont_tounicode_cmap(cid_to_unicode)

    def _convert_w_array_to_pikepdf(self, w_array: list) -> list:
        """Converts the W array to pikepdf-compatible format.

        Args:
            w_array: W array in Python format [cid, [widths], ...].

        Returns:
            List with pikepdf-compatible objects.
        """
        result = []
        for item in w_array:
            if isinstance(item, list):
                result.append(Array(item))
            else:
                result.append(item)
        return result
