# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Embedding of the document-wide form font."""

import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import TYPE_CHECKING

import pikepdf
from pikepdf import Dictionary

from ..exceptions import FontEmbeddingError
from .cidfont import CIDFontBuilder, glyph_cids
from .constants import FORM_FONT_RESOURCE
from .metrics import FontMetricsExtractor
from .subsetter import generate_subset_prefix, subset_font_data

if TYPE_CHECKING:
    from fontTools.ttLib import TTFont

logger = logging.getLogger(__name__)

# Characters allowed in a PDF /BaseFont name taken from the name table
_PS_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass
class EmbeddedFont:
    """A Type0 font embedded in the document, with its layout metrics.

    Attributes:
        base_name: PostScript name written to /BaseFont.
        resource_name: Key under which the font is registered in
            /AcroForm /DR /Font and referenced from /DA strings.
        font_dict: Indirect Type0 font dictionary.
        cmap: Unicode code point to glyph name mapping.
        cids: Glyph name to CID mapping.
        widths: Glyph name to advance width (1000-unit text space).
        ascent: Typographic ascender (1000-unit text space).
        descent: Typographic descender, negative (1000-unit text space).
        subset: True if the font program was subset.
    """

    base_name: str
    resource_name: str
    font_dict: Dictionary
    cmap: dict[int, str]
    cids: dict[str, int]
    widths: dict[str, int]
    ascent: int
    descent: int
    subset: bool = False
    notdef: str = ".notdef"

    def _glyph(self, ch: str) -> str:
        return self.cmap.get(ord(ch), self.notdef)

    def encode(self, text: str) -> str:
        """Encodes text as the hex string of 2-byte CIDs for ``<...> Tj``."""
        return "".join(f"{self.cids.get(self._glyph(ch), 0):04X}" for ch in text)

    def char_width(self, ch: str, font_size: float) -> float:
        """Returns the advance width of one character at font_size."""
        return self.widths.get(self._glyph(ch), 0) * font_size / 1000.0

    def text_width(self, text: str, font_size: float) -> float:
        """Returns the advance width of text at font_size."""
        return sum(self.widths.get(self._glyph(ch), 0) for ch in text) * (
            font_size / 1000.0
        )

    def missing_chars(self, text: str) -> set[str]:
        """Returns the characters of text that have no glyph in the font."""
        return {ch for ch in text if ord(ch) not in self.cmap and not ch.isspace()}


@dataclass
class _LoadedFace:
    data: bytes
    tt_font: "TTFont"


class FontEmbedder:
    """Embeds font programs into one PDF as Type0/CID fonts.

    One embedder is created per document before the first embedding
    call; it owns the parsed fonts and releases them on close().
    """

    def __init__(self, pdf: pikepdf.Pdf) -> None:
        """Initializes the FontEmbedder.

        Args:
            pdf: Opened pikepdf PDF object.
        """
        self.pdf = pdf
        self._faces: list[_LoadedFace] = []
        self._metrics = FontMetricsExtractor()
        self._cidfont_builder = CIDFontBuilder(pdf, self._metrics)

    def close(self) -> None:
        """Close all parsed TTFont objects to release memory."""
        for face in self._faces:
            try:
                face.tt_font.close()
            except Exception:
                pass
        self._faces.clear()

    def __enter__(self) -> "FontEmbedder":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def embed(
        self,
        font_data: bytes,
        *,
        subset: bool = False,
        text: str = "",
        font_index: int = 0,
        resource_name: str = FORM_FONT_RESOURCE,
    ) -> EmbeddedFont:
        """Embeds a TrueType/OpenType font (or one face of a collection).

        Args:
            font_data: Raw font file bytes (.ttf, .otf, .ttc or .otc).
            subset: If True, only the glyphs needed for text are kept.
            text: Characters the font must render (used when subsetting).
            font_index: Face index inside a font collection.
            resource_name: Resource name for the font in form resources.

        Returns:
            EmbeddedFont describing the new Type0 font.

        Raises:
            FontEmbeddingError: If the font data cannot be parsed or embedded.
        """
        face_data = self._extract_face(font_data, font_index)

        is_subset = False
        if subset:
            subset_data = subset_font_data(face_data, text)
            if subset_data is None:
                logger.warning("Font subsetting failed, embedding full font")
            else:
                logger.debug(
                    "Font subsetted: %d -> %d bytes", len(face_data), len(subset_data)
                )
                face_data = subset_data
                is_subset = True

        tt_font = self._parse(face_data)
        self._faces.append(_LoadedFace(face_data, tt_font))

        try:
            base_name = _postscript_name(tt_font)
            if is_subset:
                base_name = generate_subset_prefix() + base_name

            font_dict = self._cidfont_builder.build_structure(
                base_name, tt_font, face_data
            )

            cmap = tt_font.getBestCmap() or {}
            metrics = self._metrics.extract_metrics(tt_font) or {}
            glyph_order = tt_font.getGlyphOrder()
        except FontEmbeddingError:
            raise
        except Exception as e:
            raise FontEmbeddingError(f"Could not embed font: {e}") from e

        embedded = EmbeddedFont(
            base_name=base_name,
            resource_name=resource_name,
            font_dict=font_dict,
            cmap=dict(cmap),
            cids=glyph_cids(tt_font),
            widths=self._metrics.glyph_widths(tt_font),
            ascent=metrics.get("Ascent", 800),
            descent=metrics.get("Descent", -200),
            subset=is_subset,
            notdef=glyph_order[0] if glyph_order else ".notdef",
        )
        logger.info(
            "Font embedded: %s (%s)",
            base_name,
            "subset" if is_subset else "full",
        )
        return embedded

    def _extract_face(self, font_data: bytes, font_index: int) -> bytes:
        """Returns the bytes of a single face, unpacking font collections."""
        if font_data[:4] != b"ttcf":
            return font_data

        from fontTools.ttLib import TTCollection

        try:
            ttc = TTCollection(BytesIO(font_data))
        except Exception as e:
            raise FontEmbeddingError(f"Could not parse font collection: {e}") from e
        try:
            if not ttc.fonts:
                raise FontEmbeddingError("Font collection contains no fonts")
            if font_index >= len(ttc.fonts):
                font_index = 0
            # Serialize the single face for embedding
            buf = BytesIO()
            ttc.fonts[font_index].save(buf)
            return buf.getvalue()
        finally:
            ttc.close()

    def _parse(self, face_data: bytes) -> "TTFont":
        from fontTools.ttLib import TTFont

        try:
            tt_font = TTFont(BytesIO(face_data))
            tt_font.getGlyphOrder()
        except Exception as e:
            raise FontEmbeddingError(f"Could not parse font data: {e}") from e
        if "CFF2" in tt_font:
            tt_font.close()
            raise FontEmbeddingError("Variable CFF2 fonts cannot be embedded")
        return tt_font


def _postscript_name(tt_font: "TTFont") -> str:
    """Returns a /BaseFont-safe PostScript name for the font."""
    name = None
    if "name" in tt_font:
        name = tt_font["name"].getDebugName(6) or tt_font["name"].getDebugName(4)
    name = _PS_NAME_RE.sub("", name or "")
    return name or "FormFont"
