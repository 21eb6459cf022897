# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Selection and embedding of the document-wide form font.

One font is chosen per document: the CJK font when any field value
contains a CJK ideograph, otherwise the default font. The CJK font is
embedded as a subset of the characters the form draws; the default
font is embedded in full so later edits stay renderable.
"""

import logging
from dataclasses import dataclass
from typing import NamedTuple

from pikepdf import Pdf

from ..form import Form
from ..outcomes import DiagnosticsSink, FieldEvent, FieldEventKind, LoggingSink
from .constants import (
    CJK_FONT_INDEX,
    CJK_FONT_LOCATION,
    DEFAULT_FONT_LOCATION,
    FORM_FONT_RESOURCE,
)
from .detection import contains_cjk
from .embedder import EmbeddedFont, FontEmbedder
from .source import DefaultFontSource, FontSource

logger = logging.getLogger(__name__)


@dataclass
class FontConfig:
    """Where the form fonts come from.

    Attributes:
        default_font: Location of the default font (path, URL or
            ``package:`` resource).
        cjk_font: Location of the CJK font.
        default_font_index: Face index when default_font is a collection.
        cjk_font_index: Face index when cjk_font is a collection.
        resource_name: Resource name of the font in the form resources.
    """

    default_font: str = DEFAULT_FONT_LOCATION
    cjk_font: str = CJK_FONT_LOCATION
    default_font_index: int = 0
    cjk_font_index: int = CJK_FONT_INDEX
    resource_name: str = FORM_FONT_RESOURCE


class ResolvedFont(NamedTuple):
    font: EmbeddedFont
    cjk: bool


def form_needs_cjk(form: Form, sink: DiagnosticsSink | None = None) -> bool:
    """Checks whether any field value contains a CJK ideograph.

    A field whose value cannot be read is reported to sink and does not
    match; the scan continues with the next field.

    Args:
        form: The form to scan.
        sink: Receives value-read failures (defaults to logging).

    Returns:
        True if at least one field value contains CJK text.
    """
    sink = sink or LoggingSink()
    for field in form:
        try:
            if contains_cjk(field.text_value()):
                logger.debug("Field %r contains CJK text", field.full_name)
                return True
        except Exception as e:
            sink.record(
                FieldEvent(field.full_name, FieldEventKind.VALUE_READ_FAILED, str(e))
            )
    return False


def collect_render_text(form: Form) -> str:
    """Returns every distinct character the form's appearances may draw."""
    chars: set[str] = set()
    for field in form:
        try:
            chars.update(field.render_text())
        except Exception:
            logger.debug("Could not read text of field %r", field.full_name)
    return "".join(sorted(chars))


async def resolve_form_font(
    pdf: Pdf,
    form: Form,
    config: FontConfig | None = None,
    source: FontSource | None = None,
    sink: DiagnosticsSink | None = None,
) -> ResolvedFont:
    """Chooses, fetches and embeds the form font.

    Args:
        pdf: Document the font is embedded into.
        form: Form whose field values decide the font.
        config: Font locations (defaults to the bundled fonts).
        source: Font byte provider (defaults to DefaultFontSource).
        sink: Receives value-read failures during the scan.

    Returns:
        The embedded font and whether it is the CJK font.

    Raises:
        FontAcquisitionError: If the font bytes cannot be fetched.
        FontEmbeddingError: If the font cannot be embedded.
    """
    config = config or FontConfig()
    source = source or DefaultFontSource()

    with FontEmbedder(pdf) as embedder:
        cjk = form_needs_cjk(form, sink)
        if cjk:
            logger.info("Form contains CJK text, using %s", config.cjk_font)
            font_data = await source.fetch(config.cjk_font)
            font = embedder.embed(
                font_data,
                subset=True,
                text=collect_render_text(form),
                font_index=config.cjk_font_index,
                resource_name=config.resource_name,
            )
        else:
            logger.debug("Using default font %s", config.default_font)
            font_data = await source.fetch(config.default_font)
            font = embedder.embed(
                font_data,
                subset=False,
                font_index=config.default_font_index,
                resource_name=config.resource_name,
            )

    return ResolvedFont(font, cjk)
