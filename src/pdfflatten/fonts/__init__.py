# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Form font selection, acquisition and embedding."""

from .detection import contains_cjk
from .embedder import EmbeddedFont, FontEmbedder
from .resolver import FontConfig, ResolvedFont, form_needs_cjk, resolve_form_font
from .source import DefaultFontSource, FileFontSource, FontSource, HttpFontSource

__all__ = [
    "DefaultFontSource",
    "EmbeddedFont",
    "FileFontSource",
    "FontConfig",
    "FontEmbedder",
    "FontSource",
    "HttpFontSource",
    "ResolvedFont",
    "contains_cjk",
    "form_needs_cjk",
    "resolve_form_font",
]
