# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Pytest fixtures for the pdfflatten test suite."""

import logging
from io import BytesIO
from pathlib import Path

import pikepdf
import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.ttLib.tables._g_l_y_f import Glyph
from pikepdf import Array, Dictionary, Name, Pdf

from pdfflatten.exceptions import FontAcquisitionError
from pdfflatten.fonts.resolver import FontConfig

# -- Global PDF tracker --

_tracked_pdfs: list[Pdf] = []


@pytest.fixture(autouse=True)
def _auto_close_pdfs():
    """Close all tracked PDF objects after each test."""
    yield
    for pdf in reversed(_tracked_pdfs):
        try:
            pdf.close()
        except Exception:
            pass
    _tracked_pdfs.clear()


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers installed by setup_logging() during a test."""
    yield
    package_logger = logging.getLogger("pdfflatten")
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)


def new_pdf(**kwargs) -> Pdf:
    """Create a tracked Pdf (auto-closed after test)."""
    pdf = Pdf.new(**kwargs)
    _tracked_pdfs.append(pdf)
    return pdf


def open_pdf(source, **kwargs) -> Pdf:
    """Open a tracked Pdf (auto-closed after test)."""
    pdf = Pdf.open(source, **kwargs)
    _tracked_pdfs.append(pdf)
    return pdf


def make_pdf_with_page(pages: int = 1) -> Pdf:
    """Create a PDF with empty letter-size pages (auto-tracked)."""
    pdf = new_pdf()
    for _ in range(pages):
        page = pikepdf.Page(
            Dictionary(Type=Name.Page, MediaBox=Array([0, 0, 612, 792]))
        )
        pdf.pages.append(page)
    return pdf


def resolve(obj: object) -> object:
    """Safely resolve an indirect reference."""
    try:
        return obj.get_object()
    except (AttributeError, TypeError, ValueError):
        return obj


def save_and_reopen(pdf: Pdf) -> Pdf:
    """Save a PDF to bytes and reopen it (auto-tracked)."""
    buf = BytesIO()
    pdf.save(buf)
    pdf.close()
    buf.seek(0)
    return open_pdf(buf)


# -- Fonts --

TEST_FONT_CHARS = " ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789*."
TEST_CJK_CHARS = " 中文字表格"
TEST_FONT_PS_NAME = "TestFlat-Regular"


def _glyph_name(ch: str) -> str:
    if ch == " ":
        return "space"
    cp = ord(ch)
    return f"uni{cp:04X}" if cp <= 0xFFFF else f"u{cp:05X}"


def make_font_data(chars: str = TEST_FONT_CHARS, *, ps_name=TEST_FONT_PS_NAME):
    """Build a TrueType font with empty outlines covering chars.

    Every glyph advances 600 units, space 250 and .notdef 500
    (1000 units per em, ascent 800, descent -200).

    Returns:
        Font file bytes.
    """
    glyphs = [".notdef"]
    cmap = {}
    for ch in chars:
        name = _glyph_name(ch)
        if name not in glyphs:
            glyphs.append(name)
        cmap[ord(ch)] = name

    fb = FontBuilder(1000, isTTF=True)
    fb.setupGlyphOrder(glyphs)
    fb.setupCharacterMap(cmap)

    fb.setupGlyf({})
    glyf_table = fb.font["glyf"]
    for gname in glyphs:
        glyf_table[gname] = Glyph()

    metrics = {g: (600, 0) for g in glyphs}
    metrics[".notdef"] = (500, 0)
    metrics["space"] = (250, 0)
    fb.setupHorizontalMetrics(metrics)
    fb.setupHorizontalHeader(ascent=800, descent=-200)
    fb.setupNameTable(
        {"familyName": "TestFlat", "styleName": "Regular", "psName": ps_name}
    )
    fb.setupOS2(
        sTypoAscender=800,
        sTypoDescender=-200,
        usWinAscent=800,
        usWinDescent=200,
    )
    fb.setupPost()

    buf = BytesIO()
    fb.font.save(buf)
    fb.font.close()
    return buf.getvalue()


class StaticFontSource:
    """Serves font bytes from memory and records every request."""

    def __init__(self, fonts: dict[str, bytes]) -> None:
        self.fonts = fonts
        self.requests: list[str] = []

    async def fetch(self, location: str) -> bytes:
        self.requests.append(location)
        try:
            return self.fonts[location]
        except KeyError:
            raise FontAcquisitionError(f"No such font: {location}") from None


DEFAULT_LOCATION = "memory:default.ttf"
CJK_LOCATION = "memory:cjk.ttf"


@pytest.fixture
def font_data() -> bytes:
    return make_font_data()


@pytest.fixture
def font_source() -> StaticFontSource:
    """Font source holding a Latin default font and a CJK font."""
    return StaticFontSource(
        {
            DEFAULT_LOCATION: make_font_data(),
            CJK_LOCATION: make_font_data(
                TEST_FONT_CHARS + TEST_CJK_CHARS, ps_name="TestFlatCJK-Regular"
            ),
        }
    )


@pytest.fixture
def font_config() -> FontConfig:
    return FontConfig(default_font=DEFAULT_LOCATION, cjk_font=CJK_LOCATION)


# -- Form builders --


def make_appearance(
    pdf: Pdf, w: float, h: float, content: bytes = b""
) -> pikepdf.Stream:
    """Create a Form XObject appearance stream."""
    stream = pdf.make_stream(content)
    stream[Name.Type] = Name.XObject
    stream[Name.Subtype] = Name.Form
    stream[Name.BBox] = Array([0, 0, w, h])
    return stream


def ensure_acroform(pdf: Pdf) -> Dictionary:
    """Return the document's AcroForm, creating an empty one if needed."""
    if "/AcroForm" not in pdf.Root:
        pdf.Root.AcroForm = pdf.make_indirect(
            Dictionary(Fields=Array(), DA=pikepdf.String("/Helv 0 Tf 0 g"))
        )
    return pdf.Root.AcroForm


def attach_widget(pdf: Pdf, page: pikepdf.Page, widget: Dictionary, *, set_p=True):
    """Make widget indirect and add it to the page's /Annots."""
    widget = pdf.make_indirect(widget)
    if set_p:
        widget.P = page.obj
    if "/Annots" not in page.obj:
        page.obj.Annots = Array()
    page.obj.Annots.append(widget)
    return widget


def add_field(
    pdf: Pdf,
    page: pikepdf.Page,
    name: str,
    ft: str,
    *,
    rect=(100, 700, 300, 720),
    value=None,
    flags: int = 0,
    ap=None,
    extra: dict | None = None,
    set_p: bool = True,
) -> Dictionary:
    """Add a merged field/widget dictionary to page and /Fields."""
    d = Dictionary(
        Type=Name.Annot,
        Subtype=Name.Widget,
        FT=Name("/" + ft),
        T=pikepdf.String(name),
        Rect=Array(list(rect)),
    )
    if value is not None:
        d.V = value
    if flags:
        d.Ff = flags
    if ap is not None:
        d.AP = Dictionary(N=ap)
    for k, v in (extra or {}).items():
        d[Name(k)] = v
    field = attach_widget(pdf, page, d, set_p=set_p)
    ensure_acroform(pdf).Fields.append(field)
    return field


def add_text_field(pdf, page, name, value=None, **kwargs) -> Dictionary:
    if value is not None:
        value = pikepdf.String(value)
    return add_field(pdf, page, name, "Tx", value=value, **kwargs)


def add_checkbox(
    pdf, page, name, *, value="Yes", on_state="Yes", rect=(100, 200, 120, 220), **kwargs
) -> Dictionary:
    """Add a check box with Off and on_state appearance streams."""
    w, h = rect[2] - rect[0], rect[3] - rect[1]
    states = Dictionary()
    states[Name("/" + on_state)] = make_appearance(pdf, w, h, b"0 0 1 rg 0 0 5 5 re f")
    states[Name.Off] = make_appearance(pdf, w, h)
    return add_field(
        pdf,
        page,
        name,
        "Btn",
        rect=rect,
        value=Name("/" + value) if value is not None else None,
        ap=states,
        **kwargs,
    )


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def form_pdf() -> Pdf:
    """One page with a text field and a checked check box."""
    pdf = make_pdf_with_page()
    page = pdf.pages[0]
    add_text_field(pdf, page, "name", "Jane Doe")
    add_checkbox(pdf, page, "agree")
    return pdf


@pytest.fixture
def form_pdf_path(tmp_dir: Path, form_pdf: Pdf) -> Path:
    path = tmp_dir / "form.pdf"
    form_pdf.save(path)
    return path


@pytest.fixture
def font_files(tmp_path: Path) -> tuple[Path, Path]:
    """Default and CJK test fonts written to disk."""
    font_dir = tmp_path / "fonts"
    font_dir.mkdir()
    default = font_dir / "default.ttf"
    default.write_bytes(make_font_data())
    cjk = font_dir / "cjk.ttf"
    cjk.write_bytes(
        make_font_data(TEST_FONT_CHARS + TEST_CJK_CHARS, ps_name="TestFlatCJK-Regular")
    )
    return default, cjk


@pytest.fixture
def file_font_config(font_files: tuple[Path, Path]) -> FontConfig:
    default, cjk = font_files
    return FontConfig(default_font=str(default), cjk_font=str(cjk))
