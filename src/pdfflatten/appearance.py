# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Regeneration of widget appearance streams with the form font.

Before widgets are flattened their normal appearances are rebuilt so
that field values are drawn with the embedded form font. Each builder
falls back through 3 levels:
1. Full widget appearance (text + border + background)
2. Border-only (visible frame, no text)
3. Empty stream (last resort)
"""

import logging
import math
import re

import pikepdf
from pikepdf import Array, Dictionary, Name, Pdf

from .fonts.embedder import EmbeddedFont
from .form import (
    OFF_STATE,
    ButtonField,
    ChoiceField,
    Form,
    FormField,
    PushButtonField,
    RadioGroupField,
    TextField,
    WidgetAnnotation,
)
from .outcomes import DiagnosticsSink, FieldEvent, FieldEventKind, LoggingSink
from .utils import resolve_indirect

logger = logging.getLogger(__name__)

# Regex to extract font name and size from DA string like "/Helv 12 Tf"
_DA_FONT_RE = re.compile(r"/(\S+)\s+([\d.]+)\s+Tf")

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")

_DEFAULT_FONT_SIZE = 12.0
_MIN_AUTO_FONT_SIZE = 4.0
_MAX_AUTO_FONT_SIZE = 12.0
_LEADING = 1.2


def update_field_appearances(
    pdf: Pdf,
    form: Form,
    font: EmbeddedFont,
    *,
    refresh_existing: bool = True,
    sink: DiagnosticsSink | None = None,
) -> int:
    """Rebuilds widget appearances of every field with the form font.

    The font is registered in /AcroForm /DR /Font and every field's /DA
    is switched to it. Check boxes and radio buttons only gain the
    appearance states they are missing; push buttons and signatures
    only get an appearance when they have none.

    Args:
        pdf: Opened pikepdf PDF object.
        form: The document's form.
        font: Embedded form font.
        refresh_existing: If False, text and choice widgets that already
            carry a normal appearance are left untouched.
        sink: Receives per-field failures (defaults to logging).

    Returns:
        Number of widgets whose appearance was (re)built.
    """
    sink = sink or LoggingSink()
    _register_form_font(form, font)

    updated = 0
    for field in form:
        try:
            _set_field_font(field, font)
        except Exception as e:
            sink.record(
                FieldEvent(field.full_name, FieldEventKind.APPEARANCE_FAILED, str(e))
            )
            continue
        for widget in field.widgets:
            try:
                if _update_widget(pdf, field, widget, font, refresh_existing):
                    updated += 1
            except Exception as e:
                sink.record(
                    FieldEvent(
                        field.full_name, FieldEventKind.APPEARANCE_FAILED, str(e)
                    )
                )

    logger.debug("Rebuilt %d widget appearance(s)", updated)
    return updated


# ---------------------------------------------------------------------------
# Form font registration
# ---------------------------------------------------------------------------


def _register_form_font(form: Form, font: EmbeddedFont) -> None:
    """Adds the font to /AcroForm /DR /Font."""
    acroform = form.acroform
    if acroform is None:
        return
    if acroform.get("/DR") is None:
        acroform[Name.DR] = Dictionary()
    dr = resolve_indirect(acroform.DR)
    if dr.get("/Font") is None:
        dr[Name.Font] = Dictionary()
    fonts = resolve_indirect(dr.Font)
    fonts[Name("/" + font.resource_name)] = font.font_dict


def _replace_da_font(da: str, resource_name: str) -> str:
    """Returns da with its Tf operand replaced by the given font."""
    if _DA_FONT_RE.search(da):
        return _DA_FONT_RE.sub(
            lambda m: f"/{resource_name} {m.group(2)} Tf", da, count=1
        )
    return f"/{resource_name} 0 Tf {da}".strip()


def _set_field_font(field: FormField, font: EmbeddedFont) -> None:
    """Points the /DA of the field (and widgets carrying their own) at font."""
    da = field.get_inheritable("/DA")
    da_str = str(da) if da is not None else "0 g"
    field.obj[Name.DA] = pikepdf.String(_replace_da_font(da_str, font.resource_name))
    for widget in field.widgets:
        if widget.obj is field.obj:
            continue
        own = widget.obj.get("/DA")
        if own is not None:
            widget.obj[Name.DA] = pikepdf.String(
                _replace_da_font(str(own), font.resource_name)
            )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def _update_widget(
    pdf: Pdf,
    field: FormField,
    widget: WidgetAnnotation,
    font: EmbeddedFont,
    refresh_existing: bool,
) -> bool:
    existing = widget.normal_appearance()

    if isinstance(field, ButtonField):
        return _update_state_appearance(pdf, field, widget)

    if isinstance(field, (TextField, ChoiceField)):
        if existing is not None and not refresh_existing:
            return False
    elif existing is not None:
        return False

    if existing is not None:
        # A failed rebuild keeps the existing appearance
        stream = build_widget_appearance(pdf, field, widget, font)
    else:
        stream = create_widget_appearance(pdf, field, widget, font)
    _set_normal_appearance(widget, stream)
    return True


def _set_normal_appearance(widget: WidgetAnnotation, appearance) -> None:
    ap = widget.obj.get("/AP")
    if isinstance(ap, Dictionary):
        ap[Name.N] = appearance
        # Down/rollover appearances would show stale values
        for key in ("/D", "/R"):
            if key in ap:
                del ap[key]
    else:
        widget.obj[Name.AP] = Dictionary(N=appearance)


def build_widget_appearance(
    pdf: Pdf,
    field: FormField,
    widget: WidgetAnnotation,
    font: EmbeddedFont,
) -> pikepdf.Stream:
    """Renders one widget of field, raising on malformed attributes."""
    annot = widget.obj
    if isinstance(field, TextField):
        if field.is_comb:
            return _build_comb_field_appearance(pdf, field, annot, font)
        if field.is_multiline:
            return _build_multiline_text_appearance(pdf, field, annot, font)
        return _build_single_line_text_appearance(
            pdf, field, annot, font, _display_text(field)
        )
    if isinstance(field, ChoiceField):
        if field.is_combo:
            return _build_single_line_text_appearance(
                pdf, field, annot, font, _display_text(field)
            )
        return _build_listbox_appearance(pdf, field, annot, font)
    if isinstance(field, PushButtonField):
        return _build_pushbutton_appearance(pdf, field, annot, font)
    return _build_border_only_appearance(pdf, annot)


def create_widget_appearance(
    pdf: Pdf,
    field: FormField,
    widget: WidgetAnnotation,
    font: EmbeddedFont,
) -> pikepdf.Stream:
    """Create a visible appearance stream for one widget of field.

    Falls back to a border-only stream, then to an empty stream, when
    the widget cannot be rendered.

    Args:
        pdf: Opened pikepdf PDF object.
        field: The widget's field.
        widget: The widget annotation.
        font: Embedded form font used for all text.

    Returns:
        A Form XObject stream for /AP /N.
    """
    annot = widget.obj
    try:
        return build_widget_appearance(pdf, field, widget, font)
    except Exception:
        logger.debug(
            "Widget appearance generation failed, using border-only fallback",
            exc_info=True,
        )
        try:
            return _build_border_only_appearance(pdf, annot)
        except Exception:
            logger.debug(
                "Border-only fallback failed, using empty stream",
                exc_info=True,
            )
            return _make_empty_stream(pdf, annot)


def _display_text(field: FormField) -> str:
    if isinstance(field, TextField) and field.is_password:
        return "*" * len(field.text_value())
    if isinstance(field, ChoiceField):
        selected = field.selected()
        if not selected:
            return ""
        # Show the display text of the selected export value
        display = dict(field.options())
        return display.get(selected[0], selected[0])
    return field.text_value()


# ---------------------------------------------------------------------------
# DA string parsing
# ---------------------------------------------------------------------------


def _parse_da_string(da):
    """Parse a /DA (Default Appearance) string.

    Returns:
        Tuple of (font_size, color_ops). A size of 0.0 means auto-size.
    """
    if da is None:
        return _DEFAULT_FONT_SIZE, ""

    da_str = str(da)
    font_size = _DEFAULT_FONT_SIZE
    m = _DA_FONT_RE.search(da_str)
    if m:
        try:
            font_size = float(m.group(2))
        except ValueError:
            font_size = _DEFAULT_FONT_SIZE

    color_ops = _DA_FONT_RE.sub("", da_str).strip()
    return font_size, color_ops


def _widget_da(field: FormField, annot):
    own = annot.get("/DA")
    return own if own is not None else field.get_inheritable("/DA")


# ---------------------------------------------------------------------------
# Color helpers
# ---------------------------------------------------------------------------


def _color_array_to_ops(arr, stroke=False):
    """Convert a /MK color array to PDF content stream operators.

    Args:
        arr: pikepdf Array of color components.
        stroke: If True, use stroke operators (G/RG/K); otherwise fill (g/rg/k).

    Returns:
        Color operator string, e.g. "0.5 g" or "1 0 0 RG".
    """
    if arr is None:
        return ""
    try:
        components = [float(c) for c in arr]
    except (TypeError, ValueError):
        return ""

    ops = {1: ("G", "g"), 3: ("RG", "rg"), 4: ("K", "k")}.get(len(components))
    if ops is None:
        return ""
    op = ops[0] if stroke else ops[1]
    return " ".join(f"{c:.4g}" for c in components) + f" {op}"


def _get_mk(annot):
    mk = annot.get("/MK")
    if mk is None:
        return None
    mk = resolve_indirect(mk)
    return mk if isinstance(mk, Dictionary) else None


# ---------------------------------------------------------------------------
# Rect / BBox helpers
# ---------------------------------------------------------------------------


def _get_rect_dimensions(annot):
    """Extract width and height from annotation /Rect.

    Returns:
        Tuple of (width, height) as floats. Defaults to (0, 0).
    """
    rect = annot.get("/Rect")
    if isinstance(rect, Array) and len(rect) == 4:
        try:
            x1, y1, x2, y2 = (float(v) for v in rect)
        except (TypeError, ValueError):
            return 0.0, 0.0
        return abs(x2 - x1), abs(y2 - y1)
    return 0.0, 0.0


def _make_form_stream(pdf, w, h, content, resources=None, matrix=None):
    """Create a Form XObject stream with the given content."""
    stream = pdf.make_stream(content)
    stream[Name.Type] = Name.XObject
    stream[Name.Subtype] = Name.Form
    stream[Name.BBox] = Array([0, 0, w, h])
    stream[Name.Resources] = resources if resources is not None else Dictionary()
    if matrix is not None:
        stream[Name.Matrix] = Array(matrix)
    return stream


def _make_empty_stream(pdf, annot):
    w, h = _get_rect_dimensions(annot)
    return _make_form_stream(pdf, w, h, b"")


def _font_resources(font: EmbeddedFont) -> Dictionary:
    fonts = Dictionary()
    fonts[Name("/" + font.resource_name)] = font.font_dict
    return Dictionary(Font=fonts)


# ---------------------------------------------------------------------------
# Border & background builder
# ---------------------------------------------------------------------------


def _get_border_width(annot):
    """Get border width from /BS or /Border (1.0 when unspecified)."""
    bs = annot.get("/BS")
    if bs is not None:
        bs = resolve_indirect(bs)
        bw = bs.get("/W") if isinstance(bs, Dictionary) else None
        if bw is not None:
            return float(bw)

    border = annot.get("/Border")
    if isinstance(border, Array) and len(border) >= 3:
        try:
            return float(border[2])
        except (TypeError, ValueError):
            pass
    return 1.0


def _get_border_style(annot):
    """Get border style from /BS /S: one of S, D, B, I, U (default S)."""
    bs = annot.get("/BS")
    if bs is not None:
        bs = resolve_indirect(bs)
        s = bs.get("/S") if isinstance(bs, Dictionary) else None
        if s is not None:
            style = str(s).lstrip("/")
            if style in ("S", "D", "B", "I", "U"):
                return style
    return "S"


def _bevel_paths(w, h, bw):
    lower_left = (
        f"0 0 m {w:.4g} 0 l {w - bw:.4g} {bw:.4g} l "
        f"{bw:.4g} {bw:.4g} l {bw:.4g} {h - bw:.4g} l 0 {h:.4g} l f"
    )
    upper_right = (
        f"{w:.4g} {h:.4g} m {w:.4g} 0 l {w - bw:.4g} {bw:.4g} l "
        f"{w - bw:.4g} {h - bw:.4g} l {bw:.4g} {h - bw:.4g} l "
        f"0 {h:.4g} l f"
    )
    return lower_left, upper_right


def _build_border_background(w, h, annot):
    """Build content stream lines for border and background.

    Only draws a border when /MK /BC is present, so plain widgets
    flatten without an added frame.

    Returns:
        List of content stream lines.
    """
    parts = []
    mk = _get_mk(annot)
    if mk is None:
        return parts

    bg_ops = _color_array_to_ops(mk.get("/BG"), stroke=False)
    if bg_ops:
        parts.append(bg_ops)
        parts.append(f"0 0 {w:.4g} {h:.4g} re f")

    border_width = _get_border_width(annot)
    bc_ops = _color_array_to_ops(mk.get("/BC"), stroke=True)
    if border_width <= 0 or not bc_ops:
        return parts

    bw = border_width
    hw = bw / 2.0
    style = _get_border_style(annot)

    if style in ("B", "I"):
        light, dark = ("1 g", "0.5 g") if style == "B" else ("0.5 g", "1 g")
        lower_left, upper_right = _bevel_paths(w, h, bw)
        parts.extend([light, lower_left, dark, upper_right])
        style = "S"

    parts.append(f"{bw:.4g} w")
    if style == "D":
        parts.append("[3] 0 d")
    parts.append(bc_ops)
    if style == "U":
        parts.append(f"0 {hw:.4g} m {w:.4g} {hw:.4g} l S")
    else:
        parts.append(f"{hw:.4g} {hw:.4g} {w - bw:.4g} {h - bw:.4g} re S")
    return parts


def _build_border_only_appearance(pdf, annot):
    """Build an appearance stream with border and background only."""
    w, h = _get_rect_dimensions(annot)
    if w <= 0 or h <= 0:
        return _make_empty_stream(pdf, annot)
    content = "\n".join(_build_border_background(w, h, annot))
    return _make_form_stream(pdf, w, h, content.encode("latin-1"))


# ---------------------------------------------------------------------------
# Rotation helpers
# ---------------------------------------------------------------------------


def _get_rotation(annot):
    """Get widget rotation angle from /MK /R (0, 90, 180 or 270)."""
    mk = _get_mk(annot)
    if mk is not None:
        r = mk.get("/R")
        if r is not None:
            angle = int(r) % 360
            if angle in (0, 90, 180, 270):
                return angle
    return 0


def _rotation_matrix(angle, w, h):
    """Compute the /Matrix for a rotated Form XObject, or None for 0."""
    if angle == 90:
        return [0, 1, -1, 0, w, 0]
    elif angle == 180:
        return [-1, 0, 0, -1, w, h]
    elif angle == 270:
        return [0, -1, 1, 0, 0, h]
    return None


# ---------------------------------------------------------------------------
# Text layout
# ---------------------------------------------------------------------------


def _text_operator(text: str, font: EmbeddedFont) -> str:
    return f"<{font.encode(text)}> Tj"


def _margin(annot) -> float:
    return max(_get_border_width(annot) + 1, 2)


def _compute_text_y(field_height, font_size, font, margin):
    """Compute the baseline y-coordinate for vertically centered text."""
    asc_pt = font.ascent * font_size / 1000.0
    desc_pt = abs(font.descent) * font_size / 1000.0
    ty = (field_height - asc_pt - desc_pt) / 2.0 + desc_pt
    return max(ty, margin)


def _line_height(font: EmbeddedFont) -> float:
    """Height of one line per point of font size."""
    height = (font.ascent - font.descent) / 1000.0
    return height if height > 0 else _LEADING


def _wrap_text(text, font, font_size, max_width):
    """Word-wrap text to max_width, breaking words that do not fit.

    Explicit line breaks are kept. Text without spaces (CJK) breaks
    between characters.
    """
    lines = []
    for paragraph in _LINE_BREAK_RE.split(text):
        current = ""
        for word in paragraph.split(" "):
            candidate = f"{current} {word}" if current else word
            if font.text_width(candidate, font_size) <= max_width:
                current = candidate
                continue
            if current:
                lines.append(current)
            while len(word) > 1 and font.text_width(word, font_size) > max_width:
                cut = 1
                while (
                    cut < len(word)
                    and font.text_width(word[: cut + 1], font_size) <= max_width
                ):
                    cut += 1
                lines.append(word[:cut])
                word = word[cut:]
            current = word
        lines.append(current)
    return lines


def compute_auto_font_size(text, font, avail_w, avail_h, multiline=False):
    """Largest font size (4 to 12 pt) at which text fits the field."""
    if not multiline:
        size = avail_h / _line_height(font)
        width_at_one = font.text_width(text, 1.0)
        if width_at_one > 0:
            size = min(size, avail_w / width_at_one)
        return max(_MIN_AUTO_FONT_SIZE, min(size, _MAX_AUTO_FONT_SIZE))

    size = _MAX_AUTO_FONT_SIZE
    while size > _MIN_AUTO_FONT_SIZE:
        lines = _wrap_text(text, font, size, avail_w)
        if len(lines) * size * _LEADING <= avail_h:
            break
        size -= 0.5
    return max(size, _MIN_AUTO_FONT_SIZE)


def _aligned_x(alignment, margin, avail_w, line_w):
    if alignment == 1:  # center
        return margin + max(0, (avail_w - line_w) / 2)
    elif alignment == 2:  # right
        return margin + max(0, avail_w - line_w)
    return margin


def _alignment(field: FormField, annot) -> int:
    q = annot.get("/Q")
    if q is None:
        q = field.get_inheritable("/Q")
    return int(q) if q is not None else 0


# ---------------------------------------------------------------------------
# Appearance builders by field type
# ---------------------------------------------------------------------------


def _build_single_line_text_appearance(pdf, field, annot, font, text):
    """Build appearance stream for a single-line text field or combo box."""
    w, h = _get_rect_dimensions(annot)
    if w <= 0 or h <= 0:
        return _make_empty_stream(pdf, annot)

    font_size, color_ops = _parse_da_string(_widget_da(field, annot))
    margin = _margin(annot)

    rotation = _get_rotation(annot)
    if rotation in (90, 270):
        layout_w, layout_h = h, w
    else:
        layout_w, layout_h = w, h
    avail_w = layout_w - 2 * margin

    # Newlines are not rendered on a single line
    text = _LINE_BREAK_RE.sub(" ", text)

    if font_size == 0:
        font_size = compute_auto_font_size(
            text, font, avail_w, layout_h - 2 * margin
        )

    tx = _aligned_x(
        _alignment(field, annot), margin, avail_w, font.text_width(text, font_size)
    )
    ty = _compute_text_y(layout_h, font_size, font, margin)

    parts = _build_border_background(layout_w, layout_h, annot)
    parts.append("/Tx BMC")
    parts.append("q")
    parts.append(
        f"{margin:.4g} {margin:.4g} "
        f"{avail_w:.4g} {layout_h - 2 * margin:.4g} re W n"
    )
    parts.append("BT")
    if color_ops:
        parts.append(color_ops)
    parts.append(f"/{font.resource_name} {font_size:.4g} Tf")
    parts.append(f"{tx:.4g} {ty:.4g} Td")
    parts.append(_text_operator(text, font))
    parts.append("ET")
    parts.append("Q")
    parts.append("EMC")

    content = "\n".join(parts).encode("latin-1")
    matrix = _rotation_matrix(rotation, w, h)
    return _make_form_stream(
        pdf, layout_w, layout_h, content, _font_resources(font), matrix
    )


def _build_multiline_text_appearance(pdf, field, annot, font):
    """Build appearance stream for a multiline text field."""
    w, h = _get_rect_dimensions(annot)
    if w <= 0 or h <= 0:
        return _make_empty_stream(pdf, annot)

    font_size, color_ops = _parse_da_string(_widget_da(field, annot))
    text = _display_text(field)
    alignment = _alignment(field, annot)

    margin = _margin(annot)
    avail_w = w - 2 * margin
    avail_h = h - 2 * margin

    if font_size == 0:
        font_size = compute_auto_font_size(
            text, font, avail_w, avail_h, multiline=True
        )

    leading = font_size * _LEADING
    lines = _wrap_text(text, font, font_size, avail_w)

    parts = _build_border_background(w, h, annot)
    parts.append("/Tx BMC")
    parts.append("q")
    parts.append(f"{margin:.4g} {margin:.4g} {avail_w:.4g} {avail_h:.4g} re W n")
    parts.append("BT")
    if color_ops:
        parts.append(color_ops)
    parts.append(f"/{font.resource_name} {font_size:.4g} Tf")

    # First baseline at the top of the field
    top_y = h - margin - font.ascent * font_size / 1000.0
    prev_x = 0.0
    for i, line in enumerate(lines):
        lx = _aligned_x(alignment, margin, avail_w, font.text_width(line, font_size))
        if i == 0:
            parts.append(f"{lx:.4g} {top_y:.4g} Td")
        else:
            parts.append(f"{lx - prev_x:.4g} {-leading:.4g} Td")
        prev_x = lx
        parts.append(_text_operator(line, font))

    parts.append("ET")
    parts.append("Q")
    parts.append("EMC")

    content = "\n".join(parts).encode("latin-1")
    return _make_form_stream(pdf, w, h, content, _font_resources(font))


def _build_comb_field_appearance(pdf, field, annot, font):
    """Build appearance stream for a comb text field.

    Each character is centered in one of /MaxLen equal cells.
    """
    w, h = _get_rect_dimensions(annot)
    if w <= 0 or h <= 0:
        return _make_empty_stream(pdf, annot)

    font_size, color_ops = _parse_da_string(_widget_da(field, annot))
    max_len = max(field.max_len or 1, 1)
    text = _display_text(field)[:max_len]

    border_width = _get_border_width(annot)
    margin = _margin(annot)
    cell_width = w / max_len

    if font_size == 0:
        font_size = compute_auto_font_size("M", font, cell_width - 2, h - 2 * margin)

    parts = _build_border_background(w, h, annot)

    # Cell dividers only when the widget has a visible border
    mk = _get_mk(annot)
    if mk is not None and mk.get("/BC") is not None and border_width > 0:
        parts.append(_color_array_to_ops(mk.get("/BC"), stroke=True) or "0 G")
        parts.append(f"{max(0.5, border_width * 0.5):.4g} w")
        for i in range(1, max_len):
            x = i * cell_width
            parts.append(f"{x:.4g} 0 m {x:.4g} {h:.4g} l S")

    ty = _compute_text_y(h, font_size, font, margin)

    parts.append("/Tx BMC")
    parts.append("BT")
    if color_ops:
        parts.append(color_ops)
    parts.append(f"/{font.resource_name} {font_size:.4g} Tf")

    prev_x = 0.0
    for i, ch in enumerate(text):
        x = i * cell_width + (cell_width - font.char_width(ch, font_size)) / 2.0
        if i == 0:
            parts.append(f"{x:.4g} {ty:.4g} Td")
        else:
            parts.append(f"{x - prev_x:.4g} 0 Td")
        parts.append(_text_operator(ch, font))
        prev_x = x

    parts.append("ET")
    parts.append("EMC")

    content = "\n".join(parts).encode("latin-1")
    return _make_form_stream(pdf, w, h, content, _font_resources(font))


def _build_listbox_appearance(pdf, field, annot, font):
    """Build appearance stream for a list box.

    Shows the visible options with a highlight on selected item(s).
    """
    w, h = _get_rect_dimensions(annot)
    if w <= 0 or h <= 0:
        return _make_empty_stream(pdf, annot)

    font_size, color_ops = _parse_da_string(_widget_da(field, annot))
    if font_size == 0:
        font_size = _DEFAULT_FONT_SIZE
    leading = font_size * _LEADING
    margin = _margin(annot)

    options = field.options()
    selected = set(field.selected())

    ti = field.get_inheritable("/TI")
    top_index = int(ti) if ti is not None else 0
    top_index = max(0, min(top_index, max(0, len(options) - 1)))

    avail_h = h - 2 * margin
    visible_count = max(1, int(avail_h / leading))
    visible = options[top_index : top_index + visible_count]

    parts = _build_border_background(w, h, annot)
    parts.append("/Tx BMC")
    parts.append("q")
    parts.append(f"{margin:.4g} {margin:.4g} {w - 2 * margin:.4g} {avail_h:.4g} re W n")

    for i, (export, display) in enumerate(visible):
        if export in selected or display in selected:
            row_y = h - margin - (i + 1) * leading
            parts.append("0.6 0.757 0.855 rg")
            parts.append(
                f"{margin:.4g} {row_y:.4g} {w - 2 * margin:.4g} {leading:.4g} re f"
            )

    parts.append("BT")
    parts.append(color_ops or "0 g")
    parts.append(f"/{font.resource_name} {font_size:.4g} Tf")
    for i, (_, display) in enumerate(visible):
        if i == 0:
            ly = h - margin - font.ascent * font_size / 1000.0
            parts.append(f"{margin + 1:.4g} {ly:.4g} Td")
        else:
            parts.append(f"0 {-leading:.4g} Td")
        parts.append(_text_operator(display, font))
    parts.append("ET")
    parts.append("Q")
    parts.append("EMC")

    content = "\n".join(parts).encode("latin-1")
    return _make_form_stream(pdf, w, h, content, _font_resources(font))


def _build_pushbutton_appearance(pdf, field, annot, font):
    """Build appearance stream for a push button with its /MK /CA caption."""
    w, h = _get_rect_dimensions(annot)
    if w <= 0 or h <= 0:
        return _make_empty_stream(pdf, annot)

    parts = _build_border_background(w, h, annot)
    mk = _get_mk(annot)
    caption = str(mk.get("/CA")) if mk is not None and mk.get("/CA") else ""

    if caption:
        font_size, color_ops = _parse_da_string(_widget_da(field, annot))
        margin = _margin(annot)
        if font_size == 0:
            font_size = compute_auto_font_size(
                caption, font, w - 2 * margin, h - 2 * margin
            )
        tx = (w - font.text_width(caption, font_size)) / 2.0
        ty = _compute_text_y(h, font_size, font, margin)
        parts.append("BT")
        if color_ops:
            parts.append(color_ops)
        parts.append(f"/{font.resource_name} {font_size:.4g} Tf")
        parts.append(f"{tx:.4g} {ty:.4g} Td")
        parts.append(_text_operator(caption, font))
        parts.append("ET")

    content = "\n".join(parts).encode("latin-1")
    return _make_form_stream(pdf, w, h, content, _font_resources(font))


# ---------------------------------------------------------------------------
# Check boxes and radio buttons
# ---------------------------------------------------------------------------


def _update_state_appearance(pdf, field: ButtonField, widget: WidgetAnnotation):
    """Adds missing Off/on states to a check box or radio widget.

    Existing state streams are kept. /AS is synchronised with the
    field value so viewers and the flattener agree on the state.

    Returns:
        True if any state stream was added.
    """
    annot = widget.obj
    existing = widget.normal_appearance()
    states = existing if isinstance(existing, Dictionary) else Dictionary()

    on_state = _get_on_state_name(field, widget)
    added = False
    if Name("/" + on_state) not in states:
        states[Name("/" + on_state)] = _build_state_stream(pdf, field, annot, on=True)
        added = True
    if Name.Off not in states:
        states[Name.Off] = _build_state_stream(pdf, field, annot, on=False)
        added = True
    if added:
        _set_normal_appearance(widget, states)

    key = field.appearance_key()
    annot[Name.AS] = Name("/" + key) if Name("/" + key) in states else Name.Off
    return added


def _get_on_state_name(field: ButtonField, widget: WidgetAnnotation) -> str:
    """Determine the "on" state name of a check box or radio widget.

    Looks at existing /AP /N keys (any key other than "Off"), then at
    /AS, then at the check box value, then defaults to "Yes".
    """
    for name in widget.state_names():
        if name != OFF_STATE:
            return name

    as_val = widget.obj.get("/AS")
    if as_val is not None and str(as_val) != "/Off":
        return str(as_val).lstrip("/")

    if not isinstance(field, RadioGroupField):
        value = field.state_value()
        if value and value != OFF_STATE:
            return value
    return "Yes"


def _build_state_stream(pdf, field, annot, on):
    """Build the Off or on appearance of a check box or radio widget."""
    w, h = _get_rect_dimensions(annot)
    w = max(w, 12)
    h = max(h, 12)

    mk = _get_mk(annot)
    bc_ops = _color_array_to_ops(mk.get("/BC"), stroke=True) if mk else ""
    bg_ops = _color_array_to_ops(mk.get("/BG"), stroke=False) if mk else ""
    border_width = _get_border_width(annot)
    radio = isinstance(field, RadioGroupField)

    parts = []
    if radio:
        cx, cy = w / 2.0, h / 2.0
        r = max(min(cx, cy) - border_width, 0.5)
        outline = _circle_path(cx, cy, r)
        if bg_ops:
            parts.extend([bg_ops, outline + " f"])
        if bc_ops and border_width > 0:
            parts.extend([f"{border_width:.4g} w", bc_ops, outline + " S"])
        if on:
            parts.extend(["0 g", _circle_path(cx, cy, r * 0.4) + " f"])
    else:
        hw = border_width / 2.0
        if bg_ops:
            parts.extend([bg_ops, f"0 0 {w:.4g} {h:.4g} re f"])
        if bc_ops and border_width > 0:
            parts.extend(
                [
                    f"{border_width:.4g} w",
                    bc_ops,
                    f"{hw:.4g} {hw:.4g} {w - border_width:.4g} "
                    f"{h - border_width:.4g} re S",
                ]
            )
        if on:
            margin = max(border_width + 1, 3)
            parts.extend(
                [
                    "0 G",
                    f"{max(1, border_width):.4g} w",
                    f"{margin:.4g} {h * 0.5:.4g} m "
                    f"{w * 0.4:.4g} {margin:.4g} l "
                    f"{w - margin:.4g} {h - margin:.4g} l S",
                ]
            )

    content = "\n".join(parts).encode("latin-1")
    return _make_form_stream(pdf, w, h, content)


# Bezier control point factor for circle approximation
_KAPPA = 4.0 * (math.sqrt(2) - 1) / 3.0


def _circle_path(cx, cy, r):
    """Generate PDF path operators (m, c) for a circle using Bezier curves."""
    k = _KAPPA * r
    parts = [
        f"{cx + r:.4g} {cy:.4g} m",
        f"{cx + r:.4g} {cy + k:.4g} {cx + k:.4g} {cy + r:.4g} {cx:.4g} {cy + r:.4g} c",
        f"{cx - k:.4g} {cy + r:.4g} {cx - r:.4g} {cy + k:.4g} {cx - r:.4g} {cy:.4g} c",
        f"{cx - r:.4g} {cy - k:.4g} {cx - k:.4g} {cy - r:.4g} {cx:.4g} {cy - r:.4g} c",
        f"{cx + k:.4g} {cy - r:.4g} {cx + r:.4g} {cy - k:.4g} {cx + r:.4g} {cy:.4g} c",
    ]
    return "\n".join(parts)
