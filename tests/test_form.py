# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Tests for form.py: field model, widgets and field removal."""

import pikepdf
import pytest
from conftest import (
    add_checkbox,
    add_field,
    add_text_field,
    attach_widget,
    ensure_acroform,
    make_appearance,
    make_pdf_with_page,
    new_pdf,
)
from pikepdf import Array, Dictionary, Name

from pdfflatten.form import (
    FF_COMB,
    FF_MULTILINE,
    FF_PASSWORD,
    FF_PUSHBUTTON,
    FF_RADIO,
    CheckBoxField,
    ChoiceField,
    Form,
    FormField,
    PushButtonField,
    RadioGroupField,
    Rectangle,
    SignatureField,
    TextField,
    get_inheritable,
    pdf_text,
)


def _make_parent_with_kids(pdf, page, parent_name, kid_names):
    """Create a non-terminal parent field with named child text fields."""
    parent = pdf.make_indirect(
        Dictionary(T=pikepdf.String(parent_name), FT=Name.Tx, Kids=Array())
    )
    ensure_acroform(pdf).Fields.append(parent)
    kids = []
    for i, name in enumerate(kid_names):
        kid = attach_widget(
            pdf,
            page,
            Dictionary(
                Type=Name.Annot,
                Subtype=Name.Widget,
                T=pikepdf.String(name),
                Parent=parent,
                Rect=Array([10, 10 + 30 * i, 110, 30 + 30 * i]),
            ),
        )
        parent.Kids.append(kid)
        kids.append(kid)
    return parent, kids


class TestFieldTypes:
    """Tests for make_field() variant dispatch."""

    def test_variants(self):
        pdf = make_pdf_with_page()
        page = pdf.pages[0]
        add_text_field(pdf, page, "t", "x")
        add_checkbox(pdf, page, "c")
        add_field(pdf, page, "r", "Btn", flags=FF_RADIO)
        add_field(pdf, page, "p", "Btn", flags=FF_PUSHBUTTON)
        add_field(pdf, page, "ch", "Ch")
        add_field(pdf, page, "s", "Sig")

        form = Form(pdf)
        kinds = {f.full_name: type(f) for f in form}
        assert kinds == {
            "t": TextField,
            "c": CheckBoxField,
            "r": RadioGroupField,
            "p": PushButtonField,
            "ch": ChoiceField,
            "s": SignatureField,
        }

    def test_inherited_field_type(self):
        pdf = make_pdf_with_page()
        parent, _ = _make_parent_with_kids(pdf, pdf.pages[0], "addr", ["street"])
        form = Form(pdf)
        assert isinstance(form.get_field("addr.street"), TextField)

    def test_unknown_type(self):
        pdf = make_pdf_with_page()
        add_field(pdf, pdf.pages[0], "odd", "Xx")
        field = Form(pdf).get_field("odd")
        assert type(field) is FormField
        assert field.text_value() == ""


class TestFormCollection:
    """Tests for Form field collection."""

    def test_no_acroform(self):
        pdf = make_pdf_with_page()
        form = Form(pdf)
        assert len(form) == 0
        assert form.acroform is None

    def test_terminal_fields_only(self):
        pdf = make_pdf_with_page()
        _make_parent_with_kids(pdf, pdf.pages[0], "person", ["first", "last"])
        form = Form(pdf)
        assert [f.full_name for f in form] == ["person.first", "person.last"]

    def test_widget_kids(self):
        """Kids without /T are widgets of the field, not child fields."""
        pdf = make_pdf_with_page(2)
        field = pdf.make_indirect(
            Dictionary(FT=Name.Tx, T=pikepdf.String("shared"), Kids=Array())
        )
        ensure_acroform(pdf).Fields.append(field)
        for page in pdf.pages:
            w = attach_widget(
                pdf,
                page,
                Dictionary(
                    Type=Name.Annot,
                    Subtype=Name.Widget,
                    Parent=field,
                    Rect=Array([0, 0, 50, 20]),
                ),
            )
            field.Kids.append(w)

        form = Form(pdf)
        assert len(form) == 1
        assert len(form.get_field("shared").widgets) == 2

    def test_merged_field_widget(self):
        pdf = make_pdf_with_page()
        obj = add_text_field(pdf, pdf.pages[0], "solo", "v")
        field = Form(pdf).get_field("solo")
        assert len(field.widgets) == 1
        assert field.widgets[0].objgen == obj.objgen

    def test_cyclic_kids_terminate(self):
        pdf = make_pdf_with_page()
        parent, kids = _make_parent_with_kids(pdf, pdf.pages[0], "loop", ["a"])
        # a's Kids points back at the parent
        kids[0].Kids = Array([parent])
        form = Form(pdf)
        assert len(form) == 0

    def test_iteration_is_over_a_copy(self, form_pdf):
        form = Form(form_pdf)
        for field in form:
            form.remove_field(field)
        assert len(form) == 0

    def test_get_field_missing(self, form_pdf):
        assert Form(form_pdf).get_field("nope") is None


class TestValues:
    """Tests for field values and render text."""

    def test_text_value(self, form_pdf):
        field = Form(form_pdf).get_field("name")
        assert field.text_value() == "Jane Doe"
        assert field.render_text() == "Jane Doe"

    def test_text_value_missing(self):
        pdf = make_pdf_with_page()
        add_text_field(pdf, pdf.pages[0], "empty")
        assert Form(pdf).get_field("empty").text_value() == ""

    def test_inherited_value(self):
        pdf = make_pdf_with_page()
        parent, _ = _make_parent_with_kids(pdf, pdf.pages[0], "grp", ["x"])
        parent.V = pikepdf.String("from parent")
        assert Form(pdf).get_field("grp.x").text_value() == "from parent"

    def test_password_render_text(self):
        pdf = make_pdf_with_page()
        add_text_field(pdf, pdf.pages[0], "pw", "secret", flags=FF_PASSWORD)
        field = Form(pdf).get_field("pw")
        assert field.is_password
        assert field.render_text() == "*"

    def test_multiline_and_comb_flags(self):
        pdf = make_pdf_with_page()
        page = pdf.pages[0]
        add_text_field(pdf, page, "ml", "a", flags=FF_MULTILINE)
        add_text_field(pdf, page, "comb", "123", flags=FF_COMB)
        add_text_field(
            pdf, page, "comb2", "123", flags=FF_COMB, extra={"/MaxLen": 5}
        )
        form = Form(pdf)
        assert form.get_field("ml").is_multiline
        # Comb needs /MaxLen
        assert not form.get_field("comb").is_comb
        assert form.get_field("comb2").is_comb
        assert form.get_field("comb2").max_len == 5

    def test_checkbox_text_value(self):
        pdf = make_pdf_with_page()
        page = pdf.pages[0]
        add_checkbox(pdf, page, "on")
        add_checkbox(pdf, page, "off", value="Off")
        add_checkbox(pdf, page, "unset", value=None)
        form = Form(pdf)
        assert form.get_field("on").text_value() == "checked"
        assert form.get_field("off").text_value() == ""
        assert form.get_field("unset").text_value() == ""
        assert form.get_field("on").render_text() == ""

    def test_appearance_key(self):
        pdf = make_pdf_with_page()
        page = pdf.pages[0]
        add_checkbox(pdf, page, "on", value="Yes")
        add_checkbox(pdf, page, "unset", value=None)
        form = Form(pdf)
        assert form.get_field("on").appearance_key() == "Yes"
        assert form.get_field("unset").appearance_key() == "Off"
        assert form.get_field("on").on_states() == ["Yes"]

    def test_choice_options_and_selection(self):
        pdf = make_pdf_with_page()
        opt = Array(
            [
                Array([pikepdf.String("de"), pikepdf.String("Germany")]),
                pikepdf.String("France"),
            ]
        )
        add_field(
            pdf,
            pdf.pages[0],
            "country",
            "Ch",
            value=pikepdf.String("de"),
            extra={"/Opt": opt},
        )
        field = Form(pdf).get_field("country")
        assert field.options() == [("de", "Germany"), ("France", "France")]
        assert field.selected() == ["de"]
        assert field.text_value() == "de"
        assert "Germany" in field.render_text()

    def test_multi_select_value(self):
        pdf = make_pdf_with_page()
        add_field(
            pdf,
            pdf.pages[0],
            "multi",
            "Ch",
            value=Array([pikepdf.String("a"), pikepdf.String("b")]),
        )
        assert Form(pdf).get_field("multi").text_value() == "a b"

    def test_pushbutton_caption(self):
        pdf = make_pdf_with_page()
        add_field(
            pdf,
            pdf.pages[0],
            "btn",
            "Btn",
            flags=FF_PUSHBUTTON,
            extra={"/MK": Dictionary(CA=pikepdf.String("Submit"))},
        )
        field = Form(pdf).get_field("btn")
        assert field.caption() == "Submit"
        assert field.render_text() == "Submit"


class TestWidgetAnnotation:
    """Tests for WidgetAnnotation."""

    def test_rect_normalized(self):
        pdf = make_pdf_with_page()
        add_text_field(pdf, pdf.pages[0], "r", rect=(300, 720, 100, 700))
        widget = Form(pdf).get_field("r").widgets[0]
        assert widget.rect() == Rectangle(100, 700, 200, 20)

    def test_bad_rect_raises(self):
        pdf = make_pdf_with_page()
        add_text_field(pdf, pdf.pages[0], "r", rect=(1, 2, 3))
        widget = Form(pdf).get_field("r").widgets[0]
        with pytest.raises(ValueError):
            widget.rect()

    def test_hidden_flag(self):
        pdf = make_pdf_with_page()
        add_text_field(pdf, pdf.pages[0], "h", extra={"/F": 2})
        assert Form(pdf).get_field("h").widgets[0].is_hidden

    def test_page_ref(self, form_pdf):
        widget = Form(form_pdf).get_field("name").widgets[0]
        assert widget.page_ref() == form_pdf.pages[0].obj.objgen

    def test_page_ref_missing(self):
        pdf = make_pdf_with_page()
        add_text_field(pdf, pdf.pages[0], "np", set_p=False)
        assert Form(pdf).get_field("np").widgets[0].page_ref() is None

    def test_state_names(self, form_pdf):
        widget = Form(form_pdf).get_field("agree").widgets[0]
        assert set(widget.state_names()) == {"Yes", "Off"}

    def test_normal_appearance_stream(self):
        pdf = make_pdf_with_page()
        ap = make_appearance(pdf, 200, 20)
        add_text_field(pdf, pdf.pages[0], "t", ap=ap)
        widget = Form(pdf).get_field("t").widgets[0]
        assert isinstance(widget.normal_appearance(), pikepdf.Stream)


class TestRemoveField:
    """Tests for Form.remove_field()."""

    def test_removes_widget_and_field(self, form_pdf):
        form = Form(form_pdf)
        form.remove_field(form.get_field("name"))

        assert form.get_field("name") is None
        annots = form_pdf.pages[0].obj.Annots
        assert len(annots) == 1
        assert len(form_pdf.Root.AcroForm.Fields) == 1

    def test_remove_twice_raises(self, form_pdf):
        form = Form(form_pdf)
        field = form.get_field("name")
        form.remove_field(field)
        with pytest.raises(ValueError):
            form.remove_field(field)

    def test_prunes_empty_parent(self):
        pdf = make_pdf_with_page()
        _make_parent_with_kids(pdf, pdf.pages[0], "p", ["a", "b"])
        form = Form(pdf)

        form.remove_field(form.get_field("p.a"))
        assert len(pdf.Root.AcroForm.Fields) == 1

        form.remove_field(form.get_field("p.b"))
        assert len(pdf.Root.AcroForm.Fields) == 0
        assert len(pdf.pages[0].obj.Annots) == 0

    def test_removes_widgets_on_all_pages(self):
        pdf = make_pdf_with_page(2)
        field = pdf.make_indirect(
            Dictionary(FT=Name.Tx, T=pikepdf.String("multi"), Kids=Array())
        )
        ensure_acroform(pdf).Fields.append(field)
        for page in pdf.pages:
            field.Kids.append(
                attach_widget(
                    pdf,
                    page,
                    Dictionary(
                        Type=Name.Annot,
                        Subtype=Name.Widget,
                        Parent=field,
                        Rect=Array([0, 0, 10, 10]),
                    ),
                )
            )
        form = Form(pdf)
        form.remove_field(form.get_field("multi"))
        for page in pdf.pages:
            assert len(page.obj.Annots) == 0
        assert len(pdf.Root.AcroForm.Fields) == 0

    def test_other_annotations_survive(self, form_pdf):
        link = form_pdf.make_indirect(
            Dictionary(Type=Name.Annot, Subtype=Name.Link, Rect=Array([0, 0, 5, 5]))
        )
        form_pdf.pages[0].obj.Annots.append(link)
        form = Form(form_pdf)
        for field in form:
            form.remove_field(field)
        annots = form_pdf.pages[0].obj.Annots
        assert len(annots) == 1
        assert annots[0].Subtype == Name.Link


class TestHelpers:
    """Tests for get_inheritable() and pdf_text()."""

    def test_get_inheritable_acroform_default(self):
        acroform = Dictionary(DA=pikepdf.String("/Helv 0 Tf 0 g"))
        node = Dictionary(T=pikepdf.String("x"))
        assert str(get_inheritable(node, "/DA", acroform)) == "/Helv 0 Tf 0 g"
        assert get_inheritable(node, "/DA") is None

    def test_get_inheritable_parent_cycle(self):
        pdf = new_pdf()
        a = pdf.make_indirect(Dictionary(T=pikepdf.String("a")))
        b = pdf.make_indirect(Dictionary(T=pikepdf.String("b"), Parent=a))
        a.Parent = b
        assert get_inheritable(a, "/V") is None

    def test_pdf_text(self):
        assert pdf_text(None) == ""
        assert pdf_text(Name.Yes) == "Yes"
        assert pdf_text(pikepdf.String("abc")) == "abc"
