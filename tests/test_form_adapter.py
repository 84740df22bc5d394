"""Logical field/event names onto the portal's markup."""

import asyncio

import pytest

from quotation_rpa.form_adapter import EVENTS, FIELDS, GRID_ROW_FIELDS, PortalFormAdapter, field_selector


class EvalPage:
    """Records page.evaluate calls and answers from a queue."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []
        self.selected = []

    async def evaluate(self, script, arg=None):
        self.calls.append(arg)
        return self.answers.pop(0) if self.answers else None

    def locator(self, selector):
        return SelectLocator(self, selector)


class SelectLocator:
    def __init__(self, page, selector):
        self.page = page
        self.selector = selector

    @property
    def first(self):
        return self

    async def count(self):
        return 1

    async def select_option(self, value=None, label=None, timeout=None):
        if value is not None and value != "ENGLISH":
            raise ValueError("no option with that value")
        self.page.selected.append(("value", value) if value is not None else ("label", label))


class TestFieldSelector:

    def test_row_substitution(self):
        assert field_selector("profile.reference", "0003") == "#txtReferencia_0003"
        assert field_selector("accessory.amount", "0012") == "#txtImporteAcc_0012"

    def test_header_needs_no_row(self):
        assert field_selector("header.finish1") == "#ddlAcabado_1_ColorGeneral"

    def test_row_required(self):
        with pytest.raises(ValueError):
            field_selector("profile.amount")

    def test_unknown_field(self):
        with pytest.raises(KeyError):
            field_selector("profile.colour", "0001")

    def test_every_event_targets_a_known_field(self):
        for hook, target, _ in EVENTS.values():
            assert hook
            assert target is None or target in FIELDS
        assert set(GRID_ROW_FIELDS.values()) <= set(FIELDS)


class TestPortalFormAdapter:

    def test_get_value_strips_and_defaults(self):
        form = PortalFormAdapter(EvalPage("  12.40 ", None))
        assert asyncio.run(form.get_value("profile.amount", "0001")) == "12.40"
        assert asyncio.run(form.get_value("profile.amount", "0002")) == ""

    def test_exists(self):
        form = PortalFormAdapter(EvalPage("", None))
        assert asyncio.run(form.exists("header.microns")) is True
        assert asyncio.run(form.exists("header.microns")) is False

    def test_trigger_passes_hook_and_target(self):
        page = EvalPage("ok")
        form = PortalFormAdapter(page)
        assert asyncio.run(form.trigger("profile.calculate_alt", "0004")) == "ok"
        assert page.calls == [["ValidarCamposLinea", "#ddlMatiz2_0004", [False]]]

    def test_trigger_without_target(self):
        page = EvalPage("ok")
        asyncio.run(PortalFormAdapter(page).trigger("accessory.add_row"))
        assert page.calls == [["dgAccesoriosAddRow", None, []]]

    def test_unknown_event(self):
        with pytest.raises(KeyError):
            asyncio.run(PortalFormAdapter(EvalPage()).trigger("profile.explode", "0001"))

    def test_option_values(self):
        page = EvalPage(["", "9016", "9005"], None)
        form = PortalFormAdapter(page)
        assert asyncio.run(form.option_values("profile.shade1", "0003")) == ["", "9016", "9005"]
        assert asyncio.run(form.option_values("header.shade1")) == []
        assert page.calls[0] == "#ddlMatiz1_0003"

    def test_set_value_args(self):
        page = EvalPage(True)
        assert asyncio.run(PortalFormAdapter(page).set_value("profile.quantity", 7, "0001", notify=True)) is True
        assert page.calls == [["#txtCantidad_0001", "7", True]]

    def test_select_by_value_then_label(self):
        page = EvalPage()
        form = PortalFormAdapter(page)
        assert asyncio.run(form.select_option("header.language", "ENGLISH")) is True
        assert asyncio.run(form.select_option("header.language", "SPANISH")) is True
        assert page.selected == [("value", "ENGLISH"), ("label", "SPANISH")]

    def test_row_count_uses_reference_template(self):
        page = EvalPage(3)
        assert asyncio.run(PortalFormAdapter(page).row_count("accessory")) == 3
        assert page.calls == ["#txtReferenciaAcc_{row}"]
