"""Tests for the ``flask wholesale`` command group."""

import json

import pytest


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def _run(runner, *args, **kwargs):
    return runner.invoke(args=["wholesale", *args], **kwargs)


def test_fundraisers(runner):
    result = _run(runner, "fundraisers")
    assert result.exit_code == 0
    assert "spring-sale" in result.output
    assert "winter-drive" not in result.output

    assert "winter-drive" in _run(runner, "fundraisers", "--all").output


def test_item_shows_availability(runner):
    result = _run(runner, "item", "101", "--option", "1:11", "--option", "2:21")
    assert result.exit_code == 0
    assert "available:  4 (Only 4 left)" in result.output
    assert "!" not in result.output


def test_item_reports_problems(runner):
    result = _run(runner, "item", "101", "--option", "1:11")
    assert "! Please select an option" in result.output


def test_bad_option_syntax(runner):
    result = _run(runner, "item", "101", "--option", "size-s")
    assert result.exit_code == 2
    assert "GROUP:OPTION" in result.output


class TestCartCommands:
    def test_add_show_remove(self, runner, app):
        assert _run(runner, "cart", "add", "spring-sale", "102", "--quantity", "2").exit_code == 0

        data = json.loads(_run(runner, "cart", "show", "--json").output)
        assert [(i["item_id"], i["quantity"]) for i in data["items"]] == [(102, 2)]

        line_id = data["items"][0]["id"]
        assert _run(runner, "cart", "remove", line_id).exit_code == 0
        assert "Cart is empty" in _run(runner, "cart", "show").output

    def test_conflict_prompt_declined(self, runner):
        _run(runner, "cart", "add", "spring-sale", "102")
        result = _run(runner, "cart", "add", "band-camp", "201", input="n\n")
        assert "from Spring Sale" in result.output
        assert "Cart unchanged." in result.output
        assert "Coffee Mug" in _run(runner, "cart", "show").output

    def test_conflict_switch(self, runner):
        _run(runner, "cart", "add", "spring-sale", "102")
        result = _run(runner, "cart", "add", "band-camp", "201", "--switch")
        assert result.exit_code == 0
        assert "Band Camp" in result.output
        assert "Coffee Mug" not in result.output

    def test_add_rejects_stock_shortage(self, runner):
        result = _run(runner, "cart", "add", "spring-sale", "102", "--quantity", "20")
        assert result.exit_code == 1
        assert "only 8 available" in result.output

    def test_validate(self, runner, api):
        _run(runner, "cart", "add", "spring-sale", "102")
        assert "Cart is valid" in _run(runner, "cart", "validate").output

        api.validation = {"valid": False, "issues": [{"type": "out_of_stock", "item_id": 102, "item_name": "Coffee Mug"}]}
        result = _run(runner, "cart", "validate")
        assert result.exit_code == 1
        assert '"Coffee Mug" is out of stock' in result.output

        result = _run(runner, "cart", "validate", "--fix")
        assert "Cart fixed! removed 1 out-of-stock item." in result.output

    def test_clear(self, runner):
        _run(runner, "cart", "add", "spring-sale", "104")
        assert "Cart cleared" in _run(runner, "cart", "clear").output
        assert "Cart is empty" in _run(runner, "cart", "show").output
