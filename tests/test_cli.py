"""Tests for the goalgrid CLI."""

from __future__ import annotations

import asyncio
import json
from datetime import date

import pytest
from typer.testing import CliRunner

from goalgrid.cli.app import app
from goalgrid.grid import lifecycle
from goalgrid.store.sqlite import SqliteCardStore

THIS_YEAR = date.today().year

runner = CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Point the CLI at temporary draft and database files."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("GOALGRID_DRAFT_PATH", str(tmp_path / "draft.json"))
    monkeypatch.setenv("GOALGRID_DB_PATH", str(tmp_path / "cards.db"))
    monkeypatch.setenv("GOALGRID_OWNER", "alice")
    return tmp_path


def _invoke(*args: str, input: str | None = None):
    return runner.invoke(app, list(args), input=input)


def _draft(env) -> dict:
    return json.loads((env / "draft.json").read_text())["card"]


def _stored_cards(env, owner: str = "alice"):
    async def _list():
        store = await SqliteCardStore.open(str(env / "cards.db"))
        try:
            return await store.list_cards(owner)
        finally:
            await store.close()

    return asyncio.run(_list())


def _store_card(env, title: str):
    async def _create():
        store = await SqliteCardStore.open(str(env / "cards.db"))
        try:
            card = lifecycle.new_card("", "alice", THIS_YEAR, title=title, grid_size=2)
            return await store.create(card)
        finally:
            await store.close()

    return asyncio.run(_create())


def _full_draft(env, *extra: str):
    assert _invoke("draft", "new", "--size", "2", "--title", "Mine", *extra).exit_code == 0
    for goal in ("one", "two", "three"):
        result = _invoke("draft", "add", goal)
        assert result.exit_code == 0, result.output


class TestDraftEditing:
    def test_new_and_show(self, env):
        result = _invoke("draft", "new", "--year", str(THIS_YEAR), "--size", "3")
        assert result.exit_code == 0, result.output
        assert "Started a 3x3 card" in result.output
        assert _draft(env)["grid_size"] == 3
        assert _invoke("draft", "show").exit_code == 0

    def test_only_one_draft(self, env):
        _invoke("draft", "new")
        result = _invoke("draft", "new")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_show_without_draft(self, env):
        result = _invoke("draft", "show")
        assert result.exit_code == 1
        assert "No local draft" in result.output

    def test_add_edit_swap_remove(self, env):
        _invoke("draft", "new", "--size", "3")
        result = _invoke("draft", "add", "run a 5k", "--position", "0")
        assert "Added goal at position 0" in result.output
        _invoke("draft", "edit", "0", "run a 10k")
        _invoke("draft", "swap", "0", "8")
        items = _draft(env)["items"]
        assert items == [
            {
                "position": 8,
                "content": "run a 10k",
                "notes": None,
                "is_completed": False,
                "completed_at": None,
            }
        ]
        assert _invoke("draft", "remove", "8").exit_code == 0
        assert _draft(env)["items"] == []

    def test_add_to_free_cell_fails(self, env):
        _invoke("draft", "new", "--size", "3")
        result = _invoke("draft", "add", "nope", "--position", "4")
        assert result.exit_code == 1

    def test_header_free_and_meta(self, env):
        _invoke("draft", "new", "--size", "3")
        assert _invoke("draft", "header", "ace").exit_code == 0
        assert _invoke("draft", "free", "off").exit_code == 0
        assert _invoke("draft", "meta", "--title", "Year of yes", "-c", "fun").exit_code == 0
        card = _draft(env)
        assert card["header_text"] == "ACE"
        assert card["has_free_space"] is False
        assert card["title"] == "Year of yes"
        assert card["category"] == "fun"

        assert _invoke("draft", "meta", "--clear-title").exit_code == 0
        assert _draft(env)["title"] is None

    def test_shuffle_and_finalize(self, env):
        _full_draft(env)
        assert _invoke("draft", "shuffle").exit_code == 0
        result = _invoke("draft", "finalize")
        assert result.exit_code == 0
        assert _draft(env)["is_finalized"] is True
        assert _invoke("draft", "add", "late").exit_code == 1

    def test_finalize_needs_full_card(self, env):
        _invoke("draft", "new", "--size", "2")
        result = _invoke("draft", "finalize")
        assert result.exit_code == 1
        assert "needs 3 items" in result.output

    def test_delete(self, env):
        _invoke("draft", "new")
        assert _invoke("draft", "delete", "--force").exit_code == 0
        assert not (env / "draft.json").exists()


class TestSync:
    def test_sync_without_conflict(self, env):
        _full_draft(env)
        _invoke("draft", "finalize")
        result = _invoke("draft", "sync")
        assert result.exit_code == 0, result.output
        assert "Synced card" in result.output
        assert not (env / "draft.json").exists()
        cards = _stored_cards(env)
        assert len(cards) == 1
        assert cards[0].is_finalized
        assert cards[0].item_count == 3

    def test_sync_needs_owner(self, env, monkeypatch):
        monkeypatch.delenv("GOALGRID_OWNER")
        _full_draft(env)
        result = _invoke("draft", "sync")
        assert result.exit_code == 1
        assert (env / "draft.json").exists()

    def test_sync_conflict_keep(self, env):
        existing = _store_card(env, "Stored")
        _full_draft(env)
        result = _invoke("draft", "sync", "--keep")
        assert result.exit_code == 0, result.output
        assert [c.id for c in _stored_cards(env)] == [existing.id]
        assert not (env / "draft.json").exists()

    def test_sync_conflict_save_as(self, env):
        _store_card(env, "Stored")
        _full_draft(env)
        result = _invoke("draft", "sync", "--save-as", "Second")
        assert result.exit_code == 0, result.output
        assert sorted(c.title for c in _stored_cards(env)) == ["Second", "Stored"]

    def test_sync_conflict_replace(self, env):
        existing = _store_card(env, "Stored")
        _full_draft(env)
        result = _invoke("draft", "sync", "--replace", "--yes")
        assert result.exit_code == 0, result.output
        cards = _stored_cards(env)
        assert len(cards) == 1
        assert cards[0].id != existing.id
        assert cards[0].title == "Mine"

    def test_sync_conflict_prompts(self, env):
        _store_card(env, "Stored")
        _full_draft(env)
        result = _invoke("draft", "sync", input="new\nFrom CLI\n")
        assert result.exit_code == 0, result.output
        assert "You already have a card" in result.output
        assert sorted(c.title for c in _stored_cards(env)) == ["From CLI", "Stored"]

    def test_sync_conflict_prompts_again_for_taken_title(self, env):
        _store_card(env, "Stored")
        _full_draft(env)
        result = _invoke("draft", "sync", input="new\nStored\nFresh\n")
        assert result.exit_code == 0, result.output
        assert "already have a card titled 'Stored'" in result.output
        assert sorted(c.title for c in _stored_cards(env)) == ["Fresh", "Stored"]
        assert not (env / "draft.json").exists()

    def test_sync_conflict_save_as_taken_title_keeps_draft(self, env):
        _store_card(env, "Stored")
        _full_draft(env)
        result = _invoke("draft", "sync", "--save-as", "Stored")
        assert result.exit_code == 1
        assert (env / "draft.json").exists()


def test_version():
    result = _invoke("version")
    assert result.exit_code == 0
    assert "goalgrid version" in result.output
