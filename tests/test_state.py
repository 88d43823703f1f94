"""Tests for remembered publishing state."""

from pathlib import Path

from confpub.state import StateStore


class TestStateStore:
    """Tests for StateStore."""

    def test__missing_file__no_page(self, tmp_path: Path) -> None:
        """No state file means no remembered page."""
        assert StateStore(tmp_path / "state.json").last_page_id is None

    def test__remember__round_trips(self, tmp_path: Path) -> None:
        """Remembered page and space are read back."""
        store = StateStore(tmp_path / "nested" / "state.json")

        store.remember("123", "DOCS")

        assert store.last_page_id == "123"
        assert store.last_space_key == "DOCS"
        assert store.load() == {"last_page_id": "123", "last_space_key": "DOCS"}

    def test__remember_without_space__keeps_previous_space(self, tmp_path: Path) -> None:
        """Updating the page keeps the remembered space."""
        store = StateStore(tmp_path / "state.json")
        store.remember("1", "DOCS")

        store.remember("2")

        assert store.load() == {"last_page_id": "2", "last_space_key": "DOCS"}

    def test__corrupt_file__treated_as_empty(self, tmp_path: Path) -> None:
        """Unreadable state is ignored."""
        state_file = tmp_path / "state.json"
        state_file.write_text("{not json")

        assert StateStore(state_file).load() == {}
