"""Unit tests for StateStore."""

import json
from pathlib import Path

import pytest

from tfharness.core.state import StateStore
from tfharness.exceptions import StateDecodeError


def write_json(path: Path, document) -> Path:
    path.write_text(json.dumps(document))
    return path


class TestStateStoreParse:
    """Test decoding state documents."""

    def test_initially_empty(self) -> None:
        store = StateStore()

        assert store.state is None
        assert store.plan_dir is None

    def test_parse_valid_document(self, tmp_path: Path) -> None:
        """Test a JSON object becomes the stored state."""
        store = StateStore()
        path = write_json(
            tmp_path / "terraform.tfstate",
            {"version": 4, "resources": [{"type": "local_file", "name": "a"}]},
        )

        state = store.parse(path)

        assert state["version"] == 4
        assert store.state == state

    def test_parse_replaces_wholesale(self, tmp_path: Path) -> None:
        """Test a second parse does not merge with the first."""
        store = StateStore()
        store.parse(write_json(tmp_path / "first.json", {"old_key": 1, "shared": "a"}))

        store.parse(write_json(tmp_path / "second.json", {"shared": "b"}))

        assert store.state == {"shared": "b"}

    def test_callers_cannot_edit_stored_state(self, tmp_path: Path) -> None:
        """Test mutating returned documents leaves the stored state intact."""
        store = StateStore()
        parsed = store.parse(
            write_json(tmp_path / "terraform.tfstate", {"resources": [{"name": "a"}]})
        )

        parsed["resources"].append({"name": "injected"})
        store.state["resources"].clear()

        assert store.state == {"resources": [{"name": "a"}]}

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        store = StateStore()

        with pytest.raises(StateDecodeError, match="while reading tfstate"):
            store.parse(tmp_path / "absent.tfstate")

        assert store.state is None

    def test_malformed_json_raises(self, tmp_path: Path) -> None:
        store = StateStore()
        path = tmp_path / "terraform.tfstate"
        path.write_text("{not json")

        with pytest.raises(StateDecodeError, match="while decoding tfstate JSON"):
            store.parse(path)

        assert store.state is None

    def test_non_object_document_raises(self, tmp_path: Path) -> None:
        store = StateStore()

        with pytest.raises(StateDecodeError, match="expected an object"):
            store.parse(write_json(tmp_path / "list.json", [1, 2, 3]))

    def test_failed_parse_keeps_previous_state(self, tmp_path: Path) -> None:
        """Test no partial or empty state replaces a good one on failure."""
        store = StateStore()
        store.parse(write_json(tmp_path / "good.json", {"serial": 1}))
        bad = tmp_path / "bad.json"
        bad.write_text("")

        with pytest.raises(StateDecodeError):
            store.parse(bad)

        assert store.state == {"serial": 1}

    def test_plan_dir_setter(self, tmp_path: Path) -> None:
        store = StateStore()
        store.plan_dir = tmp_path

        assert store.plan_dir == tmp_path
