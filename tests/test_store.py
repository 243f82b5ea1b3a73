# SPDX-License-Identifier: MIT
"""Tests for allocation stores."""

from __future__ import annotations

import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from io_utils.store import (
    InMemoryAllocationStore,
    JSONAllocationStore,
    apply_commit,
    verify_state,
)
from models import AllocationRecord, ProcedureType, StoreState

BASE = "v1|M|2024-01-15|CH-BL|WEB"
T0 = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)


def _record(
    reference: str = "ABCDEF0M",
    base: str = BASE,
    disambiguator: int = 0,
    created_at: datetime = T0,
) -> AllocationRecord:
    return AllocationRecord(
        id=reference,
        base_key=base,
        full_key=f"{base}|{disambiguator}|s3cret",
        type=ProcedureType.MEDICAL,
        date="2024-01-15",
        jurisdiction="CH-BL",
        channel="WEB",
        disambiguator=disambiguator,
        created_at=created_at,
    )


def test_empty_store_defaults() -> None:
    store = InMemoryAllocationStore()
    assert store.lookup_by_base(BASE) is None
    assert not store.exists("ABCDEF0M")
    assert store.get("ABCDEF0M") is None
    assert store.next_disambiguator(BASE) == 0
    assert store.history() == []
    assert store.verify() == []


def test_commit_updates_all_regions() -> None:
    store = InMemoryAllocationStore()
    record = _record()
    store.commit(record, 1)
    assert store.exists("ABCDEF0M")
    assert store.get("ABCDEF0M") == record
    assert store.lookup_by_base(BASE) == "ABCDEF0M"
    assert store.next_disambiguator(BASE) == 1
    [entry] = store.history()
    assert entry.id == "ABCDEF0M"
    assert entry.jurisdiction == "CH-BL"
    assert store.verify() == []


def test_commit_refuses_duplicate_reference() -> None:
    store = InMemoryAllocationStore()
    store.commit(_record(), 1)
    with pytest.raises(ValueError):
        store.commit(_record(base="v1|M|2024-01-16|CH-BL|WEB"), 1)
    assert store.lookup_by_base("v1|M|2024-01-16|CH-BL|WEB") is None
    assert len(store.history()) == 1


def test_commit_refuses_counter_behind_disambiguator() -> None:
    store = InMemoryAllocationStore()
    with pytest.raises(ValueError):
        store.commit(_record(disambiguator=3), 2)
    assert not store.exists("ABCDEF0M")


def test_counter_never_moves_backwards() -> None:
    state = apply_commit(StoreState(counters={BASE: 5}), _record(), 1)
    assert state.counters[BASE] == 5


def test_apply_commit_leaves_input_untouched() -> None:
    state = StoreState()
    updated = apply_commit(state, _record(), 1)
    assert state.records == {}
    assert state.history == []
    assert "ABCDEF0M" in updated.records


def test_history_is_newest_first_and_capped() -> None:
    store = InMemoryAllocationStore(history_limit=3)
    for index in range(5):
        store.commit(
            _record(
                f"ABCDEF{index}M",
                base=f"v1|M|2024-01-15|J{index}|WEB",
                created_at=T0 + timedelta(minutes=index),
            ),
            1,
        )
    assert [entry.id for entry in store.history()] == [
        "ABCDEF4M",
        "ABCDEF3M",
        "ABCDEF2M",
    ]
    # Eviction only affects the log, never the records.
    assert store.exists("ABCDEF0M")


def test_history_limit_must_be_positive() -> None:
    with pytest.raises(ValueError):
        InMemoryAllocationStore(history_limit=0)


def test_record_rejects_malformed_reference() -> None:
    with pytest.raises(ValidationError):
        _record("abcdef0m")


def test_record_hides_full_key_from_repr() -> None:
    assert "s3cret" not in repr(_record())


def test_verify_reports_inconsistencies() -> None:
    state = StoreState(
        records={"ABCDEF0M": _record(disambiguator=2)},
        base_index={"v1|M|2024-01-16|CH-BL|WEB": "ABCDEF0M", BASE: "1234567C"},
        counters={BASE: 1},
    )
    issues = verify_state(state)
    assert len(issues) == 3
    assert any("behind disambiguator" in issue for issue in issues)
    assert any("unknown reference" in issue for issue in issues)
    assert any("does not match" in issue for issue in issues)


def test_json_store_round_trips_state(tmp_path: Path) -> None:
    path = tmp_path / "state" / "store.json"
    store = JSONAllocationStore(path)
    store.commit(_record(), 1)

    reloaded = JSONAllocationStore(path)
    assert reloaded.lookup_by_base(BASE) == "ABCDEF0M"
    assert reloaded.get("ABCDEF0M") == _record()
    assert reloaded.next_disambiguator(BASE) == 1
    assert [entry.id for entry in reloaded.history()] == ["ABCDEF0M"]


def test_json_store_file_is_private(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    JSONAllocationStore(path).commit(_record(), 1)
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert not Path(f"{path}.tmp").exists()


def test_json_store_open_uses_default_filename(tmp_path: Path) -> None:
    store = JSONAllocationStore.open(tmp_path)
    assert store.path == tmp_path / "store.json"


def test_json_store_missing_file_is_empty(tmp_path: Path) -> None:
    store = JSONAllocationStore(tmp_path / "absent.json")
    assert store.history() == []
    assert not (tmp_path / "absent.json").exists()


@pytest.mark.parametrize(
    "content", ["not json", '{"records": {"bad": 1}}', '{"counters": {"x": -1}}']
)
def test_json_store_rejects_corrupt_document(tmp_path: Path, content: str) -> None:
    path = tmp_path / "store.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(RuntimeError):
        JSONAllocationStore(path)


def test_failed_write_leaves_state_unchanged(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    store = JSONAllocationStore(path)
    with patch("io_utils.store.atomic_write", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            store.commit(_record(), 1)
    assert not store.exists("ABCDEF0M")
    assert store.lookup_by_base(BASE) is None
    assert store.next_disambiguator(BASE) == 0
    assert store.history() == []
    assert not path.exists()


def test_commit_onto_oversized_history_drops_oldest() -> None:
    history = [
        _record(
            f"ABC{index:04X}M",
            base=f"v1|M|2024-01-15|J{index}|WEB",
            created_at=T0 + timedelta(minutes=index),
        ).history_entry()
        for index in reversed(range(250))
    ]
    store = InMemoryAllocationStore(StoreState(history=history), history_limit=200)

    store.commit(_record(base="v1|M|2024-01-15|NEW|WEB"), 1)

    ids = [entry.id for entry in store.history()]
    assert len(ids) == 200
    assert ids[:3] == ["ABCDEF0M", f"ABC{249:04X}M", f"ABC{248:04X}M"]
    assert ids[-1] == f"ABC{51:04X}M"
