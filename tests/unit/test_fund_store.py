import asyncio
import json
import threading

import pytest

from fund_valuation.domain.models import DEFAULT_GROUP_ID, Position
from fund_valuation.infrastructure.store.fund_store import FundStore
from fund_valuation.infrastructure.store.kv_store import JsonFileStore, MemoryStore


async def _store(initial=None) -> FundStore:
    store = FundStore(MemoryStore(initial))
    await store.load()
    return store


@pytest.mark.asyncio
async def test_fresh_store_has_default_group():
    store = await _store()

    assert [g.id for g in store.groups] == [DEFAULT_GROUP_ID]
    assert store.groups[0].name == "默认"
    assert store.watchlist == []


@pytest.mark.asyncio
async def test_load_migrates_bare_holding_keys_and_orphans():
    store = await _store(
        {
            "watchlist": ["A", "B"],
            "holdings": [["A", 100], ["work:B", {"shares": 5, "costNav": 1.2}]],
            "groups": [{"id": "work", "name": "Work", "funds": ["B"], "order": 1}],
        }
    )

    assert store.get_holding(DEFAULT_GROUP_ID, "A") == Position(shares=100)
    assert store.get_holding("work", "B") == Position(shares=5, cost_nav=1.2)
    # Orphan A lands in a recreated default group
    assert store.groups[0].id == DEFAULT_GROUP_ID
    assert store.get_group_funds(DEFAULT_GROUP_ID) == ["A"]
    saved = store.backend.get("holdings")
    assert ["default:A", {"shares": 100.0, "costNav": 0.0}] in saved


@pytest.mark.asyncio
async def test_add_and_remove_fund_across_groups():
    store = await _store()
    work = await store.add_group("Work")

    assert await store.add_to_watchlist("A")
    assert await store.add_to_watchlist("A", work)
    assert not await store.add_to_watchlist("A", work)
    assert not await store.add_to_watchlist("A", "missing")

    await store.set_holding(work, "A", 10)
    assert await store.remove_from_watchlist("A", work)

    assert store.get_holding(work, "A") is None
    # Still held by the default group
    assert store.watchlist == ["A"]

    assert await store.remove_from_watchlist("A", DEFAULT_GROUP_ID)
    assert store.watchlist == []


@pytest.mark.asyncio
async def test_set_holding_keeps_cost_and_zero_deletes():
    store = await _store()
    await store.add_to_watchlist("A")

    await store.set_holding(DEFAULT_GROUP_ID, "A", 100)
    await store.set_cost_nav(DEFAULT_GROUP_ID, "A", 1.2)
    await store.set_holding(DEFAULT_GROUP_ID, "A", 150)

    assert store.get_holding(DEFAULT_GROUP_ID, "A") == Position(shares=150, cost_nav=1.2)
    assert store.get_shares(DEFAULT_GROUP_ID, "A") == 150

    await store.set_holding(DEFAULT_GROUP_ID, "A", 0)
    assert store.get_holding(DEFAULT_GROUP_ID, "A") is None
    assert store.get_shares(DEFAULT_GROUP_ID, "A") == 0.0


@pytest.mark.asyncio
async def test_set_cost_requires_position():
    store = await _store()
    assert await store.set_cost_nav(DEFAULT_GROUP_ID, "A", 1.0) is None


@pytest.mark.asyncio
async def test_set_cost_from_profit():
    store = await _store()
    await store.set_holding(DEFAULT_GROUP_ID, "A", 100)

    position = await store.set_cost_from_profit(DEFAULT_GROUP_ID, "A", 50, 1.5)
    assert position.cost_nav == 1.0

    # Would need a negative cost
    assert await store.set_cost_from_profit(DEFAULT_GROUP_ID, "A", 500, 1.5) is None
    assert store.get_holding(DEFAULT_GROUP_ID, "A").cost_nav == 1.0


@pytest.mark.asyncio
async def test_remove_group_drops_positions_and_orphaned_codes():
    store = await _store()
    work = await store.add_group("Work")
    await store.add_to_watchlist("A")
    await store.add_to_watchlist("A", work)
    await store.add_to_watchlist("B", work)
    await store.set_holding(work, "B", 3)

    assert await store.remove_group(work)

    assert store.get_group(work) is None
    assert store.get_holding(work, "B") is None
    assert store.watchlist == ["A"]


@pytest.mark.asyncio
async def test_default_group_cannot_be_removed():
    store = await _store()
    assert not await store.remove_group(DEFAULT_GROUP_ID)
    assert store.get_group(DEFAULT_GROUP_ID) is not None


@pytest.mark.asyncio
async def test_rename_and_reorder_groups():
    store = await _store()
    a = await store.add_group("A")
    b = await store.add_group("B")

    assert await store.rename_group(a, "Alpha")
    assert not await store.rename_group("missing", "x")
    with pytest.raises(ValueError):
        await store.rename_group(a, "  ")

    groups = await store.reorder_groups([b, a])
    assert [g.id for g in groups] == [b, a, DEFAULT_GROUP_ID]
    assert [g.order for g in groups] == [0, 1, 2]
    assert store.get_group(a).name == "Alpha"


@pytest.mark.asyncio
async def test_export_round_trips_through_import():
    store = await _store()
    work = await store.add_group("Work")
    await store.add_to_watchlist("A")
    await store.add_to_watchlist("B", work)
    await store.set_holding(work, "B", 20)
    await store.set_cost_nav(work, "B", 0.9)

    exported = store.export_data()
    assert exported["version"] == 4
    assert exported["holdings"] == [[f"{work}:B", {"shares": 20, "costNav": 0.9}]]
    assert "exportTime" in exported

    other = await _store()
    assert await other.import_data(json.loads(json.dumps(exported)))
    assert other.watchlist == ["A", "B"]
    assert other.get_holding(work, "B") == Position(shares=20, cost_nav=0.9)
    assert [g.id for g in other.groups] == [DEFAULT_GROUP_ID, work]


@pytest.mark.asyncio
async def test_import_legacy_pairs_with_bare_share_counts():
    store = await _store()
    ok = await store.import_data(
        {"watchlist": ["A", "B", "C"], "holdings": [["A", 100], ["B", 0], ["C", -3]], "version": 2}
    )

    assert ok
    assert store.get_holding(DEFAULT_GROUP_ID, "A") == Position(shares=100)
    assert store.get_holding(DEFAULT_GROUP_ID, "B") is None
    assert store.get_holding(DEFAULT_GROUP_ID, "C") is None
    assert store.get_group_funds(DEFAULT_GROUP_ID) == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_import_legacy_flat_holdings_map():
    store = await _store()
    legacy = {"000001": 100, "110022": 250.5, "161725": 30}

    assert await store.import_data({"holdings": legacy})

    positions = store.group_positions(DEFAULT_GROUP_ID)
    assert len(positions) == len(legacy)
    for code, shares in legacy.items():
        assert positions[code].shares == shares
        assert positions[code].cost_nav == 0
        assert positions[code].to_dict() == {"shares": shares, "costNav": 0.0}
    assert sorted(store.watchlist) == sorted(legacy)


@pytest.mark.asyncio
async def test_import_bare_flat_map_payload():
    store = await _store()
    assert await store.import_data({"000001": 100, "110022": 50})
    assert store.get_shares(DEFAULT_GROUP_ID, "110022") == 50


@pytest.mark.asyncio
async def test_import_rejects_garbage():
    store = await _store()
    await store.add_to_watchlist("KEEP")

    assert not await store.import_data(["not", "a", "dict"])
    assert not await store.import_data({"watchlist": "A,B"})
    assert store.watchlist == ["KEEP"]


@pytest.mark.asyncio
async def test_concurrent_mutations_serialize():
    store = await _store()
    codes = [f"{i:06d}" for i in range(20)]

    await asyncio.gather(*(store.add_to_watchlist(code) for code in codes))

    assert sorted(store.watchlist) == codes
    assert sorted(store.get_group_funds(DEFAULT_GROUP_ID)) == codes


@pytest.mark.asyncio
async def test_dca_config_persisted():
    store = await _store()
    assert store.load_dca_config() is None

    config = {"start_date": "2024-01-01", "plans": []}
    await store.save_dca_config(config)
    assert store.load_dca_config() == config


@pytest.mark.asyncio
async def test_json_file_store_survives_reload(tmp_path):
    path = tmp_path / "state" / "store.json"
    store = FundStore(JsonFileStore(str(path)))
    await store.load()
    await store.add_to_watchlist("A")
    await store.set_holding(DEFAULT_GROUP_ID, "A", 12)

    reloaded = FundStore(JsonFileStore(str(path)))
    await reloaded.load()

    assert reloaded.watchlist == ["A"]
    assert reloaded.get_shares(DEFAULT_GROUP_ID, "A") == 12


@pytest.mark.unit
def test_json_file_store_reads_corrupt_file_as_empty(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileStore(str(path)).get("watchlist") is None


class RecordingStore(MemoryStore):
    """Remembers which thread each write batch ran on."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.batches = []

    def set_many(self, values):
        self.batches.append((sorted(values), threading.current_thread() is threading.main_thread()))
        super().set_many(values)


@pytest.mark.asyncio
async def test_writes_are_batched_and_leave_the_event_loop_thread():
    backend = RecordingStore()
    store = FundStore(backend)
    await store.load()
    work = await store.add_group("Work")
    await store.add_to_watchlist("A", work)
    backend.batches.clear()

    assert await store.remove_group(work)

    assert backend.batches == [(["groups", "holdings", "watchlist"], False)]
    assert backend.get("watchlist") == []


@pytest.mark.unit
def test_json_file_store_set_many_writes_every_key(tmp_path):
    path = tmp_path / "store.json"
    backend = JsonFileStore(str(path))
    backend.set("keep", 1)

    backend.set_many({"watchlist": ["A"], "groups": []})

    assert json.loads(path.read_text(encoding="utf-8")) == {"keep": 1, "watchlist": ["A"], "groups": []}


@pytest.mark.asyncio
async def test_dca_config_is_copied_in_and_out():
    store = await _store({"dca-config": {"plans": []}})
    assert store.load_dca_config() == {"plans": []}

    config = {"plans": []}
    await store.save_dca_config(config)
    config["plans"].append("mutated")
    store.load_dca_config()["plans"].append("mutated")

    assert store.load_dca_config() == {"plans": []}
