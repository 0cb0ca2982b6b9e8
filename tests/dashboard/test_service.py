import json
import pytest

from datadeck.cleaning.cleaner import CleanOptions
from datadeck.dashboard.model import ColumnConfig, SortConfig
from datadeck.dashboard.service import Workspace
from datadeck.errors import BackupError, DecodeError, NotFoundError, PersistenceError
from datadeck.io.storage import DATASETS, PAGES, MemoryStore

class RecordingStore(MemoryStore):
    def __init__(self):
        super().__init__()
        self.calls = []

    def put(self, collection, entity):
        self.calls.append(("put", collection, [entity["id"]]))
        super().put(collection, entity)

    def put_many(self, collection, entities):
        entities = list(entities)
        self.calls.append(("put_many", collection, [e["id"] for e in entities]))
        super().put_many(collection, entities)

    def delete(self, collection, entity_id):
        self.calls.append(("delete", collection, [entity_id]))
        super().delete(collection, entity_id)

class BrokenPageStore(MemoryStore):
    def put(self, collection, entity):
        if collection == PAGES:
            raise PersistenceError("quota exceeded")
        super().put(collection, entity)

def test_first_ingest_creates_overview_page(ws, store, sales_csv):
    ds = ws.ingest_file(sales_csv, "sales.csv", folder="Q1")
    assert ds.columns == ["region", "sales", "profit"]
    assert ds.data[0] == {"region": "North", "sales": 100, "profit": 10}
    assert ds.folder == "Q1"
    assert [a.type for a in ds.analysis] == ["string", "number", "number"]

    assert len(ws.pages) == 1
    page = ws.pages[0]
    assert page.name == "Overview"
    assert [(w.type, w.title, w.width) for w in page.widgets] == [
        ("bar", "Key Metrics", "half"),
        ("line", "Trend Analysis", "half"),
        ("table", "Raw Data View", "full"),
    ]
    assert {w.dataset_id for w in page.widgets} == {ds.id}
    assert [d["id"] for d in store.get_all(DATASETS)] == [ds.id]
    assert [p["id"] for p in store.get_all(PAGES)] == [page.id]

    # second upload doesn't add another page
    ws.ingest_file(sales_csv, "sales-2.csv")
    assert len(ws.pages) == 1

def test_failed_decode_leaves_nothing_behind(ws, store):
    with pytest.raises(DecodeError):
        ws.ingest_file(b"\x00\x01", "notes.docx")
    assert ws.datasets == [] and ws.pages == []
    assert store.get_all(DATASETS) == []

def test_stored_documents_use_camel_case(ws, store, sales_csv):
    ws.ingest_file(sales_csv, "sales.csv")
    doc = store.get_all(DATASETS)[0]
    assert "fileName" in doc and "createdAt" in doc
    assert doc["analysis"][1]["uniqueValues"] == 3
    page_doc = store.get_all(PAGES)[0]
    assert "datasetId" in page_doc["widgets"][0]

def test_delete_dataset_cascades_in_one_batch(make_dataset):
    store = RecordingStore()
    ws = Workspace(store).load()
    a = ws.add_dataset(make_dataset([{"k": "x", "v": 1}], id="a"))
    b = ws.add_dataset(make_dataset([{"k": "y", "v": 2}], id="b"))
    p1 = ws.pages[0]
    ws.add_widget(p1.id, b.id, "pie")
    p2 = ws.create_page("Only B")
    ws.add_widget(p2.id, b.id, "table")
    p3 = ws.create_page("Mixed")
    ws.add_widget(p3.id, a.id, "bar")

    store.calls.clear()
    assert ws.delete_dataset(a.id) is True

    assert store.calls == [
        ("put_many", PAGES, [p1.id, p3.id]),
        ("delete", DATASETS, ["a"]),
    ]
    assert all(w.dataset_id != "a" for p in ws.pages for w in p.widgets)
    assert [w.type for w in ws.get_page(p1.id).widgets] == ["pie"]
    assert ws.get_page(p3.id).widgets == []
    assert [d.id for d in ws.datasets] == ["b"]

    reloaded = Workspace(store).load()
    assert all(w.dataset_id != "a" for p in reloaded.pages for w in p.widgets)

def test_delete_unknown_dataset_raises(ws):
    with pytest.raises(NotFoundError):
        ws.delete_dataset("nope")

def test_widget_edits(ws, sales_csv):
    ds = ws.ingest_file(sales_csv, "sales.csv")
    page = ws.pages[0]

    w = ws.add_widget(page.id, ds.id, "area")
    assert (w.title, w.width) == ("Trend Analysis", "half")
    t = ws.add_widget(page.id, ds.id, "table")
    assert (t.title, t.width) == ("Data Table", "full")
    with pytest.raises(NotFoundError):
        ws.add_widget(page.id, "missing", "bar")

    updated = ws.update_widget(
        page.id, w.id,
        title="Profit",
        column_config=ColumnConfig(x_axis_key="region", data_keys=["profit"]),
        sort_config={"sort_key": "profit", "sort_order": "desc"},
    )
    assert updated.title == "Profit"
    assert updated.sort_config == SortConfig(sort_key="profit", sort_order="desc")
    cleared = ws.update_widget(page.id, w.id, sort_config=None)
    assert cleared.sort_config is None
    assert cleared.column_config.data_keys == ["profit"]
    with pytest.raises(ValueError):
        ws.update_widget(page.id, w.id, dataset_id="other")

    page = ws.remove_widget(page.id, t.id)
    assert page.widget_index(t.id) == -1

def test_move_widget_swaps_and_ignores_edges(sales_csv):
    store = RecordingStore()
    ws = Workspace(store).load()
    ws.ingest_file(sales_csv, "sales.csv")
    page = ws.pages[0]
    before = [w.id for w in page.widgets]

    moved = ws.move_widget(page.id, 0, "right")
    assert [w.id for w in moved.widgets] == [before[1], before[0], before[2]]

    store.calls.clear()
    same = ws.move_widget(page.id, 0, "left")
    assert [w.id for w in same.widgets] == [before[1], before[0], before[2]]
    ws.move_widget(page.id, 2, "right")
    assert store.calls == []

def test_filters_flow_into_rendered_views(ws, sales_csv):
    ds = ws.ingest_file(sales_csv, "sales.csv")
    page = ws.pages[0]
    assert ws.add_filter(page.id, "", "North") is None
    assert ws.add_filter(page.id, "region", "") is None

    flt = ws.add_filter(page.id, "region", "North")
    views = ws.render_page(page.id)
    assert [v.status for v in views] == ["ok", "ok", "ok"]
    bar = views[0]
    assert bar.mapping.x_axis_key == "region"
    assert bar.mapping.data_keys == ("sales", "profit")
    assert [r["sales"] for r in bar.rows] == [100, 50]

    ws.remove_filter(page.id, flt.id)
    assert len(ws.render_page(page.id)[2].rows) == len(ds.data)

def test_available_filter_columns_and_values(ws, make_dataset):
    a = ws.add_dataset(make_dataset([{"region": "S", "n": 2.0}, {"region": "N", "n": 1}], id="a"))
    ws.add_dataset(make_dataset([{"zone": "z"}], id="unused"))
    page = ws.pages[0]
    assert ws.available_filter_columns(page.id) == ["n", "region"]
    assert ws.available_filter_values(page.id, "region") == ["N", "S"]
    assert ws.available_filter_values(page.id, "n") == ["1", "2"]
    assert ws.available_filter_values(page.id, "zone") == []
    assert a.id == "a"

def test_value_dropdown_is_capped(make_dataset, cfg):
    small = cfg.model_copy(update={"filters": cfg.filters.model_copy(update={"value_dropdown_limit": 3})})
    ws = Workspace(MemoryStore(), cfg=small).load()
    ws.add_dataset(make_dataset([{"k": f"v{i}"} for i in range(10)], id="a"))
    assert ws.available_filter_values(ws.pages[0].id, "k") == ["v0", "v1", "v2"]

def test_refresh_replaces_rows_and_analysis(ws, sales_csv):
    ds = ws.ingest_file(sales_csv, "sales.csv")
    page = ws.pages[0]
    ws.render_page(page.id)

    new = ws.refresh_dataset(ds.id, b"city,temp\nBerlin,20\nRome,30\n", "weather.csv")
    assert new.id == ds.id
    assert new.file_name == "weather.csv"
    assert new.columns == ["city", "temp"]
    assert [a.key for a in new.analysis] == ["city", "temp"]
    bar = ws.render_page(page.id)[0]
    assert bar.mapping.x_axis_key == "city"

def test_clean_dataset(ws, make_dataset):
    rows = [{"a": " 1 ", "b": "x"}, {"a": None, "b": ""}, {"a": "1", "b": "x"}]
    ds = ws.add_dataset(make_dataset(rows, id="c"))
    cleaned = ws.clean_dataset(ds.id, CleanOptions())
    assert cleaned.data == [{"a": 1, "b": "x"}]
    assert cleaned.analysis[0].type == "number"

def test_pages_rename_and_delete(ws):
    p = ws.create_page()
    assert p.name == "New Dashboard" and p.widgets == []
    assert ws.rename_page(p.id, "Sales").name == "Sales"
    assert ws.delete_page(p.id) is True
    assert ws.get_page(p.id) is None
    with pytest.raises(NotFoundError):
        ws.rename_page(p.id, "x")

def test_failed_page_write_is_recorded_not_rolled_back(sales_csv):
    ws = Workspace(BrokenPageStore()).load()
    ds = ws.ingest_file(sales_csv, "sales.csv")
    assert len(ws.pages) == 1
    assert [d.id for d in ws.datasets] == [ds.id]
    failed = ws.failed_writes
    assert len(failed) == 1
    assert failed[0].collection == PAGES
    assert failed[0].operation == "create_page"
    assert "quota exceeded" in failed[0].error

def test_load_orders_datasets_newest_first_and_pages_oldest_first(store, make_dataset):
    for i, ts in enumerate([3, 1, 2]):
        store.put(DATASETS, make_dataset([{"a": 1}], id=f"d{i}", created_at=ts).to_wire())
        store.put(PAGES, {"id": f"p{i}", "name": "n", "widgets": [], "filters": [], "createdAt": ts})
    store.put(PAGES, {"id": "broken", "name": "n"})
    ws = Workspace(store).load()
    assert [d.created_at for d in ws.datasets] == [3, 2, 1]
    assert [p.created_at for p in ws.pages] == [1, 2, 3]

def test_backup_round_trip(ws, sales_csv):
    ds = ws.ingest_file(sales_csv, "sales.csv")
    name, payload = ws.export_backup(timestamp=1704153600000)
    assert name == "datadeck-backup-2024-01-02.json"
    doc = json.loads(payload)
    assert doc["version"] == 1
    assert doc["timestamp"] == 1704153600000
    assert doc["datasets"][0]["fileName"] == "sales.csv"

    fresh = Workspace(MemoryStore()).load()
    summary = fresh.import_backup(payload)
    assert (summary.datasets, summary.pages, summary.skipped) == (1, 1, 0)
    assert [d.id for d in fresh.datasets] == [ds.id]
    assert fresh.datasets[0].data == ds.data
    assert [p.id for p in fresh.pages] == [p.id for p in ws.pages]

def test_reimport_skips_known_datasets_but_upserts_pages(ws, sales_csv):
    ws.ingest_file(sales_csv, "sales.csv")
    _, payload = ws.export_backup()
    page_id = ws.pages[0].id
    ws.rename_page(page_id, "Renamed")

    summary = ws.import_backup(payload)
    assert summary.datasets == 0
    assert summary.skipped == 1
    assert summary.pages == 1
    assert len(ws.datasets) == 1
    assert ws.get_page(page_id).name == "Overview"

def test_malformed_backup_raises_and_keeps_state(ws, sales_csv):
    ws.ingest_file(sales_csv, "sales.csv")
    with pytest.raises(BackupError, match="Invalid file format"):
        ws.import_backup(b"{not json")
    with pytest.raises(BackupError):
        ws.import_backup(b"[1, 2]")
    assert len(ws.datasets) == 1

def test_backup_without_arrays_imports_nothing(ws):
    summary = ws.import_backup(b'{"version": 1}')
    assert (summary.datasets, summary.pages, summary.skipped) == (0, 0, 0)

def test_huge_int_cells_from_a_backup_render(ws):
    backup = json.dumps({
        "version": 1,
        "timestamp": 1704153600000,
        "datasets": [{
            "id": "big", "fileName": "big.json", "createdAt": 1,
            "columns": ["region", "sales"],
            "data": [{"region": "N", "sales": 10**400}, {"region": "S", "sales": 100}],
        }],
        "pages": [],
    })
    ws.import_backup(backup)
    ds = ws.get_dataset("big")
    assert ds.data[0]["sales"] == 10**400

    cleaned = ws.clean_dataset("big")
    assert [a.type for a in cleaned.analysis] == ["string", "number"]
    page = ws.create_page("Big", initial_dataset_id="big")
    ws.add_widget(page.id, "big", "pie")
    assert all(v.status == "ok" for v in ws.render_page(page.id))

    ws.add_filter(page.id, "sales", "100")
    views = ws.render_page(page.id)
    assert [v.status for v in views] == ["ok", "ok", "ok", "ok"]
    assert views[0].rows == [{"region": "S", "sales": 100}]
