"""
Workspace: the in-memory dashboard state plus its persistence writes.

Every mutation is two-phase: the in-memory model is updated first, then one
snapshot write goes to the store. A rejected write is logged and appended to
`failed_writes`; memory is not rolled back, so callers can surface the
divergence and a later `load()` resyncs from the store.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..analysis.columns import analyze_columns
from ..analysis.suggest import suggestion_cache_from_config
from ..cleaning.cleaner import CleanOptions, clean_rows
from ..config_model.model import RootCfg
from ..errors import BackupError, DecodeError, NotFoundError, PersistenceError
from ..io.backup import backup_filename, build_backup, dumps_backup, parse_backup
from ..io.readers import decode_table
from ..io.storage import DATASETS, PAGES, KeyValueStore
from ..utils.ids import new_id
from ..utils.log import get_logger
from ..utils.time import now_ms
from .model import DashboardPage, Dataset, Filter, Row, Scalar, Widget, WidgetType
from .pipeline import PipelineLimits, WidgetView, build_page_views

_WIDGET_TITLES: Dict[str, str] = {
    "bar": "Metric Breakdown",
    "area": "Trend Analysis",
    "line": "Growth Trend",
    "pie": "Distribution",
    "table": "Data Table",
}
_EDITABLE_WIDGET_FIELDS = frozenset({"title", "width", "type", "column_config", "sort_config"})


@dataclass(frozen=True)
class FailedWrite:
    operation: str
    collection: str
    entity_ids: Tuple[str, ...]
    error: str


@dataclass(frozen=True)
class ImportSummary:
    datasets: int
    pages: int
    skipped: int


def _display_str(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


class Workspace:
    def __init__(self, store: KeyValueStore, *, cfg: Optional[RootCfg] = None, logger=None) -> None:
        cfg = cfg or RootCfg()
        self.store = store
        self.limits = PipelineLimits.from_config(cfg)
        self.suggestions = suggestion_cache_from_config(cfg)
        self.value_dropdown_limit = int(cfg.filters.value_dropdown_limit)
        self.timezone = cfg.env.timezone
        self.log = logger or get_logger("datadeck.workspace", level=cfg.logging.level,
                                        structured_json=cfg.logging.structured_json)
        self.datasets: List[Dataset] = []
        self.pages: List[DashboardPage] = []
        self.failed_writes: List[FailedWrite] = []

    # ------------------------------------------------------------------ load

    def load(self) -> "Workspace":
        """Replace in-memory state with what the store holds."""
        self.datasets = sorted(
            self._read(DATASETS, Dataset.model_validate), key=lambda d: d.created_at, reverse=True
        )
        self.pages = sorted(self._read(PAGES, DashboardPage.model_validate), key=lambda p: p.created_at)
        self.log.info("workspace loaded", extra={"datasets": len(self.datasets), "pages": len(self.pages)})
        return self

    def _read(self, collection: str, parse: Callable[[Dict[str, Any]], Any]) -> List[Any]:
        out = []
        for doc in self.store.get_all(collection):
            try:
                out.append(parse(doc))
            except ValidationError:
                self.log.warning("skipping invalid stored document",
                                 extra={"collection": collection, "entity_id": doc.get("id")})
        return out

    # ------------------------------------------------------------- persistence

    def _persist(self, operation: str, collection: str, ids: Sequence[str], write: Callable[[], None]) -> bool:
        try:
            write()
            return True
        except PersistenceError as e:
            self.log.error("persistence write failed", exc_info=True,
                           extra={"operation": operation, "collection": collection, "entity_ids": list(ids)})
            self.failed_writes.append(FailedWrite(operation, collection, tuple(ids), str(e)))
            return False

    def _save_dataset(self, op: str, ds: Dataset) -> bool:
        return self._persist(op, DATASETS, [ds.id], lambda: self.store.put(DATASETS, ds.to_wire()))

    def _save_page(self, op: str, page: DashboardPage) -> bool:
        return self._persist(op, PAGES, [page.id], lambda: self.store.put(PAGES, page.to_wire()))

    # ---------------------------------------------------------------- lookups

    def get_dataset(self, dataset_id: str) -> Optional[Dataset]:
        return next((d for d in self.datasets if d.id == dataset_id), None)

    def get_page(self, page_id: str) -> Optional[DashboardPage]:
        return next((p for p in self.pages if p.id == page_id), None)

    def _require_dataset(self, dataset_id: str) -> Dataset:
        ds = self.get_dataset(dataset_id)
        if ds is None:
            raise NotFoundError(f"dataset {dataset_id!r} not found")
        return ds

    def _require_page(self, page_id: str) -> DashboardPage:
        page = self.get_page(page_id)
        if page is None:
            raise NotFoundError(f"page {page_id!r} not found")
        return page

    def _replace_dataset(self, updated: Dataset) -> None:
        self.datasets = [updated if d.id == updated.id else d for d in self.datasets]

    def _replace_page(self, updated: DashboardPage) -> None:
        self.pages = [updated if p.id == updated.id else p for p in self.pages]

    def _datasets_by_id(self) -> Dict[str, Dataset]:
        return {d.id: d for d in self.datasets}

    # --------------------------------------------------------------- datasets

    def ingest_file(self, data: bytes, file_name: str, *, folder: Optional[str] = None) -> Dataset:
        """Decode, analyze and persist an uploaded file. Nothing is created on DecodeError."""
        try:
            table = decode_table(data, file_name)
        except DecodeError:
            self.log.warning("file decode failed", extra={"file_name": file_name})
            raise
        ds = Dataset(
            id=new_id(),
            file_name=file_name,
            data=table.rows,
            columns=table.columns,
            analysis=analyze_columns(table.rows, table.columns),
            created_at=now_ms(),
            folder=folder or None,
        )
        return self.add_dataset(ds)

    def add_dataset(self, ds: Dataset) -> Dataset:
        self.datasets.append(ds)
        self._save_dataset("add_dataset", ds)
        self.log.info("dataset added", extra={"dataset_id": ds.id, "file_name": ds.file_name, "rows": len(ds.data)})
        if not self.pages:
            self.create_page("Overview", initial_dataset_id=ds.id)
        return ds

    def _with_rows(self, ds: Dataset, rows: List[Row], columns: List[str], **changes: Any) -> Dataset:
        # the analysis is always rebuilt together with the row set
        updated = ds.model_copy(update={
            "data": rows,
            "columns": columns,
            "analysis": analyze_columns(rows, columns),
            **changes,
        })
        self.suggestions.invalidate(ds.id)
        return updated

    def refresh_dataset(self, dataset_id: str, data: bytes, file_name: str) -> Dataset:
        """Swap in rows from a new file, keeping the dataset's id, folder and widgets."""
        ds = self._require_dataset(dataset_id)
        try:
            table = decode_table(data, file_name)
        except DecodeError:
            self.log.warning("file decode failed", extra={"file_name": file_name, "dataset_id": dataset_id})
            raise
        updated = self._with_rows(ds, table.rows, table.columns, file_name=file_name)
        self._replace_dataset(updated)
        self._save_dataset("refresh_dataset", updated)
        self.log.info("dataset refreshed", extra={"dataset_id": dataset_id, "rows": len(updated.data)})
        return updated

    def clean_dataset(self, dataset_id: str, options: CleanOptions = CleanOptions()) -> Dataset:
        ds = self._require_dataset(dataset_id)
        rows = clean_rows(ds.data, ds.columns, options)
        updated = self._with_rows(ds, rows, list(ds.columns))
        self._replace_dataset(updated)
        self._save_dataset("clean_dataset", updated)
        self.log.info("dataset cleaned",
                      extra={"dataset_id": dataset_id, "rows_before": len(ds.data), "rows_after": len(rows)})
        return updated

    def set_dataset_folder(self, dataset_id: str, folder: Optional[str]) -> Dataset:
        ds = self._require_dataset(dataset_id)
        updated = ds.model_copy(update={"folder": (folder or "").strip() or None})
        self._replace_dataset(updated)
        self._save_dataset("set_dataset_folder", updated)
        return updated

    def delete_dataset(self, dataset_id: str) -> bool:
        """
        Drop the dataset and every widget that references it, on every page.
        Affected pages are written in one batch; untouched pages are not rewritten.
        """
        self._require_dataset(dataset_id)
        self.datasets = [d for d in self.datasets if d.id != dataset_id]
        self.suggestions.invalidate(dataset_id)

        affected: List[DashboardPage] = []
        pages: List[DashboardPage] = []
        for p in self.pages:
            kept = [w for w in p.widgets if w.dataset_id != dataset_id]
            if len(kept) != len(p.widgets):
                p = p.model_copy(update={"widgets": kept})
                affected.append(p)
            pages.append(p)
        self.pages = pages

        ok_pages = True
        if affected:
            ok_pages = self._persist(
                "delete_dataset", PAGES, [p.id for p in affected],
                lambda: self.store.put_many(PAGES, [p.to_wire() for p in affected]),
            )
        ok_ds = self._persist("delete_dataset", DATASETS, [dataset_id],
                              lambda: self.store.delete(DATASETS, dataset_id))
        self.log.info("dataset deleted", extra={"dataset_id": dataset_id, "pages_updated": len(affected)})
        return ok_pages and ok_ds

    # ------------------------------------------------------------------ pages

    def create_page(self, name: str = "New Dashboard", initial_dataset_id: Optional[str] = None) -> DashboardPage:
        widgets: List[Widget] = []
        if initial_dataset_id:
            widgets = [
                Widget(id=new_id(), dataset_id=initial_dataset_id, type="bar", title="Key Metrics", width="half"),
                Widget(id=new_id(), dataset_id=initial_dataset_id, type="line", title="Trend Analysis", width="half"),
                Widget(id=new_id(), dataset_id=initial_dataset_id, type="table", title="Raw Data View", width="full"),
            ]
        page = DashboardPage(id=new_id(), name=name, widgets=widgets, filters=[], created_at=now_ms())
        self.pages.append(page)
        self._save_page("create_page", page)
        self.log.info("page created", extra={"page_id": page.id, "widgets": len(widgets)})
        return page

    def rename_page(self, page_id: str, name: str) -> DashboardPage:
        updated = self._require_page(page_id).model_copy(update={"name": name})
        self._replace_page(updated)
        self._save_page("rename_page", updated)
        return updated

    def delete_page(self, page_id: str) -> bool:
        self._require_page(page_id)
        self.pages = [p for p in self.pages if p.id != page_id]
        self.log.info("page deleted", extra={"page_id": page_id})
        return self._persist("delete_page", PAGES, [page_id], lambda: self.store.delete(PAGES, page_id))

    def _update_page(self, op: str, page: DashboardPage, **changes: Any) -> DashboardPage:
        updated = page.model_copy(update=changes)
        self._replace_page(updated)
        self._save_page(op, updated)
        return updated

    # ---------------------------------------------------------------- widgets

    def add_widget(self, page_id: str, dataset_id: str, type: WidgetType) -> Widget:
        page = self._require_page(page_id)
        self._require_dataset(dataset_id)
        widget = Widget(
            id=new_id(),
            dataset_id=dataset_id,
            type=type,
            title=_WIDGET_TITLES.get(type, "New Widget"),
            width="full" if type == "table" else "half",
        )
        self._update_page("add_widget", page, widgets=[*page.widgets, widget])
        return widget

    def remove_widget(self, page_id: str, widget_id: str) -> DashboardPage:
        page = self._require_page(page_id)
        if page.widget_index(widget_id) < 0:
            raise NotFoundError(f"widget {widget_id!r} not on page {page_id!r}")
        return self._update_page("remove_widget", page, widgets=[w for w in page.widgets if w.id != widget_id])

    def update_widget(self, page_id: str, widget_id: str, **changes: Any) -> Widget:
        """Edit title, width, type, column_config or sort_config; None clears an override."""
        unknown = set(changes) - _EDITABLE_WIDGET_FIELDS
        if unknown:
            raise ValueError(f"widget fields not editable: {sorted(unknown)}")
        page = self._require_page(page_id)
        idx = page.widget_index(widget_id)
        if idx < 0:
            raise NotFoundError(f"widget {widget_id!r} not on page {page_id!r}")
        widget = Widget.model_validate({**page.widgets[idx].model_dump(), **changes})
        widgets = list(page.widgets)
        widgets[idx] = widget
        self._update_page("update_widget", page, widgets=widgets)
        return widget

    def move_widget(self, page_id: str, index: int, direction: Literal["left", "right"]) -> DashboardPage:
        """Swap with the neighbour; moving past either end is a no-op (no write)."""
        page = self._require_page(page_id)
        widgets = list(page.widgets)
        if direction == "left" and 0 < index < len(widgets):
            widgets[index - 1], widgets[index] = widgets[index], widgets[index - 1]
        elif direction == "right" and 0 <= index < len(widgets) - 1:
            widgets[index + 1], widgets[index] = widgets[index], widgets[index + 1]
        else:
            return page
        return self._update_page("move_widget", page, widgets=widgets)

    # ---------------------------------------------------------------- filters

    def add_filter(self, page_id: str, column: str, value: Scalar) -> Optional[Filter]:
        page = self._require_page(page_id)
        if not column or value is None or value == "":
            return None
        flt = Filter(id=new_id(), column=column, value=value)
        self._update_page("add_filter", page, filters=[*page.filters, flt])
        return flt

    def remove_filter(self, page_id: str, filter_id: str) -> DashboardPage:
        page = self._require_page(page_id)
        return self._update_page("remove_filter", page, filters=[f for f in page.filters if f.id != filter_id])

    def _page_datasets(self, page: DashboardPage) -> List[Dataset]:
        used = set(page.dataset_ids())
        return [d for d in self.datasets if d.id in used]

    def available_filter_columns(self, page_id: str) -> List[str]:
        page = self._require_page(page_id)
        return sorted({c for d in self._page_datasets(page) for c in d.columns})

    def available_filter_values(self, page_id: str, column: str) -> List[str]:
        page = self._require_page(page_id)
        values = set()
        for d in self._page_datasets(page):
            if column not in d.columns:
                continue
            for row in d.data:
                v = row.get(column)
                if v is not None:
                    values.add(_display_str(v))
        return sorted(values)[: self.value_dropdown_limit]

    # ------------------------------------------------------------------ views

    def render_page(self, page_id: str) -> List[WidgetView]:
        page = self._require_page(page_id)
        return build_page_views(
            page.widgets, self._datasets_by_id(), page.filters,
            limits=self.limits, suggest=self.suggestions.get,
        )

    # ----------------------------------------------------------------- backup

    def export_backup(self, *, timestamp: Optional[int] = None) -> Tuple[str, bytes]:
        doc = build_backup(self.datasets, self.pages, timestamp=timestamp)
        name = backup_filename(doc["timestamp"], self.timezone)
        self.log.info("backup exported", extra={"file_name": name,
                                                "datasets": len(self.datasets), "pages": len(self.pages)})
        return name, dumps_backup(doc)

    def import_backup(self, data: bytes | str) -> ImportSummary:
        """
        Datasets whose file name matches one already loaded are skipped; pages
        are upserted by id. State is reloaded from the store afterwards.
        """
        try:
            payload = parse_backup(data)
        except BackupError:
            self.log.warning("backup parse failed")
            raise

        existing_names = {d.file_name for d in self.datasets}
        imported_ds = skipped = 0
        for doc in payload.datasets:
            try:
                ds = Dataset.model_validate(doc)
            except ValidationError:
                self.log.warning("skipping invalid dataset in backup", extra={"entity_id": doc.get("id")})
                skipped += 1
                continue
            if ds.file_name in existing_names:
                skipped += 1
                continue
            if self._save_dataset("import_backup", ds):
                imported_ds += 1

        pages: List[DashboardPage] = []
        for doc in payload.pages:
            try:
                pages.append(DashboardPage.model_validate(doc))
            except ValidationError:
                self.log.warning("skipping invalid page in backup", extra={"entity_id": doc.get("id")})
                skipped += 1
        imported_pages = 0
        if pages and self._persist("import_backup", PAGES, [p.id for p in pages],
                                   lambda: self.store.put_many(PAGES, [p.to_wire() for p in pages])):
            imported_pages = len(pages)

        self.load()
        summary = ImportSummary(datasets=imported_ds, pages=imported_pages, skipped=skipped)
        self.log.info("backup imported", extra={"datasets": summary.datasets, "pages": summary.pages,
                                                "skipped": summary.skipped})
        return summary
