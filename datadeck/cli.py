from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from .config_model.model import RootCfg, load_config
from .dashboard.service import Workspace
from .errors import DataDeckError
from .io.storage import build_store_from_config
from .utils.log import configure_from_config


def _workspace(cfg: RootCfg) -> Workspace:
    return Workspace(build_store_from_config(cfg), cfg=cfg).load()


def _print_json(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def cmd_ingest(cfg: RootCfg, args: argparse.Namespace) -> int:
    ws = _workspace(cfg)
    path = Path(args.file)
    ds = ws.ingest_file(path.read_bytes(), path.name, folder=args.folder)
    _print_json({"id": ds.id, "fileName": ds.file_name, "rows": len(ds.data),
                 "analysis": [a.to_wire() for a in ds.analysis]})
    return 0


def cmd_datasets(cfg: RootCfg, args: argparse.Namespace) -> int:
    ws = _workspace(cfg)
    _print_json([{"id": d.id, "fileName": d.file_name, "folder": d.folder,
                  "rows": len(d.data), "columns": d.columns} for d in ws.datasets])
    return 0


def cmd_pages(cfg: RootCfg, args: argparse.Namespace) -> int:
    ws = _workspace(cfg)
    _print_json([{"id": p.id, "name": p.name, "widgets": len(p.widgets), "filters": len(p.filters)}
                 for p in ws.pages])
    return 0


def cmd_render(cfg: RootCfg, args: argparse.Namespace) -> int:
    ws = _workspace(cfg)
    views = ws.render_page(args.page_id)
    if args.html:
        from .chart.figures import export_page_html
        out = export_page_html(views, args.html)
        print(str(out))
        return 0
    _print_json([
        {
            "widgetId": v.widget_id,
            "type": v.type,
            "title": v.title,
            "status": v.status,
            "mapping": asdict(v.mapping) if v.mapping else None,
            "shown": len(v.rows),
            "total": v.total_rows,
        }
        for v in views
    ])
    return 0


def cmd_export(cfg: RootCfg, args: argparse.Namespace) -> int:
    ws = _workspace(cfg)
    name, payload = ws.export_backup()
    out = Path(args.out) / name
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(payload)
    print(str(out))
    return 0


def cmd_import(cfg: RootCfg, args: argparse.Namespace) -> int:
    ws = _workspace(cfg)
    summary = ws.import_backup(Path(args.backup).read_bytes())
    print(f"Restored {summary.datasets} datasets and {summary.pages} dashboards "
          f"({summary.skipped} skipped).")
    return 0


def cmd_config(cfg: RootCfg, args: argparse.Namespace) -> int:
    _print_json(cfg.model_dump())
    return 0


def _build_argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="datadeck",
        description="Spreadsheet analytics dashboards: ingest files, render pages, back up state.",
    )
    ap.add_argument("--config", default=None, help="Path to config TOML (default: $DATADECK_CFG or config/config.toml)")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("ingest", help="Decode a spreadsheet/CSV file and store it as a dataset")
    p.add_argument("file")
    p.add_argument("--folder", default=None)
    p.set_defaults(fn=cmd_ingest)

    sub.add_parser("datasets", help="List datasets").set_defaults(fn=cmd_datasets)
    sub.add_parser("pages", help="List dashboard pages").set_defaults(fn=cmd_pages)

    p = sub.add_parser("render", help="Run the widget pipeline for every widget on a page")
    p.add_argument("page_id")
    p.add_argument("--html", default=None, help="Write the page's figures to this HTML file")
    p.set_defaults(fn=cmd_render)

    p = sub.add_parser("export", help="Write a backup JSON file")
    p.add_argument("--out", default=".")
    p.set_defaults(fn=cmd_export)

    p = sub.add_parser("import", help="Restore a backup JSON file")
    p.add_argument("backup")
    p.set_defaults(fn=cmd_import)

    sub.add_parser("config", help="Print the effective configuration").set_defaults(fn=cmd_config)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_argparser().parse_args(argv)
    cfg = load_config(args.config)
    log = configure_from_config(cfg)
    try:
        return int(args.fn(cfg, args))
    except DataDeckError as e:
        log.error(str(e), extra={"command": args.command})
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
