"""CLI para reconstruir el progreso de un miembro y exportarlo a Excel."""

from __future__ import annotations

import argparse
import logging
from datetime import date, datetime
from pathlib import Path

from dateutil import tz

from gym_progress.excel_writer import ExcelLayout, write_progress_xlsx
from gym_progress.model import SubjectProgress
from gym_progress.reconstruct import reconstruct_progress, rows_to_frame
from gym_progress.sources.progress_api import ProgressApiClient
from gym_progress.sources.progress_json import (
    ProgressExportPaths,
    ProgressExportSource,
)
from gym_progress.stats import (
    WINDOW_MONTHS,
    bmi_category,
    compute_stats,
    goal_distance,
    latest_bmi,
)
from gym_progress.storage import AppConfig, SQLiteStore

_LOCAL_TZ = tz.tzlocal()

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        description="Progreso de un miembro: serie alineada por fecha + deltas."
    )
    parser.add_argument(
        "--base-dir",
        default=str(Path.home() / "gym_progress"),
        help="Directorio base (default: ~/gym_progress).",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="Base SQLite (default: <base-dir>/gym_progress.sqlite3).",
    )
    parser.add_argument("--member-id", required=True, help="Id del miembro.")
    parser.add_argument(
        "--input",
        default=None,
        help="Export JSON (default: progress_*.json más reciente en <base>/datos).",
    )
    parser.add_argument("--api-url", default=None, help="URL base del backend.")
    parser.add_argument("--token", default=None, help="Bearer token para la API.")
    parser.add_argument(
        "--window",
        type=int,
        choices=WINDOW_MONTHS,
        default=None,
        help="Ventana en meses para los deltas (default: configuracion guardada).",
    )
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Fecha de referencia YYYY-MM-DD (default: hoy).",
    )
    parser.add_argument(
        "--goal-weight", type=float, default=None, help="Peso objetivo (kg)."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args()


def _load_progress(
    ns: argparse.Namespace, base: Path, config: AppConfig
) -> tuple[SubjectProgress, str]:
    api_url = ns.api_url or config.api_base_url
    if api_url:
        client = ProgressApiClient(api_url, token=ns.token)
        return client.fetch_progress(ns.member_id), api_url

    src = ProgressExportSource(ProgressExportPaths(root=base / "datos"))
    if ns.input:
        path = Path(ns.input).expanduser()
    else:
        src.validate()
        path = src.newest_json()
    return src.load_progress(path, member_id=ns.member_id), str(path)


def _signed(value: float) -> str:
    return f"{value:+.2f}"


def main() -> int:
    """Run the progress report CLI.

    Returns:
        Exit code (0 on success).
    """
    ns = parse_args()
    logging.basicConfig(
        level=getattr(logging, ns.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    base = Path(ns.base_dir).expanduser().resolve()
    store = SQLiteStore(Path(ns.db) if ns.db else base / "gym_progress.sqlite3")
    config = store.load_config()

    fetched, origin = _load_progress(ns, base, config)
    store.import_progress(fetched)
    progress = store.load_progress(ns.member_id)

    rows = reconstruct_progress(progress)
    window = ns.window or config.window_months
    stats = compute_stats(rows, window, today=ns.today)

    export_dir = Path(config.export_dir) if config.export_dir else base / "salidas"
    ts = datetime.now(tz=_LOCAL_TZ).strftime("%Y-%m-%d_%H-%M-%S")
    out_path = export_dir / f"progreso_{ns.member_id}_{ts}.xlsx"
    write_progress_xlsx(rows_to_frame(rows), stats, out_path, ExcelLayout())
    logger.info("Report written to %s", out_path)

    print(f"OK: Source: {origin}")
    print(f"OK: Aligned rows: {len(rows)} ({stats.rows_in_window} in {window}m window)")
    print(f"OK: Weight change: {_signed(stats.weight_change)}")
    print(f"OK: Body fat change: {_signed(stats.body_fat_change)}")
    print(f"OK: Muscle mass change: {_signed(stats.muscle_mass_change)}")

    bmi = latest_bmi(progress)
    if bmi is not None:
        print(f"OK: BMI: {bmi} ({bmi_category(bmi)})")

    goal = ns.goal_weight if ns.goal_weight is not None else config.goal_weight
    if goal is not None and rows and "weight" in rows[-1].values:
        to_go = goal_distance(rows[-1].values["weight"], goal)
        print(f"OK: To goal weight {goal}: {to_go}")

    print(f"OK: Output: {out_path}")
    return 0
