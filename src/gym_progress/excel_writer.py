"""Generación de Excel formateado con la evolución de un miembro."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side

from gym_progress.model import DerivedStats

_DIA_SEMANA: tuple[str, ...] = ("lun", "mar", "mie", "jue", "vie", "sab", "dom")

_HEADER_MAP: dict[str, str] = {
    "weekday": "Día",
    "date": "Fecha",
    "weight": "Peso",
    "height": "Altura",
    "bodyFat": "Grasa\ncorporal (%)",
    "muscleMass": "Masa\nmuscular",
    "chestMeasurement": "Pecho",
    "waistMeasurement": "Cintura",
    "armMeasurement": "Brazo",
    "legMeasurement": "Pierna",
    "bmi": "IMC",
}

_SUMMARY_LABELS: dict[str, str] = {
    "weight": "Cambio de peso",
    "height": "Cambio de altura",
    "bodyFat": "Cambio de grasa corporal",
    "muscleMass": "Cambio de masa muscular",
    "chestMeasurement": "Cambio de pecho",
    "waistMeasurement": "Cambio de cintura",
    "armMeasurement": "Cambio de brazo",
    "legMeasurement": "Cambio de pierna",
}


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the progress report."""

    sheet_name: str = "Progreso"
    summary_sheet_name: str = "Resumen"


def _weekday_label(i: object) -> str:
    """Convierte índice 0-6 (lunes-domingo) a etiqueta de 3 letras."""
    try:
        if i is None or (isinstance(i, float) and pd.isna(i)):
            return ""
        if isinstance(i, int | float):
            idx = int(i)
            return _DIA_SEMANA[idx] if 0 <= idx < 7 else ""
        return ""
    except (ValueError, TypeError):
        return ""


def _add_weekday_column(export_df: pd.DataFrame) -> pd.DataFrame:
    """Añade columna weekday (Día) a partir de date."""
    if "date" not in export_df.columns or export_df.empty:
        return export_df
    export_df = export_df.copy()
    export_df["date"] = pd.to_datetime(export_df["date"], errors="coerce")
    export_df["weekday"] = export_df["date"].dt.weekday.map(_weekday_label)
    cols = ["weekday"] + [c for c in export_df.columns if c != "weekday"]
    return export_df[cols]


def _drop_empty_metric_columns(export_df: pd.DataFrame) -> pd.DataFrame:
    """Quita columnas de métricas sin ningún valor."""
    keep = [
        c
        for c in export_df.columns
        if c in ("weekday", "date") or export_df[c].notna().any()
    ]
    return export_df[keep]


def _summary_frame(stats: DerivedStats) -> pd.DataFrame:
    rows: list[dict[str, object]] = [
        {"Concepto": "Ventana (meses)", "Valor": stats.window_months},
        {"Concepto": "Filas en ventana", "Valor": stats.rows_in_window},
        {"Concepto": "Desde", "Valor": stats.first_date},
        {"Concepto": "Hasta", "Valor": stats.last_date},
    ]
    for metric, label in _SUMMARY_LABELS.items():
        change = round(stats.changes.get(metric, 0.0), 2)
        rows.append({"Concepto": label, "Valor": change})
    rows.append({"Concepto": "Cambio de IMC", "Valor": round(stats.bmi_change, 2)})
    return pd.DataFrame(rows)


def write_progress_xlsx(
    df: pd.DataFrame,
    stats: DerivedStats,
    out_path: Path,
    layout: ExcelLayout,
) -> None:
    """Write a formatted progress report.

    Args:
        df: Aligned rows as produced by ``rows_to_frame``.
        stats: Window deltas shown on the summary sheet.
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    export_df = _add_weekday_column(df)
    export_df = _drop_empty_metric_columns(export_df)
    export_df = export_df.rename(columns=_HEADER_MAP)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.sheet_name)
        _format_sheet(writer.book[layout.sheet_name])
        _summary_frame(stats).to_excel(
            writer, index=False, sheet_name=layout.summary_sheet_name
        )
        summary = writer.book[layout.summary_sheet_name]
        _style_header_row(summary)
        summary.column_dimensions["A"].width = 28
        summary.column_dimensions["B"].width = 14


def _style_header_row(ws: Any) -> None:
    """Aplica fuente negrita, alineación y borde a la fila de cabecera."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    header_font = Font(bold=True)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = center
        cell.border = border


def _style_body_rows(ws: Any) -> None:
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center")
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = center
            cell.border = border


def _get_header_col_index(ws: Any) -> dict[str, int]:
    """Devuelve mapa nombre de cabecera -> índice de columna (1-based)."""
    headers = [str(cell.value) for cell in ws[1]]
    return {name: idx + 1 for idx, name in enumerate(headers)}


def _apply_column_widths(ws: Any, col_index: dict[str, int]) -> None:
    """Establece anchos de columna para evitar ###."""
    for header, idx in col_index.items():
        if header == "Día":
            width = 6
        elif header == "Fecha":
            width = 12
        else:
            width = 11
        letter = ws.cell(row=1, column=idx).column_letter
        ws.column_dimensions[letter].width = width


def _apply_number_formats(ws: Any, col_index: dict[str, int]) -> None:
    """Aplica formatos numéricos por cabecera."""
    for row in ws.iter_rows(min_row=2):
        for header, idx in col_index.items():
            if header == "Día":
                continue
            fmt = "dd/mm/yyyy" if header == "Fecha" else "0.0"
            if header == "IMC":
                fmt = "0.00"
            row[idx - 1].number_format = fmt


def _format_sheet(ws: Any) -> None:
    """Apply borders, widths and number formats to a worksheet.

    Args:
        ws: openpyxl worksheet.
    """
    _style_header_row(ws)
    _style_body_rows(ws)
    col_index = _get_header_col_index(ws)
    _apply_column_widths(ws, col_index)
    _apply_number_formats(ws, col_index)
