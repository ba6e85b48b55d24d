from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from vitrine.batch.sku import normalize_sku

SHEET_NOTE_PREFIX = "[Planilha]:"
NOTE_KEYS = (
    "observacoes_roupa",
    "clothing_notes",
    "obs_roupa",
    "observações",
    "observacao",
    "notas",
    "detalhes",
)

Row = Dict[str, str]


def build_metadata_map(rows: Sequence[Sequence[Any]]) -> Dict[str, Row]:
    """
    rows[0] is the header; the first column of every other row is the SKU.
    Only cells under a non-empty header and with a value are kept (as trimmed text).
    """
    if not rows or len(rows) < 2:
        return {}

    headers = [str(h).strip() if h is not None else "" for h in rows[0]]
    out: Dict[str, Row] = {}
    for raw in rows[1:]:
        if not raw:
            continue
        sku = normalize_sku(raw[0])
        if not sku:
            continue
        row: Row = {}
        for idx, header in enumerate(headers):
            if not header or idx >= len(raw):
                continue
            cell = raw[idx]
            if cell is None:
                continue
            row[header] = str(cell).strip()
        out[sku] = row
    return out


def find_value(metadata: Optional[Dict[str, Any]], keys: Iterable[str]) -> Optional[str]:
    """Case-insensitive lookup: the first candidate key present with a non-empty value wins."""
    if not metadata:
        return None
    lowered = {str(k).lower(): k for k in metadata}
    for key in keys:
        real = lowered.get(key.lower())
        if real is None:
            continue
        value = metadata[real]
        if value not in (None, ""):
            return str(value)
    return None


def merge_spreadsheet_notes(notes: Optional[str], row: Optional[Dict[str, Any]]) -> str:
    """Keeps manual note lines and replaces the '[Planilha]:' line with the row's note."""
    manual: List[str] = [
        line for line in (notes or "").split("\n") if not line.strip().startswith(SHEET_NOTE_PREFIX)
    ]
    manual_text = "\n".join(manual).strip()

    sheet_note = find_value(row, NOTE_KEYS)
    if sheet_note:
        line = f"{SHEET_NOTE_PREFIX} {sheet_note}"
        return f"{manual_text}\n{line}" if manual_text else line
    return manual_text
