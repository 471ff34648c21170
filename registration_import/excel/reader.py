from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any

import numpy as np
import pandas as pd

from ..models.row_data import SpreadsheetRow

"""Spreadsheet decoder.

The first worksheet of the upload holds a header row (row 1 by default)
followed by data rows. Each non-blank data row becomes a SpreadsheetRow keyed
by header text. Anything pandas cannot open is a DecodeError, which is fatal
to the whole import.
"""

__all__ = [
    "DecodeError",
    "SheetData",
    "decode_base64_payload",
    "read_workbook",
    "missing_headers",
]


class DecodeError(Exception):
    """Raised when the upload cannot be decoded into worksheet rows."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[SpreadsheetRow] = field(default_factory=list)


def decode_base64_payload(text: str | None) -> bytes:
    """Decode the base64 text of an uploaded file."""
    if not text or not text.strip():
        raise DecodeError("empty payload")
    cleaned = "".join(text.split())
    # data URLs from browser FileReader: "data:...;base64,<payload>"
    if cleaned.startswith("data:") and "," in cleaned:
        cleaned = cleaned.split(",", 1)[1]
    # unpadded and URL-safe alphabets are accepted; any other character is not
    padded = cleaned + "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"invalid base64 payload: {e}") from e


def _header_names(header_values: list[Any]) -> list[str | None]:
    """Header texts, stripped. Blank headers -> None, repeats get _1, _2 suffixes."""
    names: list[str | None] = []
    seen: dict[str, int] = {}
    for raw in header_values:
        if raw is None or (isinstance(raw, float) and np.isnan(raw)):
            names.append(None)
            continue
        name = str(raw).strip()
        if not name:
            names.append(None)
            continue
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


def _cell_value(val: Any) -> Any:
    if pd.isna(val):
        return None
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    if isinstance(val, np.generic):
        return val.item()
    return val


def read_workbook(payload: bytes, header_row: int = 0) -> SheetData:
    """Read the first worksheet of an xlsx/xls/ods payload.

    Parameters
    ----------
    payload: raw file bytes
    header_row: 0-based worksheet row holding the column titles
    """
    if not payload:
        raise DecodeError("empty payload")
    try:
        xls = pd.ExcelFile(BytesIO(payload))
        if not xls.sheet_names:
            raise DecodeError("workbook has no worksheets")
        sheet_name = str(xls.sheet_names[0])
        # only blank cells become NaN; literal "NA"/"None" answers stay text
        df = xls.parse(
            xls.sheet_names[0], header=None, keep_default_na=False, na_values=[""]
        )
    except DecodeError:
        raise
    except Exception as e:
        raise DecodeError(f"cannot read spreadsheet: {e}") from e

    if df.shape[0] <= header_row:
        return SheetData(sheet_name=sheet_name, columns=[], rows=[])

    names = _header_names(df.iloc[header_row].tolist())
    rows: list[SpreadsheetRow] = []
    for idx in range(header_row + 1, df.shape[0]):
        raw = df.iloc[idx]
        # blank rows are not submissions
        if raw.isna().all():
            continue
        values: dict[str, Any] = {}
        for name, val in zip(names, raw.tolist(), strict=False):
            if name is None:
                continue
            value = _cell_value(val)
            if isinstance(value, str) and not value.strip():
                value = None
            values[name] = value
        if all(v is None for v in values.values()):
            continue
        rows.append(SpreadsheetRow(row_number=idx + 1, values=values))

    return SheetData(
        sheet_name=sheet_name,
        columns=[n for n in names if n is not None],
        rows=rows,
    )


def missing_headers(sheet: SheetData, expected: set[str]) -> list[str]:
    """Expected header texts absent from the worksheet, sorted."""
    return sorted(expected - set(sheet.columns))
