"""
storage.py - persistence backends for the petty cash store

The tracker never writes anything itself; it is handed a save callback.
This module provides the two places that callback can write to:
 - Google Sheets (preferred, durable on Streamlit Cloud) when GOOGLE_SHEET_ID is set
 - a local JSON file (fallback), written atomically

Configuration (environment variables; app.py copies Streamlit secrets here):
 - PETTY_CASH_DATA_FILE: JSON file path (default data/petty_cash_data.json)
 - GOOGLE_SHEET_ID: spreadsheet key enabling the Google Sheets backend
 - GOOGLE_SERVICE_ACCOUNT_JSON / GOOGLE_SERVICE_ACCOUNT_FILE: credentials
"""

from typing import List, Dict, Optional, Tuple, Any
import ast
import json
import logging
import os
import shutil
import tempfile

from pettycash.errors import LoadError, PettyCashError
from pettycash.models import LedgerStore
from pettycash.tracker import PettyCashTracker

# Optional Google Sheets backend imports are lazy/optional; we try to use them
try:
    import gspread
    from google.oauth2.service_account import Credentials
except ImportError:
    gspread = None
    Credentials = None

logger = logging.getLogger(__name__)

# location of the JSON persistence file (relative to the project root)
DEFAULT_DATA_FILE = os.path.join(os.path.dirname(__file__), "..", "data", "petty_cash_data.json")


def data_file_path() -> str:
    return (os.getenv("PETTY_CASH_DATA_FILE") or "").strip() or DEFAULT_DATA_FILE


class JsonFileBackend:
    """Whole-store JSON file: {next_id, transactions, opening_balances, generated_ledgers}."""

    def __init__(self, path: Optional[str] = None):
        self.path = os.path.abspath(path or data_file_path())

    def load_state(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save_state(self, data: Dict[str, Any]):
        """
        Persist state as JSON atomically: write a temp file in the same
        directory, then move it over the target.
        """
        dirn = os.path.dirname(self.path)
        os.makedirs(dirn, exist_ok=True)
        logger.info("Saving petty cash data to %s (transactions=%d)", self.path, len(data.get("transactions", [])))
        fd, tmp_path = tempfile.mkstemp(prefix="tmp_petty_cash_", dir=dirn, text=True)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            shutil.move(tmp_path, self.path)
        except Exception:
            logger.exception("Failed to save data file")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class GoogleSheetsBackend:
    """
    Google Sheets persistence backend.

    Data layout:
      - worksheet "transactions": one row per live transaction
      - worksheet "ledgers": one row per archived ledger, its transactions as JSON
      - worksheet "meta": key/value metadata (next_id, opening_balances)
    """

    TRANSACTIONS_SHEET_NAME = "transactions"
    LEDGERS_SHEET_NAME = "ledgers"
    META_SHEET_NAME = "meta"
    TRANSACTION_HEADERS = ["id", "date", "description", "debit", "credit"]
    LEDGER_HEADERS = [
        "id",
        "month_key",
        "opening_balance",
        "closing_balance",
        "total_debit",
        "total_credit",
        "exported_at",
        "transactions_json",
    ]
    META_HEADERS = ["key", "value"]
    SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

    def __init__(self):
        self.available = False
        self.reason = ""
        self.sheet_id = (os.getenv("GOOGLE_SHEET_ID") or "").strip()
        self._spreadsheet = None
        self._worksheets = {}

        if not self.sheet_id:
            self.reason = "GOOGLE_SHEET_ID is not set"
            return
        if gspread is None or Credentials is None:
            self.reason = "Google Sheets dependencies are unavailable"
            return

        try:
            creds = self._build_credentials()
            client = gspread.authorize(creds)
            self._spreadsheet = client.open_by_key(self.sheet_id)
            for title, headers in self._layout():
                self._worksheets[title] = self._get_or_create_worksheet(title, rows=500, cols=max(8, len(headers)))
            self._ensure_headers()
            self.available = True
        except Exception as exc:
            self.available = False
            self.reason = f"Google Sheets init failed ({exc.__class__.__name__})"
            logger.warning("Google Sheets backend unavailable: %s", self.reason)

    def _layout(self) -> List[Tuple[str, List[str]]]:
        return [
            (self.TRANSACTIONS_SHEET_NAME, self.TRANSACTION_HEADERS),
            (self.LEDGERS_SHEET_NAME, self.LEDGER_HEADERS),
            (self.META_SHEET_NAME, self.META_HEADERS),
        ]

    def _build_credentials(self):
        service_account_json = (os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON") or "").strip()
        service_account_file = (os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE") or "").strip()

        if service_account_json:
            try:
                info = json.loads(service_account_json)
            except ValueError:
                # tolerate Python-dict style strings often used by mistake in env vars
                info = ast.literal_eval(service_account_json)
            if not isinstance(info, dict):
                raise ValueError("GOOGLE_SERVICE_ACCOUNT_JSON must decode to an object")
            return Credentials.from_service_account_info(info, scopes=self.SCOPES)

        if service_account_file:
            return Credentials.from_service_account_file(service_account_file, scopes=self.SCOPES)

        # Fallback to application default credentials if available.
        import google.auth
        creds, _ = google.auth.default(scopes=self.SCOPES)
        return creds

    def _get_or_create_worksheet(self, title: str, rows: int, cols: int):
        try:
            return self._spreadsheet.worksheet(title)
        except gspread.exceptions.WorksheetNotFound:
            return self._spreadsheet.add_worksheet(title=title, rows=rows, cols=cols)

    @staticmethod
    def _ensure_sheet_size(ws, min_rows: int, min_cols: int):
        new_rows = max(ws.row_count, min_rows)
        new_cols = max(ws.col_count, min_cols)
        if new_rows != ws.row_count or new_cols != ws.col_count:
            ws.resize(rows=new_rows, cols=new_cols)

    def _ensure_headers(self):
        # Keep headers explicit so the sheet stays readable by people.
        for title, headers in self._layout():
            ws = self._worksheets.get(title)
            if not ws:
                continue
            first = ws.row_values(1) or []
            if [x.strip() for x in first] != headers:
                self._ensure_sheet_size(ws, 2, len(headers))
                ws.update(range_name="A1", values=[headers], value_input_option="RAW")

    @staticmethod
    def _to_int(value: Any, default: int = 0) -> int:
        try:
            return int(float(str(value).strip()))
        except ValueError:
            return default

    @staticmethod
    def _to_float(value: Any, default: float = 0.0) -> float:
        try:
            return round(float(str(value).strip()), 2)
        except ValueError:
            return default

    @staticmethod
    def _parse_json_or_literal(value: Any):
        if isinstance(value, (list, dict)):
            return value
        text = str(value or "").strip()
        if not text:
            return None
        for parser in (json.loads, ast.literal_eval):
            try:
                return parser(text)
            except (ValueError, SyntaxError):
                continue
        return None

    @staticmethod
    def _records(ws) -> List[Dict[str, str]]:
        """Rows of a worksheet as header -> cell dicts, skipping blank rows."""
        values = ws.get_all_values() or []
        if not values:
            return []
        headers = [str(h).strip().lower() for h in values[0]]
        out = []
        for row in values[1:]:
            if not any(str(c).strip() for c in row):
                continue
            record = {}
            for idx, header in enumerate(headers):
                if header:
                    record[header] = row[idx] if idx < len(row) else ""
            out.append(record)
        return out

    def _write(self, title: str, rows: List[List[str]], ncols: int):
        ws = self._worksheets[title]
        self._ensure_sheet_size(ws, len(rows) + 10, ncols)
        # Use RAW to store user content as plain values (not spreadsheet formulas).
        ws.clear()
        ws.update(range_name="A1", values=rows, value_input_option="RAW")

    def save_state(self, data: Dict[str, Any]) -> bool:
        if not self.available:
            return False

        try:
            self._ensure_headers()
            transaction_rows = [self.TRANSACTION_HEADERS]
            for t in data.get("transactions", []) or []:
                transaction_rows.append(
                    [
                        str(self._to_int(t.get("id", 0))),
                        str(t.get("date", "") or ""),
                        str(t.get("description", "") or ""),
                        f"{self._to_float(t.get('debit', 0.0)):.2f}",
                        f"{self._to_float(t.get('credit', 0.0)):.2f}",
                    ]
                )

            ledger_rows = [self.LEDGER_HEADERS]
            for s in data.get("generated_ledgers", []) or []:
                ledger_rows.append(
                    [
                        str(s.get("id", "")),
                        str(s.get("month_key", "")),
                        f"{self._to_float(s.get('opening_balance', 0.0)):.2f}",
                        f"{self._to_float(s.get('closing_balance', 0.0)):.2f}",
                        f"{self._to_float(s.get('total_debit', 0.0)):.2f}",
                        f"{self._to_float(s.get('total_credit', 0.0)):.2f}",
                        str(s.get("exported_at", "") or ""),
                        json.dumps(s.get("transactions", []) or [], ensure_ascii=False),
                    ]
                )

            meta_rows = [
                self.META_HEADERS,
                ["next_id", str(self._to_int(data.get("next_id", 1), 1))],
                ["opening_balances", json.dumps(data.get("opening_balances", {}) or {}, ensure_ascii=False)],
            ]

            self._write(self.TRANSACTIONS_SHEET_NAME, transaction_rows, len(self.TRANSACTION_HEADERS))
            self._write(self.LEDGERS_SHEET_NAME, ledger_rows, len(self.LEDGER_HEADERS))
            self._write(self.META_SHEET_NAME, meta_rows, len(self.META_HEADERS))
            return True
        except Exception:
            logger.exception("Failed to save petty cash state to Google Sheets")
            return False

    def load_state(self) -> Dict[str, Any]:
        if not self.available:
            return {}

        try:
            self._ensure_headers()
            transactions = []
            for r in self._records(self._worksheets[self.TRANSACTIONS_SHEET_NAME]):
                transactions.append(
                    {
                        "id": self._to_int(r.get("id", 0)),
                        "date": str(r.get("date", "")).strip(),
                        "description": str(r.get("description", "")).strip(),
                        "debit": self._to_float(r.get("debit", 0.0)),
                        "credit": self._to_float(r.get("credit", 0.0)),
                    }
                )

            ledgers = []
            for r in self._records(self._worksheets[self.LEDGERS_SHEET_NAME]):
                ledgers.append(
                    {
                        "id": str(r.get("id", "")).strip(),
                        "month_key": str(r.get("month_key", "")).strip(),
                        "opening_balance": self._to_float(r.get("opening_balance", 0.0)),
                        "closing_balance": self._to_float(r.get("closing_balance", 0.0)),
                        "total_debit": self._to_float(r.get("total_debit", 0.0)),
                        "total_credit": self._to_float(r.get("total_credit", 0.0)),
                        "exported_at": str(r.get("exported_at", "")).strip(),
                        "transactions": self._parse_json_or_literal(r.get("transactions_json", "")) or [],
                    }
                )

            meta_map = {}
            for r in self._records(self._worksheets[self.META_SHEET_NAME]):
                key = str(r.get("key", "")).strip()
                if key:
                    meta_map[key] = str(r.get("value", "")).strip()
            opening_balances = self._parse_json_or_literal(meta_map.get("opening_balances", ""))

            return {
                "next_id": max(1, self._to_int(meta_map.get("next_id", ""), len(transactions) + 1)),
                "transactions": transactions,
                "opening_balances": opening_balances if isinstance(opening_balances, dict) else {},
                "generated_ledgers": ledgers,
            }
        except Exception:
            logger.exception("Failed to load petty cash state from Google Sheets")
            return {}


class StoreRepository:
    """
    Picks the backend (Google Sheets when configured, otherwise local JSON)
    and converts between LedgerStore and the persisted dict layout.
    """

    def __init__(self, json_backend: Optional[JsonFileBackend] = None, sheets_backend: Optional[GoogleSheetsBackend] = None):
        self._json = json_backend or JsonFileBackend()
        self._sheets = sheets_backend if sheets_backend is not None else GoogleSheetsBackend()

    def uses_google_sheets(self) -> bool:
        return bool(self._sheets and self._sheets.available)

    def status(self) -> Tuple[str, str]:
        """Current storage backend and a short diagnostic message for the UI."""
        if self.uses_google_sheets():
            return "google_sheets", "Persistent storage active (Google Sheets)."
        reason = getattr(self._sheets, "reason", "Google Sheets not configured")
        return "local_json", f"Using local file fallback: {reason}."

    def load(self) -> LedgerStore:
        """
        Read the store from the active backend. Unreadable or invalid data is
        reported as LoadError instead of being replaced with an empty store,
        so the next save cannot overwrite it.
        """
        data = None
        try:
            if self.uses_google_sheets():
                logger.info("Loading petty cash data from Google Sheets")
                data = self._sheets.load_state()
            if not data:
                data = self._json.load_state()
            return LedgerStore.from_dict(data)
        except (PettyCashError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.exception("Saved petty cash data is invalid")
            raise LoadError(f"Could not load saved petty cash data: {exc}") from exc

    def save(self, store: LedgerStore):
        data = store.to_dict()
        if self.uses_google_sheets():
            logger.info("Saving petty cash data to Google Sheets (transactions=%d)", len(store.transactions))
            if self._sheets.save_state(data):
                return
            logger.warning("Google Sheets save failed, falling back to local JSON")
        self._json.save_state(data)


def open_tracker(repository: Optional[StoreRepository] = None) -> Tuple[PettyCashTracker, StoreRepository]:
    """Load the persisted store and return a tracker that saves through the same repository."""
    repository = repository or StoreRepository()
    store = repository.load()
    return PettyCashTracker(store=store, save=repository.save), repository
