"""Aadhaar <-> email lookup backed by an Excel sheet.

The sheet is read once at startup into two dicts. Column headers are matched
case-insensitively against the usual spellings of "aadhaar" and "email".
"""
import logging
import os
import threading
from zipfile import BadZipFile

from flask import current_app
from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .validators import normalize_aadhaar, normalize_email

logger = logging.getLogger(__name__)

AADHAAR_HEADERS = {"aadhaarnumber", "aadharnumber", "aadhaar", "aadhar"}
EMAIL_HEADERS = {"email"}


class DuplicateRecord(Exception):
    pass


def _column_index(header_row, names):
    for idx, cell in enumerate(header_row):
        if str(cell or "").strip().lower() in names:
            return idx
    return None


class AadhaarRegistry:
    def __init__(self, path):
        self.path = path
        self._lock = threading.Lock()
        self._by_aadhaar = {}
        self._by_email = {}
        self.reload()

    def __len__(self):
        return len(self._by_aadhaar)

    def _read_rows(self):
        wb = load_workbook(self.path, read_only=True, data_only=True)
        try:
            ws = wb.worksheets[0]
            return [list(r) for r in ws.iter_rows(values_only=True)]
        finally:
            wb.close()

    def reload(self):
        by_aadhaar, by_email = {}, {}
        try:
            rows = self._read_rows()
        except (OSError, BadZipFile, InvalidFileException, IndexError) as e:
            logger.error("Failed to load Aadhaar sheet %s: %s", self.path, e)
            rows = []
        if rows:
            a_col = _column_index(rows[0], AADHAAR_HEADERS)
            e_col = _column_index(rows[0], EMAIL_HEADERS)
            if a_col is None or e_col is None:
                logger.error("Aadhaar sheet %s has no aadhaar/email header", self.path)
            else:
                for row in rows[1:]:
                    aadhaar = normalize_aadhaar(row[a_col] if a_col < len(row) else "")
                    email = normalize_email(row[e_col] if e_col < len(row) else "")
                    if aadhaar and email:
                        by_aadhaar[aadhaar] = email
                        by_email[email] = aadhaar
        with self._lock:
            self._by_aadhaar, self._by_email = by_aadhaar, by_email
        logger.info("Loaded %d Aadhaar records from %s", len(by_aadhaar), self.path)

    def email_for(self, aadhaar):
        return self._by_aadhaar.get(normalize_aadhaar(aadhaar))

    def aadhaar_for(self, email):
        return self._by_email.get(normalize_email(email))

    def is_valid_pair(self, aadhaar, email):
        found = self.email_for(aadhaar)
        return bool(found) and found == normalize_email(email)

    def add(self, aadhaar, email):
        """Append a row to the sheet and refresh the cache. Demo tooling only."""
        aadhaar = normalize_aadhaar(aadhaar)
        email = normalize_email(email)
        with self._lock:
            if os.path.exists(self.path):
                wb = load_workbook(self.path)
                ws = wb.worksheets[0]
            else:
                os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
                wb = Workbook()
                ws = wb.active
            rows = [list(r) for r in ws.iter_rows(values_only=True)]
            a_col = _column_index(rows[0], AADHAAR_HEADERS) if rows else None
            e_col = _column_index(rows[0], EMAIL_HEADERS) if rows else None
            if a_col is None or e_col is None:
                # empty (or headerless) sheet: start over with our own header
                if ws.max_row > 1 or any(c is not None for c in (rows[0] if rows else [])):
                    ws = wb.create_sheet("registry", 0)
                ws.append(["aadharNumber", "email"])
                a_col, e_col, rows = 0, 1, [["aadharNumber", "email"]]
            for row in rows[1:]:
                if normalize_aadhaar(row[a_col]) == aadhaar or normalize_email(row[e_col]) == email:
                    raise DuplicateRecord("Aadhaar or email already exists in the sheet.")
            new_row = [None] * max(len(rows[0]), a_col + 1, e_col + 1)
            new_row[a_col] = aadhaar
            new_row[e_col] = email
            ws.append(new_row)
            wb.save(self.path)
        self.reload()


EXTENSION_KEY = "votechain.aadhaar"


def init_registry(app, registry=None):
    app.extensions[EXTENSION_KEY] = registry or AadhaarRegistry(app.config["AADHAAR_XLSX_PATH"])


def get_registry():
    return current_app.extensions[EXTENSION_KEY]
