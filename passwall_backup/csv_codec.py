"""
CSV Codec: Login records to and from the ``URL,Username,Password`` format.

Columns are positional; the header row must be present but its labels
are not checked, so exports from other password managers with the same
column order import as-is.
"""
import io
import csv
from collections.abc import Iterable, Mapping
from typing import Any, IO, Union

from .exceptions import MalformedRecord
from .models import CredentialDTO

HEADER = ("URL", "Username", "Password")
COLUMNS = len(HEADER)

CsvSource = Union[bytes, str, IO[bytes], IO[str]]


def _field(record: Any, name: str) -> str:
    if isinstance(record, Mapping):
        return record.get(name) or ""
    return getattr(record, name, "") or ""


def encode(records: Iterable[Any]) -> bytes:
    """Encode records as UTF-8 CSV with the header row first.

    Args:
        records: CredentialDTOs (or mappings) with url/username/password.

    Returns:
        CSV bytes, one row per record in input order.
    """
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer)
    writer.writerow(HEADER)
    for record in records:
        writer.writerow(
            [_field(record, "url"), _field(record, "username"), _field(record, "password")]
        )
    return buffer.getvalue().encode("utf-8")


def _read_text(source: CsvSource) -> str:
    if hasattr(source, "read"):
        source = source.read()
    if isinstance(source, bytes):
        try:
            source = source.decode("utf-8-sig")
        except UnicodeDecodeError as err:
            raise MalformedRecord(1, "CSV content is not valid UTF-8") from err
    return source.lstrip("\ufeff")


def decode(source: CsvSource) -> list[CredentialDTO]:
    """Decode CSV content into transfer records.

    The first non-blank row is the header. Blank lines are skipped; empty trailing
    columns are ignored so rows such as ``,,,`` still count as three fields.

    Raises:
        MalformedRecord: If a row does not have exactly three columns, or
            the header is missing. ``row`` is 1-based and counts the header.
    """
    reader = csv.reader(io.StringIO(_read_text(source), newline=""))
    records: list[CredentialDTO] = []
    row_number = 0
    header_seen = False
    try:
        for row_number, row in enumerate(reader, start=1):
            if not row:
                continue
            if not header_seen:
                header_seen = True
                continue
            while len(row) > COLUMNS and row[-1] == "":
                row.pop()
            if len(row) != COLUMNS:
                raise MalformedRecord(
                    row_number,
                    f"malformed record at row {row_number}: expected "
                    f"{COLUMNS} fields, got {len(row)}",
                )
            url, username, password = row
            records.append(
                CredentialDTO(url=url, username=username, password=password)
            )
    except csv.Error as err:
        raise MalformedRecord(
            row_number + 1, f"malformed record at row {row_number + 1}: {err}"
        ) from err
    if not header_seen:
        raise MalformedRecord(1, "missing header row")
    return records
