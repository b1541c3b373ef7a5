"""
Streaming reader for staged product CSV files.

The header row is skipped and columns are taken by position in the order
name, description, price, stockQuantity. Rows that cannot be converted to
typed values are yielded as ParseFailure so the job can count them as skips.
"""

import csv
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterator

from services.batch.records import CSV_COLUMNS, RawRecord


@dataclass
class ParseFailure:
    line_number: int
    message: str


def _blank_to_none(value: str) -> str | None:
    cleaned = value.strip()
    return cleaned or None


def _parse_price(value: str) -> Decimal | None:
    cleaned = _blank_to_none(value)
    if cleaned is None:
        return None
    price = Decimal(cleaned)
    if not price.is_finite():
        raise InvalidOperation(cleaned)
    return price


def _parse_stock(value: str) -> int | None:
    cleaned = _blank_to_none(value)
    if cleaned is None:
        return None
    return int(cleaned)


def parse_row(fields: list[str], line_number: int) -> RawRecord | ParseFailure:
    if len(fields) != len(CSV_COLUMNS):
        return ParseFailure(
            line_number,
            f"Line {line_number}: expected {len(CSV_COLUMNS)} columns but found {len(fields)}",
        )

    name, description, price, stock = fields
    try:
        parsed_price = _parse_price(price)
    except InvalidOperation:
        return ParseFailure(line_number, f"Line {line_number}: price '{price.strip()}' is not a valid decimal")
    try:
        parsed_stock = _parse_stock(stock)
    except ValueError:
        return ParseFailure(
            line_number,
            f"Line {line_number}: stockQuantity '{stock.strip()}' is not a valid integer",
        )

    return RawRecord(
        line_number=line_number,
        name=_blank_to_none(name),
        description=_blank_to_none(description),
        price=parsed_price,
        stock_quantity=parsed_stock,
    )


def read_records(path: str | Path) -> Iterator[RawRecord | ParseFailure]:
    """Yield one item per non-blank data row. I/O and decoding errors propagate."""
    with open(path, newline="", encoding="utf-8-sig") as handle:
        reader = csv.reader(handle)
        header = next(reader, None)
        if header is None:
            return
        for fields in reader:
            if not any(field.strip() for field in fields):
                continue
            yield parse_row(fields, reader.line_num)
