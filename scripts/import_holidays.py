from __future__ import annotations

import argparse
import json
import logging
import re
from datetime import date
from pathlib import Path

from pointage import crud
from pointage.config import settings
from pointage.db import session_scope

logger = logging.getLogger("pointage.import_holidays")

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def load_json(path: Path) -> dict | list:
    return json.loads(path.read_text(encoding="utf-8"))


def extract_holidays(payload: dict | list) -> dict[str, str]:
    """
    Accepted shapes:
      {"holidays": {"2025-01-01": "Jour de l'an", ...}}
      {"2025-01-01": "Jour de l'an", ...}
      [{"date": "2025-01-01", "localName": "Jour de l'an"}, ...]   (public holiday feeds)
    """
    if isinstance(payload, list):
        return {
            str(item["date"]): str(item.get("localName") or item.get("name") or "")
            for item in payload
            if isinstance(item, dict) and DATE_PATTERN.match(str(item.get("date", "")))
        }
    holidays = payload.get("holidays")
    if isinstance(holidays, dict):
        return {str(k): str(v) for k, v in holidays.items()}
    if all(isinstance(key, str) and DATE_PATTERN.match(key) for key in payload.keys()):
        return {key: str(value) for key, value in payload.items()}
    return {}


def load_holidays(paths: list[Path]) -> dict[str, str]:
    merged: dict[str, str] = {}
    for path in paths:
        merged.update(extract_holidays(load_json(path)))
    return merged


def find_holiday_files(holidays_dir: Path | None, holidays_file: Path | None) -> list[Path]:
    paths: list[Path] = []
    if holidays_file:
        paths.append(holidays_file)
    if holidays_dir:
        paths.extend(sorted(holidays_dir.glob("holidays-*.json")))
    return list(dict.fromkeys(paths))


def import_holidays(holidays: dict[str, str], country: str) -> int:
    with session_scope() as db:
        for day_str, label in sorted(holidays.items()):
            crud.upsert_holiday(db, day=date.fromisoformat(day_str), label=label or day_str, country=country)
    return len(holidays)


def main() -> None:
    logging.basicConfig(level=settings.log_level)

    parser = argparse.ArgumentParser(description="Import public holidays from JSON files.")
    parser.add_argument("--holidays-file", type=Path)
    parser.add_argument("--holidays-dir", type=Path)
    parser.add_argument("--country", default=settings.holiday_country)
    args = parser.parse_args()

    if not args.holidays_file and not args.holidays_dir:
        raise SystemExit("Provide --holidays-file or --holidays-dir")

    paths = find_holiday_files(args.holidays_dir, args.holidays_file)
    count = import_holidays(load_holidays(paths), args.country)
    logger.info("imported %d public holidays for %s from %d file(s)", count, args.country, len(paths))


if __name__ == "__main__":
    main()
