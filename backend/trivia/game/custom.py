from __future__ import annotations

import csv
import io
import logging
from datetime import date

from .episodes import Episode
from .errors import CustomDataError
from .models import Clue


log = logging.getLogger(__name__)

BASE_VALUE = 200
ROUND_MULTIPLIER = {"jeopardy": 1, "double": 2, "final": 0}

# Column names accepted for each field, first match wins
_COLUMNS = {
    "round": ("round",),
    "category": ("category", "cat"),
    "question": ("question", "q"),
    "answer": ("answer", "a"),
    "daily_double": ("isDailyDouble", "dd"),
}


def _field(row: dict, name: str) -> str:
    for col in _COLUMNS[name]:
        v = row.get(col)
        if v is not None:
            return str(v).strip()
    return ""


def parse_custom_csv(text: str) -> Episode:
    """Build an episode from a user supplied CSV.

    Rows are grouped by contiguous ``(round, category)`` runs: a new round
    restarts at column 1, a new category moves one column right, and every
    further row in the run moves one row down. Values scale with the row and
    the round multiplier.
    """
    if not text or not text.strip():
        raise CustomDataError("empty custom data")

    try:
        reader = csv.DictReader(io.StringIO(text))
        header = reader.fieldnames or []
        rows = list(reader)
    except csv.Error as exc:
        raise CustomDataError(f"unreadable custom data: {exc}") from exc

    missing = [name for name, cols in _COLUMNS.items() if name != "daily_double" and not any(c in header for c in cols)]
    if missing:
        raise CustomDataError(f"missing columns: {', '.join(missing)}")

    rounds: dict[str, list[Clue]] = {name: [] for name in ROUND_MULTIPLIER}
    cur_round = None
    cur_cat = None
    x = 0
    y = 0
    for row in rows:
        rnd = _field(row, "round")
        cat = _field(row, "category")
        if rnd != cur_round:
            x, y = 1, 1
        elif cat != cur_cat:
            x, y = x + 1, 1
        else:
            y += 1
        cur_round, cur_cat = rnd, cat

        question = _field(row, "question")
        answer = _field(row, "answer")
        if rnd not in rounds or not question or not answer:
            continue
        rounds[rnd].append(
            Clue(
                value=y * BASE_VALUE * ROUND_MULTIPLIER[rnd],
                category=cat,
                question=question,
                answer=answer,
                daily_double=_field(row, "daily_double").lower() == "true",
                x=x,
                y=y,
            )
        )

    if not any(rounds.values()):
        raise CustomDataError("no usable rows in custom data")

    log.info(f"[CUSTOM] parsed {sum(len(c) for c in rounds.values())} clues")
    return Episode(
        ep_num="Custom",
        air_date=date.today().isoformat(),
        info=None,
        jeopardy=rounds["jeopardy"],
        double=rounds["double"],
        final=rounds["final"],
    )
