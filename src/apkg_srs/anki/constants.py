"""Fixed values of the legacy (schema 11) Anki export format.

Defaults mirror a collection exported by Anki 25.02 with "Support older Anki
versions" enabled.
"""

from __future__ import annotations

import copy
from typing import Any

from .types import ExportVersion

EXPORT_VERSION = ExportVersion.LEGACY_V2
DB_VERSION = 11
VALID_FILE_EXTENSIONS = (".apkg", ".colpkg")

DATABASE_FILENAME = "collection.anki21"
META_FILENAME = "meta"
MEDIA_FILENAME = "media"
REQUIRED_ENTRIES = (META_FILENAME, MEDIA_FILENAME, DATABASE_FILENAME)
REQUIRED_TABLES = ("col", "notes", "cards", "revlog", "graves")

SQLITE_MAGIC = b"SQLite format 3\x00"
ZIP_LOCAL_FILE_HEADER = b"PK\x03\x04"

FIELD_SEPARATOR = "\x1f"
DEFAULT_DECK_ID = 1

ANKI_DB_SCHEMA = """
CREATE TABLE cards (
  id integer PRIMARY KEY,
  nid integer NOT NULL,
  did integer NOT NULL,
  ord integer NOT NULL,
  mod integer NOT NULL,
  usn integer NOT NULL,
  type integer NOT NULL,
  queue integer NOT NULL,
  due integer NOT NULL,
  ivl integer NOT NULL,
  factor integer NOT NULL,
  reps integer NOT NULL,
  lapses integer NOT NULL,
  left integer NOT NULL,
  odue integer NOT NULL,
  odid integer NOT NULL,
  flags integer NOT NULL,
  data text NOT NULL
);

CREATE TABLE col (
  id integer PRIMARY KEY,
  crt integer NOT NULL,
  mod integer NOT NULL,
  scm integer NOT NULL,
  ver integer NOT NULL,
  dty integer NOT NULL,
  usn integer NOT NULL,
  ls integer NOT NULL,
  conf text NOT NULL,
  models text NOT NULL,
  decks text NOT NULL,
  dconf text NOT NULL,
  tags text NOT NULL
);

CREATE TABLE graves (
  usn integer NOT NULL,
  oid integer NOT NULL,
  type integer NOT NULL
);

CREATE TABLE notes (
  id integer PRIMARY KEY,
  guid text NOT NULL,
  mid integer NOT NULL,
  mod integer NOT NULL,
  usn integer NOT NULL,
  tags text NOT NULL,
  flds text NOT NULL,
  -- integer affinity so numeric sort fields sort numerically
  sfld integer NOT NULL,
  csum integer NOT NULL,
  flags integer NOT NULL,
  data text NOT NULL
);

CREATE TABLE revlog (
  id integer PRIMARY KEY,
  cid integer NOT NULL,
  usn integer NOT NULL,
  ease integer NOT NULL,
  ivl integer NOT NULL,
  lastIvl integer NOT NULL,
  factor integer NOT NULL,
  time integer NOT NULL,
  type integer NOT NULL
);

CREATE INDEX ix_cards_nid ON cards (nid);
CREATE INDEX ix_cards_sched ON cards (did, queue, due);
CREATE INDEX ix_cards_usn ON cards (usn);
CREATE INDEX ix_notes_csum ON notes (csum);
CREATE INDEX ix_notes_usn ON notes (usn);
CREATE INDEX ix_revlog_cid ON revlog (cid);
CREATE INDEX ix_revlog_usn ON revlog (usn);
"""

DEFAULT_CSS = (
    ".card {\n    font-family: arial;\n    font-size: 20px;\n    text-align: center;\n"
    "    color: black;\n    background-color: white;\n}\n"
)
CLOZE_CSS = (
    DEFAULT_CSS
    + ".cloze {\n    font-weight: bold;\n    color: blue;\n}\n"
    ".nightMode .cloze {\n    color: lightblue;\n}\n"
)
LATEX_PRE = (
    "\\documentclass[12pt]{article}\n\\special{papersize=3in,5in}\n"
    "\\usepackage[utf8]{inputenc}\n\\usepackage{amssymb,amsmath}\n"
    "\\pagestyle{empty}\n\\setlength{\\parindent}{0in}\n\\begin{document}\n"
)
LATEX_POST = "\\end{document}"

_DEFAULT_CONFIG: dict[str, Any] = {
    "activeDecks": [1],
    "addToCur": True,
    "collapseTime": 1200,
    "creationOffset": -120,
    "curDeck": 1,
    "curModel": 1731670964298,
    "dayLearnFirst": False,
    "dueCounts": True,
    "estTimes": True,
    "newSpread": 0,
    "nextPos": 1,
    "sched2021": True,
    "schedVer": 2,
    "sortBackwards": False,
    "sortType": "noteFld",
    "timeLim": 0,
}

_DEFAULT_DECK: dict[str, Any] = {
    "id": 1,
    "mod": 0,
    "name": "Default",
    "usn": 0,
    "lrnToday": [0, 0],
    "revToday": [0, 0],
    "newToday": [0, 0],
    "timeToday": [0, 0],
    "collapsed": True,
    "browserCollapsed": True,
    "desc": "",
    "dyn": 0,
    "conf": 1,
    "extendNew": 0,
    "extendRev": 0,
    "reviewLimit": None,
    "newLimit": None,
    "reviewLimitToday": None,
    "newLimitToday": None,
}

_DEFAULT_DECK_CONFIG: dict[str, Any] = {
    "id": 1,
    "mod": 0,
    "name": "Default",
    "usn": 0,
    "maxTaken": 60,
    "autoplay": True,
    "timer": 0,
    "replayq": True,
    "new": {
        "bury": False,
        "delays": [1.0, 10.0],
        "initialFactor": 2500,
        "ints": [1, 4, 0],
        "order": 1,
        "perDay": 20,
    },
    "rev": {
        "bury": False,
        "ease4": 1.3,
        "ivlFct": 1.0,
        "maxIvl": 36500,
        "perDay": 200,
        "hardFactor": 1.2,
    },
    "lapse": {
        "delays": [10.0],
        "leechAction": 1,
        "leechFails": 8,
        "minInt": 1,
        "mult": 0.0,
    },
    "dyn": False,
    "newMix": 0,
    "newPerDayMinimum": 0,
    "interdayLearningMix": 0,
    "reviewOrder": 0,
    "newSortOrder": 0,
    "newGatherPriority": 0,
    "buryInterdayLearning": False,
    "fsrsWeights": [],
    "desiredRetention": 0.9,
    "ignoreRevlogsBeforeDate": "",
    "stopTimerOnAnswer": False,
    "secondsToShowQuestion": 0.0,
    "secondsToShowAnswer": 0.0,
    "questionAction": 0,
    "answerAction": 0,
    "waitForAudio": True,
    "sm2Retention": 0.9,
    "weightSearch": "",
}


def _field(name: str, ord: int, field_id: int, **overrides: Any) -> dict[str, Any]:
    data = {
        "name": name,
        "ord": ord,
        "sticky": False,
        "rtl": False,
        "font": "Arial",
        "size": 20,
        "description": "",
        "plainText": False,
        "collapsed": False,
        "excludeFromSearch": False,
        "id": field_id,
        "tag": None,
        "preventDeletion": False,
    }
    data.update(overrides)
    return data


def _template(name: str, ord: int, qfmt: str, afmt: str, template_id: int) -> dict[str, Any]:
    return {
        "name": name,
        "ord": ord,
        "qfmt": qfmt,
        "afmt": afmt,
        "bqfmt": "",
        "bafmt": "",
        "did": None,
        "bfont": "",
        "bsize": 0,
        "id": template_id,
    }


def _note_type(
    note_type_id: int,
    name: str,
    kind: int,
    tmpls: list[dict[str, Any]],
    flds: list[dict[str, Any]],
    css: str,
    req: list[Any],
    stock_kind: int,
) -> dict[str, Any]:
    return {
        "id": note_type_id,
        "name": name,
        "type": kind,
        "mod": 0,
        "usn": 0,
        "sortf": 0,
        "did": None,
        "tmpls": tmpls,
        "flds": flds,
        "css": css,
        "latexPre": LATEX_PRE,
        "latexPost": LATEX_POST,
        "latexsvg": False,
        "req": req,
        "originalStockKind": stock_kind,
    }


_BASIC_MODEL = _note_type(
    1731833410648,
    "Basic (srs-converter)",
    0,
    [
        _template(
            "Card 1", 0, "{{Front}}", "{{FrontSide}}\n\n<hr id=answer>\n\n{{Back}}",
            -3090804417856969834,
        )
    ],
    [
        _field("Front", 0, 4126305917107322091),
        _field("Back", 1, 7677420072643128799),
    ],
    DEFAULT_CSS,
    [[0, "any", [0]]],
    1,
)


_CLOZE_MODEL = _note_type(
    1731833410652,
    "Cloze (srs-converter)",
    1,
    [
        _template(
            "Cloze", 0, "{{cloze:Text}}", "{{cloze:Text}}<br>\n{{Back Extra}}",
            -7112645992377779654,
        )
    ],
    [
        _field("Text", 0, -380300107773965324, tag=0, preventDeletion=True),
        _field("Back Extra", 1, 924694171596040379, tag=1),
    ],
    CLOZE_CSS,
    [[0, "any", [0]]],
    5,
)


def default_config() -> dict[str, Any]:
    return copy.deepcopy(_DEFAULT_CONFIG)


def default_deck() -> dict[str, Any]:
    return copy.deepcopy(_DEFAULT_DECK)


def default_deck_config() -> dict[str, Any]:
    return copy.deepcopy(_DEFAULT_DECK_CONFIG)


def basic_model() -> dict[str, Any]:
    return copy.deepcopy(_BASIC_MODEL)



def cloze_model() -> dict[str, Any]:
    return copy.deepcopy(_CLOZE_MODEL)


def default_collection_row() -> dict[str, Any]:
    """Raw ``col`` row of a fresh collection, JSON columns already decoded."""
    return {
        "id": 1,
        "crt": 1681178400,
        "mod": 1731670964300,
        "scm": 1731670964297,
        "ver": DB_VERSION,
        "dty": 0,
        "usn": 0,
        "ls": 0,
        "conf": default_config(),
        "models": {},
        "decks": {"1": default_deck()},
        "dconf": {"1": default_deck_config()},
        "tags": {},
    }
