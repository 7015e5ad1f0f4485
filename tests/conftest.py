import io
import json
import sqlite3
import zipfile

import pytest

BASIC_MODEL_ID = 1342697561419
CLOZE_MODEL_ID = 1342697561420
UNKNOWN_MODEL_ID = 999
DECK_ID = 1700000000000

MODELS = {
    str(BASIC_MODEL_ID): {
        "id": BASIC_MODEL_ID,
        "name": "Basic",
        "flds": [
            {"name": "Back", "ord": 1},
            {"name": "Front", "ord": 0},
        ],
    },
    str(CLOZE_MODEL_ID): {
        "id": CLOZE_MODEL_ID,
        "name": "Cloze",
        "flds": [
            {"name": "Text", "ord": 0},
            {"name": "Back Extra", "ord": 1},
            {"name": "Source", "ord": 2},
        ],
    },
}

# (note id, model id, fields)
NOTES = [
    (1600000000003, BASIC_MODEL_ID, ["chat", "cat"]),
    (1600000000001, BASIC_MODEL_ID, ["<img src='pic.jpg'>word[sound:say.mp3]", "meaning"]),
    (1600000000002, CLOZE_MODEL_ID, ["{{c1::Paris}} is in France", ""]),
    (1600000000004, UNKNOWN_MODEL_ID, ["a", "b", "c"]),
    (1600000000005, BASIC_MODEL_ID, ["un", "one", "extra"]),
    (1600000000006, BASIC_MODEL_ID, ["orphan", "no cards"]),
]

# (card id, note id, deck id)
CARDS = [
    (1, 1600000000001, DECK_ID),
    (2, 1600000000002, DECK_ID),
    (3, 1600000000002, DECK_ID + 1),
    (4, 1600000000003, DECK_ID),
    (5, 1600000000004, DECK_ID),
    (6, 1600000000005, DECK_ID),
]

NOTE_IDS_WITH_CARDS = [
    "1600000000001",
    "1600000000002",
    "1600000000003",
    "1600000000004",
    "1600000000005",
]


@pytest.fixture
def make_collection(tmp_path):
    """
    Returns a function building a collection database and returning its bytes.
    """

    counter = iter(range(1000))

    def _make_collection(
        notes=NOTES,
        cards=CARDS,
        models=MODELS,
        with_cards_table=True,
        notetype_tables=False,
    ):
        path = tmp_path / f"collection-{next(counter)}.sqlite"
        connection = sqlite3.connect(path)
        connection.execute("CREATE TABLE col (id INTEGER PRIMARY KEY, models TEXT)")
        if models is None:
            raw_models = ""
        elif isinstance(models, str):
            raw_models = models
        else:
            raw_models = json.dumps(models)
        connection.execute("INSERT INTO col VALUES (1, ?)", (raw_models,))

        connection.execute(
            "CREATE TABLE notes (id INTEGER PRIMARY KEY, mid INTEGER, flds TEXT)"
        )
        connection.executemany(
            "INSERT INTO notes VALUES (?, ?, ?)",
            [(nid, mid, "\x1f".join(fields)) for nid, mid, fields in notes],
        )

        if with_cards_table:
            connection.execute(
                "CREATE TABLE cards (id INTEGER PRIMARY KEY, nid INTEGER, did INTEGER)"
            )
            connection.executemany("INSERT INTO cards VALUES (?, ?, ?)", cards)

        if notetype_tables:
            connection.execute("CREATE TABLE notetypes (id INTEGER PRIMARY KEY, name TEXT)")
            connection.execute(
                "CREATE TABLE fields (ntid INTEGER, ord INTEGER, name TEXT)"
            )
            connection.execute(
                "INSERT INTO notetypes VALUES (?, ?)", (BASIC_MODEL_ID, "Basic (and reversed card)")
            )
            connection.executemany(
                "INSERT INTO fields VALUES (?, ?, ?)",
                [(BASIC_MODEL_ID, 1, "Back"), (BASIC_MODEL_ID, 0, "Front")],
            )

        connection.commit()
        connection.close()
        return path.read_bytes()

    return _make_collection


@pytest.fixture
def make_package():
    """
    Returns a function zipping a collection and media files into .apkg bytes.
    """

    def _make_package(
        collection=None,
        entry_name="collection.anki2",
        media_index=None,
        media_files=None,
        extra_entries=None,
    ):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            if collection is not None:
                archive.writestr(entry_name, collection)
            if media_index is not None:
                if isinstance(media_index, bytes):
                    archive.writestr("media", media_index)
                else:
                    archive.writestr("media", json.dumps(media_index))
            for name, data in (media_files or {}).items():
                archive.writestr(name, data)
            for name, data in (extra_entries or {}).items():
                archive.writestr(name, data)
        return buffer.getvalue()

    return _make_package


@pytest.fixture
def package(make_collection, make_package):
    return make_package(
        collection=make_collection(),
        media_index={"0": "pic.jpg", "1": "say.mp3", "2": "missing.png"},
        media_files={"0": b"\x89PNG fake image", "1": b"ID3 fake audio"},
    )
