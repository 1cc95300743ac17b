import codecs

import polib
import pytest

import locressheet
from locres import LocresDocument, TranslationRow
from locressheet import (
    export_rows,
    format_csv_line,
    parse_csv_line,
    read_csv,
    read_po,
    split_csv_line,
    write_csv,
    write_po,
)


def make_document():
    document = LocresDocument()
    ui = document.add_namespace("UI")
    ui.add("OK", "Yes")
    ui.add("Unused", "")
    ui.add("Multi", "Line one\nLine two")
    document.add_namespace("").add("Title", "A → B")
    return document


def test_export_rows_skips_empty_values():
    assert export_rows(make_document()) == [
        TranslationRow("UI/OK", "Yes", ""),
        TranslationRow("UI/Multi", "Line one\nLine two", ""),
        TranslationRow("Title", "A → B", ""),
    ]


def test_format_csv_line_escapes_separator_and_newlines():
    row = TranslationRow("UI/Multi", "A → B\r\nC", "")
    assert format_csv_line(row) == "A ¶→ B\\r\\nC→→UI/Multi"


@pytest.mark.parametrize("row", [
    TranslationRow("UI/OK", "Yes", "Oui"),
    TranslationRow("Title", "A → B", "A → B → C"),
    TranslationRow("UI/Multi", "Line one\nLine two", "Ligne un\r\nLigne deux"),
    TranslationRow("UI/Empty", "Source", ""),
    TranslationRow("UI/P", "Para¶", "Abs¶"),
    TranslationRow("UI/Mark", "¶¶ twice", "¶→ escaped"),
    TranslationRow("Sign¶", "¶", "→¶"),
])
def test_csv_line_round_trip(row):
    assert parse_csv_line(format_csv_line(row)) == row


def test_split_keeps_trailing_escape_as_text():
    assert split_csv_line("a→b→key¶") == ["a", "b", "key¶"]


def test_parse_skips_short_lines():
    assert parse_csv_line("only→two") is None
    assert parse_csv_line("") is None


def test_write_and_read_csv(tmp_path):
    path = tmp_path / "Game.csv"
    rows = [
        TranslationRow("UI/OK", "Yes", "Oui"),
        TranslationRow("Title", "A → B", ""),
    ]

    write_csv(str(path), rows)

    assert path.read_text(encoding="utf-8") == "Yes→Oui→UI/OK\nA ¶→ B→→Title\n"
    assert read_csv(str(path)) == rows


def test_read_csv_with_utf8_bom_and_crlf(tmp_path):
    path = tmp_path / "Game.csv"
    path.write_bytes(codecs.BOM_UTF8 + "Yes→Oui→UI/OK\r\nbroken line\r\n".encode("utf-8"))

    assert read_csv(str(path)) == [TranslationRow("UI/OK", "Yes", "Oui")]


def test_read_csv_utf16(tmp_path):
    path = tmp_path / "Game.csv"
    path.write_bytes("Yes→예→UI/OK\n".encode("utf-16"))

    assert read_csv(str(path)) == [TranslationRow("UI/OK", "Yes", "예")]


def test_read_csv_falls_back_to_detected_encoding(tmp_path, monkeypatch):
    path = tmp_path / "Game.csv"
    path.write_bytes("是→你好→UI/OK\n".encode("gbk"))
    monkeypatch.setattr(locressheet.chardet, "detect", lambda raw: {"encoding": "GB2312", "confidence": 0.99})

    assert read_csv(str(path)) == [TranslationRow("UI/OK", "是", "你好")]


def test_write_and_read_po(tmp_path):
    path = tmp_path / "Game.po"
    rows = [
        TranslationRow("UI/OK", "Yes", "Oui"),
        TranslationRow("UI/Multi", "Line one\nLine two", ""),
    ]

    write_po(str(path), rows, language="fr")

    po = polib.pofile(str(path))
    assert po.metadata["Language"] == "fr"
    assert [entry.msgctxt for entry in po] == ["UI/OK", "UI/Multi"]
    assert read_po(str(path)) == rows


def test_read_po_skips_fuzzy_obsolete_and_contextless_entries(tmp_path):
    path = tmp_path / "Game.po"
    po = polib.POFile()
    po.append(polib.POEntry(msgctxt="UI/OK", msgid="Yes", msgstr="Oui"))
    po.append(polib.POEntry(msgctxt="UI/Cancel", msgid="No", msgstr="Non", flags=["fuzzy"]))
    po.append(polib.POEntry(msgctxt="UI/Old", msgid="Old", msgstr="Vieux", obsolete=True))
    po.append(polib.POEntry(msgid="Free", msgstr="Libre"))
    po.save(str(path))

    assert read_po(str(path)) == [TranslationRow("UI/OK", "Yes", "Oui")]


def test_escape_marker_in_text_is_doubled():
    row = TranslationRow("UI/P", "Para¶", "Abs¶")

    assert format_csv_line(row) == "Para¶¶→Abs¶¶→UI/P"
    assert split_csv_line("Para¶¶→Abs¶¶→UI/P") == ["Para¶", "Abs¶", "UI/P"]


def test_split_keeps_lone_escape_as_text():
    assert split_csv_line("a¶b→c→key") == ["a¶b", "c", "key"]
