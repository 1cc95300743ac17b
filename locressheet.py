# -*- coding: utf-8 -*-
import codecs
from datetime import datetime, timezone

import chardet
import polib

from locres import TranslationRow

"""
Translation sheets for .locres documents.

CSV sheets hold one row per line as source→target→key. A separator inside a
field is escaped as ¶→ and the escape itself as ¶¶. Carriage returns and line
feeds are written as the two character sequences \\r and \\n so every row
stays on one line.

PO sheets carry the same rows as msgctxt (key), msgid (source) and msgstr
(target).
"""

CSV_SEPARATOR = '→'
CSV_ESCAPE = '¶'


def export_rows(document):
    """
    Build translation rows for every entry that has a value.

    Args:
        document (LocresDocument): Source document.

    Returns:
        list[TranslationRow]: Rows in document order with an empty target.
    """
    rows = []
    for composite_key, namespace, entry in document.iter_keyed_entries():
        if not entry.value:
            continue
        rows.append(TranslationRow(composite_key, entry.value, ''))
    return rows


# CSV -------------------------------------------------------------------------
def escape_csv_field(text):
    return (
        text
            .replace(CSV_ESCAPE, CSV_ESCAPE + CSV_ESCAPE)
            .replace(CSV_SEPARATOR, CSV_ESCAPE + CSV_SEPARATOR)
            .replace('\r', '\\r')
            .replace('\n', '\\n')
    )


def unescape_csv_field(text):
    return text.replace('\\r', '\r').replace('\\n', '\n')


def format_csv_line(row):
    return CSV_SEPARATOR.join([
        escape_csv_field(row.source),
        escape_csv_field(row.target),
        escape_csv_field(row.key),
    ])


def split_csv_line(line):
    """
    Split on unescaped separators.

    ¶¶ and ¶→ come back as ¶ and →, a lone ¶ is kept as text. Fields are still
    escaped for \\r and \\n.
    """
    fields = []
    current = []
    index = 0
    while index < len(line):
        ch = line[index]
        if ch == CSV_ESCAPE and index + 1 < len(line) and line[index + 1] in (CSV_ESCAPE, CSV_SEPARATOR):
            current.append(line[index + 1])
            index += 2
            continue
        if ch == CSV_SEPARATOR:
            fields.append(''.join(current))
            current = []
        else:
            current.append(ch)
        index += 1
    fields.append(''.join(current))
    return fields


def parse_csv_line(line):
    """
    Parse one sheet line into a TranslationRow.

    Returns:
        TranslationRow or None: None for lines with fewer than three fields.
    """
    fields = split_csv_line(line)
    if len(fields) < 3:
        return None
    source, target, key = (unescape_csv_field(field) for field in fields[:3])
    return TranslationRow(key, source, target)


def decode_sheet_bytes(raw_bytes):
    """
    Decode sheet text, honouring a BOM, preferring UTF-8 and falling back to
    chardet's guess for anything else.
    """
    if raw_bytes.startswith(codecs.BOM_UTF8):
        return raw_bytes[len(codecs.BOM_UTF8):].decode('utf-8')
    if raw_bytes.startswith(codecs.BOM_UTF16_LE) or raw_bytes.startswith(codecs.BOM_UTF16_BE):
        return raw_bytes.decode('utf-16')

    try:
        return raw_bytes.decode('utf-8')
    except UnicodeDecodeError:
        pass

    result = chardet.detect(raw_bytes)
    detected_encoding = result['encoding'] or 'utf-8'
    return raw_bytes.decode(detected_encoding, errors='replace')


def read_csv(csv_filename):
    """
    Read a translation sheet.

    Args:
        csv_filename (str): Path to the sheet.

    Returns:
        list[TranslationRow]: Parsed rows in file order.
    """
    with open(csv_filename, 'rb') as csvIn:
        text = decode_sheet_bytes(csvIn.read())

    rows = []
    for line in text.split('\n'):
        line = line.rstrip('\r')
        if not line:
            continue
        row = parse_csv_line(line)
        if row is not None:
            rows.append(row)
    return rows


def write_csv(csv_filename, rows):
    with open(csv_filename, 'w', encoding='utf-8', newline='\n') as csvOut:
        for row in rows:
            csvOut.write(format_csv_line(row) + '\n')


# PO --------------------------------------------------------------------------
def get_po_metadata(language=None):
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M+0000")

    metadata = {
        "PO-Revision-Date": now,
        "MIME-Version": "1.0",
        "Content-Type": "text/plain; charset=UTF-8",
        "Content-Transfer-Encoding": "8bit",
        "X-Generator": "locres-tools",
    }
    if language:
        metadata["Language"] = language
    return metadata


def write_po(po_filename, rows, language=None):
    """
    Write rows as a .po file with the composite key as msgctxt.

    Args:
        po_filename (str): Output path.
        rows (iterable[TranslationRow]): Rows to write.
        language (str): Optional value for the Language header.
    """
    po = polib.POFile()
    po.metadata = get_po_metadata(language)
    for row in rows:
        entry = polib.POEntry(
            msgctxt=row.key,
            msgid=row.source,
            msgstr=row.target
        )
        po.append(entry)
    po.save(po_filename)


def read_po(po_filename):
    """Read rows from a .po file, skipping obsolete and fuzzy entries and entries without msgctxt."""
    po = polib.pofile(po_filename)
    rows = []
    for entry in po:
        if entry.obsolete or 'fuzzy' in entry.flags or not entry.msgctxt:
            continue
        rows.append(TranslationRow(entry.msgctxt, entry.msgid, entry.msgstr))
    return rows
