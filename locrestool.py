# -*- coding: utf-8 -*-
import argparse
import sys
import os
import inspect

from locres import (
    LocresError,
    StringTable,
    parse_version,
    read_locres_file,
    write_locres_file,
)
from locressheet import export_rows, read_csv, write_csv, read_po, write_po

"""
Command line front end for .locres files.

    locrestool.py export_csv Game.locres
    locrestool.py import_csv Game.locres Game.csv Game_translated.locres
    locrestool.py convert_locres Game.locres Optimized_CityHash64_UTF16
"""
# List to hold information about callable functions
callable_functions = []


def mainFunction(func):
    """Decorator to mark functions as callable and add them to the list."""
    callable_functions.append(func)
    return func


def print_docstrings():
    print("Docstrings for callable functions:")
    for func in callable_functions:
        print("\nFunction: {}".format(func.__name__))
        docstring = inspect.getdoc(func)
        if docstring:
            encoding = sys.stdout.encoding or 'utf-8'
            encoded_docstring = docstring.encode(encoding, errors='replace').decode(encoding)
            print(encoded_docstring)
        else:
            print("No docstring available.")


def print_usage(func):
    params = []
    for name, param in inspect.signature(func).parameters.items():
        if param.default is inspect.Parameter.empty:
            params.append("<{}>".format(name))
        else:
            params.append("[{}]".format(name))
    print("Usage: {} {}".format(func.__name__, " ".join(params)))


def run_function(func, func_args):
    """Call a command with string arguments. Returns the process exit code."""
    try:
        inspect.signature(func).bind(*func_args)
    except TypeError:
        print_usage(func)
        return 2

    try:
        func(*func_args)
    except (LocresError, OSError) as error:
        print("[{}]: Error: {}".format(func.__name__, error))
        return 1
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Export, import and convert Unreal Engine .locres files.")
    parser.add_argument("--help-functions", action="store_true", help="Print available functions and their docstrings.")
    parser.add_argument("--list-functions", action="store_true", help="List available functions without docstrings.")
    parser.add_argument("--usage", action="store_true", help="Display usage information.")
    parser.add_argument("function", nargs="?", help="The name of the function to execute.")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the function.")

    args = parser.parse_args(argv)

    if args.usage:
        print("Usage: locrestool.py function [args [args ...]]")
        print("       locrestool.py --help-functions, or help")
        print("       locrestool.py --list-functions, or list")
    elif args.help_functions or args.function == "help":
        print_docstrings()
    elif args.list_functions or args.function == "list":
        print("Available functions:")
        for func in callable_functions:
            print(func.__name__)
    elif args.function:
        function_name = args.function
        for func in callable_functions:
            if func.__name__ == function_name:
                return run_function(func, args.args)
        print("Unknown function: {}".format(function_name))
        return 2
    else:
        print("No command provided.")
    return 0


def generate_output_filename(input_filename, name_text=None, file_extension=None, output_folder=None):
    """
    Derive an output path from an input path.

    Example:
        generate_output_filename("Content/Game.locres", "translated", "locres")
        -> "Content/Game_translated.locres"
    """
    folder, basename = os.path.split(input_filename)
    stem, _ = os.path.splitext(basename)

    parts = [stem]
    if name_text:
        parts.append(name_text.strip().lower().replace(' ', '_').strip('_'))
    base_name = "_".join(filter(None, parts))

    if file_extension:
        extension = file_extension if file_extension.startswith('.') else f".{file_extension}"
    else:
        extension = ".txt"

    if output_folder:
        os.makedirs(output_folder, exist_ok=True)
        folder = output_folder
    return os.path.join(folder, f"{base_name}{extension}")


def format_percent(count, total):
    if not total:
        return "0.00%"
    return f"{count / total:.2%}"


def print_import_summary(function_name, input_filename, rows, summary):
    print(f"[{function_name}]: Loaded translations from {input_filename}")
    print(f"[{function_name}]: Found {len(rows)} data rows")
    print(f"[{function_name}]: Imported {summary['added']} new unique translations")
    if summary['total']:
        print(f"[{function_name}]: Replaced {summary['replaced']} of {summary['total']} "
              f"({format_percent(summary['replaced'], summary['total'])}) original translations")

    unused = summary['unused']
    if unused:
        print(f"[{function_name}]: WARNING: {len(unused)} translations are not used. "
              f"Please check translation namespaces/keys.")
        for key in unused:
            print(f"  {key}")


# Conversion ------------------------------------------------------------------
@mainFunction
def export_csv(locres_file, csv_file=None):
    """
    Export every localized string of a .locres file to a translation sheet.

    Each line is source→target→key, where key is Namespace/Key (or just Key
    for the empty namespace) and target is left empty for the translator.
    Entries with an empty value are skipped.

    Args:
        locres_file (str): Input .locres file.
        csv_file (str): Output sheet, defaults to <locres name>.csv.
    """
    document = read_locres_file(locres_file)
    rows = export_rows(document)
    if not csv_file:
        csv_file = generate_output_filename(locres_file, file_extension="csv")

    write_csv(csv_file, rows)
    print(f"[export_csv]: Exported {len(rows)} strings to {csv_file}")


@mainFunction
def import_csv(locres_file, csv_file, output_file=None, version=None):
    """
    Apply the target column of a translation sheet to a .locres file.

    Existing entries are replaced by key (case-insensitive). Keys that do not
    exist yet are added to their namespace. The result is written in the
    layout of the input file unless a version is given.

    Args:
        locres_file (str): Input .locres file.
        csv_file (str): Translation sheet.
        output_file (str): Output .locres, defaults to <locres name>_translated.locres.
        version (str): Legacy, Compact, Optimized or Optimized_CityHash64_UTF16 (or 0-3).
    """
    document = read_locres_file(locres_file)
    rows = read_csv(csv_file)
    summary = document.apply_translations(rows)
    print_import_summary("import_csv", csv_file, rows, summary)

    if not output_file:
        output_file = generate_output_filename(locres_file, "translated", "locres")
    target_version = parse_version(version) if version else document.version
    write_locres_file(output_file, document, target_version)
    print(f"[import_csv]: Wrote {target_version.name} file {output_file}")


@mainFunction
def export_po(locres_file, po_file=None, language=None):
    """
    Export every localized string of a .locres file to a .po file.

    msgctxt holds the Namespace/Key, msgid the current text and msgstr is
    left empty.

    Args:
        locres_file (str): Input .locres file.
        po_file (str): Output .po, defaults to <locres name>.po.
        language (str): Optional Language header, e.g. "ko".
    """
    document = read_locres_file(locres_file)
    rows = export_rows(document)
    if not po_file:
        po_file = generate_output_filename(locres_file, file_extension="po")

    write_po(po_file, rows, language)
    print(f"[export_po]: Exported {len(rows)} strings to {po_file}")


@mainFunction
def import_po(locres_file, po_file, output_file=None, version=None):
    """
    Apply the msgstr values of a .po file to a .locres file.

    Works like import_csv. Fuzzy and obsolete entries are ignored.
    """
    document = read_locres_file(locres_file)
    rows = read_po(po_file)
    summary = document.apply_translations(rows)
    print_import_summary("import_po", po_file, rows, summary)

    if not output_file:
        output_file = generate_output_filename(locres_file, "translated", "locres")
    target_version = parse_version(version) if version else document.version
    write_locres_file(output_file, document, target_version)
    print(f"[import_po]: Wrote {target_version.name} file {output_file}")


@mainFunction
def convert_locres(locres_file, version, output_file=None):
    """
    Rewrite a .locres file in another layout.

    Args:
        locres_file (str): Input .locres file.
        version (str): Legacy, Compact, Optimized or Optimized_CityHash64_UTF16 (or 0-3).
        output_file (str): Output .locres, defaults to <locres name>_<version>.locres.
    """
    target_version = parse_version(version)
    document = read_locres_file(locres_file)
    if not output_file:
        output_file = generate_output_filename(locres_file, target_version.name, "locres")

    write_locres_file(output_file, document, target_version)
    print(f"[convert_locres]: {document.version.name} -> {target_version.name}: {output_file}")


@mainFunction
def locres_info(locres_file):
    """Print the layout, namespaces and string counts of a .locres file."""
    document = read_locres_file(locres_file)
    string_table = StringTable.from_document(document)

    print(f"[locres_info]: {locres_file}")
    print(f"Version: {document.version.name} ({int(document.version)})")
    print(f"Namespaces: {len(document)}")
    print(f"Entries: {document.total_count}")
    print(f"Unique strings: {len(string_table)}")
    for namespace in document:
        name = namespace.name if namespace.name else "<empty>"
        print(f"  {name}: {len(namespace)}")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "--help-docstrings":
        print_docstrings()
    else:
        sys.exit(main())
