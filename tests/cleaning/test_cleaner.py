from datadeck.cleaning.cleaner import (
    CleanOptions,
    clean_rows,
    convert_numbers,
    drop_duplicates,
    remove_empty_rows,
    trim_strings,
)

def test_trim_strings_leaves_other_values():
    assert trim_strings([{"a": "  x ", "b": 3, "c": None}]) == [{"a": "x", "b": 3, "c": None}]

def test_convert_numbers():
    rows = [{"a": "42", "b": " 1.5 ", "c": "1,5", "d": "abc", "e": "", "f": 7}]
    assert convert_numbers(rows) == [{"a": 42, "b": 1.5, "c": "1,5", "d": "abc", "e": "", "f": 7}]

def test_remove_empty_rows():
    rows = [{"a": None, "b": "  "}, {"a": 0, "b": ""}, {"a": "", "b": None}]
    assert remove_empty_rows(rows) == [{"a": 0, "b": ""}]

def test_drop_duplicates_first_wins():
    rows = [{"a": 1, "b": "x", "i": 0}, {"a": 1, "b": "x", "i": 1}, {"a": 2, "b": "x", "i": 2}]
    assert drop_duplicates(rows, ["a", "b"]) == [rows[0], rows[2]]

def test_clean_rows_respects_options_and_does_not_mutate():
    rows = [{"a": " 5 "}, {"a": "5"}, {"a": ""}]
    out = clean_rows(rows, ["a"], CleanOptions(drop_duplicates=False))
    assert out == [{"a": 5}, {"a": 5}]
    assert rows[0] == {"a": " 5 "}

    assert clean_rows(rows, ["a"], CleanOptions(False, False, False, False)) == rows
    assert clean_rows(rows, ["a"]) == [{"a": 5}]

def test_convert_numbers_reads_booleans_as_text():
    rows = [{"flag": True, "off": False, "n": 2.5, "none": None}]
    assert convert_numbers(rows) == [{"flag": "true", "off": "false", "n": 2.5, "none": None}]
