from decimal import Decimal

from type_inference import SAMPLE_SIZE, ColumnType, infer_column_type, infer_types


def test_plain_strings_stay_text():
    rows = [{"name": "Alice"}, {"name": "Bob"}, {"name": "42"}]
    assert infer_types(rows, ["name"]) == {"name": ColumnType.TEXT}


def test_first_number_wins_regardless_of_later_values():
    rows = [{"v": 1}, {"v": "abc"}, {"v": True}]
    assert infer_types(rows, ["v"])["v"] is ColumnType.NUMERIC


def test_first_boolean_wins_over_later_number():
    rows = [{"v": None}, {"v": False}, {"v": 3.5}]
    assert infer_types(rows, ["v"])["v"] is ColumnType.BOOLEAN


def test_bool_is_not_counted_as_number():
    assert infer_column_type([True]) is ColumnType.BOOLEAN
    assert infer_column_type([0]) is ColumnType.NUMERIC
    assert infer_column_type([Decimal("1.5")]) is ColumnType.NUMERIC


def test_only_the_first_sample_rows_are_scanned():
    rows = [{"v": "x"}] * SAMPLE_SIZE + [{"v": 7}]
    assert infer_types(rows, ["v"])["v"] is ColumnType.TEXT
    rows = [{"v": "x"}] * (SAMPLE_SIZE - 1) + [{"v": 7}]
    assert infer_types(rows, ["v"])["v"] is ColumnType.NUMERIC


def test_empty_dataset_defaults_to_text():
    assert infer_types([], ["a", "b"]) == {"a": ColumnType.TEXT, "b": ColumnType.TEXT}


def test_absent_and_null_values_are_not_a_signal():
    rows = [{"other": 1}, {"v": None}, {"v": 2}]
    assert infer_types(rows, ["v", "other"]) == {"v": ColumnType.NUMERIC, "other": ColumnType.NUMERIC}


def test_example_dataset():
    rows = [{"id": "1", "name": "Alice", "age": 30}, {"id": "2", "name": "Bob", "age": ""}]
    assert infer_types(rows, ["id", "name", "age"]) == {
        "id": ColumnType.TEXT,
        "name": ColumnType.TEXT,
        "age": ColumnType.NUMERIC,
    }
