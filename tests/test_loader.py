import json

import pytest

from dataloader.errors import ConfigurationError
from dataloader.loader import from_records, load_records, make_record, source_factory


def test_key_comes_from_email_field():
    assert make_record({"Email": "a@b.c", "name": "A"}, 0).key == "a@b.c"
    assert make_record({"id": 17}, 0).key == "17"
    assert make_record({"name": "anonymous"}, 3).key == "record-3"


def test_json_lines(tmp_path):
    path = tmp_path / "users.jsonl"
    path.write_text('{"Email": "a@x.io"}\n\n{"Email": "b@x.io"}\n')

    source = load_records(str(path))

    assert source.count == 2
    assert [r.key for r in source.stream] == ["a@x.io", "b@x.io"]


def test_json_lines_reject_bad_line(tmp_path):
    path = tmp_path / "users.jsonl"
    path.write_text('{"Email": "a@x.io"}\nnot json\n')

    with pytest.raises(ConfigurationError, match=":2:"):
        load_records(str(path))


def test_json_array(tmp_path):
    path = tmp_path / "users.json"
    path.write_text(json.dumps([{"Email": "a@x.io"}, {"Email": "b@x.io"}, {"Email": "c@x.io"}]))

    source = load_records(str(path))
    assert source.count == 3
    assert len(list(source.stream)) == 3


def test_csv(tmp_path):
    path = tmp_path / "users.csv"
    path.write_text("Email,FirstName\na@x.io,Ann\nb@x.io,Bob\n")

    source = load_records(str(path))
    records = list(source.stream)

    assert source.count == 2
    assert records[1].data["FirstName"] == "Bob"


@pytest.mark.parametrize("name", ["missing.jsonl", "users.txt"])
def test_unusable_input(tmp_path, name):
    path = tmp_path / name
    if name.endswith(".txt"):
        path.write_text("hello")
    with pytest.raises(ConfigurationError):
        load_records(str(path))


def test_factory_gives_a_fresh_stream_each_time(tmp_path):
    path = tmp_path / "users.jsonl"
    path.write_text('{"Email": "a@x.io"}\n{"Email": "b@x.io"}\n')
    factory = source_factory(str(path))

    first, second = factory(), factory()
    assert len(list(first.stream)) == 2
    assert len(list(second.stream)) == 2


def test_from_records_counts_up_front():
    source = from_records([{"Email": "x@y.z"}, {"Email": "y@y.z"}])
    assert source.count == 2


@pytest.mark.parametrize("name", ["users.csv", "users.jsonl", "users.json"])
def test_non_utf8_input_is_a_configuration_error(tmp_path, name):
    path = tmp_path / name
    path.write_bytes(b"\xff\xfeE\x00m\x00a\x00i\x00l\x00\n")

    with pytest.raises(ConfigurationError, match="not valid UTF-8"):
        load_records(str(path))


def test_malformed_json_array_is_a_configuration_error(tmp_path):
    path = tmp_path / "users.json"
    path.write_text('[{"Email": "a@x.io"},')

    with pytest.raises(ConfigurationError, match="invalid JSON"):
        load_records(str(path))
