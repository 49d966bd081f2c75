"""Tests for JSON escaping and payload construction."""

import json
import os

import pytest

from ycmd_ide import payloads
from ycmd_ide.payloads import encode, escape


class TestEscape:
    @pytest.mark.parametrize("raw, escaped", [
        ("\\", "\\\\"),
        ('"', '\\"'),
        ("/", "\\/"),
        ("\b", "\\b"),
        ("\t", "\\t"),
        ("\n", "\\n"),
        ("\f", "\\f"),
        ("\r", "\\r"),
        ("\x01", "\\u0001"),
        ("\x0e", "\\u000e"),
        ("\x1f", "\\u001f"),
    ])
    def test_single_characters(self, raw, escaped):
        assert escape(raw) == escaped

    def test_vertical_tab_uses_unicode_escape(self):
        assert escape("\x0b") == "\\u000b"

    def test_other_characters_pass_through(self):
        text = "plain ASCII text 123 ~!@#$%^&*()_+ é 漢字 \x7f"
        assert escape(text) == text

    def test_unchanged_text_is_a_fixed_point(self):
        text = "int main(void) { return 0; }"
        assert escape(escape(text)) == escape(text) == text

    def test_round_trips_through_json(self):
        text = 'say "hi"\\ to/from\n\tthe\x01server\x1f\x0b\r\f\b é'
        assert json.loads('"' + escape(text) + '"') == text

    def test_round_trips_random_control_mix(self):
        text = "".join(chr(i) for i in range(1, 0x20)) + '"\\/'
        assert json.loads('"' + escape(text) + '"') == text

    def test_lone_surrogates_are_escaped(self):
        text = "x = '\udcff' \ud800"
        escaped = escape(text)
        assert escaped == "x = '\\udcff' \\ud800"
        escaped.encode("utf-8")
        assert json.loads('"' + escaped + '"') == text

    def test_surrogateescape_decoded_text_encodes(self):
        text = b"caf\xe9".decode("utf-8", errors="surrogateescape")
        body = encode({"contents": text})
        assert json.loads(body.encode("utf-8"))["contents"] == text


class TestEncode:
    def test_encodes_fixed_shapes(self):
        body = encode({"a": 1, "b": [True, False, None], "c": "x/y"})
        assert body == '{"a": 1, "b": [true, false, null], "c": "x\\/y"}'
        assert json.loads(body) == {"a": 1, "b": [True, False, None], "c": "x/y"}

    def test_keys_are_escaped(self):
        body = encode({'/tmp/we"ird.py': {}})
        assert json.loads(body) == {'/tmp/we"ird.py': {}}

    def test_rejects_unsupported_types(self):
        with pytest.raises(TypeError):
            encode({"x": 1.5})


class TestPayloads:
    def test_file_data_shape(self):
        data = payloads.file_data("/src/main.py", "print(1)\n")
        assert data == {"/src/main.py": {"contents": "print(1)\n", "filetypes": ["python"]}}

    def test_relative_path_is_made_absolute(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        expected = os.path.join(os.getcwd(), "main.go")
        data = payloads.file_data("main.go", "")
        assert list(data) == [expected]
        assert data[expected]["filetypes"] == ["go"]

    def test_event_notification_key_order(self):
        payload = payloads.event_notification(3, 7, "/a.py", "BufferVisit", "x")
        assert list(payload) == ["column_num", "event_name", "file_data", "filepath", "line_num"]
        assert payload["event_name"] == "BufferVisit"

    def test_completions_key_order(self):
        payload = payloads.completions(3, 7, "/a.py", "x")
        assert list(payload) == ["line_num", "column_num", "filepath", "file_data", "completer_target"]
        assert payload["completer_target"] == "filetype_default"

    def test_simple_request_has_no_extra_keys(self):
        payload = payloads.simple_request(0, 0, "/p/.ycm_extra_conf.py")
        assert list(payload) == ["line_num", "column_num", "filepath", "file_data"]
        assert payload["file_data"]["/p/.ycm_extra_conf.py"]["contents"] == ""

    def test_encoded_payload_escapes_contents(self):
        contents = 'x = "a\\b"\n\ty = 1\x02'
        body = encode(payloads.completions(2, 5, "/a.py", contents))
        assert "\n" not in body
        parsed = json.loads(body)
        assert parsed["file_data"]["/a.py"]["contents"] == contents
