"""
编码器单元测试（yaml / json / conf）
"""

import pytest

from core.errors import BackendConstructionError, DecodeFailedError, EncodeFailedError
from infra.encoding.conf_codec import ConfCodec, normalize_section, parse_include_line
from infra.encoding.json_codec import JsonCodec
from infra.encoding.yaml_codec import YamlCodec


class TestYamlCodec:
    def test_empty_document_is_empty_map(self):
        assert YamlCodec().unmarshal(b"") == {}

    def test_repeated_key_last_wins(self):
        data = b"general:\n  a: 1\n" + b"\n" + b"general:\n  b: 2\n"
        assert YamlCodec().unmarshal(data) == {"general": {"b": 2}}

    def test_non_mapping_root(self):
        with pytest.raises(DecodeFailedError) as exc_info:
            YamlCodec().unmarshal(b"- a\n- b\n")
        assert "根节点必须是映射" in str(exc_info.value)

    def test_invalid_yaml(self):
        with pytest.raises(DecodeFailedError) as exc_info:
            YamlCodec().unmarshal(b"a: [1, 2\n")
        assert "YAML 格式错误" in str(exc_info.value)

    def test_marshal_keeps_order_and_unicode(self):
        text = YamlCodec().marshal({"z": 1, "名称": "值"}).decode("utf-8")
        assert text.index("z:") < text.index("名称")
        assert "值" in text


class TestJsonCodec:
    def test_decode(self):
        assert JsonCodec().unmarshal(b'{"k": "v"}') == {"k": "v"}

    def test_concatenated_documents_fail(self):
        with pytest.raises(DecodeFailedError):
            JsonCodec().unmarshal(b'{"a": 1}\n{"b": 2}')

    def test_array_root_fails(self):
        with pytest.raises(DecodeFailedError):
            JsonCodec().unmarshal(b"[1, 2]")

    def test_unencodable_value(self):
        with pytest.raises(EncodeFailedError):
            JsonCodec().marshal({"k": object()})

    def test_indent_param(self):
        assert JsonCodec({"indent": "0"}).marshal({"k": "v"}) == b'{"k": "v"}'
        with pytest.raises(BackendConstructionError):
            JsonCodec({"indent": "wide"})


class TestConfCodec:
    def test_sections_and_lists(self):
        data = (
            b"# comment\n"
            b"[General]\n"
            b"loglevel = info\n"
            b"; another comment\n"
            b"[Server Group]\n"
            b"Auto = select, Proxy1, DIRECT\n"
            b"[Rule]\n"
            b"DOMAIN,example.com,Proxy1\n"
            b"FINAL,,DIRECT\n"
        )
        assert ConfCodec().unmarshal(data) == {
            "general": {"loglevel": "info"},
            "server_group": {"Auto": "select, Proxy1, DIRECT"},
            "rule": ["DOMAIN,example.com,Proxy1", "FINAL,,DIRECT"],
        }

    def test_concatenation_merges_maps_and_appends_lists(self):
        data = b"[General]\na = 1\nb = 1\n[Rule]\nDOMAIN,a.com,DIRECT\n" + b"\n" + (
            b"[General]\nb = 2\n[Rule]\nFINAL,,DIRECT\n"
        )
        value = ConfCodec().unmarshal(data)
        assert value["general"] == {"a": "1", "b": "2"}
        assert value["rule"] == ["DOMAIN,a.com,DIRECT", "FINAL,,DIRECT"]

    def test_include_lines(self):
        value = ConfCodec().unmarshal(b"[Include]\nfile, path=/etc/rules.conf, name=rules\n")
        assert value["include"] == [{"type": "file", "params": {"path": "/etc/rules.conf", "name": "rules"}}]

    def test_line_outside_section(self):
        with pytest.raises(DecodeFailedError) as exc_info:
            ConfCodec().unmarshal(b"orphan line\n")
        assert "1" in str(exc_info.value)

    def test_key_value_line_without_equals(self):
        with pytest.raises(DecodeFailedError):
            ConfCodec().unmarshal(b"[General]\nnot a pair\n")

    def test_bad_include_line(self):
        with pytest.raises(DecodeFailedError):
            ConfCodec().unmarshal(b"[Include]\nfile, /no/key\n")

    def test_utf8_bom_is_accepted(self):
        assert ConfCodec().unmarshal("\ufeff[General]\na = 1\n".encode("utf-8")) == {"general": {"a": "1"}}

    def test_marshal_round_trip(self):
        value = {
            "general": {"loglevel": "info"},
            "rule": ["FINAL,,DIRECT"],
            "include": [{"type": "memory", "params": {"name": "rules"}}],
        }
        codec = ConfCodec()
        assert codec.unmarshal(codec.marshal(value)) == value

    def test_marshal_rejects_nested_values(self):
        with pytest.raises(EncodeFailedError):
            ConfCodec().marshal({"general": {"a": {"b": 1}}})

    def test_top_level_keys_round_trip(self):
        codec = ConfCodec()
        value = {"default.mode": "global", "rule": ["FINAL,,DIRECT"]}
        data = codec.marshal(value)
        assert data.startswith(b"default.mode = global\n")
        assert codec.unmarshal(data) == value

    def test_top_level_values_read_back_as_text(self):
        codec = ConfCodec()
        assert codec.unmarshal(codec.marshal({"retries": 3, "empty": None})) == {"retries": "3", "empty": ""}

    def test_marshal_rejects_unsavable_top_level_keys(self):
        with pytest.raises(EncodeFailedError):
            ConfCodec().marshal({"a=b": "x"})
        with pytest.raises(EncodeFailedError):
            ConfCodec().marshal({"[General]": "x"})
        with pytest.raises(EncodeFailedError):
            ConfCodec().marshal({"note": "two\nlines"})

    def test_bom_inside_concatenated_buffer(self):
        data = b"[Rule]\nDOMAIN,a.com,DIRECT\n" + "\ufeff[Rule]\nFINAL,,REJECT\n".encode("utf-8")
        assert ConfCodec().unmarshal(data) == {"rule": ["DOMAIN,a.com,DIRECT", "FINAL,,REJECT"]}

    def test_malformed_section_header(self):
        with pytest.raises(DecodeFailedError) as exc_info:
            ConfCodec().unmarshal(b"[Include]\nmemory, name=a\n[Rule\nFINAL,,DIRECT\n")
        assert "3" in str(exc_info.value)


class TestConfHelpers:
    @pytest.mark.parametrize(
        "raw, expected",
        [("Server Group", "server_group"), ("RULE", "rule"), (" url-rewrite ", "url_rewrite")],
    )
    def test_normalize_section(self, raw, expected):
        assert normalize_section(raw) == expected

    def test_parse_include_line_requires_type(self):
        with pytest.raises(ValueError):
            parse_include_line("path=/a")
