"""
conf 分段文本编码器

格式示例：

    # 注释（# 或 ; 开头）
    [General]
    loglevel = info

    [Server]
    Proxy1 = ss, 1.2.3.4, 8388

    [Server Group]
    Auto = select, Proxy1, DIRECT

    [Rule]
    DOMAIN,example.com,Proxy1
    FINAL,,DIRECT

    [Include]
    file, path=rules.conf

组合语义（多源拼接后重新解码时生效）：
- 键值段（General / Server / ...）：同名段合并，后出现的 key 覆盖前者
- 列表段（Rule / Include）：按出现顺序追加

段名规范化为小写下划线形式："Server Group" -> "server_group"。

第一个段之前的 `key = value` 行是顶层键（运行时存储的扁平映射即以此保存），
值一律按字符串读回。顶层键只在单个源的开头有意义：拼接后出现在其他段之后的行归属该段。
"""

import re
from typing import Any, Dict, List

from core.errors import DecodeFailedError, EncodeFailedError
from infra.encoding.base import Codec

# 按行原样收集的列表段
LIST_SECTIONS = {"rule", "include"}

_SECTION_RE = re.compile(r"^\[(?P<name>[^\]]+)\]$")

_BOM = "\ufeff"


def normalize_section(name: str) -> str:
    """段名规范化"""
    return re.sub(r"[\s\-]+", "_", name.strip()).lower()


def _display_section(key: str) -> str:
    return " ".join(part.capitalize() for part in key.split("_"))


def parse_include_line(line: str) -> Dict[str, Any]:
    """
    解析 include 行：``type, key=value, key=value``

    Returns:
        {"type": ..., "params": {...}}
    """
    parts = [p.strip() for p in line.split(",")]
    typ, params = parts[0], {}
    if not typ or "=" in typ:
        raise ValueError(f"include 行缺少存储类型: {line!r}")
    for part in parts[1:]:
        if not part:
            continue
        if "=" not in part:
            raise ValueError(f"include 参数必须是 key=value: {part!r}")
        key, value = part.split("=", 1)
        params[key.strip()] = value.strip()
    return {"type": typ, "params": params}


def format_include_line(entry: Dict[str, Any]) -> str:
    params = entry.get("params") or {}
    return ", ".join([str(entry["type"])] + [f"{k}={v}" for k, v in params.items()])


class ConfCodec(Codec):
    """conf 分段文本编码器"""

    name = "conf"

    def __init__(self, params: Dict[str, str] = None):
        self.params = dict(params or {})

    def unmarshal(self, data: bytes) -> Dict[str, Any]:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise DecodeFailedError(f"conf 不是合法的 UTF-8: {e}") from e

        result: Dict[str, Any] = {}
        section = None

        for lineno, raw in enumerate(text.splitlines(), start=1):
            # 拼接进来的 include 各自可能带 BOM
            line = raw.lstrip(_BOM).strip()
            if not line or line[0] in "#;":
                continue

            if line.startswith("["):
                match = _SECTION_RE.match(line)
                if not match:
                    raise DecodeFailedError(f"第 {lineno} 行段头不合法: {line!r}")
                section = normalize_section(match.group("name"))
                default: Any = [] if section in LIST_SECTIONS else {}
                result.setdefault(section, default)
                continue

            if section is None:
                if "=" not in line:
                    raise DecodeFailedError(f"第 {lineno} 行不在任何段内: {line!r}")
                key, value = line.split("=", 1)
                result[key.strip()] = value.strip()
                continue

            if section == "include":
                try:
                    result[section].append(parse_include_line(line))
                except ValueError as e:
                    raise DecodeFailedError(f"第 {lineno} 行: {e}") from e
            elif section in LIST_SECTIONS:
                result[section].append(line)
            else:
                if "=" not in line:
                    raise DecodeFailedError(
                        f"第 {lineno} 行缺少 '=' (段 [{section}]): {line!r}"
                    )
                key, value = line.split("=", 1)
                result[section][key.strip()] = value.strip()

        return result

    def marshal(self, value: Dict[str, Any]) -> bytes:
        blocks: List[str] = []

        preamble = [
            self._top_level_line(key, item)
            for key, item in value.items()
            if not isinstance(item, (dict, list))
        ]
        if preamble:
            blocks.append("\n".join(preamble))

        for section, body in value.items():
            if not isinstance(body, (dict, list)):
                continue
            lines = [f"[{_display_section(section)}]"]
            if isinstance(body, dict):
                for key, item in body.items():
                    if isinstance(item, (dict, list)):
                        raise EncodeFailedError(
                            f"conf 键值段不支持嵌套值: [{section}] {key}"
                        )
                    lines.append(f"{key} = {'' if item is None else item}")
            else:
                for item in body:
                    if section == "include" and isinstance(item, dict):
                        lines.append(format_include_line(item))
                    elif isinstance(item, (dict, list)):
                        raise EncodeFailedError(f"conf 列表段只支持单行文本: [{section}]")
                    else:
                        lines.append(str(item))
            blocks.append("\n".join(lines))
        return ("\n\n".join(blocks) + "\n").encode("utf-8")

    @staticmethod
    def _top_level_line(key: Any, item: Any) -> str:
        key = str(key)
        if not key.strip() or "=" in key or key.strip()[0] in "[#;" or key != key.strip():
            raise EncodeFailedError(f"conf 顶层键无法按行保存: {key!r}")
        text = "" if item is None else str(item)
        if "\n" in text or "\r" in text:
            raise EncodeFailedError(f"conf 顶层值不能跨行: {key}")
        return f"{key} = {text}"
