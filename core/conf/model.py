"""
配置模型

解码后的结构化配置。外部协作方（dns / server / group / filter / stream / plugin）
的段落内容保持原样透传，由各协作方自行解析。
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class StorageRef(BaseModel):
    """存储引用：后端标识 + 连接参数（读取后不可变）"""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="存储后端标识（file / http / memory）")
    params: Dict[str, str] = Field(default_factory=dict, description="后端参数")

    @field_validator("params", mode="before")
    @classmethod
    def _stringify_params(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value


class Info(BaseModel):
    """配置元信息"""

    name: str = Field("", description="配置显示名称（加载后由主存储名称填充）")


class RuleConfig(BaseModel):
    """
    单条规则

    支持两种写法：
    - 行文本：``DOMAIN,example.com,Proxy1[,key=value...]``
    - 映射：``{type: DOMAIN, value: example.com, proxy: Proxy1}``
    """

    type: str
    value: str = ""
    proxy: str
    options: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _parse_line(cls, data: Any) -> Any:
        if not isinstance(data, str):
            return data

        parts = [p.strip() for p in data.split(",")]
        if len(parts) < 3:
            raise ValueError(f"规则至少包含 类型,值,代理 三段: {data!r}")

        options: Dict[str, str] = {}
        for part in parts[3:]:
            if not part:
                continue
            if "=" in part:
                key, value = part.split("=", 1)
                options[key.strip()] = value.strip()
            else:
                options[part] = "true"

        return {"type": parts[0], "value": parts[1], "proxy": parts[2], "options": options}

    @field_validator("type")
    @classmethod
    def _upper_type(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("规则类型不能为空")
        return value

    @property
    def network(self) -> str:
        """规则适用的网络（tcp / udp），空字符串表示两者皆可"""
        return self.options.get("network", "").lower()

    def to_line(self) -> str:
        extra = [k if v == "true" else f"{k}={v}" for k, v in self.options.items()]
        return ",".join([self.type, self.value, self.proxy] + extra)


class Configuration(BaseModel):
    """
    根配置

    不变量：交给 ConfigApplier 之前 info.name 一定已被填充。
    """

    model_config = ConfigDict(extra="allow")

    info: Info = Field(default_factory=Info)
    include: List[StorageRef] = Field(default_factory=list, description="按声明顺序合并的子配置")
    general: Dict[str, Any] = Field(default_factory=dict)
    server: Dict[str, Any] = Field(default_factory=dict, description="代理服务器定义")
    server_group: Dict[str, Any] = Field(default_factory=dict, description="代理组定义")
    rule: List[RuleConfig] = Field(default_factory=list, description="按顺序匹配的规则")
    dns: Dict[str, Any] = Field(default_factory=dict)
    filter: Dict[str, Any] = Field(default_factory=dict)
    stream: Dict[str, Any] = Field(default_factory=dict)
    plugin: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("include", "rule", mode="before")
    @classmethod
    def _none_as_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("general", "server", "server_group", "dns", "filter", "stream", "plugin", mode="before")
    @classmethod
    def _none_as_empty_dict(cls, value: Any) -> Any:
        return {} if value is None else value
