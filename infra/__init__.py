"""
Infrastructure 层 - 基础设施

┌─────────────────────────────────────────────────────────────┐
│                        infra/                               │
├─────────────────────────────────────────────────────────────┤
│  storage/     │ 配置字节的存储后端 (file / http / memory)     │
│               │ 读写 + 变更通知                               │
├─────────────────────────────────────────────────────────────┤
│  encoding/    │ 编解码器 (yaml / json / conf)                 │
├─────────────────────────────────────────────────────────────┤
│  resilience/  │ 重试（指数退避）                              │
├─────────────────────────────────────────────────────────────┤
│  registry.py  │ 后端注册表基类                                │
└─────────────────────────────────────────────────────────────┘
"""
