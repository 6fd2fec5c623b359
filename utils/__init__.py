"""
工具模块

- app_paths: 数据目录 / 日志目录 / 设置文件路径解析
"""
