# temporal_starter/options/__init__.py
# 选项模块
#
# - durations.py: ISO-8601 时长字面量和 UNSET 哨兵
# - retry.py: 重试策略的逐字段合并
# - records.py: 配置记录和选项构建器
# - properties.py: 分层配置结构和加载
# - store.py: ConfigurationStore（一次性默认值填充）
# - modifiers.py: 全局钩子和按类型注册的修改函数
# - resolver.py: OptionResolver（多层优先级合并）
#
# 此文件不导入 resolver：resolver 依赖 declarations，declarations 又依赖本包的其他模块
