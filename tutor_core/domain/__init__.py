"""领域层模型与协议。

包含：
- models: 会话、消息、AI 人设、会话记忆、词典条目与分类。
- feedback: 后端返回的语法反馈 / 原生表达 / 记忆更新等载荷。
- states: 每条消息的临时 UI 状态（语法反馈、替代表达、翻译、朗读）。
- exceptions: 业务异常类型定义。
"""
