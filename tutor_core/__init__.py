"""Tutor Core 顶层包。

该包提供语言学习聊天客户端的状态与反馈同步核心，
包括配置加载、领域模型、后端适配、文本改写流水线、
会话 / 词典 / 记忆存储、单条消息反馈协调与持久化。
"""

from tutor_core.stores import ConversationStore
from tutor_core.coordinator import MessageFeedbackCoordinator

__all__ = ["ConversationStore", "MessageFeedbackCoordinator"]
