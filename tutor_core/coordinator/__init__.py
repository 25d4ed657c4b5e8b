"""打开的会话界面里，单条消息反馈状态的协调。"""

from tutor_core.coordinator.feedback_coordinator import MessageFeedbackCoordinator, SpeechPlayer

__all__ = ["MessageFeedbackCoordinator", "SpeechPlayer"]
