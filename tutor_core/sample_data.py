"""首次启动的示例数据：没有快照或快照无法读取时使用。"""

from typing import Dict, List, Tuple

from tutor_core.domain.models import ChatMessage, Conversation, initial_letter, new_id


SAMPLE_CONVERSATIONS: Tuple[Tuple[str, str, str, int], ...] = (
    ("Cat", "Hey there! I was wondering when you'd show up.", "13:27", 2),
    ("English Coach", "Try saying it a little more naturally.", "12:41", 0),
    ("Practice Buddy", "What did you do today?", "11:18", 1),
)


def initial_messages(name: str, time_text: str = "17:06") -> List[ChatMessage]:
    return [
        ChatMessage(role="ai", text=f"Hey! I'm {name}. What do you want to practice today?", time_text=time_text),
        ChatMessage(role="user", text="I want to improve my English speaking.", time_text=time_text),
        ChatMessage(role="ai", text="Nice. Tell me about your day in English.", time_text=time_text),
    ]


def sample_state() -> Tuple[List[Conversation], Dict[str, List[ChatMessage]]]:
    conversations = []
    messages = {}
    for name, last_message, time_text, unread in SAMPLE_CONVERSATIONS:
        conv = Conversation(
            id=new_id("c"),
            name=name,
            last_message=last_message,
            time_text=time_text,
            unread_count=unread,
            avatar_text=initial_letter(name),
        )
        conversations.append(conv)
        messages[conv.id] = initial_messages(name)
    return conversations, messages
