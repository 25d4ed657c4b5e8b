"""会话记忆的后台同步。

每完成一轮对话，就尝试让后端根据最近的聊天记录更新长期记忆（摘要 + 结构化画像）。
为了避免无意义的远程调用：

1. 取最近 N 条非空消息构成历史窗口。
2. 计算签名：窗口内 "role|text" 以换行拼接。
3. 非强制同步且签名与上次成功同步时相同，则直接跳过。

同步失败不会影响聊天流程，只记录状态文案。同一会话在等待或同步过程中
收到的重复请求会被合并为最多一次后续同步。
"""

import asyncio
from typing import Callable, Dict, List, Optional, Sequence

from tutor_core.domain.exceptions import BusinessError
from tutor_core.domain.feedback import HistoryItem
from tutor_core.domain.models import ChatMessage, ConversationMemoryProfile
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.providers.base import BackendClient


STATUS_SYNCING = "Syncing..."
STATUS_SUCCEEDED = "Succeeded"
STATUS_NO_NEW_MESSAGES = "No new messages"
STATUS_NO_NEW_INFO = "No new memory info"
STATUS_NO_HISTORY = "No messages to summarize"


def failed_status(reason: str) -> str:
    return f"Failed: {reason}"


def sync_status_tone(text: Optional[str]) -> str:
    """把状态文案归类为 failed / syncing / succeeded / neutral，供调试视图着色。"""

    lower = (text or "").strip().lower()
    if "failed" in lower:
        return "failed"
    if "syncing" in lower:
        return "syncing"
    if "succeeded" in lower:
        return "succeeded"
    return "neutral"


def build_history_window(messages: Sequence[ChatMessage], limit: int) -> List[HistoryItem]:
    items = [HistoryItem(role=m.role, text=m.text.strip()) for m in messages if m.text.strip()]
    return items[-limit:] if limit > 0 else []


def history_signature(items: Sequence[HistoryItem]) -> str:
    return "\n".join(f"{item.role}|{item.text}" for item in items)


class ConversationMemorySyncScheduler:
    def __init__(
        self,
        client: BackendClient,
        messages_for: Callable[[str], Sequence[ChatMessage]],
        window: int = 24,
        debounce_seconds: float = 0.0,
        summaries: Optional[Dict[str, str]] = None,
        profiles: Optional[Dict[str, ConversationMemoryProfile]] = None,
        signatures: Optional[Dict[str, str]] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self._client = client
        self._messages_for = messages_for
        self.window = window
        self.debounce_seconds = debounce_seconds
        self.summaries: Dict[str, str] = dict(summaries or {})
        self.profiles: Dict[str, ConversationMemoryProfile] = dict(profiles or {})
        self.signatures: Dict[str, str] = dict(signatures or {})
        self.status: Dict[str, str] = {}
        self._on_change = on_change
        self._tasks: Dict[str, asyncio.Task] = {}
        self._pending: Dict[str, bool] = {}

    def summary(self, conversation_id: str) -> str:
        return self.summaries.get(conversation_id, "")

    def profile(self, conversation_id: str) -> ConversationMemoryProfile:
        return self.profiles.get(conversation_id) or ConversationMemoryProfile()

    def forget_signature(self, conversation_id: str) -> None:
        self.signatures.pop(conversation_id, None)

    # ---- 调度 ----

    def request_sync(self, conversation_id: str, force: bool = False) -> asyncio.Task:
        """在后台安排一次同步；已有同步在等待或进行中时只记录一次后续同步。"""

        running = self._tasks.get(conversation_id)
        if running is not None and not running.done():
            self._pending[conversation_id] = self._pending.get(conversation_id, False) or force
            return running
        task = asyncio.create_task(self._run(conversation_id, force))
        self._tasks[conversation_id] = task
        return task

    async def refresh_now(self, conversation_id: str) -> Optional[str]:
        """手动刷新（调试入口），跳过签名检查，等待本次同步结束后返回状态文案。"""

        await self.request_sync(conversation_id, force=True)
        return self.status.get(conversation_id)

    async def wait_idle(self) -> None:
        while True:
            tasks = [t for t in self._tasks.values() if not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks)

    async def _run(self, conversation_id: str, force: bool) -> None:
        try:
            while True:
                if self.debounce_seconds > 0:
                    await asyncio.sleep(self.debounce_seconds)
                if conversation_id in self._pending:
                    force = self._pending.pop(conversation_id) or force
                await self.sync(conversation_id, force=force)
                if conversation_id not in self._pending:
                    break
                force = self._pending.pop(conversation_id)
        finally:
            if self._tasks.get(conversation_id) is asyncio.current_task():
                del self._tasks[conversation_id]

    # ---- 同步 ----

    async def sync(self, conversation_id: str, force: bool = False) -> str:
        """执行一次同步并返回状态文案。"""

        history = build_history_window(self._messages_for(conversation_id), self.window)
        if not history:
            self.status[conversation_id] = STATUS_NO_HISTORY
            return STATUS_NO_HISTORY
        signature = history_signature(history)
        if not force and self.signatures.get(conversation_id) == signature:
            self.status[conversation_id] = STATUS_NO_NEW_MESSAGES
            return STATUS_NO_NEW_MESSAGES

        self.status[conversation_id] = STATUS_SYNCING
        old_summary = self.summary(conversation_id)
        old_profile = self.profiles.get(conversation_id)
        try:
            update = await self._client.update_memory_summary(old_summary, old_profile, history)
        except BusinessError as e:
            status = failed_status(e.message)
            self.status[conversation_id] = status
            logger.warning(
                "Memory sync failed",
                extra={"extra": {"conversation_id": conversation_id, "code": e.code, "error": e.message}},
            )
            return status

        new_summary = (update.memory_summary or "").strip()
        new_profile = update.memory_profile.cleaned() if update.memory_profile is not None else None
        if new_profile is not None and new_profile.is_empty:
            new_profile = None

        changed = new_summary != old_summary or new_profile != old_profile
        if new_summary:
            self.summaries[conversation_id] = new_summary
        else:
            self.summaries.pop(conversation_id, None)
        if new_profile is not None:
            self.profiles[conversation_id] = new_profile
        else:
            self.profiles.pop(conversation_id, None)
        self.signatures[conversation_id] = signature

        status = STATUS_SUCCEEDED if changed else STATUS_NO_NEW_INFO
        self.status[conversation_id] = status
        logger.info(
            "Memory sync finished",
            extra={"extra": {"conversation_id": conversation_id, "status": status, "forced": force}},
        )
        if self._on_change is not None:
            self._on_change()
        return status
