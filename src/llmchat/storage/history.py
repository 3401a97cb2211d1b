from __future__ import annotations
import datetime as dt
import json
import logging
import os
import tempfile
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from llmchat.core.errors import HistoryError
from llmchat.core.models import Message, Role

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {'markdown': '.md', 'json': '.json', 'txt': '.txt'}


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def format_duration(seconds: float) -> str:
    """Whole seconds as 1h2m3s / 4m5s / 6s."""
    total = max(0, int(round(seconds)))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f'{hours}h{minutes}m{secs}s'
    if minutes:
        return f'{minutes}m{secs}s'
    return f'{secs}s'


@dataclass
class Conversation:
    provider: str
    model: str
    messages: List[Message] = field(default_factory=list)
    id: str = ''
    start_time: dt.datetime = field(default_factory=_now)
    end_time: Optional[dt.datetime] = None
    tokens_used: Optional[int] = None
    summary: Optional[str] = None

    @property
    def duration(self) -> float:
        end = self.end_time or _now()
        return (end - self.start_time).total_seconds()

    def first_user_message(self) -> Optional[Message]:
        return next((m for m in self.messages if m.role is Role.USER), None)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'provider': self.provider,
            'model': self.model,
            'messages': [m.to_dict() for m in self.messages],
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat() if self.end_time else None,
        }
        if self.tokens_used:
            data['tokens_used'] = self.tokens_used
        if self.summary:
            data['summary'] = self.summary
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Conversation':
        end = data.get('end_time')
        return cls(
            id=data.get('id', ''),
            provider=data.get('provider', ''),
            model=data.get('model', ''),
            messages=[Message.from_dict(m) for m in data.get('messages') or []],
            start_time=dt.datetime.fromisoformat(data['start_time']) if data.get('start_time') else _now(),
            end_time=dt.datetime.fromisoformat(end) if end else None,
            tokens_used=data.get('tokens_used'),
            summary=data.get('summary'),
        )


_MARKDOWN_ROLES = {Role.USER: 'User', Role.ASSISTANT: 'Assistant', Role.SYSTEM: 'System'}
_TEXT_ROLES = {Role.USER: 'You', Role.ASSISTANT: 'Assistant', Role.SYSTEM: 'System'}


def _local(ts: dt.datetime) -> dt.datetime:
    return ts.astimezone() if ts.tzinfo else ts


def render_markdown(conv: Conversation) -> str:
    lines = [
        f'# Conversation with {conv.provider}',
        '',
        f'**Model:** {conv.model}',
        f'**Date:** {_local(conv.start_time):%Y-%m-%d %H:%M:%S}',
        f'**Duration:** {format_duration(conv.duration)}',
        '',
        '---',
        '',
    ]
    for msg in conv.messages:
        lines += [f'## {_MARKDOWN_ROLES[msg.role]}', '', msg.content, '']
    return '\n'.join(lines) + '\n'


def render_text(conv: Conversation) -> str:
    lines = [
        f'Conversation with {conv.provider} ({conv.model})',
        f'Date: {_local(conv.start_time):%Y-%m-%d %H:%M:%S}',
        '=' * 60,
        '',
    ]
    for msg in conv.messages:
        lines += [f'[{_local(msg.timestamp):%H:%M:%S}] {_TEXT_ROLES[msg.role]}:', msg.content, '']
    return '\n'.join(lines) + '\n'


def render_export(conv: Conversation, fmt: str) -> str:
    if fmt == 'markdown':
        return render_markdown(conv)
    if fmt == 'json':
        return json.dumps(conv.to_dict(), indent=2, ensure_ascii=False)
    if fmt == 'txt':
        return render_text(conv)
    raise HistoryError(f'unsupported format: {fmt}')


def write_export(conv: Conversation, fmt: str, dest_dir: Optional[Path] = None) -> Path:
    """Render conv in fmt and write it as conversation_<id><ext> under dest_dir."""
    if fmt not in EXPORT_FORMATS:
        raise HistoryError(f'unsupported format: {fmt}')
    content = render_export(conv, fmt)
    dest = Path(dest_dir) if dest_dir else Path(tempfile.gettempdir())
    path = dest / f'conversation_{conv.id}{EXPORT_FORMATS[fmt]}'
    try:
        path.write_text(content, encoding='utf-8')
    except OSError as e:
        raise HistoryError(f'failed to write export: {e}') from e
    return path


class HistoryStore:
    """
    Saved conversations in one JSON array file, rewritten whole on every
    change (last writer wins). A missing file is an empty history.
    """

    def __init__(self, path: Path, max_conversations: int = 0):
        self.path = Path(path)
        self.max_conversations = max_conversations
        self._conversations: List[Conversation] = []

    def load(self) -> List[Conversation]:
        if not self.path.exists():
            self._conversations = []
            return []
        try:
            raw = json.loads(self.path.read_text(encoding='utf-8') or '[]')
            if not isinstance(raw, list):
                raise ValueError('history is not a JSON array')
            self._conversations = [Conversation.from_dict(c) for c in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise HistoryError(f'failed to read history {self.path}: {e}') from e
        logger.debug('loaded %d conversations from %s', len(self._conversations), self.path)
        return list(self._conversations)

    def save(self) -> None:
        data = json.dumps([c.to_dict() for c in self._conversations], indent=2, ensure_ascii=False)
        tmp = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix='.history-', suffix='.json', dir=self.path.parent)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(data)
            os.replace(tmp, self.path)
        except OSError as e:
            if tmp and os.path.exists(tmp):
                os.unlink(tmp)
            raise HistoryError(f'failed to save history {self.path}: {e}') from e

    def add_conversation(self, conv: Conversation) -> Conversation:
        if not conv.id:
            conv.id = f'conv_{int(time.time())}'
        if conv.end_time is None:
            conv.end_time = _now()
        self._conversations.append(conv)
        if self.max_conversations > 0 and len(self._conversations) > self.max_conversations:
            del self._conversations[: len(self._conversations) - self.max_conversations]
        self.save()
        return conv

    def get_all(self) -> List[Conversation]:
        return list(self._conversations)

    def get_recent(self, n: int) -> List[Conversation]:
        if n <= 0 or n >= len(self._conversations):
            return list(self._conversations)
        return self._conversations[-n:]

    def get(self, conv_id: str) -> Conversation:
        for conv in self._conversations:
            if conv.id == conv_id:
                return conv
        raise HistoryError(f'conversation not found: {conv_id}')

    def search(self, query: str) -> List[Conversation]:
        q = query.lower()
        return [c for c in self._conversations if any(q in m.content.lower() for m in c.messages)]

    def clear(self) -> None:
        self._conversations = []
        self.save()

    def export(self, conv_id: str, fmt: str, dest_dir: Optional[Path] = None) -> Path:
        return write_export(self.get(conv_id), fmt, dest_dir)

    def stats(self) -> Dict[str, Any]:
        convs = self._conversations
        stats: Dict[str, Any] = {
            'total_conversations': len(convs),
            'total_messages': sum(len(c.messages) for c in convs),
            'providers': dict(Counter(c.provider for c in convs)),
            'models': dict(Counter(c.model for c in convs)),
        }
        if convs:
            stats['oldest'] = convs[0].start_time
            stats['newest'] = convs[-1].end_time or convs[-1].start_time
        return stats
