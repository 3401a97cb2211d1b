from __future__ import annotations
import datetime as dt
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from llmchat.assessment.analyzer import Assessment, PromptAnalyzer
from llmchat.assessment.improver import PromptImprover, prompt_guide
from llmchat.config import AppConfig
from llmchat.providers.registry import ProviderRegistry
from llmchat.storage.history import EXPORT_FORMATS, Conversation, HistoryStore, format_duration, write_export
from llmchat.ui.display import ASSISTANT_EMOJI, SYSTEM_EMOJI, USER_EMOJI, Display
from .chat_session import ChatSession
from .errors import ConfigError, HistoryError, ProviderError, StreamCancelled
from .models import Role
from .stream import CancelContext

logger = logging.getLogger(__name__)

LineReader = Callable[[str], str]

COMMAND_MARKER = "/"
IMPROVE_OFFER_BELOW = 75
ALREADY_EXCELLENT = 85
RECENT_LIMIT = 10


class State(str, Enum):
    IDLE = "idle"
    AWAITING_INPUT = "awaiting_input"
    COMMAND = "command"
    STREAMING = "streaming"
    CLOSED = "closed"


def _preview(text: str, limit: int) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."


class InteractiveSession:
    """
    The REPL around a ChatSession: reads (multi-line) input, dispatches slash
    commands, streams replies to the display and saves the conversation to
    history on close.
    """

    def __init__(
        self,
        session: ChatSession,
        registry: ProviderRegistry,
        cfg: AppConfig,
        *,
        display: Optional[Display] = None,
        history: Optional[HistoryStore] = None,
        read_line: Optional[LineReader] = None,
        version: Optional[str] = None,
        export_dir: Optional[Path] = None,
    ):
        self.session = session
        self.registry = registry
        self.cfg = cfg
        self.display = display or Display()
        self.history = history if cfg.history_enabled else None
        self.read_line: LineReader = read_line or self.display.console.input
        self.version = version
        self.export_dir = export_dir
        self.assess_enabled = cfg.enable_assessment
        self.analyzer = PromptAnalyzer()
        self.state = State.IDLE

        self._commands: Dict[str, Callable[[], None]] = {
            "/help": self.display.help,
            "/clear": self._clear,
            "/providers": self._show_providers,
            "/models": self._show_models,
            "/switch": self._switch_model,
            "/history": self._show_history,
            "/saved": self._show_saved,
            "/search": self._search,
            "/export": self._export,
            "/stats": self._stats,
            "/reset": self._reset,
            "/assess": self._toggle_assessment,
            "/guide": lambda: self.display.markdown(prompt_guide()),
            "/id": lambda: self.display.info(self.session.id),
        }

    # --- main loop --------------------------------------------------------

    def run(self) -> None:
        self._open_history()
        self.display.welcome(self.version)
        self.display.provider_info(self.session.provider.name, self.session.model)
        self.display.separator()

        try:
            while self.state is not State.CLOSED:
                try:
                    text = self.read_input()
                except KeyboardInterrupt:
                    break
                if text is None:
                    break
                try:
                    if text.startswith(COMMAND_MARKER):
                        self.state = State.COMMAND
                        if self.handle_command(text):
                            break
                    elif text:
                        self.submit(text)
                except KeyboardInterrupt:
                    # Ctrl+C at a follow-up prompt abandons that command only
                    self.display.system("Cancelled")
        finally:
            self.close()

    def read_input(self) -> Optional[str]:
        """
        One user input: a command line, or text accumulated until two
        consecutive empty lines (or end of input). "" for an empty first line,
        None at end of input.
        """
        self.state = State.AWAITING_INPUT
        try:
            first = self.read_line(self.display.user_prompt())
        except EOFError:
            return None
        stripped = first.strip()
        if not stripped or stripped.startswith(COMMAND_MARKER):
            return stripped

        lines: List[str] = [first]
        empty = 0
        while True:
            try:
                line = self.read_line("")
            except EOFError:
                break
            if not line.strip():
                empty += 1
                if empty >= 2:
                    break
                lines.append("")
                continue
            empty = 0
            lines.append(line)
        return "\n".join(lines).strip()

    def submit(self, text: str) -> bool:
        if self.assess_enabled:
            result = self.analyzer.analyze(text)
            self.display.assessment(result)
            if result.overall_score < IMPROVE_OFFER_BELOW and self.cfg.auto_improve:
                if self._confirm("Would you like me to improve this prompt?"):
                    improved = self._improve(text, result)
                    if improved and self._confirm("Use this improved prompt?"):
                        text = improved
        return self.run_turn(text)

    def run_turn(self, text: str) -> bool:
        self.state = State.STREAMING
        self.display.assistant_prefix(self.session.model)
        ctx = CancelContext()
        try:
            result = self.session.run_turn(text, self.display.chunk, ctx)
        except (KeyboardInterrupt, StreamCancelled):
            self.display.end_reply()
            self.display.system("Response interrupted")
            return False
        except (ProviderError, ConfigError) as e:
            self.display.end_reply()
            self.display.error(str(e))
            return False
        finally:
            self.state = State.AWAITING_INPUT

        self.display.end_reply()
        if self.cfg.verbose:
            self.display.metrics(result.elapsed, result.tokens)
        return True

    def handle_command(self, line: str) -> bool:
        """Run one slash command. Returns True when the session should end."""
        cmd, _, arg = line.strip().partition(" ")
        cmd = cmd.lower()
        arg = arg.strip()

        if cmd in ("/exit", "/quit"):
            return True
        if cmd == "/improve":
            if arg:
                self._improve_command(arg)
            else:
                self.display.error("Usage: /improve <prompt>")
        elif cmd == "/use":
            self._use_provider(arg.lower())
        elif cmd in self._commands and not arg:
            self._commands[cmd]()
        else:
            self.display.error(f"Unknown command: {line} (type /help for available commands)")
        return False

    def close(self) -> None:
        self.state = State.CLOSED
        if self.history is not None and self.session.messages:
            conv = self.conversation()
            try:
                self.history.add_conversation(conv)
                logger.info("saved conversation %s (%d messages)", conv.id, len(conv.messages))
            except HistoryError as e:
                logger.warning("could not save conversation: %s", e)
                self.display.warning(f"Failed to save conversation: {e}")
        self.display.system("Goodbye! 👋")

    def conversation(self) -> Conversation:
        return Conversation(
            id=self.session.id,
            provider=self.session.provider.name,
            model=self.session.model,
            messages=list(self.session.messages),
            start_time=self.session.started_at,
            end_time=dt.datetime.now(dt.timezone.utc),
        )

    # --- helpers ----------------------------------------------------------

    def _open_history(self) -> None:
        if self.history is None:
            return
        try:
            self.history.load()
        except HistoryError as e:
            # Never overwrite a file we could not read
            logger.warning("history disabled: %s", e)
            self.display.warning(f"{e}; history saving disabled for this session")
            self.history = None

    def _confirm(self, question: str) -> bool:
        try:
            answer = self.read_line(f"{question} (y/n): ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")

    def _ask(self, question: str) -> str:
        try:
            return self.read_line(question).strip()
        except EOFError:
            return ""

    def _improve(self, prompt: str, result: Assessment) -> Optional[str]:
        self.display.info("Generating improved version...")
        self.display.thinking()
        try:
            improved = PromptImprover(self.session.provider).improve(prompt, result)
        except (ProviderError, ConfigError) as e:
            self.display.error(f"Failed to improve prompt: {e}")
            return None
        self.display.separator()
        self.display.success("✨ IMPROVED PROMPT")
        self.display.separator()
        self.display.text(improved)
        self.display.separator()
        return improved

    # --- commands ---------------------------------------------------------

    def _clear(self) -> None:
        self.display.welcome(self.version, clear=True)
        self.display.provider_info(self.session.provider.name, self.session.model)

    def _show_providers(self) -> None:
        self.registry.refresh()
        self.display.providers_table(self.registry.snapshot(), current=self.session.provider.name)

    def _show_models(self) -> None:
        self.display.model_list(self.session.provider.models(), self.session.model)

    def _switch_model(self) -> None:
        models = self.session.provider.models()
        if len(models) <= 1:
            self.display.info("Only one model available")
            return
        self.display.model_list(models, self.session.model)
        answer = self._ask("\nEnter model number (or 0 to cancel): ")
        try:
            choice = int(answer)
        except ValueError:
            self.display.error("Invalid input")
            return
        if choice == 0:
            self.display.info("Cancelled")
            return
        if not 1 <= choice <= len(models):
            self.display.error("Invalid model number")
            return
        try:
            self.session.switch_model(models[choice - 1])
        except (ConfigError, ProviderError) as e:
            self.display.error(f"Failed to switch model: {e}")
            return
        self.display.success(f"Switched to model: {models[choice - 1]}")

    def _use_provider(self, name: str) -> None:
        if not name:
            self._show_providers()
            return
        if name not in self.registry:
            self.display.error(f"Unknown provider: {name}")
            return
        if not self.registry.refresh(name)[name]:
            meta = self.registry.get_metadata(name)
            self.display.error(f"{meta.display_name} is not available (set {meta.env_var_key})")
            return
        try:
            self.session.switch_provider(self.registry.get(name))
        except (ConfigError, ProviderError) as e:
            self.display.error(f"Failed to switch provider: {e}")
            return
        self.display.success(f"Switched to provider: {name} ({self.session.model})")

    def _show_history(self) -> None:
        messages = self.session.messages
        if not messages:
            self.display.info("No messages in history")
            return
        prefixes = {
            Role.USER: f"{USER_EMOJI} You",
            Role.ASSISTANT: f"{ASSISTANT_EMOJI} Assistant",
            Role.SYSTEM: f"{SYSTEM_EMOJI} System",
        }
        self.display.separator()
        self.display.info(f"Conversation History ({len(messages)} messages)")
        self.display.separator()
        for i, msg in enumerate(messages, 1):
            stamp = msg.timestamp.astimezone().strftime("%H:%M:%S")
            self.display.text(f"\n[{i}] {prefixes[msg.role]} ({stamp}):\n{msg.content}")
        self.display.separator()

    def _require_history(self) -> Optional[HistoryStore]:
        if self.history is None:
            self.display.info("History is disabled")
        return self.history

    def _show_saved(self) -> None:
        store = self._require_history()
        if store is None:
            return
        recent = store.get_recent(RECENT_LIMIT)
        if not recent:
            self.display.info("No saved conversations")
            return
        self.display.separator()
        self.display.info("Recent Conversations")
        self.display.separator()
        for i, conv in enumerate(reversed(recent), 1):
            started = conv.start_time.astimezone().strftime("%Y-%m-%d %H:%M")
            self.display.text(f"{i}. {started} with {conv.provider} ({conv.model})")
            self.display.text(f"   Duration: {format_duration(conv.duration)} | Messages: {len(conv.messages)}")
            first = conv.first_user_message()
            if first is not None:
                self.display.text(f"   Preview: {_preview(first.content, 60)}")
            self.display.text()
        self.display.separator()

    def _search(self) -> None:
        store = self._require_history()
        if store is None:
            return
        query = self._ask("Enter search query: ")
        if not query:
            self.display.error("Query cannot be empty")
            return
        results = store.search(query)
        if not results:
            self.display.info(f"No conversations found matching '{query}'")
            return
        self.display.separator()
        self.display.info(f"Found {len(results)} conversation(s)")
        self.display.separator()
        q = query.lower()
        for i, conv in enumerate(results, 1):
            started = conv.start_time.astimezone().strftime("%Y-%m-%d %H:%M")
            self.display.text(f"{i}. {started} with {conv.provider}")
            match = next((m for m in conv.messages if q in m.content.lower()), None)
            if match is not None:
                self.display.text(f"   Match: {_preview(match.content, 100)}")
            self.display.text()
        self.display.separator()

    def _export(self) -> None:
        if not self.session.messages:
            self.display.info("No conversation to export")
            return
        fmt = self._ask("Export format (markdown/json/txt) [markdown]: ").lower() or "markdown"
        if fmt not in EXPORT_FORMATS:
            self.display.error(f"Unsupported format: {fmt}")
            return
        try:
            path = write_export(self.conversation(), fmt, self.export_dir or Path.cwd())
        except HistoryError as e:
            self.display.error(f"Failed to export conversation: {e}")
            return
        self.display.success(f"Conversation exported to: {path}")

    def _stats(self) -> None:
        store = self._require_history()
        if store is None:
            return
        stats = store.stats()
        self.display.separator()
        self.display.info("Conversation Statistics")
        self.display.separator()
        self.display.text(f"Total Conversations: {stats['total_conversations']}")
        self.display.text(f"Total Messages: {stats['total_messages']}")
        for title, key in (("By Provider", "providers"), ("By Model", "models")):
            if stats[key]:
                self.display.text(f"\n{title}:")
                for name, count in sorted(stats[key].items()):
                    self.display.text(f"  {name}: {count}")
        self.display.separator()

    def _reset(self) -> None:
        self.session.reset()
        self.display.success("Conversation reset")

    def _toggle_assessment(self) -> None:
        self.assess_enabled = not self.assess_enabled
        if self.assess_enabled:
            self.display.success("Prompt assessment enabled - prompts will be analyzed before sending")
        else:
            self.display.info("Prompt assessment disabled")

    def _improve_command(self, prompt: str) -> None:
        self.display.info("Analyzing prompt...")
        result = self.analyzer.analyze(prompt)
        self.display.assessment(result)
        if result.overall_score >= ALREADY_EXCELLENT:
            self.display.success("This prompt is already excellent!")
            return
        improved = self._improve(prompt, result)
        if improved and self._confirm("Use this improved prompt?"):
            self.run_turn(improved)
