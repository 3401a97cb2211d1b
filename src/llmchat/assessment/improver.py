from __future__ import annotations
import logging
from typing import List

from llmchat.core.models import ChatRequest, Message
from llmchat.core.ports import Provider
from llmchat.core.stream import CancelContext
from .analyzer import Assessment

logger = logging.getLogger(__name__)

MARKER = "---IMPROVED PROMPT---"
IMPROVE_TEMPERATURE = 0.7
IMPROVE_MAX_TOKENS = 2000
WEAK_SCORE = 7

_PREAMBLES = (
    "Here is the improved prompt:",
    "Here's the improved prompt:",
    "Improved prompt:",
    "Here is an improved version:",
    "Here's an improved version:",
)

_PROCESS = """\
=== IMPROVEMENT PROCESS ===
Work through these in order:
1. CLARITY: one objective, bounded scope, defined terms
2. RELEVANCE: add 'so that...' to tie the ask to a goal or decision
3. SPECIFICITY: add format, length, scope and success criteria
4. CONTEXT: add audience, domain and purpose
5. STRUCTURE: use sections when the ask has several parts
6. CONSTRAINTS: add limits on length, time, tools or exclusions
7. OUTPUT FORMAT: name the exact shape (bullets, JSON, table...)
8. ROLE/PERSONA: give an expertise level when it helps
9. EXAMPLES: add sample inputs or outputs

=== REWRITE CHECKLIST ===
- Clear objective: a single, testable ask
- Context: who it is for and why
- Constraints: word limit, time, scope
- Format: exact structure
- Success criteria: what a good answer looks like
- Relevance: linked to a practical outcome

=== OUTPUT REQUIREMENTS ===
1. Start with a one-sentence summary of the key fixes
2. Then give the improved prompt as one copy-pastable block
3. The improved prompt must be self-contained, start with an action verb
   or a role, carry all context inline, stay under 200 words unless the
   task needs more, and use bullets or numbers when it has several parts
4. No commentary or analysis after the prompt
5. No phrases like 'here is' or 'improved version:'

Format your response EXACTLY like this:
Key fixes: [one sentence]

---IMPROVED PROMPT---
[the improved prompt]
"""


def build_improvement_prompt(original: str, assessment: Assessment) -> str:
    lines: List[str] = [
        "You are a prompt engineering expert. Rewrite the weak prompt below into "
        "an excellent, copy-pastable prompt.",
        "",
        "=== ORIGINAL PROMPT ===",
        original,
        "",
        "=== ASSESSMENT (0-10 scale) ===",
        f"Overall Score: {assessment.overall_score}/100 ({assessment.rating})",
        "",
        "Weaknesses to fix:",
    ]
    for c in assessment.criteria:
        if c.score < WEAK_SCORE:
            lines.append(f"- {c.name}: {c.score}/10 ({c.status}) - {c.description}")
            if c.suggestions:
                lines.append(f"  Fix: {c.suggestions[0]}")
    lines.append("")
    return "\n".join(lines) + "\n" + _PROCESS


def extract_improved_prompt(response: str) -> str:
    text = response.strip()
    idx = text.find(MARKER)
    if idx != -1:
        text = text[idx + len(MARKER):].strip()

    if text.startswith("Key fixes:"):
        _, nl, rest = text.partition("\n")
        if nl:
            text = rest.strip()

    for prefix in _PREAMBLES:
        if text.startswith(prefix):
            text = text[len(prefix):].strip()
            break

    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class PromptImprover:
    """Ask the active provider to rewrite a prompt using its assessment."""

    def __init__(self, provider: Provider):
        self.provider = provider

    def improve(self, original: str, assessment: Assessment) -> str:
        request = ChatRequest.build(
            [Message.user(build_improvement_prompt(original, assessment))],
            temperature=IMPROVE_TEMPERATURE,
            max_tokens=IMPROVE_MAX_TOKENS,
            stream=False,
        )
        logger.debug("requesting improved prompt from %s", self.provider.name)
        response = self.provider.send_message(CancelContext(), request)
        return extract_improved_prompt(response.content)


PROMPT_GUIDE = """\
# Prompt Engineering Best Practices

## The prompt formula

1. **Role / persona**: say who the model should be.
   *"You are a senior Python developer."*
2. **Task**: state the ask with an action verb (explain, create, analyze, compare, list).
   *"Explain how decorators work in Python."*
3. **Context**: give the background and why you need it.
   *"I'm building a web API and need to understand middleware."*
4. **Constraints**: length, scope and restrictions.
   *"Keep it under 200 words. Don't use external libraries."*
5. **Output format**: *"as a bulleted list"*, *"in JSON format"*, *"step by step"*.
6. **Examples**: show what good output looks like.
7. **Tone / style**: *"Explain like I'm 5"* or *"Use technical terminology"*.

## Before and after

- Weak: `explain python decorators`
- Strong: `You are an experienced Python instructor. Explain how decorators work
  to someone with basic programming knowledge. Include a simple definition, how
  they work under the hood, 2-3 practical examples and common use cases. Use
  clear headings and code examples. Keep it under 500 words.`

## Quick tips

- Be specific: "Write a function" becomes "Write a Python function that..."
- Add context: "Debug this" becomes "Debug this React component that..."
- Set limits: "Explain" becomes "Explain in simple terms, max 3 paragraphs"
- Ask for a shape: "List" becomes "List as a numbered list with short descriptions"

## Templates

- **Code review**: Review this [language] code for [performance, security, style].
  Give specific suggestions with examples.
- **Explanation**: Explain [concept] to someone with [experience level].
  Cover [aspects]. Keep it [length].
- **Creation**: Create a [thing] that [requirements]. It should [constraints].
  Format as [format].
- **Analysis**: Analyze this [content] for [aspects]. Provide [deliverable] in [format].
"""


def prompt_guide() -> str:
    return PROMPT_GUIDE
