from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

MAX_SCORE = 10
ISSUE_THRESHOLD = 4

RATINGS: Tuple[Tuple[int, str], ...] = (
    (90, "Outstanding"),
    (75, "Excellent"),
    (60, "Good"),
    (40, "Fair"),
)


@dataclass(frozen=True)
class Criterion:
    name: str
    score: int
    status: str
    description: str
    suggestions: Tuple[str, ...] = ()
    max_score: int = MAX_SCORE

    @property
    def is_issue(self) -> bool:
        return self.score < ISSUE_THRESHOLD


@dataclass(frozen=True)
class Assessment:
    criteria: Tuple[Criterion, ...]
    overall_score: int  # 0-100
    rating: str
    recommendations: Tuple[str, ...] = field(default=())

    @property
    def total_issues(self) -> int:
        return sum(1 for c in self.criteria if c.is_issue)


def _crit(name: str, score: int, status: str, description: str, suggestion: Optional[str] = None) -> Criterion:
    return Criterion(name, score, status, description, (suggestion,) if suggestion else ())


def _hits(text: str, markers: Iterable[str]) -> int:
    return sum(1 for m in markers if m in text)


def rating_for(score: int) -> str:
    for floor, label in RATINGS:
        if score >= floor:
            return label
    return "Poor"


# --- criteria -------------------------------------------------------------

def _clarity(prompt: str, lower: str, words: int) -> Criterion:
    name = "Clarity"
    has_punct = any(c in prompt for c in ".?!")
    quoted = prompt.count('"') >= 2 or prompt.count("'") >= 2
    if len(prompt) < 10:
        return _crit(name, 1, "Poor", "Prompt is too short to be clear", "Expand your prompt with more details")
    if len(prompt) < 30 or words < 5:
        return _crit(name, 3, "Poor", "Prompt is vague and needs more detail", "Add specific details about what you want")
    if not has_punct and words < 15:
        return _crit(name, 5, "Fair", "Prompt could be clearer with better structure",
                     "Use proper punctuation and complete sentences")
    if quoted:
        return _crit(name, 6, "Good", "Clear but has undefined terms in quotes",
                     "Define terms in quotes or remove ambiguous references")
    if words < 20:
        return _crit(name, 7, "Good", "Prompt is clear but could be more detailed")
    if words < 40:
        return _crit(name, 8, "Very Good", "Clear and well-articulated prompt")
    return _crit(name, 10, "Excellent", "Exceptionally clear with unambiguous intent")


_PURPOSE = ("so that", "in order to", "because", "to help", "my goal", "i need", "i want to",
            "the purpose", "this will", "for my", "i'm trying to", "i'm working on", "for the purpose of")
_OUTCOME = ("deliverable", "output", "result", "decision", "action", "plan", "strategy",
            "solution", "answer to", "help me decide", "determine")
_APPLICATION = ("project", "task", "work", "assignment", "problem", "use case", "scenario",
                "situation", "implement", "apply", "build")


def _relevance(prompt: str, lower: str, words: int) -> Criterion:
    name = "Relevance"
    purpose, outcome = _hits(lower, _PURPOSE), _hits(lower, _OUTCOME)
    total = purpose + outcome + _hits(lower, _APPLICATION)
    if total == 0:
        return _crit(name, 3, "Poor", "No clear goal or practical outcome specified",
                     "Add 'so that...' or explain why you need this information")
    if purpose > 0 and total == 1:
        return _crit(name, 6, "Good", "Purpose mentioned but outcome unclear",
                     "Link to a specific decision or deliverable")
    if outcome > 0 and total <= 2:
        return _crit(name, 7, "Good", "Practical outcome identified")
    if total == 3:
        return _crit(name, 8, "Very Good", "Clear goal with practical application")
    if total >= 4:
        return _crit(name, 10, "Excellent", "Explicitly linked to decision, deliverable, or actionable outcome")
    return _crit(name, 5, "Fair", "Some relevance but goal not explicit",
                 "Clarify the practical goal or outcome you're seeking")


_ACTION_VERBS = ("explain", "write", "create", "analyze", "describe", "compare", "list", "summarize",
                 "generate", "translate", "build", "design", "implement")
_SPECIFIC = ("specific", "detailed", "particular", "exactly", "precisely", "how many", "which", "what type")


def _specificity(prompt: str, lower: str, words: int) -> Criterion:
    name = "Specificity"
    action = _hits(lower, _ACTION_VERBS) > 0
    specific = _hits(lower, _SPECIFIC) > 0
    if not action and words < 10:
        return _crit(name, 1, "Poor", "Prompt lacks clear direction or specific task",
                     "Start with an action verb (e.g., 'explain', 'create', 'analyze')")
    if not action:
        return _crit(name, 3, "Poor", "Prompt needs a clearer task or objective",
                     "Specify exactly what you want (e.g., 'explain how X works')")
    if not specific and words < 20:
        return _crit(name, 5, "Fair", "Prompt has a task but could be more specific",
                     "Add details about scope, depth, or focus")
    if not specific and words < 40:
        return _crit(name, 7, "Good", "Clear task but lacks precise details",
                     "Add specific parameters or success criteria")
    if specific and words < 30:
        return _crit(name, 8, "Very Good", "Specific prompt with clear direction")
    return _crit(name, 10, "Excellent", "Highly specific and well-defined with clear parameters")


_CONTEXT = ("because", "since", "given", "considering", "context", "background", "for", "about",
            "in order to", "so that", "my goal", "i need", "i want")


def _context(prompt: str, lower: str, words: int) -> Criterion:
    name = "Context"
    n = _hits(lower, _CONTEXT)
    if n == 0 and words < 15:
        return _crit(name, 1, "Poor", "No context provided", "Add background information or context")
    if n == 0 and words < 30:
        return _crit(name, 3, "Poor", "Minimal context provided",
                     "Explain why you need this or provide relevant background")
    if n <= 1:
        return _crit(name, 5, "Fair", "Some context provided", "Add more background details for better results")
    if n == 2:
        return _crit(name, 7, "Good", "Good context provided")
    if n == 3:
        return _crit(name, 8, "Very Good", "Rich context with good background")
    return _crit(name, 10, "Excellent", "Comprehensive context with clear purpose and background")


def _structure(prompt: str, lower: str, words: int) -> Criterion:
    name = "Structure"
    if words < 5:
        return _crit(name, 1, "Poor", "Prompt too short to have meaningful structure",
                     "Expand your prompt with multiple sentences")
    punct = any(c in prompt for c in ".?!,;:")
    points = 0
    if punct:
        points += 1
    if "\n\n" in prompt:
        points += 2
    if any(m in prompt for m in ("1.", "2.", "-", "*", "1)", "2)")):
        points += 2
    if ":" in prompt and punct:
        points += 1

    if not punct and words > 10:
        return _crit(name, 2, "Poor", "Prompt lacks proper structure and punctuation",
                     "Use punctuation to separate ideas")
    if points <= 1 and words > 20:
        return _crit(name, 4, "Fair", "Basic structure but could be improved",
                     "Break into paragraphs or use lists for clarity")
    if points <= 1:
        return _crit(name, 5, "Fair", "Adequate structure for simple prompt")
    if points == 2:
        return _crit(name, 6, "Good", "Good structure with clear organization")
    if points == 3:
        return _crit(name, 7, "Good", "Well-structured with multiple elements")
    if points == 4:
        return _crit(name, 8, "Very Good", "Very well-structured prompt")
    return _crit(name, 10, "Excellent", "Excellently structured with clear organization and sections")


_CONSTRAINTS = ("limit", "maximum", "minimum", "should not", "must", "only", "within", "up to",
                "at least", "exactly", "no more than")


def _constraints(prompt: str, lower: str, words: int) -> Criterion:
    name = "Constraints"
    n = _hits(lower, _CONSTRAINTS)
    if n == 0:
        return _crit(name, 2, "Poor", "No constraints specified",
                     "Consider adding constraints (e.g., length, format, scope)")
    if n == 1:
        return _crit(name, 5, "Fair", "Minimal constraints provided",
                     "Add more specific constraints for better control")
    if n == 2:
        return _crit(name, 7, "Good", "Some constraints specified")
    if n == 3:
        return _crit(name, 8, "Very Good", "Good constraints specified")
    return _crit(name, 10, "Excellent", "Well-defined constraints with clear boundaries")


_FORMATS = ("format", "json", "markdown", "list", "table", "bullet", "numbered", "paragraph", "code",
            "style", "output as", "return as", "provide as", "structure as", "organize as", "csv", "xml", "html")


def _output_format(prompt: str, lower: str, words: int) -> Criterion:
    name = "Output Format"
    n = _hits(lower, _FORMATS)
    if n == 0:
        return _crit(name, 2, "Fair", "Output format not specified",
                     "Specify desired format (e.g., 'as a list', 'in JSON format', 'as a table')")
    if n == 1 and "format" in lower:
        return _crit(name, 6, "Good", "Format mentioned but not detailed",
                     "Be more specific about the exact format structure")
    if n == 1:
        return _crit(name, 7, "Good", "Output format specified")
    if n == 2:
        return _crit(name, 9, "Excellent", "Detailed output format specification")
    return _crit(name, 10, "Excellent", "Comprehensive output format with multiple specifications")


_ROLES = ("as a", "you are", "act as", "pretend", "imagine you", "assume you", "expert", "professional",
          "specialist", "teacher", "coach", "consultant", "acting as", "role of", "persona of")
_EXPERT_ROLES = ("expert", "professional", "specialist")
_EXPERTISE = ("expert in", "specialist in", "professional with", "experience in", "skilled in")


def _role(prompt: str, lower: str, words: int) -> Criterion:
    name = "Role/Persona"
    matched = [m for m in _ROLES if m in lower]
    extra = _hits(lower, _EXPERTISE)
    count = len(matched) + extra
    expert = extra > 0 or any(m in _EXPERT_ROLES for m in matched)
    if not matched:
        return _crit(name, 2, "Fair", "No role or persona defined",
                     "Define a role (e.g., 'as an expert in X', 'act as a teacher')")
    if not expert and count == 1:
        return _crit(name, 6, "Good", "Basic role mentioned", "Add expertise level or specific domain knowledge")
    if expert and count == 1:
        return _crit(name, 8, "Very Good", "Clear expert role defined")
    if count == 2:
        return _crit(name, 9, "Excellent", "Well-defined role with expertise")
    return _crit(name, 10, "Excellent", "Comprehensive role definition with detailed expertise")


_EXAMPLES = ("example", "such as", "like", "for instance", "e.g.", "i.e.", "for example")


def _examples(prompt: str, lower: str, words: int) -> Criterion:
    name = "Examples"
    n = _hits(lower, _EXAMPLES)
    if n == 0:
        return _crit(name, 2, "Poor", "No examples provided", "Include examples to clarify expectations")
    if n == 1:
        return _crit(name, 6, "Good", "One example provided", "Add more examples for clarity")
    if n == 2:
        return _crit(name, 8, "Very Good", "Multiple examples provided")
    return _crit(name, 10, "Excellent", "Rich examples for comprehensive clarity")


CHECKS: Tuple[Callable[[str, str, int], Criterion], ...] = (
    _clarity,
    _relevance,
    _specificity,
    _context,
    _structure,
    _constraints,
    _output_format,
    _role,
    _examples,
)


class PromptAnalyzer:
    """
    Deterministic keyword heuristics scoring a prompt on nine criteria.
    No network, no model calls.
    """

    def analyze(self, prompt: str) -> Assessment:
        lower = prompt.lower()
        words = len(prompt.split())
        criteria = tuple(check(prompt, lower, words) for check in CHECKS)

        total = sum(c.score for c in criteria)
        overall = total * 100 // sum(c.max_score for c in criteria)

        recommendations: List[str] = []
        for c in criteria:
            if c.is_issue:
                recommendations.extend(c.suggestions)
        if overall < 60:
            recommendations.append("Consider using prompt engineering best practices")
            recommendations.append("Break down complex requests into smaller parts")

        return Assessment(
            criteria=criteria,
            overall_score=overall,
            rating=rating_for(overall),
            recommendations=tuple(recommendations),
        )
