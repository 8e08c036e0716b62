"""Prompt templates and prompt-kind detection.

Every template starts with a fixed leading line so a request can be
classified from its text alone (used by the scripted provider).
"""

from __future__ import annotations

from enum import Enum

TASK_LABEL = "Task: "
NO_IMPROVEMENT_PHRASE = "NO IMPROVEMENT NEEDED"
CONCLUSION_MARKERS = ("[CONCLUSION]", "final answer")

EXECUTE = "{preamble}\n\n" + TASK_LABEL + "{task}"

DECOMPOSE = """Break the following task into 2-3 numbered subtasks, one per line:
{task}"""

DECOMPOSE_RETRY = """The decomposition has problems: {reason}
Break the task down again into 2-3 numbered subtasks, one per line:
{task}"""

WORKER_RETRY = """The previous answer has problems: {reason}
Improve it:
{task}"""

REFLECT = """Reflect on whether the following output can be improved:
{result}

If it needs improvement, reply with the improved version directly. If it is already good enough, reply "{phrase}"."""

JUDGE = """Evaluate whether the following content is correct.

**Task context**:
{context}

**Content to evaluate**:
{content}

**Criteria**:
{criteria}

Answer:
(A) Correct - the content has no problems
(B) Incorrect - the content has problems

Output only A or B, then briefly explain why."""

SYNTHESIS = """Synthesize the following viewpoints (ordered by importance):

{views}

Give the complete synthesized conclusion:"""

SYNTHESIS_VIEW = "[Viewpoint {index}] (weight: {weight:.0f}%)\n{content}"

SYNTHESIS_RETRY = """The synthesized conclusion has problems: {reason}
Improve the synthesis:
{prompt}"""

QUALITY = """Rate the quality of the following content, considering completeness, accuracy, depth and usefulness.
Return only a number between 0 and 1 (for example 0.75), no other text.

Content:
{content}"""

EVOLVE = """Original task (anchor):
{original}

Last round quality: {quality:.2f}

Excerpt of last result:
{excerpt}

Identify the weaknesses and name 1-3 directions to focus on in the next round.
Format: one improvement point per line, concise."""

EVOLVED_TASK = """{original}

[Focus points]
{points}"""

STEP = """You are a rigorous reasoning expert. Solve the following problem step by step.

Rules:
1. Output exactly one reasoning step per reply
2. Format each step as: [Step N]: <your reasoning>
3. Mark the final step with [CONCLUSION]

Problem: {question}

Previous steps:
{context}

Output reasoning step {step_num}:"""

CORRECTION = """The previous reasoning step is wrong:
{error_reason}

Problem: {question}

Accepted steps so far:
{context}

Give the corrected reasoning step only, in the same format."""

STEP_SYNTHESIS = """Below is a step-by-step reasoning process. Combine it into the final answer:

{steps}

Give a complete, coherent final answer:"""

# Judgment criteria
DECOMPOSITION_CRITERIA = "Is the decomposition reasonable and complete, with nothing missing?"
RESULT_CRITERIA = "Is this answer correct, complete and sufficiently deep?"
SYNTHESIS_CRITERIA = (
    "Is this synthesized conclusion complete, accurate and deep? "
    "Does it answer the original question?"
)
STEP_CRITERIA = "Is the reasoning logically valid, are calculations accurate, is anything missing?"


class PromptKind(str, Enum):
    DECOMPOSE = "decompose"
    EXECUTE = "execute"
    JUDGE = "judge"
    REFLECT = "reflect"
    SYNTHESIZE = "synthesize"
    QUALITY = "quality"
    EVOLVE = "evolve"
    STEP = "step"
    CORRECTION = "correction"
    STEP_SYNTHESIS = "step_synthesis"


def _leading_line(template: str) -> str:
    return template.split("\n", 1)[0].split("{", 1)[0]


_LEADING_MARKERS: list[tuple[str, PromptKind]] = [
    (_leading_line(JUDGE), PromptKind.JUDGE),
    (_leading_line(QUALITY), PromptKind.QUALITY),
    (_leading_line(REFLECT), PromptKind.REFLECT),
    (_leading_line(EVOLVE), PromptKind.EVOLVE),
    (_leading_line(STEP), PromptKind.STEP),
    (_leading_line(CORRECTION), PromptKind.CORRECTION),
    (_leading_line(STEP_SYNTHESIS), PromptKind.STEP_SYNTHESIS),
]

_AGENT_MARKERS: list[tuple[str, PromptKind]] = [
    (_leading_line(DECOMPOSE), PromptKind.DECOMPOSE),
    (_leading_line(DECOMPOSE_RETRY), PromptKind.DECOMPOSE),
    (_leading_line(SYNTHESIS), PromptKind.SYNTHESIZE),
    (_leading_line(SYNTHESIS_RETRY), PromptKind.SYNTHESIZE),
]


def classify_prompt(text: str) -> PromptKind:
    """Infer which template produced ``text``."""
    stripped = text.strip()
    for marker, kind in _LEADING_MARKERS:
        if stripped.startswith(marker):
            return kind

    # Agent prompts are "<preamble>\n\nTask: <body>"
    body = stripped.split(TASK_LABEL, 1)[1] if TASK_LABEL in stripped else stripped
    for marker, kind in _AGENT_MARKERS:
        if body.startswith(marker):
            return kind
    return PromptKind.EXECUTE


def truncate(text: str, limit: int, suffix: str = "") -> str:
    """Cut ``text`` to ``limit`` characters, appending ``suffix`` if cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + suffix
