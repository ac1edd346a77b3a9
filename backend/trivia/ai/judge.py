from __future__ import annotations

import json
import logging
from typing import Protocol

from openai import OpenAI


log = logging.getLogger(__name__)

# Each answer is judged on its own, so a single completion with the
# instructions up front is enough (no conversation history).
PROMPT = """
Decide whether a response to a trivia question is correct, given the question, the correct answer, and the response.
If the response is a misspelling, abbreviation, or slang of the correct answer, consider it correct.
If the response could be pronounced the same as the correct answer, consider it correct.
If the response includes the correct answer but also other incorrect answers, consider it incorrect.
Only if there is no way the response could be construed to be the correct answer should you consider it incorrect.
"""

RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "trivia_judgment",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {"correct": {"type": "boolean"}},
            "required": ["correct"],
            "additionalProperties": False,
        },
    },
}


class AutoJudge(Protocol):
    def decide(self, question: str, answer: str, response: str) -> bool | None: ...


class OpenAIJudge:
    def __init__(self, api_key: str, model: str):
        self.client = OpenAI(api_key=api_key)
        self.model = model

    def decide(self, question: str, answer: str, response: str) -> bool | None:
        """Returns the verdict, or None when the model gave no usable answer."""
        suffix = f"question: '{question}', correct: '{answer}', response: '{response}'"
        log.debug(f"[AIINPUT] {suffix}")
        result = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "developer", "content": PROMPT + suffix}],
            response_format=RESPONSE_FORMAT,
        )
        text = result.choices[0].message.content
        if not text:
            return None
        # A refusal comes back as plain prose
        try:
            verdict = json.loads(text)
        except json.JSONDecodeError:
            log.warning(f"[AIJUDGE] unparsable response: {text!r}")
            return None
        correct = verdict.get("correct") if isinstance(verdict, dict) else None
        return correct if isinstance(correct, bool) else None


def create_judge(api_key: str, model: str) -> AutoJudge | None:
    if not api_key:
        return None
    return OpenAIJudge(api_key=api_key, model=model)
