"""
Score Extraction
Turns free-text analysis feedback into a numeric score
"""
import re
from typing import Protocol


class ScoreExtractor(Protocol):
    def extract(self, feedback: str) -> int:
        ...


class FirstDigitsScoreExtractor:
    """
    Takes the first run of digits in the feedback as the score, 0 if none.

    Known false positive: feedback such as "Question 1: ... Score: 82" yields 1.
    """

    pattern = re.compile(r"(\d+)")

    def extract(self, feedback: str) -> int:
        match = self.pattern.search(feedback or "")
        return int(match.group(1)) if match else 0


def percentage_of(score: int, total_questions: int) -> int:
    if total_questions <= 0:
        return 0
    return round(score / total_questions * 100)
