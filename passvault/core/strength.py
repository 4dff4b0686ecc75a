"""Heuristic password strength scoring.

Scores are clamped to 0..4 before a label is picked, so the four bands are
Very Weak (0-1), Weak (2), Moderate (3) and Strong (4).
"""
import re
from enum import Enum

from pydantic import BaseModel

COMMON_PASSWORDS = ("password", "123456", "qwerty", "letmein", "welcome")
MAX_SCORE = 4

STRONG_MESSAGE = "Good job! This is a strong password."
EMPTY_MESSAGE = "Enter a password"

_REPEAT_RE = re.compile(r"(.)\1{2,}", re.DOTALL)


class StrengthLabel(str, Enum):
    VERY_WEAK = "Very Weak"
    WEAK = "Weak"
    MODERATE = "Moderate"
    STRONG = "Strong"


class StrengthReport(BaseModel):
    score: int
    label: StrengthLabel
    suggestions: list[str]


def label_for(score: int) -> StrengthLabel:
    if score <= 1:
        return StrengthLabel.VERY_WEAK
    if score == 2:
        return StrengthLabel.WEAK
    if score == 3:
        return StrengthLabel.MODERATE
    return StrengthLabel.STRONG


def check_password_strength(password: str) -> StrengthReport:
    if not password:
        return StrengthReport(score=0, label=StrengthLabel.VERY_WEAK, suggestions=[EMPTY_MESSAGE])

    score = 0
    suggestions: list[str] = []

    if len(password) < 8:
        suggestions.append("Make it at least 8 characters long")
    elif len(password) >= 12:
        score += 1

    checks = [
        (r"[a-z]", "Add lowercase letters"),
        (r"[A-Z]", "Add uppercase letters"),
        (r"[0-9]", "Add numbers"),
        (r"[^a-zA-Z0-9]", "Add symbols"),
    ]
    for pattern, suggestion in checks:
        if re.search(pattern, password):
            score += 1
        else:
            suggestions.append(suggestion)

    if password.lower() in COMMON_PASSWORDS:
        score = max(0, score - 2)
        suggestions.append("Avoid common passwords")

    if _REPEAT_RE.search(password):
        score = max(0, score - 1)
        suggestions.append("Avoid repeating characters")

    score = min(MAX_SCORE, score)
    return StrengthReport(
        score=score,
        label=label_for(score),
        suggestions=suggestions or [STRONG_MESSAGE],
    )
