"""
Triage Heuristics
=================

Pure functions behind the triage pipeline: label sets, keyword fallbacks,
the deterministic fallback embedding, cosine similarity, anomaly scoring,
volume forecasting and prompt construction.

Nothing here performs I/O.
"""

import math
import random
import re
from typing import Dict, Iterable, List, Optional, Sequence

from src.config import IncidentCategory, SEVERITY_LEVELS
from src.triage.domain.entities import (
    AnomalyReport,
    ClassificationResult,
    CorpusIncident,
    VolumeForecast,
)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (Python's round() is banker's)."""
    return math.floor(value + 0.5)


# ========== Label sets ==========

CATEGORY_LABELS: Dict[str, str] = {
    "infrastructure issue": "infrastructure",
    "application bug": "application",
    "security incident": "security",
    "database problem": "database",
    "general support request": "other",
}

SEVERITY_LABELS: Dict[str, str] = {
    "critical emergency": "critical",
    "high priority": "high",
    "medium priority": "medium",
    "low priority": "low",
}

TEAM_BY_CATEGORY: Dict[str, str] = {
    "infrastructure": "DevOps",
    "application": "Development",
    "security": "Security",
    "database": "Database",
    "other": "Support",
}

# Keyword lists in declaration order; earlier categories win ties
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "infrastructure": ["server", "downtime", "network", "connectivity", "hardware",
                       "deployment", "dns", "load balancer"],
    "application": ["crash", "bug", "error", "app", "feature", "performance", "slow",
                    "ui", "frontend", "backend"],
    "security": ["breach", "vulnerability", "attack", "unauthorized", "access", "exploit",
                 "injection", "malware", "phishing"],
    "database": ["database", "data", "sql", "query", "backup", "recovery", "corruption",
                 "mongo", "postgres"],
}

SEVERITY_KEYWORDS = [
    ("critical", ["outage", "breach", "down", "critical", "urgent", "emergency", "hacked"], 0.8),
    ("high", ["error", "crash", "vulnerability", "failure", "timeout", "broken"], 0.75),
    ("medium", ["slow", "issue", "problem", "bug", "delay", "intermittent"], 0.7),
]

CRITICAL_KEYWORDS = ["outage", "breach", "crash", "down", "urgent", "critical",
                     "emergency", "hacked", "ransomware", "data loss"]

SEVERITY_RANK = {"low": 1, "medium": 2, "high": 3, "critical": 4}

DEFAULT_SOLUTIONS: Dict[str, List[str]] = {
    "infrastructure": [
        "Check server logs and system health metrics",
        "Verify network connectivity and DNS resolution",
        "Review recent deployment changes or configuration updates",
    ],
    "application": [
        "Clear application cache and restart the service",
        "Check application logs for error details",
        "Verify database connections and API endpoints",
    ],
    "security": [
        "Immediately isolate affected systems",
        "Review access logs and audit trails",
        "Engage security team for incident response",
    ],
    "database": [
        "Check database connection pool and query performance",
        "Review recent schema changes or migrations",
        "Verify backup status and consider point-in-time recovery",
    ],
}

GENERIC_SOLUTIONS = [
    "Review incident details and gather more information",
    "Check related systems and dependencies",
    "Escalate to appropriate team if needed",
]


# ========== Mapping onto the incident model ==========

def route_to_team(category: str) -> str:
    return TEAM_BY_CATEGORY.get(category, "Support")


def map_category_to_domain(category: Optional[str]) -> Optional[str]:
    """
    Pipeline categories are all technical, so every one of them maps to IT.
    General support requests carry no category signal.
    """
    if category in ("infrastructure", "application", "security", "database"):
        return IncidentCategory.IT
    return None


def map_severity_to_domain(severity: Optional[str]) -> Optional[str]:
    if not severity:
        return None
    candidate = severity[:1].upper() + severity[1:].lower()
    return candidate if candidate in SEVERITY_LEVELS else None


# ========== Keyword fallbacks ==========

def classify_category_fallback(text: str) -> ClassificationResult:
    text_lower = text.lower()
    detected = "other"
    max_score = 0

    for category, keywords in CATEGORY_KEYWORDS.items():
        matches = sum(1 for keyword in keywords if keyword in text_lower)
        if matches > max_score:
            max_score = matches
            detected = category

    return ClassificationResult(
        label=detected,
        confidence=min(0.5 + max_score * 0.1, 0.9),
        ai_powered=False
    )


def classify_severity_fallback(text: str) -> ClassificationResult:
    text_lower = text.lower()
    for severity, keywords, confidence in SEVERITY_KEYWORDS:
        if any(keyword in text_lower for keyword in keywords):
            return ClassificationResult(label=severity, confidence=confidence)
    return ClassificationResult(label="low", confidence=0.65)


def fallback_embedding(text: str, dimension: int = 384) -> List[float]:
    """
    Deterministic pseudo-embedding of the first 50 lowercased tokens.

    Not semantically meaningful; identical text always yields the
    identical vector.
    """
    tokens = text.lower().split()[:50]
    total = sum(ord(token[j % len(token)]) for j, token in enumerate(tokens))
    return [math.fmod(math.sin(total + i) * math.cos(i), 1.0) for i in range(dimension)]


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine similarity over the common prefix; 0 for empty or zero vectors."""
    if not a or not b:
        return 0.0

    n = min(len(a), len(b))
    dot = norm_a = norm_b = 0.0
    for i in range(n):
        dot += a[i] * b[i]
        norm_a += a[i] * a[i]
        norm_b += b[i] * b[i]

    denominator = math.sqrt(norm_a) * math.sqrt(norm_b)
    return 0.0 if denominator == 0 else dot / denominator


# ========== Generation parsing ==========

_NUMBERED_LINE = re.compile(r"^\d+\.\s*(.+)")


def parse_solutions(text: str, limit: int = 3) -> List[str]:
    """Numbered lines longer than 10 characters, at most `limit`."""
    solutions = []
    for line in text.split("\n"):
        match = _NUMBERED_LINE.match(line)
        if match and len(match.group(1).strip()) > 10:
            solutions.append(match.group(1).strip())
    return solutions[:limit]


def default_solutions(category: Optional[str]) -> List[str]:
    return list(DEFAULT_SOLUTIONS.get(category or "", GENERIC_SOLUTIONS))


class SolutionPromptBuilder:
    """Prompts for the instruction-tuned generation model."""

    @staticmethod
    def solutions(title: str, description: str, category: Optional[str]) -> str:
        return (
            "<s>[INST] You are an IT support expert. Based on the following incident, "
            "provide 3 concise, actionable solutions.\n\n"
            f"Incident Category: {category or 'General'}\n"
            f"Title: {title}\n"
            f"Description: {description}\n\n"
            "Provide exactly 3 numbered solutions (1., 2., 3.) that are specific and "
            "actionable. Keep each solution under 100 words. [/INST]</s>"
        )

    @staticmethod
    def summary(text: str) -> str:
        return (
            "<s>[INST] Summarize this IT incident in one sentence (max 50 words):\n\n"
            f"{text}\n\nSummary: [/INST]</s>"
        )


# ========== Anomaly scoring ==========

def _word_count(text: Optional[str]) -> int:
    return len((text or "").split())


def score_anomaly(
    text: str,
    severity: Optional[str],
    recent: Iterable[CorpusIncident],
    max_critical_similarity: Optional[float] = None,
    threshold: float = 0.45
) -> AnomalyReport:
    """
    Weighted anomaly score against incidents from the trailing window.

    Signals:
        +0.30  severity rank more than 1.5 above the recent mean
        +0.15  more than 2.5x the recent mean word count
        +0.10  less than 0.2x the recent mean word count
        +0.25  critical keyword present while severity is not critical
        +0.30  more than 0.8 similar to a recent critical incident
    """
    recent = list(recent)
    score = 0.0
    flags: List[str] = []

    ranks = [SEVERITY_RANK.get((i.severity or "").lower(), 2) for i in recent]
    avg_rank = sum(ranks) / len(ranks) if ranks else 2
    current_rank = SEVERITY_RANK.get((severity or "").lower(), 2)
    if current_rank > avg_rank + 1.5:
        score += 0.3
        flags.append("Higher-than-average severity for this period")

    word_count = _word_count(text)
    if recent:
        avg_words = sum(_word_count(i.title) + _word_count(i.description) for i in recent) / len(recent)
    else:
        avg_words = 50
    if word_count > avg_words * 2.5:
        score += 0.15
        flags.append("Unusually detailed description")
    elif word_count < avg_words * 0.2:
        score += 0.1
        flags.append("Unusually brief description")

    text_lower = text.lower()
    found = [kw for kw in CRITICAL_KEYWORDS if kw in text_lower]
    if found and (severity or "").lower() != "critical":
        score += 0.25
        flags.append(f"Critical keywords detected: {', '.join(found)}")

    if max_critical_similarity is not None and max_critical_similarity > 0.8:
        score += 0.3
        flags.append(
            f"{round_half_up(max_critical_similarity * 100)}% similar to a recent critical incident"
        )

    is_anomaly = score > threshold
    return AnomalyReport(
        score=min(score, 1.0),
        is_anomaly=is_anomaly,
        flags=flags,
        recommendation=(
            "This incident shows anomalous characteristics. "
            "Consider escalating to a senior responder."
        ) if is_anomaly else None
    )


# ========== Forecasting ==========

def forecast_volume(
    daily_counts: Sequence[int],
    days: int = 7,
    rng: Optional[random.Random] = None
) -> VolumeForecast:
    """
    Project daily incident volume from per-day counts (oldest first).

    With no history the forecast is a flat 5 per day.
    """
    if not daily_counts:
        return VolumeForecast(
            forecast=[5] * days,
            trend="stable",
            avg_historical_volume=5,
            confidence=0.5
        )

    rng = rng or random.Random()
    n = len(daily_counts)
    avg = sum(daily_counts) / n
    recent = list(daily_counts[-7:])
    recent_avg = sum(recent) / len(recent)

    if recent_avg > avg * 1.1:
        trend, multiplier = "increasing", 1.05
    elif recent_avg < avg * 0.9:
        trend, multiplier = "decreasing", 0.95
    else:
        trend, multiplier = "stable", 1.0

    volatility = math.sqrt(sum((v - avg) ** 2 for v in daily_counts) / n)

    forecast = []
    for i in range(days):
        base = recent_avg * multiplier ** i
        noise = (rng.random() - 0.5) * volatility * 0.5
        forecast.append(max(1, round_half_up(base + noise)))

    return VolumeForecast(
        forecast=forecast,
        trend=trend,
        avg_historical_volume=round_half_up(avg),
        recent_average=round_half_up(recent_avg),
        volatility=round_half_up(volatility * 100) / 100,
        confidence=min(0.85, 0.5 + n / 60)
    )
