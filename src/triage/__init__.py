"""
Triage Module
=============

Bounded Context for AI-assisted incident triage.

Responsibilities:
- Predict category and severity with zero-shot classification
- Detect duplicates and suggest solutions by embedding similarity
- Score anomalies and forecast incident volume
- Degrade to keyword heuristics when the inference API is unavailable
"""

__version__ = "1.0.0"
