"""
Stageline Triage - Failure classification.
"""

from stageline.triage.classifier import FailureAnalysis, FailureClassifier, get_failure_classifier

__all__ = ["FailureAnalysis", "FailureClassifier", "get_failure_classifier"]
