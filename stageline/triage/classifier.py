"""
Failure Classifier.

Keyword-based classification of failed step output into the pipeline error
taxonomy (registry auth, registry push, deploy target).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from stageline.core.types import StepErrorKind


@dataclass
class FailureAnalysis:
    """Result of failure analysis."""

    kind: StepErrorKind
    confidence: float
    matched_pattern: Optional[str] = None


class FailureClassifier:
    """Classify step failures from their captured output."""

    def __init__(self) -> None:
        self._keyword_patterns = self._build_keyword_patterns()

    def _build_keyword_patterns(self) -> Dict[StepErrorKind, List[str]]:
        return {
            StepErrorKind.REGISTRY_AUTH: [
                "unauthorized: incorrect username or password",
                "unauthorized: authentication required",
                "denied: requested access to the resource is denied",
                "login attempt to",
                "no basic auth credentials",
            ],
            StepErrorKind.REGISTRY_PUSH: [
                "received unexpected http status",
                "blob upload unknown",
                "manifest invalid",
                "tag does not exist",
                "an image does not exist locally with the tag",
            ],
            StepErrorKind.DEPLOY_TARGET: [
                "cannot connect to the docker daemon",
                "is the docker daemon running",
                "port is already allocated",
                "bind for 0.0.0.0",
                "conflict. the container name",
            ],
        }

    def _keyword_match(self, text: str) -> Tuple[StepErrorKind, float, Optional[str]]:
        """
        Simple keyword-based classification.

        Returns (kind, confidence, matched_keyword).
        """
        text_lower = text.lower()

        best_kind = StepErrorKind.SHELL
        best_confidence = 0.0
        best_match = None

        for kind, keywords in self._keyword_patterns.items():
            for keyword in keywords:
                if keyword in text_lower:
                    # Longer matches = higher confidence
                    confidence = min(0.9, 0.7 + len(keyword) / 100)
                    if confidence > best_confidence:
                        best_confidence = confidence
                        best_kind = kind
                        best_match = keyword

        return best_kind, best_confidence, best_match

    def analyze(self, output: str) -> FailureAnalysis:
        """
        Classify the output of a failed step.

        Args:
            output: Captured output of the step

        Returns:
            FailureAnalysis; kind is SHELL when nothing recognisable matched
        """
        if not output or not output.strip():
            return FailureAnalysis(kind=StepErrorKind.SHELL, confidence=0.0)

        kind, confidence, match = self._keyword_match(output)
        return FailureAnalysis(kind=kind, confidence=confidence, matched_pattern=match)


_classifier: Optional[FailureClassifier] = None


def get_failure_classifier() -> FailureClassifier:
    """Get the shared classifier instance."""
    global _classifier
    if _classifier is None:
        _classifier = FailureClassifier()
    return _classifier
