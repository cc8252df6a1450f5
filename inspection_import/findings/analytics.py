import math
from collections import Counter
from collections.abc import Iterable

from inspection_import.findings.models import (
    DEFAULT_CONFIDENCE,
    NO_ISSUES_BUCKET,
    Analytics,
    Finding,
    Severity,
)


class AnalyticsAggregator:
    """Reduces a completed finding set into distributions and mean confidence."""

    def aggregate(self, findings: Iterable[Finding]) -> Analytics:
        """Fold findings into Analytics.

        The result depends only on the multiset of findings: counts are keyed
        and sorted, and the confidence sum is exactly rounded.
        """
        items = list(findings)
        if not items:
            return self.empty()

        issue_types = Counter(f.category.value for f in items)
        severities = Counter(f.severity.value for f in items)
        confidence = math.fsum(f.confidence for f in items) / len(items)
        return Analytics(
            issue_types=dict(sorted(issue_types.items())),
            severity_distribution=dict(sorted(severities.items())),
            confidence=confidence,
        )

    @staticmethod
    def empty() -> Analytics:
        return Analytics(
            issue_types={NO_ISSUES_BUCKET: 1},
            severity_distribution={Severity.MINOR.value: 1},
            confidence=DEFAULT_CONFIDENCE,
        )
