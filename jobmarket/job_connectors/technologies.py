from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Pattern, Tuple

# Canonical technology name -> pattern matched against title + description.
TECHNOLOGY_PATTERNS: Dict[str, str] = {
    "React": r"\breact(?:js|\.js)?\b",
    "Vue": r"\bvue(?:js|\.js)?\b",
    "Angular": r"\bangular(?:js)?\b",
    "Node.js": r"\bnode(?:\.js|js)?\b",
    "TypeScript": r"\btypescript\b",
    "JavaScript": r"\bjavascript\b",
    "Python": r"\bpython\b",
    "Java": r"\bjava\b(?!script)",
    "Spring Boot": r"\bspring\s*boot\b",
    "Django": r"\bdjango\b",
    "FastAPI": r"\bfastapi\b",
    ".NET": r"(?:\b(?:dotnet|asp\.?net)\b|\.net\b)",
    "Go": r"\b(?:golang|go)\b(?!ogle|od)",
    "PHP": r"\bphp\b",
    "Docker": r"\bdocker\b",
    "Kubernetes": r"\bkubernetes\b",
    "AWS": r"\baws\b",
    "Azure": r"\bazure\b",
    "GCP": r"\bgcp\b",
    "PostgreSQL": r"\bpostgresql\b",
    "MongoDB": r"\bmongodb\b",
    "Redis": r"\bredis\b",
    "GraphQL": r"\bgraphql\b",
    "REST API": r"\brest\s*api\b",
    "Machine Learning": r"\b(?:machine\s*learning|ml)\b",
    "TensorFlow": r"\btensorflow\b",
    "PyTorch": r"\bpytorch\b",
}


class TechnologyDetector:
    def __init__(self, patterns: Optional[Dict[str, str]] = None) -> None:
        source = patterns if patterns is not None else TECHNOLOGY_PATTERNS
        self._patterns: Iterable[Tuple[str, Pattern[str]]] = [
            (name, re.compile(pattern, re.IGNORECASE)) for name, pattern in source.items()
        ]

    def detect(self, text: Optional[str]) -> Tuple[str, ...]:
        """Sorted, de-duplicated technology names found in ``text``."""
        if not text:
            return ()
        found = {name for name, pattern in self._patterns if pattern.search(text)}
        return tuple(sorted(found))
