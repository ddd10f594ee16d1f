from __future__ import annotations

import pytest

from jobmarket.job_connectors.technologies import TechnologyDetector


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Développeur Java / Spring Boot", ("Java", "Spring Boot")),
        ("Expert JavaScript et Node.js", ("JavaScript", "Node.js")),
        ("ReactJS, Vue.js ou AngularJS", ("Angular", "React", "Vue")),
        ("Backend Golang", ("Go",)),
        ("Développeur ASP.NET Core", (".NET",)),
        ("Data scientist: machine learning, PyTorch", ("Machine Learning", "PyTorch")),
        ("Conception d'une REST API en FastAPI", ("FastAPI", "REST API")),
        ("Google Workspace administrator", ()),
        ("Comptable confirmé", ()),
        ("", ()),
        (None, ()),
    ],
)
def test_detect_technologies(text, expected):
    assert TechnologyDetector().detect(text) == expected


def test_results_are_sorted_and_deduplicated():
    detected = TechnologyDetector().detect("python PYTHON Python, docker et Docker, AWS")
    assert detected == ("AWS", "Docker", "Python")


def test_custom_patterns_replace_the_defaults():
    detector = TechnologyDetector({"Rust": r"\brust\b"})
    assert detector.detect("Rust and Python") == ("Rust",)
