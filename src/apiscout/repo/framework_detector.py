from __future__ import annotations

from collections import Counter

from apiscout.repo.scanner import _file_contains_any

_SIGNALS: dict[str, tuple[int, list[str]]] = {
    "nest": (3, ["@nestjs/common", "@nestjs/core", "@Controller("]),
    "fastify": (
        3,
        ["require('fastify')", 'require("fastify")', "from 'fastify'", 'from "fastify"', "fastify.route("],
    ),
    "express": (
        2,
        ["require('express')", 'require("express")', "from 'express'", 'from "express"', "express.Router("],
    ),
}


def detect_js_framework(source_files: list[str], sample_limit: int = 200) -> tuple[str, float]:
    """
    Heuristic detection over file contents. Deterministic, no parsing.
    Returns (framework tag, confidence); defaults to express when nothing matches.
    """
    sample = source_files[:sample_limit]
    scores = Counter()

    for p in sample:
        for framework, (weight, needles) in _SIGNALS.items():
            if _file_contains_any(p, needles):
                scores[framework] += weight

    if not scores:
        return ("express", 0.2)

    framework, top = scores.most_common(1)[0]
    total = sum(scores.values())
    confidence = max(0.3, min(0.99, top / max(total, 1)))
    return (framework, confidence)
