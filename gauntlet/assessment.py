"""
Scoring for comprehensive assessments.

Each analysed component (the benchmark suite, every load test, every stress
test) starts at 100 and loses points for what its analysis found. The
overall score is the plain mean of the component scores.
"""
from __future__ import annotations

from typing import List

from gauntlet.models import (
    AssessmentResult,
    AssessmentScores,
    LoadAnalysis,
    Recommendation,
    StressAnalysis,
    SuiteResult,
)
from gauntlet.stats import mean

BOTTLENECK_PENALTY = 10.0
POOR_SCALING_PENALTY = 20.0
HIGH_ERROR_PENALTY = 15.0
POOR_SCALING_EFFICIENCY = 0.5
HIGH_ERROR_RATE = 10.0
CRITICAL_SCORE = 70.0
OPTIMIZE_SCORE = 85.0


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


def suite_score(suite: SuiteResult) -> float:
    analysis = suite.analysis
    score = 100.0 - BOTTLENECK_PENALTY * len(analysis.bottlenecks)
    # A single measured level has no scaling efficiency to judge.
    scaled = [
        perf
        for name, perf in analysis.performance.items()
        if len(suite.benchmarks[name].measurements) > 1
    ]
    if any(perf.scaling_efficiency < POOR_SCALING_EFFICIENCY for perf in scaled):
        score -= POOR_SCALING_PENALTY
    if any(perf.error_rate > HIGH_ERROR_RATE for perf in analysis.performance.values()):
        score -= HIGH_ERROR_PENALTY
    return _clamp(score)


def load_score(analysis: LoadAnalysis) -> float:
    score = 100.0 - BOTTLENECK_PENALTY * len(analysis.bottlenecks)
    if analysis.performance.error_rate > HIGH_ERROR_RATE:
        score -= HIGH_ERROR_PENALTY
    return _clamp(score)


def stress_score(analysis: StressAnalysis) -> float:
    """Breaking points count as the bottlenecks of a stress test."""
    return _clamp(100.0 - BOTTLENECK_PENALTY * len(analysis.breaking_points))


def score_assessment(result: AssessmentResult) -> AssessmentScores:
    """Score every component that produced an analysis; failed runs are skipped."""
    scores = AssessmentScores()
    if result.benchmarks is not None and result.benchmarks.analysis.performance:
        scores.benchmarks = suite_score(result.benchmarks)
    for name, load in result.load_tests.items():
        if load.analysis is not None:
            scores.load_tests[name] = load_score(load.analysis)
    for name, stress in result.stress_tests.items():
        if stress.analysis is not None:
            scores.stress_tests[name] = stress_score(stress.analysis)

    components = list(scores.load_tests.values()) + list(scores.stress_tests.values())
    if scores.benchmarks is not None:
        components.append(scores.benchmarks)
    scores.overall = mean(components) if components else 100.0
    return scores


def assessment_recommendations(result: AssessmentResult) -> List[Recommendation]:
    recommendations = []
    overall = result.scores.overall
    if overall < CRITICAL_SCORE:
        recommendations.append(
            Recommendation(
                type="critical_performance",
                priority="high",
                message=f"Overall performance score {overall:.1f} needs major improvement",
                actions=[
                    "Profile the slowest components end to end",
                    "Fix the reported bottlenecks first",
                    "Revisit capacity and architecture limits",
                ],
            )
        )
    elif overall < OPTIMIZE_SCORE:
        recommendations.append(
            Recommendation(
                type="performance_optimization",
                priority="medium",
                message=f"Overall performance score {overall:.1f} leaves room to optimize",
                actions=["Tune concurrency and pooling", "Review caching of hot paths"],
            )
        )
    if result.benchmarks is not None and result.benchmarks.analysis.bottlenecks:
        count = len(result.benchmarks.analysis.bottlenecks)
        recommendations.append(
            Recommendation(
                type="benchmark_issues",
                priority="medium",
                message=f"{count} benchmark bottleneck(s) found",
                actions=["Read the benchmark report", "Address each bottleneck in turn"],
            )
        )
    return recommendations
