"""Keyword heuristic scoring of a single interview answer."""

from __future__ import annotations

from dataclasses import dataclass, field


TECHNICAL_KEYWORDS = (
    "react", "javascript", "python", "java", "node", "database", "api", "algorithm",
    "data structure", "framework", "library", "testing", "debugging", "optimization",
    "performance", "scalability", "architecture", "design pattern", "git", "docker",
    "aws", "cloud", "frontend", "backend", "fullstack", "mobile", "web", "ui", "ux",
)

BEHAVIORAL_KEYWORDS = (
    "team", "collaboration", "communication", "leadership", "mentoring", "problem",
    "challenge", "solution", "experience", "project", "deadline", "pressure",
    "learning", "growth", "improvement", "feedback", "conflict", "resolution",
    "initiative", "responsibility", "achievement", "success", "failure", "lesson",
)

PROBLEM_SOLVING_KEYWORDS = (
    "design", "system", "approach", "methodology", "strategy", "plan", "implement",
    "solve", "analyze", "evaluate", "optimize", "improve", "scale", "handle",
    "manage", "coordinate", "integrate", "deploy", "maintain", "monitor", "debug",
)

REASONING_MARKERS = ("because", "since", "as")
EXAMPLE_MARKERS = ("example", "instance", "case")
GROWTH_MARKERS = ("learned", "improved", "grew")


@dataclass
class ResponseAnalysis:
    score: int
    feedback: str
    category: str
    confidence: float
    keywords: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


def _matches(text: str, words: tuple[str, ...]) -> list[str]:
    return [w for w in words if w in text]


def _feedback(score: int) -> str:
    if score >= 80:
        return "Excellent response! You provided a comprehensive answer with good examples and reasoning."
    if score >= 60:
        return "Good response. You covered the main points well. Consider adding more specific examples."
    if score >= 40:
        return "Fair response. Try to provide more detail and specific examples to strengthen your answer."
    return "Your response could be more detailed. Consider providing specific examples and explaining your reasoning."


def analyze_response(text: str, interview_type: str | None = None, level: str | None = None) -> ResponseAnalysis:
    response = text.strip().lower()
    if not response:
        raise ValueError("response is empty")

    technical = _matches(response, TECHNICAL_KEYWORDS)
    behavioral = _matches(response, BEHAVIORAL_KEYWORDS)
    problem_solving = _matches(response, PROBLEM_SOLVING_KEYWORDS)
    keywords = technical + behavioral + problem_solving

    if len(technical) > len(behavioral) and len(technical) > len(problem_solving):
        category = "technical"
    elif len(problem_solving) > len(behavioral):
        category = "problem-solving"
    else:
        category = "behavioral"

    score = 50
    for threshold, points in ((100, 10), (200, 10), (300, 5)):
        if len(response) > threshold:
            score += points
    score += min(len(keywords) * 5, 20)
    for markers in (REASONING_MARKERS, EXAMPLE_MARKERS, GROWTH_MARKERS):
        if _matches(response, markers):
            score += 10
    if interview_type == category:
        score += 15

    suggestions = []
    if len(response) < 100:
        suggestions.append("Provide more detail in your response")
    if len(keywords) < 3:
        suggestions.append("Include more relevant technical or behavioral keywords")
    if "example" not in response and "instance" not in response:
        suggestions.append("Add specific examples to support your points")
    if "because" not in response and "since" not in response:
        suggestions.append("Explain your reasoning and thought process")
    if level == "senior" and score < 70:
        suggestions.append("As a senior-level candidate, provide more strategic and leadership-focused insights")
    if level == "junior" and score > 80:
        suggestions.append("Great job! Consider how you can apply this knowledge in a team setting")

    score = min(score, 100)
    return ResponseAnalysis(
        score=score,
        feedback=_feedback(score),
        category=category,
        confidence=min(score / 100, 0.95),
        keywords=keywords,
        suggestions=suggestions,
    )
