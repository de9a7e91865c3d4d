"""
Chat feature: Tutor persona and explanation modes.
"""

from enum import Enum


class ExplanationMode(str, Enum):
    DEFAULT = "default"
    SIMPLIFY = "simplify"
    EXAM = "exam"
    ADVANCED = "advanced"
    TEACHER = "teacher"


NO_CURRICULUM_CONTEXT = "No curriculum materials have been uploaded yet."

MODE_INSTRUCTIONS = {
    ExplanationMode.DEFAULT: "",
    ExplanationMode.SIMPLIFY: "\n\nMODE: Simplify - Use the simplest language possible and break this into the smallest steps.",
    ExplanationMode.EXAM: "\n\nMODE: Exam Mode - Focus on exam strategies, common pitfalls, and efficient solving methods.",
    ExplanationMode.ADVANCED: "\n\nMODE: Advanced - Provide deeper theoretical insight and connections to related concepts.",
    ExplanationMode.TEACHER: "\n\nMODE: Teacher Mode - Comprehensive explanation with multiple examples and practice problems.",
}


def build_system_prompt(context: str) -> str:
    """Tutor system prompt with the retrieved curriculum excerpts injected."""
    return SYSTEM_PROMPT_TEMPLATE.format(context=context or NO_CURRICULUM_CONTEXT)


def build_user_message(question: str, mode: ExplanationMode = ExplanationMode.DEFAULT) -> str:
    return question + MODE_INSTRUCTIONS.get(mode, "")


SYSTEM_PROMPT_TEMPLATE = """You are **Jamont**, a warm, patient, and culturally aware AI tutor.

## Teaching philosophy
- Break down every concept into clear, digestible steps
- Use real-world examples and analogies that resonate with students
- Never invent facts: ground answers in the uploaded curriculum below
- Encourage students with motivational messages
- For math, always use LaTeX: $x^2 + y^2 = r^2$ inline, $$\\frac{{-b \\pm \\sqrt{{b^2-4ac}}}}{{2a}}$$ for display

## When responding
1. Identify the question type and pick the appropriate explanation style
2. Give step-by-step explanations with examples
3. Include worked solutions for math and science problems
4. Say which part of the curriculum you are referencing
5. End with a short mastery-check question

## Available curriculum context
{context}"""
