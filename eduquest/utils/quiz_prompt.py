"""
Quiz Prompt Builder
Constructs prompts for question generation and answer analysis
"""
from typing import List, Optional

from eduquest.models.generation import AnswerPair, GenerationConfig


SYSTEM_INSTRUCTION = "Return ONLY valid JSON."

EXAMPLE_SCHEMA = """{
  "mcqs": [
    {"question": "Question text here", "options": ["Option A", "Option B", "Option C", "Option D"], "answer": "Correct option", "explanation": "Why it is correct"}
  ],
  "fill_in_the_blanks": [
    {"question": "Question with _____ blank", "answer": "correct answer", "explanation": "..."}
  ],
  "true_false": [
    {"question": "Statement to evaluate", "answer": true, "explanation": "..."}
  ],
  "short_type": [
    {"question": "Short answer question", "answer": "Expected short answer", "points": 5}
  ],
  "long_type": [
    {"question": "Long answer question", "answer": "Expected detailed answer", "points": 10}
  ]
}"""


def _counts_block(config: GenerationConfig) -> str:
    return (
        f"- {config.mcqs} multiple choice questions (MCQs, 4 options each)\n"
        f"- {config.fill_in_blanks} fill in the blank questions\n"
        f"- {config.true_false} true/false questions\n"
        f"- {config.short_type} short answer questions\n"
        f"- {config.long_type} long answer questions"
    )


def build_generation_prompt(topic: str, config: GenerationConfig) -> str:
    """
    Build a prompt for generating a question set about a topic

    Args:
        topic: Topic or free-text request from the user
        config: Number of questions per kind

    Returns:
        A complete prompt string requesting a JSON object
    """
    return f"""Generate educational assessment questions for the topic: "{topic}"

Please create exactly:
{_counts_block(config)}

STRICT FORMATTING RULES:
- Output ONLY a valid JSON object
- Do NOT include markdown code blocks (no ```)
- Do NOT include any explanation, preamble, or additional text
- "true_false" answers must be JSON booleans
- Use an empty array for any kind with zero questions

REQUIRED OUTPUT SCHEMA:
{EXAMPLE_SCHEMA}

Ensure all questions are educational, appropriate, and relevant to the topic."""


def build_context_prompt(
    context_text: str,
    config: GenerationConfig,
    user_prompt: Optional[str] = None
) -> str:
    """
    Build a prompt for generating questions from extracted file content

    Args:
        context_text: Text extracted from the uploaded files
        config: Number of questions per kind
        user_prompt: Optional instructions typed by the user

    Returns:
        A complete prompt string requesting a JSON object
    """
    prompt = "Generate educational questions based on the following context:\n\n"
    if user_prompt:
        prompt += f"User Request: {user_prompt}\n\n"
    if context_text:
        prompt += f"Text Content: {context_text}\n\n"

    return f"""{prompt}
Please generate exactly:
{_counts_block(config)}

Each question should be relevant to the provided content. Include explanations where helpful.
For MCQs, ensure one option is clearly correct.
For fill-in-the-blanks, use _____ to indicate the blank space.
Provide comprehensive answers for short and long questions.

Output ONLY a JSON object with this structure:
{EXAMPLE_SCHEMA}"""


def _numbered(pairs: List[AnswerPair]) -> str:
    return "\n".join(
        f"{i + 1}. Q: {pair.question}\n   A: {pair.answer}"
        for i, pair in enumerate(pairs)
    )


def build_analysis_prompt(
    short_questions: List[AnswerPair],
    long_questions: List[AnswerPair]
) -> str:
    """
    Build a prompt asking for a score and feedback on written answers

    The score is requested first because callers read the first number in the
    response as the score.
    """
    return f"""Analyze the following student answers and provide feedback:

Short Questions:
{_numbered(short_questions)}

Long Questions:
{_numbered(long_questions)}

Please evaluate these answers on:
- Accuracy and correctness
- Completeness of response
- Understanding demonstrated
- Whether answers appear authentic (not AI-generated)

Start your reply with the score from 0-100, then give constructive feedback in under 100 words."""


IMAGE_EXTRACTION_PROMPT = (
    "Extract and transcribe all text from this image. If it contains educational "
    "content like formulas, diagrams, or structured information, please preserve "
    "the formatting and include descriptions of visual elements that are relevant "
    "to understanding the content."
)

PDF_EXTRACTION_PROMPT = (
    "This is a PDF document. Extract all the text content from it, preserving "
    "structure and formatting where possible."
)
