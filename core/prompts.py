# core/prompts.py

from __future__ import annotations

import textwrap
from typing import Iterable

KIND_DESCRIPTIONS = {
    "spelling": "spelling mistakes",
    "grammar": "grammatical errors",
    "clarity": "unclear or confusing sentences",
    "conciseness": "verbose or wordy phrases",
    "passive-voice": "passive voice constructions",
    "tone": "wording whose tone does not fit the audience",
    "cta": "weak or missing calls to action",
}


def build_analysis_prompt(text: str, kinds: Iterable[str]) -> str:
    """Compose the prompt asking for suggestions of the given kinds.

    Args:
        text: Text to analyse
        kinds: Suggestion kinds to look for

    Returns:
        Prompt string for a single user message
    """
    requested = "\n".join(
        f"- {kind}: find and correct {KIND_DESCRIPTIONS.get(kind, kind + ' issues')}"
        for kind in kinds
    )
    allowed = " | ".join(f'"{kind}"' for kind in KIND_DESCRIPTIONS)

    return textwrap.dedent(
        """\
        You are a professional writing assistant. Analyze the following text for various issues.

        Focus on these specific areas:
        {requested}

        Return your response as a single JSON object with a key "suggestions" containing an array of suggestion objects. Each object must have this exact structure:
        {{
          "suggestions": [
            {{
              "type": {allowed},
              "originalText": "the exact, original text with the issue",
              "suggestedText": "the improved or corrected version",
              "explanation": "a brief explanation of why the change is better",
              "confidence": number (0-100),
              "context": "a longer phrase (10-20 words) that includes the originalText to help locate it precisely"
            }}
          ]
        }}

        Text to analyze:
        "{text}"

        Important requirements:
        - Return ONLY a valid JSON object. Do not include any markdown formatting or code blocks.
        - For "originalText", you MUST use the exact text from the source.
        - For "context", include 8-15 words before and after the originalText. This is crucial for words that appear multiple times.
        - If no issues are found, return {{ "suggestions": [] }}.
        """
    ).format(requested=requested, allowed=allowed, text=text)


def build_grammar_stream_prompt(text: str, level: str = "full") -> str:
    if level == "spelling":
        task = "Your ONLY task is to identify spelling errors in the text below."
    else:
        task = "Your ONLY task is to identify grammar and spelling errors in the text below."

    return textwrap.dedent(
        """\
        You are a fast and efficient writing assistant. {task}

        For each error you find, output a single, complete JSON object on a new line. Do not wrap them in an array or a parent object. Each object must have this exact structure:
        {{
          "type": "spelling" | "grammar",
          "originalText": "the exact text with the error",
          "suggestedText": "the corrected version",
          "explanation": "a brief explanation of the error"
        }}

        Text to analyze:
        "{text}"

        IMPORTANT:
        - Only identify definite errors. Do not suggest stylistic changes.
        - Each JSON object MUST be on its own line.
        - If no errors are found, return nothing.
        """
    ).format(task=task, text=text)


REGION_GUIDANCE = {
    "subject": """
        CONTEXT: This is an EMAIL SUBJECT LINE. Apply these additional criteria:
        - Keep under 60 characters for mobile optimization
        - Create curiosity or urgency without being clickbait
        - Avoid spam trigger words (FREE, URGENT, !!!, etc.)
        - Make it specific and actionable""",
    "intro": """
        CONTEXT: This is the OPENING/INTRO section. Apply these additional criteria:
        - Hook the reader immediately with a compelling opening
        - Establish relevance to the reader's interests/needs
        - Set clear expectations for what follows
        - Avoid generic greetings""",
    "cta": """
        CONTEXT: This is a CALL-TO-ACTION section. Apply these additional criteria:
        - Use strong action verbs (Get, Start, Join, Discover, etc.)
        - Create urgency without being pushy
        - Be specific about what happens next
        - Keep button text under 5 words when possible""",
    "body": """
        CONTEXT: This is BODY CONTENT. Apply these additional criteria:
        - Maintain reader engagement throughout
        - Break up long paragraphs for scannability
        - Transition smoothly between ideas
        - Build toward the call-to-action naturally""",
    "closing": """
        CONTEXT: This is the CLOSING section. Apply these additional criteria:
        - Reinforce the main message
        - Include an appropriate sign-off
        - Maintain a professional but warm tone""",
}


def build_region_prompt(text: str, kinds: Iterable[str], region: str) -> str:
    """Analysis prompt for one region of an email, with criteria for that region."""
    guidance = textwrap.dedent(REGION_GUIDANCE.get(region, ""))
    return build_analysis_prompt(text, kinds) + guidance
