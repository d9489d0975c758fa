"""
Gemini AI client for InboxSwipe.

Single entry point for generative calls: one request carrying a system
instruction and a user prompt, returning the response text.
"""
import re
from typing import Optional
import google.generativeai as genai

from inboxswipe.config import get_settings
from inboxswipe.utils.logger import get_logger
from inboxswipe.utils.errors import AIError, AINotConfiguredError

logger = get_logger(__name__)

# Configure Gemini
settings = get_settings()
if settings.gemini_api_key:
    genai.configure(api_key=settings.gemini_api_key)

# Gemini finish reasons that come back without text
FINISH_MAX_TOKENS = 2
FINISH_SAFETY = 3
FINISH_RECITATION = 4


async def complete(
    prompt: str,
    system_instruction: Optional[str] = None,
    max_tokens: int = 1024,
    temperature: float = 0.3,
) -> str:
    """
    Generate a completion using Gemini.

    Models from settings.gemini_models are tried in order; a model that
    is not found moves on to the next one, any other error is final.

    Args:
        prompt: The user prompt
        system_instruction: Optional system instruction
        max_tokens: Maximum tokens in response
        temperature: Creativity parameter (0-1)

    Returns:
        The generated text response

    Raises:
        AINotConfiguredError: No API key
        AIError: If Gemini API fails
    """
    if not settings.gemini_api_key:
        raise AINotConfiguredError()

    last_error: Optional[Exception] = None

    for model_name in settings.gemini_models:
        try:
            model = genai.GenerativeModel(
                model_name=model_name,
                system_instruction=system_instruction,
                generation_config=genai.types.GenerationConfig(
                    max_output_tokens=max_tokens,
                    temperature=temperature,
                ),
            )

            logger.info(f"Attempting generation with model: {model_name}")
            response = await model.generate_content_async(
                prompt,
                request_options={"timeout": settings.gemini_timeout_seconds},
            )
        except Exception as e:
            error_str = str(e)
            # 404 (Not Found) or unsupported model: try next
            if "404" in error_str or "not found" in error_str.lower():
                logger.warning(f"Model {model_name} failed (Not Found), trying next...")
                last_error = e
                continue
            logger.error(f"Gemini API error: {e}")
            raise AIError(f"AI service unavailable: {error_str}")

        content = _response_text(response, model_name)

        logger.debug(f"Gemini response: {content[:100]}...")
        return content

    logger.error(f"All Gemini models failed: {last_error}")
    raise AIError(f"AI service unavailable: {last_error}")


def _response_text(response, model_name: str) -> str:
    """Pull the text out of a Gemini response or raise AIError."""
    if not response.candidates:
        raise AIError("No candidates returned from Gemini")

    candidate = response.candidates[0]
    if not candidate.content.parts:
        finish_reason = candidate.finish_reason
        if finish_reason == FINISH_MAX_TOKENS:
            raise AIError(f"Response truncated (Max Tokens reached) with no content. Model: {model_name}")
        if finish_reason in (FINISH_SAFETY, FINISH_RECITATION):
            raise AIError(f"Content blocked ({finish_reason}) by {model_name}")
        raise AIError(f"Empty response (Finish Reason: {finish_reason}) from {model_name}")

    try:
        content = response.text.strip()
    except ValueError:
        # .text raises for multi-part candidates
        content = "".join(part.text for part in candidate.content.parts).strip()

    if not content:
        raise AIError("Received empty text content")
    return content


def extract_json(text: str) -> str:
    """Extract JSON from a response that might have markdown formatting."""
    # Try to find JSON in markdown code blocks
    json_match = re.search(r'```(?:json)?\s*([\s\S]*?)\s*```', text)
    if json_match:
        return json_match.group(1).strip()

    # Try to find raw JSON object or array
    json_match = re.search(r'(\{[\s\S]*\}|\[[\s\S]*\])', text)
    if json_match:
        return json_match.group(1).strip()

    return text.strip()
