"""
AI Client - one entry point for the AI backends used by the daily brief.
Supports: Claude API, DeepSeek Chat, DeepSeek Reasoner.
"""

import logging
from typing import Optional

import requests
from anthropic import Anthropic

from inboxhub.config import config

logger = logging.getLogger(__name__)

MODEL_CHOICES = ['claude', 'deepseek-chat', 'deepseek-reasoner']

CLAUDE_MODEL = "claude-sonnet-4-5"
DEFAULT_SYSTEM = "You are a concise executive assistant summarising a user's inbox, deadlines and contacts."


# =============================================================================
# CLAUDE
# =============================================================================

def call_claude(prompt: str, system: Optional[str] = None, max_tokens: int = 2000) -> str:
    """Call Claude API. Returns generated text."""
    if not config.ANTHROPIC_API_KEY:
        raise ValueError("ANTHROPIC_API_KEY not set in environment")

    client = Anthropic(api_key=config.ANTHROPIC_API_KEY)

    try:
        logger.debug(f"Calling Claude API ({CLAUDE_MODEL})")
        message = client.messages.create(
            model=CLAUDE_MODEL,
            max_tokens=max_tokens,
            system=system or DEFAULT_SYSTEM,
            messages=[{"role": "user", "content": prompt}],
        )
        return message.content[0].text

    except Exception as e:
        logger.error(f"Claude API error: {e}")
        raise RuntimeError(f"Failed to call Claude API: {e}")


# =============================================================================
# DEEPSEEK
# =============================================================================

def call_deepseek(
    prompt: str,
    model: str = 'deepseek-chat',
    system: Optional[str] = None,
    max_tokens: int = 2000
) -> str:
    """Call DeepSeek (OpenAI-compatible chat completions). Returns generated text."""
    if not config.DEEPSEEK_API_KEY:
        raise ValueError("DEEPSEEK_API_KEY not set in environment")

    messages = [{"role": "system", "content": system or DEFAULT_SYSTEM}]
    messages.append({"role": "user", "content": prompt})

    try:
        logger.debug(f"Calling DeepSeek API with model {model}")
        response = requests.post(
            f"{config.DEEPSEEK_BASE_URL}/chat/completions",
            json={"model": model, "messages": messages, "max_tokens": max_tokens, "stream": False},
            headers={"Authorization": f"Bearer {config.DEEPSEEK_API_KEY}"},
            timeout=(10, 120),
        )
        response.raise_for_status()
        return response.json()['choices'][0]['message']['content']

    except requests.exceptions.RequestException as e:
        logger.error(f"DeepSeek API error: {e}")
        raise RuntimeError(f"Failed to call DeepSeek API: {e}")
    except (KeyError, IndexError) as e:
        logger.error(f"DeepSeek response parse error: {e}")
        raise RuntimeError(f"Unexpected DeepSeek response format: {e}")


# =============================================================================
# ROUTER
# =============================================================================

def call_ai(prompt: str, model: str, system: Optional[str] = None, max_tokens: int = 2000) -> str:
    """
    Send a prompt to the backend named by model.

    Args:
        prompt: User prompt text
        model: One of MODEL_CHOICES
        system: Optional system prompt
        max_tokens: Max tokens to generate
    """
    if model == 'claude':
        return call_claude(prompt, system=system, max_tokens=max_tokens)
    if model in ('deepseek-chat', 'deepseek-reasoner'):
        return call_deepseek(prompt, model=model, system=system, max_tokens=max_tokens)
    raise ValueError(f"Unknown AI model '{model}'. Choose from: {', '.join(MODEL_CHOICES)}")
