import time
import random
from typing import Dict, Optional
from google import genai
from google.genai import errors, types

# HTTP codes the service uses for overload and quota; anything else fails fast
RETRYABLE_CODES = (429, 503)

_clients: Dict[str, genai.Client] = {}

def key_fingerprint(api_key: str) -> str:
    """Short, non-secret label for a key, safe to print"""
    return f"...{api_key[-4:]}" if len(api_key) > 8 else "***"

def get_gemini_client(api_key: str) -> genai.Client:
    """Get or create the Gemini client for an API key"""
    if not api_key:
        raise ValueError("Gemini API key is required")
    client = _clients.get(api_key)
    if client is None:
        client = genai.Client(api_key=api_key)
        _clients[api_key] = client
        print(f"Gemini client created for key {key_fingerprint(api_key)}")
    return client

def is_retryable(error: Exception) -> bool:
    if isinstance(error, errors.APIError):
        return error.code in RETRYABLE_CODES
    # Transport wrappers that only carry the status in their message
    text = str(error)
    return "503" in text or "UNAVAILABLE" in text or "429" in text

def generate_content_with_retry(
    api_key: str,
    model: str,
    contents: list,
    config: Optional[types.GenerateContentConfig] = None,
    retries: int = 5,
    initial_delay: float = 2.0,
    source: str = "default",
):
    """
    Call Gemini generate_content with exponential backoff for overload/quota errors.

    `source` names where the key came from (user override or environment
    default) so a quota failure can be traced to the credential in use. A key
    rejected outright (401/403) is dropped from the client cache, so a
    corrected override gets a fresh client.
    """
    client = get_gemini_client(api_key)
    label = f"{source} key {key_fingerprint(api_key)}"
    delay = initial_delay

    for attempt in range(retries):
        try:
            return client.models.generate_content(
                model=model,
                contents=contents,
                config=config
            )
        except Exception as e:
            if isinstance(e, errors.APIError) and e.code in (401, 403):
                _clients.pop(api_key, None)
                print(f"Gemini rejected the {label}: {e}")
                raise
            if not is_retryable(e) or attempt == retries - 1:
                raise

            wait_time = delay + random.uniform(0, 1)
            print(f"Gemini API busy for {label}. Retrying in {wait_time:.2f}s... (Attempt {attempt + 1}/{retries})")
            time.sleep(wait_time)
            delay *= 2
