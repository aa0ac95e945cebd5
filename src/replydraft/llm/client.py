"""Anthropic client factory and model configuration for reply drafting."""

from anthropic import Anthropic

COMPOSE_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 2048


def get_anthropic_client(api_key: str | None = None) -> Anthropic:
    """Create an Anthropic client.

    With no ``api_key`` the Anthropic() constructor reads ANTHROPIC_API_KEY
    from the environment automatically.

    Returns:
        Configured Anthropic client instance.
    """
    if api_key:
        return Anthropic(api_key=api_key)
    return Anthropic()
