"""
Provider-agnostic LLM factory.

Switch LLM provider by changing env vars (no code changes needed):
  LLM_PROVIDER=gemini | openai | groq
  LLM_MODEL=gemini-2.5-flash | gpt-4o-mini | llama-3.1-70b-versatile
  LLM_API_KEY=your-key

Used for grounded answers in chat and for optional keyword enrichment
during ingestion.
"""

from langchain_core.language_models import BaseChatModel

from app.config import get_settings


def create_llm(temperature: float | None = None, max_tokens: int | None = None) -> BaseChatModel:
    """Create an LLM instance based on env configuration.

    Args:
        temperature: Override for LLM_TEMPERATURE (keyword extraction wants 0).
        max_tokens: Override for LLM_MAX_TOKENS.

    Returns:
        BaseChatModel: A LangChain-compatible chat model.

    Raises:
        ValueError: If provider is not supported.
    """
    settings = get_settings()
    temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
    max_tokens = settings.LLM_MAX_TOKENS if max_tokens is None else max_tokens

    match settings.LLM_PROVIDER:
        case "gemini":
            from langchain_google_genai import ChatGoogleGenerativeAI

            return ChatGoogleGenerativeAI(
                model=settings.LLM_MODEL,
                google_api_key=settings.LLM_API_KEY,
                temperature=temperature,
                max_output_tokens=max_tokens,
            )

        case "openai":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(
                model=settings.LLM_MODEL,
                api_key=settings.LLM_API_KEY,
                temperature=temperature,
                max_tokens=max_tokens,
            )

        case "groq":
            from langchain_groq import ChatGroq

            return ChatGroq(
                model=settings.LLM_MODEL,
                api_key=settings.LLM_API_KEY,
                temperature=temperature,
                max_tokens=max_tokens,
            )

        case _:
            raise ValueError(
                f"Unknown LLM provider: '{settings.LLM_PROVIDER}'. "
                f"Supported: gemini, openai, groq"
            )


def message_text(content) -> str:
    """Flatten a chat model response content (str or content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(item["text"])
            elif isinstance(item, str):
                parts.append(item)
        return "\n".join(parts)
    return str(content)
