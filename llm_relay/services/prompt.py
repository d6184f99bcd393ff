from typing import Optional


def with_default_language(query: str, language: Optional[str]) -> str:
    if not language or language.lower() == "english":
        return query
    return f"The default language is {language}. Respond in this language.\n\n{query}"


def translate_prompt(text: str, language: str) -> str:
    return (
        f"Translate the following text to {language}. ONLY return the translated text and nothing else."
        f"\n\n{text}"
    )
