"""Prompt template library for provider-backed stages.

Responsibilities:
- Centralize prompt construction for fluid rewriting and canonical-text fetching.
- Keep prompts deterministic for a given chapter, language, and source text.
"""

from __future__ import annotations

from ..models.datatypes import VerseSet

_REWRITE_LANGUAGE_NAMES = {
    "pt": "Português do Brasil",
    "en": "English",
    "es": "Español",
}
_TRANSLATION_NAMES = {
    "pt": "Portuguese (Almeida)",
    "en": "English (KJV or NIV)",
    "es": "Spanish (Reina-Valera)",
}


def format_verses(verses: VerseSet) -> str:
    """Render verses as `N. text` lines used as generation grounding."""

    return "\n".join(f"{verse.number}. {verse.text}" for verse in verses)


class PromptLibrary:
    """Build prompt strings for supported provider tasks."""

    def fluid_system_prompt(self) -> str:
        """Return the system prompt for the fluid chapter rewrite."""

        return (
            "Atue como um especialista em teologia e linguística. "
            "Responda apenas com JSON válido, sem comentários."
        )

    def fluid_rewrite_prompt(
        self,
        *,
        book_name: str,
        chapter: int,
        language: str,
        verses: VerseSet,
    ) -> str:
        """Return the rewrite prompt embedding the canonical verses and target language."""

        language_name = _REWRITE_LANGUAGE_NAMES.get(language, language)
        if verses:
            grounding = (
                "USE O SEGUINTE TEXTO ORIGINAL COMO BASE:\n"
                "---\n"
                f"{format_verses(verses)}\n"
                "---\n\n"
            )
        else:
            grounding = ""
        return (
            f"Seu objetivo é reescrever o capítulo {chapter} do livro de {book_name} da "
            f"Bíblia para uma linguagem moderna e fluida, em {language_name}.\n\n"
            f"{grounding}"
            "Regras:\n"
            "1. Mantenha a fidelidade teológica absoluta ao texto bíblico.\n"
            "2. Substitua termos arcaicos por equivalentes modernos.\n"
            "3. Organize o texto em parágrafos lógicos e fluidos (narrativa), "
            "NÃO em versículos isolados.\n"
            "4. Destaque em **negrito** (Markdown) as frases teologicamente mais importantes.\n"
            "5. O texto deve ser envolvente, como um livro de literatura.\n"
            "6. Retorne APENAS um JSON válido com a seguinte estrutura:\n"
            '{"title": "Título do Capítulo", "paragraphs": ["parágrafo 1...", "parágrafo 2..."]}'
        )

    def verses_system_prompt(self) -> str:
        """Return the system prompt for canonical verse retrieval."""

        return "You are a precise Bible text assistant. Return only valid JSON."

    def verses_prompt(self, *, book_name: str, chapter: int, language: str) -> str:
        """Return the prompt asking for a chapter's canonical verses."""

        translation = _TRANSLATION_NAMES.get(language, language)
        return (
            f"Provide the full text of the Bible book of {book_name} chapter {chapter} "
            f"in {translation}. Return ONLY valid JSON shaped as "
            '{"verses": [{"number": 1, "text": "..."}]}.'
        )
