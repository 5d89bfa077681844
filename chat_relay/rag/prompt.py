"""
Prompt Template Module

Turns the caller's knowledge-base snippets, the recent conversation and the
current question into the message list sent to the completion provider.

Message layout:
- System message: persona/instruction template with the rendered articles
- History: the retained user/assistant turns, oldest first
- User message: the current question

Size limits are hard cuts and are part of the contract: at most 5 articles,
2800 characters of body per article, the last 10 history entries and 2000
characters per retained turn.

Variables in templates:
{articles} - Rendered knowledge base articles
{index} - 1-based article position
{title} - Article title
{body} - Article body
"""

from pathlib import Path
from typing import List, Optional, Sequence

from chat_relay.core.config import settings
from chat_relay.core.logging import get_logger
from chat_relay.models.request import ChatMessage, ChatMessageRole, HistoryTurn, KnowledgeItem
from chat_relay.utils.text import fill_placeholders, placeholder_names, truncate

logger = get_logger(__name__)

MAX_CONTEXT_ITEMS = 5
MAX_BODY_LENGTH = 2800
MAX_HISTORY = 10
MAX_HISTORY_CONTENT_LENGTH = 2000

ARTICLE_SEPARATOR = "\n\n---\n\n"
NO_ARTICLES_PLACEHOLDER = "No articles were provided."
DEFAULT_ARTICLE_TITLE = "Article"

DEFAULT_PERSONA_PATH = Path(__file__).parent / "templates" / "persona.txt"


class PromptTemplate:
    """Base prompt template"""

    def __init__(self, template: str, description: str = ""):
        """
        Initialize prompt template.

        Args:
            template: Template string with {variable} placeholders
            description: Description of the template
        """
        self.template = template
        self.description = description

    def format(self, **kwargs) -> str:
        """Fill {variable} placeholders; other braces in the text stay literal"""
        missing = [name for name in self.get_variables() if name not in kwargs]
        if missing:
            logger.warning(f"Missing variable(s) in template: {missing}")
        return fill_placeholders(self.template, {k: str(v) for k, v in kwargs.items()})

    def get_variables(self) -> List[str]:
        """Extract variable names from template"""
        return placeholder_names(self.template)

    @classmethod
    def from_file(cls, path, description: str = "") -> "PromptTemplate":
        """Load a template from a UTF-8 text file"""
        text = Path(path).read_text(encoding="utf-8").rstrip("\n")
        return cls(template=text, description=description or f"Loaded from {path}")


class PromptTemplates:
    """Collection of prompt templates"""

    # One rendered knowledge base article
    ARTICLE_TEMPLATE = PromptTemplate(
        template="## [Article {index}] {title}\n{body}",
        description="Template for a single knowledge base article"
    )

    @staticmethod
    def persona(path: Optional[str] = None) -> PromptTemplate:
        """Persona/instruction template: the override path if given, else the bundled one"""
        return PromptTemplate.from_file(
            path or DEFAULT_PERSONA_PATH,
            description="Assistant persona, style rules and article slot"
        )


class PromptBuilder:
    """Builder for the provider message list"""

    def __init__(self, persona_template: Optional[PromptTemplate] = None):
        """
        Initialize prompt builder.

        Args:
            persona_template: Template with an {articles} slot. Defaults to the
                bundled persona (or PERSONA_TEMPLATE_PATH when set).
        """
        self.persona_template = persona_template or PromptTemplates.persona(settings.PERSONA_TEMPLATE_PATH)
        self.logger = get_logger(__name__)

    def render_articles(self, items: Sequence[KnowledgeItem]) -> str:
        """Render the first MAX_CONTEXT_ITEMS articles, joined by a visible separator."""
        blocks = []
        for i, item in enumerate(list(items)[:MAX_CONTEXT_ITEMS], 1):
            blocks.append(PromptTemplates.ARTICLE_TEMPLATE.format(
                index=i,
                title=item.title or DEFAULT_ARTICLE_TITLE,
                body=truncate(item.body, MAX_BODY_LENGTH),
            ))
        return ARTICLE_SEPARATOR.join(blocks)

    def build_system_prompt(
        self,
        items: Sequence[KnowledgeItem],
        persona_template: Optional[PromptTemplate] = None
    ) -> str:
        """
        Build the system prompt.

        Args:
            items: Knowledge base articles, best match first
            persona_template: Optional template overriding the builder's own

        Returns:
            Persona text with the articles (or the no-articles sentence) filled in
        """
        template = persona_template or self.persona_template
        articles = self.render_articles(items)
        return template.format(articles=articles or NO_ARTICLES_PLACEHOLDER)

    def build_messages(
        self,
        system_prompt: str,
        question: str,
        history: Sequence[HistoryTurn] = ()
    ) -> List[ChatMessage]:
        """
        Build the ordered message list.

        The history window is applied before filtering roles, so entries with
        unknown roles still count towards the last MAX_HISTORY.
        """
        messages = [ChatMessage(role=ChatMessageRole.SYSTEM, content=system_prompt)]

        recent = list(history)[-MAX_HISTORY:] if history else []
        for turn in recent:
            if not turn.is_conversational:
                continue
            messages.append(ChatMessage(
                role=ChatMessageRole(turn.role),
                content=truncate(turn.content, MAX_HISTORY_CONTENT_LENGTH),
            ))

        messages.append(ChatMessage(role=ChatMessageRole.USER, content=question))
        return messages

    def assemble(
        self,
        items: Sequence[KnowledgeItem],
        question: str,
        history: Sequence[HistoryTurn] = (),
        persona_template: Optional[PromptTemplate] = None
    ) -> List[ChatMessage]:
        """
        Assemble the complete message list for one call.

        Args:
            items: Knowledge base articles
            question: Current (already trimmed, non-empty) question
            history: Earlier conversation turns, oldest first
            persona_template: Optional persona override

        Returns:
            System message, retained history, then the question
        """
        system_prompt = self.build_system_prompt(items, persona_template)
        messages = self.build_messages(system_prompt, question, history)
        self.logger.debug(
            f"Assembled {len(messages)} messages "
            f"({min(len(items), MAX_CONTEXT_ITEMS)} articles, {len(messages) - 2} history turns)"
        )
        return messages


# Global prompt builder
_prompt_builder = None


def get_prompt_builder() -> PromptBuilder:
    """Get or create prompt builder instance"""
    global _prompt_builder
    if _prompt_builder is None:
        _prompt_builder = PromptBuilder()
    return _prompt_builder


def assemble(
    items: Sequence[KnowledgeItem],
    question: str,
    history: Sequence[HistoryTurn] = (),
    persona_template: Optional[PromptTemplate] = None
) -> List[ChatMessage]:
    """Convenience function to assemble messages with the default builder"""
    return get_prompt_builder().assemble(items, question, history, persona_template)
