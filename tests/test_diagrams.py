"""Tests for diagram extraction and diagram markup."""

from confpub.convert import ConversionContext
from confpub.convert.diagrams import (
    attachment_name,
    extract_diagrams,
    fallback_block,
    image_reference,
    resolve_placeholder,
)


class TestExtractDiagrams:
    """Tests for extract_diagrams()."""

    def test__blank_edges__trimmed(self, context: ConversionContext) -> None:
        """Leading and trailing blank lines are dropped from the source."""
        text = "```mermaid\n\ngraph LR\n  A --> B\n\n```"

        extracted, diagrams = extract_diagrams(text, context)

        assert extracted == "<!--confpub:diagram_0-->"
        assert diagrams[0].source_text == "graph LR\n  A --> B"

    def test__other_languages__untouched(self, context: ConversionContext) -> None:
        """Only the configured label is extracted."""
        text = "```plantuml\n@startuml\n@enduml\n```"

        extracted, diagrams = extract_diagrams(text, context)

        assert extracted == text
        assert diagrams == []

    def test__custom_language(self, context: ConversionContext) -> None:
        """The reserved label is configurable."""
        text = "```plantuml\nA -> B\n```"

        _, diagrams = extract_diagrams(text, context, language="plantuml")

        assert diagrams[0].source_text == "A -> B"

    def test__literal_placeholder_comment__neutralized(self, context: ConversionContext) -> None:
        """Placeholder text in the document cannot stand in for a diagram."""
        text = "<!--confpub:diagram_0-->\n\n```mermaid\ngraph\n```"

        extracted, diagrams = extract_diagrams(text, context)

        assert extracted == "<!-- confpub:diagram_0-->\n\n<!--confpub:diagram_0-->"
        assert len(diagrams) == 1


class TestDiagramMarkup:
    """Tests for attachment names, image references and fallbacks."""

    def test__attachment_name(self) -> None:
        """Names are deterministic per ordinal."""
        assert attachment_name(2, "svg") == "diagram-2.svg"

    def test__image_reference(self) -> None:
        """Image macro references the page attachment."""
        result = image_reference("diagram-0.svg")

        assert result == (
            '<ac:image ac:height="400">'
            '<ri:attachment ri:filename="diagram-0.svg" />'
            "</ac:image>"
        )

    def test__image_reference_without_height(self) -> None:
        """Height is optional."""
        assert image_reference("d.png", height=None).startswith("<ac:image>")

    def test__fallback_block__keeps_source(self) -> None:
        """Fallback renders the source as a titled code block."""
        result = fallback_block("graph TD\n  A-->B")

        assert '<ac:parameter ac:name="language">mermaid</ac:parameter>' in result
        assert '<ac:parameter ac:name="title">Mermaid Diagram</ac:parameter>' in result
        assert "<![CDATA[graph TD\n  A-->B]]>" in result

    def test__resolve_placeholder__only_matching_ordinal(self) -> None:
        """Only the placeholder for the given ordinal is replaced."""
        markup = "<!--confpub:diagram_0--><!--confpub:diagram_1-->"

        result = resolve_placeholder(markup, 1, "<p>B</p>")

        assert result == "<!--confpub:diagram_0--><p>B</p>"
