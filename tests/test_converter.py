"""Tests for the Markdown converter."""

import xml.etree.ElementTree as ElementTree
from pathlib import Path

import pytest

from confpub.convert import MarkdownConverter
from confpub.convert.converter import TOC_MACRO, finalize, normalize_void_elements


def parse_storage(markup: str) -> ElementTree.Element:
    """Parse storage format with the Confluence namespaces bound."""
    return ElementTree.fromstring(
        f'<root xmlns:ac="urn:ac" xmlns:ri="urn:ri">{markup}</root>'
    )


class TestConvert:
    """Tests for MarkdownConverter.convert()."""

    def test__heading_list_table__end_to_end(self) -> None:
        """Heading, nested list and table convert in one pass."""
        text = "# T\n\n- a\n  - b\n\n| x | y |\n|---|---|\n| 1 | 2 |"

        result = MarkdownConverter().convert(text)

        assert result.html == (
            "<h1>T</h1>"
            "<ul><li>a<ul><li>b</li></ul></li></ul>"
            "<table><thead><tr><th>x</th><th>y</th></tr></thead>"
            "<tbody><tr><td>1</td><td>2</td></tr></tbody></table>"
        )
        assert "\x02" not in result.html
        assert result.diagrams == []

    def test__paragraphs__split_on_blank_lines(self) -> None:
        """Blank lines separate paragraphs and newlines break lines."""
        result = MarkdownConverter().convert("a\nb\n\nc")

        assert result.html == "<p>a<br />b</p><p>c</p>"

    def test__non_list_line__closes_lists(self) -> None:
        """A text line after a list item ends the list."""
        result = MarkdownConverter().convert("- a\ntext")

        assert result.html == "<ul><li>a</li></ul><p>text</p>"

    def test__ordered_list__uses_ol(self) -> None:
        """Numbered items become an ordered list."""
        result = MarkdownConverter().convert("1. one\n2. two")

        assert result.html == "<ol><li>one</li><li>two</li></ol>"

    def test__table_without_separator__stays_paragraph(self) -> None:
        """Pipe rows without a separator line do not open a table."""
        result = MarkdownConverter().convert("| a | b |\n| c | d |")

        assert "<table>" not in result.html
        assert result.html.startswith("<p>")

    def test__table_cells__formatted_inline(self) -> None:
        """Cell content goes through inline formatting."""
        text = "| name | note |\n|---|---|\n| `x` | **bold** |"

        result = MarkdownConverter().convert(text)

        assert "<td><code>x</code></td><td><strong>bold</strong></td>" in result.html

    def test__blockquote(self) -> None:
        """Consecutive quote lines form one blockquote."""
        result = MarkdownConverter().convert("> quoted\n> more")

        assert result.html == "<blockquote><p>quoted<br />more</p></blockquote>"

    def test__horizontal_rule(self) -> None:
        """Rule lines become self-closing hr."""
        result = MarkdownConverter().convert("a\n\n---\n\nb")

        assert result.html == "<p>a</p><hr /><p>b</p>"

    def test__code_block__not_formatted(self) -> None:
        """Markdown inside fenced code is preserved verbatim."""
        text = "Intro\n\n```python\nx = a**2 * b**2  # <tag> & _name_\n```"

        result = MarkdownConverter().convert(text)

        assert "<![CDATA[x = a**2 * b**2  # <tag> & _name_]]>" in result.html
        assert "<strong>" not in result.html
        assert "<em>" not in result.html

    def test__inline_code__not_formatted(self) -> None:
        """Inline code hides emphasis markers."""
        result = MarkdownConverter().convert("Run `rm -rf *` now *please*")

        assert result.html == "<p>Run <code>rm -rf *</code> now <em>please</em></p>"

    def test__input_control_characters__cannot_forge_placeholders(self) -> None:
        """Placeholder delimiters in the source are dropped."""
        result = MarkdownConverter().convert("fake \x02code_0\x03 token")

        assert result.html == "<p>fake code_0 token</p>"

    def test__inline_html_void_tags__self_closed(self) -> None:
        """Raw br tags are normalized to XML form."""
        result = MarkdownConverter().convert("a<br>b")

        assert result.html == "<p>a<br />b</p>"

    def test__crlf_input__normalized(self) -> None:
        """Windows line endings are treated as newlines."""
        result = MarkdownConverter().convert("a\r\n\r\nb")

        assert result.html == "<p>a</p><p>b</p>"

    def test__generic_types_in_prose__well_formed(self) -> None:
        """Angle-bracketed type names are escaped text."""
        result = MarkdownConverter().convert(
            "Returns a List<String> of names.\n\n- a Map<K, List<Integer>>\n- <b>bold</b>"
        )

        root = parse_storage(result.html)
        assert root.find("p").text == "Returns a List<String> of names."
        assert [item.text for item in root.iter("li")][0] == "a Map<K, List<Integer>>"
        assert root.find(".//b").text == "bold"

    def test__full_document__well_formed(self) -> None:
        """A mixed document parses as XML."""
        text = (
            "# Title\n\nSee <span class=\"k\">x</span> & <Foo>.\n\n"
            "> quote <i>open\n>\n> close</i>\n\n"
            "| a | b |\n|---|---|\n| <T> | 1 |\n\n"
            "```java\nList<String> xs = new ArrayList<>();\n```\n\n"
            "```mermaid\ngraph TD\n```"
        )

        parse_storage(MarkdownConverter().convert(text).html)


class TestDiagrams:
    """Tests for diagram extraction during conversion."""

    def test__mermaid_fence__replaced_by_placeholder(self) -> None:
        """Diagram fences become ordinal comment placeholders."""
        text = "Intro\n\n```mermaid\ngraph TD\n  A-->B\n```\n\nOutro"

        result = MarkdownConverter().convert(text)

        assert result.html == "<p>Intro</p><!--confpub:diagram_0--><p>Outro</p>"
        assert len(result.diagrams) == 1
        assert result.diagrams[0].ordinal == 0
        assert result.diagrams[0].source_text == "graph TD\n  A-->B"

    def test__literal_placeholder__cannot_forge_diagram(self) -> None:
        """Only the extracted diagram carries a resolvable placeholder."""
        text = (
            "<!--confpub:diagram_0-->\n\n"
            "```mermaid\ngraph\n```\n\n"
            "```html\n<!--confpub:diagram_0-->\n```"
        )

        result = MarkdownConverter().convert(text)

        assert result.html.count("<!--confpub:diagram_0-->") == 1
        assert len(result.diagrams) == 1

    def test__multiple_diagrams__document_order(self) -> None:
        """Ordinals follow document order."""
        text = "```mermaid\nA\n```\n\ntext\n\n```mermaid\nB\n```"

        result = MarkdownConverter().convert(text)

        assert [(d.ordinal, d.source_text) for d in result.diagrams] == [(0, "A"), (1, "B")]

    def test__ordinals__restart_each_conversion(self) -> None:
        """Each conversion run numbers diagrams from zero."""
        converter = MarkdownConverter()
        converter.convert("```mermaid\nA\n```")

        result = converter.convert("```mermaid\nB\n```")

        assert result.diagrams[0].ordinal == 0

    def test__diagram_inside_code_fence__not_extracted(self) -> None:
        """A mermaid fence quoted inside another fence stays code."""
        text = "````md\n```mermaid\ngraph\n```\n````"

        result = MarkdownConverter().convert(text)

        assert result.diagrams == []
        assert "<![CDATA[```mermaid\ngraph\n```]]>" in result.html

    def test__label_case_sensitive(self) -> None:
        """Only the exact diagram label is extracted."""
        result = MarkdownConverter().convert("```Mermaid\ngraph\n```")

        assert result.diagrams == []
        assert '<ac:parameter ac:name="language">Mermaid</ac:parameter>' in result.html

    def test__diagrams_disabled__render_as_code(self) -> None:
        """Without a diagram language, diagram fences are code blocks."""
        result = MarkdownConverter(diagram_language=None).convert("```mermaid\ngraph\n```")

        assert result.diagrams == []
        assert '<ac:parameter ac:name="language">mermaid</ac:parameter>' in result.html


class TestConverterOptions:
    """Tests for title extraction and table of contents."""

    def test__extract_title__removes_first_h1_and_levels_up(self) -> None:
        """First H1 becomes the title and later headings move up a level."""
        converter = MarkdownConverter(extract_title=True)

        result = converter.convert("# Title\n\n## Sub\n\ntext")

        assert result.title == "Title"
        assert result.html == "<h1>Sub</h1><p>text</p>"

    def test__extract_title_disabled__keeps_h1(self) -> None:
        """Without extraction the H1 stays in the body."""
        result = MarkdownConverter().convert("# Title")

        assert result.title is None
        assert result.html == "<h1>Title</h1>"

    def test__prepend_toc(self) -> None:
        """The TOC macro is prepended."""
        result = MarkdownConverter(prepend_toc=True).convert("text")

        assert result.html == TOC_MACRO + "<p>text</p>"


class TestConvertFile:
    """Tests for MarkdownConverter.convert_file()."""

    def test__reads_file(self, tmp_path: Path) -> None:
        """Convert a markdown file from disk."""
        markdown_file = tmp_path / "doc.md"
        markdown_file.write_text("# Hello", encoding="utf-8")

        result = MarkdownConverter().convert_file(markdown_file)

        assert result.html == "<h1>Hello</h1>"

    def test__missing_file__raises(self, tmp_path: Path) -> None:
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            MarkdownConverter().convert_file(tmp_path / "missing.md")


class TestNormalization:
    """Tests for the final XML normalization."""

    def test__void_elements__self_closed(self) -> None:
        """hr, br and img are forced into self-closing form."""
        result = normalize_void_elements('<br><hr/><img src="a.png"></img>')

        assert result == '<br /><hr /><img src="a.png" />'

    def test__cdata__untouched(self) -> None:
        """Void tags inside CDATA are left alone."""
        result = normalize_void_elements("<![CDATA[<br>]]><br>")

        assert result == "<![CDATA[<br>]]><br />"

    def test__finalize__wraps_bare_text_and_drops_empty_paragraphs(self) -> None:
        """Bare text is wrapped and empty paragraphs removed."""
        assert finalize("plain") == "<p>plain</p>"
        assert finalize("<p> </p><p>x</p>") == "<p>x</p>"
