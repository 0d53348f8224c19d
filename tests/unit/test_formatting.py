"""Unit tests for shared/utils/formatting.py — markdown_to_html."""

from shared.utils.formatting import markdown_to_html


class TestMarkdownToHtml:
    def test_empty_input(self):
        assert markdown_to_html(None) is None
        assert markdown_to_html("") is None

    def test_paragraphs(self):
        assert markdown_to_html("First\n\nSecond") == "<p>First</p><p>Second</p>"

    def test_bullet_list(self):
        assert markdown_to_html("- a\n* b\n• c") == (
            "<ul><li><p>a</p></li><li><p>b</p></li><li><p>c</p></li></ul>"
        )

    def test_numbered_list_with_nested_bullets(self):
        text = "1. First\n  - detail\n2. Second"

        assert markdown_to_html(text) == (
            "<ol><li><p>First</p><ul><li><p>detail</p></li></ul></li>"
            "<li><p>Second</p></li></ol>"
        )

    def test_numbered_list_with_parenthesis(self):
        assert markdown_to_html("1) One\n2) Two") == "<ol><li><p>One</p></li><li><p>Two</p></li></ol>"

    def test_inline_markup(self):
        assert markdown_to_html("**bold**, __also bold__ and *italic*") == (
            "<p><strong>bold</strong>, <strong>also bold</strong> and <em>italic</em></p>"
        )

    def test_existing_html_unchanged(self):
        html = "<p>Already <strong>formatted</strong></p>"
        assert markdown_to_html(html) == html

    def test_placeholder_brackets_are_not_html(self):
        assert markdown_to_html("Write about <topic>") == "<p>Write about <topic></p>"

    def test_paragraph_after_list(self):
        assert markdown_to_html("- a\n\nDone") == "<ul><li><p>a</p></li></ul><p>Done</p>"
