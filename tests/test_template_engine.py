"""
Tests for delivery email rendering.
"""

import pytest

from core.template_engine import DeliveryTemplateEngine


@pytest.fixture
def engine():
    return DeliveryTemplateEngine()


class TestRender:
    def test_subject_names_transport(self, engine):
        rendered = engine.render('pigeon', 'Hello there', 'Hi!', 3661)
        assert rendered.subject == '[SnailMail via pigeon] Hello there'

    def test_subject_is_not_html_escaped(self, engine):
        rendered = engine.render('walking', 'Fish & Chips', 'Hi!', 60)
        assert rendered.subject == '[SnailMail via walking] Fish & Chips'

    def test_html_contains_delivery_details(self, engine):
        rendered = engine.render('rock-climbing', 'Subject', 'Hello', 90000)
        assert 'SnailMail Delivery' in rendered.html
        assert 'rock-climbing' in rendered.html
        assert '1 day, 1 hour' in rendered.html

    def test_message_is_escaped(self, engine):
        rendered = engine.render('walking', 'Subject', '<script>alert(1)</script>', 60)
        assert '<script>' not in rendered.html
        assert '&lt;script&gt;' in rendered.html

    def test_line_breaks_preserved(self, engine):
        rendered = engine.render('swimming', 'Subject', 'line one\nline two', 60)
        assert 'line one<br' in rendered.html
        assert 'line one\nline two' in rendered.text

    def test_urls_become_links(self, engine):
        rendered = engine.render('walking', 'Subject', 'See https://example.com/snail', 60)
        assert 'href="https://example.com/snail"' in rendered.html
        assert 'https://example.com/snail' in rendered.text

    def test_css_is_inlined(self, engine):
        rendered = engine.render('walking', 'Subject', 'Hello', 60)
        assert rendered.inline_css_applied is True
        assert '<style' not in rendered.html
        assert 'style="' in rendered.html

    def test_css_inlining_can_be_disabled(self):
        engine = DeliveryTemplateEngine(enable_css_inlining=False)
        rendered = engine.render('walking', 'Subject', 'Hello', 60)
        assert rendered.inline_css_applied is False
        assert '<style>' in rendered.html

    def test_text_part_has_no_markup(self, engine):
        rendered = engine.render('pigeon', 'Subject', 'Coo coo', 3600)
        assert '<' not in rendered.text
        assert 'Delivered via: pigeon' in rendered.text
        assert 'Coo coo' in rendered.text
        assert 'anticipation is better' in rendered.text
