# core/template_engine.py
"""
Delivery email rendering

Renders the "SnailMail Delivery" message with Jinja2 autoescaping, turns
URLs in the sender's message into links, inlines CSS for email clients and
derives a plain text alternative from the HTML.
"""

import re
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import bleach
import premailer
from bs4 import BeautifulSoup
from jinja2 import Environment, StrictUndefined, select_autoescape
from jinja2.exceptions import TemplateError
from markupsafe import Markup, escape

from core.transport import format_delivery_time

logger = logging.getLogger(__name__)


DELIVERY_TEMPLATE = """
<html>
<head>
  <style>
    .wrapper { font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; }
    .banner { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 20px; text-align: center; }
    .banner h1 { color: white; margin: 0; }
    .body { padding: 20px; background: #f9f9f9; }
    .meta { font-size: 14px; color: #666; }
    .message { background: white; padding: 20px; border-radius: 8px; margin-top: 20px; }
    .footer { font-size: 12px; color: #999; margin-top: 20px; text-align: center; }
  </style>
</head>
<body>
  <div class="wrapper">
    <div class="banner">
      <h1>SnailMail Delivery</h1>
    </div>
    <div class="body">
      <p class="meta">
        Delivered via: <strong>{{ transport_mode }}</strong><br>
        Delivery time: <strong>{{ delivery_time }}</strong>
      </p>
      <div class="message">{{ message | message_html }}</div>
      <p class="footer">Because sometimes, anticipation is better than instant gratification.</p>
    </div>
  </div>
</body>
</html>
"""

SUBJECT_TEMPLATE = "[SnailMail via {{ transport_mode }}] {{ subject }}"


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str
    inline_css_applied: bool
    render_time_ms: float


class DeliveryTemplateEngine:
    """Jinja2 renderer for delivery emails"""

    def __init__(self, enable_css_inlining: bool = True,
                 html_template: str = DELIVERY_TEMPLATE):
        self.enable_css_inlining = enable_css_inlining

        self.env = Environment(
            autoescape=select_autoescape(['html', 'xml'], default_for_string=True),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters['message_html'] = self._message_html_filter

        # Subjects are header text, never HTML
        self.subject_env = Environment(autoescape=False, undefined=StrictUndefined)

        self.html_template = self.env.from_string(html_template)
        self.subject_template = self.subject_env.from_string(SUBJECT_TEMPLATE)

    def render(self, transport_mode: str, subject: str, message: str,
               delivery_time_seconds: float) -> RenderedEmail:
        start_time = datetime.now()
        variables: Dict[str, Any] = {
            'transport_mode': transport_mode,
            'subject': subject,
            'message': message,
            'delivery_time': format_delivery_time(delivery_time_seconds),
        }

        try:
            html = self.html_template.render(**variables)
            rendered_subject = self.subject_template.render(**variables)
        except TemplateError as e:
            logger.error(f"Delivery template rendering failed: {e}")
            raise

        inline_css_applied = False
        if self.enable_css_inlining:
            inlined = self._inline_css(html)
            if inlined is not None:
                html = inlined
                inline_css_applied = True

        render_time_ms = (datetime.now() - start_time).total_seconds() * 1000
        logger.debug(f"Delivery email rendered in {render_time_ms:.2f}ms")

        return RenderedEmail(
            subject=' '.join(rendered_subject.split()),
            html=html,
            text=self._html_to_text(html),
            inline_css_applied=inline_css_applied,
            render_time_ms=render_time_ms,
        )

    @staticmethod
    def _message_html_filter(value: Any) -> Markup:
        """Escape the sender's text, link URLs and keep line breaks"""
        escaped = str(escape(str(value)))
        linked = bleach.linkify(escaped, parse_email=False)
        return Markup(linked.replace('\r\n', '\n').replace('\n', '<br>'))

    @staticmethod
    def _inline_css(html_content: str) -> Optional[str]:
        try:
            p = premailer.Premailer(
                html_content,
                remove_classes=False,
                keep_style_tags=False,
                strip_important=False,
                disable_validation=True,
                external_styles=None,
            )
            return p.transform()
        except Exception as e:
            logger.warning(f"CSS inlining failed: {e}")
            return None

    @staticmethod
    def _html_to_text(html_content: str) -> str:
        soup = BeautifulSoup(html_content, 'html.parser')

        for tag in soup(['style', 'head']):
            tag.decompose()

        for br in soup.find_all('br'):
            br.replace_with('\n')

        for block in soup.find_all(['p', 'div', 'h1']):
            block.insert_after('\n')

        for link in soup.find_all('a', href=True):
            link_text = link.get_text()
            href = link['href']
            if href != link_text:
                link.replace_with(f"{link_text} ({href})")

        text = soup.get_text()
        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r' *\n *', '\n', text)
        text = re.sub(r'\n{3,}', '\n\n', text)
        return text.strip()
