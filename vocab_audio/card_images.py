"""
Card image rendering (SVG).
"""

from xml.sax.saxutils import escape

from .models import ContentItem

CARD_WIDTH = 800
CARD_HEIGHT = 600

_SVG_TEMPLATE = """<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">
  <defs>
    <style>
      .thai-text {{ font-family: system-ui, -apple-system, 'Segoe UI', 'Roboto', 'Helvetica Neue', Arial, sans-serif; }}
      .main-text {{ font-size: 64px; font-weight: bold; fill: #1f2937; text-anchor: middle; }}
      .pronunciation {{ font-size: 24px; font-style: italic; fill: #6b7280; text-anchor: middle; }}
      .translation {{ font-size: 36px; font-weight: bold; fill: #1f2937; text-anchor: middle; }}
      .example-bg {{ fill: #fef3c7; stroke: #f59e0b; stroke-width: 4; }}
      .example-title {{ font-size: 20px; font-weight: bold; fill: #92400e; }}
      .example-text {{ font-size: 28px; font-weight: bold; fill: #78350f; text-anchor: middle; }}
      .example-translation {{ font-size: 24px; fill: #92400e; text-anchor: middle; }}
    </style>
  </defs>
  <rect width="{width}" height="{height}" fill="#ffffff" stroke="#e5e7eb" stroke-width="2"/>
  <text x="400" y="150" class="thai-text main-text">{text}</text>
  <text x="400" y="190" class="pronunciation">{pronunciation}</text>
  <line x1="100" y1="220" x2="700" y2="220" stroke="#d1d5db" stroke-width="1"/>
  <text x="400" y="280" class="translation">{translation}</text>
  <rect x="60" y="320" width="680" height="220" class="example-bg"/>
  <text x="80" y="350" class="example-title">Example:</text>
  <text x="400" y="390" class="thai-text example-text">{example}</text>
  <text x="400" y="450" class="example-translation">{example_translation}</text>
</svg>
"""


def render_card_svg(item: ContentItem) -> bytes:
    """Render a vocabulary card as UTF-8 SVG bytes. Text fields are XML-escaped."""
    svg = _SVG_TEMPLATE.format(
        width=CARD_WIDTH,
        height=CARD_HEIGHT,
        text=escape(item.text),
        pronunciation=escape(item.pronunciation),
        translation=escape(item.translation),
        example=escape(item.example),
        example_translation=escape(item.example_translation),
    )
    return svg.encode("utf-8")
