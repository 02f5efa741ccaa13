"""
Local placeholder illustrations.

Used as the last-resort image when every remote attempt failed, so a
finished book always renders. No network, cannot fail.
"""

import base64
import re
from xml.sax.saxutils import escape

PLACEHOLDER_TITLE_LIMIT = 40
DEFAULT_PLACEHOLDER_TITLE = "Story"

# Characters XML 1.0 does not allow, even escaped
_XML_INVALID_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")

PLACEHOLDER_SVG_TEMPLATE = """<?xml version='1.0' encoding='UTF-8'?>
<svg xmlns='http://www.w3.org/2000/svg' width='1024' height='1024'>
  <defs>
    <linearGradient id='g' x1='0' y1='0' x2='1' y2='1'>
      <stop offset='0%' stop-color='#a8e6cf'/>
      <stop offset='50%' stop-color='#7fcdcd'/>
      <stop offset='100%' stop-color='#81c784'/>
    </linearGradient>
  </defs>
  <rect width='1024' height='1024' fill='url(#g)'/>
  <g fill='#000000' opacity='0.15'>
    <circle cx='200' cy='200' r='60'/>
    <circle cx='250' cy='260' r='20'/>
    <circle cx='160' cy='260' r='20'/>
  </g>
  <text x='50%' y='52%' dominant-baseline='middle' text-anchor='middle' font-family='Georgia, serif' font-size='64' fill='rgba(0,0,0,0.65)'>{title}</text>
  <text x='50%' y='60%' dominant-baseline='middle' text-anchor='middle' font-family='Georgia, serif' font-size='36' fill='rgba(0,0,0,0.55)'>Illustration placeholder</text>
</svg>"""


def placeholder_title(title: str | None) -> str:
    """Title as shown on the placeholder: XML-safe, defaulted and cut to 40 characters."""
    cleaned = _XML_INVALID_CHARS.sub("", title or "")
    return (cleaned or DEFAULT_PLACEHOLDER_TITLE)[:PLACEHOLDER_TITLE_LIMIT]


def build_placeholder_svg(title: str | None) -> str:
    """Render the placeholder SVG markup for a title."""
    safe_title = escape(placeholder_title(title), {"'": "&apos;", '"': "&quot;"})
    return PLACEHOLDER_SVG_TEMPLATE.format(title=safe_title)


def make_placeholder_image(title: str | None) -> str:
    """Return the placeholder illustration as a base64 SVG data URI."""
    svg = build_placeholder_svg(title)
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
