"""Baseline HTML scrubbing for post bodies.

This is a pattern-based denylist, not a parser. It removes the obvious
script vectors an editor might paste in by accident; obfuscated markup can
get past it, so it must not be treated as a security boundary.
"""
import re

_SCRIPT = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"""\s+on\w+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""", re.IGNORECASE)
_JS_URL = re.compile(
    r"""(href|src|action)\s*=\s*(?:"\s*javascript:[^"]*"|'\s*javascript:[^']*')""",
    re.IGNORECASE,
)
_EMBED = re.compile(r"</?(?:iframe|embed|object)\b[^>]*>", re.IGNORECASE)


def sanitize_html(html: str) -> str:
    if not html:
        return ""
    html = _SCRIPT.sub("", html)
    html = _EVENT_HANDLER.sub("", html)
    html = _JS_URL.sub(r'\1=""', html)
    return _EMBED.sub("", html)
