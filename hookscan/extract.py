import re

# Both host spellings are listed explicitly; the token segment is case-sensitive.
WEBHOOK_PATTERN = re.compile(
    r'https://discord(?:app)?\.com/api/webhooks/[0-9]+/[A-Za-z0-9_-]+'
)


def _as_text(content):
    if isinstance(content, str):
        return content
    if isinstance(content, (bytes, bytearray)):
        return bytes(content).decode('utf-8', errors='replace')
    return None


def extract_webhooks(content):
    """Distinct webhook URLs in ``content``, in the order they first appear."""
    text = _as_text(content)
    if not text:
        return []
    return list(dict.fromkeys(m.group(0) for m in WEBHOOK_PATTERN.finditer(text)))

