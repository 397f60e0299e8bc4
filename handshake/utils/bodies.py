import json
from typing import Any, Mapping


def parse_body(raw: bytes, headers: Mapping[str, str]) -> Any:
    """Decode an HTTP body: JSON when declared or parseable, else text, None when empty."""
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    content_type = next((v for k, v in headers.items() if k.lower() == "content-type"), "")
    if "json" in content_type.lower() or text.lstrip()[:1] in ("{", "["):
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text
