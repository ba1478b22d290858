import re
from typing import Dict

# Any {{...}} marker; only markers whose key is in the dictionary are replaced.
_MARKER_PATTERN = re.compile(r'\{\{([^{}]+)\}\}')


def render(content: str, dictionary: Dict[str, str]) -> str:
    """
    Replace every `{{KEY}}` in `content` with its dictionary value.

    Values are inserted literally, so characters such as `\\`, `&` or `/` need
    no escaping. Markers without a dictionary entry are left untouched.

    Args:
        content: Source diagram text.
        dictionary: key -> localized value.

    Returns:
        The localized text.
    """
    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key in dictionary:
            return dictionary[key]
        return match.group(0)

    return _MARKER_PATTERN.sub(_replace, content)
