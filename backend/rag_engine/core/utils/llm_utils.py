def clean_json_response(response_text: str) -> str:
    """
    Removes markdown formatting like triple backticks and 'json' labels.
    """
    response_text = response_text.strip()
    if response_text.startswith("```json"):
        response_text = response_text[7:]
    elif response_text.startswith("```"):
        response_text = response_text[3:]
    if response_text.endswith("```"):
        response_text = response_text[:-3]
    return response_text.strip()


def message_text(content) -> str:
    """Flatten a chat model message content (str or list of parts) into text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content)


def truncate(text: str, length: int, marker: str = "...") -> str:
    if len(text) <= length:
        return text
    return text[: max(length - len(marker), 0)] + marker
