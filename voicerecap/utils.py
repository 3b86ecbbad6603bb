import uuid
from datetime import datetime, timezone


# -------------------------------------------------------------- #
# Util Functions
# -------------------------------------------------------------- #


def get_current_timestamp() -> datetime:
    """Get the current UTC timestamp."""
    return datetime.now(timezone.utc)


def generate_16_char_uuid() -> str:
    """Generate a unique 16-character identifier."""
    return uuid.uuid4().hex[:16]


def parse_command(content: str, prefix: str) -> tuple[str, list[str]] | None:
    """Split a prefixed chat command into its lower-cased name and arguments.

    Args:
        content: Raw message text
        prefix: Command prefix, e.g. "!"

    Returns:
        (command, args), or None if the message is not a command

    Example:
        >>> parse_command("!Join  now", "!")
        ('join', ['now'])
    """
    if not prefix or not content.startswith(prefix):
        return None

    parts = content[len(prefix) :].split()
    if not parts:
        return None
    return parts[0].lower(), parts[1:]
