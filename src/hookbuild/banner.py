"""Header comment injected at the top of the compiled bundle."""

from hookbuild.config import Manifest


def _width(text: str) -> int:
    """Length in UTF-16 code units, the unit JavaScript string lengths use."""
    return len(text.encode("utf-16-le")) // 2


def generate_banner(manifest: Manifest) -> str:
    """Render the bordered block comment for a plugin manifest.

    The box is as wide as the longest content line. The author credit is
    right-aligned on its own line below an empty spacer line. Widths count
    UTF-16 code units, so a character outside the Basic Multilingual Plane
    (an emoji, say) takes two columns.

    Args:
        manifest: Plugin metadata

    Returns:
        Multi-line block comment (no trailing newline)
    """
    lines = [
        f"Welcome to the compiled source code of „{manifest.name}”!",
        f"This compiled version is based on v{manifest.version} of the following repository:",
        manifest.help_url,
        "",
    ]

    width = max(_width(line) for line in lines)

    footer = f"made with love by {manifest.author}"
    lines.append(" " * (width - _width(footer)) + footer)

    lines = [f"| {line}{' ' * (width - _width(line))} |" for line in lines]

    lines.insert(0, f"/*{'*' * width}*\\")
    lines.append(f"\\*{'*' * width}*/")

    return "\n".join(lines)
