"""Expand a syncer's command template into a concrete argument vector."""
from __future__ import annotations

from backupz.config import ConfigError

BINARY = "$binary"
OPTIONS = "@options"
SOURCE = "$source"
DESTINATION = "$destination"
PLACEHOLDERS = (BINARY, OPTIONS, SOURCE, DESTINATION)


class TemplateError(ConfigError):
    """A template token looks like a placeholder but is not one."""
    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Unknown command part: {token}")


def _is_placeholder(token: str) -> bool:
    return token.startswith(("$", "@"))


def validate_template(template: list[str]) -> None:
    for token in template:
        if _is_placeholder(token) and token not in PLACEHOLDERS:
            raise TemplateError(token)


def expand_command(
    template: list[str],
    binary: str,
    options: list[str],
    source: str,
    destination_path: str,
) -> list[str]:
    """
    Substitute placeholders in template order.

    @options is spliced in place; literals pass through unchanged.
    Raises TemplateError on an unrecognised $/@ token.
    """
    cmd: list[str] = []
    for token in template:
        if token == BINARY:
            cmd.append(binary)
        elif token == OPTIONS:
            cmd.extend(options)
        elif token == SOURCE:
            cmd.append(source)
        elif token == DESTINATION:
            cmd.append(destination_path)
        elif _is_placeholder(token):
            raise TemplateError(token)
        else:
            cmd.append(token)
    return cmd
