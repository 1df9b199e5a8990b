"""
Shell quoting helpers.

Every string that is handed to a shell by this package is escaped here and
nowhere else.

- ``quote_argument`` encodes one argument as a single literal POSIX shell word.
- ``build_command`` joins a command with encoded arguments.
- ``escape_double_quotes`` escapes a string for embedding inside a
  double-quoted shell word.
- ``render_command_line`` renders an argv list as a copy-pasteable line.
"""

from typing import Sequence

# Close the single-quoted span, emit a double-quoted ', reopen.
_QUOTE_ESCAPE = "'\"'\"'"


def quote_argument(arg: str) -> str:
    """
    Encode ``arg`` so a POSIX shell reads it back as exactly one token.

    Single quotes suppress every expansion, so the only character needing
    treatment is the single quote itself.

    Example:
        >>> print(quote_argument("it's"))
        'it'"'"'s'
        >>> print(quote_argument("$(rm -rf /)"))
        '$(rm -rf /)'
    """
    return "'" + arg.replace("'", _QUOTE_ESCAPE) + "'"


def build_command(command: str, args: Sequence[str] = ()) -> str:
    """
    Build a shell command line from a trusted command and untrusted args.

    ``command`` is emitted verbatim (it names the program and may contain
    flags chosen by the caller); each element of ``args`` is quoted.
    """
    if not args:
        return command
    return f"{command} {' '.join(quote_argument(arg) for arg in args)}"


def escape_double_quotes(text: str) -> str:
    """Escape ``"`` so ``text`` can sit inside a double-quoted shell word."""
    return text.replace('"', '\\"')


def render_command_line(argv: Sequence[str]) -> str:
    """Render argv as a single shell line, quoting words that need it."""
    rendered = []
    for word in argv:
        if word and all(ch.isalnum() or ch in "-_./:=@%+," for ch in word):
            rendered.append(word)
        else:
            rendered.append(quote_argument(word))
    return " ".join(rendered)
