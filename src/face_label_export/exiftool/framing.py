"""Frame building and response recognition for the exiftool stay-open protocol.

Commands are written one argument per line. Each batch of arguments is
closed by ``-executeNNNN`` and exiftool answers with the command output
followed by ``{readyNNNN}``, where ``NNNN`` is the zero-padded sequence
number of the batch.
"""

import re
from typing import Iterable, Optional


def execute_sentinel(sequence: int) -> str:
    return "-execute%04d" % sequence


def ready_marker(sequence: int) -> str:
    return "{ready%04d}" % sequence


def build_frame(argv: Iterable[str]) -> str:
    """Join arguments into a frame, one per line with a trailing newline.

    Raises:
        ValueError: If an argument contains a line break.
    """
    args = [str(arg) for arg in argv]
    for arg in args:
        if "\n" in arg or "\r" in arg:
            raise ValueError(f"Argument contains a line break: {arg!r}")
    return "".join(arg + "\n" for arg in args)


def execute_frame(sequence: int) -> str:
    return build_frame([execute_sentinel(sequence)])


class ResponseMatcher:
    """Locates the response segment of one command in the accumulated output.

    The body of command ``seq`` is the text after the ready marker of
    ``seq - 1`` (or the search start for the first command) up to the
    ready marker of ``seq`` itself. Anchoring on both numbered markers means
    a stale segment from an earlier command is never returned.
    """

    def __init__(self, sequence: int):
        if sequence < 1:
            raise ValueError(f"Sequence numbers start at 1, got {sequence}")
        self.sequence = sequence
        current = re.escape(ready_marker(sequence))
        if sequence == 1:
            self._pattern = re.compile(r"(?P<body>.*?)(?P<ready>%s)" % current, re.DOTALL)
            self._anchored = True
        else:
            previous = re.escape(ready_marker(sequence - 1))
            self._pattern = re.compile(
                r"%s[\r\n]+(?P<body>.*?)(?P<ready>%s)" % (previous, current), re.DOTALL
            )
            self._anchored = False

    def find(self, text: str, pos: int = 0) -> Optional["re.Match[str]"]:
        """Return the match for this command's segment in ``text``, if complete."""
        if self._anchored:
            return self._pattern.match(text, pos)
        return self._pattern.search(text, pos)


def response_matcher(sequence: int) -> ResponseMatcher:
    return ResponseMatcher(sequence)
