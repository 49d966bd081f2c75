"""
ycmd-ide - Completion menu

The host shows completions as a bounded list of slots labelled A..Z. The
server tells us where the completion starts (completion_start_column, 1-based);
accepting a candidate replaces the text between that column and the cursor.
"""

import string
from dataclasses import dataclass

SELECTORS = string.ascii_uppercase
MAX_CANDIDATES = len(SELECTORS)


@dataclass
class Splice:
    """Result of accepting a candidate: the rewritten line and new cursor."""
    line: str
    cursor_x: int
    inserted: str


class CompletionMenu:
    def __init__(self, visible_rows: int = MAX_CANDIDATES):
        self.capacity = max(0, min(MAX_CANDIDATES, visible_rows))
        self.slots: list[str] = [""] * self.capacity
        self.apply_column = 0

    def fill(self, candidates, apply_column: int) -> int:
        """Load up to `capacity` candidates in order; clear the rest.

        Returns how many slots were filled.
        """
        filled = 0
        for i in range(self.capacity):
            if i < len(candidates):
                self.slots[i] = candidates[i]
                filled += 1
            else:
                self.slots[i] = ""
        self.apply_column = apply_column
        return filled

    def clear(self):
        self.slots = [""] * self.capacity
        self.apply_column = 0

    @property
    def candidates(self) -> list[str]:
        return [text for text in self.slots if text]

    def items(self) -> list[tuple[str, str]]:
        """(selector, text) pairs for every non-empty slot."""
        return [(SELECTORS[i], text) for i, text in enumerate(self.slots) if text]

    def get(self, letter: str) -> str:
        index = SELECTORS.find(letter.upper()) if len(letter) == 1 else -1
        if index < 0 or index >= self.capacity:
            return ""
        return self.slots[index]

    def take(self, letter: str) -> str:
        """Return the candidate under `letter` and empty its slot."""
        text = self.get(letter)
        if text:
            self.slots[SELECTORS.index(letter.upper())] = ""
        return text

    def accept(self, letter: str, line: str, cursor_x: int) -> Splice | None:
        """Splice the candidate under `letter` into `line`.

        `cursor_x` is the host's 0-based cursor. Returns None for an empty
        slot.
        """
        text = self.take(letter)
        if not text:
            return None
        return splice(line, cursor_x, self.apply_column, text)


def splice(line: str, cursor_x: int, apply_column: int, text: str) -> Splice:
    """Replace line[apply_column - 1:cursor_x] with `text`."""
    start = max(0, min(apply_column - 1, len(line)))
    end = max(start, min(cursor_x, len(line)))
    new_line = line[:start] + text + line[end:]
    return Splice(line=new_line, cursor_x=start + len(text), inserted=text)
