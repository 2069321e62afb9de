"""Pattern matchers applied to test identifiers and their parts."""

import fnmatch
import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Exact:
    """Matches strings equal to `value`."""

    value: str

    def matches(self, text: str) -> bool:
        return text == self.value

    def __str__(self) -> str:
        return f"={self.value}"


@dataclass(frozen=True)
class Contains:
    """Matches strings containing `value`."""

    value: str

    def matches(self, text: str) -> bool:
        return self.value in text

    def __str__(self) -> str:
        return f"~{self.value}"


@dataclass(frozen=True)
class Regex:
    """Matches strings in which the regular expression finds a match."""

    pattern: re.Pattern[str]

    @classmethod
    def compile(cls, source: str) -> "Regex":
        """Compile a regex matcher, raises `re.error` on invalid patterns."""
        return cls(re.compile(source))

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None

    def __str__(self) -> str:
        return "/" + self.pattern.pattern.replace("/", "\\/") + "/"


@dataclass(frozen=True)
class Glob:
    """Matches whole strings against a shell-style wildcard pattern.

    `*` and `?` also match `/`, so `<a/*>` matches every test below `a`.
    """

    source: str
    pattern: re.Pattern[str]

    @classmethod
    def compile(cls, source: str) -> "Glob":
        """Compile a glob matcher, raises `re.error` on invalid patterns."""
        return cls(source, re.compile(fnmatch.translate(source)))

    def matches(self, text: str) -> bool:
        return self.pattern.match(text) is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Glob):
            return NotImplemented
        return self.source == other.source

    def __hash__(self) -> int:
        return hash((Glob, self.source))

    def __str__(self) -> str:
        return "<" + self.source.replace(">", "\\>") + ">"


type Matcher = Exact | Contains | Regex | Glob
