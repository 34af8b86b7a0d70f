"""Ignore-file style rules compiled into a path predicate."""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from vectorizer.errors import PatternError

# Characters that turn a rule into a glob
GLOB_CHARS = frozenset("*?[\\")


class RuleKind(Enum):
    LITERAL = "literal"
    GLOB = "glob"


@dataclass(frozen=True)
class Rule:
    """A single compiled ignore rule."""

    source: str
    kind: RuleKind
    pattern: str  # Literal text or the glob body, without !, / markers
    negated: bool
    dir_only: bool
    anchored: bool
    regex: re.Pattern | None = None

    def applies_to(self, path: str, is_dir: bool) -> bool:
        """Check if the rule matches a relative posix path."""
        if self.dir_only and not is_dir:
            return False

        if self.kind is RuleKind.LITERAL:
            if self.anchored:
                return path == self.pattern
            return path == self.pattern or path.endswith("/" + self.pattern)

        return self.regex.match(path) is not None


def translate_glob(pattern: str, rule: str) -> str:
    """
    Translate a gitignore glob into a regular expression.

    `*` and `?` never cross a `/`. `**` between slashes (or at either end)
    spans any number of directories.
    """
    out: list[str] = []
    i = 0
    n = len(pattern)

    while i < n:
        c = pattern[i]

        if c == "*":
            if pattern.startswith("**", i):
                j = i + 2
                at_start = i == 0 or pattern[i - 1] == "/"
                at_end = j == n or pattern[j] == "/"
                if at_start and at_end:
                    if j == n:
                        out.append(".*")
                    else:
                        out.append("(?:.*/)?")
                        j += 1  # Consume the slash
                else:
                    out.append("[^/]*")
                i = j
                continue
            out.append("[^/]*")

        elif c == "?":
            out.append("[^/]")

        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1  # A leading ] is part of the class
            close = pattern.find("]", j)
            if close == -1:
                raise PatternError(rule, "unclosed character class")

            body = pattern[i + 1 : close]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            escaped = "".join("\\" + ch if ch in "\\[" else ch for ch in body)
            out.append("[" + ("^" if negate else "") + escaped + "]")
            i = close + 1
            continue

        elif c == "\\":
            if i + 1 == n:
                raise PatternError(rule, "trailing backslash")
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue

        else:
            out.append(re.escape(c))

        i += 1

    return "(?s:" + "".join(out) + r")\Z"


def parse_rule(line: str) -> Rule | None:
    """
    Parse one ignore line into a Rule.

    Returns None for blank lines and comments.
    """
    text = line.rstrip("\n")
    # Trailing spaces are ignored unless escaped
    while text.endswith(" ") and not text.endswith("\\ "):
        text = text[:-1]

    if not text or text.startswith("#"):
        return None

    negated = False
    if text.startswith("!"):
        negated = True
        text = text[1:]
    elif text.startswith("\\!") or text.startswith("\\#"):
        text = text[1:]

    dir_only = False
    if text.endswith("/") and not text.endswith("\\/"):
        dir_only = True
        text = text.rstrip("/")

    anchored = False
    if text.startswith("/"):
        anchored = True
        text = text.lstrip("/")
    elif "/" in text:
        anchored = True

    if not text:
        raise PatternError(line, "empty pattern")

    if any(ch in GLOB_CHARS for ch in text):
        body = text if anchored else "**/" + text
        try:
            regex = re.compile(translate_glob(body, line))
        except re.error as e:
            raise PatternError(line, str(e)) from e
        return Rule(line, RuleKind.GLOB, text, negated, dir_only, anchored, regex)

    return Rule(line, RuleKind.LITERAL, text, negated, dir_only, anchored)


class Matcher:
    """
    Compiled set of ignore rules.

    Rules are evaluated in declaration order and the last matching rule wins:
    a plain rule excludes the path, a `!` rule includes it again.
    """

    def __init__(self, base_dir: Path, rules: list[Rule]):
        self.base_dir = base_dir
        self.rules = rules

    @classmethod
    def compile(cls, base_dir: Path, rules: Iterable[str]) -> "Matcher":
        """
        Compile ignore rules relative to base_dir.

        Raises:
            PatternError: On the first rule that is not valid.
        """
        compiled = [rule for rule in (parse_rule(line) for line in rules) if rule]
        return cls(Path(base_dir), compiled)

    def __bool__(self) -> bool:
        return bool(self.rules)

    def _relative(self, path: str | Path) -> str:
        candidate = Path(path)
        if candidate.is_absolute():
            try:
                candidate = candidate.relative_to(self.base_dir)
            except ValueError:
                pass
        relative = PurePosixPath(candidate.as_posix()).as_posix()
        return relative.lstrip("/") if relative != "." else ""

    def matches(self, relative_path: str | Path, is_dir: bool = False) -> bool:
        """Check if a path should be excluded."""
        if not self.rules:
            return False

        path = self._relative(relative_path)
        if not path:
            return False

        excluded = False
        for rule in self.rules:
            if rule.applies_to(path, is_dir):
                excluded = not rule.negated
        return excluded
