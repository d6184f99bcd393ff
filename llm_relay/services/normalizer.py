"""
Provider-specific cleanup of generated text.

Rules are data: a pattern plus an action, grouped by provider display name.
``normalize`` applies a provider's rules until nothing changes any more, so
running it twice gives the same result as running it once. It is safe to call
on partial (still streaming) text.
"""
import re
from dataclasses import dataclass
from typing import Dict, Literal, Optional, Tuple

Action = Literal["remove", "keep_after"]


@dataclass(frozen=True)
class Rule:
    pattern: "re.Pattern[str]"
    action: Action

    def apply(self, text: str) -> str:
        if self.action == "remove":
            return self.pattern.sub("", text)
        match = self.pattern.search(text)
        if match is None:
            return text
        return text[match.end():]


RULES: Dict[str, Tuple[Rule, ...]] = {
    "Blackbox": (
        # version banner, e.g. $@$v=v1.13$@$ or $@$v=undefined$@$
        Rule(re.compile(r"\$@\$v=.{1,30}?\$@\$"), "remove"),
        # sources block $~~~$[...]$~~~$ and everything before it
        Rule(re.compile(r"\$~~~\$\[.*\]\$~~~\$", re.DOTALL), "keep_after"),
    ),
}


def normalize(text: str, provider: Optional[str] = None) -> str:
    rules = RULES.get(provider or "")
    if not rules:
        return text
    while True:
        out = text
        for rule in rules:
            out = rule.apply(out)
        if out == text:
            return out
        text = out
