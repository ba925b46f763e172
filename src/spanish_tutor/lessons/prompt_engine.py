"""Stage-based prompt templates for lesson generation."""

from collections.abc import Sequence
from functools import lru_cache
from pathlib import Path
from string import Template

import yaml

PROMPTS_DIR = Path(__file__).parent / "prompts"

MAX_KNOWN_WORDS = 15
MAX_RECENT_MISTAKES = 5


@lru_cache(maxsize=1)
def load_stage_prompts() -> dict:
    """Load stage templates from stages.yaml."""
    path = PROMPTS_DIR / "stages.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Prompts file not found: {path}")
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class PromptEngine:
    """Stage × learner history → one lesson-generation prompt."""

    def stage_template(self, stage: int) -> dict:
        """Template entry for ``stage``; unknown stages get the review template."""
        data = load_stage_prompts()
        return data.get("stages", {}).get(stage) or data["review"]

    def build_prompt(
        self,
        stage: int,
        words_learned: Sequence[str] = (),
        mistakes: Sequence[str] = (),
    ) -> str:
        data = load_stage_prompts()
        body = Template(self.stage_template(stage)["template"]).safe_substitute(stage=stage)

        parts = [data.get("preamble", ""), body]

        if words_learned:
            recent = list(words_learned)[-MAX_KNOWN_WORDS:]
            parts.append(
                f"The student already knows these words: {', '.join(recent)}. "
                "Build on them rather than re-teaching them."
            )
        if mistakes:
            recent = list(mistakes)[-MAX_RECENT_MISTAKES:]
            parts.append(
                "The student recently answered these questions incorrectly; "
                f"reinforce the underlying concepts: {'; '.join(recent)}"
            )

        parts.append(data.get("closing", ""))
        return "\n\n".join(p for p in parts if p)


_engine = PromptEngine()


def get_prompt_engine() -> PromptEngine:
    return _engine
