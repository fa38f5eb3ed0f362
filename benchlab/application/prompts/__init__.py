from functools import lru_cache
from pathlib import Path

from jinja2 import StrictUndefined, Template

PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=32)
def load_prompt(name: str) -> str:
    prompt_file = PROMPTS_DIR / f"{name}.md"
    if not prompt_file.exists():
        raise FileNotFoundError(f"Prompt template not found: {prompt_file}")

    return prompt_file.read_text()


def render_judge_prompt(task: str, expected: str, actual: str) -> str:
    template = Template(load_prompt("judge_correctness"), undefined=StrictUndefined)
    return template.render(task=task, expected=expected, actual=actual)
