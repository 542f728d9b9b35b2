from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from gaikit.ai.tools import lookup_tool
from gaikit.ai.types import OutputFormat, config_from_dict
from gaikit.core.config import get_prompt_dir
from gaikit.core.errors import PromptError
from gaikit.core.logger import logger

from .prompt import Config, Prompt

_directory: Optional[Path] = None


def set_directory(directory: str) -> None:
    """Set the directory open_prompt reads from."""
    global _directory
    _directory = Path(directory)


def get_directory() -> Path:
    if _directory is not None:
        return _directory
    return Path(get_prompt_dir())


def split_front_matter(source: str) -> Tuple[Dict[str, Any], str]:
    """Split '---' delimited YAML front matter from the template body."""
    text = source.lstrip("\ufeff")
    if not text.startswith("---"):
        return {}, source
    lines = text.splitlines(keepends=True)
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            header = "".join(lines[1:i])
            body = "".join(lines[i + 1:])
            break
    else:
        raise PromptError("front matter is missing its closing '---'")

    try:
        front = yaml.safe_load(header) or {}
    except yaml.YAMLError as e:
        raise PromptError(f"failed to parse front matter: {e}") from e
    if not isinstance(front, dict):
        raise PromptError("front matter must be a YAML mapping")
    return front, body


def _config_from_front_matter(front: Dict[str, Any]) -> Config:
    config = Config()
    config.model_name = front.get("model", "") or ""

    input_section = front.get("input") or {}
    config.input_schema = input_section.get("schema")
    config.default_input = input_section.get("default") or {}

    output_section = front.get("output") or {}
    if output_section.get("format"):
        try:
            config.output_format = OutputFormat(output_section["format"])
        except ValueError:
            raise PromptError(f"unknown output format {output_section['format']!r}")
    config.output_schema = output_section.get("schema")

    config.generation_config = config_from_dict(front.get("config"))

    for tool_name in front.get("tools") or []:
        tool = lookup_tool(tool_name)
        if tool is None:
            raise PromptError(f"prompt uses undefined tool {tool_name!r}")
        config.tools.append(tool)
    return config


def parse(name: str, source: str, variant: str = "") -> Prompt:
    """
    Parse a .prompt source: YAML front matter followed by the template.

    The prompt is returned unregistered.
    """
    front, template_text = split_front_matter(source)
    return Prompt(name, template_text, _config_from_front_matter(front), variant=variant)


def open_prompt(name: str, variant: str = "") -> Prompt:
    """Load {directory}/{name}[.{variant}].prompt"""
    filename = f"{name}.{variant}.prompt" if variant else f"{name}.prompt"
    path = get_directory() / filename
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PromptError(f"failed to read prompt file {path}: {e}") from e
    logger.debug(f"Loaded prompt {path}")
    return parse(name, source, variant=variant)
