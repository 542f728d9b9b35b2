from .file import get_directory, open_prompt, parse, set_directory
from .prompt import Config, Prompt, PromptRequest, define, lookup_prompt
from .template import Template, to_messages
