"""relman contrib — operator decision points.

Provides the ``Prompter`` port through which every confirmation and
selection reaches the operator, with interactive (Rich) and
non-interactive adapters.
"""

from relman.contrib.prompts import (
    AutoPrompter,
    ConsolePrompter,
    Prompter,
    parse_index_list,
)

__all__ = [
    "Prompter",
    "ConsolePrompter",
    "AutoPrompter",
    "parse_index_list",
]
