"""
Which providers get structured tool declarations.

Providers with native function calling receive ``tools=[...]`` and answer
with structured tool calls. The rest get the text-marker block appended to
their system prompt and have ``[USE_TOOL:<id>:<json>]`` parsed from the
reply text.
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class ProviderCapabilities:
    name: str
    native_function_calling: bool

    @property
    def requires_text_markers(self) -> bool:
        return not self.native_function_calling


_NATIVE = {"openai", "deepseek"}
_TEXT_MARKER = {"ollama", "qwen"}

PROVIDER_CAPABILITIES: Dict[str, ProviderCapabilities] = {
    **{name: ProviderCapabilities(name, native_function_calling=True) for name in _NATIVE},
    **{name: ProviderCapabilities(name, native_function_calling=False) for name in _TEXT_MARKER},
}


def get_provider_capabilities(provider: str) -> ProviderCapabilities:
    """
    Capabilities for ``provider`` (case-insensitive).

    Unknown providers are treated as text-marker providers: a marker in the
    reply works everywhere, a ``tools`` parameter does not.
    """
    key = (provider or "").strip().lower()
    return PROVIDER_CAPABILITIES.get(key, ProviderCapabilities(key, native_function_calling=False))
