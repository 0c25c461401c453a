"""System prompt assembly for the regulations assistant.

This module provides:
- Prompt blocks (answering guidelines, project scope, history, documents, regulations)
- The compiler that stacks them for scoped and unscoped requests
"""

from app.context.prompt_compiler import build_system_prompt

__all__ = ["build_system_prompt"]
