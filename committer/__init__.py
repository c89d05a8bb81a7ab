"""Issue-to-pull-request code generation agent."""

from committer.code_agent import CodeAgent

__all__ = ["CodeAgent"]
