"""LLM prompt templates for code generation and commit messages."""

from committer.utils.context import IssueContext

CODE_GENERATION_SYSTEM_PROMPT = """You are a professional software developer working directly in a git repository. Every response you give is parsed by a program: files are written to disk exactly as you delimit them, and your eval script decides whether another step is needed."""

OUTPUT_FORMAT_INSTRUCTIONS = """Generate complete file contents using this EXACT format:

=== FILENAME: path/to/file.ext ===
[complete file content here]
=== END: path/to/file.ext ===

Rules:
- Use real repository paths; the example path above is only a template
- The END line must repeat the exact same path as its FILENAME line
- Always write complete files, never partial snippets or placeholders
- It is fine to respond with only a plan and an eval script and no files

Include an evaluation script at the end:

```bash
# EVAL
cat existing-file.js
grep -R "TODO" src/
# Exit 0 when the task is complete and ready for a pull request,
# non-zero when another step is needed
exit 1
```"""

CODE_GENERATION_PROMPT = """Help with this request:

<task>
{task_section}
</task>

<context>
{repo_context}
</context>
{referenced_files}
<instructions>
Analyze the request and repository structure.

Think about which files need to be:
- observed
- modified
- created
- deleted

When modifying existing files you MUST know their current contents: either they
are already included in the context, or read them with `cat` in the eval
script and modify them in the next step.

{output_format}
</instructions>

## Current Step
This is step {step} of up to {max_steps} steps. Make meaningful progress toward completing the task.
"""

CONTINUATION_PROMPT = """Continue working on the task. This is step {step} of {max_steps}.

<task>
{task_section}
</task>

## Previous Response
{previous_response}

## Previous Eval Result
{eval_output}

## Files Written So Far
{written_files}

What needs to be done next? Generate any additional files or fixes needed.

{output_format}
"""

COMMIT_MESSAGE_PROMPT = """Generate a concise git commit message (one line, under 72 characters) for these changes.

Task: {title}

Changed files:
{files}

Respond with just the commit message, no explanation."""


def format_task_section(issue: IssueContext) -> str:
    """Render the task description for a prompt."""
    if issue.number is not None:
        return (
            f"## GitHub Issue #{issue.number}\n"
            f"**Title:** {issue.title}\n"
            f"**Description:**\n{issue.description}"
        )
    return f"## Task\n{issue.description}"


def format_code_generation_prompt(
    issue: IssueContext,
    repo_context: str,
    mentioned_content: str = "",
    step: int = 1,
    max_steps: int = 5,
) -> str:
    """Format the initial code generation prompt.

    Args:
        issue: The task context.
        repo_context: Repository context text.
        mentioned_content: Content of files mentioned in the task.
        step: Current step number.
        max_steps: Step budget.

    Returns:
        Formatted prompt string.
    """
    referenced = ""
    if mentioned_content:
        referenced = f"\n<referenced_files>\n{mentioned_content}\n</referenced_files>\n"

    return CODE_GENERATION_PROMPT.format(
        task_section=format_task_section(issue),
        repo_context=repo_context or "No repository context available.",
        referenced_files=referenced,
        output_format=OUTPUT_FORMAT_INSTRUCTIONS,
        step=step,
        max_steps=max_steps,
    )


def format_continuation_prompt(
    issue: IssueContext,
    previous_response: str,
    eval_output: str,
    written_files: list[str],
    step: int,
    max_steps: int,
) -> str:
    """Format the prompt for a follow-up step.

    Args:
        issue: The task context.
        previous_response: Raw model output of the previous step.
        eval_output: Output of the previous eval script.
        written_files: Files written in all previous steps.
        step: Current step number.
        max_steps: Step budget.

    Returns:
        Formatted prompt string.
    """
    files_str = "\n".join(f"- {f}" for f in written_files) or "None"

    return CONTINUATION_PROMPT.format(
        task_section=format_task_section(issue),
        previous_response=previous_response,
        eval_output=eval_output or "No output",
        written_files=files_str,
        output_format=OUTPUT_FORMAT_INSTRUCTIONS,
        step=step,
        max_steps=max_steps,
    )


def format_commit_message_prompt(files: list[str], issue: IssueContext) -> str:
    """Format the commit message prompt.

    Args:
        files: Paths of the changed files.
        issue: The task context.

    Returns:
        Formatted prompt string.
    """
    return COMMIT_MESSAGE_PROMPT.format(
        title=issue.title if issue.number is not None else issue.description[:200],
        files="\n".join(f"- {f}" for f in files),
    )
