"""Code Agent - CLI tool that turns issues and prompts into commits and PRs."""

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from committer.utils.context import (
    IssueContext,
    IssueContextError,
    extract_mentioned_files,
    get_issue_context,
    get_mentioned_files_content,
    get_repo_context,
)
from committer.utils.eval_runner import EvalResult, EvalRunner, has_eval_script
from committer.utils.file_parser import ResolvedFile
from committer.utils.file_processor import (
    FileWriter,
    ProcessingOptions,
    process_response,
)
from committer.utils.git_ops import GitError, GitRepository, generate_branch_name
from committer.utils.github_client import GitHubClient
from committer.utils.llm_client import LLMClient
from committer.utils.prompts import (
    CODE_GENERATION_SYSTEM_PROMPT,
    format_code_generation_prompt,
    format_continuation_prompt,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Result of a single generation step."""

    step: int
    response: str
    files: list[ResolvedFile]
    eval_result: EvalResult | None
    success: bool
    rejected: list[tuple[str, str]] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class RunResult:
    """Final result of a run."""

    success: bool
    steps: list[StepResult]
    written_files: list[str]
    completed: bool = False
    branch: str | None = None
    commit_sha: str | None = None
    pr_number: int | None = None
    error: str | None = None


class CodeAgent:
    """Agent that iterates generate -> apply -> evaluate until done."""

    def __init__(
        self,
        llm_client: LLMClient | None = None,
        git_repo: GitRepository | None = None,
        github_client: GitHubClient | None = None,
        eval_runner: EvalRunner | None = None,
        writer: FileWriter | None = None,
        options: ProcessingOptions | None = None,
        max_steps: int | None = None,
        max_idle_steps: int | None = None,
        create_pr: bool = True,
        root: Path | None = None,
    ) -> None:
        """Initialize Code Agent.

        Args:
            llm_client: LLM client instance.
            git_repo: Local git repository wrapper.
            github_client: GitHub client used to open the pull request.
            eval_runner: Eval script runner.
            writer: File writer for parsed files.
            options: Response processing options.
            max_steps: Maximum number of generation steps.
            max_idle_steps: Consecutive steps without usable files before stopping.
            create_pr: Push the branch and open a pull request when done.
            root: Working tree root.
        """
        self._root = root or Path.cwd()
        self._llm = llm_client or LLMClient()
        self._git = git_repo or GitRepository(self._root)
        self._eval = eval_runner or EvalRunner(cwd=self._root)
        self._writer = writer or FileWriter(self._root)
        self._options = options or ProcessingOptions()
        self._max_steps = max_steps or int(os.environ.get("MAX_STEPS", "5"))
        self._max_idle_steps = max_idle_steps or int(
            os.environ.get("MAX_IDLE_STEPS", "2")
        )
        self._create_pr = create_pr

        if github_client is None and create_pr and os.environ.get("GITHUB_TOKEN"):
            github_client = GitHubClient()
        self._github = github_client

    def run(self, issue: IssueContext) -> RunResult:
        """Run the generation loop for a task.

        Args:
            issue: The task context.

        Returns:
            RunResult with the run outcome.
        """
        logger.info(f"Processing: {issue.title}")

        branch: str | None = None
        use_git = self._options.materialize and self._git.is_repository()
        if use_git:
            try:
                branch = self._git.create_branch(generate_branch_name(issue))
            except GitError as e:
                logger.error(f"Failed to create branch: {e}")
                return RunResult(
                    success=False,
                    steps=[],
                    written_files=[],
                    error=f"Failed to create branch: {e}",
                )
        else:
            logger.info("Not in a git repository or dry run; skipping git operations")

        repo_context = get_repo_context(self._root)
        mentioned = extract_mentioned_files(issue.description)
        mentioned_content = ""
        if mentioned:
            logger.info(f"Found mentioned files: {', '.join(mentioned)}")
            mentioned_content = get_mentioned_files_content(mentioned, self._root)

        steps: list[StepResult] = []
        written: list[str] = []
        completed = False
        idle_steps = 0

        for step in range(1, self._max_steps + 1):
            logger.info(f"Step {step}/{self._max_steps}")
            start_time = time.time()

            if steps:
                previous = steps[-1]
                eval_output = ""
                if previous.eval_result:
                    eval_output = previous.eval_result.output
                prompt = format_continuation_prompt(
                    issue=issue,
                    previous_response=previous.response,
                    eval_output=eval_output,
                    written_files=written,
                    step=step,
                    max_steps=self._max_steps,
                )
            else:
                prompt = format_code_generation_prompt(
                    issue=issue,
                    repo_context=repo_context,
                    mentioned_content=mentioned_content,
                    step=step,
                    max_steps=self._max_steps,
                )

            try:
                result = self._run_step(prompt, step)
            except Exception as e:
                logger.error(f"Step {step} failed: {e}", exc_info=True)
                steps.append(
                    StepResult(
                        step=step,
                        response="",
                        files=[],
                        eval_result=None,
                        success=False,
                        errors=[str(e)],
                    )
                )
                break

            steps.append(result)
            if self._options.materialize:
                paths = result.written
            else:
                paths = [f.name for f in result.files]
            for path in paths:
                if path not in written:
                    written.append(path)

            elapsed = time.time() - start_time
            logger.info(f"Step {step} completed in {elapsed:.1f}s")

            eval_result = result.eval_result
            if eval_result is not None and eval_result.skipped:
                logger.info("Eval skipped - assuming ready for PR")
                completed = True
                break
            if result.success:
                logger.info("Evaluation passed - ready for PR")
                completed = True
                break

            idle_steps = 0 if paths else idle_steps + 1
            if idle_steps >= self._max_idle_steps:
                logger.error(
                    f"No usable files in {idle_steps} consecutive steps; stopping"
                )
                break
            logger.info("Evaluation failed - continuing to next step")
        else:
            logger.warning("Reached maximum steps. Finishing with current progress.")

        if not written:
            error = None if completed else "No usable files were generated"
            if error:
                logger.error(error)
            return RunResult(
                success=completed,
                steps=steps,
                written_files=[],
                completed=completed,
                branch=branch,
                error=error,
            )

        if not use_git:
            return RunResult(
                success=True,
                steps=steps,
                written_files=written,
                completed=completed,
            )

        return self._finish(issue, steps, written, completed, branch)

    def _run_step(self, prompt: str, step: int) -> StepResult:
        """Run a single generate -> apply -> evaluate step.

        Args:
            prompt: Prompt for this step.
            step: Current step number.

        Returns:
            StepResult with the step outcome.
        """
        logger.info(f"Prompt length: {len(prompt)} chars")
        llm_start = time.time()
        response = self._llm.generate_code(
            prompt=prompt,
            system_prompt=CODE_GENERATION_SYSTEM_PROMPT,
        )
        logger.info(f"LLM response received in {time.time() - llm_start:.1f}s")
        logger.debug(f"LLM response:\n{response}")

        processed = process_response(response, self._options, self._writer)
        errors = [f"Failed to write {path}" for path in processed.failed]

        if not processed.files:
            logger.warning(f"No files generated in step {step}")

        if self._options.materialize:
            eval_result = self._eval.run(response)
        else:
            eval_result = EvalResult(success=True, output="Dry run")

        if not eval_result.success and not eval_result.skipped:
            errors.append(eval_result.output)

        # Without accepted files only an eval script that ran and passed
        # can mark the step as done.
        script_passed = (
            self._options.materialize
            and has_eval_script(response)
            and eval_result.success
        )
        if not processed.files and not script_passed:
            errors.append("No usable files in response")
        success = (
            eval_result.success
            and not processed.failed
            and (bool(processed.files) or script_passed)
        )

        return StepResult(
            step=step,
            response=response,
            files=processed.files,
            eval_result=eval_result,
            success=success,
            rejected=processed.rejected,
            written=processed.written,
            errors=errors,
        )

    def _finish(
        self,
        issue: IssueContext,
        steps: list[StepResult],
        written: list[str],
        completed: bool,
        branch: str | None,
    ) -> RunResult:
        """Commit written files and open a pull request."""
        try:
            message = self._llm.generate_commit_message(written, issue)
            logger.info(f"Commit message: {message}")
            sha = self._git.commit_files(written, message)
        except GitError as e:
            logger.error(f"Failed to commit files: {e}")
            return RunResult(
                success=False,
                steps=steps,
                written_files=written,
                completed=completed,
                branch=branch,
                error=f"Failed to commit files: {e}",
            )

        if not (self._create_pr and self._github and branch):
            return RunResult(
                success=True,
                steps=steps,
                written_files=written,
                completed=completed,
                branch=branch,
                commit_sha=sha,
            )

        try:
            logger.info("Pushing branch and creating pull request...")
            pr_number = self._create_pull_request(
                self._github, issue, branch, written, completed
            )
        except Exception as e:
            logger.error(f"Failed to create PR: {e}", exc_info=True)
            return RunResult(
                success=False,
                steps=steps,
                written_files=written,
                completed=completed,
                branch=branch,
                commit_sha=sha,
                error=f"Failed to create PR: {e}",
            )

        logger.info(f"Pull request ready: #{pr_number}")
        return RunResult(
            success=True,
            steps=steps,
            written_files=written,
            completed=completed,
            branch=branch,
            commit_sha=sha,
            pr_number=pr_number,
        )

    def _create_pull_request(
        self,
        github: GitHubClient,
        issue: IssueContext,
        branch: str,
        files: list[str],
        completed: bool,
    ) -> int:
        """Push the branch and open (or reuse) a pull request.

        Returns:
            The PR number.
        """
        self._git.push(branch)

        existing = github.find_open_pr(branch)
        if existing is not None:
            logger.info(f"Reusing open PR #{existing} in {github.repository_name}")
            return existing

        status = "Evaluation passed." if completed else "Step budget exhausted."
        body = f"""## Summary
Automated implementation for: {issue.title}

{status}

## Changes
{chr(10).join(f"- `{f}`" for f in files)}

## Original Request
{issue.description[:500]}{"..." if len(issue.description) > 500 else ""}
"""
        pr_number = github.create_pr(
            title=f"{issue.title} (AI Generated)",
            body=body,
            head_branch=branch,
        )

        if issue.number is not None:
            github.link_pr_to_issue(pr_number, issue.number)
            github.post_comment(issue.number, f"Opened pull request #{pr_number}")
        return pr_number


def main() -> None:
    """Main entry point for the Code Agent CLI."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Generate code from GitHub issues or direct prompts",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-p",
        "--prompt",
        help="Direct prompt to work on instead of a GitHub event",
    )
    group.add_argument(
        "--issue",
        type=int,
        help="GitHub issue number to fetch and work on",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Maximum number of generation steps",
    )
    parser.add_argument(
        "--yolo",
        action="store_true",
        help="Run eval scripts without asking for confirmation",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse responses without writing files or touching git",
    )
    parser.add_argument(
        "--no-classifier",
        action="store_true",
        help="Keep placeholder-looking files instead of rejecting them",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Accept a trailing file block that is missing its END marker",
    )
    parser.add_argument(
        "--no-pr",
        action="store_true",
        help="Commit locally without pushing or opening a pull request",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--output-json",
        action="store_true",
        help="Output result as JSON",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    yolo = (
        args.yolo
        or os.environ.get("YOLO") == "true"
        or bool(os.environ.get("GITHUB_ACTIONS"))
    )
    logger.info(f"YOLO mode: {'ON' if yolo else 'OFF'}")

    try:
        if args.issue:
            issue = GitHubClient().get_issue(args.issue)
        else:
            issue = get_issue_context(prompt_text=args.prompt)
    except (IssueContextError, ValueError) as e:
        print(f"Failed to load task: {e}")
        sys.exit(1)

    options = ProcessingOptions(
        materialize=not args.dry_run,
        apply_classifier=not args.no_classifier,
        allow_unterminated=args.lenient,
    )
    agent = CodeAgent(
        eval_runner=EvalRunner(yolo=yolo),
        options=options,
        max_steps=args.max_steps,
        create_pr=not args.no_pr,
    )
    result = agent.run(issue)

    if args.output_json:
        output = {
            "success": result.success,
            "completed": result.completed,
            "steps": len(result.steps),
            "files": result.written_files,
            "branch": result.branch,
            "commit": result.commit_sha,
            "pr_number": result.pr_number,
            "error": result.error,
        }
        print(json.dumps(output, indent=2))
    else:
        if result.success:
            if result.pr_number:
                print(f"Pull request #{result.pr_number} is ready")
            print(f"Files generated: {len(result.written_files)}")
            for path in result.written_files:
                print(f"  - {path}")
        else:
            print(f"Failed to generate code: {result.error}")

    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
