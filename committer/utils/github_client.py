"""GitHub API client wrapper."""

import logging
import os

from github import Auth, Github, GithubException
from github.Repository import Repository

from committer.utils.context import IssueContext

logger = logging.getLogger(__name__)


class GitHubClient:
    """GitHub API client for issues and pull requests."""

    def __init__(
        self,
        token: str | None = None,
        repository: str | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            token: GitHub token. Defaults to GITHUB_TOKEN env var.
            repository: Repository in owner/repo format. Defaults to GITHUB_REPOSITORY env var.
        """
        self._token = token or os.environ.get("GITHUB_TOKEN", "")
        self._repository = repository or os.environ.get("GITHUB_REPOSITORY", "")

        if not self._token:
            raise ValueError("GitHub token is required")
        if not self._repository:
            raise ValueError("Repository is required (format: owner/repo)")

        auth = Auth.Token(self._token)
        self._github = Github(auth=auth)
        self._repo: Repository = self._github.get_repo(self._repository)

    @property
    def repository_name(self) -> str:
        """Get the repository name in owner/repo format."""
        return self._repository

    def get_issue(self, issue_number: int) -> IssueContext:
        """Fetch an issue as task context.

        Args:
            issue_number: The issue number to fetch.

        Returns:
            IssueContext with the issue title and body.
        """
        issue = self._repo.get_issue(issue_number)
        body = issue.body or ""
        return IssueContext(
            title=issue.title,
            description=body,
            body=body,
            number=issue.number,
            user=issue.user.login if issue.user else "unknown",
        )

    def create_pr(
        self,
        title: str,
        body: str,
        head_branch: str,
        base_branch: str | None = None,
    ) -> int:
        """Create a pull request.

        Args:
            title: PR title.
            body: PR description.
            head_branch: Source branch.
            base_branch: Target branch. If None, uses repo default.

        Returns:
            The PR number.
        """
        if base_branch is None:
            base_branch = self._repo.default_branch
        pr = self._repo.create_pull(
            title=title,
            body=body,
            head=head_branch,
            base=base_branch,
        )
        logger.info(f"Created PR #{pr.number}: {title}")
        return pr.number

    def find_open_pr(self, head_branch: str) -> int | None:
        """Find an open PR for a branch.

        Args:
            head_branch: Source branch name.

        Returns:
            The PR number, or None if there is none.
        """
        owner = self._repository.split("/")[0]
        for pr in self._repo.get_pulls(state="open", head=f"{owner}:{head_branch}"):
            return pr.number
        return None

    def link_pr_to_issue(self, pr_number: int, issue_number: int) -> None:
        """Update PR body to link to an issue.

        Args:
            pr_number: The PR number.
            issue_number: The issue number to link.
        """
        pr = self._repo.get_pull(pr_number)
        current_body = pr.body or ""
        if f"Closes #{issue_number}" not in current_body:
            new_body = f"{current_body}\n\nCloses #{issue_number}"
            pr.edit(body=new_body.strip())

    def post_comment(self, issue_or_pr_number: int, body: str) -> None:
        """Post a comment on an issue or PR.

        Args:
            issue_or_pr_number: The issue or PR number.
            body: Comment body text.
        """
        try:
            issue = self._repo.get_issue(issue_or_pr_number)
            issue.create_comment(body)
        except GithubException as e:
            logger.warning(f"Failed to comment on #{issue_or_pr_number}: {e}")
            return
        logger.info(f"Posted comment on #{issue_or_pr_number}")
