"""
Shared fixtures for unit tests.
"""

from types import SimpleNamespace

import pytest

from pr_agent.models import PRContext
from pr_agent.services.devops_client import AzureDevOpsClient


class FakeGitClient:
    """In-memory stand-in for the Azure DevOps SDK git client."""

    def __init__(self):
        self.threads = []
        self.description = None
        self.labels = []
        self.iterations = []
        self.change_entries = []
        self.fail_update = False
        self.fail_list = False
        self.fail_create = False
        self.calls = []

    def get_threads(self, repository_id, pull_request_id, project=None):
        self.calls.append("get_threads")
        if self.fail_list:
            raise RuntimeError("list failed")
        return list(self.threads)

    def create_thread(self, comment_thread, repository_id, pull_request_id, project=None):
        self.calls.append("create_thread")
        if self.fail_create:
            raise RuntimeError("create failed")
        thread = SimpleNamespace(
            id=len(self.threads) + 1,
            comments=[SimpleNamespace(id=1, content=c.content) for c in comment_thread.comments],
            thread_context=comment_thread.thread_context,
            status=comment_thread.status,
        )
        self.threads.append(thread)
        return thread

    def update_comment(self, comment, repository_id, pull_request_id, thread_id, comment_id, project=None):
        self.calls.append("update_comment")
        if self.fail_update:
            raise RuntimeError("update failed")
        for thread in self.threads:
            if thread.id == thread_id:
                for existing in thread.comments:
                    if existing.id == comment_id:
                        existing.content = comment.content
                        return existing
        raise RuntimeError("comment not found")

    def update_pull_request(self, git_pull_request_to_update, repository_id, pull_request_id, project=None):
        self.calls.append("update_pull_request")
        self.description = git_pull_request_to_update.description
        return git_pull_request_to_update

    def create_pull_request_label(self, label, repository_id, pull_request_id, project=None):
        self.calls.append("create_pull_request_label")
        self.labels.append(label.name)
        return label

    def get_pull_request_iterations(self, repository_id, pull_request_id, project=None):
        self.calls.append("get_pull_request_iterations")
        return self.iterations

    def get_pull_request_iteration_changes(self, repository_id, pull_request_id, iteration_id, project=None):
        self.calls.append("get_pull_request_iteration_changes")
        return SimpleNamespace(change_entries=self.change_entries)


@pytest.fixture
def pr_context():
    return PRContext(
        is_pr=True,
        pr_number=42,
        title="Add retries",
        author="Dev",
        source_branch="refs/heads/feature",
        target_branch="refs/heads/main",
        organization_url="https://dev.azure.com/contoso/",
        project_name="Payments",
        repository_name="api",
    )


@pytest.fixture
def git_client():
    return FakeGitClient()


@pytest.fixture
def devops_client(pr_context, git_client):
    return AzureDevOpsClient(pr_context, "test_pat", git_client=git_client)
