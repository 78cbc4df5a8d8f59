"""
Pull request context resolution.

The target PR comes either from an explicit PR URL or from the predefined
variables the Azure Pipelines agent exports for pull request builds.
"""

import os
from typing import Mapping, Optional
from urllib.parse import quote, unquote, urlparse

from pr_agent.models import PRContext
from pr_agent.utils.logging import get_logger

logger = get_logger(__name__)

MANUAL_TITLE = "Manual PR Analysis"
MANUAL_AUTHOR = "Manual"
UNKNOWN = "Unknown"


def parse_pr_url(pr_url: str) -> Optional[PRContext]:
    """
    Parse an Azure DevOps pull request URL.

    Accepts ``https://dev.azure.com/<org>/<project>/_git/<repo>/pullrequest/<n>``
    and ``https://<org>.visualstudio.com/<project>/_git/<repo>/pullrequest/<n>``.

    Args:
        pr_url: Pull request URL

    Returns:
        PRContext for the PR, or None if the URL is not recognized
    """
    try:
        parsed = urlparse(pr_url)
    except ValueError as e:
        logger.warning(f"Error parsing PR URL: {e}")
        return None

    host = (parsed.hostname or "").lower()
    parts = [part for part in parsed.path.split("/") if part]

    organization_url = project = repository = number = None

    if host == "dev.azure.com":
        if len(parts) >= 6 and parts[2] == "_git" and parts[4].lower() == "pullrequest":
            organization_url = f"https://dev.azure.com/{parts[0]}/"
            project, repository, number = parts[1], parts[3], parts[5]
    elif host.endswith(".visualstudio.com"):
        if len(parts) >= 5 and parts[1] == "_git" and parts[3].lower() == "pullrequest":
            organization_url = f"https://{host}/"
            project, repository, number = parts[0], parts[2], parts[4]

    if not organization_url or not number or not number.isdigit() or int(number) < 1:
        return None

    return PRContext(
        is_pr=True,
        pr_number=int(number),
        title=MANUAL_TITLE,
        author=MANUAL_AUTHOR,
        source_branch=UNKNOWN,
        target_branch=UNKNOWN,
        organization_url=organization_url,
        project_name=unquote(project),
        repository_name=unquote(repository),
        pr_url=pr_url,
    )


def detect_pr_context(pr_url: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> PRContext:
    """
    Resolve the PR this run targets.

    An explicit URL wins when it parses; otherwise the pipeline variables
    decide (``BUILD_REASON == 'PullRequest'`` plus a PR number).

    Args:
        pr_url: Optional explicit PR URL
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Resolved PRContext (``is_pr`` False for non-PR builds)
    """
    env = os.environ if environ is None else environ

    if pr_url:
        logger.info(f"Using manual PR URL: {pr_url}")
        context = parse_pr_url(pr_url)
        if context is not None:
            return context
        logger.warning("Failed to parse manual PR URL, falling back to auto-detection")

    build_reason = env.get("BUILD_REASON")
    raw_number = env.get("SYSTEM_PULLREQUEST_PULLREQUESTNUMBER") or env.get("SYSTEM_PULLREQUEST_PULLREQUESTID")
    pr_number = int(raw_number) if raw_number and raw_number.isdigit() else None
    is_pr = build_reason == "PullRequest" and pr_number is not None

    organization_url = env.get("SYSTEM_TEAMFOUNDATIONCOLLECTIONURI") or ""
    project_name = env.get("SYSTEM_TEAMPROJECT") or ""
    repository_name = env.get("BUILD_REPOSITORY_NAME") or ""

    url = None
    if is_pr and organization_url and project_name and repository_name:
        url = (
            f"{organization_url.rstrip('/')}/{quote(project_name)}/_git/"
            f"{quote(repository_name)}/pullrequest/{pr_number}"
        )

    return PRContext(
        is_pr=is_pr,
        pr_number=pr_number,
        title=env.get("SYSTEM_PULLREQUEST_PULLREQUESTTITLE") or UNKNOWN,
        author=env.get("SYSTEM_PULLREQUEST_PULLREQUESTCREATEDBY_DISPLAYNAME") or UNKNOWN,
        source_branch=env.get("BUILD_SOURCEBRANCH") or UNKNOWN,
        target_branch=env.get("SYSTEM_PULLREQUEST_TARGETBRANCH") or UNKNOWN,
        organization_url=organization_url if organization_url.endswith("/") or not organization_url else f"{organization_url}/",
        project_name=project_name,
        repository_name=repository_name,
        pr_url=url,
    )
