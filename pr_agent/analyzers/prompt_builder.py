"""
Prompt templates for each analysis kind.

Every template shares the same base context (PR title, description, changed
file list and fenced file contents) and asks the model for a Markdown layout
the response normalizer and inline extractor know how to read.
"""

from typing import Any, Dict, Iterable, Mapping, Optional

from pr_agent.models import AnalysisKind, AnalysisRequest

DEFAULT_ASK_QUESTION = "What is the main purpose of this PR?"
DEFAULT_REPLY_QUESTION = "Please analyze this PR"
DEFAULT_REQUEST_TITLE = "Pull Request Analysis"
DEFAULT_REQUEST_DESCRIPTION = "Automated analysis request"

SYSTEM_PROMPT = (
    "You are an expert code reviewer. Analyze the provided code and return a JSON "
    "response with quality scores, security assessment, and suggestions."
)

FOCUS_INSTRUCTION = "Focus ONLY on new features, bug fixes, and affected areas introduced in this PR."
SECURITY_FOCUS = (
    "**Security Focus**: Look for potential vulnerabilities, exposed secrets, "
    "authentication issues, and data validation problems."
)
CODE_QUALITY_FOCUS = (
    "**Code Quality Focus**: Evaluate readability, maintainability, performance, "
    "and adherence to best practices."
)
SECURITY_EMPHASIS = (
    "**Security Emphasis**: Treat this as a security review. Report a "
    "`| **Security** | [0-10] |` row in the summary table and list every "
    "vulnerability with the affected file and line."
)

_CONTEXT_BLOCK = """Title: {title}
Description: {description}
Files changed: {files_changed}
File Contents:
{file_contents}"""

REVIEW_TEMPLATE = """Perform a comprehensive code review for the following pull request. {focus}

**Analysis Requirements:**
1. **Security Analysis**: Identify vulnerabilities, exposed secrets, authentication issues
2. **Code Quality**: Evaluate maintainability, readability, performance, best practices
3. **Bug Detection**: Find potential runtime errors, logic issues, edge cases
4. **Architecture Review**: Assess design patterns, modularity, coupling
5. **Specific Recommendations**: Provide actionable, line-specific suggestions

{context}

**Output Format:**

## 🔍 Code Review Summary

| Category | Score | Assessment |
| :--- | :---: | :--- |
| **Overall Quality** | [0-10] | [Brief assessment] |
| **Security Risk** | [Low/Med/High] | [Key concerns or "None"] |
| **Maintainability** | [0-10] | [Brief assessment] |

## 🚨 Critical Issues
*Only if applicable. Use "None" if no critical issues found.*
- [Issue 1]: [Description]
- [Issue 2]: [Description]

## 💡 Suggestions & Best Practices
<details open>
<summary>Click to view detailed suggestions</summary>

### 🛡️ Security
- [Security Improvement 1]
- [Security Improvement 2]

### ⚡ Performance & Quality
- [Performance/Quality Improvement 1]
- [Performance/Quality Improvement 2]

</details>

## 📁 File-Specific Comments
*Group comments by file. Use code blocks for suggestions.*

#### `filename.ext` (Line N)
[Comment/Suggestion]
```suggestion
[Proposed Code Change]
```

{security_focus}
{quality_focus}"""

IMPROVE_TEMPLATE = """Provide comprehensive code improvement suggestions for the following pull request. {focus}

**Improvement Categories:**
1. **Performance Optimizations**: Identify bottlenecks, inefficient algorithms, resource usage
2. **Code Architecture**: Suggest better design patterns, modularity, separation of concerns
3. **Maintainability**: Improve readability, reduce complexity, enhance documentation
4. **Security Hardening**: Strengthen authentication, validation, error handling
5. **Best Practices**: Apply language-specific conventions, modern patterns
6. **Testing Strategy**: Suggest testability improvements and test coverage

{context}

**Output Format:**

## 🚀 Code Improvement Analysis

### 📊 Summary Board

| Category | Status | Key Focus |
| :--- | :---: | :--- |
| **Performance** | [High/Med/Low Impact] | [Key optimization] |
| **Architecture** | [Good/Needs Work] | [Proposed pattern] |
| **Security** | [Secure/Risk] | [Enhancement] |

### 🎯 Priority Improvements

#### 🔥 High Priority
*Critical improvements for immediate action*
- [Improvement 1]
- [Improvement 2]

#### ⚡ Performance & Optimization
*Efficiency gains*
- [Optimization 1]
- [Optimization 2]

### 📁 File-Specific Improvements
<details open>
<summary>Click to view code suggestions</summary>

#### `filename.ext` (Lines X-Y)
**Issue**: [What needs improvement]

**current:**
```language
[exact current code]
```

**improved:**
```language
[improved code]
```

**Benefits**:
- [Benefit 1]
- [Benefit 2]

</details>

### 🧪 Testing & Docs
- [Testing Recommendation]
- [Documentation Enhancement]

{quality_focus}"""

TESTS_TEMPLATE = """Generate comprehensive test case suggestions (max 250 words) for the following pull request. {focus} Provide specific test scenarios, edge cases, and testing strategies.

{context}

Consider:
- Unit tests for new functions/methods
- Integration tests for component interactions
- Edge cases and error scenarios
- Performance testing if applicable
- Security testing for sensitive operations
- Regression testing for modified functionality

Format as Markdown with:

## 🧪 Test Strategy
| Type | Coverage Target | Focus |
| :--- | :--- | :--- |
| **Unit** | [Target %] | [Focus area] |
| **Integration** | [Modules] | [Interaction flow] |

## 📋 Test Scenarios
<details open>
<summary>Click to view test cases</summary>

### ✅ Happy Path
- [Scenario 1]
- [Scenario 2]

### ⚠️ Edge Cases
- [Scenario 1]
- [Scenario 2]

### 🛡️ Security & Performance
- [Scenario 1]
- [Scenario 2]

</details>"""

COMPLIANCE_TEMPLATE = """Perform compliance checks for the following pull request. {focus} Check for adherence to coding standards, documentation requirements, and best practices.
{context}

**Compliance Areas to Check:**
- Coding standards and style guidelines
- Documentation completeness
- Naming conventions
- Error handling patterns
- Security compliance
- Performance considerations
- Test coverage requirements

Format your response as Markdown:

## 📋 Compliance Checklist

| Requirement | Status | Notes |
| :--- | :---: | :--- |
| **Coding Standards** | [✅/⚠️/❌] | [Notes] |
| **Documentation** | [✅/⚠️/❌] | [Notes] |
| **Security** | [✅/⚠️/❌] | [Notes] |
| **Testing** | [✅/⚠️/❌] | [Notes] |

## 🔍 Detailed Findings
- [Specific finding 1]
- [Specific finding 2]

## 💡 Remediation Steps
- [Action 1]
- [Action 2]"""

DESCRIBE_TEMPLATE = """Generate a concise, professional pull request description. {focus} Analyze the code changes and create a clear, focused description.

{context}

**Required Output Format (Markdown only):**

## 📋 Summary
[Brief 2-3 sentence overview of what this PR accomplishes]

## 🎯 Purpose
| Type | Description |
| :--- | :--- |
| **Problem** | [What issue does this solve?] |
| **Solution** | [How does this PR address the problem?] |
| **Value** | [Why is this change important?] |

## 🔧 Key Changes
*List key changes by category*

### 💻 Code
- [Change 1]
- [Change 2]

### 🏗️ Infrastructure / Config
- [Change 1]

## 🧪 Verification
- [Testing approach used]

## 📝 Reviewer Notes
[Any important considerations]

**Important**: Return clean Markdown text only. Do not use JSON format."""

ASK_TEMPLATE = """Answer the following question about the pull request concisely (max 150 words), focusing ONLY on the changes introduced in this PR. Use the provided PR details and file contents to formulate your answer.

Question: {question}
{context}

Format your response as follows:
## ❓ Question
{question}
## 📝 Answer
[Your detailed answer here based on the PR changes]
## 🔍 Key Changes
- [List key changes that relate to the question]
## 📁 Relevant Files
- [List files that are most relevant to the answer]

Keep it concise and focused on the PR changes. Format as Markdown."""

LABELS_TEMPLATE = """Analyze this pull request and suggest comprehensive labels/tags for categorization. {focus} Provide intelligent labeling based on code analysis, change patterns, and impact assessment.

{context}

**Required Label Categories (score 1-5):**

### 📊 **Effort & Size Assessment**
- **review-effort**: Review complexity (1=trivial, 2=simple, 3=moderate, 4=complex, 5=extensive)
- **size-of-changes**: Code change volume (1=tiny, 2=small, 3=medium, 4=large, 5=massive)
- **testing-effort**: Testing requirements (1=minimal, 2=basic, 3=standard, 4=comprehensive, 5=extensive)

### 🎯 **Change Type Classification**
- **feature**: New functionality (1=minor, 2=small, 3=moderate, 4=major, 5=significant)
- **bugfix**: Bug resolution (1=trivial, 2=minor, 3=moderate, 4=critical, 5=hotfix)
- **refactor**: Code restructuring (1=minimal, 2=localized, 3=moderate, 4=significant, 5=major)
- **documentation**: Documentation changes (1=typos, 2=minor, 3=updates, 4=new-docs, 5=comprehensive)

### 🔒 **Risk & Quality Assessment**
- **security-impact**: Security implications (1=none, 2=low, 3=medium, 4=high, 5=critical)
- **breaking-changes**: Compatibility impact (1=none, 2=minor, 3=moderate, 4=significant, 5=major)
- **performance-impact**: Performance implications (1=none, 2=minor, 3=moderate, 4=significant, 5=major)
- **quality-of-code**: Code quality level (1=poor, 2=below-avg, 3=average, 4=good, 5=excellent)

### 🏷️ **Technology & Domain Tags**
[Suggest 2-3 relevant technology/domain tags based on files changed]

**Output Format:**
## 🏷️ Suggested Labels

### Core Assessment Labels
- review-effort:X/5 - [reasoning]
- size-of-changes:X/5 - [reasoning]
- quality-of-code:X/5 - [reasoning]
- security-impact:X/5 - [reasoning]

### Change Type Labels
- [change-type]:X/5 - [reasoning]

### Technology Tags
- [tech-tag-1] - [reasoning]
- [tech-tag-2] - [reasoning]

### Priority Recommendation
**Priority**: [Low/Medium/High/Critical] - [justification]

Format as Markdown with clear categorization and scoring rationale."""

AUTO_APPROVE_TEMPLATE = """Evaluate this pull request for auto-approval. {focus} Assess the risk level and provide a recommendation.
{context}

**Evaluation Criteria:**
- Risk assessment of changes
- Code quality and safety
- Test coverage and validation
- Compliance with standards
- Security implications

Provide a clear APPROVE or REJECT recommendation with detailed reasoning. Format as Markdown."""

REPLY_TEMPLATE = """Reply to the following user comment about this pull request. {focus} Provide a helpful, context-aware response.
{context}

**User Comment:** {question}

Provide a detailed, helpful response based on the PR content. Format your response as Markdown."""

_TEMPLATES: Dict[AnalysisKind, str] = {
    AnalysisKind.REVIEW: REVIEW_TEMPLATE,
    AnalysisKind.SECURITY: REVIEW_TEMPLATE,
    AnalysisKind.IMPROVE: IMPROVE_TEMPLATE,
    AnalysisKind.TESTS: TESTS_TEMPLATE,
    AnalysisKind.COMPLIANCE: COMPLIANCE_TEMPLATE,
    AnalysisKind.DESCRIBE: DESCRIBE_TEMPLATE,
    AnalysisKind.ASK: ASK_TEMPLATE,
    AnalysisKind.LABELS: LABELS_TEMPLATE,
    AnalysisKind.AUTO_APPROVE: AUTO_APPROVE_TEMPLATE,
    AnalysisKind.REPLY: REPLY_TEMPLATE,
}


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def build_base_context(pr_details: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Render the context shared by every template.

    Args:
        pr_details: Mapping with optional ``title``, ``description`` and
            ``files`` (FileRecord objects or mappings with path/content)

    Returns:
        Dict with title, description, files_changed and file_contents
    """
    pr_details = pr_details or {}
    files: Iterable[Any] = pr_details.get("files") or []
    files = list(files)

    if files:
        files_changed = ", ".join(str(_field(f, "path") or "") for f in files)
        file_contents = "\n".join(
            f"### {_field(f, 'path') or ''}\n```\n{_field(f, 'content') or ''}\n```"
            for f in files
        )
    else:
        files_changed = "No files detected"
        file_contents = "No file contents available"

    return {
        "title": pr_details.get("title") or "No title provided",
        "description": pr_details.get("description") or "No description provided",
        "files_changed": files_changed,
        "file_contents": file_contents,
    }


def default_question(kind: AnalysisKind) -> Optional[str]:
    """Question used for ask/reply when the caller supplies none."""
    if kind == AnalysisKind.ASK:
        return DEFAULT_ASK_QUESTION
    if kind == AnalysisKind.REPLY:
        return DEFAULT_REPLY_QUESTION
    return None


class PromptBuilder:
    """Renders analysis requests into prompt text. Pure; never raises."""

    def build(
        self,
        kind: AnalysisKind,
        pr_details: Optional[Mapping[str, Any]] = None,
        question: Optional[str] = None,
        custom_prompt: Optional[str] = None,
    ) -> str:
        """
        Build the prompt for one analysis kind.

        Args:
            kind: Analysis kind selecting the template
            pr_details: Mapping of title, description and files
            question: Question for ask/reply (defaults per kind)
            custom_prompt: Extra instructions appended to the prompt

        Returns:
            Prompt text
        """
        context = build_base_context(pr_details)
        template = _TEMPLATES.get(kind, REVIEW_TEMPLATE)

        prompt = template.format(
            focus=FOCUS_INSTRUCTION,
            security_focus=SECURITY_FOCUS,
            quality_focus=CODE_QUALITY_FOCUS,
            question=question or default_question(kind) or DEFAULT_ASK_QUESTION,
            context=_CONTEXT_BLOCK.format(**context),
        )

        if kind == AnalysisKind.SECURITY:
            prompt = f"{prompt}\n{SECURITY_EMPHASIS}"

        if custom_prompt and custom_prompt.strip():
            prompt = f"{prompt}\n\n**Additional Instructions:**\n{custom_prompt.strip()}"

        return prompt

    def build_for_request(self, request: AnalysisRequest) -> str:
        """Build the prompt for a full analysis request."""
        pr_details = {
            "title": request.title or DEFAULT_REQUEST_TITLE,
            "description": request.description or DEFAULT_REQUEST_DESCRIPTION,
            "files": request.files,
        }
        return self.build(
            request.kind,
            pr_details,
            question=request.options.question,
            custom_prompt=request.options.custom_prompt,
        )
