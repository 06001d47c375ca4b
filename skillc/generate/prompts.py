"""System prompt templates, one per artifact."""

from __future__ import annotations

from skillc.generate.artifacts import ArtifactID

SKILL_PROMPT = """You are writing the SKILL.md file of an Agent Skills directory.

Produce a complete SKILL.md with:
1. YAML frontmatter between --- delimiters containing:
   - name: exactly the name provided
   - description: at most 1024 characters; what the skill does and when to use it
   - any extra metadata provided (license, compatibility, metadata, allowed-tools)

2. A markdown body of fewer than 500 lines, ordered for progressive disclosure:
   - ## Configuration: environment variables and authentication setup
   - ## Core Concepts: the mental model of the tool
   - ## Key Operations: the most important operations with short usage notes
   - ## Value Formats: important data types and formats
   - ## Best Practices: guardrails, conventions and common pitfalls
   - ## File References: pointers into references/ and scripts/

Write for an AI agent that needs to understand the tool quickly. Use relative
file references such as references/reference.md. Do not paste raw API specs;
they belong in references/."""

REFERENCE_PROMPT = """You are writing reference.md, an exhaustive endpoint and command reference.

List EVERY operation with:
- the full path or command syntax
- every parameter, flag and argument with its type and description
- request and response body shapes for APIs
- error codes and their meaning
- authentication requirements

Group operations by resource or domain area and keep the formatting uniform."""

EXAMPLES_PROMPT = """You are writing examples.md, a set of worked multi-step workflows.

Each example must:
- have a title that states the goal
- show the full sequence of operations with realistic sample data
- explain what each step does
- show the expected responses or output

Focus on the workflows an agent performs most often, drawing on the workflow
descriptions and common patterns provided."""

SCRIPTS_PROMPT = """You are writing executable shell scripts for a skill's scripts/ directory.

Every script must:
- start with #!/bin/bash or #!/bin/sh
- open with a comment header giving its purpose, required env vars and usage
- be runnable by an agent as-is

Good candidates are a health-check.sh that validates connectivity and auth, a
discover.sh that lists available resources, and scripts that bundle common
multi-step workflows.

Emit each script as a fenced code block whose info string is the filename:
```health-check.sh
#!/bin/bash
# Purpose: validate API connectivity and authentication
# Env vars: MY_APP_API_URL, MY_APP_API_KEY
# Usage: ./health-check.sh
curl -s -o /dev/null -w "%{http_code}" "$MY_APP_API_URL/health"
```"""

LLMS_PROMPT = """You are writing llms.txt, a short product overview of about 500 tokens.

Include what the tool or service does in one or two sentences, its key
capabilities as bullet points, and links to the other documentation files."""

LLMS_API_PROMPT = """You are writing llms-api.txt, a concise interface reference of 2000-4000 tokens.

Include a quick start (authentication, base URL), every operation as a
one-line summary (method, path, short description), common patterns such as
pagination and filtering, and a table of error codes. Every operation must
appear."""

LLMS_FULL_PROMPT = """You are writing llms-full.txt, complete documentation of 5000-15000 tokens.

Cover the overview and core concepts, authentication and configuration, every
operation in full (parameters, request and response shapes, examples), worked
examples of common workflows, error handling and troubleshooting, and best
practices."""

CHANGELOG_PROMPT = """You are writing a CHANGELOG.md entry by comparing the previous and current specs and instructions.

Use these sections and omit the empty ones:
### Added
### Changed
### Deprecated
### Removed
### Instructions

Name the operations and parameters involved and give before/after values. If
there are no previous artifacts, write an "Initial generation" entry."""

SYSTEM_PROMPTS = {
    ArtifactID.SKILL: SKILL_PROMPT,
    ArtifactID.REFERENCE: REFERENCE_PROMPT,
    ArtifactID.EXAMPLES: EXAMPLES_PROMPT,
    ArtifactID.SCRIPTS: SCRIPTS_PROMPT,
    ArtifactID.LLMS: LLMS_PROMPT,
    ArtifactID.LLMS_API: LLMS_API_PROMPT,
    ArtifactID.LLMS_FULL: LLMS_FULL_PROMPT,
    ArtifactID.CHANGELOG: CHANGELOG_PROMPT,
}


def system_prompt_for(artifact: ArtifactID) -> str:
    return SYSTEM_PROMPTS[artifact]
