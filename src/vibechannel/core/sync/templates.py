"""Protocol documentation seeded into a freshly created data branch."""

DEFAULT_CHANNEL = "general"
ATTACHMENTS_DIR = "assets"

README_TEMPLATE = """\
# VibeChannel Data

This branch contains VibeChannel conversation data.

Every top-level folder is a channel and every Markdown file inside it is one
message. See `schema.md` for the exact format.
"""

SCHEMA_TEMPLATE = """\
# VibeChannel Schema

This file defines the format for VibeChannel conversations.

## Folder Structure

```yaml
root: /
channels: subfolders (e.g., general/, random/, dev/)
messages: markdown files inside channel folders
attachments: assets/ (binary files referenced by messages)
```

## Filename Convention

```yaml
pattern: "{timestamp}-{sender}-{id}.md"
timestamp:
  format: "%Y%m%dT%H%M%S"
  timezone: UTC
  example: "20250115T103045"
sender:
  format: "lowercase alphanumeric, no spaces"
  example: "lucas"
id:
  length: 6
  charset: "a-z0-9"
  example: "a3f8x2"
```

## Message Format

```yaml
from: string        # Sender identifier
date: datetime      # ISO 8601 format
reply_to: string    # Optional: filename of parent message
tags: [array]       # Optional: categorization tags
edited: datetime    # Optional: ISO 8601 time of last edit
attachments: [array] # Optional: paths relative to the branch root
```

The header block is followed by a blank line and the message text.

## Rendering Preferences

```yaml
rendering:
  sort_by: date
  order: ascending
  group_by: date
  timestamp_display: relative
```
"""

AGENT_TEMPLATE = """\
# Agent Instructions for VibeChannel

This branch contains conversations following the VibeChannel protocol.

**IMPORTANT:** Read `schema.md` for the complete format specification.

## Quick Start

1. Each channel is a subfolder (e.g., general/, random/)
2. Each message is a `.md` file: `{timestamp}-{sender}-{id}.md`
3. Use YAML frontmatter + markdown body
4. Never edit another sender's message file

## Example Message

```markdown
---
from: lucas
date: 2025-01-15T10:30:45Z
---

Your message content here.
```
"""

SEED_FILES = {
    "README.md": README_TEMPLATE,
    "schema.md": SCHEMA_TEMPLATE,
    "agent.md": AGENT_TEMPLATE,
}
