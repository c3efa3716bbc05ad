"""
Blog Post Pipeline.

A sample organization demonstrating the engine:
1. researchTeam gathers notes and keywords for a topic in parallel
2. researchTeam condenses both into a writing brief
3. writingTeam drafts and edits a post from the brief
4. writingTeam's title job runs on its own to produce a headline

All units are rule-based, so the pipeline runs without a generative model.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, List, Optional

from ..core.capabilities import CapabilityRegistry
from ..core.factory import GroupFactory, OrganizationFactory
from ..core.organization import Organization
from ..core.units import Unit

STOPWORDS = {
    "about", "after", "also", "been", "from", "have", "into", "more", "that",
    "their", "there", "these", "they", "this", "what", "when", "which", "with",
    "your", "will", "would", "should", "could", "than", "then",
}


# ============================================================================
# Capabilities
# ============================================================================

capabilities = CapabilityRegistry()


@capabilities.register(name="extract_keywords")
def extract_keywords(text: str, limit: int = 5) -> List[str]:
    """Return the most frequent meaningful words of a text."""
    words = [
        w for w in re.findall(r"[a-zA-Z]{4,}", text.lower()) if w not in STOPWORDS
    ]
    return [word for word, _ in Counter(words).most_common(limit)]


@capabilities.register(name="word_count")
def word_count(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


# ============================================================================
# Unit Handlers
# ============================================================================


def research_notes(topic: str, context: Dict[str, Any]) -> Dict[str, Any]:
    audience = context.get("audience", "general readers")
    notes = [
        f"{topic} matters to {audience} because it shapes everyday decisions.",
        f"Common questions about {topic} concern getting started and avoiding mistakes.",
        f"Practical examples make {topic} easier to understand.",
    ]
    return {"notes": " ".join(notes), "sources": ["field guide", "community forum"]}


async def keyword_finder(topic: str, context: Dict[str, Any], unit: Unit) -> List[str]:
    seed = f"{topic} {context.get('angle', '')}"
    return await unit.use("extract_keywords", seed, limit=3)


def brief_writer(text: str, context: Dict[str, Any]) -> str:
    return f"BRIEF\n{text.strip()}"


def draft_writer(brief: str, context: Dict[str, Any]) -> str:
    lines = [line for line in brief.splitlines() if line and line != "BRIEF"]
    body = "\n\n".join(lines)
    return f"# Draft\n\n{body}\n"


async def editor(draft: str, context: Dict[str, Any], unit: Unit) -> Dict[str, Any]:
    post = draft.replace("# Draft", "# Post").strip() + "\n"
    return {"post": post, "word_count": await unit.use("word_count", post)}


def headline(topic: str, context: Dict[str, Any]) -> str:
    return f"A Practical Guide to {topic.strip().title()}"


HANDLERS = {
    "research_notes": research_notes,
    "keyword_finder": keyword_finder,
    "brief_writer": brief_writer,
    "draft_writer": draft_writer,
    "editor": editor,
    "headline": headline,
}


# ============================================================================
# Organization Configuration
# ============================================================================

BLOG_CONFIG: Dict[str, Any] = {
    "name": "blogAgency",
    "description": "Researches a topic and writes a short blog post about it.",
    "groups": {
        "researchTeam": {
            "name": "researchTeam",
            "description": "Collects material for a topic.",
            "units": {
                "researcher": {"role": "Researcher", "handler": "research_notes"},
                "keywordFinder": {
                    "role": "SEO Analyst",
                    "handler": "keyword_finder",
                    "capabilities": ["extract_keywords"],
                },
                "briefWriter": {"role": "Editor", "handler": "brief_writer"},
            },
            "jobs": {
                "gatherNotes": {
                    "unitName": "researcher",
                    "inputMapping": {"topic": "initialInputs.topic"},
                    "outputKey": "notes",
                    "parallel": True,
                },
                "findKeywords": {
                    "unitName": "keywordFinder",
                    "inputMapping": {"topic": "initialInputs.topic"},
                    "parallel": True,
                },
                "brief": {
                    "unitName": "briefWriter",
                    "inputMapping": {
                        "notes": "results.gatherNotes",
                        "keywords": "results.findKeywords",
                    },
                    "inputTemplate": "{{notes}}\nKeywords: {{keywords}}",
                },
            },
            "workflow": ["gatherNotes", "findKeywords", "brief"],
        },
        "writingTeam": {
            "name": "writingTeam",
            "description": "Turns a brief into a finished post.",
            "units": {
                "writer": {"role": "Writer", "handler": "draft_writer"},
                "editor": {
                    "role": "Editor",
                    "handler": "editor",
                    "capabilities": ["word_count"],
                },
                "titler": {"role": "Headline Writer", "handler": "headline"},
            },
            "jobs": {
                "draft": {"unitName": "writer"},
                "edit": {
                    "unitName": "editor",
                    "inputMapping": {"draft": "results.draft"},
                },
                "title": {
                    "unitName": "titler",
                    "inputMapping": {"topic": "initialInputs.topic"},
                },
            },
            "workflow": ["draft", "edit"],
        },
    },
    "workflows": {
        "createBlogPost": {
            "description": "Research, write and title a post.",
            "steps": [
                {
                    "name": "research",
                    "groupName": "researchTeam",
                    "inputMapping": {"topic": "initialInputs.topic"},
                    "outputKey": "brief",
                },
                {
                    "name": "writing",
                    "groupName": "writingTeam",
                    "inputMapping": {"brief": "results.research"},
                    "outputKey": "edit",
                },
                {
                    "name": "headline",
                    "groupName": "writingTeam",
                    "jobName": "title",
                    "inputMapping": {"topic": "initialInputs.topic"},
                },
            ],
        },
    },
}


def create_blog_organization(entry_timeout: Optional[float] = None) -> Organization:
    """Build the sample blog organization."""
    group_factory = GroupFactory(
        handlers=HANDLERS, capabilities=capabilities, entry_timeout=entry_timeout
    )
    return OrganizationFactory(group_factory).create_organization(BLOG_CONFIG)
