"""Static catalog of the dashboard's views and tools."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(slots=True, frozen=True)
class ToolInfo:
    """Display metadata for a navigable tool or view."""

    id: str
    name: str
    description: str


BUSINESS_DETAILS_ID: Final[str] = "business_details"
GROWTH_PLAN_ID: Final[str] = "growth_plan"
REPLY_TO_REVIEWS_ACTION: Final[str] = "reply_to_reviews"

AUDIT_A_ID: Final[str] = "profile_audit"
AUDIT_B_ID: Final[str] = "website_audit"

# Ordering matters: daily tool recommendations break ties by catalog order.
TOOLS: Final[tuple[ToolInfo, ...]] = (
    ToolInfo(BUSINESS_DETAILS_ID, "Business Details", "Manage your core business information."),
    ToolInfo(GROWTH_PLAN_ID, "Growth Plan", "Manage your weekly action plan and track your progress."),
    ToolInfo(AUDIT_A_ID, "Business Profile Audit", "Analyze and optimize your Google Business Profile."),
    ToolInfo(AUDIT_B_ID, "Website Audit", "Get an AI-powered audit of your website for design and SEO."),
    ToolInfo("competitor_scan", "Competitor Scan", "Analyze local competitors and find ways to stand out."),
    ToolInfo("keyword_research", "Keyword Research", "Discover the local keywords that attract customers."),
    ToolInfo("campaign_builder", "Campaign Builder", "Create on-brand marketing campaigns and assets."),
    ToolInfo("social_posts", "Social Posts", "Generate engaging social media posts."),
    ToolInfo("image_studio", "Image Studio", "Generate high-quality images for your marketing."),
    ToolInfo("content_writer", "Content Writer", "Create SEO-friendly blog posts and articles."),
    ToolInfo("review_replies", "Review Replies", "Craft professional responses to customer reviews."),
    ToolInfo("trust_widgets", "Trust Widgets", "Create embeddable review widgets."),
    ToolInfo("lead_finder", "Lead Finder", "Find customers actively looking for your services."),
    ToolInfo("local_events", "Local Events", "Brainstorm local events and promotions."),
    ToolInfo("ad_copy", "Ad Copy", "Generate ad copy for search and social campaigns."),
    ToolInfo("product_showcase", "Product Showcase", "Present your products and services."),
)

_TOOLS_BY_ID: Final[dict[str, ToolInfo]] = {tool.id: tool for tool in TOOLS}

# One-shot audit-style tools; their tasks are surfaced through the growth plan.
FOUNDATION_TOOLS: Final[frozenset[str]] = frozenset({AUDIT_A_ID, AUDIT_B_ID, "competitor_scan", "keyword_research"})

EXECUTION_TOOLS: Final[tuple[str, ...]] = (
    "campaign_builder",
    "social_posts",
    "image_studio",
    "content_writer",
    "review_replies",
    "trust_widgets",
    "lead_finder",
    "local_events",
    "ad_copy",
    "product_showcase",
)


def get_tool(tool_id: str) -> ToolInfo | None:
    """Return metadata for ``tool_id`` or ``None`` when it is not catalogued."""

    return _TOOLS_BY_ID.get(tool_id)


def tool_name(tool_id: str) -> str:
    tool = get_tool(tool_id)
    return tool.name if tool else tool_id


__all__ = [
    "AUDIT_A_ID",
    "AUDIT_B_ID",
    "BUSINESS_DETAILS_ID",
    "EXECUTION_TOOLS",
    "FOUNDATION_TOOLS",
    "GROWTH_PLAN_ID",
    "REPLY_TO_REVIEWS_ACTION",
    "TOOLS",
    "ToolInfo",
    "get_tool",
    "tool_name",
]
