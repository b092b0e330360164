from __future__ import annotations

import re

# ==========================================
# Tool lexicon (canonical id -> sanitized keywords)
# ==========================================

TOOL_DEFINITIONS: dict[str, list[str]] = {
    "Slack": ["slack"],
    "Microsoft Teams": ["microsoft teams", "ms teams", "teams"],
    "Zoom": ["zoom"],
    "Google Meet": ["google meet", "hangouts meet", "meet"],
    "Notion": ["notion"],
    "Confluence": ["confluence", "atlassian confluence"],
    "Linear": ["linear"],
    "Jira": ["jira"],
    "Asana": ["asana"],
    "Trello": ["trello"],
    "ClickUp": ["clickup", "click up"],
    "Monday.com": ["monday com", "monday"],
    "Basecamp": ["basecamp"],
    "Airtable": ["airtable"],
    "Figma": ["figma"],
    "Miro": ["miro", "realtimeboard", "real time board"],
    "Lucidchart": ["lucidchart", "lucid chart"],
    "Dropbox": ["dropbox"],
    "Box": ["box com", "box platform", "box cloud"],
    "Google Drive": ["google drive", "gdrive", "g drive"],
    "OneDrive": ["onedrive", "one drive"],
    "GitHub": ["github", "git hub"],
    "GitLab": ["gitlab", "git lab"],
    "Bitbucket": ["bitbucket", "bit bucket"],
    "CircleCI": ["circleci", "circle ci"],
    "Jenkins": ["jenkins"],
    "PagerDuty": ["pagerduty", "pager duty"],
    "Datadog": ["datadog", "data dog"],
    "New Relic": ["new relic"],
    "Sentry": ["sentry"],
    "ServiceNow": ["servicenow", "service now"],
    "Zendesk": ["zendesk"],
    "Freshdesk": ["freshdesk", "fresh desk"],
    "Intercom": ["intercom"],
    "Salesforce": ["salesforce", "sales force"],
    "HubSpot": ["hubspot", "hub spot"],
    "Marketo": ["marketo"],
    "Mailchimp": ["mailchimp", "mail chimp"],
    "Amplitude": ["amplitude"],
    "Mixpanel": ["mixpanel", "mix panel"],
    "Segment": ["segment", "twilio segment"],
    "Snowflake": ["snowflake"],
    "Looker": ["looker", "google looker"],
    "Tableau": ["tableau"],
    "Power BI": ["power bi", "powerbi"],
    "Workday": ["workday", "work day"],
    "BambooHR": ["bamboohr", "bamboo hr"],
    "Okta": ["okta"],
    "Auth0": ["auth0", "auth 0"],
    "1Password": ["1password", "onepassword", "1 password"],
}

OTHER_TOOL = "Other"

# Chat, ticketing, docs and whiteboard tools that count toward multi-tool integration mode
COLLABORATION_TOOLS = {
    "Slack",
    "Microsoft Teams",
    "Zoom",
    "Google Meet",
    "Notion",
    "Confluence",
    "Linear",
    "Jira",
    "Asana",
    "Trello",
    "ClickUp",
    "Monday.com",
    "Basecamp",
    "Airtable",
    "Figma",
    "Miro",
    "ServiceNow",
    "Zendesk",
    "GitHub",
    "GitLab",
}

# Verbs (any case) that usually precede a capitalised tool name ("Integrate with Foo", "we use Bar")
TOOL_MENTION_RE = re.compile(
    r"\b(?i:integrat(?:e|es|ing)(?:\s+with)?|connect(?:s|ing)?\s+(?:to|with)|sync(?:s|ing)?\s+with|"
    r"hook(?:s|ing)?\s+into|we\s+use|we\s+rely\s+on)\s+"
    r"([A-Z][A-Za-z0-9.+]*(?:\s+[A-Z][A-Za-z0-9.+]*)?)"
)

TOOL_MENTION_STOPWORDS = {
    "a", "an", "the", "our", "your", "their", "it", "this", "that", "everything", "all",
    "existing", "internal", "other", "tools", "systems",
}

# ==========================================
# Compliance lexicon
# ==========================================

COMPLIANCE_KEYWORDS: dict[str, list[str]] = {
    "SOC2": ["soc2", "soc 2"],
    "HIPAA": ["hipaa"],
    "ISO27001": ["iso27001", "iso 27001"],
    "GDPR": ["gdpr", "privacy law", "privacy regulation"],
    "SOX": ["sox", "sarbanes oxley"],
    "audit": ["audit ready", "audit"],
    "regulated-industry": ["regulated industry", "highly regulated", "regulated market"],
}

GENERAL_COMPLIANCE_KEYWORDS = ["compliance", "regulatory", "regulation"]

# ==========================================
# Tone lexicon (first matching tone wins)
# ==========================================

TONE_KEYWORDS: list[tuple[str, list[str]]] = [
    (
        "fast-paced",
        [
            "fast paced", "punchy", "energetic", "snappy", "quick turnaround",
            "gonna", "wanna", "asap", "lol", "super quick", "ship it",
        ],
    ),
    (
        "meticulous",
        ["meticulous", "detailed", "thorough", "buttoned up", "compliance focused"],
    ),
    (
        "trusted-advisor",
        ["trusted advisor", "advisory", "consultative", "guidance"],
    ),
    ("onboarding", ["onboarding", "welcome experience", "getting started"]),
    ("migration", ["migration", "cutover", "data move"]),
]

# ==========================================
# Team size phrases
# ==========================================

SOLO_KEYWORDS = ["solo", "just me", "individual contributor", "one person", "single founder"]
SMALL_TEAM_KEYWORDS = ["small team", "under 10", "less than 10", "tiny team"]
MID_TEAM_KEYWORDS = ["mid-sized team", "mid size team", "mid team", "growth team"]
LARGE_TEAM_KEYWORDS = ["large team", "enterprise team", "big team", "over 25"]

# ==========================================
# Slot validator vocabularies
# ==========================================

DEFAULT_FORBIDDEN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"lorem ipsum", re.IGNORECASE),
    re.compile(r"\{\{.*?\}\}"),
    re.compile(r"\[(?:insert|placeholder|tbd|todo)\b[^\]]*\]", re.IGNORECASE),
    re.compile(r"<\s*/?\s*[a-z][^>]*>", re.IGNORECASE),
)

NEGATIVE_WORDS = ["failure", "penalty", "violation", "disciplinary", "shutdown", "breach", "lawsuit"]
SLANG_WORDS = ["gonna", "wanna", "kinda", "sorta", "lol", "btw", "omg", "y'all"]
COMPLIANCE_TONE_KEYWORDS = ["compliance", "policy", "controls", "audit", "governance", "review"]

NEGATIVE_SENSITIVE_TONES = {"friendly", "collaborative", "confident"}
INFORMAL_SENSITIVE_TONES = {"formal", "compliance"}
