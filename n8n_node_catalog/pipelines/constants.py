"""Static knowledge about the n8n documentation layout and catalog conventions."""

from typing import Any, Dict

# Documentation path segment every node page lives under
DOCS_PATH_SEGMENT = "/integrations/builtin/"

# Category listing pages and their default priority (1 = highest)
NODE_CATEGORIES: Dict[str, Dict[str, Any]] = {
    "core-nodes": {
        "name": "Core Nodes",
        "path": "core-nodes/",
        "description": "Essential n8n functionality nodes",
        "priority": 1,
    },
    "app-nodes": {
        "name": "App Nodes",
        "path": "app-nodes/",
        "description": "Third-party service integrations",
        "priority": 2,
    },
    "trigger-nodes": {
        "name": "Trigger Nodes",
        "path": "trigger-nodes/",
        "description": "Event-driven workflow starters",
        "priority": 3,
    },
    "cluster-nodes": {
        "name": "Cluster Nodes",
        "path": "cluster-nodes/",
        "description": "Distributed processing nodes",
        "priority": 4,
    },
    "sub-nodes": {
        "name": "Sub Nodes",
        "path": "sub-nodes/",
        "description": "Specialized component nodes",
        "priority": 5,
    },
}

# Category label and priority for links found on the root listing page
MAIN_CATEGORY = "Main"
DEFAULT_PRIORITY = 5

# Path segments that are never node identifiers
NON_NODE_SEGMENTS = {"index", "builtin", "integrations"}

# Names containing these are core primitives and always get priority 1
CORE_NODE_KEYWORDS = [
    "http",
    "webhook",
    "function",
    "set",
    "if",
    "merge",
    "split",
    "wait",
    "trigger",
    "manual",
    "schedule",
    "code",
    "switch",
    "filter",
]

# Widely used services get a one-step priority boost
COMMON_NODE_KEYWORDS = [
    "gmail",
    "slack",
    "discord",
    "google",
    "microsoft",
    "twitter",
    "facebook",
    "linkedin",
    "telegram",
    "trello",
    "notion",
    "airtable",
    "github",
]

# Page-text indicators used by the extractor
TRIGGER_INDICATORS = [
    "trigger node",
    "starts the workflow",
    "webhook trigger",
    "schedule trigger",
    "manual trigger",
]
WEBHOOK_INDICATORS = ["webhook", "http endpoint", "incoming request", "webhook url"]
POLLING_INDICATORS = ["polling", "check interval", "poll for", "periodically check"]
CORE_PAGE_INDICATORS = ["core node", "built-in node"]

# Heading keywords that open extractable sections
OPERATION_KEYWORDS = ["operation", "action", "method"]
CREDENTIAL_KEYWORDS = ["credential", "authentication", "auth", "api key", "token"]
EXAMPLE_KEYWORDS = ["example", "usage", "sample"]
CREDENTIAL_TYPE_KEYWORDS = ["oauth", "api key", "token", "basic auth", "bearer"]

# Placeholders emitted when extraction finds nothing
NO_DESCRIPTION = "No description available"
GENERIC_DESCRIPTION = "Integration node for workflow automation"

# Source category label -> canonical category
CATEGORY_MAP = {
    "Core Nodes": "Core",
    "App Nodes": "Communication",
    "Trigger Nodes": "Trigger",
    "Cluster Nodes": "Utility",
    "Sub Nodes": "Utility",
    "Main": "Communication",
    "main": "Communication",
}
FALLBACK_CATEGORY = "Communication"

# Raw parameter type -> canonical property type
PARAMETER_TYPE_MAP = {
    "string": "string",
    "text": "string",
    "number": "number",
    "integer": "number",
    "boolean": "boolean",
    "select": "options",
    "options": "options",
    "multiselect": "multiOptions",
    "json": "json",
    "credential": "credentials",
}

CODE_KEYWORDS = ["function", "code", "javascript", "expression", "script"]
ERROR_KEYWORDS = ["error", "fail"]

QUALITY_THRESHOLDS = {
    "min_description_length": 20,
    "max_description_length": 1000,
    "min_parameter_count": 1,
    "min_raw_content_length": 100,
}

VALIDATION_RULES = {
    "trigger": {"min_description_length": 30},
    "regular": {"min_description_length": 20},
}
