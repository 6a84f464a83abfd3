"""
Test configuration and fixtures for the n8n node catalog.
"""

from typing import Any, Dict

import pytest

from n8n_node_catalog.models import (
    CanonicalRecord,
    NodeInput,
    NodeOutput,
    NodeProperty,
    NodeReference,
    RawRecord,
)

BASE_URL = "https://docs.n8n.io/integrations/builtin/"


@pytest.fixture
def fast_config() -> Dict[str, Any]:
    """Scraper config without any waiting and without category pages."""
    return {
        "base_url": BASE_URL,
        "rate_limit_ms": 0,
        "retry_delay_ms": 0,
        "batch_cooldown_ms": 0,
        "timeout_ms": 1000,
        "max_retries": 3,
        "batch_size": 5,
        "categories": {},
    }


@pytest.fixture
def node_page_html() -> str:
    """A node documentation page with operations, credentials and an example."""
    return """
    <html>
        <head>
            <title>Slack node documentation | n8n Docs</title>
            <meta name="description" content="Use the Slack node to automate work in Slack and integrate it with other applications.">
        </head>
        <body>
            <h1>Slack</h1>
            <p>Use the Slack node to automate work in Slack.</p>

            <h2>Credentials</h2>
            <p>Refer to Slack credentials for guidance on setting up OAuth authentication.</p>

            <h2>Operations</h2>
            <p>Send and manage channel messages.</p>
            <table>
                <tr><th>Parameter</th><th>Type</th><th>Required</th><th>Description</th></tr>
                <tr><td>Channel</td><td>string</td><td>Yes</td><td>Channel to post to</td></tr>
                <tr><td>Text</td><td>string</td><td>No</td><td>Message text</td></tr>
            </table>

            <h2>Example usage</h2>
            <p>Post a message when a form is submitted.</p>
            <pre>{"nodes": [{"name": "Start"}, {"name": "Slack"}], "connections": {}}</pre>

            <h2>Troubleshooting</h2>
            <p>If a message fails to send, the node returns an error item.</p>
        </body>
    </html>
    """


def make_reference(name: str = "slack", **overrides: Any) -> NodeReference:
    data = {
        "name": name,
        "display_name": name.capitalize(),
        "url": f"{BASE_URL}app-nodes/n8n-nodes-base.{name}/",
        "category": "App Nodes",
        "priority": 2,
    }
    data.update(overrides)
    return NodeReference(**data)


def make_raw_record(name: str = "slack", **overrides: Any) -> RawRecord:
    data = {
        "url": f"{BASE_URL}app-nodes/n8n-nodes-base.{name}/",
        "name": name,
        "display_name": name.capitalize(),
        "description": "Send messages to channels and users in a Slack workspace.",
        "category": "App Nodes",
        "raw_content": "Slack node. Send messages to channels and users in a Slack workspace.",
    }
    data.update(overrides)
    return RawRecord(**data)


def make_canonical_record(name: str = "n8n-nodes-base.slack", **overrides: Any) -> CanonicalRecord:
    data = {
        "name": name,
        "display_name": "Slack",
        "description": "Send messages to channels and users in a Slack workspace.",
        "category": "Communication",
        "properties": [
            NodeProperty(
                name="operation",
                display_name="Operation",
                type="options",
                required=True,
                default="send",
                description="The operation to perform",
            )
        ],
        "inputs": [NodeInput(type="main", display_name="Input")],
        "outputs": [NodeOutput(type="main", display_name="Output")],
    }
    data.update(overrides)
    return CanonicalRecord(**data)


@pytest.fixture
def reference_factory():
    return make_reference


@pytest.fixture
def raw_record_factory():
    return make_raw_record


@pytest.fixture
def record_factory():
    return make_canonical_record
