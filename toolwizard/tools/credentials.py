"""
Per-provider credential shaping.

Tool providers expect credentials inside the tool arguments, and each one
expects a different shape. ``CREDENTIAL_SHAPERS`` maps a server name to a
function that copies the caller's credential bundle for that server into
the arguments. Adding a provider means adding one entry here.

Two shapes cover most providers:

- ``envelope(...)``: ``args["__credentials__"] = {field: value, ...}``
- ``flat(...)``: fields written directly into ``args``
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

CredentialShaper = Callable[[Mapping[str, Any], dict[str, Any]], None]

CREDENTIALS_KEY = "__credentials__"


def _nested(bundle: Mapping[str, Any]) -> Mapping[str, Any]:
    """Some callers wrap the bundle in a ``credentials`` object."""
    inner = bundle.get("credentials")
    return inner if isinstance(inner, Mapping) and inner else bundle


def envelope(*fields: str, nested: bool = False, defaults: Mapping[str, Any] | None = None) -> CredentialShaper:
    """Shaper that writes the named fields under ``args["__credentials__"]``."""
    defaults = defaults or {}

    def shape(bundle: Mapping[str, Any], args: dict[str, Any]) -> None:
        source = _nested(bundle) if nested else bundle
        args[CREDENTIALS_KEY] = {
            field: source.get(field) or defaults.get(field, "") for field in fields
        }

    return shape


def flat(*fields: str, rename: Mapping[str, str] | None = None) -> CredentialShaper:
    """Shaper that writes the named fields straight into ``args``.

    ``rename`` maps a bundle field to a different argument name.
    """
    rename = rename or {}

    def shape(bundle: Mapping[str, Any], args: dict[str, Any]) -> None:
        for field in fields:
            args[rename.get(field, field)] = bundle.get(field) or ""

    return shape


def _google_drive(bundle: Mapping[str, Any], args: dict[str, Any]) -> None:
    # Accepts both the bare OAuth client and the "web" client-secrets format
    args[CREDENTIALS_KEY] = dict(bundle.get("web") or bundle)


def _dropbox(bundle: Mapping[str, Any], args: dict[str, Any]) -> None:
    source = _nested(bundle)
    args[CREDENTIALS_KEY] = {
        "app_key": source.get("app_key") or source.get("appKey") or "",
        "app_secret": source.get("app_secret") or source.get("appSecret") or "",
        "refresh_token": source.get("refresh_token") or source.get("refreshToken") or "",
    }


CREDENTIAL_SHAPERS: dict[str, CredentialShaper] = {
    "AIRTABLE": envelope("api_key"),
    "CLICKUP_MCP": envelope("api_token"),
    "CONFLUENCE": envelope("api_token", "user_email", "base_url", nested=True),
    "DROPBOX": _dropbox,
    "FIGMA_MCP": envelope("api_token", "figma_url", "depth", defaults={"depth": 0}),
    "G_DRIVE": _google_drive,
    "HUBSPOT_MCP": envelope("access_token"),
    "INSTAGRAM_MCP": envelope("accessToken", "businessAccountId", "appId", "appSecret"),
    "JIRA": envelope("jira_email", "jira_api_token", "jira_domain", "project_key"),
    "LINKEDIN": flat("access_token", rename={"access_token": "accessToken"}),
    "NOTION_MCP": envelope("notion_token"),
    "SALESFORCE_MCP": flat("username", "password", "token"),
    "SHOPIFY": envelope("access_token", "domain"),
    "SLACK": envelope("slack_bot_token", "slack_team_id", "slack_channel_ids"),
    "WORDPRESS": flat("siteUrl", "username", "password"),
    "X_MCP": envelope("app_key", "app_secret", "access_token", "access_token_secret", nested=True),
    "ZENDESK_MCP": envelope("email", "token", "subdomain"),
    "ZOOMMCP": envelope("account_id", "client_id", "client_secret"),
}


def apply_credentials(
    provider: str,
    bundle: Mapping[str, Any] | None,
    args: dict[str, Any],
    shapers: Mapping[str, CredentialShaper] = CREDENTIAL_SHAPERS,
) -> dict[str, Any]:
    """
    Inject ``provider``'s credentials into ``args`` in place and return it.

    Unknown providers leave ``args`` untouched. A bundle that is not a
    mapping is treated as empty.
    """
    shaper = shapers.get(provider)
    if shaper is not None:
        shaper(bundle if isinstance(bundle, Mapping) else {}, args)
    return args
