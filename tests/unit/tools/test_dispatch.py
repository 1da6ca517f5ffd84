"""
Unit tests for credential shaping and the ToolDispatcher.

Tests cover:
- Envelope and flat shapers, nested bundles and aliases
- Every registered provider produces its expected fields
- Unknown providers pass arguments through
- Dispatcher routing, credential injection and error-to-result conversion
"""

from unittest.mock import AsyncMock

import pytest

from toolwizard.tools.base import ToolExecutionError
from toolwizard.tools.credentials import (
    CREDENTIAL_SHAPERS,
    CREDENTIALS_KEY,
    apply_credentials,
    envelope,
    flat,
)
from toolwizard.tools.dispatcher import ToolDispatcher


class TestShapers:

    def test_envelope_writes_credentials_key(self):
        args = {"query": "x"}
        envelope("api_key")({"api_key": "k", "other": "ignored"}, args)
        assert args == {"query": "x", CREDENTIALS_KEY: {"api_key": "k"}}

    def test_envelope_missing_field_defaults_to_empty(self):
        args = {}
        envelope("a", "b", defaults={"b": 0})({}, args)
        assert args[CREDENTIALS_KEY] == {"a": "", "b": 0}

    def test_envelope_nested_bundle(self):
        args = {}
        envelope("api_token", nested=True)({"credentials": {"api_token": "t"}}, args)
        assert args[CREDENTIALS_KEY] == {"api_token": "t"}

    def test_nested_shaper_accepts_flat_bundle(self):
        args = {}
        envelope("api_token", nested=True)({"api_token": "t"}, args)
        assert args[CREDENTIALS_KEY] == {"api_token": "t"}

    def test_flat_writes_fields_directly(self):
        args = {"title": "Post"}
        flat("siteUrl", "username")({"siteUrl": "https://blog", "username": "me"}, args)
        assert args == {"title": "Post", "siteUrl": "https://blog", "username": "me"}

    def test_flat_rename(self):
        args = {}
        flat("access_token", rename={"access_token": "accessToken"})({"access_token": "a"}, args)
        assert args == {"accessToken": "a"}


class TestCredentialTable:

    def test_covers_every_provider(self):
        assert set(CREDENTIAL_SHAPERS) == {
            "AIRTABLE", "CLICKUP_MCP", "CONFLUENCE", "DROPBOX", "FIGMA_MCP", "G_DRIVE",
            "HUBSPOT_MCP", "INSTAGRAM_MCP", "JIRA", "LINKEDIN", "NOTION_MCP", "SALESFORCE_MCP",
            "SHOPIFY", "SLACK", "WORDPRESS", "X_MCP", "ZENDESK_MCP", "ZOOMMCP",
        }

    def test_slack(self):
        args = apply_credentials("SLACK", {"slack_bot_token": "xoxb", "slack_team_id": "T1"}, {})
        assert args[CREDENTIALS_KEY] == {
            "slack_bot_token": "xoxb",
            "slack_team_id": "T1",
            "slack_channel_ids": "",
        }

    def test_jira(self):
        bundle = {"jira_email": "a@b.com", "jira_api_token": "t", "jira_domain": "acme", "project_key": "OPS"}
        args = apply_credentials("JIRA", bundle, {"summary": "Bug"})
        assert args["summary"] == "Bug"
        assert args[CREDENTIALS_KEY] == bundle

    def test_salesforce_is_flat(self):
        args = apply_credentials("SALESFORCE_MCP", {"username": "u", "password": "p", "token": "t"}, {})
        assert args == {"username": "u", "password": "p", "token": "t"}

    def test_linkedin_renames_token(self):
        args = apply_credentials("LINKEDIN", {"access_token": "li"}, {})
        assert args == {"accessToken": "li"}

    def test_google_drive_web_client(self):
        web = {"client_id": "id", "client_secret": "s"}
        args = apply_credentials("G_DRIVE", {"web": web}, {})
        assert args[CREDENTIALS_KEY] == web

    def test_dropbox_accepts_camel_case(self):
        args = apply_credentials(
            "DROPBOX", {"credentials": {"appKey": "k", "appSecret": "s", "refreshToken": "r"}}, {}
        )
        assert args[CREDENTIALS_KEY] == {"app_key": "k", "app_secret": "s", "refresh_token": "r"}

    def test_figma_depth_default(self):
        args = apply_credentials("FIGMA_MCP", {"api_token": "t", "figma_url": "u"}, {})
        assert args[CREDENTIALS_KEY]["depth"] == 0

    def test_unknown_provider_untouched(self):
        args = {"command": "ls"}
        assert apply_credentials("FEDORA", {"secret": "x"}, args) == {"command": "ls"}

    def test_missing_bundle_gives_empty_fields(self):
        args = apply_credentials("NOTION_MCP", None, {})
        assert args[CREDENTIALS_KEY] == {"notion_token": ""}

    def test_non_mapping_bundle_treated_as_empty(self):
        args = apply_credentials("SLACK", "xoxb-token", {})
        assert args[CREDENTIALS_KEY] == {"slack_bot_token": "", "slack_team_id": "", "slack_channel_ids": ""}

    def test_non_mapping_nested_credentials_ignored(self):
        args = apply_credentials("CONFLUENCE", {"credentials": "oops", "api_token": "t"}, {})
        assert args[CREDENTIALS_KEY] == {"api_token": "t", "user_email": "", "base_url": ""}


class TestToolDispatcher:

    @pytest.mark.asyncio
    async def test_injects_credentials_and_calls_provider(self):
        provider = AsyncMock()
        provider.call.return_value = {"status": "sent"}
        dispatcher = ToolDispatcher({"SLACK": provider})

        args = {"text": "hi"}
        result = await dispatcher.execute("SLACK", {"slack_bot_token": "xoxb"}, "send_message", args)

        assert result == {"status": "sent"}
        sent_args = provider.call.await_args.args[1]
        assert sent_args["text"] == "hi"
        assert sent_args[CREDENTIALS_KEY]["slack_bot_token"] == "xoxb"
        # Shaping happens in place
        assert CREDENTIALS_KEY in args

    @pytest.mark.asyncio
    async def test_provider_exception_becomes_result(self):
        provider = AsyncMock()
        provider.call.side_effect = ToolExecutionError("server crashed")
        dispatcher = ToolDispatcher({"FEDORA": provider})

        result = await dispatcher.execute("FEDORA", None, "execute_command", {})

        assert result == "server crashed"

    @pytest.mark.asyncio
    async def test_unknown_provider_returns_message(self):
        dispatcher = ToolDispatcher({})

        result = await dispatcher.execute("NOPE", None, "anything", {})

        assert result == "Unknown tool provider: NOPE"

    @pytest.mark.asyncio
    async def test_key_error_inside_tool_is_not_unknown_provider(self):
        provider = AsyncMock()
        provider.call.side_effect = KeyError("missing")
        dispatcher = ToolDispatcher({"FEDORA": provider})

        result = await dispatcher.execute("FEDORA", None, "execute_command", {})

        assert result == "'missing'"

    @pytest.mark.asyncio
    async def test_custom_shaper_table(self):
        provider = AsyncMock()
        provider.call.return_value = "ok"
        shapers = {"FEDORA": flat("ssh_key")}
        dispatcher = ToolDispatcher({"FEDORA": provider}, shapers=shapers)

        await dispatcher.execute("FEDORA", {"ssh_key": "k"}, "execute_command", {"command": "ls"})

        provider.call.assert_awaited_once_with("execute_command", {"command": "ls", "ssh_key": "k"})

    @pytest.mark.asyncio
    async def test_non_mapping_credentials_still_call_provider(self):
        provider = AsyncMock()
        provider.call.return_value = "ok"
        dispatcher = ToolDispatcher({"SLACK": provider})

        result = await dispatcher.execute("SLACK", "xoxb-token", "send_message", {})

        assert result == "ok"
        assert provider.call.await_args.args[1][CREDENTIALS_KEY]["slack_bot_token"] == ""

    @pytest.mark.asyncio
    async def test_shaper_error_becomes_result(self):
        provider = AsyncMock()
        dispatcher = ToolDispatcher({"G_DRIVE": provider})

        result = await dispatcher.execute("G_DRIVE", {"web": "not-an-object"}, "list_files", {})

        assert isinstance(result, str)
        provider.call.assert_not_awaited()
