"""Translate a user's configuration into an OpenClaw config document and secret env vars.

The config document is written into the container as
/home/node/.openclaw/openclaw.json; secrets travel separately as environment
variables and never appear in the document.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

AIProvider = Literal["anthropic", "openai", "openrouter"]

DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-sonnet-4-5",
    "openai": "gpt-4.1",
    "openrouter": "anthropic/claude-sonnet-4-5",
}

PROVIDER_KEY_ENV: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}

WORKSPACE_DIR = "/home/node/.openclaw/workspace"


class TelegramChannel(BaseModel):
    enabled: bool = False
    bot_token: str | None = None
    allow_from: list[str] = Field(default_factory=list)


class DiscordChannel(BaseModel):
    enabled: bool = False
    bot_token: str | None = None


class SlackChannel(BaseModel):
    enabled: bool = False
    bot_token: str | None = None
    app_token: str | None = None


class WhatsAppChannel(BaseModel):
    """WhatsApp pairs through a QR code, so it carries no token."""

    enabled: bool = False
    allow_from: list[str] = Field(default_factory=list)


class ChannelsConfig(BaseModel):
    telegram: TelegramChannel = Field(default_factory=TelegramChannel)
    discord: DiscordChannel = Field(default_factory=DiscordChannel)
    slack: SlackChannel = Field(default_factory=SlackChannel)
    whatsapp: WhatsAppChannel = Field(default_factory=WhatsAppChannel)


class UserConfiguration(BaseModel):
    """What a user picks in the dashboard before deploying."""

    ai_provider: AIProvider = "anthropic"
    ai_api_key: str
    model: str | None = None
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)


def _dm_policy(allow_from: list[str]) -> dict[str, Any]:
    if allow_from:
        return {"dmPolicy": "allowlist", "allowFrom": allow_from}
    return {"dmPolicy": "pairing"}


def generate_openclaw_config(
    config: UserConfiguration, gateway_port: int = 18789
) -> dict[str, Any]:
    """Build the openclaw.json document for a user configuration."""
    channels: dict[str, Any] = {}
    if config.channels.telegram.enabled:
        channels["telegram"] = {"enabled": True, **_dm_policy(config.channels.telegram.allow_from)}
    if config.channels.discord.enabled:
        channels["discord"] = {"enabled": True}
    if config.channels.slack.enabled:
        channels["slack"] = {"enabled": True, "mode": "socket"}
    if config.channels.whatsapp.enabled:
        channels["whatsapp"] = _dm_policy(config.channels.whatsapp.allow_from)

    model = config.model or DEFAULT_MODELS[config.ai_provider]

    return {
        "gateway": {
            "mode": "local",
            "bind": "lan",
            "port": gateway_port,
            # Token itself comes from OPENCLAW_GATEWAY_TOKEN
            "auth": {"mode": "token"},
        },
        "channels": channels,
        "agents": {
            "defaults": {
                "model": {"primary": f"{config.ai_provider}/{model}"},
                "workspace": WORKSPACE_DIR,
            }
        },
    }


def build_environment_variables(config: UserConfiguration) -> dict[str, str]:
    """Collect the secrets a configuration needs as a flat env var map."""
    env = {PROVIDER_KEY_ENV[config.ai_provider]: config.ai_api_key}

    channels = config.channels
    if channels.telegram.enabled and channels.telegram.bot_token:
        env["TELEGRAM_BOT_TOKEN"] = channels.telegram.bot_token
    if channels.discord.enabled and channels.discord.bot_token:
        env["DISCORD_BOT_TOKEN"] = channels.discord.bot_token
    if channels.slack.enabled:
        if channels.slack.bot_token:
            env["SLACK_BOT_TOKEN"] = channels.slack.bot_token
        if channels.slack.app_token:
            env["SLACK_APP_TOKEN"] = channels.slack.app_token

    return env
