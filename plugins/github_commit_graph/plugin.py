"""GitHub commit graph plugin: a user's contribution calendar plus streak stats."""

from __future__ import annotations

import logging
from typing import Any

from trmnl_plugin_sdk import PluginBase, PluginError

from .stats import flatten_days, summarize

logger = logging.getLogger(__name__)

GRAPHQL_URL = "https://api.github.com/graphql"

CONTRIBUTIONS_QUERY = """
query($userName:String!) {
  user(login: $userName){
    contributionsCollection {
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            contributionCount
            date
          }
        }
      }
    }
  }
}
"""


class GithubCommitGraphPlugin(PluginBase):
    keyname = "github_commit_graph"

    @property
    def username(self) -> str | None:
        return self.setting("username")

    @property
    def headers(self) -> dict[str, str]:
        return {
            "authorization": f"Bearer {self.credential('token') or ''}",
            "content-type": "application/json",
        }

    async def contributions(self) -> dict[str, Any]:
        body = {"query": CONTRIBUTIONS_QUERY, "variables": {"userName": self.username}}
        logger.info("Requesting contribution calendar for %s", self.username)

        response = await self.post(GRAPHQL_URL, json=body, headers=self.headers)
        if not response.ok:
            logger.error("GitHub API request failed with status %s: %s", response.status_code, response.text)
            raise PluginError(f"GitHub API request failed: {response.status_code}")

        payload = response.body if isinstance(response.body, dict) else {}
        if payload.get("errors"):
            messages = ", ".join(str(e.get("message")) for e in payload["errors"])
            logger.error("GitHub API returned errors: %s", messages)
            raise PluginError(f"GitHub API errors: {messages}")

        calendar = (
            ((payload.get("data") or {}).get("user") or {})
            .get("contributionsCollection", {})
            .get("contributionCalendar")
        )
        if not calendar:
            raise PluginError(f"No contribution calendar data found for user {self.username}")

        return {
            "total": calendar.get("totalContributions") or 0,
            "commits": calendar.get("weeks") or [],
        }

    async def locals(self) -> dict[str, Any]:
        contributions = await self.contributions()
        return {
            "username": self.username,
            "contributions": contributions,
            "stats": summarize(flatten_days(contributions["commits"])),
        }
