#!/usr/bin/env python3
"""Check that Mailchimp is reachable with the configured credentials."""

from __future__ import annotations

import argparse
import asyncio
import sys

from campaign_dispatcher.core.config import Settings
from campaign_dispatcher.services.campaign_client import (
    DRAFT_STATUS,
    CampaignClientError,
    MailchimpCampaignClient,
)


async def run(settings: Settings, *, list_drafts: bool, count: int) -> int:
    # Ping only needs credentials; the audience matters when listing drafts.
    missing = [
        name
        for name in settings.missing_mailchimp_settings()
        if name != "MAILCHIMP_AUDIENCE_ID" or list_drafts
    ]
    if missing:
        print(f"missing settings: {', '.join(missing)}", file=sys.stderr)
        return 2

    client = MailchimpCampaignClient(
        api_key=settings.mailchimp_api_key or "",
        server_prefix=settings.mailchimp_server_prefix or "",
        timeout_seconds=settings.mailchimp_timeout_seconds,
        max_attempts=1,
    )
    try:
        pong = await client.ping()
        print(f"mailchimp reachable: {pong.get('health_status', pong)}")
        if list_drafts:
            campaigns = await client.list_campaigns(
                list_id=settings.mailchimp_audience_id or "",
                status=DRAFT_STATUS,
                count=count,
            )
            for campaign in campaigns:
                print(f"{campaign.id}\t{campaign.status}\t{campaign.title}")
    except CampaignClientError as exc:
        print(f"mailchimp unreachable: {exc}", file=sys.stderr)
        return 1
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Ping Mailchimp and optionally list draft campaigns.")
    parser.add_argument("--list-drafts", action="store_true", help="List draft campaigns for the audience")
    parser.add_argument("--count", type=int, default=20)
    args = parser.parse_args()

    settings = Settings()
    sys.exit(asyncio.run(run(settings, list_drafts=args.list_drafts, count=args.count)))


if __name__ == "__main__":
    main()
