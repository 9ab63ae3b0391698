"""
HTML rendering for campaign emails.

The output depends only on the entry and the configured URLs, so rendering the
same entry twice yields the same markup. Dates and years are left to Mailchimp
merge tags.
"""

from __future__ import annotations

import re
from html import escape, unescape

from campaign_dispatcher.core.config import Settings
from campaign_dispatcher.schemas.entries import ContentEntry

BODY_SNIPPET_LENGTH = 300
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


class CampaignRenderer:
    def __init__(
        self,
        *,
        public_site_url: str,
        media_base_url: str | None = None,
        brand_name: str = "Mining Discovery",
    ) -> None:
        self.public_site_url = public_site_url.rstrip("/")
        self.media_base_url = (media_base_url or public_site_url).rstrip("/")
        self.brand_name = brand_name

    @classmethod
    def from_settings(cls, settings: Settings) -> CampaignRenderer:
        return cls(public_site_url=settings.site_url, media_base_url=settings.media_base_url)

    def entry_url(self, entry: ContentEntry) -> str:
        return f"{self.public_site_url}/news-sections/{entry.identity}"

    def subject(self, entry: ContentEntry) -> str:
        return f"New: {entry.title or 'MiningDiscovery Update'}"

    def preview_text(self, entry: ContentEntry) -> str:
        return plain_text(entry.excerpt)[:150] or entry.title

    def render(self, entry: ContentEntry) -> str:
        title = escape(entry.title or "New update")
        url = escape(self.entry_url(entry), quote=True)
        image_url = entry.cover.resolve_url(self.media_base_url) if entry.cover else None
        snippet = plain_text(entry.body)[:BODY_SNIPPET_LENGTH]

        html = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>
        body {{ margin: 0; padding: 0; background: #f4f4f4; font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Arial, sans-serif; }}
        .email-container {{ max-width: 600px; margin: 0 auto; background: #ffffff; }}
        .view-browser {{ background: #f9f9f9; text-align: center; padding: 12px; font-size: 12px; }}
        .view-browser a {{ color: #333333; }}
        .header {{ padding: 30px 20px; text-align: center; border-bottom: 3px solid #ae8a4c; }}
        .logo {{ max-width: 280px; height: auto; }}
        .section-title {{ background: #ae8a4c; color: #ffffff; padding: 16px 20px; font-size: 18px; font-weight: 700; }}
        .content {{ padding: 30px 20px; color: #333333; line-height: 1.6; font-size: 15px; }}
        .content h2 {{ font-size: 22px; margin: 0 0 20px 0; font-weight: 700; }}
        .description {{ color: #475569; margin-top: 16px; }}
        .cta {{ display: inline-block; padding: 12px 40px; background: #d4a574; color: #333333; text-decoration: none; border-radius: 4px; font-weight: 700; border: 2px solid #ae8a4c; }}
        .hero-section {{ padding: 20px; }}
        .hero-image {{ width: 100%; height: auto; display: block; border-radius: 4px; }}
        .footer {{ background: #ae8a4c; padding: 20px; color: #333333; font-size: 11px; text-align: center; }}
    </style>
</head>
<body>
    <div class="email-container">
        <div class="view-browser">
            <a href="{url}" target="_blank" rel="noopener">View this story on the website</a>
        </div>
        <div class="header">
            <img src="{self.public_site_url}/image/logo.png" alt="{escape(self.brand_name)}" class="logo" />
        </div>
        <div class="section-title">Get our latest update</div>
        <div class="content">
            <h2>{title}</h2>
"""

        if entry.excerpt:
            # Excerpts are authored as rich text in the CMS and kept as HTML.
            html += f"""            <div class="excerpt">{entry.excerpt}</div>
"""

        if snippet:
            html += f"""            <div class="description">{escape(snippet)}</div>
"""

        html += f"""        </div>
        <div style="text-align: center; padding: 20px;">
            <a href="{url}" class="cta">Read Full Story</a>
        </div>
"""

        if image_url:
            html += f"""        <div class="hero-section">
            <img src="{escape(image_url, quote=True)}" alt="{title}" class="hero-image" />
        </div>
"""

        html += f"""        <div class="footer">
            <p>Copyright (C) *|CURRENT_YEAR|* *|LIST:COMPANY|* All rights reserved.</p>
            <p>You're receiving this because you subscribed to {escape(self.brand_name)} updates.</p>
            <p><a href="*|UNSUB|*">Unsubscribe</a> | <a href="*|UPDATE_PROFILE|*">Update Preferences</a></p>
        </div>
    </div>
</body>
</html>
"""
        return html


def plain_text(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", unescape(_TAG_RE.sub(" ", value))).strip()
