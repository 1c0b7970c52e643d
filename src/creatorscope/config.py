"""Crawler configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/141.0.0.0 Safari/537.36"
)


class SiteSelectors(BaseModel):
    """DOM contract of the creator marketplace search page.

    Selectors starting with ``/`` are XPath expressions, everything else is CSS.
    """

    search_tab: str = "//span[text()='Name search']"
    search_input: str = (
        'input:is([placeholder="Enter username or nickname"], '
        '[placeholder="Search names, products, hashtags, or keywords"])'
    )
    search_button: str = 'button[data-testid="SearchKeyword-ExploreNameSearchInput-aVhwsM"]'
    results_body: str = "div.virtualCardResults"
    creator_name: str = "section[data-testid='ExploreCreatorCard-index-coAQDf'] div div .text-black"
    no_results_text: str = "No results found"


class Delays(BaseModel):
    """Fixed pauses, in seconds.

    Only used where the page exposes nothing to wait on: the search box
    animating in, the results list re-rendering after a query, and the
    creator tab issuing its API calls after load.
    """

    after_search_tab_click: float = 1.0
    after_type: float = 0.5
    after_search: float = 2.0
    tab_settle: float = 5.0
    after_reload: float = 5.0


class CrawlerSettings(BaseSettings):
    profile_dir: Path = Path("profiles") / "tto"
    headless: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    locale: str = "vi-VN"
    timezone: str = "Asia/Ho_Chi_Minh"
    accept_language: str = "vi-VN,vi;q=0.9,en-US;q=0.8,en;q=0.7"
    viewport_width: int = 1920
    viewport_height: int = 1080
    extra_browser_args: list[str] = Field(default_factory=list)

    target_page_url: str = "https://ads.tiktok.com/creative/creator/explore?region=row&from_creative=login"
    url_pattern: str = "CreativeOne/MatchPack/MGetCreatorsCard"

    subject_timeout: float = 180.0
    tab_spawn_timeout: float = 15.0
    action_timeout: float = 30.0

    selectors: SiteSelectors = Field(default_factory=SiteSelectors)
    delays: Delays = Field(default_factory=Delays)

    model_config = {
        "env_prefix": "CREATORSCOPE_",
        "env_file": ".env",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    @property
    def browser_args(self) -> list[str]:
        """Chrome flags that make the automated session look like a normal one."""
        args = [
            "--disable-blink-features=AutomationControlled",
            "--no-first-run",
            "--no-default-browser-check",
            "--disable-infobars",
            "--disable-notifications",
            "--disable-translate",
            "--disable-default-apps",
            "--disable-dev-shm-usage",
            "--password-store=basic",
            f"--user-agent={self.user_agent}",
        ]
        args.extend(self.extra_browser_args)
        return args
