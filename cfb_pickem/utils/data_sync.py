import logging
import time
from datetime import datetime
from functools import wraps

import requests

from cfb_pickem.errors import ScoreFeedError
from cfb_pickem.utils.live_updates import FeedGame

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.collegefootballdata.com"


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Decorator to handle API rate limiting with exponential backoff
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            for attempt in range(max_retries):
                delay = base_delay * (backoff_factor**attempt)
                try:
                    return func(self, *args, **kwargs)

                except requests.exceptions.HTTPError as e:
                    status = e.response.status_code if e.response is not None else None
                    if status == 429:
                        retry_after = e.response.headers.get("Retry-After")
                        delay = float(retry_after) if retry_after else delay
                        logger.warning(
                            f"Rate limited. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                        )
                    elif status is not None and status >= 500:
                        logger.warning(
                            f"Server error {status}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                        )
                    else:
                        raise ScoreFeedError(f"Score feed rejected request: HTTP {status}") from e

                except requests.exceptions.RequestException as e:
                    logger.warning(
                        f"Request failed: {e}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )

                if attempt < max_retries - 1:
                    time.sleep(delay)

            raise ScoreFeedError(f"Max retries ({max_retries}) exceeded")

        return wrapper

    return decorator


def _parse_datetime(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable start date from score feed: {value}")
        return None


def parse_feed_game(payload):
    """Convert one /games entry into a FeedGame

    Accepts both the camelCase and the older snake_case field names.
    """

    def field(camel, snake):
        return payload.get(camel, payload.get(snake))

    external_id = payload.get("id")
    return FeedGame(
        external_id=str(external_id) if external_id is not None else None,
        home_team=field("homeTeam", "home_team"),
        away_team=field("awayTeam", "away_team"),
        home_points=field("homePoints", "home_points"),
        away_points=field("awayPoints", "away_points"),
        completed=bool(payload.get("completed")),
        status=payload.get("status"),
        start_date=_parse_datetime(field("startDate", "start_date")),
    )


class CollegeFootballDataClient:
    """
    Reads game scores from collegefootballdata.com with rate limiting and retries
    """

    def __init__(self, api_key=None, api_base_url=None, timeout=30, min_request_interval=0.5):
        self.api_base_url = (api_base_url or DEFAULT_API_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {"User-Agent": "CFB-Pickem-App/1.0", "Accept": "application/json"}
        )
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"

        # Rate limiting configuration
        self.request_count = 0
        self.last_request_time = 0
        self.min_request_interval = min_request_interval

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get("CFBD_API_KEY"),
            api_base_url=config.get("CFBD_API_BASE_URL"),
        )

    def _enforce_rate_limit(self):
        """Enforce a minimum interval between requests"""
        time_since_last = time.time() - self.last_request_time
        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)

        self.last_request_time = time.time()
        self.request_count += 1

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, path, params=None):
        """Make API request with rate limiting and retry logic"""
        self._enforce_rate_limit()

        url = f"{self.api_base_url}{path}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response

    def fetch_games(self, season, week, season_type="regular"):
        """
        Fetch a week's games from the score feed.

        Returns:
            List of FeedGame

        Raises:
            ScoreFeedError: when the feed cannot be read
        """
        response = self._make_api_request(
            "/games", params={"year": season, "week": week, "seasonType": season_type}
        )

        try:
            payload = response.json()
        except ValueError as e:
            raise ScoreFeedError(f"Score feed returned invalid JSON: {e}") from e

        if not isinstance(payload, list):
            raise ScoreFeedError("Score feed returned an unexpected payload")

        games = [parse_feed_game(item) for item in payload]
        logger.debug(f"Score feed returned {len(games)} games for {season} week {week}")
        return games
