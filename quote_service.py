import datetime
from typing import Callable, List

import requests
import yaml
from pydantic import BaseModel, TypeAdapter, ValidationError

from config import SharedDefaults
from errors import DecodingError, NetworkError
from logger import setup_logger

logger = setup_logger(__name__)

QUOTE_URL = "https://api.realinspire.live/v1/quotes/random"
QUOTE_MAX_LENGTH = 120
DEFAULT_QUOTE = {
    "text": "The only bad workout is the one that didn't happen.",
    "author": "Unknown",
}


class QuotePayload(BaseModel):
    content: str
    author: str


QuoteResponse = TypeAdapter(List[QuotePayload])


class QuoteService:
    """Daily motivational quote cached in the shared key-value file."""

    def __init__(
        self,
        defaults: SharedDefaults,
        session: requests.Session | None = None,
        url: str = QUOTE_URL,
        timeout: float = 10.0,
        clock: Callable[[], datetime.date] = datetime.date.today,
    ) -> None:
        self.defaults = defaults
        self.session = session or requests.Session()
        self.url = url
        self.timeout = timeout
        self.clock = clock

    def cached_quote(self, today: datetime.date) -> dict | None:
        data = self.defaults.load()
        if data.get("quote_date") != today.isoformat():
            return None
        if not data.get("quote_text"):
            return None
        return {"text": data["quote_text"], "author": data.get("quote_author", "")}

    def fetch_quote(self) -> dict:
        try:
            resp = self.session.get(
                self.url, params={"maxLength": QUOTE_MAX_LENGTH}, timeout=self.timeout
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"quote request failed: {e}") from e
        try:
            quotes = QuoteResponse.validate_python(resp.json())
        except (ValueError, ValidationError) as e:
            raise DecodingError(f"malformed quote response: {e}") from e
        if not quotes:
            raise DecodingError("quote response is empty")
        return {"text": quotes[0].content, "author": quotes[0].author}

    def daily_quote(self, today: datetime.date | None = None) -> dict:
        today = today or self.clock()
        try:
            cached = self.cached_quote(today)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("cannot read cached quote: %s", e)
            cached = None
        if cached:
            return cached
        try:
            quote = self.fetch_quote()
        except (NetworkError, DecodingError) as e:
            logger.warning("using default quote: %s", e)
            return dict(DEFAULT_QUOTE)
        try:
            self.defaults.update(
                quote_text=quote["text"],
                quote_author=quote["author"],
                quote_date=today.isoformat(),
            )
        except OSError as e:
            logger.warning("cannot cache quote: %s", e)
        return quote
