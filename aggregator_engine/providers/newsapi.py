from __future__ import annotations

from typing import Any, Dict, Optional

from .base import NewsProvider, NewsService
from .client import BaseApiClient
from .transformer import BaseTransformer

PROVIDER = NewsProvider.NEWSAPI.value


class NewsApiClient(BaseApiClient):
    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(
            provider=PROVIDER,
            base_url="https://newsapi.org/v2",
            default_params={"apiKey": api_key},
            **kwargs,
        )

    def get_top_headlines(
        self,
        country: Optional[str] = None,
        category: Optional[str] = None,
        query: Optional[str] = None,
        page_size: int = 20,
        page: int = 1,
    ) -> Dict[str, Any]:
        return self.get(
            "/top-headlines",
            {
                "country": country,
                "category": category,
                "q": query,
                "pageSize": page_size,
                "page": page,
            },
        )


class NewsApiTransformer(BaseTransformer):
    """Normalizes a NewsAPI `top-headlines` response.

    Articles with `content: null` are dropped: NewsAPI returns these partial
    articles on the free plan and they cannot satisfy the required `content`
    column.
    """

    provider = PROVIDER

    def validate(self, raw: Any) -> bool:
        return (
            isinstance(raw, dict)
            and raw.get("status") == "ok"
            and isinstance(raw.get("totalResults"), int)
            and isinstance(raw.get("articles"), list)
        )

    def transform(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        articles = []
        for article in raw["articles"]:
            if not isinstance(article, dict) or article.get("content") is None:
                continue
            source = article.get("source") or {}
            articles.append(
                {
                    "title": article.get("title"),
                    "description": article.get("description") or "",
                    "content": article.get("content"),
                    "url": article.get("url"),
                    "image_url": article.get("urlToImage") or article.get("imageUrl"),
                    "published_at": article.get("publishedAt"),
                    "source_name": source.get("name") or article.get("sourceName"),
                    "author": article.get("author") or "",
                    "provider": PROVIDER,
                }
            )
        return {
            "status": raw["status"],
            "total_results": raw["totalResults"],
            "articles": articles,
        }


class NewsApiService(NewsService):
    def __init__(self, api_key: str, **client_kwargs: Any) -> None:
        super().__init__(NewsApiClient(api_key, **client_kwargs), NewsApiTransformer())

    def get_top_headlines(self, **options: Any) -> Dict[str, Any]:
        return self._standardize(self.api_client.get_top_headlines(**options))
