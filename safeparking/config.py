from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App configuration (env-friendly).

    Tip: create a .env file and put the API keys there, e.g. KAKAO_REST_API_KEY=...
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "SafeParking API"
    version: str = "0.1.0"
    log_level: str = "INFO"

    kakao_rest_api_key: Optional[str] = None
    parking_api_key: Optional[str] = None
    no_parking_zone_api_key: Optional[str] = None

    kakao_directions_url: AnyHttpUrl = "https://apis-navi.kakaomobility.com/v1/directions"
    kakao_keyword_search_url: AnyHttpUrl = "https://dapi.kakao.com/v2/local/search/keyword.json"
    parking_base_url: AnyHttpUrl = (
        "https://api.odcloud.kr/api/15050093/v1/uddi:d19c8e21-4445-43fe-b2a6-865dff832e08"
    )
    # data.go.kr redirects https to a www host that does not resolve, so plain http here.
    no_parking_zone_base_url: AnyHttpUrl = (
        "http://api.data.go.kr/openapi/tn_pubr_public_prkstop_prhibt_area_api"
    )

    http_timeout_s: float = 20.0
    route_timeout_s: float = 10.0

    cache_ttl_s: float = 600.0
    cache_max_size: int = 64

    default_region: Optional[str] = "서울특별시"
    default_radius_km: float = 1.0
    zone_radius_km: float = 0.5
    recommend_radius_km: float = 0.5
    default_cap: int = 20

    route_shortlist_size: int = 5
    recommendation_count: int = 3

    parking_page_size: int = 1000
    parking_max_pages: int = 5
    zone_page_size: int = 1000
    zone_max_pages: int = 5


@lru_cache
def get_settings() -> Settings:
    return Settings()
