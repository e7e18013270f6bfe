from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from gsheet_client import DeliveryClient, GoogleSheetsTransport, TokenBucketLimiter
from gsheet_client.client import DEFAULT_CONFIG_RANGE, DEFAULT_CUTOFF_CELL
from gsheet_client.transport import SHEETS_API_BASE_URL

from .coordinator.settings import EngineRuntimeSettings


class SheetSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GSHEET_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    spreadsheet_id: str
    access_token: str
    sheet_id: int = 0
    config_range: str = DEFAULT_CONFIG_RANGE
    cutoff_cell: str = DEFAULT_CUTOFF_CELL
    api_base_url: str = SHEETS_API_BASE_URL


@lru_cache()
def get_settings() -> SheetSettings:
    return SheetSettings()


def build_client(
    sheet: SheetSettings, runtime: Optional[EngineRuntimeSettings] = None
) -> DeliveryClient:
    """Wire a DeliveryClient against the Sheets API from settings."""
    cfg = runtime or EngineRuntimeSettings()
    transport = GoogleSheetsTransport(
        sheet.spreadsheet_id,
        sheet.sheet_id,
        access_token=sheet.access_token,
        base_url=sheet.api_base_url,
        timeout=cfg.request_timeout,
    )
    return DeliveryClient(
        transport,
        limiter=TokenBucketLimiter(rate=cfg.rate_limit_per_sec, burst=cfg.rate_limit_burst),
        row_format=cfg.row_format,
        config_range=sheet.config_range,
        cutoff_cell=sheet.cutoff_cell,
    )
