"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "OOH Mapper"
    debug: bool = False
    log_level: str = "INFO"

    # Record service
    notion_token: str = ""
    notion_api_url: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"
    max_parent_hops: int = 20
    inclusion_filter: bool = False  # only map records whose "Incluso" box is checked

    # Response cache
    map_data_ttl: int = 300  # seconds
    cache_dir: str = "~/.cache/ooh-mapper"

    # File store
    file_store_backend: str = "drive"  # "drive" or "memory"
    drive_access_token: str = ""
    drive_api_url: str = "https://www.googleapis.com/drive/v3"
    drive_upload_url: str = "https://www.googleapis.com/upload/drive/v3"
    drive_root_folder: str = "Mapeamento_OOH"
    soft_delete_marker: str = "_EXCLUIDO_"
    metadata_file_name: str = ".metadata.json"
    kml_max_age: int = 3600  # Cache-Control max-age for KML downloads

    # Geocoding (Nominatim allows 1 request/second)
    geocoder_url: str = "https://nominatim.openstreetmap.org/search"
    geocoder_user_agent: str = "MapeamentoOOH/1.0"
    geocode_min_interval: float = 1.0
    geocode_timeout: float = 10.0
    geocode_batch_size: int = 10
    geocode_country: str = "Brasil"

    # Upload wizard
    upload_max_file_size: int = 10 * 1024 * 1024
    upload_max_rows: int = 5000


settings = Settings()
