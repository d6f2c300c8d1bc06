"""
Application configuration loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # HTTP / WebSocket listener
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False

    # Shared secret the device must present in its device_connect message
    esp32_token: str = "esp32_secret_token_2025"

    # Web dashboard login
    web_password: str = "admin123"
    web_access_token: str = "web_access_granted"

    # Served at / when the directory exists
    static_dir: str = "public"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
