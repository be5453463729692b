"""Configuration management for the docchat client."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

from docchat.llm.models import ServiceConfig

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")


class Configuration:
    """Manages configuration and environment variables for the chat client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config(self.config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def _chat_section(self, name: str) -> dict[str, Any]:
        section = self._config.get("chat", {}).get(name, {})
        if not isinstance(section, dict):
            raise ValueError(f"chat.{name} must be a mapping in config.yaml")
        return section

    def get_service_settings(self) -> dict[str, Any]:
        """Get completion service settings from YAML.

        Raises:
            ValueError: If a required service parameter is missing.
        """
        service_config = self._chat_section("service")

        required_keys = ["base_url", "endpoint", "default_purpose", "api_key_env"]
        for key in required_keys:
            if key not in service_config:
                raise ValueError(
                    f"{key} must be explicitly configured in config.yaml "
                    "under chat.service"
                )

        return service_config

    @property
    def api_key(self) -> str:
        """Get the API key for the completion service.

        Raises:
            ValueError: If the API key is not found in environment variables.
        """
        env_key = self.get_service_settings()["api_key_env"]
        api_key = os.getenv(env_key)
        if not api_key:
            raise ValueError(
                f"API key '{env_key}' not found in environment variables"
            )
        return api_key

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client timeouts from YAML.

        A timeout of ``null`` disables that timeout.

        Raises:
            ValueError: If a timeout is missing or not positive.
        """
        http_config = self._chat_section("http_client")

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    "in config.yaml under chat.http_client"
                )
            value = http_config[key]
            if value is not None and value <= 0:
                raise ValueError(f"http_client.{key} must be positive or null")

        return http_config

    def get_stream_config(self) -> dict[str, Any]:
        """Get frame decoder limits from YAML. Missing keys mean unbounded."""
        stream_config = self._chat_section("stream")
        max_buffer_size = stream_config.get("max_buffer_size")
        chunk_size = stream_config.get("chunk_size")

        if max_buffer_size is not None and (
            not isinstance(max_buffer_size, int) or max_buffer_size < 1
        ):
            raise ValueError("stream.max_buffer_size must be a positive integer")
        if chunk_size is not None and (
            not isinstance(chunk_size, int) or chunk_size < 1
        ):
            raise ValueError("stream.chunk_size must be a positive integer")

        return {"max_buffer_size": max_buffer_size, "chunk_size": chunk_size}

    def get_session_config(self) -> dict[str, Any]:
        """Get chat session notices and welcome message from YAML."""
        return dict(self._chat_section("session"))

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging", {})

    def get_service_config(self) -> ServiceConfig:
        """Build the explicit service configuration for the HTTP client."""
        service = self.get_service_settings()
        http_config = self.get_http_client_config()
        stream_config = self.get_stream_config()

        return ServiceConfig(
            base_url=service["base_url"],
            api_key=self.api_key,
            endpoint=service["endpoint"],
            default_purpose=service["default_purpose"],
            connect_timeout=http_config["connect_timeout"],
            read_timeout=http_config["read_timeout"],
            write_timeout=http_config["write_timeout"],
            pool_timeout=http_config["pool_timeout"],
            max_buffer_size=stream_config["max_buffer_size"],
            chunk_size=stream_config["chunk_size"],
        )
