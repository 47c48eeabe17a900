#!/usr/bin/env python3
"""
Configuration settings using Pydantic for environment variable loading
"""

import os
from typing import Optional, Dict, Any

from pydantic import Field
from pydantic_settings import BaseSettings

# Load environment variables from .env file if it exists
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # python-dotenv not installed, that's OK


class KubernetesSettings(BaseSettings):
    """Kubernetes configuration settings"""
    in_cluster: bool = os.getenv("KUBERNETES_IN_CLUSTER", "false").lower() == "true"
    kubeconfig_path: Optional[str] = os.getenv("KUBECONFIG_PATH", None)
    context: Optional[str] = os.getenv("KUBERNETES_CONTEXT", None)
    # Empty means every namespace
    watch_namespace: str = os.getenv("WATCH_NAMESPACE", "")

    class Config:
        extra = "ignore"
        env_prefix = "KUBERNETES_"


class ControllerSettings(BaseSettings):
    """Trait controller settings"""
    workers: int = int(os.getenv("CONTROLLER_WORKERS", "4"))
    requeue_after_seconds: float = float(os.getenv("CONTROLLER_REQUEUE_AFTER", "30"))
    watch_timeout_seconds: int = int(os.getenv("CONTROLLER_WATCH_TIMEOUT", "300"))

    # Trait resource coordinates
    trait_group: str = os.getenv("TRAIT_GROUP", "standard.oam.dev")
    trait_version: str = os.getenv("TRAIT_VERSION", "v1alpha1")
    trait_kind: str = os.getenv("TRAIT_KIND", "Autoscaler")
    trait_plural: str = os.getenv("TRAIT_PLURAL", "autoscalers")

    event_component: str = os.getenv("CONTROLLER_EVENT_COMPONENT", "Autoscaler")

    class Config:
        extra = "ignore"
        env_prefix = "CONTROLLER_"

    @property
    def trait_api_version(self) -> str:
        return f"{self.trait_group}/{self.trait_version}"


class LoggingSettings(BaseSettings):
    """Logging configuration settings"""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    file: Optional[str] = os.getenv("LOG_FILE", None)

    class Config:
        extra = "ignore"
        env_prefix = "LOG_"


class APISettings(BaseSettings):
    """Status API and metrics exporter settings"""
    enabled: bool = os.getenv("API_ENABLED", "true").lower() == "true"
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "8080"))
    metrics_port: int = int(os.getenv("METRICS_PORT", "9091"))

    class Config:
        extra = "ignore"
        env_prefix = "API_"


class Settings(BaseSettings):
    """Main settings class that includes all sub-settings"""
    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Component settings
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)
    controller: ControllerSettings = Field(default_factory=ControllerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: APISettings = Field(default_factory=APISettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    def get_config_dict(self) -> Dict[str, Any]:
        """Flatten settings into the plain dict shown by the status API"""
        return {
            "environment": self.environment,
            "kubernetes": {
                "in_cluster": self.kubernetes.in_cluster,
                "kubeconfig_path": self.kubernetes.kubeconfig_path,
                "context": self.kubernetes.context,
                "watch_namespace": self.kubernetes.watch_namespace or "*",
            },
            "controller": {
                "workers": self.controller.workers,
                "requeue_after_seconds": self.controller.requeue_after_seconds,
                "trait": f"{self.controller.trait_plural}.{self.controller.trait_api_version}",
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file,
            },
            "api": {
                "host": self.api.host,
                "port": self.api.port,
                "metrics_port": self.api.metrics_port,
            },
        }

    @classmethod
    def load_from_yaml_with_env_override(cls, yaml_path: str) -> "Settings":
        """Load settings from YAML file and override with environment variables"""
        import yaml

        yaml_config = {}
        if os.path.exists(yaml_path):
            with open(yaml_path, 'r') as f:
                # Process environment variables in YAML
                yaml_content = f.read()
                for key, value in os.environ.items():
                    yaml_content = yaml_content.replace(f"${{{key}}}", value)
                yaml_config = yaml.safe_load(yaml_content) or {}

        return Settings(
            environment=yaml_config.get("environment", "development"),
            debug=yaml_config.get("debug", False),
            kubernetes=KubernetesSettings(**yaml_config.get("kubernetes", {})),
            controller=ControllerSettings(**yaml_config.get("controller", {})),
            logging=LoggingSettings(**yaml_config.get("logging", {})),
            api=APISettings(**yaml_config.get("api", {})),
        )


# Global settings instance
settings = Settings()
