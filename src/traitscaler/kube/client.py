#!/usr/bin/env python3
"""
Kubernetes client construction
"""

import logging
import os
from typing import Optional

from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.dynamic import DynamicClient

from ..config.settings import KubernetesSettings
from ..core.errors import ClientConfigError

logger = logging.getLogger(__name__)


def build_api_client(kube_settings: KubernetesSettings) -> client.ApiClient:
    """
    Build an API client from in-cluster credentials or a kubeconfig file

    Args:
        kube_settings: Kubernetes connection settings

    Returns:
        Configured ApiClient

    Raises:
        ClientConfigError: if no usable configuration could be loaded
    """
    try:
        if kube_settings.in_cluster:
            logger.info("Loading in-cluster config")
            configuration = client.Configuration()
            k8s_config.load_incluster_config(client_configuration=configuration)
            return client.ApiClient(configuration)

        kubeconfig_path: Optional[str] = kube_settings.kubeconfig_path
        if kubeconfig_path and not os.path.exists(kubeconfig_path):
            raise ClientConfigError(f"Kubeconfig file not found: {kubeconfig_path}")

        logger.info(f"Loading kubeconfig from: {kubeconfig_path or 'default location'}")
        return k8s_config.new_client_from_config(
            config_file=kubeconfig_path,
            context=kube_settings.context,
        )
    except ClientConfigError:
        raise
    except (k8s_config.ConfigException, OSError) as e:
        raise ClientConfigError(f"Failed to load Kubernetes configuration: {e}") from e


def build_dynamic_client(api_client: client.ApiClient) -> DynamicClient:
    """Wrap an ApiClient in a discovery-backed dynamic client"""
    try:
        dynamic = DynamicClient(api_client)
    except Exception as e:
        # Discovery runs eagerly; an unreachable API server surfaces here
        raise ClientConfigError(f"Failed to reach the Kubernetes API server: {e}") from e
    logger.info("Kubernetes dynamic client initialized successfully")
    return dynamic
