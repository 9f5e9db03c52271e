#!/usr/bin/env python3
"""
Secret Manager Module

GCP environment detection for cloud deployments.

When running on GCP:
- The notification service may relay notifications through Pub/Sub
- The project ID is needed to build the topic path

When running locally:
- Detection returns False and no GCP clients are created
"""

import os
import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

METADATA_URL = "http://metadata.google.internal/computeMetadata/v1"

_on_gcp: Optional[bool] = None


def is_running_on_gcp() -> bool:
    """
    Detect if running on GCP.

    Checks explicit project environment variables first, then the metadata
    server, which is only reachable from within GCP infrastructure. The
    result is cached for the life of the process.

    Returns:
        bool: True if running on GCP, False otherwise (local dev)
    """
    global _on_gcp
    if _on_gcp is not None:
        return _on_gcp

    # Method 1: Explicit environment variables
    if os.environ.get("GCP_PROJECT") or os.environ.get("GOOGLE_CLOUD_PROJECT"):
        logger.debug("GCP detected via project environment variable")
        _on_gcp = True
        return True

    # Method 2: Metadata server (GCE instances have this)
    try:
        response = requests.get(
            f"{METADATA_URL}/instance/id",
            headers={"Metadata-Flavor": "Google"},
            timeout=1
        )
        _on_gcp = response.status_code == 200
    except requests.RequestException:
        _on_gcp = False

    if _on_gcp:
        logger.debug("GCP detected via metadata server")
    return _on_gcp


def get_project_id() -> Optional[str]:
    """
    Get the GCP project ID.

    Returns:
        str: Project ID, or None if not on GCP
    """
    project_id = os.environ.get("GCP_PROJECT") or os.environ.get("GOOGLE_CLOUD_PROJECT")
    if project_id:
        return project_id

    try:
        response = requests.get(
            f"{METADATA_URL}/project/project-id",
            headers={"Metadata-Flavor": "Google"},
            timeout=2
        )
        if response.status_code == 200:
            return response.text
    except requests.RequestException as e:
        logger.debug(f"Metadata server unavailable: {e}")

    return None
