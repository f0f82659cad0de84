# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/config/models.py

from typing import Optional
from pydantic import BaseModel, Field, field_validator

DEFAULT_NAMESPACE = "odigos-system"
DEFAULT_IMAGE_PREFIX = "keyval"


class ImageConfig(BaseModel):
    """Image names; the tag always comes from InstallConfig.version."""
    odiglet: str = "odigos-odiglet"
    instrumentor: str = "odigos-instrumentor"
    autoscaler: str = "odigos-autoscaler"


class FeatureFlags(BaseModel):
    psp: bool = False                 # grant "use" on the privileged PodSecurityPolicy
    autoscaler: bool = True
    own_telemetry: bool = False       # export the control plane's own traces
    own_telemetry_endpoint: Optional[str] = None


class InstallConfig(BaseModel):
    namespace: str = DEFAULT_NAMESPACE
    version: Optional[str] = None     # target product version; required for install/upgrade
    image_prefix: str = DEFAULT_IMAGE_PREFIX
    images: ImageConfig = Field(default_factory=ImageConfig)
    features: FeatureFlags = Field(default_factory=FeatureFlags)

    # Kubernetes connection
    kubeconfig: Optional[str] = None
    kube_context: Optional[str] = None

    @field_validator("namespace", "version")
    @classmethod
    def _not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()
