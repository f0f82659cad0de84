# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/odigosctl/k8s/client.py
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Protocol

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from odigosctl.errors import (
    ClusterError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    TransportError,
)
from odigosctl.k8s.objects import ObjectRef

log = logging.getLogger("odigosctl")


class ClusterClient(Protocol):
    """
    The five primitives the install engine relies on.

    Every method raises a ClusterError subclass on failure. ``get`` returns
    None for an absent object instead of raising NotFoundError.
    """

    def get(self, ref: ObjectRef) -> Optional[Dict[str, Any]]: ...

    def create(self, obj: Dict[str, Any]) -> Dict[str, Any]: ...

    def update(self, obj: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete(self, ref: ObjectRef) -> None: ...

    def list_by_label(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str],
        selector: Dict[str, str],
    ) -> List[Dict[str, Any]]: ...


def _api_message(exc: ApiException) -> str:
    body = exc.body
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if body:
        try:
            return json.loads(body).get("message") or str(body)
        except (ValueError, AttributeError):
            return str(body)
    return exc.reason or f"HTTP {exc.status}"


def classify_api_exception(exc: ApiException) -> ClusterError:
    status = exc.status
    message = _api_message(exc)
    if status == 404:
        return NotFoundError(message, status=status)
    if status == 409:
        return ConflictError(message, status=status)
    if status in (401, 403):
        return ForbiddenError(message, status=status)
    return TransportError(message, status=status)


@contextmanager
def translate_errors(what: str) -> Iterator[None]:
    """Re-raise kubernetes/urllib3 failures as the ClusterError taxonomy."""
    try:
        yield
    except ClusterError:
        raise
    except ResourceNotFoundError as exc:
        # the API server does not serve this kind (CRD missing)
        raise NotFoundError(f"{what}: {exc}") from exc
    except ApiException as exc:
        raise classify_api_exception(exc) from exc
    except (urllib3.exceptions.HTTPError, OSError) as exc:
        raise TransportError(f"{what}: {exc}") from exc


def selector_string(selector: Dict[str, str]) -> str:
    return ",".join(f"{k}={v}" for k, v in sorted(selector.items()))


class KubernetesClusterClient:
    """
    ClusterClient backed by the kubernetes dynamic client.

    Objects are plain manifest dicts in both directions.
    """

    def __init__(self, dynamic: DynamicClient):
        self._dyn = dynamic

    @classmethod
    def from_kubeconfig(
        cls,
        kubeconfig: Optional[str] = None,
        kube_context: Optional[str] = None,
    ) -> "KubernetesClusterClient":
        with translate_errors("load kubeconfig"):
            try:
                config.load_kube_config(config_file=kubeconfig, context=kube_context)
            except ConfigException:
                if kubeconfig or kube_context:
                    raise
                log.debug("No kubeconfig found, falling back to in-cluster config")
                config.load_incluster_config()
            return cls(DynamicClient(client.ApiClient()))

    def _resource(self, api_version: str, kind: str):
        return self._dyn.resources.get(api_version=api_version, kind=kind)

    def get(self, ref: ObjectRef) -> Optional[Dict[str, Any]]:
        try:
            with translate_errors(f"get {ref}"):
                res = self._resource(ref.api_version, ref.kind)
                return res.get(name=ref.name, namespace=ref.namespace).to_dict()
        except NotFoundError:
            return None

    def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ref = ObjectRef.from_manifest(obj)
        with translate_errors(f"create {ref}"):
            res = self._resource(ref.api_version, ref.kind)
            return res.create(body=obj, namespace=ref.namespace).to_dict()

    def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ref = ObjectRef.from_manifest(obj)
        with translate_errors(f"update {ref}"):
            res = self._resource(ref.api_version, ref.kind)
            return res.replace(body=obj, namespace=ref.namespace).to_dict()

    def delete(self, ref: ObjectRef) -> None:
        with translate_errors(f"delete {ref}"):
            res = self._resource(ref.api_version, ref.kind)
            res.delete(name=ref.name, namespace=ref.namespace)

    def list_by_label(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str],
        selector: Dict[str, str],
    ) -> List[Dict[str, Any]]:
        with translate_errors(f"list {kind}"):
            res = self._resource(api_version, kind)
            resp = res.get(namespace=namespace, label_selector=selector_string(selector))
            items = resp.to_dict().get("items") or []

        # list items come back without apiVersion/kind
        for item in items:
            item.setdefault("apiVersion", api_version)
            item.setdefault("kind", kind)
        return items
