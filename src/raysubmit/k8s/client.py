# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/k8s/client.py
from __future__ import annotations

import logging
from typing import Any, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from ..errors import KubeApiError, KubeConfigError

log = logging.getLogger("raysubmit")

RAY_GROUP = "ray.io"
RAY_VERSION = "v1"
RAYJOB_PLURAL = "rayjobs"
RAYCLUSTER_PLURAL = "rayclusters"

RAY_CLUSTER_LABEL = "ray.io/cluster"
RAY_NODE_TYPE_LABEL = "ray.io/node-type"


def load_api_client(
    *,
    kube_context: Optional[str] = None,
    kubeconfig: Optional[str] = None,
) -> client.ApiClient:
    """
    Build an ApiClient from kubeconfig.

    Fails when neither --context nor a current-context is available.
    """
    try:
        _, active = config.list_kube_config_contexts(config_file=kubeconfig)
    except config.ConfigException as exc:
        raise KubeConfigError(f"Error retrieving kube config: {exc}") from exc

    if not kube_context and not active:
        raise KubeConfigError(
            'no context is currently set, use "kubectl config use-context <context>" '
            "to select a new one"
        )

    try:
        return config.new_client_from_config(config_file=kubeconfig, context=kube_context)
    except config.ConfigException as exc:
        raise KubeConfigError(f"Error loading kube context: {exc}") from exc


class RayApi:
    """
    Thin wrapper over the custom objects and core APIs for RayJob / RayCluster.

    ApiException is re-raised as KubeApiError so callers never import the
    kubernetes package to decide whether an error is retryable.
    """

    def __init__(self, custom_api: Any, core_api: Any):
        self.custom = custom_api
        self.core = core_api

    @classmethod
    def from_kubeconfig(
        cls,
        *,
        kube_context: Optional[str] = None,
        kubeconfig: Optional[str] = None,
    ) -> "RayApi":
        api_client = load_api_client(kube_context=kube_context, kubeconfig=kubeconfig)
        return cls(client.CustomObjectsApi(api_client), client.CoreV1Api(api_client))

    # ------------------------- RayJob -------------------------

    def create_rayjob(self, namespace: str, body: dict) -> dict:
        try:
            return self.custom.create_namespaced_custom_object(
                RAY_GROUP, RAY_VERSION, namespace, RAYJOB_PLURAL, body
            )
        except ApiException as exc:
            raise _wrap("Error when creating RayJob CR", exc) from exc

    def get_rayjob(self, namespace: str, name: str) -> dict:
        try:
            return self.custom.get_namespaced_custom_object(
                RAY_GROUP, RAY_VERSION, namespace, RAYJOB_PLURAL, name
            )
        except ApiException as exc:
            raise _wrap(f"Failed to get RayJob {namespace}/{name}", exc) from exc

    def update_rayjob(self, namespace: str, body: dict) -> dict:
        name = body["metadata"]["name"]
        try:
            return self.custom.replace_namespaced_custom_object(
                RAY_GROUP, RAY_VERSION, namespace, RAYJOB_PLURAL, name, body
            )
        except ApiException as exc:
            raise _wrap(f"Failed to update RayJob {namespace}/{name}", exc) from exc

    def delete_rayjob(self, namespace: str, name: str) -> None:
        try:
            self.custom.delete_namespaced_custom_object(
                RAY_GROUP, RAY_VERSION, namespace, RAYJOB_PLURAL, name
            )
        except ApiException as exc:
            raise _wrap(f"Failed to delete RayJob {namespace}/{name}", exc) from exc

    # ------------------------- RayCluster -------------------------

    def get_raycluster(self, namespace: str, name: str) -> dict:
        try:
            return self.custom.get_namespaced_custom_object(
                RAY_GROUP, RAY_VERSION, namespace, RAYCLUSTER_PLURAL, name
            )
        except ApiException as exc:
            raise _wrap(f"Failed to get RayCluster {namespace}/{name}", exc) from exc

    def get_head_service_name(self, namespace: str, cluster_name: str) -> str:
        selector = f"{RAY_CLUSTER_LABEL}={cluster_name},{RAY_NODE_TYPE_LABEL}=head"
        try:
            svcs = self.core.list_namespaced_service(namespace, label_selector=selector)
        except ApiException as exc:
            raise _wrap(f"Failed to list services for RayCluster {cluster_name}", exc) from exc

        items = list(svcs.items or [])
        if not items:
            raise KubeApiError(
                f"no ray head services found for RayCluster {namespace}/{cluster_name}"
            )
        if len(items) > 1:
            names = ", ".join(s.metadata.name for s in items)
            raise KubeApiError(
                f"more than one ray head service found for RayCluster "
                f"{namespace}/{cluster_name}: {names}"
            )
        log.debug("resolved head service %s for cluster %s", items[0].metadata.name, cluster_name)
        return items[0].metadata.name


def _wrap(msg: str, exc: ApiException) -> KubeApiError:
    return KubeApiError(f"{msg}: ({exc.status}) {exc.reason}", status=exc.status)
