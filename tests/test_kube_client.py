from __future__ import annotations

import pytest
from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from podlogs.config import KubernetesConfig
from podlogs.errors import DiscoveryError
from podlogs.kube.client import load_core_api


def _raise(*args, **kwargs):
    raise ConfigException("no configuration found")


def test_kubeconfig_is_loaded_with_context(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr(config, "load_kube_config", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setattr(config, "load_incluster_config", _raise)

    api = load_core_api(KubernetesConfig(kubeconfig="/tmp/kubeconfig", context="staging"))

    assert isinstance(api, client.CoreV1Api)
    assert calls == [{"config_file": "/tmp/kubeconfig", "context": "staging"}]


def test_falls_back_to_in_cluster(monkeypatch: pytest.MonkeyPatch) -> None:
    in_cluster = []
    monkeypatch.setattr(config, "load_kube_config", _raise)
    monkeypatch.setattr(config, "load_incluster_config", lambda: in_cluster.append(True))

    load_core_api(KubernetesConfig())

    assert in_cluster == [True]


def test_no_configuration_is_a_discovery_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "load_kube_config", _raise)
    monkeypatch.setattr(config, "load_incluster_config", _raise)

    with pytest.raises(DiscoveryError, match="kubernetes configuration"):
        load_core_api(KubernetesConfig())
