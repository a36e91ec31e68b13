from __future__ import annotations

import pytest

from podlogs.errors import ManifestError
from podlogs.kube.resources import Resource, YamlManifestResolver


def test_multi_document_manifest_with_empty_documents() -> None:
    text = """
---
apiVersion: apps/v1
kind: StatefulSet
metadata:
  name: db
  namespace: data
---
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: settings
"""
    resources = YamlManifestResolver().resources([text])

    assert [(r.kind, r.name, r.namespace) for r in resources] == [
        ("StatefulSet", "db", "data"),
        ("ConfigMap", "settings", None),
    ]
    assert resources[0].api_version == "apps/v1"


def test_list_kind_is_flattened_and_single_string_accepted() -> None:
    text = """
apiVersion: v1
kind: List
items:
  - apiVersion: v1
    kind: Pod
    metadata: {name: one}
  - apiVersion: batch/v1
    kind: Job
    metadata: {name: two}
    spec:
      selector:
        matchLabels: {job: two}
"""
    resources = YamlManifestResolver().resources(text)

    assert [(r.kind, r.name) for r in resources] == [("Pod", "one"), ("Job", "two")]
    assert resources[1].spec["selector"]["matchLabels"] == {"job": "two"}


def test_manifests_are_concatenated_in_order() -> None:
    first = "kind: Pod\nmetadata: {name: a}\n"
    second = "kind: Pod\nmetadata: {name: b}\n"
    assert [r.name for r in YamlManifestResolver().resources([first, second])] == ["a", "b"]


@pytest.mark.parametrize(
    "text",
    [
        "kind: [unclosed",
        "kind: Deployment\n",
        "metadata: {name: orphan}\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_manifests_raise(text: str) -> None:
    with pytest.raises(ManifestError):
        YamlManifestResolver().resources([text])


def test_resource_without_spec() -> None:
    resource = Resource.from_dict({"kind": "Service", "metadata": {"name": "svc"}})
    assert resource.spec == {}
