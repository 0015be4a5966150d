"""Builders for cluster resource documents used across the tests"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

SPACE = "myspace"
USER_NAMESPACE = "my"
DEFAULT_TIME = datetime(2018, 1, 1, tzinfo=timezone.utc)
ENVIRONMENTS = {"run": "my-run", "stage": "my-stage"}


def iso(t: datetime) -> str:
    return t.strftime("%Y-%m-%dT%H:%M:%SZ")


def object_meta(
    name: str,
    uid: Optional[str] = None,
    labels: Optional[Dict[str, str]] = None,
    annotations: Optional[Dict[str, str]] = None,
    owner_uid: Optional[str] = None,
    created: Optional[datetime] = None,
    deleted: Optional[datetime] = None,
) -> dict:
    meta = {"name": name}
    if uid is not None:
        meta["uid"] = uid
    if labels is not None:
        meta["labels"] = labels
    if annotations is not None:
        meta["annotations"] = annotations
    if owner_uid is not None:
        meta["ownerReferences"] = [{"uid": owner_uid, "controller": True, "kind": "Owner"}]
    if created is not None:
        meta["creationTimestamp"] = iso(created)
    if deleted is not None:
        meta["deletionTimestamp"] = iso(deleted)
    return meta


def environments_config_map(envs: Dict[str, str], provider: Optional[str] = "fabric8") -> dict:
    labels = {"provider": provider} if provider else {}
    data = {name: f"name: {name.title()}\nnamespace: {ns}\norder: 1" for name, ns in envs.items()}
    return {"metadata": object_meta("fabric8-environments", labels=labels), "data": data}


def deployment_config(
    name: str, uid: str = "dc-uid", space: str = SPACE, version: str = "1.0.2"
) -> dict:
    labels = {"app": name, "version": version}
    if space is not None:
        labels["space"] = space
    return {"kind": "DeploymentConfig", "metadata": object_meta(name, uid=uid, labels=labels)}


def replication_controller(
    name: str,
    uid: str,
    owner_uid: str = "dc-uid",
    created: datetime = DEFAULT_TIME,
    replicas: int = 1,
    template_labels: Optional[Dict[str, str]] = None,
) -> dict:
    if template_labels is None:
        template_labels = {"app": "myapp", "deploymentconfig": "myapp"}
    return {
        "metadata": object_meta(name, uid=uid, owner_uid=owner_uid, created=created),
        "spec": {
            "replicas": replicas,
            "template": {"metadata": {"labels": template_labels}},
        },
        "status": {"replicas": replicas},
    }


def pod(
    name: str,
    uid: str,
    owner_uid: Optional[str] = "rc-uid",
    phase: str = "Running",
    ready: bool = True,
    created: datetime = DEFAULT_TIME,
    deleted: Optional[datetime] = None,
    limits: Optional[Dict[str, str]] = None,
    state: Optional[dict] = None,
    labels: Optional[Dict[str, str]] = None,
) -> dict:
    container = {"name": "app", "image": "myapp:1"}
    if limits is not None:
        container["resources"] = {"limits": limits}
    if state is None:
        state = {"running": {"startedAt": iso(created)}}
    return {
        "metadata": object_meta(
            name, uid=uid, owner_uid=owner_uid, created=created, deleted=deleted, labels=labels
        ),
        "spec": {"containers": [container]},
        "status": {
            "phase": phase,
            "containerStatuses": [{"name": "app", "ready": ready, "state": state}],
        },
    }


def service(name: str, selector: Optional[Dict[str, str]] = None) -> dict:
    return {"metadata": object_meta(name), "spec": {"selector": selector or {}}}


def route(
    name: str,
    to: str,
    host: str = "myapp.example.com",
    admitted: Optional[List[datetime]] = None,
    tls: Optional[str] = None,
    path: Optional[str] = None,
    alternate_backends: Optional[List[dict]] = None,
    host_generated: bool = False,
) -> dict:
    spec = {"host": host, "to": {"kind": "Service", "name": to}}
    if tls is not None:
        spec["tls"] = {"termination": tls}
    if path is not None:
        spec["path"] = path
    if alternate_backends is not None:
        spec["alternateBackends"] = alternate_backends
    ingress = [
        {
            "host": f"{i}.{host}" if i else host,
            "conditions": [
                {"type": "Admitted", "status": "True", "lastTransitionTime": iso(t)}
            ],
        }
        for i, t in enumerate(admitted or [])
    ]
    annotations = {"openshift.io/host.generated": "true" if host_generated else "false"}
    return {
        "metadata": object_meta(name, annotations=annotations),
        "spec": spec,
        "status": {"ingress": ingress},
    }


def route_list(*routes: dict) -> dict:
    return {"kind": "RouteList", "items": list(routes)}


def build(
    name: str,
    phase: str = "Complete",
    completed: Optional[datetime] = DEFAULT_TIME,
    annotations: Optional[Dict[str, str]] = None,
) -> dict:
    status = {"phase": phase}
    if completed is not None:
        status["completionTimestamp"] = iso(completed)
    return {"metadata": object_meta(name, annotations=annotations), "status": status}


def build_list(*builds: dict) -> dict:
    return {"kind": "BuildList", "items": list(builds)}


def build_config_list(*names: str) -> dict:
    return {"kind": "BuildConfigList", "items": [{"metadata": object_meta(n)} for n in names]}


def resource_quota(hard: Dict[str, str], used: Dict[str, str]) -> dict:
    return {
        "metadata": object_meta("compute-resources"),
        "status": {"hard": hard, "used": used},
    }


def rules_review(rules: list) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "SelfSubjectRulesReview",
        "status": {"rules": rules},
    }


def rule(resources: List[str], verbs: List[str], **extra) -> dict:
    result = {"apiGroups": [""], "resources": resources, "verbs": verbs}
    result.update(extra)
    return result
