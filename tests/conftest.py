import os
from types import SimpleNamespace
from typing import Any, Dict

import pytest
from flask import Flask

# Must be set before capacity_hint_webhook.config builds its singleton
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")


def owner(kind: str, name: str) -> SimpleNamespace:
	return SimpleNamespace(kind=kind, name=name)


def workload_obj(replicas=None, owners=None) -> SimpleNamespace:
	return SimpleNamespace(
		spec=SimpleNamespace(replicas=replicas),
		metadata=SimpleNamespace(owner_references=owners),
	)


class FakeApps:
	"""Stands in for kubernetes.client.AppsV1Api; unknown objects raise like a 404."""

	def __init__(self, objects: Dict[Any, Any] | None = None):
		self.objects = objects or {}
		self.calls = []

	def _read(self, kind, name, namespace, **kwargs):
		self.calls.append((kind, name, namespace, kwargs.get("_request_timeout")))
		obj = self.objects.get((kind, name))
		if obj is None:
			raise RuntimeError(f"{kind} {namespace}/{name} not found")
		return obj

	def read_namespaced_replica_set(self, name, namespace, **kwargs):
		return self._read("ReplicaSet", name, namespace, **kwargs)

	def read_namespaced_deployment(self, name, namespace, **kwargs):
		return self._read("Deployment", name, namespace, **kwargs)

	def read_namespaced_stateful_set(self, name, namespace, **kwargs):
		return self._read("StatefulSet", name, namespace, **kwargs)


class FakeCore:
	"""Stands in for kubernetes.client.CoreV1Api.list_node."""

	def __init__(self, spot=0, on_demand=0, other=0, fail=False):
		self.fail = fail
		self.calls = []
		labels = (
			[{"node.kubernetes.io/capacity": "spot"}] * spot
			+ [{"node.kubernetes.io/capacity": "on-demand"}] * on_demand
			+ [{"node.kubernetes.io/capacity": "reserved"}] * other
		)
		self.items = [SimpleNamespace(metadata=SimpleNamespace(labels=lbl)) for lbl in labels]

	def list_node(self, **kwargs):
		self.calls.append(kwargs)
		if self.fail:
			raise RuntimeError("connection refused")
		return SimpleNamespace(items=self.items)


@pytest.fixture
def settings():
	from capacity_hint_webhook.config import Settings

	return Settings()


@pytest.fixture
def make_client(settings):
	"""Build a Flask test client around the webhook blueprint with fake cluster clients."""
	from capacity_hint_webhook.routes import create_routes

	def _make(core=None, apps=None, sink=None):
		app = Flask("test-webhook")
		app.register_blueprint(
			create_routes(core or FakeCore(), apps or FakeApps(), settings, sink)
		)
		return app.test_client()

	return _make
