import importlib

import pytest

from capacity_hint_webhook import kube


def import_app(monkeypatch: pytest.MonkeyPatch):
	monkeypatch.setenv("APP_ENV", "test")
	monkeypatch.setenv("LOG_LEVEL", "WARNING")
	return importlib.import_module("capacity_hint_webhook.app")


def test_load_clients_falls_back_to_kubeconfig(monkeypatch: pytest.MonkeyPatch):
	calls = []

	def _not_in_cluster():
		calls.append("incluster")
		raise kube.config.ConfigException("Service host/port is not set.")

	monkeypatch.setattr(kube.config, "load_incluster_config", _not_in_cluster)
	monkeypatch.setattr(kube.config, "load_kube_config", lambda *a, **kw: calls.append("kubeconfig"))
	monkeypatch.setattr(kube.client, "CoreV1Api", lambda: "core")
	monkeypatch.setattr(kube.client, "AppsV1Api", lambda: "apps")

	assert kube.load_clients() == ("core", "apps")
	assert calls == ["incluster", "kubeconfig"]


def test_load_clients_prefers_in_cluster(monkeypatch: pytest.MonkeyPatch):
	calls = []
	monkeypatch.setattr(kube.config, "load_incluster_config", lambda: calls.append("incluster"))
	monkeypatch.setattr(kube.config, "load_kube_config", lambda *a, **kw: calls.append("kubeconfig"))
	monkeypatch.setattr(kube.client, "CoreV1Api", lambda: "core")
	monkeypatch.setattr(kube.client, "AppsV1Api", lambda: "apps")

	assert kube.load_clients() == ("core", "apps")
	assert calls == ["incluster"]


def test_ssl_context_uses_cert_files_when_present(monkeypatch: pytest.MonkeyPatch, tmp_path):
	app = import_app(monkeypatch)
	cert = tmp_path / "tls.crt"
	key = tmp_path / "tls.key"
	cert.write_text("cert")
	key.write_text("key")

	assert app.ssl_context_for(str(cert), str(key)) == (str(cert), str(key))


def test_ssl_context_self_signs_when_a_file_is_missing(monkeypatch: pytest.MonkeyPatch, tmp_path):
	app = import_app(monkeypatch)
	cert = tmp_path / "tls.crt"
	cert.write_text("cert")

	assert app.ssl_context_for(str(cert), str(tmp_path / "missing.key")) == "adhoc"
	assert app.ssl_context_for(str(tmp_path / "missing.crt"), str(cert)) == "adhoc"


def test_main_passes_flags_to_server(monkeypatch: pytest.MonkeyPatch, tmp_path):
	app = import_app(monkeypatch)
	cert = tmp_path / "tls.crt"
	key = tmp_path / "tls.key"
	cert.write_text("cert")
	key.write_text("key")
	captured = {}
	monkeypatch.setattr(app.app, "run", lambda **kwargs: captured.update(kwargs))

	app.main([
		"--port", "9443",
		"--tls-cert-file", str(cert),
		"--tls-private-key-file", str(key),
	])
	assert captured["port"] == 9443
	assert captured["ssl_context"] == (str(cert), str(key))
	assert captured["threaded"] is True


def test_main_defaults_to_settings_and_self_signed(monkeypatch: pytest.MonkeyPatch, tmp_path):
	app = import_app(monkeypatch)
	captured = {}
	monkeypatch.setattr(app.app, "run", lambda **kwargs: captured.update(kwargs))
	monkeypatch.chdir(tmp_path)

	app.main([])
	assert captured["port"] == app.settings.port
	assert captured["ssl_context"] == "adhoc"
