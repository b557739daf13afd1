"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: MIT-0
"""
import argparse
import logging
import os

from flask import Flask

from .config import settings
from .kube import load_clients
from .routes import create_routes
from .store.redis_store import RedisStore
from .telemetry import ReplicaCountSink

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(message)s",
)
log = logging.getLogger("capacity-hint")

# Initialize Kubernetes clients; avoid constructing real clients in tests
if settings.app_env == "test":
    core, apps = object(), object()
else:
    core, apps = load_clients()

app = Flask(__name__)
datastore = None
if settings.redis_url:
    try:
        datastore = RedisStore(settings.redis_url, settings.redis_default_ttl_seconds)
    except Exception as e:
        # Replica counts are observability only; admission keeps working without them
        log.warning("Failed to initialize Redis: %s; replica counts will not be stored", e)

replica_sink = ReplicaCountSink(
    datastore,
    maxsize=settings.replica_sink_size,
    ttl_seconds=settings.redis_default_ttl_seconds,
)


def _start_replica_sink():
    if settings.app_env == "test":
        return

    if not settings.replica_sink_enabled:
        log.info("Replica sink worker disabled by config")
        return

    replica_sink.start()


bp = create_routes(core, apps, settings, replica_sink)
app.register_blueprint(bp)

# Start the sink worker eagerly in non-test envs (compatible with gunicorn)
_start_replica_sink()


def ssl_context_for(cert_file: str, key_file: str):
    if os.path.exists(cert_file) and os.path.exists(key_file):
        return (cert_file, key_file)
    log.warning(
        "TLS cert %s or key %s not found; serving a self-signed certificate",
        cert_file,
        key_file,
    )
    return "adhoc"


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Mutating admission webhook that adds capacity affinity and topology spread hints to Pods"
    )
    parser.add_argument(
        "--tls-cert-file",
        default=settings.tls_cert_file,
        help="File containing the x509 certificate for HTTPS",
    )
    parser.add_argument(
        "--tls-private-key-file",
        default=settings.tls_key_file,
        help="File containing the x509 private key matching --tls-cert-file",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Secure port that the webhook listens on",
    )
    args = parser.parse_args(argv)

    log.info("Starting webhook server on port %s...", args.port)
    app.run(
        host="0.0.0.0",
        port=args.port,
        ssl_context=ssl_context_for(args.tls_cert_file, args.tls_private_key_file),
        threaded=True,
    )


if __name__ == "__main__":
    main()
