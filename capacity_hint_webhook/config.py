import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    val = os.getenv(name)
    return val if val is not None and val != "" else default


def _parse_int(name: str, default: int) -> int:
    val = _get_env(name, str(default))
    try:
        return int(val)
    except ValueError:
        return default


def _parse_bool(name: str, default: bool) -> bool:
    val = _get_env(name, "true" if default else "false")
    return val.lower() in ("1", "true", "yes")


def _parse_weight(name: str, default: int = 100) -> int:
    # Preferred scheduling term weights must be in 1..100
    return min(100, max(1, _parse_int(name, default)))


@dataclass(frozen=True)
class Settings:
    # Behavior
    webhook_timeout_seconds: int = 5
    affinity_weight: int = 100
    app_env: str = "production"

    # Replica-count sink
    redis_url: str = ""
    redis_default_ttl_seconds: int = 86400
    replica_sink_size: int = 1000
    replica_sink_enabled: bool = True

    # Node capacity label and its values
    capacity_label: str = "node.kubernetes.io/capacity"
    spot_capacity_value: str = "spot"
    on_demand_capacity_value: str = "on-demand"

    # Server
    port: int = 8443
    tls_cert_file: str = "tls/tls.crt"
    tls_key_file: str = "tls/tls.key"


def load() -> Settings:
    return Settings(
        webhook_timeout_seconds=max(1, _parse_int("WEBHOOK_TIMEOUT_SECONDS", 5)),
        affinity_weight=_parse_weight("AFFINITY_WEIGHT", 100),
        app_env=_get_env("APP_ENV", "production"),
        redis_url=_get_env("REDIS_URL", ""),
        redis_default_ttl_seconds=_parse_int("REDIS_DEFAULT_TTL_SECONDS", 86400),
        replica_sink_size=max(1, _parse_int("REPLICA_SINK_SIZE", 1000)),
        replica_sink_enabled=_parse_bool("REPLICA_SINK_ENABLED", True),
        capacity_label=_get_env("CAPACITY_LABEL", "node.kubernetes.io/capacity"),
        spot_capacity_value=_get_env("SPOT_CAPACITY_VALUE", "spot"),
        on_demand_capacity_value=_get_env("ON_DEMAND_CAPACITY_VALUE", "on-demand"),
        port=_parse_int("PORT", 8443),
        tls_cert_file=_get_env("TLS_CERT_FILE", "tls/tls.crt"),
        tls_key_file=_get_env("TLS_KEY_FILE", "tls/tls.key"),
    )


# Singleton settings for app usage (optional in tests)
settings: Settings = load()
